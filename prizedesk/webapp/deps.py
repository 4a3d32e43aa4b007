"""
Request-scoped dependencies: caller identity, the tenant database session,
and the notification dispatcher bound to that tenant.

Tenant routing happens here and nowhere else; everything below the routes
receives an explicit ``AsyncSession``.
"""
from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Optional

from fastapi import Depends, Header, Request
from jose import JWTError, jwt
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import ADMIN_ROLE, JWT_ALGORITHMS, JWT_AUDIENCE, JWT_SECRET, build_async_dsn
from prizedesk.services.sms import NotificationDispatcher
from prizedesk.webapp.database import session_factory_for
from prizedesk.webapp.exceptions import AuthError, ForbiddenError

log = logging.getLogger("webapp.auth")


class CallerContext(BaseModel):
    subject_id: Optional[str] = None
    roles: list[str] = Field(default_factory=list)
    database_dsn: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.subject_id is not None

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles


def dsn_from_db_info(claim: Any) -> Optional[str]:
    """
    The identity provider puts tenant database coordinates in a ``db_info``
    claim, either as an object or as a JSON string.
    """
    if not claim:
        return None
    if isinstance(claim, str):
        try:
            claim = json.loads(claim)
        except ValueError as e:
            raise AuthError("Malformed db_info claim.") from e
    if not isinstance(claim, dict):
        raise AuthError("Malformed db_info claim.")

    info = {str(k).lower(): v for k, v in claim.items()}
    host = info.get("server") or info.get("host")
    database = info.get("database") or info.get("db")
    if not host or not database:
        raise AuthError("db_info claim must name a server and a database.")
    try:
        port = int(info.get("port") or 5432)
    except (TypeError, ValueError) as e:
        raise AuthError("db_info claim has an invalid port.") from e
    return build_async_dsn(str(info.get("user") or ""), str(info.get("password") or ""), str(host), port, str(database))


def decode_token(token: str) -> dict[str, Any]:
    if not JWT_SECRET:
        raise AuthError("Token validation is not configured.")
    try:
        return jwt.decode(
            token,
            JWT_SECRET,
            algorithms=JWT_ALGORITHMS,
            audience=JWT_AUDIENCE,
            options={"verify_aud": bool(JWT_AUDIENCE)},
        )
    except JWTError as e:
        log.info("Rejected bearer token: %s", e)
        raise AuthError("Invalid or expired token.") from e


async def get_caller(authorization: str | None = Header(default=None, alias="Authorization")) -> CallerContext:
    """Anonymous when no header is sent; a header that is present must be a valid bearer token."""
    if not authorization:
        return CallerContext()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Missing bearer token.")

    payload = decode_token(token.strip())
    roles = payload.get("roles") or payload.get("role") or []
    if isinstance(roles, str):
        roles = [roles]
    return CallerContext(
        subject_id=str(payload.get("sub")) if payload.get("sub") is not None else None,
        roles=[str(r) for r in roles],
        database_dsn=dsn_from_db_info(payload.get("db_info")),
    )


async def require_admin(caller: CallerContext = Depends(get_caller)) -> CallerContext:
    if not caller.is_authenticated:
        raise AuthError()
    if not caller.is_admin:
        raise ForbiddenError()
    return caller


def get_session_factory(caller: CallerContext = Depends(get_caller)) -> async_sessionmaker[AsyncSession]:
    return session_factory_for(caller.database_dsn)


async def get_db(factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory)) -> AsyncIterator[AsyncSession]:
    """Provide a single async session per request, with rollback on exception."""
    session = factory()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


_dispatcher: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher


def get_notifier(
        factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
        dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> NotificationDispatcher:
    return dispatcher.bind(factory)


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None
