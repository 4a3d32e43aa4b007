"""Pytest configuration and fixtures."""
import os

# config reads the environment at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["SMS_GATEWAY_URL"] = ""
os.environ.pop("JWT_AUDIENCE", None)

import re
from decimal import Decimal

import httpx
import pytest
from jose import jwt

from prizedesk.services.sms import NotificationDispatcher, SmsGateway, SmsResult
from prizedesk.webapp import models  # noqa: F401
from prizedesk.webapp.crud import create_pool, create_prize
from prizedesk.webapp.database import Base, make_engine, make_sessionmaker
from prizedesk.webapp.deps import get_dispatcher, get_session_factory
from prizedesk.webapp.exceptions import NotificationError
from prizedesk.webapp.main import app
from prizedesk.webapp.schemas import PrizeCreate, PrizePoolCreate

PHONE = "0821234567"
PHONE_E164 = "27821234567"
OTHER_PHONE = "0831234567"
OTHER_PHONE_E164 = "27831234567"


class FakeGateway(SmsGateway):
    """Records every message instead of calling out; can be told to fail."""

    def __init__(self):
        super().__init__(base_url="")
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    async def send(self, phone_number: str, message: str) -> SmsResult:
        if self.fail:
            raise NotificationError("gateway down")
        self.sent.append((phone_number, message))
        return SmsResult(success=True, provider_reference=f"fake-{len(self.sent)}")

    def last_code(self, phone_number: str) -> str:
        for phone, message in reversed(self.sent):
            if phone == phone_number:
                match = re.search(r"\b(\d{6})\b", message)
                if match:
                    return match.group(1)
        raise AssertionError(f"no code sent to {phone_number}")


@pytest.fixture
async def engine(tmp_path):
    # a file, not :memory:, so separate sessions see the same data
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'prizedesk.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_sessionmaker(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
async def dispatcher(gateway, session_factory):
    dispatcher = NotificationDispatcher(gateway=gateway, session_factory=session_factory)
    yield dispatcher
    await dispatcher.drain()


@pytest.fixture
def make_prize(session_factory):
    """Creates a pool (unless one is given) and a prize in it; returns the prize id."""

    async def _make(
            total: int = 1,
            *,
            pool_id: int | None = None,
            name: str = "Coffee voucher",
            value: str = "50.00",
            is_active: bool = True,
            expiry_date=None,
    ) -> int:
        async with session_factory() as session:
            if pool_id is None:
                pool = await create_pool(session, PrizePoolCreate(name="Winter pool"))
                pool_id = pool.id
            prize = await create_prize(session, PrizeCreate(
                pool_id=pool_id,
                name=name,
                monetary_value=Decimal(value),
                total_quantity=total,
                is_active=is_active,
                expiry_date=expiry_date,
            ))
            await session.commit()
            return prize.id

    return _make


@pytest.fixture
def make_pool(session_factory):
    async def _make(name: str = "Bulk pool") -> int:
        async with session_factory() as session:
            pool = await create_pool(session, PrizePoolCreate(name=name))
            await session.commit()
            return pool.id

    return _make


def make_token(sub: str = "admin-1", roles=("admin",), **claims) -> str:
    return jwt.encode({"sub": sub, "roles": list(roles), **claims}, "test-secret", algorithm="HS256")


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
async def client(session_factory, dispatcher):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
