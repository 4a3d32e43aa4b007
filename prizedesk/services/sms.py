"""
Outbound SMS: an httpx gateway client and a fire-and-forget dispatcher.

Nothing here runs inside a request transaction. Lifecycle services call
``NotificationDispatcher.enqueue`` after they commit; delivery happens in a
detached task with its own session, and a failing gateway only ever shows
up as a Failed ``sms_messages`` row and a log line.
"""
from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from typing import Any, Optional

import httpx
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import SMS_GATEWAY_TOKEN, SMS_GATEWAY_URL, SMS_SENDER_ID, SMS_TIMEOUT
from prizedesk.helpers import mask_phone
from prizedesk.webapp.crud import create_sms, mark_sms, set_notification_status
from prizedesk.webapp.database import AsyncSessionLocal, get_session
from prizedesk.webapp.exceptions import NotificationError
from prizedesk.webapp.models import NotificationStatus, SmsMessageType, SmsStatus

log = logging.getLogger("sms")


class SmsResult(BaseModel):
    success: bool
    provider_reference: Optional[str] = None
    error: Optional[str] = None


class SmsGateway:
    """
    Thin client for an HTTP SMS gateway: POST {to, from, text} with a bearer token.
    With no URL configured it only logs, which is what local development wants.
    """

    def __init__(
            self,
            base_url: str | None = SMS_GATEWAY_URL,
            token: str | None = SMS_GATEWAY_TOKEN,
            sender_id: str = SMS_SENDER_ID,
            timeout: float = SMS_TIMEOUT,
            transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self._token = token or ""
        self.sender_id = sender_id
        self.timeout = timeout
        self._transport = transport

    async def send(self, phone_number: str, message: str) -> SmsResult:
        if not self.base_url:
            ref = f"LOG-{uuid.uuid4().hex[:12]}"
            log.info("SMS (not sent, no gateway) to %s: %s", mask_phone(phone_number), message)
            return SmsResult(success=True, provider_reference=ref)

        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        payload = {"to": f"+{phone_number}", "from": self.sender_id, "text": message}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(f"{self.base_url}/messages", json=payload, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NotificationError(f"SMS gateway returned {e.response.status_code}: {e.response.text[:200]}") from e
        except httpx.HTTPError as e:
            raise NotificationError(f"SMS gateway unreachable: {e}") from e

        # a 2xx is a delivery; the body only carries an optional message id
        try:
            data: Any = resp.json() if resp.content else {}
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        ref = data.get("id") or data.get("message_id") or resp.headers.get("x-message-id")
        return SmsResult(success=True, provider_reference=str(ref) if ref else None)


class NotificationDispatcher:
    def __init__(
            self,
            gateway: SmsGateway | None = None,
            session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        self.gateway = gateway or SmsGateway()
        self.session_factory = session_factory or AsyncSessionLocal
        # strong refs, otherwise the loop may drop a pending task
        self._tasks: set[asyncio.Task] = set()

    def bind(self, session_factory: async_sessionmaker[AsyncSession]) -> "NotificationDispatcher":
        """Same gateway and task set, writing to another (tenant) database."""
        if session_factory is self.session_factory:
            return self
        clone = copy.copy(self)
        clone.session_factory = session_factory
        return clone

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def enqueue(
            self,
            phone_number: str,
            message: str,
            message_type: SmsMessageType,
            *,
            related_entity_type: Optional[str] = None,
            related_entity_id: Optional[int] = None,
            award_id: Optional[int] = None,
    ) -> asyncio.Task:
        task = asyncio.create_task(
            self.deliver(
                phone_number,
                message,
                message_type,
                related_entity_type=related_entity_type,
                related_entity_id=related_entity_id,
                award_id=award_id,
            )
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def deliver(
            self,
            phone_number: str,
            message: str,
            message_type: SmsMessageType,
            *,
            related_entity_type: Optional[str] = None,
            related_entity_id: Optional[int] = None,
            award_id: Optional[int] = None,
    ) -> bool:
        try:
            async with get_session(self.session_factory) as db:
                sms = await create_sms(
                    db,
                    phone_number=phone_number,
                    message=message,
                    message_type=message_type.value,
                    related_entity_type=related_entity_type,
                    related_entity_id=related_entity_id,
                )
                await db.commit()

                try:
                    result = await self.gateway.send(phone_number, message)
                except NotificationError as e:
                    log.warning("SMS %s to %s failed: %s", message_type.value, mask_phone(phone_number), e.message)
                    result = SmsResult(success=False, error=e.message)
                except Exception as e:
                    log.exception("SMS %s to %s crashed in the gateway", message_type.value, mask_phone(phone_number))
                    result = SmsResult(success=False, error=f"Unexpected gateway error: {e.__class__.__name__}")

                if result.success:
                    await mark_sms(db, sms.id, SmsStatus.sent, provider_reference=result.provider_reference)
                else:
                    await mark_sms(db, sms.id, SmsStatus.failed, failure_reason=result.error)
                if award_id is not None:
                    status = NotificationStatus.sent if result.success else NotificationStatus.failed
                    await set_notification_status(db, award_id, status.value)
                await db.commit()
        except SQLAlchemyError:
            log.exception("Could not record SMS %s to %s", message_type.value, mask_phone(phone_number))
            return False

        if result.success:
            log.info("SMS %s sent to %s", message_type.value, mask_phone(phone_number))
        return result.success

    async def drain(self) -> None:
        """Wait for every pending delivery. Tests use this to observe side effects."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: float = 5.0) -> None:
        if not self._tasks:
            return
        log.warning("Waiting for %d pending SMS deliveries...", len(self._tasks))
        done, pending = await asyncio.wait(list(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        log.info("SMS dispatcher stopped (%d delivered, %d cancelled).", len(done), len(pending))


# ---- message templates ----
def otp_message(code: str, ttl_minutes: int) -> str:
    return f"Your verification code is: {code}. This code expires in {ttl_minutes} minutes."


def award_message(prize_name: str, expiry_date=None, portal_url: str | None = None) -> str:
    message = f"Congratulations! You have won: {prize_name}."
    if portal_url:
        message += f" Redeem at: {portal_url}"
    if expiry_date is not None:
        message += f" Expires: {expiry_date:%d %b %Y}"
    return message


def redemption_message(prize_name: str, reference: str | None = None) -> str:
    message = f"Your prize '{prize_name}' has been successfully redeemed."
    if reference:
        message += f" Reference: {reference}"
    return message
