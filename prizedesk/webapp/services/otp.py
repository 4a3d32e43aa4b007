from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config import OTP_DIGITS, OTP_MAX_ATTEMPTS, OTP_TTL_MINUTES
from prizedesk.helpers import gen_otp_code, mask_phone, utcnow
from prizedesk.services.sms import NotificationDispatcher, otp_message
from prizedesk.webapp.crud import (
    add_audit,
    consume,
    create_otp,
    get_latest_unused,
    register_failed_attempt,
    supersede_unused,
)
from prizedesk.webapp.exceptions import AttemptsExceededError, ExpiredError, InvalidCodeError, NotFoundError
from prizedesk.webapp.models import AuditAction, Otp, OtpPurpose, SmsMessageType

log = logging.getLogger("otp")

OTP_TTL = timedelta(minutes=OTP_TTL_MINUTES)


async def issue_otp(
        db: AsyncSession,
        phone_number: str,
        purpose: OtpPurpose,
        *,
        related_entity_id: Optional[int] = None,
        notifier: Optional[NotificationDispatcher] = None,
        now: Optional[datetime] = None,
) -> Otp:
    """
    Supersedes any live code for (phone, purpose), stores a fresh one and
    commits. The SMS goes out after the commit so a slow gateway never
    holds the transaction.
    """
    now = now or utcnow()
    superseded = await supersede_unused(db, phone_number, purpose.value, now)
    otp = await create_otp(
        db,
        phone_number=phone_number,
        purpose=purpose.value,
        code=gen_otp_code(OTP_DIGITS),
        ttl=OTP_TTL,
        max_attempts=OTP_MAX_ATTEMPTS,
        related_entity_id=related_entity_id,
        now=now,
    )
    await db.commit()
    log.info("OTP %s issued for %s (superseded %d)", purpose.value, mask_phone(phone_number), superseded)

    if notifier is not None:
        notifier.enqueue(
            phone_number,
            otp_message(otp.code, OTP_TTL_MINUTES),
            SmsMessageType.otp,
            related_entity_type="Otp",
            related_entity_id=otp.id,
        )
    return otp


async def validate_otp(
        db: AsyncSession,
        phone_number: str,
        purpose: OtpPurpose,
        code: str,
        *,
        commit: bool = True,
        now: Optional[datetime] = None,
) -> Otp:
    """
    Checks a submitted code against the current OTP for (phone, purpose).

    Order matters: missing, then expired, then locked out, and only then is the
    code compared, so a locked-out OTP never validates even with the right code.
    A wrong guess is committed right away, whatever ``commit`` says; a correct
    one is consumed in the caller's transaction.
    """
    now = now or utcnow()
    otp = await get_latest_unused(db, phone_number, purpose.value)
    if otp is None:
        raise NotFoundError("No active verification code. Please request a new one.", code="OTP_NOT_FOUND")
    if otp.is_expired(now):
        raise ExpiredError("Verification code has expired. Please request a new one.", code="OTP_EXPIRED")
    if otp.remaining_attempts == 0:
        raise AttemptsExceededError()

    if not secrets.compare_digest(otp.code.encode(), (code or "").strip().encode()):
        count = await register_failed_attempt(db, otp.id)
        await db.commit()
        await db.refresh(otp)
        if count is None:
            # another request locked or consumed it between our read and our write
            if otp.is_used:
                raise NotFoundError("No active verification code. Please request a new one.", code="OTP_NOT_FOUND")
            raise AttemptsExceededError()

        remaining = otp.remaining_attempts
        log.info("Wrong OTP for %s (%d attempt(s) left)", mask_phone(phone_number), remaining)
        if remaining <= 0:
            raise AttemptsExceededError()
        raise InvalidCodeError(remaining, f"Invalid code. {remaining} attempt(s) remaining.")

    if not await consume(db, otp.id, now):
        raise NotFoundError("No active verification code. Please request a new one.", code="OTP_NOT_FOUND")

    add_audit(
        db,
        entity_type="Otp",
        entity_id=otp.id,
        action=AuditAction.verify_otp,
        subject_id=phone_number,
        details={"purpose": purpose.value},
    )
    if commit:
        await db.commit()
    log.info("OTP %s verified for %s", purpose.value, mask_phone(phone_number))
    return otp
