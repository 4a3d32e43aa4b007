from datetime import timedelta

import pytest
from sqlalchemy import select

from prizedesk.helpers import utcnow
from prizedesk.webapp.exceptions import AttemptsExceededError, ExpiredError, InvalidCodeError, NotFoundError
from prizedesk.webapp.models import Otp, OtpPurpose, SmsMessage
from prizedesk.webapp.services import issue_otp, validate_otp
from tests.conftest import PHONE_E164


def wrong_code(code: str) -> str:
    return "000000" if code != "000000" else "111111"


async def test_issue_and_validate(db):
    otp = await issue_otp(db, PHONE_E164, OtpPurpose.verification)
    assert len(otp.code) == 6 and otp.code.isdigit()
    assert otp.max_attempts == 3

    verified = await validate_otp(db, PHONE_E164, OtpPurpose.verification, otp.code)
    assert verified.id == otp.id

    await db.refresh(otp)
    assert otp.is_used is True
    assert otp.used_at is not None


async def test_code_cannot_be_replayed(db):
    otp = await issue_otp(db, PHONE_E164, OtpPurpose.verification)
    await validate_otp(db, PHONE_E164, OtpPurpose.verification, otp.code)

    with pytest.raises(NotFoundError) as exc:
        await validate_otp(db, PHONE_E164, OtpPurpose.verification, otp.code)
    assert exc.value.code == "OTP_NOT_FOUND"


async def test_purposes_do_not_mix(db):
    otp = await issue_otp(db, PHONE_E164, OtpPurpose.login)
    with pytest.raises(NotFoundError):
        await validate_otp(db, PHONE_E164, OtpPurpose.redemption, otp.code)


async def test_lockout_beats_the_correct_code(db):
    otp = await issue_otp(db, PHONE_E164, OtpPurpose.redemption)
    bad = wrong_code(otp.code)

    with pytest.raises(InvalidCodeError) as exc:
        await validate_otp(db, PHONE_E164, OtpPurpose.redemption, bad)
    assert exc.value.remaining_attempts == 2
    assert otp.remaining_attempts == 2

    with pytest.raises(InvalidCodeError) as exc:
        await validate_otp(db, PHONE_E164, OtpPurpose.redemption, bad)
    assert exc.value.remaining_attempts == 1
    assert otp.remaining_attempts == 1

    with pytest.raises(AttemptsExceededError):
        await validate_otp(db, PHONE_E164, OtpPurpose.redemption, bad)

    with pytest.raises(AttemptsExceededError):
        await validate_otp(db, PHONE_E164, OtpPurpose.redemption, otp.code)

    await db.refresh(otp)
    assert otp.attempt_count == 3
    assert otp.remaining_attempts == 0
    assert otp.is_used is False


async def test_wrong_attempts_survive_a_rollback(db):
    otp = await issue_otp(db, PHONE_E164, OtpPurpose.redemption)
    with pytest.raises(InvalidCodeError):
        await validate_otp(db, PHONE_E164, OtpPurpose.redemption, wrong_code(otp.code), commit=False)
    await db.rollback()

    await db.refresh(otp)
    assert otp.attempt_count == 1


async def test_expired_code(db):
    otp = await issue_otp(db, PHONE_E164, OtpPurpose.verification)

    with pytest.raises(ExpiredError) as exc:
        await validate_otp(
            db, PHONE_E164, OtpPurpose.verification, otp.code, now=utcnow() + timedelta(minutes=6),
        )
    assert exc.value.code == "OTP_EXPIRED"
    assert exc.value.status_code == 409


async def test_new_code_supersedes_the_old_one(db):
    first = await issue_otp(db, PHONE_E164, OtpPurpose.redemption)
    second = await issue_otp(db, PHONE_E164, OtpPurpose.redemption)

    await db.refresh(first)
    assert first.is_used is True

    if first.code != second.code:
        with pytest.raises(InvalidCodeError):
            await validate_otp(db, PHONE_E164, OtpPurpose.redemption, first.code)
    verified = await validate_otp(db, PHONE_E164, OtpPurpose.redemption, second.code)
    assert verified.id == second.id

    live = (await db.execute(select(Otp).where(Otp.is_used.is_(False)))).scalars().all()
    assert live == []


async def test_code_is_sent_by_sms(db, dispatcher, gateway):
    otp = await issue_otp(db, PHONE_E164, OtpPurpose.verification, notifier=dispatcher)
    await dispatcher.drain()

    assert gateway.last_code(PHONE_E164) == otp.code
    sms = (await db.execute(select(SmsMessage))).scalars().one()
    assert sms.message_type == "OTP"
    assert sms.status == "Sent"
    assert sms.related_entity_id == otp.id
