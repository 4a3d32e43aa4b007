from datetime import timedelta

import pytest
from sqlalchemy import func, select

from prizedesk.helpers import utcnow
from prizedesk.webapp.crud import get_award, get_prize, get_redemption_by_award, transition_status
from prizedesk.webapp.exceptions import (
    AlreadyRedeemedError,
    AttemptsExceededError,
    CancelledError,
    ExpiredError,
    InvalidCodeError,
    NotFoundError,
    OutOfStockError,
    PhoneMismatchError,
)
from prizedesk.webapp.models import AwardStatus, OtpPurpose, PrizeRedemption
from prizedesk.webapp.schemas import CompleteRedemptionRequest
from prizedesk.webapp.services import (
    available_prizes,
    cancel_award,
    complete_redemption,
    issue_award,
    issue_otp,
    request_redemption,
    resend_redemption_otp,
    validate_otp,
)
from tests.conftest import OTHER_PHONE, OTHER_PHONE_E164, PHONE, PHONE_E164
from tests.test_otp import wrong_code


def complete_request(award_id: int, code: str, phone: str = PHONE) -> CompleteRedemptionRequest:
    return CompleteRedemptionRequest(phone_number=phone, prize_award_id=award_id, otp_code=code)


async def redemption_code(db, phone: str = PHONE_E164) -> str:
    otp = await issue_otp(db, phone, OtpPurpose.redemption)
    return otp.code


async def test_award_to_redemption_lifecycle(db, make_prize, dispatcher, gateway):
    prize_id = await make_prize(total=1)

    award = await issue_award(db, prize_id, PHONE)
    assert award.status == AwardStatus.awarded
    assert (await get_prize(db, prize_id)).remaining_quantity == 0

    with pytest.raises(OutOfStockError):
        await issue_award(db, prize_id, OTHER_PHONE)

    result = await request_redemption(db, PHONE, notifier=dispatcher)
    assert result.otp_sent is True
    assert [a.prize_award_id for a in result.awards] == [award.id]
    await dispatcher.drain()
    first_code = gateway.last_code(PHONE_E164)

    bad = wrong_code(first_code)
    for _ in range(2):
        with pytest.raises(InvalidCodeError):
            await validate_otp(db, PHONE_E164, OtpPurpose.redemption, bad)
    with pytest.raises(AttemptsExceededError):
        await validate_otp(db, PHONE_E164, OtpPurpose.redemption, bad)

    await request_redemption(db, PHONE, notifier=dispatcher)
    await dispatcher.drain()
    code = gateway.last_code(PHONE_E164)

    confirmation = await complete_redemption(db, complete_request(award.id, code), ip_address="10.0.0.7")
    assert confirmation.prize_award_id == award.id
    assert confirmation.prize_name == "Coffee voucher"
    assert confirmation.reference.startswith("RDM-")
    assert confirmation.channel == "WebPortal"

    award = await get_award(db, award.id)
    assert award.status == AwardStatus.redeemed
    prize = await get_prize(db, prize_id)
    assert prize.redeemed_quantity == 1
    assert prize.outstanding_quantity == 0

    redemption = await get_redemption_by_award(db, award.id)
    assert redemption.id == confirmation.redemption_id
    assert redemption.redeemed_from_ip == "10.0.0.7"

    with pytest.raises(AlreadyRedeemedError):
        await complete_redemption(db, complete_request(award.id, await redemption_code(db)))
    assert (await get_prize(db, prize_id)).redeemed_quantity == 1


async def test_confirmation_sms_after_redemption(db, make_prize, dispatcher, gateway):
    prize_id = await make_prize(total=1)
    award = await issue_award(db, prize_id, PHONE)

    confirmation = await complete_redemption(
        db, complete_request(award.id, await redemption_code(db)), notifier=dispatcher,
    )
    await dispatcher.drain()

    phone, message = gateway.sent[-1]
    assert phone == PHONE_E164
    assert message == (
        f"Your prize 'Coffee voucher' has been successfully redeemed. Reference: {confirmation.reference}"
    )


async def test_status_guard_blocks_the_slower_writer(session_factory, make_prize):
    prize_id = await make_prize(total=1)
    async with session_factory() as db:
        award_id = (await issue_award(db, prize_id, PHONE)).id

    async with session_factory() as first, session_factory() as second:
        assert (await get_award(first, award_id)).status == AwardStatus.awarded
        assert (await get_award(second, award_id)).status == AwardStatus.awarded

        assert await transition_status(first, award_id, from_status=AwardStatus.awarded, to_status=AwardStatus.redeemed)
        await first.commit()

        assert not await transition_status(
            second, award_id, from_status=AwardStatus.awarded, to_status=AwardStatus.redeemed,
        )
        await second.rollback()


async def test_unique_redemption_is_the_last_line(db, make_prize):
    prize_id = await make_prize(total=1)
    award = await issue_award(db, prize_id, PHONE)

    # a row written by a writer that never got to move the status
    db.add(PrizeRedemption(prize_award_id=award.id, channel="API", reference="RDM-00000000"))
    await db.commit()

    with pytest.raises(AlreadyRedeemedError):
        await complete_redemption(db, complete_request(award.id, await redemption_code(db)))

    assert (await get_award(db, award.id)).status == AwardStatus.awarded
    assert (await get_prize(db, prize_id)).redeemed_quantity == 0
    count = await db.scalar(select(func.count()).select_from(PrizeRedemption))
    assert count == 1


async def test_expiry_wins_over_a_valid_code(db, make_prize):
    prize_id = await make_prize(total=1)
    award = await issue_award(db, prize_id, PHONE, expiry_days=1, now=utcnow() - timedelta(days=2))
    code = await redemption_code(db)

    with pytest.raises(ExpiredError):
        await complete_redemption(db, complete_request(award.id, code))

    assert (await get_award(db, award.id)).status == AwardStatus.expired
    assert (await get_prize(db, prize_id)).expired_quantity == 1

    # the code was spent on the failed attempt
    with pytest.raises(NotFoundError) as exc:
        await complete_redemption(db, complete_request(award.id, code))
    assert exc.value.code == "OTP_NOT_FOUND"


async def test_award_belongs_to_another_phone(db, make_prize):
    prize_id = await make_prize(total=1)
    award = await issue_award(db, prize_id, PHONE)

    with pytest.raises(PhoneMismatchError):
        await complete_redemption(
            db, complete_request(award.id, await redemption_code(db, OTHER_PHONE_E164), phone=OTHER_PHONE),
        )
    assert (await get_award(db, award.id)).status == AwardStatus.awarded


async def test_cancelled_award_cannot_be_redeemed(db, make_prize):
    prize_id = await make_prize(total=1)
    award = await issue_award(db, prize_id, PHONE)
    await cancel_award(db, award.id, "fraud")

    with pytest.raises(CancelledError):
        await complete_redemption(db, complete_request(award.id, await redemption_code(db)))


async def test_unknown_award(db):
    with pytest.raises(NotFoundError) as exc:
        await complete_redemption(db, complete_request(404, await redemption_code(db)))
    assert exc.value.code == "NOT_FOUND"


async def test_wrong_code_leaves_award_untouched(db, make_prize):
    prize_id = await make_prize(total=1)
    award = await issue_award(db, prize_id, PHONE)
    code = await redemption_code(db)

    with pytest.raises(InvalidCodeError):
        await complete_redemption(db, complete_request(award.id, wrong_code(code)))
    assert (await get_award(db, award.id)).status == AwardStatus.awarded

    await complete_redemption(db, complete_request(award.id, code))
    assert (await get_award(db, award.id)).status == AwardStatus.redeemed


async def test_nothing_to_redeem_sends_no_code(db, dispatcher, gateway):
    result = await request_redemption(db, PHONE, notifier=dispatcher)
    await dispatcher.drain()

    assert result.otp_sent is False
    assert result.awards == []
    assert gateway.sent == []

    with pytest.raises(NotFoundError):
        await resend_redemption_otp(db, PHONE, notifier=dispatcher)


async def test_available_prizes_skip_closed_awards(db, make_prize):
    prize_id = await make_prize(total=3)
    kept = await issue_award(db, prize_id, PHONE, expiry_days=10)
    cancelled = await issue_award(db, prize_id, PHONE)
    await issue_award(db, prize_id, PHONE, expiry_days=1, now=utcnow() - timedelta(days=2))
    await cancel_award(db, cancelled.id, "void")

    prizes = await available_prizes(db, PHONE)
    assert [p.prize_award_id for p in prizes] == [kept.id]
    assert prizes[0].prize_name == "Coffee voucher"
