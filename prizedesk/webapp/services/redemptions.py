from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from prizedesk.helpers import mask_phone, utcnow
from prizedesk.services.sms import NotificationDispatcher, redemption_message
from prizedesk.webapp.crud import (
    add_audit,
    bump_counter,
    create_redemption,
    get_award,
    get_redeemable_awards,
    get_redemption_by_award,
    list_redemptions,
    transition_status,
)
from prizedesk.webapp.exceptions import (
    AlreadyRedeemedError,
    CancelledError,
    ExpiredError,
    NotFoundError,
    PhoneMismatchError,
    PrizeDeskError,
)
from prizedesk.webapp.models import (
    AuditAction,
    AwardStatus,
    OtpPurpose,
    PrizeAward,
    PrizeRedemption,
    SmsMessageType,
)
from prizedesk.webapp.schemas import (
    CompleteRedemptionRequest,
    PageParams,
    RedeemablePrize,
    RedemptionConfirmation,
    RedemptionFilter,
    RequestRedemptionResult,
)
from .awards import expire_award, parse_phone
from .otp import issue_otp, validate_otp

log = logging.getLogger("redemptions")


def to_redeemable(award: PrizeAward) -> RedeemablePrize:
    prize = award.prize
    return RedeemablePrize(
        prize_award_id=award.id,
        prize_id=award.prize_id,
        prize_name=prize.name,
        prize_description=prize.description,
        monetary_value=prize.monetary_value,
        image_url=prize.image_url,
        awarded_at=award.awarded_at,
        expiry_date=award.expiry_date,
        competition_name=award.competition.name if award.competition else None,
    )


async def available_prizes(db: AsyncSession, phone_number: str, *, now: Optional[datetime] = None) -> list[RedeemablePrize]:
    awards = await get_redeemable_awards(db, parse_phone(phone_number), now=now)
    return [to_redeemable(a) for a in awards]


async def request_redemption(
        db: AsyncSession,
        phone_number: str,
        *,
        prize_award_id: Optional[int] = None,
        notifier: Optional[NotificationDispatcher] = None,
        now: Optional[datetime] = None,
) -> RequestRedemptionResult:
    """
    Lists what the phone can redeem and, when there is anything, sends a fresh
    redemption OTP. Nothing redeemable means no OTP.
    """
    now = now or utcnow()
    phone = parse_phone(phone_number)
    awards = [
        to_redeemable(a)
        for a in await get_redeemable_awards(db, phone, award_id=prize_award_id, now=now)
    ]
    if not awards:
        log.info("Redemption requested by %s: nothing redeemable", mask_phone(phone))
        return RequestRedemptionResult(phone_number=phone, otp_sent=False, awards=[])

    otp = await issue_otp(
        db,
        phone,
        OtpPurpose.redemption,
        related_entity_id=prize_award_id,
        notifier=notifier,
        now=now,
    )
    return RequestRedemptionResult(phone_number=phone, otp_sent=True, otp_expires_at=otp.expires_at, awards=awards)


async def resend_redemption_otp(
        db: AsyncSession,
        phone_number: str,
        *,
        notifier: Optional[NotificationDispatcher] = None,
        now: Optional[datetime] = None,
) -> RequestRedemptionResult:
    result = await request_redemption(db, phone_number, notifier=notifier, now=now)
    if not result.otp_sent:
        raise NotFoundError("No prizes available for redemption.")
    return result


def _check_award(award: Optional[PrizeAward], phone_number: str, now: datetime) -> None:
    if award is None:
        raise NotFoundError("Prize not found.")
    if award.phone_number != phone_number:
        raise PhoneMismatchError()
    if award.status == AwardStatus.redeemed:
        raise AlreadyRedeemedError()
    if award.status == AwardStatus.expired or (award.status == AwardStatus.awarded and award.is_overdue(now)):
        raise ExpiredError()
    if award.status == AwardStatus.cancelled:
        raise CancelledError()


async def complete_redemption(
        db: AsyncSession,
        request: CompleteRedemptionRequest,
        *,
        ip_address: Optional[str] = None,
        notifier: Optional[NotificationDispatcher] = None,
        now: Optional[datetime] = None,
) -> RedemptionConfirmation:
    """
    OTP first, then the award checks, then the write; one transaction.

    A validated OTP stays consumed when an award check fails afterwards, and an
    overdue award found here is persisted as Expired in that same commit.
    """
    now = now or utcnow()
    phone = parse_phone(request.phone_number)

    await validate_otp(db, phone, OtpPurpose.redemption, request.otp_code, commit=False, now=now)

    award = await get_award(db, request.prize_award_id)
    try:
        _check_award(award, phone, now)
    except ExpiredError:
        if award.status == AwardStatus.awarded:
            await expire_award(db, award, now)
        await db.commit()
        raise
    except PrizeDeskError:
        await db.commit()
        raise

    award_id, prize_id = award.id, award.prize_id
    prize_name, monetary_value = award.prize.name, award.prize.monetary_value

    if not await transition_status(db, award_id, from_status=AwardStatus.awarded, to_status=AwardStatus.redeemed):
        await db.rollback()
        raise AlreadyRedeemedError()

    try:
        redemption = await create_redemption(
            db,
            award_id=award_id,
            channel=request.channel.value,
            redeemed_from_ip=ip_address,
            notes=request.notes,
        )
    except IntegrityError:
        # unique(prize_award_id): a concurrent completion got there first
        await db.rollback()
        log.warning("Duplicate redemption blocked for award %s", award_id)
        raise AlreadyRedeemedError()

    await bump_counter(db, prize_id, "redeemed_quantity")
    add_audit(
        db,
        entity_type="PrizeAward",
        entity_id=award_id,
        action=AuditAction.redeem,
        subject_id=phone,
        details={"channel": request.channel.value, "reference": redemption.reference},
        ip_address=ip_address,
    )
    await db.commit()
    log.info("Award %s redeemed by %s via %s (%s)", award_id, mask_phone(phone), request.channel.value, redemption.reference)

    if notifier is not None:
        notifier.enqueue(
            phone,
            redemption_message(prize_name, redemption.reference),
            SmsMessageType.redemption_confirmation,
            related_entity_type="PrizeRedemption",
            related_entity_id=redemption.id,
        )

    return RedemptionConfirmation(
        redemption_id=redemption.id,
        prize_award_id=award_id,
        prize_name=prize_name,
        monetary_value=monetary_value,
        redeemed_at=redemption.redeemed_at,
        reference=redemption.reference,
        channel=redemption.channel,
    )


async def get_redemption(db: AsyncSession, award_id: int) -> PrizeRedemption:
    redemption = await get_redemption_by_award(db, award_id)
    if redemption is None:
        raise NotFoundError(f"No redemption for prize award {award_id}.")
    return redemption


async def search_redemptions(
        db: AsyncSession,
        filters: RedemptionFilter,
        page: PageParams,
) -> tuple[Sequence[PrizeRedemption], int]:
    if filters.phone_number:
        filters = filters.model_copy(update={"phone_number": parse_phone(filters.phone_number)})
    return await list_redemptions(db, filters, page)
