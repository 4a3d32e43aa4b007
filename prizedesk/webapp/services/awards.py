from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import REDEMPTION_PORTAL_URL
from prizedesk.helpers import as_utc, mask_phone, normalize_phone, utcnow
from prizedesk.services.sms import NotificationDispatcher, award_message
from prizedesk.webapp.crud import (
    add_audit,
    bump_counter,
    create_award,
    get_award,
    get_awards_by_phone,
    get_competition,
    get_or_create_user,
    get_overdue_awards,
    get_pool,
    get_prize,
    list_awards,
    next_available_prize,
    set_notification_status,
    take_one,
    transition_status,
)
from prizedesk.webapp.exceptions import (
    AlreadyRedeemedError,
    CancelledError,
    ConflictError,
    ExpiredError,
    NotFoundError,
    OutOfStockError,
    PrizeDeskError,
    ValidationError,
)
from prizedesk.webapp.models import (
    AuditAction,
    AwardMethod,
    AwardStatus,
    NotificationStatus,
    PrizeAward,
    SmsMessageType,
)
from prizedesk.webapp.schemas import (
    AwardFilter,
    BulkAwardItemResult,
    BulkAwardRequest,
    BulkAwardResult,
    PageParams,
)

log = logging.getLogger("awards")

# attempts per phone in a bulk run: the chosen prize, then the next one if the first sold out under us
BULK_PRIZE_ATTEMPTS = 2


def parse_phone(phone_number: str) -> str:
    try:
        return normalize_phone(phone_number)
    except ValueError as e:
        raise ValidationError(str(e), code="INVALID_PHONE", errors={"phone_number": str(e)}) from e


def raise_for_closed(award: PrizeAward, now: Optional[datetime] = None) -> None:
    """Raises the conflict matching an award that can no longer be redeemed or cancelled."""
    status = award.effective_status(now)
    if status == AwardStatus.redeemed:
        raise AlreadyRedeemedError()
    if status == AwardStatus.expired:
        raise ExpiredError()
    if status == AwardStatus.cancelled:
        raise CancelledError()


async def expire_award(db: AsyncSession, award: PrizeAward, now: Optional[datetime] = None) -> bool:
    """
    Makes the lazy Expired reading durable. Stages the change in the caller's
    transaction; False when the award had already left Awarded.
    """
    moved = await transition_status(
        db, award.id, from_status=AwardStatus.awarded, to_status=AwardStatus.expired,
    )
    if not moved:
        return False
    await bump_counter(db, award.prize_id, "expired_quantity")
    add_audit(
        db,
        entity_type="PrizeAward",
        entity_id=award.id,
        action=AuditAction.expire,
        details={"expiry_date": award.expiry_date, "evaluated_at": now or utcnow()},
    )
    log.info("Award %s expired", award.id)
    return True


def _award_expiry(prize_expiry: Optional[datetime], expiry_days: Optional[int], now: datetime) -> Optional[datetime]:
    if expiry_days:
        return now + timedelta(days=expiry_days)
    return as_utc(prize_expiry)


def notify_award(notifier: NotificationDispatcher, award: PrizeAward) -> None:
    notifier.enqueue(
        award.phone_number,
        award_message(award.prize.name, as_utc(award.expiry_date), REDEMPTION_PORTAL_URL),
        SmsMessageType.prize_notification,
        related_entity_type="PrizeAward",
        related_entity_id=award.id,
        award_id=award.id,
    )


async def _issue_one(
        db: AsyncSession,
        prize_id: int,
        phone_number: str,
        *,
        competition_id: Optional[int],
        expiry_days: Optional[int],
        award_method: AwardMethod,
        awarded_by: Optional[str],
        external_reference: Optional[str],
        notify: bool,
        now: datetime,
) -> PrizeAward:
    """Everything IssueAward does short of committing."""
    prize = await get_prize(db, prize_id)
    if prize is None:
        raise NotFoundError(f"Prize {prize_id} not found.")
    if not prize.is_active:
        raise ConflictError("Prize is not active.", code="PRIZE_INACTIVE")
    if prize.is_expired(now):
        raise ExpiredError("Prize has expired.", code="PRIZE_EXPIRED")
    if competition_id is not None and await get_competition(db, competition_id) is None:
        raise NotFoundError(f"Competition {competition_id} not found.")

    # the stock check and the decrement are one statement
    if not await take_one(db, prize_id):
        raise OutOfStockError()

    user = await get_or_create_user(db, phone_number)
    award = await create_award(
        db,
        prize_id=prize_id,
        competition_id=competition_id,
        external_user_id=user.id if user else None,
        phone_number=phone_number,
        awarded_at=now,
        expiry_date=_award_expiry(prize.expiry_date, expiry_days, now),
        award_method=award_method.value,
        awarded_by=awarded_by,
        external_reference=external_reference,
        notification_channel="SMS" if notify else None,
        notification_status=(NotificationStatus.pending if notify else NotificationStatus.not_required).value,
    )
    add_audit(
        db,
        entity_type="PrizeAward",
        entity_id=award.id,
        action=AuditAction.award if award_method == AwardMethod.manual else AuditAction.bulk_award,
        subject_id=awarded_by,
        details={"prize_id": prize_id, "phone": mask_phone(phone_number), "method": award_method.value},
    )
    return award


async def issue_award(
        db: AsyncSession,
        prize_id: int,
        phone_number: str,
        *,
        competition_id: Optional[int] = None,
        expiry_days: Optional[int] = None,
        awarded_by: Optional[str] = None,
        external_reference: Optional[str] = None,
        send_notification: bool = True,
        notifier: Optional[NotificationDispatcher] = None,
        now: Optional[datetime] = None,
) -> PrizeAward:
    now = now or utcnow()
    phone = parse_phone(phone_number)
    notify = send_notification and notifier is not None

    award = await _issue_one(
        db,
        prize_id,
        phone,
        competition_id=competition_id,
        expiry_days=expiry_days,
        award_method=AwardMethod.manual,
        awarded_by=awarded_by,
        external_reference=external_reference,
        notify=notify,
        now=now,
    )
    await db.commit()
    award = await get_award(db, award.id)
    log.info("Prize %s awarded to %s (award %s)", prize_id, mask_phone(phone), award.id)

    if notify:
        notify_award(notifier, award)
    return award


async def _bulk_one(
        db: AsyncSession,
        pool_id: int,
        raw_phone: str,
        request: BulkAwardRequest,
        *,
        awarded_by: Optional[str],
        notifier: Optional[NotificationDispatcher],
        now: datetime,
) -> BulkAwardItemResult:
    try:
        phone = normalize_phone(raw_phone)
    except ValueError as e:
        return BulkAwardItemResult(
            phone_number=raw_phone, success=False, error_code="INVALID_PHONE", error_message=str(e),
        )

    notify = request.send_notification and notifier is not None
    tried: list[int] = []
    for _ in range(BULK_PRIZE_ATTEMPTS):
        prize = await next_available_prize(db, pool_id, exclude_ids=tried, now=now)
        if prize is None:
            break
        prize_id = prize.id
        try:
            award = await _issue_one(
                db,
                prize_id,
                phone,
                competition_id=request.competition_id,
                expiry_days=request.expiry_days,
                award_method=AwardMethod.bulk,
                awarded_by=awarded_by,
                external_reference=None,
                notify=notify,
                now=now,
            )
            award_id = award.id
            await db.commit()
        except OutOfStockError:
            await db.rollback()
            tried.append(prize_id)
            continue
        except PrizeDeskError as e:
            await db.rollback()
            return BulkAwardItemResult(
                phone_number=phone, success=False, prize_id=prize_id, error_code=e.code, error_message=e.message,
            )
        except SQLAlchemyError as e:
            await db.rollback()
            log.exception("Bulk award to %s failed on prize %s", mask_phone(phone), prize_id)
            return BulkAwardItemResult(
                phone_number=phone, success=False, prize_id=prize_id,
                error_code="TRANSIENT_ERROR", error_message=type(e).__name__,
            )

        if notify:
            notify_award(notifier, await get_award(db, award_id))
        return BulkAwardItemResult(phone_number=phone, success=True, prize_award_id=award_id, prize_id=prize_id)

    return BulkAwardItemResult(
        phone_number=phone,
        success=False,
        error_code=OutOfStockError.code,
        error_message="No prizes available in this pool.",
    )


async def bulk_issue_awards(
        db: AsyncSession,
        request: BulkAwardRequest,
        *,
        awarded_by: Optional[str] = None,
        notifier: Optional[NotificationDispatcher] = None,
        now: Optional[datetime] = None,
) -> BulkAwardResult:
    """
    Best effort, one transaction per phone number: a failure is recorded
    against its own item and the batch carries on.
    """
    now = now or utcnow()
    pool = await get_pool(db, request.pool_id)
    if pool is None:
        raise NotFoundError(f"Prize pool {request.pool_id} not found.")
    pool_id = pool.id

    results: list[BulkAwardItemResult] = []
    for raw_phone in request.phone_numbers:
        results.append(
            await _bulk_one(db, pool_id, raw_phone, request, awarded_by=awarded_by, notifier=notifier, now=now)
        )

    successful = sum(1 for r in results if r.success)
    log.info("Bulk award on pool %s: %d/%d succeeded", pool_id, successful, len(results))
    return BulkAwardResult(
        total_requested=len(results),
        successful=successful,
        failed=len(results) - successful,
        results=results,
    )


async def cancel_award(
        db: AsyncSession,
        award_id: int,
        reason: str,
        *,
        subject_id: Optional[str] = None,
        now: Optional[datetime] = None,
) -> PrizeAward:
    """Awarded -> Cancelled. The unit stays out of stock; cancelled_quantity records it."""
    now = now or utcnow()
    award = await get_award(db, award_id)
    if award is None:
        raise NotFoundError(f"Prize award {award_id} not found.")

    if award.status == AwardStatus.awarded and award.is_overdue(now):
        await expire_award(db, award, now)
        await db.commit()
        raise ExpiredError()
    raise_for_closed(award, now)

    moved = await transition_status(
        db,
        award_id,
        from_status=AwardStatus.awarded,
        to_status=AwardStatus.cancelled,
        cancelled_at=now,
        cancel_reason=reason,
    )
    if not moved:
        await db.rollback()
        raise_for_closed(await get_award(db, award_id), now)
        raise ConflictError("Prize award changed concurrently. Please retry.")

    await bump_counter(db, award.prize_id, "cancelled_quantity")
    add_audit(
        db,
        entity_type="PrizeAward",
        entity_id=award_id,
        action=AuditAction.cancel,
        subject_id=subject_id,
        details={"reason": reason},
    )
    await db.commit()
    log.info("Award %s cancelled by %s", award_id, subject_id or "unknown")
    return await get_award(db, award_id)


async def resend_award_notification(
        db: AsyncSession,
        award_id: int,
        *,
        notifier: NotificationDispatcher,
        now: Optional[datetime] = None,
) -> PrizeAward:
    award = await get_award(db, award_id)
    if award is None:
        raise NotFoundError(f"Prize award {award_id} not found.")
    raise_for_closed(award, now)

    await set_notification_status(db, award_id, NotificationStatus.pending.value, channel="SMS")
    await db.commit()
    award = await get_award(db, award_id)
    notify_award(notifier, award)
    return award


async def get_award_detail(db: AsyncSession, award_id: int, *, now: Optional[datetime] = None) -> PrizeAward:
    """Single-award read; an overdue Awarded row is persisted as Expired on the way out."""
    now = now or utcnow()
    award = await get_award(db, award_id)
    if award is None:
        raise NotFoundError(f"Prize award {award_id} not found.")
    if award.status == AwardStatus.awarded and award.is_overdue(now):
        if await expire_award(db, award, now):
            await db.commit()
        award = await get_award(db, award_id)
    return award


async def awards_for_phone(db: AsyncSession, phone_number: str) -> Sequence[PrizeAward]:
    return await get_awards_by_phone(db, parse_phone(phone_number))


async def search_awards(db: AsyncSession, filters: AwardFilter, page: PageParams) -> tuple[Sequence[PrizeAward], int]:
    if filters.phone_number:
        filters = filters.model_copy(update={"phone_number": parse_phone(filters.phone_number)})
    return await list_awards(db, filters, page)


async def expire_overdue_awards(db: AsyncSession, *, now: Optional[datetime] = None) -> int:
    """Sweeps every overdue Awarded row to Expired, batch by batch. Returns how many moved."""
    now = now or utcnow()
    expired = 0
    while True:
        batch = await get_overdue_awards(db, now)
        if not batch:
            break
        for award in batch:
            if await expire_award(db, award, now):
                expired += 1
        await db.commit()
    if expired:
        log.info("Expired %d overdue award(s)", expired)
    return expired
