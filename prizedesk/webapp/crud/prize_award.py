from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from prizedesk.helpers import utcnow
from prizedesk.webapp.models import AwardStatus, Prize, PrizeAward
from prizedesk.webapp.schemas.award import AwardFilter
from prizedesk.webapp.schemas.common import PageParams


async def get_award(db: AsyncSession, award_id: int) -> Optional[PrizeAward]:
    res = await db.execute(
        select(PrizeAward)
        .where(PrizeAward.id == award_id)
        .execution_options(populate_existing=True)
    )
    return res.unique().scalar_one_or_none()


async def get_awards_by_phone(db: AsyncSession, phone_number: str) -> Sequence[PrizeAward]:
    res = await db.execute(
        select(PrizeAward)
        .where(PrizeAward.phone_number == phone_number)
        .order_by(PrizeAward.awarded_at.desc(), PrizeAward.id.desc())
        .execution_options(populate_existing=True)
    )
    return res.unique().scalars().all()


async def get_redeemable_awards(
        db: AsyncSession,
        phone_number: str,
        *,
        award_id: Optional[int] = None,
        now: Optional[datetime] = None,
) -> Sequence[PrizeAward]:
    """Awarded and not past expiry, oldest first."""
    now = now or utcnow()
    stmt = (
        select(PrizeAward)
        .where(PrizeAward.phone_number == phone_number)
        .where(PrizeAward.status == AwardStatus.awarded)
        .where(or_(PrizeAward.expiry_date.is_(None), PrizeAward.expiry_date > now))
    )
    if award_id is not None:
        stmt = stmt.where(PrizeAward.id == award_id)
    res = await db.execute(stmt.order_by(PrizeAward.awarded_at, PrizeAward.id))
    return res.unique().scalars().all()


async def list_awards(
        db: AsyncSession,
        filters: AwardFilter,
        page: PageParams,
) -> tuple[Sequence[PrizeAward], int]:
    stmt = select(PrizeAward)
    if filters.status is not None:
        stmt = stmt.where(PrizeAward.status == filters.status)
    if filters.prize_id is not None:
        stmt = stmt.where(PrizeAward.prize_id == filters.prize_id)
    if filters.competition_id is not None:
        stmt = stmt.where(PrizeAward.competition_id == filters.competition_id)
    if filters.phone_number:
        stmt = stmt.where(PrizeAward.phone_number == filters.phone_number)
    if filters.pool_id is not None:
        stmt = stmt.where(
            PrizeAward.prize_id.in_(select(Prize.id).where(Prize.pool_id == filters.pool_id))
        )

    total = await db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
    res = await db.execute(
        stmt.order_by(PrizeAward.awarded_at.desc(), PrizeAward.id.desc())
        .offset(page.offset)
        .limit(page.page_size)
    )
    return res.unique().scalars().all(), int(total or 0)


async def create_award(db: AsyncSession, **fields: Any) -> PrizeAward:
    award = PrizeAward(status=AwardStatus.awarded, **fields)
    db.add(award)
    await db.flush()
    return award


async def transition_status(
        db: AsyncSession,
        award_id: int,
        *,
        from_status: AwardStatus,
        to_status: AwardStatus,
        **values: Any,
) -> bool:
    """
    Compare-and-set on the award status. Returns False when another writer
    moved the award first.
    """
    res = await db.execute(
        update(PrizeAward)
        .where(PrizeAward.id == award_id)
        .where(PrizeAward.status == from_status)
        .values(status=to_status, updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def get_overdue_awards(db: AsyncSession, now: Optional[datetime] = None, limit: int = 500) -> Sequence[PrizeAward]:
    now = now or utcnow()
    res = await db.execute(
        select(PrizeAward)
        .where(PrizeAward.status == AwardStatus.awarded)
        .where(PrizeAward.expiry_date.is_not(None))
        .where(PrizeAward.expiry_date <= now)
        .order_by(PrizeAward.id)
        .limit(limit)
    )
    return res.unique().scalars().all()


async def set_notification_status(
        db: AsyncSession,
        award_id: int,
        status: str,
        channel: Optional[str] = None,
) -> None:
    values: dict[str, Any] = {"notification_status": status, "updated_at": utcnow()}
    if channel:
        values["notification_channel"] = channel
    await db.execute(
        update(PrizeAward)
        .where(PrizeAward.id == award_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
