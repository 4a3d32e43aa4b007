from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from prizedesk.helpers import gen_redemption_reference
from prizedesk.webapp.models import Prize, PrizeAward, PrizeRedemption
from prizedesk.webapp.schemas.common import PageParams
from prizedesk.webapp.schemas.redemption import RedemptionFilter


async def get_redemption_by_award(db: AsyncSession, award_id: int) -> Optional[PrizeRedemption]:
    res = await db.execute(select(PrizeRedemption).where(PrizeRedemption.prize_award_id == award_id))
    return res.unique().scalar_one_or_none()


async def create_redemption(
        db: AsyncSession,
        *,
        award_id: int,
        channel: str,
        redeemed_from_ip: Optional[str] = None,
        notes: Optional[str] = None,
) -> PrizeRedemption:
    """Flushes immediately so a duplicate redemption fails here, as an IntegrityError."""
    obj = PrizeRedemption(
        prize_award_id=award_id,
        channel=channel,
        redeemed_from_ip=redeemed_from_ip,
        notes=notes,
        reference=gen_redemption_reference(),
    )
    db.add(obj)
    await db.flush()
    return obj


async def list_redemptions(
        db: AsyncSession,
        filters: RedemptionFilter,
        page: PageParams,
) -> tuple[Sequence[PrizeRedemption], int]:
    stmt = select(PrizeRedemption).join(PrizeAward, PrizeAward.id == PrizeRedemption.prize_award_id)
    if filters.competition_id is not None:
        stmt = stmt.where(PrizeAward.competition_id == filters.competition_id)
    if filters.phone_number:
        stmt = stmt.where(PrizeAward.phone_number == filters.phone_number)
    if filters.pool_id is not None:
        stmt = stmt.join(Prize, Prize.id == PrizeAward.prize_id).where(Prize.pool_id == filters.pool_id)

    total = await db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
    res = await db.execute(
        stmt.order_by(PrizeRedemption.redeemed_at.desc(), PrizeRedemption.id.desc())
        .offset(page.offset)
        .limit(page.page_size)
    )
    return res.unique().scalars().all(), int(total or 0)
