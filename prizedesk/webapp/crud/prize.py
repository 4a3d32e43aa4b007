from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from prizedesk.helpers import as_utc, utcnow
from prizedesk.webapp.models import Prize
from prizedesk.webapp.schemas.catalogue import PrizeCreate

# counters the lifecycle moves after an award exists; remaining/awarded only move together
LEDGER_COUNTERS = ("redeemed_quantity", "cancelled_quantity", "expired_quantity")


async def get_prize(db: AsyncSession, prize_id: int) -> Optional[Prize]:
    # counters change through bulk UPDATEs, so always overwrite whatever the session holds
    res = await db.execute(
        select(Prize)
        .where(Prize.id == prize_id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def get_prizes(
        db: AsyncSession,
        pool_id: Optional[int] = None,
        active_only: bool = False,
) -> Sequence[Prize]:
    stmt = select(Prize)
    if pool_id is not None:
        stmt = stmt.where(Prize.pool_id == pool_id)
    if active_only:
        stmt = stmt.where(Prize.is_active.is_(True))
    res = await db.execute(stmt.order_by(Prize.id).execution_options(populate_existing=True))
    return res.scalars().all()


async def create_prize(db: AsyncSession, data: PrizeCreate) -> Prize:
    payload = data.model_dump()
    payload["expiry_date"] = as_utc(payload["expiry_date"])
    obj = Prize(
        **payload,
        remaining_quantity=data.total_quantity,
        awarded_quantity=0,
        redeemed_quantity=0,
        cancelled_quantity=0,
        expired_quantity=0,
    )
    db.add(obj)
    await db.flush()
    return obj


async def next_available_prize(
        db: AsyncSession,
        pool_id: int,
        *,
        exclude_ids: Iterable[int] = (),
        now: Optional[datetime] = None,
) -> Optional[Prize]:
    """Lowest-id prize in the pool that is active, in stock and not past its expiry date."""
    now = now or utcnow()
    stmt = (
        select(Prize)
        .where(Prize.pool_id == pool_id)
        .where(Prize.is_active.is_(True))
        .where(Prize.remaining_quantity > 0)
        .where(or_(Prize.expiry_date.is_(None), Prize.expiry_date > now))
    )
    exclude = list(exclude_ids)
    if exclude:
        stmt = stmt.where(Prize.id.not_in(exclude))
    res = await db.execute(stmt.order_by(Prize.id).limit(1))
    return res.scalars().first()


# ---- conditional ledger updates (safe under concurrency) ----
async def take_one(db: AsyncSession, prize_id: int) -> bool:
    """
    Atomically moves one unit from remaining to awarded.
    The guard lives in the WHERE clause; False means there was nothing left to take
    (or the prize was deactivated), whatever the caller read earlier.
    """
    res = await db.execute(
        update(Prize)
        .where(Prize.id == prize_id)
        .where(Prize.remaining_quantity > 0)
        .where(Prize.is_active.is_(True))
        .values(
            remaining_quantity=Prize.remaining_quantity - 1,
            awarded_quantity=Prize.awarded_quantity + 1,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def bump_counter(db: AsyncSession, prize_id: int, counter: str, delta: int = 1) -> None:
    if counter not in LEDGER_COUNTERS:
        raise ValueError(f"Unknown ledger counter: {counter}")
    column = getattr(Prize, counter)
    await db.execute(
        update(Prize)
        .where(Prize.id == prize_id)
        .values({counter: column + delta, "updated_at": utcnow()})
        .execution_options(synchronize_session=False)
    )


async def adjust_total(db: AsyncSession, prize_id: int, delta: int) -> bool:
    """Changes total and remaining by the same delta; refuses to push remaining below zero."""
    res = await db.execute(
        update(Prize)
        .where(Prize.id == prize_id)
        .where(Prize.remaining_quantity + delta >= 0)
        .values(
            total_quantity=Prize.total_quantity + delta,
            remaining_quantity=Prize.remaining_quantity + delta,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1
