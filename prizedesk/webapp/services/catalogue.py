from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from prizedesk.helpers import as_utc
from prizedesk.webapp.crud import (
    add_audit,
    adjust_total,
    create_competition,
    create_pool,
    create_prize,
    get_competition,
    get_competitions,
    get_pool,
    get_pools,
    get_prize,
    get_prizes,
)
from prizedesk.webapp.exceptions import NotFoundError, ValidationError
from prizedesk.webapp.models import AuditAction, Competition, Prize, PrizePool
from prizedesk.webapp.schemas import CompetitionCreate, PrizeCreate, PrizePoolCreate, PrizeUpdate

log = logging.getLogger("catalogue")

NULLABLE_PRIZE_FIELDS = {"description", "monetary_value", "image_url", "expiry_date"}


async def add_competition(db: AsyncSession, data: CompetitionCreate, *, subject_id: Optional[str] = None) -> Competition:
    obj = await create_competition(db, data)
    add_audit(db, entity_type="Competition", entity_id=obj.id, action=AuditAction.create, subject_id=subject_id)
    await db.commit()
    return obj


async def list_competitions(db: AsyncSession, active_only: bool = False) -> Sequence[Competition]:
    return await get_competitions(db, active_only=active_only)


async def add_pool(db: AsyncSession, data: PrizePoolCreate, *, subject_id: Optional[str] = None) -> PrizePool:
    if data.competition_id is not None and await get_competition(db, data.competition_id) is None:
        raise NotFoundError(f"Competition {data.competition_id} not found.")
    obj = await create_pool(db, data)
    add_audit(db, entity_type="PrizePool", entity_id=obj.id, action=AuditAction.create, subject_id=subject_id)
    await db.commit()
    return await get_pool(db, obj.id)


async def pool_detail(db: AsyncSession, pool_id: int) -> PrizePool:
    pool = await get_pool(db, pool_id)
    if pool is None:
        raise NotFoundError(f"Prize pool {pool_id} not found.")
    return pool


async def list_pools(db: AsyncSession, competition_id: Optional[int] = None) -> Sequence[PrizePool]:
    return await get_pools(db, competition_id=competition_id)


async def add_prize(db: AsyncSession, data: PrizeCreate, *, subject_id: Optional[str] = None) -> Prize:
    if await get_pool(db, data.pool_id) is None:
        raise NotFoundError(f"Prize pool {data.pool_id} not found.")
    obj = await create_prize(db, data)
    add_audit(
        db,
        entity_type="Prize",
        entity_id=obj.id,
        action=AuditAction.create,
        subject_id=subject_id,
        details={"total_quantity": data.total_quantity},
    )
    await db.commit()
    log.info("Prize %s created in pool %s with %d unit(s)", obj.id, data.pool_id, data.total_quantity)
    return await get_prize(db, obj.id)


async def prize_detail(db: AsyncSession, prize_id: int) -> Prize:
    prize = await get_prize(db, prize_id)
    if prize is None:
        raise NotFoundError(f"Prize {prize_id} not found.")
    return prize


async def list_prizes(db: AsyncSession, pool_id: Optional[int] = None, active_only: bool = False) -> Sequence[Prize]:
    return await get_prizes(db, pool_id=pool_id, active_only=active_only)


async def update_prize(
        db: AsyncSession,
        prize_id: int,
        data: PrizeUpdate,
        *,
        subject_id: Optional[str] = None,
) -> Prize:
    """
    Plain fields are patched; a new total_quantity moves remaining by the same
    delta, so the ledger stays balanced and awarded units are never clawed back.
    """
    prize = await prize_detail(db, prize_id)
    patch = {
        k: v for k, v in data.model_dump(exclude_unset=True).items()
        if v is not None or k in NULLABLE_PRIZE_FIELDS
    }
    new_total = patch.pop("total_quantity", None)
    before = {k: v for k, v in prize.to_dict().items() if k in patch or (k == "total_quantity" and new_total is not None)}

    if "expiry_date" in patch:
        patch["expiry_date"] = as_utc(patch["expiry_date"])
    for k, v in patch.items():
        setattr(prize, k, v)
    await db.flush()

    if new_total is not None and new_total != prize.total_quantity:
        delta = new_total - prize.total_quantity
        if not await adjust_total(db, prize_id, delta):
            await db.rollback()
            raise ValidationError(
                "Total quantity cannot drop below the units already awarded.",
                code="INVALID_QUANTITY",
                errors={"total_quantity": new_total},
            )
        patch["total_quantity"] = new_total

    add_audit(
        db,
        entity_type="Prize",
        entity_id=prize_id,
        action=AuditAction.update,
        subject_id=subject_id,
        details={"before": before, "after": patch},
    )
    await db.commit()
    return await get_prize(db, prize_id)
