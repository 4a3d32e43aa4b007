from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prizedesk.webapp.models import PrizePool
from prizedesk.webapp.schemas.catalogue import PrizePoolCreate


async def get_pool(db: AsyncSession, pool_id: int) -> Optional[PrizePool]:
    res = await db.execute(
        select(PrizePool)
        .where(PrizePool.id == pool_id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def get_pools(db: AsyncSession, competition_id: Optional[int] = None) -> Sequence[PrizePool]:
    stmt = select(PrizePool)
    if competition_id is not None:
        stmt = stmt.where(PrizePool.competition_id == competition_id)
    res = await db.execute(stmt.order_by(PrizePool.id.desc()).execution_options(populate_existing=True))
    return res.scalars().all()


async def create_pool(db: AsyncSession, data: PrizePoolCreate) -> PrizePool:
    obj = PrizePool(**data.model_dump())
    db.add(obj)
    await db.flush()
    return obj
