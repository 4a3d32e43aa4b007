from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prizedesk.helpers import as_utc
from prizedesk.webapp.models import Competition
from prizedesk.webapp.schemas.catalogue import CompetitionCreate


async def get_competition(db: AsyncSession, competition_id: int) -> Optional[Competition]:
    res = await db.execute(select(Competition).where(Competition.id == competition_id))
    return res.scalar_one_or_none()


async def get_competitions(db: AsyncSession, active_only: bool = False) -> Sequence[Competition]:
    stmt = select(Competition)
    if active_only:
        stmt = stmt.where(Competition.is_active.is_(True))
    res = await db.execute(stmt.order_by(Competition.id.desc()))
    return res.scalars().all()


async def create_competition(db: AsyncSession, data: CompetitionCreate) -> Competition:
    payload = data.model_dump()
    payload["starts_at"] = as_utc(payload["starts_at"])
    payload["ends_at"] = as_utc(payload["ends_at"])
    obj = Competition(**payload)
    db.add(obj)
    await db.flush()
    return obj
