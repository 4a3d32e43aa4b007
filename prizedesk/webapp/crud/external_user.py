from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from prizedesk.helpers import utcnow
from prizedesk.webapp.models import ExternalUser


async def get_user_by_phone(db: AsyncSession, phone_number: str) -> Optional[ExternalUser]:
    res = await db.execute(select(ExternalUser).where(ExternalUser.phone_number == phone_number))
    return res.scalar_one_or_none()


async def get_or_create_user(db: AsyncSession, phone_number: str) -> ExternalUser:
    """Idempotent: concurrent awards to a new phone resolve to the same row."""
    existing = await get_user_by_phone(db, phone_number)
    if existing is not None:
        return existing

    insert = pg_insert if db.bind.dialect.name == "postgresql" else sqlite_insert
    await db.execute(
        insert(ExternalUser)
        .values(phone_number=phone_number, is_active=True, created_at=utcnow())
        .on_conflict_do_nothing(index_elements=["phone_number"])
    )
    return await get_user_by_phone(db, phone_number)
