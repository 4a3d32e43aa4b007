from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from prizedesk.helpers import utcnow
from prizedesk.webapp.models import Otp


async def supersede_unused(db: AsyncSession, phone_number: str, purpose: str, now: Optional[datetime] = None) -> int:
    """Retires every live code for (phone, purpose) so only the next one is current."""
    res = await db.execute(
        update(Otp)
        .where(Otp.phone_number == phone_number)
        .where(Otp.purpose == purpose)
        .where(Otp.is_used.is_(False))
        .values(is_used=True, used_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    return res.rowcount or 0


async def create_otp(
        db: AsyncSession,
        *,
        phone_number: str,
        purpose: str,
        code: str,
        ttl: timedelta,
        max_attempts: int,
        related_entity_id: Optional[int] = None,
        now: Optional[datetime] = None,
) -> Otp:
    now = now or utcnow()
    otp = Otp(
        phone_number=phone_number,
        purpose=purpose,
        code=code,
        related_entity_id=related_entity_id,
        created_at=now,
        expires_at=now + ttl,
        attempt_count=0,
        max_attempts=max_attempts,
        is_used=False,
    )
    db.add(otp)
    await db.flush()
    return otp


async def get_latest_unused(db: AsyncSession, phone_number: str, purpose: str) -> Optional[Otp]:
    res = await db.execute(
        select(Otp)
        .where(Otp.phone_number == phone_number)
        .where(Otp.purpose == purpose)
        .where(Otp.is_used.is_(False))
        .order_by(Otp.created_at.desc(), Otp.id.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return res.scalars().first()


# ---- guarded writes: the WHERE clause is the lock ----
async def register_failed_attempt(db: AsyncSession, otp_id: int) -> Optional[int]:
    """
    Compare-and-increment of attempt_count. Returns the new count, or None when
    the code was already locked out or consumed by a concurrent request.
    """
    res = await db.execute(
        update(Otp)
        .where(Otp.id == otp_id)
        .where(Otp.is_used.is_(False))
        .where(Otp.attempt_count < Otp.max_attempts)
        .values(attempt_count=Otp.attempt_count + 1)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        return None
    return await db.scalar(select(Otp.attempt_count).where(Otp.id == otp_id))


async def consume(db: AsyncSession, otp_id: int, now: Optional[datetime] = None) -> bool:
    res = await db.execute(
        update(Otp)
        .where(Otp.id == otp_id)
        .where(Otp.is_used.is_(False))
        .where(Otp.attempt_count < Otp.max_attempts)
        .values(is_used=True, used_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1
