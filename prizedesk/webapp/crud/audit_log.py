import json
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prizedesk.webapp.models import AuditAction, AuditLog


def add_audit(
        db: AsyncSession,
        *,
        entity_type: str,
        entity_id: Any,
        action: AuditAction,
        subject_id: Optional[str] = None,
        details: Optional[dict] = None,
        ip_address: Optional[str] = None,
) -> AuditLog:
    """Stages an audit row in the caller's transaction; it commits (or not) with the change it records."""
    obj = AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action.value,
        subject_id=subject_id,
        details=json.dumps(details, default=str) if details else None,
        ip_address=ip_address,
    )
    db.add(obj)
    return obj


async def get_audit_trail(db: AsyncSession, entity_type: str, entity_id: Any) -> Sequence[AuditLog]:
    res = await db.execute(
        select(AuditLog)
        .where(AuditLog.entity_type == entity_type)
        .where(AuditLog.entity_id == str(entity_id))
        .order_by(AuditLog.timestamp, AuditLog.id)
    )
    return res.scalars().all()
