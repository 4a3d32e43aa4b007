from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from prizedesk.helpers import utcnow
from prizedesk.webapp.models import SmsMessage, SmsStatus


async def create_sms(
        db: AsyncSession,
        *,
        phone_number: str,
        message: str,
        message_type: str,
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[int] = None,
) -> SmsMessage:
    obj = SmsMessage(
        phone_number=phone_number,
        message=message,
        message_type=message_type,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        status=SmsStatus.pending.value,
    )
    db.add(obj)
    await db.flush()
    return obj


async def mark_sms(
        db: AsyncSession,
        sms_id: int,
        status: SmsStatus,
        *,
        provider_reference: Optional[str] = None,
        failure_reason: Optional[str] = None,
) -> None:
    values = {
        "status": status.value,
        "provider_reference": provider_reference,
        "failure_reason": failure_reason,
    }
    if status == SmsStatus.sent:
        values["sent_at"] = utcnow()
    await db.execute(
        update(SmsMessage)
        .where(SmsMessage.id == sms_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
