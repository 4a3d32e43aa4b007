from enum import Enum

from sqlalchemy import Column, DateTime, Integer, String, Text

from prizedesk.helpers import utcnow
from prizedesk.webapp.database import Base


class SmsMessageType(str, Enum):
    otp = "OTP"
    prize_notification = "PrizeNotification"
    redemption_confirmation = "RedemptionConfirmation"


class SmsStatus(str, Enum):
    pending = "Pending"
    sent = "Sent"
    failed = "Failed"


class SmsMessage(Base):
    __tablename__ = "sms_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone_number = Column(String(20), nullable=False, index=True)
    message = Column(Text, nullable=False)
    message_type = Column(String(40), nullable=False)

    related_entity_type = Column(String(40), nullable=True)
    related_entity_id = Column(Integer, nullable=True)

    status = Column(String(20), nullable=False, default=SmsStatus.pending.value)
    provider_reference = Column(String(100), nullable=True)
    failure_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    sent_at = Column(DateTime(timezone=True), nullable=True)
