from enum import Enum

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from prizedesk.helpers import utcnow
from prizedesk.webapp.database import Base


class AuditAction(str, Enum):
    create = "Create"
    update = "Update"
    award = "Award"
    bulk_award = "BulkAward"
    cancel = "Cancel"
    redeem = "Redeem"
    expire = "Expire"
    verify_otp = "VerifyOtp"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(40), nullable=False)
    entity_id = Column(String(40), nullable=False)
    action = Column(String(20), nullable=False)
    subject_id = Column(String(200), nullable=True)
    details = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )
