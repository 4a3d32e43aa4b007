from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String

from prizedesk.helpers import as_utc, utcnow
from prizedesk.webapp.database import Base


class OtpPurpose(str, Enum):
    redemption = "Redemption"
    registration_verify = "RegistrationVerify"
    login = "Login"
    verification = "Verification"


class Otp(Base):
    __tablename__ = "otps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone_number = Column(String(20), nullable=False)
    code = Column(String(12), nullable=False)
    purpose = Column(String(40), nullable=False)
    related_entity_id = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    attempt_count = Column(Integer, nullable=False, default=0, server_default="0")
    max_attempts = Column(Integer, nullable=False, default=3, server_default="3")

    is_used = Column(Boolean, nullable=False, default=False, server_default="false")
    used_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_otps_phone_purpose_used", "phone_number", "purpose", "is_used"),
    )

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) > as_utc(self.expires_at)

    @property
    def remaining_attempts(self) -> int:
        return max((self.max_attempts or 0) - (self.attempt_count or 0), 0)
