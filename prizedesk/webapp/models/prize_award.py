from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, Enum as SAEnum, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import relationship

from prizedesk.helpers import as_utc, utcnow
from prizedesk.webapp.database import Base


class AwardStatus(str, Enum):
    awarded = "Awarded"
    redeemed = "Redeemed"
    expired = "Expired"
    cancelled = "Cancelled"


class AwardMethod(str, Enum):
    manual = "Manual"
    bulk = "Bulk"


class NotificationStatus(str, Enum):
    not_required = "NotRequired"
    pending = "Pending"
    sent = "Sent"
    failed = "Failed"


class PrizeAward(Base):
    __tablename__ = "prize_awards"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # awards are an append-only audit trail: parents can never be deleted from under them
    prize_id = Column(Integer, ForeignKey("prizes.id", ondelete="RESTRICT"), nullable=False, index=True)
    competition_id = Column(Integer, ForeignKey("competitions.id", ondelete="RESTRICT"), nullable=True, index=True)
    external_user_id = Column(Integer, ForeignKey("external_users.id", ondelete="RESTRICT"), nullable=True, index=True)

    phone_number = Column(String(20), nullable=False, index=True)

    status = Column(
        SAEnum(AwardStatus, name="award_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=AwardStatus.awarded,
        index=True,
    )
    awarded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    expiry_date = Column(DateTime(timezone=True), nullable=True)

    award_method = Column(String(20), nullable=False, default=AwardMethod.manual.value)
    awarded_by = Column(String(200), nullable=True)

    notification_channel = Column(String(20), nullable=True)
    notification_status = Column(String(20), nullable=False, default=NotificationStatus.not_required.value)
    external_reference = Column(String(200), nullable=True)

    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancel_reason = Column(Text, nullable=True)

    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)

    prize = relationship("Prize", lazy="joined")
    competition = relationship("Competition", lazy="joined")
    redemption = relationship(
        "PrizeRedemption",
        back_populates="award",
        uselist=False,
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_prize_awards_phone_status", "phone_number", "status"),
    )

    def is_overdue(self, now: datetime | None = None) -> bool:
        expiry = as_utc(self.expiry_date)
        return expiry is not None and (now or utcnow()) > expiry

    def effective_status(self, now: datetime | None = None) -> AwardStatus:
        """Status as seen by a reader: an overdue Awarded row reads as Expired."""
        if self.status == AwardStatus.awarded and self.is_overdue(now):
            return AwardStatus.expired
        return AwardStatus(self.status)

    @property
    def current_status(self) -> AwardStatus:
        return self.effective_status()

    @property
    def is_redeemable(self) -> bool:
        return self.effective_status() == AwardStatus.awarded
