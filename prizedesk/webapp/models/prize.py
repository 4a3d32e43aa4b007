from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from prizedesk.helpers import as_utc, utcnow
from prizedesk.webapp.database import Base


class Prize(Base):
    __tablename__ = "prizes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pool_id = Column(
        Integer,
        ForeignKey("prize_pools.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    monetary_value = Column(Numeric(12, 2), nullable=True)
    image_url = Column(String(500), nullable=True)

    # awards issued without expiry_days inherit this date
    expiry_date = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true", index=True)

    # inventory ledger, authoritative; only changed by conditional UPDATEs in crud.prize
    total_quantity = Column(Integer, nullable=False, default=0, server_default="0")
    remaining_quantity = Column(Integer, nullable=False, default=0, server_default="0")
    awarded_quantity = Column(Integer, nullable=False, default=0, server_default="0")
    redeemed_quantity = Column(Integer, nullable=False, default=0, server_default="0")
    cancelled_quantity = Column(Integer, nullable=False, default=0, server_default="0")
    expired_quantity = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)

    pool = relationship("PrizePool", back_populates="prizes")

    __table_args__ = (
        CheckConstraint("total_quantity >= 0", name="total_nonneg"),
        CheckConstraint("remaining_quantity >= 0", name="remaining_nonneg"),
        CheckConstraint("awarded_quantity >= 0", name="awarded_nonneg"),
        CheckConstraint("redeemed_quantity >= 0", name="redeemed_nonneg"),
        CheckConstraint("cancelled_quantity >= 0", name="cancelled_nonneg"),
        CheckConstraint("expired_quantity >= 0", name="expired_nonneg"),
        CheckConstraint("remaining_quantity + awarded_quantity = total_quantity", name="ledger_balanced"),
        Index("ix_prizes_pool_available", "pool_id", "is_active", "remaining_quantity"),
    )

    @property
    def outstanding_quantity(self) -> int:
        return (
            (self.awarded_quantity or 0)
            - (self.redeemed_quantity or 0)
            - (self.cancelled_quantity or 0)
            - (self.expired_quantity or 0)
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        expiry = as_utc(self.expiry_date)
        return expiry is not None and (now or utcnow()) > expiry
