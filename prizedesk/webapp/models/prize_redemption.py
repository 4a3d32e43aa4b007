from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from prizedesk.helpers import utcnow
from prizedesk.webapp.database import Base


class RedemptionChannel(str, Enum):
    web_portal = "WebPortal"
    kiosk = "Kiosk"
    api = "API"
    pos = "POS"


class PrizeRedemption(Base):
    __tablename__ = "prize_redemptions"

    id = Column(Integer, primary_key=True, autoincrement=True)

    prize_award_id = Column(
        Integer,
        ForeignKey("prize_awards.id", ondelete="RESTRICT"),
        nullable=False,
    )

    redeemed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    channel = Column(String(20), nullable=False, default=RedemptionChannel.web_portal.value)
    redeemed_from_ip = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)
    reference = Column(String(20), nullable=False, unique=True)

    award = relationship("PrizeAward", back_populates="redemption", lazy="joined")

    __table_args__ = (
        # one award, one redemption: the last line of defence against double redemption
        UniqueConstraint("prize_award_id", name="uq_prize_redemptions_prize_award_id"),
    )
