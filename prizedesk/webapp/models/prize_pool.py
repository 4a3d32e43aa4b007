from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from prizedesk.helpers import utcnow
from prizedesk.webapp.database import Base


class PrizePool(Base):
    __tablename__ = "prize_pools"

    id = Column(Integer, primary_key=True, autoincrement=True)
    competition_id = Column(
        Integer,
        ForeignKey("competitions.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    competition = relationship("Competition", back_populates="prize_pools")
    prizes = relationship(
        "Prize",
        back_populates="pool",
        lazy="selectin",
        order_by="Prize.id",
    )
