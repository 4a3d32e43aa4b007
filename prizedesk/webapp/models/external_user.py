from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from prizedesk.helpers import utcnow
from prizedesk.webapp.database import Base


class ExternalUser(Base):
    """A prize recipient, identified by phone number."""
    __tablename__ = "external_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone_number = Column(String(20), unique=True, nullable=False, index=True)

    first_name = Column(String(100), nullable=True, default=None)
    last_name = Column(String(100), nullable=True, default=None)
    email = Column(String(255), nullable=True, default=None)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)
