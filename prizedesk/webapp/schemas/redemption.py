from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from prizedesk.helpers import to_e164
from prizedesk.webapp.models import RedemptionChannel


class _PhoneIn(BaseModel):
    phone_number: str = Field(..., min_length=1, max_length=32)

    @field_validator("phone_number")
    @classmethod
    def valid_phone(cls, v: str) -> str:
        return to_e164(v)


class RequestRedemptionRequest(_PhoneIn):
    prize_award_id: Optional[int] = None


class ResendOtpRequest(_PhoneIn):
    pass


class RedeemablePrize(BaseModel):
    prize_award_id: int
    prize_id: int
    prize_name: str
    prize_description: Optional[str] = None
    monetary_value: Optional[Decimal] = None
    image_url: Optional[str] = None
    awarded_at: datetime
    expiry_date: Optional[datetime] = None
    competition_name: Optional[str] = None


class RequestRedemptionResult(BaseModel):
    phone_number: str
    otp_sent: bool
    otp_expires_at: Optional[datetime] = None
    awards: list[RedeemablePrize] = Field(default_factory=list)


class CompleteRedemptionRequest(_PhoneIn):
    prize_award_id: int
    otp_code: str = Field(..., min_length=4, max_length=12)
    channel: RedemptionChannel = RedemptionChannel.web_portal
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("otp_code")
    @classmethod
    def digits_only(cls, v: str) -> str:
        v = (v or "").strip()
        if not v.isdigit():
            raise ValueError("otp_code must contain digits only")
        return v


class RedemptionConfirmation(BaseModel):
    redemption_id: int
    prize_award_id: int
    prize_name: str
    monetary_value: Optional[Decimal] = None
    redeemed_at: datetime
    reference: str
    channel: str


class PrizeRedemptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    prize_award_id: int
    redeemed_at: datetime
    channel: str
    redeemed_from_ip: Optional[str] = None
    notes: Optional[str] = None
    reference: str


class RedemptionFilter(BaseModel):
    competition_id: Optional[int] = None
    pool_id: Optional[int] = None
    phone_number: Optional[str] = None
