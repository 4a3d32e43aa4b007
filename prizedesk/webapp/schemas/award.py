from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from prizedesk.helpers import to_e164
from prizedesk.webapp.models import AwardStatus
from .redemption import PrizeRedemptionRead

MAX_BULK_SIZE = 1000


class AwardPrizeRequest(BaseModel):
    prize_id: int
    phone_number: str = Field(..., min_length=1, max_length=32)
    competition_id: Optional[int] = None
    expiry_days: Optional[int] = Field(default=None, ge=1, le=3650)
    send_notification: bool = True
    external_reference: Optional[str] = Field(default=None, max_length=200)

    @field_validator("phone_number")
    @classmethod
    def valid_phone(cls, v: str) -> str:
        return to_e164(v)


class BulkAwardRequest(BaseModel):
    # numbers stay raw here: an invalid one fails its own item, not the batch
    pool_id: int
    phone_numbers: list[str] = Field(..., min_length=1, max_length=MAX_BULK_SIZE)
    competition_id: Optional[int] = None
    expiry_days: Optional[int] = Field(default=None, ge=1, le=3650)
    send_notification: bool = True


class BulkAwardItemResult(BaseModel):
    phone_number: str
    success: bool
    prize_award_id: Optional[int] = None
    prize_id: Optional[int] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class BulkAwardResult(BaseModel):
    total_requested: int
    successful: int
    failed: int
    results: list[BulkAwardItemResult] = Field(default_factory=list)


class CancelAwardRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)

    @field_validator("reason")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v


class PrizeRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    monetary_value: Optional[Decimal] = None
    image_url: Optional[str] = None


class PrizeAwardRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    prize_id: int
    prize: Optional[PrizeRef] = None
    competition_id: Optional[int] = None
    external_user_id: Optional[int] = None
    phone_number: str

    status: AwardStatus
    current_status: AwardStatus
    is_redeemable: bool
    awarded_at: datetime
    expiry_date: Optional[datetime] = None

    award_method: str
    awarded_by: Optional[str] = None
    notification_channel: Optional[str] = None
    notification_status: str
    external_reference: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None


class PrizeAwardDetail(PrizeAwardRead):
    redemption: Optional[PrizeRedemptionRead] = None


class AwardFilter(BaseModel):
    status: Optional[AwardStatus] = None
    prize_id: Optional[int] = None
    pool_id: Optional[int] = None
    competition_id: Optional[int] = None
    phone_number: Optional[str] = None
