from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from prizedesk.helpers import to_e164
from prizedesk.webapp.models import OtpPurpose


class SendOtpRequest(BaseModel):
    phone_number: str = Field(..., min_length=1, max_length=32)
    purpose: OtpPurpose = OtpPurpose.verification

    @field_validator("phone_number")
    @classmethod
    def valid_phone(cls, v: str) -> str:
        return to_e164(v)


class SendOtpResult(BaseModel):
    phone_number: str
    purpose: OtpPurpose
    expires_at: datetime


class VerifyOtpRequest(SendOtpRequest):
    code: str = Field(..., min_length=4, max_length=12)

    @field_validator("code")
    @classmethod
    def digits_only(cls, v: str) -> str:
        v = (v or "").strip()
        if not v.isdigit():
            raise ValueError("code must contain digits only")
        return v


class VerifyOtpResult(BaseModel):
    verified: bool
    purpose: OtpPurpose
    related_entity_id: Optional[int] = None
