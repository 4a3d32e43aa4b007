from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CompetitionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="after")
    def check_window(self) -> "CompetitionCreate":
        if self.starts_at and self.ends_at and self.ends_at < self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        return self


class CompetitionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime


class PrizePoolCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    competition_id: Optional[int] = None
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v


class PrizeCreate(BaseModel):
    pool_id: int
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    monetary_value: Optional[Decimal] = Field(default=None, ge=0)
    image_url: Optional[str] = Field(default=None, max_length=500)
    expiry_date: Optional[datetime] = None
    total_quantity: int = Field(..., ge=0)
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v


class PrizeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    monetary_value: Optional[Decimal] = Field(default=None, ge=0)
    image_url: Optional[str] = Field(default=None, max_length=500)
    expiry_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    # remaining_quantity moves by the same delta; rejected if that would go below zero
    total_quantity: Optional[int] = Field(default=None, ge=0)


class PrizeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    pool_id: int
    name: str
    description: Optional[str] = None
    monetary_value: Optional[Decimal] = None
    image_url: Optional[str] = None
    expiry_date: Optional[datetime] = None
    is_active: bool

    total_quantity: int
    remaining_quantity: int
    awarded_quantity: int
    redeemed_quantity: int
    cancelled_quantity: int
    expired_quantity: int
    outstanding_quantity: int

    created_at: datetime


class PrizePoolRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    competition_id: Optional[int] = None
    is_active: bool
    created_at: datetime
    prizes: list[PrizeRead] = Field(default_factory=list)
