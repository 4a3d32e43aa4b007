from __future__ import annotations

from math import ceil
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field, computed_field

T = TypeVar("T")

MAX_PAGE_SIZE = 100


class ApiError(BaseModel):
    message: str
    code: Optional[str] = None
    errors: Optional[dict[str, Any]] = None


class ApiResponse(BaseModel, Generic[T]):
    """Uniform envelope: {success, data?, message?, error?}."""
    success: bool
    data: Optional[T] = None
    message: Optional[str] = None
    error: Optional[ApiError] = None

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> "ApiResponse":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, message: str, code: Optional[str] = None, errors: Optional[dict[str, Any]] = None) -> "ApiResponse":
        return cls(success=False, error=ApiError(message=message, code=code, errors=errors))


class PageParams(BaseModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=25, ge=1, le=MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PagedResponse(BaseModel, Generic[T]):
    items: list[T] = Field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 25

    @computed_field
    @property
    def total_pages(self) -> int:
        return ceil(self.total_count / self.page_size) if self.page_size else 0

    @computed_field
    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages
