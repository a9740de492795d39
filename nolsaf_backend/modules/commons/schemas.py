"""Response envelopes shared by every router."""

from datetime import datetime
from typing import Any, Generic, TypeVar

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from ...core.utils import utc_now

T = TypeVar("T")


class BaseResponse(BaseModel, Generic[T]):
    """Success envelope: ``{success, message, data, error, timestamp}``."""

    success: bool = Field(
        default=True, description="Whether the request was successful"
    )
    message: str | None = Field(default=None, description="Response message")
    data: T | None = Field(default=None, description="Response data")
    error: Any | None = Field(default=None, description="Error details if any")
    timestamp: datetime = Field(
        default_factory=utc_now, description="Response timestamp (UTC)"
    )


class ErrorResponse(BaseModel):
    """Failure envelope written by the global exception handlers.

    ``data`` carries machine-readable context such as ``{"code": "already_paid"}``
    or an eligibility breakdown; ``details`` is only present when the error
    has any.
    """

    success: bool = False
    message: str
    error: str
    data: Any | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def body(
        cls, message: str, data: Any = None, details: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        body = cls(
            message=message,
            error=message,
            data=jsonable_encoder(data),
            details=jsonable_encoder(details) if details else None,
        ).model_dump(mode="json")
        if body["details"] is None:
            del body["details"]
        return body


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of a listing."""

    items: list[T] = Field(default_factory=list, description="List of items")
    total: int = Field(default=0, description="Total number of items")
    page: int = Field(default=1, description="Current page number")
    page_size: int = Field(default=20, description="Items per page")
    total_pages: int = Field(default=0, description="Total number of pages")

    @classmethod
    def from_items(cls, items: list[T], total: int, page: int, page_size: int):
        total_pages = (total + page_size - 1) // page_size if page_size > 0 else 0
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
        )


def page_offset(page: int, page_size: int) -> int:
    """Database offset for a 1-based page number."""
    return (page - 1) * page_size
