"""Common schemas and utilities shared across modules."""

from .schemas import BaseResponse, ErrorResponse, PaginatedResponse, page_offset

__all__ = [
    "BaseResponse",
    "ErrorResponse",
    "PaginatedResponse",
    "page_offset",
]
