"""Booking API routes for customers and property owners."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...database import get_db
from ..auth.dependencies import CustomerUser, OwnerUser
from ..commons import BaseResponse, PaginatedResponse, page_offset
from . import services
from .models import BookingStatus
from .schemas import (
    BookingCreate,
    BookingCreatedResponse,
    BookingDetailResponse,
    BookingResponse,
    CodeRequest,
    CodeValidationResponse,
)

customer_router = APIRouter(prefix="/customer/bookings", tags=["Bookings"])
owner_router = APIRouter(prefix="/owner/bookings", tags=["Owner Bookings"])


# ----- Customer -----


@customer_router.post(
    "",
    response_model=BaseResponse[BookingCreatedResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    data: BookingCreate,
    current_user: CustomerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Book a stay. The check-in code is returned only in this response."""
    created = await services.create_booking(db, current_user, data)
    return BaseResponse(success=True, message="Booking confirmed", data=created)


@customer_router.get(
    "", response_model=BaseResponse[PaginatedResponse[BookingResponse]]
)
async def list_bookings(
    current_user: CustomerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    status: BookingStatus | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    bookings, total = await services.list_customer_bookings(
        db, current_user, status, page_offset(page, page_size), page_size
    )
    return BaseResponse(
        success=True,
        data=PaginatedResponse.from_items(
            items=[BookingResponse.model_validate(b) for b in bookings],
            total=total,
            page=page,
            page_size=page_size,
        ),
    )


@customer_router.get("/{booking_id}", response_model=BaseResponse[BookingDetailResponse])
async def get_booking(
    booking_id: int,
    current_user: CustomerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    detail = await services.get_customer_booking(db, current_user, booking_id)
    return BaseResponse(success=True, data=detail)


# ----- Owner -----


@owner_router.post("/validate", response_model=BaseResponse[CodeValidationResponse])
async def validate_code(
    data: CodeRequest,
    current_user: OwnerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Preview a guest's booking code without checking them in."""
    preview = await services.preview_code(db, current_user, data.code)
    return BaseResponse(success=True, data=preview)


@owner_router.post("/confirm-checkin", response_model=BaseResponse[BookingResponse])
async def confirm_checkin(
    data: CodeRequest,
    current_user: OwnerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    booking = await services.confirm_checkin(db, current_user, data.code)
    return BaseResponse(
        success=True,
        message="Guest checked in",
        data=BookingResponse.model_validate(booking),
    )


@owner_router.get("/checked-in", response_model=BaseResponse[list[BookingResponse]])
async def list_checked_in(
    current_user: OwnerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    bookings = await services.list_checked_in(db, current_user)
    return BaseResponse(
        success=True, data=[BookingResponse.model_validate(b) for b in bookings]
    )


@owner_router.post("/{booking_id}/checkout", response_model=BaseResponse[BookingResponse])
async def checkout(
    booking_id: int,
    current_user: OwnerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    booking = await services.checkout_booking(db, current_user, booking_id)
    return BaseResponse(
        success=True,
        message="Guest checked out",
        data=BookingResponse.model_validate(booking),
    )
