"""Transport booking routes for passengers and drivers."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...database import get_db
from ..auth.dependencies import CurrentUser, DriverUser
from ..commons import BaseResponse
from . import services
from .models import TransportStatus
from .schemas import TransportBookingCreate, TransportBookingResponse

router = APIRouter(prefix="/transport-bookings", tags=["Transport"])
driver_router = APIRouter(prefix="/driver/transport-bookings", tags=["Driver Trips"])


# ----- Passenger -----


@router.post(
    "",
    response_model=BaseResponse[TransportBookingResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_transport_booking(
    data: TransportBookingCreate,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    booking = await services.create_transport_booking(db, current_user, data)
    return BaseResponse(
        success=True,
        message="Transport booking created",
        data=TransportBookingResponse.model_validate(booking),
    )


@router.get("/{booking_id}", response_model=BaseResponse[TransportBookingResponse])
async def get_transport_booking(
    booking_id: int,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    booking = await services.get_transport_booking(db, current_user, booking_id)
    return BaseResponse(success=True, data=TransportBookingResponse.model_validate(booking))


@router.post("/{booking_id}/cancel", response_model=BaseResponse[TransportBookingResponse])
async def cancel_transport_booking(
    booking_id: int,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    booking = await services.cancel_transport_booking(db, current_user, booking_id)
    return BaseResponse(
        success=True,
        message="Transport booking canceled",
        data=TransportBookingResponse.model_validate(booking),
    )


# ----- Driver -----


@driver_router.get(
    "/available", response_model=BaseResponse[list[TransportBookingResponse]]
)
async def list_available(
    current_user: DriverUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Trips still waiting for a driver, soonest first."""
    bookings = await services.list_available(db)
    return BaseResponse(
        success=True, data=[TransportBookingResponse.model_validate(b) for b in bookings]
    )


@driver_router.get("/mine", response_model=BaseResponse[list[TransportBookingResponse]])
async def list_mine(
    current_user: DriverUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    status: TransportStatus | None = Query(None),
):
    bookings = await services.list_driver_trips(db, current_user, status)
    return BaseResponse(
        success=True, data=[TransportBookingResponse.model_validate(b) for b in bookings]
    )


@driver_router.post(
    "/{booking_id}/accept", response_model=BaseResponse[TransportBookingResponse]
)
async def accept_trip(
    booking_id: int,
    current_user: DriverUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    booking = await services.accept_trip(db, current_user, booking_id)
    return BaseResponse(
        success=True,
        message="Trip accepted",
        data=TransportBookingResponse.model_validate(booking),
    )


@driver_router.post(
    "/{booking_id}/start", response_model=BaseResponse[TransportBookingResponse]
)
async def start_trip(
    booking_id: int,
    current_user: DriverUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    booking = await services.advance_trip(db, current_user, booking_id, "start")
    return BaseResponse(
        success=True,
        message="Trip started",
        data=TransportBookingResponse.model_validate(booking),
    )


@driver_router.post(
    "/{booking_id}/complete", response_model=BaseResponse[TransportBookingResponse]
)
async def complete_trip(
    booking_id: int,
    current_user: DriverUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    booking = await services.advance_trip(db, current_user, booking_id, "complete")
    return BaseResponse(
        success=True,
        message="Trip completed",
        data=TransportBookingResponse.model_validate(booking),
    )
