"""Cancellation API routes for customers and admins."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...database import get_db
from ..auth.dependencies import AdminUser, CurrentUser
from ..commons import BaseResponse, PaginatedResponse, page_offset
from . import services
from .models import CancellationStatus
from .schemas import (
    AdminCancellationDetailResponse,
    AdminMessageCreate,
    AdminMessageResponse,
    CancellationDetailResponse,
    CancellationLookupResponse,
    CancellationMessageResponse,
    CancellationRequestCreate,
    CancellationRequestResponse,
    CancellationStatusUpdate,
    CancellationSubmittedResponse,
    MessageCreate,
)

customer_router = APIRouter(prefix="/customer/cancellations", tags=["Cancellations"])
admin_router = APIRouter(prefix="/admin/cancellations", tags=["Admin Cancellations"])


# ----- Customer -----


@customer_router.get("/lookup", response_model=BaseResponse[CancellationLookupResponse])
async def lookup(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    code: str = Query(..., max_length=32),
):
    """Check a booking code before asking to cancel."""
    result = await services.lookup(db, current_user, code)
    return BaseResponse(success=True, data=result)


@customer_router.post(
    "/request",
    response_model=BaseResponse[CancellationSubmittedResponse],
    status_code=status.HTTP_201_CREATED,
)
async def submit_request(
    data: CancellationRequestCreate,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    result = await services.submit_request(db, current_user, data)
    return BaseResponse(
        success=True,
        message=(
            "Cancellation request submitted. Our team will review it according "
            "to the cancellation policy."
        ),
        data=result,
    )


@customer_router.get("", response_model=BaseResponse[list[CancellationRequestResponse]])
async def list_requests(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    requests = await services.list_user_requests(db, current_user)
    return BaseResponse(
        success=True,
        data=[CancellationRequestResponse.model_validate(r) for r in requests],
    )


@customer_router.get(
    "/{request_id}", response_model=BaseResponse[CancellationDetailResponse]
)
async def get_request(
    request_id: int,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    detail = await services.get_user_request(db, current_user, request_id)
    return BaseResponse(success=True, data=detail)


@customer_router.post(
    "/{request_id}/messages",
    response_model=BaseResponse[CancellationMessageResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_message(
    request_id: int,
    data: MessageCreate,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    message = await services.add_user_message(db, current_user, request_id, data.body)
    return BaseResponse(
        success=True, data=CancellationMessageResponse.model_validate(message)
    )


# ----- Admin -----


@admin_router.get(
    "", response_model=BaseResponse[PaginatedResponse[CancellationRequestResponse]]
)
async def admin_list_requests(
    current_user: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    status: CancellationStatus | None = Query(None),
    q: str | None = Query(None, max_length=64),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    """List requests; ``q`` matches part of a booking code or a request id."""
    requests, total = await services.list_requests(
        db, status, q, page_offset(page, page_size), page_size
    )
    return BaseResponse(
        success=True,
        data=PaginatedResponse.from_items(
            items=[CancellationRequestResponse.model_validate(r) for r in requests],
            total=total,
            page=page,
            page_size=page_size,
        ),
    )


@admin_router.get(
    "/{request_id}", response_model=BaseResponse[AdminCancellationDetailResponse]
)
async def admin_get_request(
    request_id: int,
    current_user: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    detail = await services.get_admin_request(db, request_id)
    return BaseResponse(success=True, data=detail)


@admin_router.patch(
    "/{request_id}", response_model=BaseResponse[CancellationRequestResponse]
)
async def admin_update_request(
    request_id: int,
    data: CancellationStatusUpdate,
    current_user: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Set the status and/or decision note.

    PROCESSING and REFUNDED void the check-in code and cancel the booking.
    """
    request = await services.update_request(db, current_user, request_id, data)
    return BaseResponse(
        success=True,
        message="Cancellation request updated",
        data=CancellationRequestResponse.model_validate(request),
    )


@admin_router.post(
    "/{request_id}/messages",
    response_model=BaseResponse[AdminMessageResponse],
    status_code=status.HTTP_201_CREATED,
)
async def admin_add_message(
    request_id: int,
    data: AdminMessageCreate,
    current_user: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    message, request_status = await services.add_admin_message(
        db, current_user, request_id, data.body, data.set_status
    )
    return BaseResponse(
        success=True,
        data=AdminMessageResponse(
            message=CancellationMessageResponse.model_validate(message),
            status=request_status,
        ),
    )
