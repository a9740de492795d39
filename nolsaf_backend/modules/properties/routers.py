"""Property listing API routes (owner, public and admin)."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...database import get_db
from ..auth.dependencies import AdminUser, OwnerUser
from ..commons import BaseResponse, PaginatedResponse, page_offset
from . import services
from .models import PropertyStatus
from .schemas import (
    AvailabilityResponse,
    PropertyCreate,
    PropertyResponse,
    PropertyUpdate,
    PublicPropertyResponse,
    RejectPropertyRequest,
)

owner_router = APIRouter(prefix="/owner/properties", tags=["Owner Properties"])
public_router = APIRouter(prefix="/public/properties", tags=["Public Properties"])
admin_router = APIRouter(prefix="/admin/properties", tags=["Admin Properties"])


def _page(items, total: int, page: int, page_size: int, schema):
    return PaginatedResponse.from_items(
        items=[schema.model_validate(p) for p in items],
        total=total,
        page=page,
        page_size=page_size,
    )


# ----- Owner -----


@owner_router.post(
    "",
    response_model=BaseResponse[PropertyResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_property(
    data: PropertyCreate,
    current_user: OwnerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a new listing in DRAFT."""
    prop = await services.create_property(db, current_user, data)
    return BaseResponse(
        success=True,
        message="Property created successfully",
        data=PropertyResponse.model_validate(prop),
    )


@owner_router.get("", response_model=BaseResponse[PaginatedResponse[PropertyResponse]])
async def list_properties(
    current_user: OwnerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    status: PropertyStatus | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    props, total = await services.list_owner_properties(
        db, current_user, status, page_offset(page, page_size), page_size
    )
    return BaseResponse(
        success=True, data=_page(props, total, page, page_size, PropertyResponse)
    )


@owner_router.get("/{property_id}", response_model=BaseResponse[PropertyResponse])
async def get_property(
    property_id: int,
    current_user: OwnerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    prop = await services.get_owner_property(db, current_user, property_id)
    return BaseResponse(success=True, data=PropertyResponse.model_validate(prop))


@owner_router.patch("/{property_id}", response_model=BaseResponse[PropertyResponse])
async def update_property(
    property_id: int,
    data: PropertyUpdate,
    current_user: OwnerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    prop = await services.update_property(db, current_user, property_id, data)
    return BaseResponse(
        success=True,
        message="Property updated successfully",
        data=PropertyResponse.model_validate(prop),
    )


@owner_router.post("/{property_id}/submit", response_model=BaseResponse[PropertyResponse])
async def submit_property(
    property_id: int,
    current_user: OwnerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    prop = await services.submit_property(db, current_user, property_id)
    return BaseResponse(
        success=True,
        message="Property submitted for review",
        data=PropertyResponse.model_validate(prop),
    )


@owner_router.post(
    "/{property_id}/layout/generate", response_model=BaseResponse[dict[str, Any]]
)
async def generate_layout(
    property_id: int,
    current_user: OwnerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    layout = await services.regenerate_layout(db, current_user, property_id)
    return BaseResponse(success=True, message="Layout generated", data=layout)


@owner_router.get("/{property_id}/layout", response_model=BaseResponse[dict[str, Any]])
async def get_layout(
    property_id: int,
    current_user: OwnerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    layout = await services.get_layout(db, current_user, property_id)
    return BaseResponse(success=True, data=layout)


@owner_router.get(
    "/{property_id}/availability", response_model=BaseResponse[AvailabilityResponse]
)
async def get_availability(
    property_id: int,
    current_user: OwnerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    date_from: str | None = Query(None, alias="from"),
    date_to: str | None = Query(None, alias="to"),
):
    """Per-room occupancy between ``from`` and ``to`` (ISO dates)."""
    availability = await services.get_availability(
        db, current_user, property_id, date_from, date_to
    )
    return BaseResponse(
        success=True, data=AvailabilityResponse.model_validate(availability)
    )


# ----- Public -----


@public_router.get(
    "", response_model=BaseResponse[PaginatedResponse[PublicPropertyResponse]]
)
async def list_public_properties(
    db: Annotated[AsyncSession, Depends(get_db)],
    region: str | None = Query(None),
    type: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    props, total = await services.list_public_properties(
        db, region, type, page_offset(page, page_size), page_size
    )
    return BaseResponse(
        success=True, data=_page(props, total, page, page_size, PublicPropertyResponse)
    )


@public_router.get("/{property_id}", response_model=BaseResponse[PublicPropertyResponse])
async def get_public_property(
    property_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    prop = await services.get_public_property(db, property_id)
    return BaseResponse(success=True, data=PublicPropertyResponse.model_validate(prop))


# ----- Admin -----


@admin_router.get("", response_model=BaseResponse[PaginatedResponse[PropertyResponse]])
async def list_admin_properties(
    current_user: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    status: PropertyStatus | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    props, total = await services.list_admin_properties(
        db, status, page_offset(page, page_size), page_size
    )
    return BaseResponse(
        success=True, data=_page(props, total, page, page_size, PropertyResponse)
    )


@admin_router.post("/{property_id}/approve", response_model=BaseResponse[PropertyResponse])
async def approve_property(
    property_id: int,
    current_user: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    prop = await services.approve_property(db, property_id)
    return BaseResponse(
        success=True,
        message="Property approved",
        data=PropertyResponse.model_validate(prop),
    )


@admin_router.post("/{property_id}/reject", response_model=BaseResponse[PropertyResponse])
async def reject_property(
    property_id: int,
    data: RejectPropertyRequest,
    current_user: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    prop = await services.reject_property(db, property_id, data.reason)
    return BaseResponse(
        success=True,
        message="Property rejected",
        data=PropertyResponse.model_validate(prop),
    )
