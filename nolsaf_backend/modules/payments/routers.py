"""Payment API routes: AzamPay checkout and mobile-money webhooks."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ...database import get_db
from ..auth.dependencies import CurrentUser
from ..commons import BaseResponse
from . import services
from .schemas import (
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    PaymentStatusResponse,
    WebhookAck,
)
from .webhooks import MPESA, SIGNATURE_HEADERS, TIGOPESA

router = APIRouter(prefix="/payments/azampay", tags=["Payments"])
webhook_router = APIRouter(prefix="/webhooks/payments", tags=["Payment Webhooks"])


@router.post("/initiate", response_model=BaseResponse[InitiatePaymentResponse])
async def initiate_payment(
    data: InitiatePaymentRequest,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Start a mobile-money checkout for an invoice.

    Send the same ``idempotency_key`` to retry safely.
    """
    result = await services.initiate_payment(db, current_user, data)
    return BaseResponse(success=True, message="Payment initiated", data=result)


@router.get("/status/{payment_ref}", response_model=BaseResponse[PaymentStatusResponse])
async def payment_status(
    payment_ref: str,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    result = await services.get_payment_status(db, current_user, payment_ref)
    return BaseResponse(success=True, data=result)


async def _handle_webhook(
    provider: str, request: Request, db: AsyncSession
) -> BaseResponse[WebhookAck]:
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADERS[provider])
    event, duplicate = await services.process_webhook(db, provider, raw_body, signature)
    return BaseResponse(
        success=True,
        message="Duplicate event ignored" if duplicate else "Event processed",
        data=WebhookAck(id=event.id, duplicate=duplicate),
    )


@webhook_router.post("/mpesa", response_model=BaseResponse[WebhookAck])
async def mpesa_webhook(
    request: Request, db: Annotated[AsyncSession, Depends(get_db)]
):
    return await _handle_webhook(MPESA, request, db)


@webhook_router.post("/tigopesa", response_model=BaseResponse[WebhookAck])
async def tigopesa_webhook(
    request: Request, db: Annotated[AsyncSession, Depends(get_db)]
):
    return await _handle_webhook(TIGOPESA, request, db)
