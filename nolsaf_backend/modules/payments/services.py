"""Payment initiation, status and webhook processing."""

import json
import re
import time
import uuid
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import settings
from ...core.exceptions import NotFoundError, ValidationError
from ...core.logging import get_logger
from ...core.ttl_cache import TTLCache, register_cache
from ...core.utils import utc_now
from ..auth.schemas import AuthenticatedUser
from ..bookings import crud as booking_crud
from ..notifications.services import notify_owner
from . import azampay, crud, webhooks
from .models import Invoice, InvoiceStatus, PaymentEvent, PaymentEventStatus
from .schemas import (
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    PaymentEventResponse,
    PaymentStatusResponse,
)

logger = get_logger(__name__)

AZAMPAY = "AZAMPAY"
OWNER_INVOICE_PREFIX = "OINV-"
PAYMENT_REF_PATTERN = re.compile(r"^[\w-]+$")
PAYMENT_REF_MAX_LENGTH = 100

_idempotency: TTLCache[str, dict] = TTLCache(
    "payment_idempotency",
    ttl_seconds=settings.idempotency_ttl_seconds,
    max_size=500,
    trim_to=400,
)
register_cache(_idempotency)


def idempotency_cache() -> TTLCache:
    return _idempotency


def normalize_phone(raw: str) -> str:
    """Normalise a Tanzanian mobile number to +255 form."""
    digits = re.sub(r"\D", "", raw or "")
    if digits.startswith("255"):
        return f"+{digits}"
    if digits.startswith("0"):
        return f"+255{digits[1:]}"
    return f"+255{digits}"


def make_payment_ref(invoice_id: int) -> str:
    return f"INV-{invoice_id}-{int(time.time() * 1000)}"


async def _get_payable_invoice(
    db: AsyncSession, current_user: AuthenticatedUser, invoice_id: int
) -> Invoice:
    invoice = await crud.get_invoice_by_id(db, invoice_id)
    if invoice and not current_user.is_admin and invoice.booking_id is not None:
        booking = await booking_crud.get_booking_by_id(db, invoice.booking_id)
        if booking is None or booking.customer_id != current_user.id:
            invoice = None
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


async def _record_pending_event(
    db: AsyncSession, invoice: Invoice, event_id: str, amount: Decimal, payload: dict
) -> None:
    try:
        async with db.begin_nested():
            await crud.create_event(
                db,
                provider=AZAMPAY,
                event_id=event_id,
                invoice_id=invoice.id,
                amount=amount,
                currency=invoice.currency,
                status=PaymentEventStatus.PENDING,
                payload=payload,
            )
    except SQLAlchemyError as e:
        logger.warning(
            f"Could not record pending payment event: {e}",
            extra={"invoice_id": invoice.id},
        )


async def initiate_payment(
    db: AsyncSession,
    current_user: AuthenticatedUser,
    data: InitiatePaymentRequest,
) -> InitiatePaymentResponse:
    """Start an AzamPay checkout for an invoice.

    A repeated idempotency key from the same user returns the first response
    without calling the gateway again. The amount always comes from the
    invoice.

    Raises:
        NotFoundError: If the invoice does not exist or is not the caller's
        ValidationError: If the invoice cannot be paid this way
        ServiceUnavailableError: If the gateway is not configured
        ExternalServiceError: If the gateway rejects the checkout
    """
    idem_key = data.idempotency_key or f"azp-{data.invoice_id}-{uuid.uuid4().hex[:12]}"
    cache_key = f"{current_user.id}:{idem_key}"
    cached = _idempotency.get(cache_key)
    if cached is not None:
        return InitiatePaymentResponse(idempotency_key=idem_key, cached=True, **cached)

    invoice = await _get_payable_invoice(db, current_user, data.invoice_id)
    if invoice.invoice_number.startswith(OWNER_INVOICE_PREFIX):
        raise ValidationError(
            "This invoice cannot be paid via this method",
            data={"code": "invalid_invoice"},
        )
    if invoice.status in (InvoiceStatus.DRAFT, InvoiceStatus.REJECTED):
        raise ValidationError("Invoice is not payable", data={"code": "invalid_status"})
    if invoice.status == InvoiceStatus.PAID:
        raise ValidationError("Invoice already paid", data={"code": "already_paid"})

    amount = Decimal(invoice.total or invoice.net_payable or 0)
    if amount <= 0:
        raise ValidationError(
            "Invoice has no payable amount", data={"code": "invalid_amount"}
        )

    payment_ref = invoice.payment_ref or make_payment_ref(invoice.id)
    phone = normalize_phone(data.phone_number)

    invoice.payment_ref = payment_ref
    invoice.payment_method = data.provider
    invoice.status = InvoiceStatus.PROCESSING
    await db.commit()

    gateway_response = await azampay.gateway.checkout(
        {
            "accountNumber": phone,
            "amount": str(amount),
            "currency": invoice.currency,
            "externalId": payment_ref,
            "provider": data.provider,
            "additionalProperties": {
                "invoiceId": str(invoice.id),
                "bookingId": str(invoice.booking_id or ""),
            },
        }
    )
    transaction_id = str(gateway_response.get("transactionId") or payment_ref)
    checkout_url = gateway_response.get("checkoutUrl")

    await _record_pending_event(
        db,
        invoice,
        transaction_id,
        amount,
        {
            "transactionId": gateway_response.get("transactionId"),
            "paymentRef": payment_ref,
            "phoneNumber": phone,
            "provider": data.provider,
            "checkoutUrl": checkout_url,
        },
    )
    await db.commit()

    result = {
        "transaction_id": transaction_id,
        "payment_ref": payment_ref,
        "status": PaymentEventStatus.PENDING.value,
        "checkout_url": checkout_url,
    }
    _idempotency.set(cache_key, result)
    logger.info(
        "Payment initiated",
        extra={"invoice_id": invoice.id, "provider": data.provider},
    )
    return InitiatePaymentResponse(idempotency_key=idem_key, **result)


async def get_payment_status(
    db: AsyncSession, current_user: AuthenticatedUser, payment_ref: str
) -> PaymentStatusResponse:
    if len(payment_ref) > PAYMENT_REF_MAX_LENGTH or not PAYMENT_REF_PATTERN.match(
        payment_ref
    ):
        raise ValidationError("Invalid payment reference", data={"code": "invalid_ref"})

    invoice = await crud.get_invoice_by_payment_ref(db, payment_ref)
    if invoice:
        invoice = await _get_payable_invoice(db, current_user, invoice.id)
    if not invoice:
        raise NotFoundError("Payment reference not found")

    events = await crud.get_events_for_invoice(db, invoice.id, limit=10)
    azampay_events = [e for e in events if e.provider == AZAMPAY]
    return PaymentStatusResponse(
        payment_ref=payment_ref,
        invoice_status=invoice.status,
        payment_status=azampay_events[0].status.value if azampay_events else "UNKNOWN",
        currency=invoice.currency,
        events=[PaymentEventResponse.model_validate(e) for e in events],
    )


# ----- Webhooks -----


async def _mark_invoice_paid(
    db: AsyncSession, invoice: Invoice, method: str, payment_ref: str
) -> Invoice:
    if invoice.status == InvoiceStatus.PAID:
        return invoice

    now = utc_now()
    if not invoice.receipt_number:
        sequence = await crud.count_paid_invoices(db) + 1
        invoice.receipt_number = webhooks.receipt_number(now.year, sequence)
    invoice.status = InvoiceStatus.PAID
    invoice.paid_at = now
    invoice.payment_method = method
    invoice.payment_ref = invoice.payment_ref or payment_ref
    await db.flush()

    if invoice.owner_id:
        await notify_owner(
            db,
            invoice.owner_id,
            "invoice_paid",
            {
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "receipt_number": invoice.receipt_number,
            },
        )
    logger.info(
        "Invoice paid",
        extra={"invoice_id": invoice.id, "receipt_number": invoice.receipt_number},
    )
    return invoice


async def process_webhook(
    db: AsyncSession, provider: str, raw_body: bytes, signature: str | None
) -> tuple[PaymentEvent, bool]:
    """Verify, record and apply a provider callback.

    Returns:
        Tuple of (event, duplicate); a repeated event id is returned unchanged

    Raises:
        ValidationError: On a bad signature or unreadable payload
    """
    webhooks.verify_signature(webhooks.webhook_secret(provider), raw_body, signature)
    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise ValidationError("Body is not valid JSON")
    event = webhooks.normalize_payload(provider, payload)

    existing = await crud.get_event_by_event_id(db, event.event_id)
    if existing:
        return existing, True

    invoice = None
    if event.payment_ref:
        invoice = await crud.get_invoice_by_payment_ref(db, str(event.payment_ref))
    if invoice is None and event.invoice_number:
        invoice = await crud.get_invoice_by_number(db, str(event.invoice_number))

    recorded = await crud.create_event(
        db,
        provider=provider,
        event_id=event.event_id,
        invoice_id=invoice.id if invoice else None,
        amount=event.amount,
        currency=event.currency,
        status=PaymentEventStatus(event.status),
        payload=payload,
    )

    if invoice and event.status == PaymentEventStatus.SUCCESS.value:
        if webhooks.amount_matches(event.amount, invoice.net_payable):
            await _mark_invoice_paid(
                db,
                invoice,
                provider,
                str(event.payment_ref or event.invoice_number or event.event_id),
            )
        else:
            logger.warning(
                "Webhook amount does not match invoice",
                extra={"invoice_id": invoice.id, "event_id": event.event_id},
            )

    await db.commit()
    return recorded, False
