"""Mobile-money webhook signature checks and payload normalisation."""

import hashlib
import hmac
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from ...config import settings
from ...core.exceptions import ValidationError

MPESA = "MPESA"
TIGOPESA = "TIGOPESA"

SIGNATURE_HEADERS = {
    MPESA: "X-Mpesa-Signature",
    TIGOPESA: "X-Tigo-Signature",
}

AMOUNT_TOLERANCE = Decimal("1")


@dataclass
class NormalizedEvent:
    event_id: str
    payment_ref: str | None
    invoice_number: str | None
    amount: Decimal
    currency: str
    status: str
    payer: str | None = None


def webhook_secret(provider: str) -> str | None:
    if provider == MPESA:
        return settings.mpesa_webhook_secret
    return settings.tigo_webhook_secret


def compute_signature(secret: str, raw_body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(secret: str | None, raw_body: bytes, signature: str | None) -> None:
    """Check a hex HMAC-SHA256 of the raw body in constant time.

    Raises:
        ValidationError: If the secret or signature is missing or wrong
    """
    if not secret:
        raise ValidationError("Webhook secret is not configured")
    if not signature:
        raise ValidationError("Signature missing")
    expected = compute_signature(secret, raw_body)
    if not hmac.compare_digest(expected, signature.strip().lower()):
        raise ValidationError("Bad signature")


def _first(payload: dict, *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


def _amount(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value if value is not None else 0))
    except InvalidOperation:
        raise ValidationError("Invalid amount")
    # NaN and Infinity parse fine but cannot be stored or compared
    if not amount.is_finite():
        raise ValidationError("Invalid amount")
    return amount


def _status(value: Any, success_pattern: str) -> str:
    text = str(value or "")
    if re.search(success_pattern, text, re.IGNORECASE):
        return "SUCCESS"
    if re.search("pending", text, re.IGNORECASE):
        return "PENDING"
    return "FAILED"


def normalize_payload(provider: str, payload: dict) -> NormalizedEvent:
    """Map a provider callback to one shape.

    Raises:
        ValidationError: If the payload has no event id
    """
    if not isinstance(payload, dict):
        raise ValidationError("Payload must be a JSON object")

    if provider == MPESA:
        event_id = _first(payload, "TransactionID", "txId", "id")
        event = NormalizedEvent(
            event_id=str(event_id) if event_id is not None else "",
            payment_ref=_first(payload, "AccountReference", "accountRef", "orderId"),
            invoice_number=_first(payload, "InvoiceNumber", "invoiceNumber"),
            amount=_amount(_first(payload, "Amount", "amount")),
            currency=_first(payload, "Currency", "currency") or "TZS",
            status=_status(_first(payload, "ResultCode", "status"), "success"),
            payer=_first(payload, "MSISDN", "payer"),
        )
    else:
        event_id = _first(payload, "transactionId", "id")
        event = NormalizedEvent(
            event_id=str(event_id) if event_id is not None else "",
            payment_ref=_first(payload, "referenceId", "orderId"),
            invoice_number=_first(payload, "invoiceNumber"),
            amount=_amount(_first(payload, "amount")),
            currency=_first(payload, "currency") or "TZS",
            status=_status(payload.get("status"), "success|completed"),
            payer=_first(payload, "msisdn"),
        )

    if not event.event_id:
        raise ValidationError("Missing event id")
    return event


def amount_matches(received: Decimal, expected: Decimal) -> bool:
    return abs(Decimal(received) - Decimal(expected)) <= AMOUNT_TOLERANCE


def receipt_number(year: int, sequence: int) -> str:
    return f"RCPT/{year}/{sequence:05d}"
