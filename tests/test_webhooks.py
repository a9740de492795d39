import json
from decimal import Decimal

import pytest
from sqlalchemy import select

from nolsaf_backend.core.exceptions import ValidationError
from nolsaf_backend.modules.notifications.models import Notification
from nolsaf_backend.modules.payments import webhooks
from nolsaf_backend.modules.payments.models import InvoiceStatus, PaymentEvent

MPESA_SECRET = "mpesa-test-secret"
TIGO_SECRET = "tigo-test-secret"


def _signed(secret: str, payload: dict) -> tuple[bytes, str]:
    raw = json.dumps(payload).encode()
    return raw, webhooks.compute_signature(secret, raw)


# ----- Signatures and payloads -----


def test_verify_signature_accepts_matching_hmac():
    raw, signature = _signed("s3cret", {"a": 1})
    webhooks.verify_signature("s3cret", raw, signature.upper())


@pytest.mark.parametrize(
    "secret,signature,message",
    [
        (None, "abc", "Webhook secret is not configured"),
        ("s3cret", None, "Signature missing"),
        ("s3cret", "deadbeef", "Bad signature"),
    ],
)
def test_verify_signature_failures(secret, signature, message):
    with pytest.raises(ValidationError, match=message):
        webhooks.verify_signature(secret, b"{}", signature)


def test_normalize_mpesa_payload():
    event = webhooks.normalize_payload(
        "MPESA",
        {
            "TransactionID": "MP123",
            "AccountReference": "INV-1-1",
            "Amount": "2500.50",
            "ResultCode": "Success",
            "MSISDN": "255700000000",
        },
    )
    assert event.event_id == "MP123"
    assert event.payment_ref == "INV-1-1"
    assert event.amount == Decimal("2500.50")
    assert event.currency == "TZS"
    assert event.status == "SUCCESS"
    assert event.payer == "255700000000"


def test_normalize_tigo_payload_statuses():
    base = {"transactionId": "TG1", "referenceId": "INV-2-2", "amount": 10}
    assert webhooks.normalize_payload("TIGOPESA", {**base, "status": "COMPLETED"}).status == "SUCCESS"
    assert webhooks.normalize_payload("TIGOPESA", {**base, "status": "pending"}).status == "PENDING"
    assert webhooks.normalize_payload("TIGOPESA", {**base, "status": "error"}).status == "FAILED"


def test_normalize_requires_event_id():
    with pytest.raises(ValidationError, match="Missing event id"):
        webhooks.normalize_payload("MPESA", {"Amount": 10})


@pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity", "abc"])
def test_normalize_rejects_unusable_amounts(amount):
    with pytest.raises(ValidationError, match="Invalid amount"):
        webhooks.normalize_payload("MPESA", {"TransactionID": "MP9", "Amount": amount})


def test_amount_tolerance_and_receipts():
    assert webhooks.amount_matches(Decimal("100000.50"), Decimal("100000"))
    assert not webhooks.amount_matches(Decimal("99998"), Decimal("100000"))
    assert webhooks.receipt_number(2024, 7) == "RCPT/2024/00007"


# ----- API -----


async def test_bad_signature_is_rejected(client):
    raw, _ = _signed(MPESA_SECRET, {"TransactionID": "X"})
    response = await client.post(
        "/api/webhooks/payments/mpesa",
        content=raw,
        headers={"X-Mpesa-Signature": "0" * 64, "Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Bad signature"


async def test_successful_mpesa_payment_marks_invoice_paid(
    client, db, owner, make_booking, make_invoice
):
    booking, _ = await make_booking()
    invoice = await make_invoice(booking.id, payment_ref="INV-1-1700000000000")
    raw, signature = _signed(
        MPESA_SECRET,
        {
            "TransactionID": "MP-0001",
            "AccountReference": "INV-1-1700000000000",
            "Amount": "100000",
            "ResultCode": "Success",
        },
    )

    response = await client.post(
        "/api/webhooks/payments/mpesa",
        content=raw,
        headers={"X-Mpesa-Signature": signature, "Content-Type": "application/json"},
    )
    assert response.status_code == 200
    assert response.json()["data"]["duplicate"] is False

    await db.refresh(invoice)
    assert invoice.status == InvoiceStatus.PAID
    assert invoice.payment_method == "MPESA"
    assert invoice.receipt_number.startswith("RCPT/")
    assert invoice.receipt_number.endswith("/00001")

    notes = (
        await db.execute(select(Notification).where(Notification.owner_id == owner.id))
    ).scalars().all()
    assert "invoice_paid" in [n.template for n in notes]

    # The same event again is acknowledged without a second effect
    repeat = await client.post(
        "/api/webhooks/payments/mpesa",
        content=raw,
        headers={"X-Mpesa-Signature": signature, "Content-Type": "application/json"},
    )
    assert repeat.status_code == 200
    assert repeat.json()["data"]["duplicate"] is True
    events = (await db.execute(select(PaymentEvent))).scalars().all()
    assert len(events) == 1


async def test_tigo_payment_matches_by_invoice_number(client, db, make_booking, make_invoice):
    booking, _ = await make_booking()
    invoice = await make_invoice(booking.id, invoice_number="INV-000042")
    raw, signature = _signed(
        TIGO_SECRET,
        {
            "transactionId": "TG-0001",
            "invoiceNumber": "INV-000042",
            "amount": 100000,
            "status": "SUCCESS",
        },
    )
    response = await client.post(
        "/api/webhooks/payments/tigopesa",
        content=raw,
        headers={"X-Tigo-Signature": signature},
    )
    assert response.status_code == 200

    await db.refresh(invoice)
    assert invoice.status == InvoiceStatus.PAID


async def test_amount_mismatch_is_recorded_but_not_applied(
    client, db, make_booking, make_invoice
):
    booking, _ = await make_booking()
    invoice = await make_invoice(booking.id, payment_ref="INV-9-1")
    raw, signature = _signed(
        MPESA_SECRET,
        {
            "TransactionID": "MP-0002",
            "AccountReference": "INV-9-1",
            "Amount": "500",
            "ResultCode": "Success",
        },
    )
    response = await client.post(
        "/api/webhooks/payments/mpesa",
        content=raw,
        headers={"X-Mpesa-Signature": signature},
    )
    assert response.status_code == 200

    await db.refresh(invoice)
    assert invoice.status == InvoiceStatus.ISSUED
    event = (await db.execute(select(PaymentEvent))).scalar_one()
    assert event.invoice_id == invoice.id


async def test_invalid_json_is_rejected(client):
    raw = b"not json"
    response = await client.post(
        "/api/webhooks/payments/mpesa",
        content=raw,
        headers={"X-Mpesa-Signature": webhooks.compute_signature(MPESA_SECRET, raw)},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Body is not valid JSON"


async def test_non_numeric_amount_is_rejected_without_storing(client, db, make_booking, make_invoice):
    booking, _ = await make_booking()
    await make_invoice(booking.id, payment_ref="INV-3-1")
    raw, signature = _signed(
        MPESA_SECRET,
        {
            "TransactionID": "MP-NAN",
            "AccountReference": "INV-3-1",
            "Amount": "NaN",
            "ResultCode": "Success",
        },
    )
    response = await client.post(
        "/api/webhooks/payments/mpesa",
        content=raw,
        headers={"X-Mpesa-Signature": signature},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid amount"
    assert (await db.execute(select(PaymentEvent))).scalars().all() == []
