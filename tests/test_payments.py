import json
from decimal import Decimal

import httpx
import pytest

from nolsaf_backend.config import settings
from nolsaf_backend.core.exceptions import ExternalServiceError, ServiceUnavailableError
from nolsaf_backend.modules.payments import azampay
from nolsaf_backend.modules.payments.azampay import AzamPayGateway, parse_expiry
from nolsaf_backend.modules.payments.models import InvoiceStatus
from nolsaf_backend.modules.payments.services import normalize_phone

from .conftest import auth_headers


class FakeAzamPay:
    """Answers the token and checkout endpoints and records calls."""

    def __init__(self, checkout_status: int = 200, checkout_body=None):
        self.checkout_status = checkout_status
        self.checkout_body = checkout_body
        self.token_calls = 0
        self.checkouts: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/AppRegistration/GenerateToken"):
            self.token_calls += 1
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "data": {"accessToken": f"token-{self.token_calls}", "expire": None},
                },
            )
        self.checkouts.append(
            {"auth": request.headers.get("Authorization"), "body": json.loads(request.content)}
        )
        if self.checkout_status != 200:
            return httpx.Response(self.checkout_status, json={"message": "nope"})
        if self.checkout_body is not None:
            return httpx.Response(200, json=self.checkout_body)
        return httpx.Response(
            200, json={"transactionId": "AZP-TX-1", "checkoutUrl": "https://pay.example.com/x"}
        )


@pytest.fixture
def fake_azampay(monkeypatch):
    fake = FakeAzamPay()
    monkeypatch.setattr(
        azampay, "gateway", AzamPayGateway(settings, transport=httpx.MockTransport(fake))
    )
    return fake


# ----- Helpers -----


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("0712 345 678", "+255712345678"),
        ("255712345678", "+255712345678"),
        ("+255 712-345-678", "+255712345678"),
        ("712345678", "+255712345678"),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_parse_expiry_formats():
    now = 1_700_000_000.0
    assert parse_expiry(None, now) == now + 50 * 60
    assert parse_expiry(1_700_003_600, now) == 1_700_003_600
    assert parse_expiry(1_700_003_600_000, now) == 1_700_003_600
    assert parse_expiry("2023-11-14T23:13:20Z", now) == 1_700_003_600
    assert parse_expiry("garbage", now) == now + 50 * 60


# ----- Gateway -----


async def test_gateway_caches_token():
    fake = FakeAzamPay()
    gateway = AzamPayGateway(settings, transport=httpx.MockTransport(fake))
    await gateway.checkout({"amount": "1"})
    await gateway.checkout({"amount": "2"})
    assert fake.token_calls == 1
    assert fake.checkouts[0]["auth"] == "Bearer token-1"


async def test_gateway_retries_once_on_401():
    fake = FakeAzamPay(checkout_status=401)
    gateway = AzamPayGateway(settings, transport=httpx.MockTransport(fake))
    with pytest.raises(ExternalServiceError):
        await gateway.checkout({"amount": "1"})
    assert fake.token_calls == 2
    assert len(fake.checkouts) == 2


@pytest.mark.parametrize("body", [["AZP-TX-1"], "accepted", 42])
async def test_gateway_rejects_non_object_checkout_body(body):
    gateway = AzamPayGateway(
        settings, transport=httpx.MockTransport(FakeAzamPay(checkout_body=body))
    )
    with pytest.raises(ExternalServiceError) as excinfo:
        await gateway.checkout({"amount": "1"})
    assert excinfo.value.data == {"code": "payment_failed"}


async def test_unconfigured_gateway_is_unavailable():
    config = settings.model_copy(update={"azampay_client_id": None})
    gateway = AzamPayGateway(config, transport=httpx.MockTransport(FakeAzamPay()))
    with pytest.raises(ServiceUnavailableError):
        await gateway.get_token()


# ----- Initiate -----


async def test_initiate_payment_and_repeat_with_same_key(
    client, db, customer, make_booking, make_invoice, fake_azampay
):
    booking, _ = await make_booking()
    invoice = await make_invoice(booking.id)
    payload = {
        "invoice_id": invoice.id,
        "phone_number": "0712345678",
        "provider": "Airtel",
        "idempotency_key": "checkout-0001",
    }

    first = await client.post(
        "/api/payments/azampay/initiate", json=payload, headers=auth_headers(customer)
    )
    assert first.status_code == 200
    data = first.json()["data"]
    assert data["transaction_id"] == "AZP-TX-1"
    assert data["payment_ref"].startswith(f"INV-{invoice.id}-")
    assert data["status"] == "PENDING"
    assert data["cached"] is False

    body = fake_azampay.checkouts[0]["body"]
    assert body["accountNumber"] == "+255712345678"
    assert Decimal(body["amount"]) == Decimal("100000")
    assert body["externalId"] == data["payment_ref"]

    second = await client.post(
        "/api/payments/azampay/initiate", json=payload, headers=auth_headers(customer)
    )
    assert second.json()["data"]["cached"] is True
    assert second.json()["data"]["payment_ref"] == data["payment_ref"]
    assert len(fake_azampay.checkouts) == 1

    await db.refresh(invoice)
    assert invoice.status == InvoiceStatus.PROCESSING


async def test_owner_invoices_cannot_be_paid_this_way(
    client, customer, make_booking, make_invoice, fake_azampay
):
    booking, _ = await make_booking()
    invoice = await make_invoice(booking.id, invoice_number="OINV-000001")
    response = await client.post(
        "/api/payments/azampay/initiate",
        json={"invoice_id": invoice.id, "phone_number": "0712345678"},
        headers=auth_headers(customer),
    )
    assert response.status_code == 400
    assert response.json()["data"] == {"code": "invalid_invoice"}
    assert fake_azampay.checkouts == []


async def test_paid_invoice_is_rejected(
    client, customer, make_booking, make_invoice, fake_azampay
):
    booking, _ = await make_booking()
    invoice = await make_invoice(booking.id, status=InvoiceStatus.PAID)
    response = await client.post(
        "/api/payments/azampay/initiate",
        json={"invoice_id": invoice.id, "phone_number": "0712345678"},
        headers=auth_headers(customer),
    )
    assert response.status_code == 400
    assert response.json()["data"] == {"code": "already_paid"}


async def test_other_customers_invoice_is_hidden(
    client, make_user, make_booking, make_invoice, fake_azampay
):
    booking, _ = await make_booking()
    invoice = await make_invoice(booking.id)
    stranger = await make_user("CUSTOMER")
    response = await client.post(
        "/api/payments/azampay/initiate",
        json={"invoice_id": invoice.id, "phone_number": "0712345678"},
        headers=auth_headers(stranger),
    )
    assert response.status_code == 404


async def test_gateway_failure_is_bad_gateway(
    client, customer, make_booking, make_invoice, monkeypatch
):
    fake = FakeAzamPay(checkout_status=500)
    monkeypatch.setattr(
        azampay, "gateway", AzamPayGateway(settings, transport=httpx.MockTransport(fake))
    )
    booking, _ = await make_booking()
    invoice = await make_invoice(booking.id)
    response = await client.post(
        "/api/payments/azampay/initiate",
        json={"invoice_id": invoice.id, "phone_number": "0712345678"},
        headers=auth_headers(customer),
    )
    assert response.status_code == 502
    assert response.json()["data"] == {"code": "payment_failed"}
    assert "nope" not in response.text


# ----- Status -----


async def test_payment_status(client, customer, make_booking, make_invoice, fake_azampay):
    booking, _ = await make_booking()
    invoice = await make_invoice(booking.id)
    initiated = await client.post(
        "/api/payments/azampay/initiate",
        json={"invoice_id": invoice.id, "phone_number": "0712345678"},
        headers=auth_headers(customer),
    )
    payment_ref = initiated.json()["data"]["payment_ref"]

    response = await client.get(
        f"/api/payments/azampay/status/{payment_ref}", headers=auth_headers(customer)
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["invoice_status"] == "PROCESSING"
    assert data["payment_status"] == "PENDING"
    assert len(data["events"]) == 1


async def test_payment_status_validates_reference(client, customer):
    headers = auth_headers(customer)
    bad = await client.get("/api/payments/azampay/status/bad%20ref", headers=headers)
    assert bad.status_code == 400
    assert bad.json()["data"] == {"code": "invalid_ref"}

    missing = await client.get("/api/payments/azampay/status/INV-404-1", headers=headers)
    assert missing.status_code == 404
