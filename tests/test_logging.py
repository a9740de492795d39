import json
import logging

from nolsaf_backend.core.logging.middleware import (
    REQUEST_ID_HEADER,
    ContextFilter,
    bind_request,
    bind_user,
)
from nolsaf_backend.core.logging.structured_logger import (
    REDACTED,
    NolsafJsonFormatter,
    JSON_FORMAT,
    redact,
)

from .conftest import auth_headers


def _record(message="hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("nolsaf_backend.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_redact_nested_credentials():
    payload = {
        "email": "a@nolsaf.com",
        "password": "Str0ng!Passw0rd",
        "steps": [{"totp_code": "123456", "ok": True}],
    }
    assert redact(payload) == {
        "email": "a@nolsaf.com",
        "password": REDACTED,
        "steps": [{"totp_code": REDACTED, "ok": True}],
    }


def test_json_formatter_redacts_and_adds_service_fields():
    record = _record(
        request_id="abc123",
        refresh_token="raw-token",
        payload={"signature": "ff00", "amount": 10},
    )
    output = json.loads(NolsafJsonFormatter(fmt=JSON_FORMAT).format(record))
    assert output["message"] == "hello"
    assert output["service"] == "nolsaf-backend"
    assert output["level"] == "INFO"
    assert output["refresh_token"] == REDACTED
    assert output["payload"] == {"signature": REDACTED, "amount": 10}


def test_context_filter_copies_request_context():
    bind_request("req-1", "10.0.0.1")
    bind_user(42)
    record = _record()
    ContextFilter().filter(record)
    assert record.request_id == "req-1"
    assert record.client_ip == "10.0.0.1"
    assert record.user_id == 42

    # Explicit values on the record win
    explicit = _record(request_id="mine", user_id=7)
    ContextFilter().filter(explicit)
    assert explicit.request_id == "mine"
    assert explicit.user_id == 7


async def test_request_id_is_echoed(client, customer):
    response = await client.get(
        "/api/auth/me", headers={**auth_headers(customer), REQUEST_ID_HEADER: "trace-0001"}
    )
    assert response.headers[REQUEST_ID_HEADER] == "trace-0001"

    generated = await client.get("/api/health")
    assert len(generated.headers[REQUEST_ID_HEADER]) == 12


async def test_access_line_carries_user(client, customer, caplog):
    with caplog.at_level(logging.INFO, logger="nolsaf_backend.access"):
        await client.get("/api/auth/me", headers=auth_headers(customer))
    lines = [r for r in caplog.records if r.name == "nolsaf_backend.access"]
    assert lines[-1].status_code == 200
    assert lines[-1].user_id == customer.id
