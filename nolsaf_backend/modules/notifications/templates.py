"""In-app notification templates.

Each template turns a data dict into a (title, body) pair. Optional parts
are dropped when their data is missing.
"""

import json
from collections.abc import Callable
from typing import Any

Renderer = Callable[[dict[str, Any]], tuple[str, str]]


def _part(data: dict[str, Any], key: str, fmt: str) -> str:
    value = data.get(key)
    if value is None or value == "":
        return ""
    return fmt.format(value)


def _cancellation_submitted(data):
    return (
        "New Cancellation Claim Submitted",
        "A customer submitted a cancellation claim"
        f"{_part(data, 'booking_code', ' (code: {})')}.",
    )


def _cancellation_message(data):
    return (
        "New Cancellation Message",
        "There is a new message on cancellation claim"
        f"{_part(data, 'request_id', ' #{}')}"
        f"{_part(data, 'booking_code', ' (code: {})')}.",
    )


def _cancellation_status_update(data):
    return (
        "Cancellation Request Updated",
        "Your cancellation request"
        f"{_part(data, 'request_id', ' #{}')}"
        f" is now {data.get('status', 'updated')}."
        f"{_part(data, 'decision_note', ' Note: {}')}",
    )


def _booking_created(data):
    property_part = _part(data, "property_title", ' for "{}"')
    return (
        "New Booking Created",
        "A new booking"
        f"{_part(data, 'booking_id', ' #{}')} has been created"
        f"{property_part}"
        f"{_part(data, 'check_in', ' (check-in: {})')}.",
    )


def _property_submitted(data):
    title = data.get("property_title") or "Property"
    return (
        "Property Submitted for Review",
        f'A new property "{title}" has been submitted for review '
        "and is awaiting your approval.",
    )


def _property_approved(data):
    title = data.get("property_title") or "Property"
    return ("Property Approved", f'Property "{title}" has been approved.')


def _property_rejected(data):
    title = data.get("property_title") or "Property"
    reasons = data.get("reasons")
    if isinstance(reasons, list):
        reasons = ", ".join(str(r) for r in reasons)
    suffix = f" Reasons: {reasons}." if reasons else ""
    return ("Property Review Update", f'Property "{title}" has been rejected.{suffix}')


def _invoice_paid(data):
    return (
        "Invoice Paid",
        f"Invoice{_part(data, 'invoice_number', ' {}')} has been paid"
        f"{_part(data, 'receipt_number', ' (receipt {})')}.",
    )


def _transport_assigned(data):
    return (
        "Driver Assigned",
        "A driver has accepted your trip"
        f"{_part(data, 'transport_booking_id', ' #{}')}"
        f"{_part(data, 'driver_name', ' ({})')}.",
    )


TEMPLATES: dict[str, Renderer] = {
    "cancellation_submitted": _cancellation_submitted,
    "cancellation_message": _cancellation_message,
    "cancellation_status_update": _cancellation_status_update,
    "booking_created": _booking_created,
    "property_submitted": _property_submitted,
    "property_approved": _property_approved,
    "property_rejected": _property_rejected,
    "invoice_paid": _invoice_paid,
    "transport_assigned": _transport_assigned,
}

_TYPE_PREFIXES = (
    ("transport", "ride"),
    ("cancellation", "cancellation"),
    ("booking", "booking"),
    ("invoice", "payment"),
)


def notification_type(template: str) -> str:
    for prefix, kind in _TYPE_PREFIXES:
        if template.startswith(prefix):
            return kind
    return "property"


def render(template: str, data: dict[str, Any]) -> tuple[str, str]:
    """Render a template; unknown names produce a generic update."""
    renderer = TEMPLATES.get(template)
    if renderer is None:
        return "Notification", f"Update: {json.dumps(data, default=str)}"
    return renderer(data)
