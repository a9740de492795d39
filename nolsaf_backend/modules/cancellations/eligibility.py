"""Refund eligibility for customer cancellations.

Rules, first match wins:

- booking already canceled, code missing or not ACTIVE: not eligible
- at or after check-in: not eligible, contact by email
- booked within the last 24h and check-in at least 72h away: full refund
- check-in at least 96h away: 50% refund
- anything else: not eligible, contact by email
"""

from dataclasses import asdict, dataclass
from datetime import datetime

from ...core.utils import ensure_aware, hours_between

CANCELLATION_EMAIL = "cancellation@nolsaf.com"

FREE_WINDOW_HOURS = 24
FREE_NOTICE_HOURS = 72
PARTIAL_NOTICE_HOURS = 96


@dataclass(frozen=True)
class Eligibility:
    eligible: bool
    refund_percent: int
    rule: str | None
    next_step: str
    reason: str
    hours_since_booking: float | None = None
    hours_before_checkin: float | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def _status(value) -> str | None:
    if value is None:
        return None
    return getattr(value, "value", value)


def compute_eligibility(
    booking_status,
    code_status,
    created_at: datetime,
    check_in: datetime,
    now: datetime,
) -> Eligibility:
    """Decide whether a booking can be cancelled on the platform.

    Args:
        booking_status: Booking status (enum or string)
        code_status: Check-in code status, or None if the booking has no code
        created_at: When the booking was made
        check_in: Check-in time
        now: Reference time

    Returns:
        Eligibility with refund percent, rule and next step
    """
    if _status(booking_status) == "CANCELED":
        return Eligibility(
            eligible=False,
            refund_percent=0,
            rule=None,
            next_step="EMAIL",
            reason="This booking is already canceled.",
        )
    if not _status(code_status):
        return Eligibility(
            eligible=False,
            refund_percent=0,
            rule=None,
            next_step="EMAIL",
            reason="Booking code is missing.",
        )
    if _status(code_status) != "ACTIVE":
        return Eligibility(
            eligible=False,
            refund_percent=0,
            rule=None,
            next_step="EMAIL",
            reason="This booking code is not active.",
        )

    now = ensure_aware(now)
    check_in = ensure_aware(check_in)
    hours_since = hours_between(created_at, now)
    hours_before = hours_between(now, check_in)

    if now >= check_in:
        return Eligibility(
            eligible=False,
            refund_percent=0,
            rule="AFTER_CHECKIN",
            next_step="EMAIL",
            reason=(
                "Cancellations after check-in are generally not eligible for "
                "refunds. For exceptional circumstances, please contact "
                f"{CANCELLATION_EMAIL}."
            ),
            hours_since_booking=hours_since,
            hours_before_checkin=hours_before,
        )

    if hours_since <= FREE_WINDOW_HOURS and hours_before >= FREE_NOTICE_HOURS:
        return Eligibility(
            eligible=True,
            refund_percent=100,
            rule="FREE_24H_72H",
            next_step="PLATFORM",
            reason=(
                "Eligible for a full refund: booked within the last 24 hours and "
                "check-in is at least 72 hours away."
            ),
            hours_since_booking=hours_since,
            hours_before_checkin=hours_before,
        )

    if hours_before >= PARTIAL_NOTICE_HOURS:
        return Eligibility(
            eligible=True,
            refund_percent=50,
            rule="PARTIAL_50_96H",
            next_step="PLATFORM",
            reason="Eligible for a 50% refund: check-in is at least 96 hours away.",
            hours_since_booking=hours_since,
            hours_before_checkin=hours_before,
        )

    return Eligibility(
        eligible=False,
        refund_percent=0,
        rule="NOT_ELIGIBLE",
        next_step="EMAIL",
        reason=(
            "This booking does not qualify for platform cancellation under our "
            f"policy. Please contact {CANCELLATION_EMAIL} for assistance."
        ),
        hours_since_booking=hours_since,
        hours_before_checkin=hours_before,
    )
