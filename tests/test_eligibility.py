from datetime import datetime, timedelta, timezone

from nolsaf_backend.modules.cancellations.eligibility import compute_eligibility

BASE = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def _check(created_hours_ago: float, checkin_in_hours: float, **kwargs):
    return compute_eligibility(
        kwargs.get("booking_status", "CONFIRMED"),
        kwargs.get("code_status", "ACTIVE"),
        BASE - timedelta(hours=created_hours_ago),
        BASE + timedelta(hours=checkin_in_hours),
        BASE,
    )


def test_free_refund_when_recent_and_far_enough():
    result = _check(2, 80)
    assert result.eligible
    assert result.refund_percent == 100
    assert result.rule == "FREE_24H_72H"
    assert result.next_step == "PLATFORM"


def test_free_refund_boundaries_are_inclusive():
    result = _check(24, 72)
    assert result.rule == "FREE_24H_72H"
    assert result.refund_percent == 100


def test_partial_refund_after_free_window():
    result = _check(25, 96)
    assert result.eligible
    assert result.refund_percent == 50
    assert result.rule == "PARTIAL_50_96H"


def test_recent_booking_under_72h_is_not_eligible():
    result = _check(1, 71)
    assert not result.eligible
    assert result.rule == "NOT_ELIGIBLE"
    assert result.next_step == "EMAIL"
    assert "cancellation@nolsaf.com" in result.reason


def test_old_booking_under_96h_is_not_eligible():
    result = _check(48, 95)
    assert not result.eligible
    assert result.refund_percent == 0
    assert result.rule == "NOT_ELIGIBLE"


def test_at_checkin_is_not_eligible():
    result = _check(1, 0)
    assert not result.eligible
    assert result.rule == "AFTER_CHECKIN"


def test_after_checkin_is_not_eligible():
    result = _check(100, -5)
    assert result.rule == "AFTER_CHECKIN"
    assert result.hours_before_checkin < 0


def test_canceled_booking_short_circuits():
    result = _check(1, 200, booking_status="CANCELED")
    assert not result.eligible
    assert result.rule is None
    assert result.reason == "This booking is already canceled."


def test_missing_code():
    result = _check(1, 200, code_status=None)
    assert not result.eligible
    assert result.reason == "Booking code is missing."


def test_inactive_code():
    result = _check(1, 200, code_status="VOID")
    assert not result.eligible
    assert result.reason == "This booking code is not active."


def test_naive_timestamps_are_treated_as_utc():
    result = compute_eligibility(
        "CONFIRMED",
        "ACTIVE",
        (BASE - timedelta(hours=2)).replace(tzinfo=None),
        (BASE + timedelta(hours=100)).replace(tzinfo=None),
        BASE,
    )
    assert result.rule == "FREE_24H_72H"
    assert round(result.hours_since_booking) == 2


def test_to_dict_has_every_field():
    data = _check(2, 80).to_dict()
    assert set(data) == {
        "eligible",
        "refund_percent",
        "rule",
        "next_step",
        "reason",
        "hours_since_booking",
        "hours_before_checkin",
    }
