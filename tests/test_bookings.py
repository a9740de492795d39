from datetime import datetime, timedelta, timezone

from nolsaf_backend.core.utils import utc_now
from nolsaf_backend.modules.bookings import codes
from nolsaf_backend.modules.bookings.attempts import BookingCodeAttemptTracker
from nolsaf_backend.modules.bookings.codes import WindowStatus
from nolsaf_backend.modules.bookings.models import BookingStatus, CodeStatus

from .conftest import auth_headers


def _stay(days_ahead: int = 5, nights: int = 2) -> dict:
    check_in = utc_now() + timedelta(days=days_ahead)
    return {
        "check_in": check_in.isoformat(),
        "check_out": (check_in + timedelta(days=nights)).isoformat(),
    }


# ----- Codes -----


def test_generated_codes_avoid_lookalikes():
    for _ in range(50):
        code = codes.generate_booking_code()
        assert len(code) == 8
        assert not set(code) & set("01OI")


def test_normalize_and_hash_ignore_case_and_whitespace():
    assert codes.normalize_code("  ab cd\t12 ") == "ABCD12"
    assert codes.hash_code("abcd 1234") == codes.hash_code("ABCD1234")
    assert len(codes.hash_code("ABCD1234")) == 64


def test_checkin_window_status():
    check_in = datetime(2024, 5, 10, 14, tzinfo=timezone.utc)
    check_out = datetime(2024, 5, 12, 10, tzinfo=timezone.utc)
    at = lambda *a: datetime(*a, tzinfo=timezone.utc)  # noqa: E731

    assert codes.checkin_window_status(check_in, check_out, at(2024, 5, 9, 23)) == (
        WindowStatus.BEFORE_CHECKIN
    )
    # Window opens at the start of the check-in day, not the check-in hour
    assert codes.checkin_window_status(check_in, check_out, at(2024, 5, 10, 0)) == (
        WindowStatus.IN_WINDOW
    )
    assert codes.checkin_window_status(check_in, check_out, at(2024, 5, 12, 10)) == (
        WindowStatus.AFTER_CHECKOUT
    )


async def test_issue_code_reuses_active_code(db, make_booking):
    booking, plain = await make_booking()
    again, plain_again = await codes.issue_code(db, booking)
    assert plain_again == plain
    assert again.status == CodeStatus.ACTIVE


async def test_void_then_reissue_replaces_code(db, make_booking):
    booking, plain = await make_booking()
    voided = await codes.void_code(db, booking.id, reason="test")
    assert voided.status == CodeStatus.VOID

    _, fresh = await codes.issue_code(db, booking)
    assert fresh != plain
    result = await codes.validate_booking_code(db, fresh)
    assert result.valid


# ----- Customer API -----


async def test_create_booking_prices_room_and_returns_code(
    client, customer, approved_property
):
    response = await client.post(
        "/api/customer/bookings",
        json={"property_id": approved_property.id, "room_code": "Deluxe-2", **_stay(nights=3)},
        headers=auth_headers(customer),
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "CONFIRMED"
    assert float(data["total_amount"]) == 150000
    assert len(data["booking_code"]) == 8


async def test_create_booking_reads_dates_without_offset_as_utc(
    client, customer, approved_property
):
    check_in = (utc_now() + timedelta(days=5)).replace(microsecond=0)
    response = await client.post(
        "/api/customer/bookings",
        json={
            "property_id": approved_property.id,
            "room_code": "Single-1",
            "check_in": check_in.isoformat(),
            "check_out": (check_in + timedelta(days=2)).replace(tzinfo=None).isoformat(),
        },
        headers=auth_headers(customer),
    )
    assert response.status_code == 201
    assert float(response.json()["data"]["total_amount"]) == 60000

    inverted = await client.post(
        "/api/customer/bookings",
        json={
            "property_id": approved_property.id,
            "check_in": check_in.isoformat(),
            "check_out": check_in.replace(tzinfo=None).isoformat(),
        },
        headers=auth_headers(customer),
    )
    assert inverted.status_code == 400


async def test_create_booking_rejects_unknown_room(client, customer, approved_property):
    response = await client.post(
        "/api/customer/bookings",
        json={"property_id": approved_property.id, "room_code": "Penthouse-1", **_stay()},
        headers=auth_headers(customer),
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


async def test_double_booking_a_room_conflicts(
    client, customer, approved_property, make_booking
):
    await make_booking(check_in_in=timedelta(days=5), nights=2, room_code="Deluxe-1")
    response = await client.post(
        "/api/customer/bookings",
        json={"property_id": approved_property.id, "room_code": "Deluxe-1", **_stay(6, 2)},
        headers=auth_headers(customer),
    )
    assert response.status_code == 409


async def test_booking_unlisted_property_is_404(client, customer):
    response = await client.post(
        "/api/customer/bookings",
        json={"property_id": 999, **_stay()},
        headers=auth_headers(customer),
    )
    assert response.status_code == 404


async def test_customer_lists_and_reads_own_bookings(
    client, customer, make_user, make_booking
):
    booking, _ = await make_booking()
    headers = auth_headers(customer)

    listing = await client.get("/api/customer/bookings", headers=headers)
    assert listing.status_code == 200
    assert listing.json()["data"]["total"] == 1

    detail = await client.get(f"/api/customer/bookings/{booking.id}", headers=headers)
    assert detail.json()["data"]["code_status"] == "ACTIVE"
    assert detail.json()["data"]["property_title"] == "Kilimanjaro View Lodge"

    stranger = await make_user("CUSTOMER")
    other = await client.get(
        f"/api/customer/bookings/{booking.id}", headers=auth_headers(stranger)
    )
    assert other.status_code == 404


async def test_requires_authentication(client):
    response = await client.get("/api/customer/bookings")
    assert response.status_code == 401
    assert response.json()["success"] is False


# ----- Owner check-in -----


async def test_owner_validates_then_checks_in_and_out(client, db, owner, make_booking):
    booking, plain = await make_booking(check_in_in=timedelta(hours=-1), nights=2)
    headers = auth_headers(owner)

    preview = await client.post(
        "/api/owner/bookings/validate", json={"code": plain.lower()}, headers=headers
    )
    assert preview.status_code == 200
    assert preview.json()["data"]["window_status"] == "IN_WINDOW"

    checkin = await client.post(
        "/api/owner/bookings/confirm-checkin", json={"code": plain}, headers=headers
    )
    assert checkin.status_code == 200
    assert checkin.json()["data"]["status"] == "CHECKED_IN"

    # Confirming again is a no-op
    again = await client.post(
        "/api/owner/bookings/confirm-checkin", json={"code": plain}, headers=headers
    )
    assert again.status_code == 200

    checked_in = await client.get("/api/owner/bookings/checked-in", headers=headers)
    assert [b["id"] for b in checked_in.json()["data"]] == [booking.id]

    checkout = await client.post(
        f"/api/owner/bookings/{booking.id}/checkout", headers=headers
    )
    assert checkout.json()["data"]["status"] == BookingStatus.CHECKED_OUT.value


async def test_checkin_before_window_is_rejected(client, owner, make_booking):
    _, plain = await make_booking(check_in_in=timedelta(days=3))
    response = await client.post(
        "/api/owner/bookings/confirm-checkin",
        json={"code": plain},
        headers=auth_headers(owner),
    )
    assert response.status_code == 400
    assert response.json()["data"] == {"window_status": "BEFORE_CHECKIN"}


async def test_other_owner_cannot_use_code(client, make_user, make_booking):
    _, plain = await make_booking(check_in_in=timedelta(hours=-1))
    other_owner = await make_user("OWNER")
    response = await client.post(
        "/api/owner/bookings/validate",
        json={"code": plain},
        headers=auth_headers(other_owner),
    )
    assert response.status_code == 400
    assert "does not belong" in response.json()["message"]


async def test_unknown_code_is_invalid(client, owner):
    response = await client.post(
        "/api/owner/bookings/validate",
        json={"code": "ZZZZZZZZ"},
        headers=auth_headers(owner),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid booking code"


async def test_checkout_requires_checked_in(client, owner, make_booking):
    booking, _ = await make_booking()
    response = await client.post(
        f"/api/owner/bookings/{booking.id}/checkout", headers=auth_headers(owner)
    )
    assert response.status_code == 400


async def test_customers_cannot_use_owner_routes(client, customer):
    response = await client.post(
        "/api/owner/bookings/validate",
        json={"code": "ABCDEFGH"},
        headers=auth_headers(customer),
    )
    assert response.status_code == 403


# ----- Wrong-code lockout -----


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_code_tracker_locks_after_three_failures_then_lifts():
    clock = FakeClock()
    tracker = BookingCodeAttemptTracker(clock=clock)
    assert not tracker.record_failure(7)
    assert not tracker.record_failure(7)
    assert tracker.remaining_attempts(7) == 1
    assert tracker.record_failure(7)

    assert tracker.locked_for(7) == 5 * 60
    assert tracker.locked_for(8) == 0
    # Clearing after a good code does not lift a running lock
    tracker.clear(7)
    assert tracker.locked_for(7) == 5 * 60

    clock.now += 5 * 60 + 1
    assert tracker.locked_for(7) == 0
    assert tracker.remaining_attempts(7) == 3


def test_code_tracker_forgets_a_stale_streak():
    clock = FakeClock()
    tracker = BookingCodeAttemptTracker(clock=clock)
    tracker.record_failure(7)
    tracker.record_failure(7)
    clock.now += 15 * 60 + 1
    assert not tracker.record_failure(7)
    assert tracker.remaining_attempts(7) == 2


def test_code_tracker_clear_resets_streak():
    tracker = BookingCodeAttemptTracker(clock=FakeClock())
    tracker.record_failure(7)
    tracker.record_failure(7)
    tracker.clear(7)
    assert not tracker.record_failure(7)


async def test_owner_locked_out_after_repeated_wrong_codes(client, owner, make_booking):
    _, plain = await make_booking(check_in_in=timedelta(hours=-1))
    headers = auth_headers(owner)

    for guess in ("AAAAAAAA", "BBBBBBBB", "CCCCCCCC"):
        wrong = await client.post(
            "/api/owner/bookings/validate", json={"code": guess}, headers=headers
        )
        assert wrong.status_code == 400

    # Even the right code is refused while the lock runs
    locked = await client.post(
        "/api/owner/bookings/confirm-checkin", json={"code": plain}, headers=headers
    )
    assert locked.status_code == 429
    assert 0 < locked.json()["data"]["retry_after_seconds"] <= 5 * 60


async def test_window_errors_do_not_count_as_wrong_codes(client, owner, make_booking):
    _, plain = await make_booking(check_in_in=timedelta(days=3))
    headers = auth_headers(owner)
    for _ in range(4):
        early = await client.post(
            "/api/owner/bookings/confirm-checkin", json={"code": plain}, headers=headers
        )
        assert early.status_code == 400
        assert early.json()["data"] == {"window_status": "BEFORE_CHECKIN"}
