from datetime import timedelta

from sqlalchemy import select

from nolsaf_backend.modules.bookings.models import Booking, BookingStatus, CheckinCode, CodeStatus
from nolsaf_backend.modules.notifications.models import Notification

from .conftest import auth_headers

BASE = "/api/customer/cancellations"
ADMIN_BASE = "/api/admin/cancellations"


async def _submit(client, customer, code, **extra):
    return await client.post(
        f"{BASE}/request",
        json={"code": code, "reason": "Change of plans", "confirm_policy": True, **extra},
        headers=auth_headers(customer),
    )


async def test_lookup_shows_eligibility(client, customer, make_booking):
    _, plain = await make_booking(check_in_in=timedelta(days=10))
    response = await client.get(
        f"{BASE}/lookup", params={"code": plain.lower()}, headers=auth_headers(customer)
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["code_status"] == "ACTIVE"
    assert data["property_title"] == "Kilimanjaro View Lodge"
    assert data["eligibility"]["rule"] == "FREE_24H_72H"
    assert data["eligibility"]["refund_percent"] == 100
    assert data["existing_request"] is None


async def test_lookup_of_someone_elses_code_is_404(client, make_user, make_booking):
    _, plain = await make_booking()
    stranger = await make_user("CUSTOMER")
    response = await client.get(
        f"{BASE}/lookup", params={"code": plain}, headers=auth_headers(stranger)
    )
    assert response.status_code == 404
    assert response.json()["message"] == "Booking not found for this code"


async def test_request_requires_policy_confirmation(client, customer, make_booking):
    _, plain = await make_booking()
    response = await _submit(client, customer, plain, confirm_policy=False)
    assert response.status_code == 400
    assert "confirm the cancellation policy" in response.json()["message"]


async def test_ineligible_booking_is_rejected_with_eligibility(
    client, customer, make_booking
):
    _, plain = await make_booking(check_in_in=timedelta(hours=48))
    response = await _submit(client, customer, plain)
    assert response.status_code == 400
    body = response.json()
    assert body["data"]["eligible"] is False
    assert body["data"]["rule"] == "NOT_ELIGIBLE"


async def test_submit_then_duplicate_conflicts(client, db, customer, make_booking):
    booking, plain = await make_booking(check_in_in=timedelta(days=10))

    first = await _submit(client, customer, plain)
    assert first.status_code == 201
    request = first.json()["data"]["request"]
    assert request["status"] == "SUBMITTED"
    assert request["booking_code"] == plain
    assert request["policy_refund_percent"] == 100

    second = await _submit(client, customer, plain)
    assert second.status_code == 409
    assert second.json()["details"] == {"request_id": request["id"], "status": "SUBMITTED"}

    # Admins are told about the new request
    notes = (
        await db.execute(
            select(Notification).where(Notification.template == "cancellation_submitted")
        )
    ).scalars().all()
    assert len(notes) == 1
    assert notes[0].user_id is None and notes[0].owner_id is None


async def test_customer_thread(client, customer, make_user, make_booking):
    _, plain = await make_booking()
    request_id = (await _submit(client, customer, plain)).json()["data"]["request"]["id"]
    headers = auth_headers(customer)

    listing = await client.get(BASE, headers=headers)
    assert [r["id"] for r in listing.json()["data"]] == [request_id]

    posted = await client.post(
        f"{BASE}/{request_id}/messages", json={"body": "Any update?"}, headers=headers
    )
    assert posted.status_code == 201
    assert posted.json()["data"]["sender_role"] == "USER"

    detail = await client.get(f"{BASE}/{request_id}", headers=headers)
    assert [m["body"] for m in detail.json()["data"]["messages"]] == ["Any update?"]

    stranger = await make_user("CUSTOMER")
    hidden = await client.get(f"{BASE}/{request_id}", headers=auth_headers(stranger))
    assert hidden.status_code == 404


async def test_admin_refund_voids_code_and_cancels_booking(
    client, db, customer, owner, admin, make_booking
):
    booking, plain = await make_booking()
    request_id = (await _submit(client, customer, plain)).json()["data"]["request"]["id"]

    response = await client.patch(
        f"{ADMIN_BASE}/{request_id}",
        json={"status": "REFUNDED", "decision_note": "Refund sent"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "REFUNDED"
    assert data["decision_note"] == "Refund sent"
    assert data["reviewed_by"] == admin.id

    stored = await db.get(Booking, booking.id, populate_existing=True)
    assert stored.status == BookingStatus.CANCELED
    code = (
        await db.execute(
            select(CheckinCode)
            .where(CheckinCode.booking_id == booking.id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert code.status == CodeStatus.VOID

    # The voided code now explains why it cannot be used
    validate = await client.post(
        "/api/owner/bookings/validate", json={"code": plain}, headers=auth_headers(owner)
    )
    assert validate.status_code == 400
    assert validate.json()["message"] == "This booking was cancelled and refunded"
    assert validate.json()["data"] == {"cancellation_status": "REFUNDED"}

    lookup = await client.get(
        f"{BASE}/lookup", params={"code": plain}, headers=auth_headers(customer)
    )
    assert lookup.json()["data"]["eligibility"]["eligible"] is False


async def test_admin_review_without_voiding(client, db, customer, admin, make_booking):
    booking, plain = await make_booking()
    request_id = (await _submit(client, customer, plain)).json()["data"]["request"]["id"]

    response = await client.patch(
        f"{ADMIN_BASE}/{request_id}",
        json={"status": "REVIEWING"},
        headers=auth_headers(admin),
    )
    assert response.json()["data"]["status"] == "REVIEWING"

    assert (
        await db.get(Booking, booking.id, populate_existing=True)
    ).status == BookingStatus.CONFIRMED

    # The customer is notified of the change
    notes = (
        await db.execute(
            select(Notification).where(Notification.user_id == customer.id)
        )
    ).scalars().all()
    assert [n.template for n in notes] == ["cancellation_status_update"]


async def test_admin_note_alone_records_reviewer(client, customer, admin, make_booking):
    _, plain = await make_booking()
    request_id = (await _submit(client, customer, plain)).json()["data"]["request"]["id"]

    response = await client.patch(
        f"{ADMIN_BASE}/{request_id}",
        json={"decision_note": "Waiting on the owner"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "SUBMITTED"
    assert data["decision_note"] == "Waiting on the owner"
    assert data["reviewed_by"] == admin.id
    assert data["reviewed_at"] is not None


async def test_admin_message_can_set_status(client, customer, admin, make_booking):
    _, plain = await make_booking()
    request_id = (await _submit(client, customer, plain)).json()["data"]["request"]["id"]

    response = await client.post(
        f"{ADMIN_BASE}/{request_id}/messages",
        json={"body": "Approved, refund on its way", "set_status": "PROCESSING"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "PROCESSING"
    assert data["message"]["sender_role"] == "ADMIN"

    detail = await client.get(f"{ADMIN_BASE}/{request_id}", headers=auth_headers(admin))
    body = detail.json()["data"]
    assert body["status"] == "PROCESSING"
    assert body["payment"]["invoice"] is None
    assert [m["sender_role"] for m in body["messages"]] == ["ADMIN"]


async def test_admin_list_filters(client, customer, admin, make_booking):
    _, plain = await make_booking()
    await _submit(client, customer, plain)
    headers = auth_headers(admin)

    everything = await client.get(ADMIN_BASE, headers=headers)
    assert everything.json()["data"]["total"] == 1

    by_code = await client.get(ADMIN_BASE, params={"q": plain[:4]}, headers=headers)
    assert by_code.json()["data"]["total"] == 1

    refunded = await client.get(ADMIN_BASE, params={"status": "REFUNDED"}, headers=headers)
    assert refunded.json()["data"]["total"] == 0


async def test_customers_cannot_use_admin_routes(client, customer):
    response = await client.get(ADMIN_BASE, headers=auth_headers(customer))
    assert response.status_code == 403
