"""Cancellation request business logic."""

from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import ConflictError, NotFoundError, ValidationError
from ...core.logging import get_logger
from ...core.utils import truncate, utc_now
from ..auth.schemas import AuthenticatedUser
from ..bookings import codes
from ..bookings import crud as booking_crud
from ..bookings.models import Booking, BookingStatus, CheckinCode, CodeStatus
from ..bookings.schemas import BookingResponse
from ..notifications.services import notify_admins, notify_user
from ..payments import crud as payment_crud
from ..payments.schemas import InvoiceResponse, PaymentEventResponse
from ..properties import crud as property_crud
from . import crud
from .eligibility import compute_eligibility
from .models import (
    MESSAGE_MAX_LENGTH,
    NOTE_MAX_LENGTH,
    REASON_MAX_LENGTH,
    VOIDING_STATUSES,
    CancellationMessage,
    CancellationRequest,
    CancellationStatus,
    SenderRole,
)
from .schemas import (
    AdminCancellationDetailResponse,
    CancellationDetailResponse,
    CancellationLookupResponse,
    CancellationMessageResponse,
    CancellationRequestCreate,
    CancellationRequestResponse,
    CancellationStatusUpdate,
    CancellationSubmittedResponse,
    EligibilityResponse,
    PaymentInfo,
)

logger = get_logger(__name__)

BOOKING_NOT_FOUND = "Booking not found for this code"


async def _find_own_booking(
    db: AsyncSession, current_user: AuthenticatedUser, code: str
) -> tuple[Booking, CheckinCode]:
    """Resolve a booking code to one of the caller's bookings.

    Raises:
        ValidationError: If the code is empty
        NotFoundError: If no booking of the caller has this code
    """
    plain = codes.normalize_code(code)
    if not plain:
        raise ValidationError("Booking code is required")

    checkin_code = await booking_crud.get_code_by_hash(db, codes.hash_code(plain))
    booking = None
    if checkin_code:
        booking = await booking_crud.get_booking_by_id(db, checkin_code.booking_id)
    if booking is None or booking.customer_id != current_user.id:
        raise NotFoundError(BOOKING_NOT_FOUND)
    return booking, checkin_code


def _eligibility(booking: Booking, checkin_code: CheckinCode | None):
    return compute_eligibility(
        booking.status,
        checkin_code.status if checkin_code else None,
        booking.created_at,
        booking.check_in,
        utc_now(),
    )


# ----- Customer -----


async def lookup(
    db: AsyncSession, current_user: AuthenticatedUser, code: str
) -> CancellationLookupResponse:
    """Show a booking, its refund eligibility and any request already made."""
    booking, checkin_code = await _find_own_booking(db, current_user, code)
    prop = await property_crud.get_property_by_id(db, booking.property_id)
    existing = await crud.get_request_for_booking(db, booking.id, current_user.id)

    return CancellationLookupResponse(
        booking=BookingResponse.model_validate(booking),
        property_title=prop.title if prop else None,
        code_status=checkin_code.status.value,
        eligibility=EligibilityResponse(**_eligibility(booking, checkin_code).to_dict()),
        existing_request=(
            CancellationRequestResponse.model_validate(existing) if existing else None
        ),
    )


async def submit_request(
    db: AsyncSession,
    current_user: AuthenticatedUser,
    data: CancellationRequestCreate,
) -> CancellationSubmittedResponse:
    """File a cancellation claim for review.

    Only bookings the policy makes eligible can be claimed on the platform,
    and each booking can be claimed once.

    Raises:
        ValidationError: If the policy is not confirmed or the booking is not
            eligible (the eligibility is attached as ``data``)
        NotFoundError: If the code does not match one of the caller's bookings
        ConflictError: If a request already exists for the booking
    """
    if not codes.normalize_code(data.code):
        raise ValidationError("Booking code is required")
    if not data.confirm_policy:
        raise ValidationError("Please confirm the cancellation policy to proceed.")

    booking, checkin_code = await _find_own_booking(db, current_user, data.code)
    eligibility = _eligibility(booking, checkin_code)
    if not eligibility.eligible:
        raise ValidationError(eligibility.reason, data=eligibility.to_dict())

    existing = await crud.get_request_for_booking(db, booking.id, current_user.id)
    if existing:
        raise ConflictError(
            "A cancellation request has already been submitted for this booking code. "
            "Each booking code can only be used once for cancellation requests.",
            details={"request_id": existing.id, "status": existing.status.value},
        )

    reason = truncate(data.reason, REASON_MAX_LENGTH)
    request = await crud.create_request(
        db,
        booking_id=booking.id,
        user_id=current_user.id,
        booking_code=checkin_code.code_visible,
        reason=reason or None,
        status=CancellationStatus.SUBMITTED,
        policy_eligible=eligibility.eligible,
        policy_refund_percent=eligibility.refund_percent,
        policy_rule=eligibility.rule,
    )
    await notify_admins(
        db,
        "cancellation_submitted",
        {
            "request_id": request.id,
            "booking_id": booking.id,
            "booking_code": request.booking_code,
        },
    )
    await db.commit()

    logger.info(
        "Cancellation request submitted",
        extra={"request_id": request.id, "booking_id": booking.id},
    )
    return CancellationSubmittedResponse(
        request=CancellationRequestResponse.model_validate(request),
        eligibility=EligibilityResponse(**eligibility.to_dict()),
    )


async def list_user_requests(
    db: AsyncSession, current_user: AuthenticatedUser
) -> list[CancellationRequest]:
    return await crud.get_user_requests(db, current_user.id)


async def _detail(
    db: AsyncSession, request: CancellationRequest
) -> CancellationDetailResponse:
    booking = await booking_crud.get_booking_by_id(db, request.booking_id)
    messages = await crud.get_messages(db, request.id)
    return CancellationDetailResponse(
        **CancellationRequestResponse.model_validate(request).model_dump(),
        booking=BookingResponse.model_validate(booking) if booking else None,
        messages=[CancellationMessageResponse.model_validate(m) for m in messages],
    )


async def get_user_request(
    db: AsyncSession, current_user: AuthenticatedUser, request_id: int
) -> CancellationDetailResponse:
    request = await crud.get_user_request(db, request_id, current_user.id)
    if not request:
        raise NotFoundError("Cancellation request not found")
    return await _detail(db, request)


def _message_body(body: str) -> str:
    text = (body or "").strip()
    if not text:
        raise ValidationError("Message body is required")
    return truncate(text, MESSAGE_MAX_LENGTH)


async def add_user_message(
    db: AsyncSession,
    current_user: AuthenticatedUser,
    request_id: int,
    body: str,
) -> CancellationMessage:
    text = _message_body(body)
    request = await crud.get_user_request(db, request_id, current_user.id)
    if not request:
        raise NotFoundError("Cancellation request not found")

    message = await crud.create_message(
        db,
        request_id=request.id,
        sender_id=current_user.id,
        sender_role=SenderRole.USER,
        body=text,
    )
    await notify_admins(
        db,
        "cancellation_message",
        {
            "request_id": request.id,
            "booking_id": request.booking_id,
            "booking_code": request.booking_code,
        },
    )
    await db.commit()
    return message


# ----- Admin -----


async def list_requests(
    db: AsyncSession,
    status: CancellationStatus | None,
    q: str | None,
    skip: int,
    limit: int,
) -> tuple[list[CancellationRequest], int]:
    return await crud.get_requests(db, status=status, q=q, skip=skip, limit=limit)


async def _get_request(db: AsyncSession, request_id: int) -> CancellationRequest:
    request = await crud.get_request_by_id(db, request_id)
    if not request:
        raise NotFoundError("Cancellation request not found")
    return request


async def _payment_info(db: AsyncSession, booking_id: int) -> PaymentInfo:
    invoice = await payment_crud.get_invoice_for_booking(db, booking_id)
    if not invoice:
        return PaymentInfo()
    events = await payment_crud.get_events_for_invoice(db, invoice.id)
    return PaymentInfo(
        invoice=InvoiceResponse.model_validate(invoice),
        events=[PaymentEventResponse.model_validate(e) for e in events],
        has_transaction_id=bool(invoice.payment_ref) or any(e.event_id for e in events),
    )


async def get_admin_request(
    db: AsyncSession, request_id: int
) -> AdminCancellationDetailResponse:
    request = await _get_request(db, request_id)
    detail = await _detail(db, request)
    return AdminCancellationDetailResponse(
        **detail.model_dump(),
        payment=await _payment_info(db, request.booking_id),
    )


async def _apply_status(
    db: AsyncSession,
    request: CancellationRequest,
    status: CancellationStatus,
    reviewer_id: int,
) -> None:
    """Move a request to ``status``; voiding statuses take the booking off the books."""
    request.status = status
    request.reviewed_by = reviewer_id
    request.reviewed_at = utc_now()

    if status not in VOIDING_STATUSES:
        return
    checkin_code = await booking_crud.get_code_for_booking(db, request.booking_id)
    if checkin_code and checkin_code.status != CodeStatus.VOID:
        await codes.void_code(
            db, request.booking_id, reason=f"Cancellation {status.value.lower()}"
        )
    booking = await booking_crud.get_booking_by_id(db, request.booking_id)
    if booking and booking.status != BookingStatus.CANCELED:
        booking.status = BookingStatus.CANCELED
    await db.flush()
    logger.info(
        "Booking canceled",
        extra={"booking_id": request.booking_id, "request_id": request.id},
    )


async def update_request(
    db: AsyncSession,
    current_user: AuthenticatedUser,
    request_id: int,
    data: CancellationStatusUpdate,
) -> CancellationRequest:
    """Record an admin decision and tell the customer."""
    request = await _get_request(db, request_id)

    if data.status is not None:
        await _apply_status(db, request, data.status, current_user.id)
    if data.decision_note is not None:
        note = data.decision_note.strip()
        request.decision_note = truncate(note, NOTE_MAX_LENGTH) if note else None
    # A note alone is still a review
    request.reviewed_by = current_user.id
    request.reviewed_at = utc_now()

    await notify_user(
        db,
        request.user_id,
        "cancellation_status_update",
        {
            "request_id": request.id,
            "booking_code": request.booking_code,
            "status": request.status.value,
            "decision_note": request.decision_note,
        },
    )
    await db.commit()
    await db.refresh(request)
    return request


async def add_admin_message(
    db: AsyncSession,
    current_user: AuthenticatedUser,
    request_id: int,
    body: str,
    set_status: CancellationStatus | None = None,
) -> tuple[CancellationMessage, CancellationStatus]:
    """Reply to a customer, optionally moving the request in the same transaction."""
    text = _message_body(body)
    request = await _get_request(db, request_id)

    message = await crud.create_message(
        db,
        request_id=request.id,
        sender_id=current_user.id,
        sender_role=SenderRole.ADMIN,
        body=text,
    )
    if set_status is not None:
        await _apply_status(db, request, set_status, current_user.id)

    await notify_user(
        db,
        request.user_id,
        "cancellation_message",
        {
            "request_id": request.id,
            "booking_code": request.booking_code,
            "status": request.status.value,
        },
    )
    await db.commit()
    return message, request.status
