"""CRUD operations for invoices and payment events."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Invoice, InvoiceStatus, PaymentEvent

# ----- Invoice CRUD -----


async def get_invoice_by_id(db: AsyncSession, invoice_id: int) -> Invoice | None:
    result = await db.execute(select(Invoice).where(Invoice.id == invoice_id))
    return result.scalar_one_or_none()


async def get_invoice_by_payment_ref(
    db: AsyncSession, payment_ref: str
) -> Invoice | None:
    result = await db.execute(select(Invoice).where(Invoice.payment_ref == payment_ref))
    return result.scalar_one_or_none()


async def get_invoice_by_number(
    db: AsyncSession, invoice_number: str
) -> Invoice | None:
    result = await db.execute(
        select(Invoice).where(Invoice.invoice_number == invoice_number)
    )
    return result.scalar_one_or_none()


async def get_invoice_for_booking(db: AsyncSession, booking_id: int) -> Invoice | None:
    result = await db.execute(
        select(Invoice)
        .where(Invoice.booking_id == booking_id)
        .order_by(Invoice.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def count_paid_invoices(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Invoice)
        .where(Invoice.status == InvoiceStatus.PAID)
    )
    return result.scalar() or 0


# ----- Payment Event CRUD -----


async def get_event_by_event_id(db: AsyncSession, event_id: str) -> PaymentEvent | None:
    result = await db.execute(
        select(PaymentEvent).where(PaymentEvent.event_id == event_id)
    )
    return result.scalar_one_or_none()


async def get_events_for_invoice(
    db: AsyncSession,
    invoice_id: int,
    provider: str | None = None,
    limit: int | None = None,
) -> list[PaymentEvent]:
    """Events for an invoice, newest first."""
    query = select(PaymentEvent).where(PaymentEvent.invoice_id == invoice_id)
    if provider:
        query = query.where(PaymentEvent.provider == provider)
    query = query.order_by(PaymentEvent.created_at.desc(), PaymentEvent.id.desc())
    if limit:
        query = query.limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_event(db: AsyncSession, **fields) -> PaymentEvent:
    event = PaymentEvent(**fields)
    db.add(event)
    await db.flush()
    return event
