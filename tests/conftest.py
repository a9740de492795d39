"""Shared fixtures: a throwaway SQLite database per test and an API client."""

import os
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

import pytest

# CONFIG must be set before anything from nolsaf_backend is imported
os.environ.setdefault(
    "CONFIG", str(Path(__file__).resolve().parent.parent / "resources/config/test.yaml")
)

import httpx  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from nolsaf_backend.database import Base, get_db, import_all_models  # noqa: E402
from nolsaf_backend.main import app  # noqa: E402
from nolsaf_backend.modules.auth import crud as auth_crud  # noqa: E402
from nolsaf_backend.modules.auth import passkey_service  # noqa: E402
from nolsaf_backend.modules.auth.jwt_service import create_access_token  # noqa: E402
from nolsaf_backend.modules.auth.login_attempts import login_tracker  # noqa: E402
from nolsaf_backend.modules.auth.password_service import hash_password  # noqa: E402
from nolsaf_backend.modules.auth.session_policy import (  # noqa: E402
    invalidate_session_policy_cache,
)
from nolsaf_backend.modules.bookings import codes  # noqa: E402
from nolsaf_backend.modules.bookings.attempts import code_attempt_tracker  # noqa: E402
from nolsaf_backend.modules.bookings.models import Booking, BookingStatus  # noqa: E402
from nolsaf_backend.modules.payments.models import Invoice, InvoiceStatus  # noqa: E402
from nolsaf_backend.modules.payments.services import idempotency_cache  # noqa: E402
from nolsaf_backend.modules.properties.layout import generate_layout  # noqa: E402
from nolsaf_backend.modules.properties.models import (  # noqa: E402
    Property,
    PropertyStatus,
)
from nolsaf_backend.core.utils import utc_now  # noqa: E402

import_all_models()

TEST_PASSWORD = "Str0ng!Passw0rd"

ROOMS_SPEC = [
    {"roomType": "Deluxe", "roomsCount": 2, "pricePerNight": 50000},
    {"roomType": "Single", "roomsCount": 1, "pricePerNight": 30000},
]


@pytest.fixture(autouse=True)
def reset_caches():
    invalidate_session_policy_cache()
    login_tracker.cache.clear()
    code_attempt_tracker.cache.clear()
    idempotency_cache().clear()
    passkey_service._challenges.clear()
    yield


@pytest.fixture
async def engine(tmp_path):
    # A file per test: the test session and the app sessions each get their
    # own connection, as they would against MySQL
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'nolsaf.db'}")

    @event.listens_for(test_engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        # SQLAlchemy emits BEGIN itself (below) so begin_nested() gets real SAVEPOINTs
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        # Readers in the test session must not block writes made by the app
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    @event.listens_for(test_engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(user) -> dict[str, str]:
    token = create_access_token(user.id, user.email, user.role, expires_minutes=30)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(db):
    """Insert a user straight into the database."""
    counter = {"n": 0}

    async def _make(role: str = "CUSTOMER", email: str | None = None, full_name: str | None = None):
        counter["n"] += 1
        user = await auth_crud.create_user(
            db,
            email=email or f"{role.lower()}{counter['n']}@nolsaf.com",
            password_hash=hash_password(TEST_PASSWORD),
            full_name=full_name or f"{role.title()} {counter['n']}",
            role=role,
        )
        await db.commit()
        return user

    return _make


@pytest.fixture
async def customer(make_user):
    return await make_user("CUSTOMER")


@pytest.fixture
async def owner(make_user):
    return await make_user("OWNER")


@pytest.fixture
async def admin(make_user):
    return await make_user("ADMIN")


@pytest.fixture
async def driver(make_user):
    return await make_user("DRIVER", full_name="Juma Driver")


@pytest.fixture
async def approved_property(db, owner):
    prop = Property(
        owner_id=owner.id,
        title="Kilimanjaro View Lodge",
        type="LODGE",
        region="Arusha",
        rooms_spec=ROOMS_SPEC,
        layout=generate_layout("LODGE", ROOMS_SPEC),
        status=PropertyStatus.APPROVED,
    )
    db.add(prop)
    await db.commit()
    return prop


@pytest.fixture
def make_booking(db, approved_property, customer):
    """Insert a confirmed booking with an active check-in code.

    Returns (booking, plain_code).
    """

    async def _make(
        check_in_in: timedelta = timedelta(days=10),
        nights: int = 2,
        room_code: str | None = "Deluxe-1",
        customer_id: int | None = None,
    ):
        check_in = utc_now() + check_in_in
        booking = Booking(
            property_id=approved_property.id,
            customer_id=customer_id or customer.id,
            room_code=room_code,
            check_in=check_in,
            check_out=check_in + timedelta(days=nights),
            total_amount=Decimal("50000") * nights,
            status=BookingStatus.CONFIRMED,
        )
        db.add(booking)
        await db.flush()
        _, plain = await codes.issue_code(db, booking)
        await db.commit()
        return booking, plain

    return _make


@pytest.fixture
def make_invoice(db, owner):
    async def _make(
        booking_id: int | None,
        invoice_number: str = "INV-000001",
        total: Decimal = Decimal("100000"),
        status: InvoiceStatus = InvoiceStatus.ISSUED,
        payment_ref: str | None = None,
    ):
        invoice = Invoice(
            booking_id=booking_id,
            owner_id=owner.id,
            invoice_number=invoice_number,
            total=total,
            net_payable=total,
            currency="TZS",
            status=status,
            payment_ref=payment_ref,
        )
        db.add(invoice)
        await db.commit()
        return invoice

    return _make
