"""
Async database engine, session factory and declarative base.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Mapped, declarative_base, mapped_column
from sqlalchemy.sql import func

from .config import Settings, settings
from .core.logging import get_logger

logger = get_logger(__name__)


def engine_connect_args(config: Settings) -> dict[str, Any]:
    """Driver options for the configured URL (TLS for MySQL, threads for SQLite)."""
    url = config.database_url
    if url.startswith("mysql+asyncmy"):
        return {
            "ssl": {
                "ssl_check_hostname": config.database_ssl_check_hostname,
                "ssl_verify_cert": config.database_ssl_verify_cert,
                "ssl_verify_identity": config.database_ssl_verify_identity,
            },
        }
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


def _engine_options(config: Settings) -> dict[str, Any]:
    options: dict[str, Any] = {
        "echo": config.database_echo,
        "connect_args": engine_connect_args(config),
        "pool_pre_ping": True,
    }
    if not config.database_url.startswith("sqlite"):
        # MySQL drops idle connections after wait_timeout
        options["pool_recycle"] = 3600
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings))

AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

Base = declarative_base()


class TimestampMixin:
    """Mixin to add created and updated timestamps to models."""

    # Server-generated timestamps are fetched on flush; async sessions
    # cannot lazy-load them afterwards.
    __mapper_args__ = {"eager_defaults": True}

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


async def get_db() -> AsyncSession:
    """Request-scoped session.

    Services commit explicitly; whatever is still pending when a request
    fails is rolled back here.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def import_all_models() -> None:
    """Register every module's models on ``Base.metadata``."""
    from .modules.auth import models as auth_models  # noqa: F401
    from .modules.bookings import models as booking_models  # noqa: F401
    from .modules.cancellations import models as cancellation_models  # noqa: F401
    from .modules.notifications import models as notification_models  # noqa: F401
    from .modules.payments import models as payment_models  # noqa: F401
    from .modules.properties import models as property_models  # noqa: F401
    from .modules.transport import models as transport_models  # noqa: F401
