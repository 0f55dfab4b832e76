"""
Database configuration for the RentFlow back office.

Every landlord-owned row carries an owner_id; the engine never reads across
owners except for billing-reference lookups, which are unique system-wide.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import DateTime, Integer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Mapped, declarative_base, mapped_column
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import func

from .config import settings
from .core.exceptions import ConcurrencyConflictError
from .core.logging import get_logger

logger = get_logger(__name__)


def build_engine_kwargs(database_url: str) -> dict:
    """Engine options per backend.

    MySQL needs SSL settings; in-memory SQLite must share one connection.
    """
    if database_url.startswith("mysql+asyncmy"):
        return {
            "connect_args": {
                "ssl": {
                    "ssl_check_hostname": settings.database_ssl_check_hostname,
                    "ssl_verify_cert": settings.database_ssl_verify_cert,
                },
            },
            "pool_pre_ping": True,
            "pool_recycle": settings.database_pool_recycle,
        }
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return {"poolclass": StaticPool}
    return {}


# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    **build_engine_kwargs(settings.database_url),
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Base class
Base = declarative_base()


class TimestampMixin:
    """Mixin to add created and updated timestamps to models."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class OwnerScoped:
    """Mixin for rows that belong to a single landlord."""

    owner_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)


@asynccontextmanager
async def unit_of_work(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit everything done inside the block, or roll all of it back.

    A version mismatch on a versioned row (another writer got there first)
    surfaces as ConcurrencyConflictError.
    """
    try:
        yield db
        await db.commit()
    except StaleDataError as e:
        await db.rollback()
        raise ConcurrencyConflictError(
            "Record was modified concurrently", details={"error": str(e)}
        ) from e
    except Exception:
        await db.rollback()
        raise


def load_models() -> None:
    """Register every mapped table on Base.metadata."""
    from .modules.payment_management import models as payment_models  # noqa: F401
    from .modules.property_management import models as property_models  # noqa: F401
    from .modules.tenant_management import models as tenant_models  # noqa: F401


async def init_db():
    """Create all tables; migrations are the way in deployed environments."""
    load_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")
