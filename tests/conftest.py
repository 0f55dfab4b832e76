"""Pytest configuration and fixtures."""

import os
from pathlib import Path

# Settings load at import time, so CONFIG must point somewhere first
os.environ.setdefault(
    "CONFIG",
    str(Path(__file__).resolve().parents[1] / "resources" / "config" / "test.yaml"),
)

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from rentflow_backend.core.locks import entity_locks  # noqa: E402
from rentflow_backend.database import Base  # noqa: E402
from rentflow_backend.modules.payment_management import (  # noqa: E402, F401
    models as payment_models,
)
from rentflow_backend.modules.property_management import (  # noqa: E402
    services as property_services,
)
from rentflow_backend.modules.property_management.models import Property  # noqa: E402
from rentflow_backend.modules.property_management.schemas import (  # noqa: E402
    PropertyCreate,
    UnitTypeDeclaration,
)
from rentflow_backend.modules.tenant_management import (  # noqa: E402
    services as tenant_services,
)
from rentflow_backend.modules.tenant_management.models import (  # noqa: E402
    PaymentStatus,
    Tenant,
)
from rentflow_backend.modules.tenant_management.schemas import TenantCreate  # noqa: E402

OWNER_ID = 7


@pytest.fixture(autouse=True)
def clear_entity_locks():
    """Locks are bound to an event loop; every test gets a fresh registry."""
    entity_locks.clear()
    yield
    entity_locks.clear()


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def file_engine(tmp_path):
    """File-backed database; concurrent sessions each get their own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'rentflow.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def file_session_factory(file_engine):
    return async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def owner_id() -> int:
    return OWNER_ID


@pytest.fixture
def sunrise_create() -> PropertyCreate:
    """Property SUN: bedsitters A1-A3 at 8,000 and one-bedrooms B1-B2 at 20,000."""
    return PropertyCreate(
        name="Sunrise Apartments",
        location="Kilimani",
        paybill="522533",
        account_prefix="SUN",
        unit_types=[
            UnitTypeDeclaration(
                type="bedsitter",
                start_unit="A1",
                end_unit="A3",
                rent_amount=Decimal("8000"),
            ),
            UnitTypeDeclaration(
                type="1bedroom",
                start_unit="B1",
                end_unit="B2",
                rent_amount=Decimal("20000"),
            ),
        ],
    )


@pytest.fixture
async def sunrise(
    db: AsyncSession, owner_id: int, sunrise_create: PropertyCreate
) -> Property:
    """Property SUN with five units."""
    return await property_services.create_property(db, owner_id, sunrise_create)


@pytest.fixture
async def lakeview(db: AsyncSession, owner_id: int) -> Property:
    """Property LAKE with two one-bedrooms at 25,000."""
    return await property_services.create_property(
        db,
        owner_id,
        PropertyCreate(
            name="Lakeview Court",
            paybill="522533",
            account_prefix="LAKE",
            unit_types=[
                UnitTypeDeclaration(
                    type="1bedroom",
                    start_unit="L1",
                    end_unit="L2",
                    rent_amount=Decimal("25000"),
                )
            ],
        ),
    )


@pytest.fixture
def onboard(db: AsyncSession, owner_id: int):
    """Onboard a tenant onto a property; returns the tenant."""

    async def _onboard(
        property_id: int,
        unit_type: str = "1bedroom",
        name: str = "Jane Wanjiku",
        preferred_unit_number: str | None = None,
    ) -> Tenant:
        return await tenant_services.onboard_tenant(
            db,
            owner_id,
            TenantCreate(
                name=name,
                phone="0712345678",
                property_id=property_id,
                unit_type=unit_type,
                preferred_unit_number=preferred_unit_number,
            ),
        )

    return _onboard


@pytest.fixture
def make_tenant():
    """Unsaved tenants for engine tests that never touch the database."""

    def _make(**overrides) -> Tenant:
        values = {
            "id": 1,
            "owner_id": OWNER_ID,
            "name": "Jane Wanjiku",
            "property_id": 1,
            "unit_number": "B1",
            "unit_type": "1bedroom",
            "rent_amount": Decimal("20000.00"),
            "billing_reference": "SUN#B1",
            "is_active": True,
            "payment_status": PaymentStatus.PENDING,
            "account_balance": Decimal("0.00"),
            "payment_history": [],
        }
        values.update(overrides)
        return Tenant(**values)

    return _make
