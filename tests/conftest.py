"""Shared fixtures: in-memory database, API client and sample records."""
from datetime import date
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.database import Base, get_db
from app.main import app
from app.models import db_models  # noqa: F401
from app.models.db_models import (
    AustralianState,
    BillingFrequency,
    ContractStatus,
    ContractType,
    FundingContract,
    House,
    Resident,
    ResidentStatus,
)

SERVICE_ITEM_CODE = "01_011_0107_1_1"


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture
async def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture(autouse=True)
def export_dir(tmp_path, monkeypatch):
    """Write claim files under a temporary directory."""
    monkeypatch.setattr(settings, "EXPORT_DIR", tmp_path)
    monkeypatch.setattr(settings, "CRON_SECRET", "")
    return tmp_path


@pytest.fixture
async def client(session_maker):
    """API client bound to the test database."""

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# =============================================================================
# SAMPLE RECORDS
# =============================================================================

@pytest.fixture
async def sample_house(db_session: AsyncSession) -> House:
    house = House(
        address1="12 Wattle Street",
        suburb="Parramatta",
        state=AustralianState.NSW,
        postcode="2150",
        descriptor="Wattle House",
        bedroom_count=4,
    )
    db_session.add(house)
    await db_session.commit()
    await db_session.refresh(house)
    return house


@pytest.fixture
async def sample_resident(db_session: AsyncSession, sample_house: House) -> Resident:
    resident = Resident(
        house_id=sample_house.id,
        first_name="Jordan",
        last_name="Lee",
        ndis_id="430123456",
        status=ResidentStatus.ACTIVE,
    )
    db_session.add(resident)
    await db_session.commit()
    await db_session.refresh(resident)
    return resident


@pytest.fixture
async def sample_contract(db_session: AsyncSession, sample_resident: Resident) -> FundingContract:
    """Active NDIS contract running through 2026 with $10,000 available."""
    contract = FundingContract(
        resident_id=sample_resident.id,
        contract_type=ContractType.NDIS,
        contract_status=ContractStatus.ACTIVE,
        original_amount=Decimal("10000.00"),
        current_balance=Decimal("10000.00"),
        start_date=date(2026, 1, 1),
        end_date=date(2026, 12, 31),
        support_item_code=SERVICE_ITEM_CODE,
        daily_support_item_cost=Decimal("100.00"),
        auto_billing_enabled=True,
        automated_drawdown_frequency=BillingFrequency.WEEKLY,
        next_run_date=date(2026, 10, 19),
    )
    db_session.add(contract)
    await db_session.commit()
    await db_session.refresh(contract)
    return contract
