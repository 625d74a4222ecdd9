"""Tests for financial summaries, resident claim summaries and occupancy."""
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db_models import (
    AustralianState,
    ContractStatus,
    Expense,
    ExpenseStatus,
    FundingContract,
    House,
    Resident,
    ResidentStatus,
)
from app.schemas.transactions import TransactionCreate
from app.services.financials import (
    get_house_financials,
    get_portfolio_financials,
    get_resident_claim_summary,
    month_range,
    month_start,
)
from app.services.occupancy import get_house_occupancy, occupancy_rate
from app.services.transaction_service import get_transaction_service

TODAY = date(2026, 10, 19)


async def add_transaction(db: AsyncSession, resident, contract, occurred_at, unit_price):
    return await get_transaction_service().create_transaction(
        db,
        TransactionCreate(
            resident_id=resident.id,
            contract_id=contract.id,
            occurred_at=occurred_at,
            service_code="SDA",
            quantity=Decimal("1"),
            unit_price=Decimal(unit_price),
            note="SDA accommodation for the week",
        ),
        "tester",
    )


def expense(house, amount, occurred_at, status=ExpenseStatus.APPROVED) -> Expense:
    return Expense(
        house_id=house.id,
        category="Maintenance",
        description="Gutter clean",
        amount=Decimal(amount),
        occurred_at=occurred_at,
        status=status,
    )


@pytest.fixture
async def ledger(db_session: AsyncSession, sample_house, sample_resident, sample_contract):
    """
    Wattle House activity:
    income of 250 in March and 100 in September, a voided 250 in April,
    80 of expenses in March plus a cancelled and an out-of-range expense.
    """
    await add_transaction(db_session, sample_resident, sample_contract, datetime(2026, 3, 2, 9, 0), "250.00")
    await add_transaction(db_session, sample_resident, sample_contract, datetime(2026, 9, 10, 9, 0), "100.00")

    service = get_transaction_service()
    voided = await add_transaction(
        db_session, sample_resident, sample_contract, datetime(2026, 4, 6, 9, 0), "250.00"
    )
    await service.post_transaction(db_session, voided.id, "approver")
    await service.void_transaction(db_session, voided.id, "approver", "Duplicate entry")

    db_session.add_all([
        expense(sample_house, "80.00", date(2026, 3, 15)),
        expense(sample_house, "500.00", date(2026, 3, 20), status=ExpenseStatus.CANCELLED),
        expense(sample_house, "999.00", date(2025, 6, 1)),
    ])
    await db_session.commit()
    return sample_house


# =============================================================================
# MONTHS
# =============================================================================

class TestMonths:
    """Calendar month helpers."""

    @pytest.mark.parametrize("day,offset,expected", [
        (date(2026, 10, 19), 0, date(2026, 10, 1)),
        (date(2026, 10, 19), -11, date(2025, 11, 1)),
        (date(2026, 1, 31), -1, date(2025, 12, 1)),
        (date(2026, 12, 5), 1, date(2027, 1, 1)),
        (datetime(2026, 3, 2, 9, 0), 0, date(2026, 3, 1)),
    ])
    def test_month_start(self, day, offset, expected):
        assert month_start(day, offset) == expected

    def test_month_range_is_inclusive(self):
        months = month_range(date(2025, 11, 20), date(2026, 2, 3))
        assert months == [date(2025, 11, 1), date(2025, 12, 1), date(2026, 1, 1), date(2026, 2, 1)]

    def test_month_range_empty_when_reversed(self):
        assert month_range(date(2026, 11, 1), date(2026, 10, 19)) == []


# =============================================================================
# INCOME AND EXPENSES
# =============================================================================

class TestHouseFinancials:
    """Monthly income and expenses."""

    @pytest.mark.asyncio
    async def test_monthly_buckets(self, db_session: AsyncSession, ledger):
        result = await get_house_financials(db_session, ledger.id, 12, today=TODAY)

        assert len(result.months) == 12
        assert result.months[0].month == "2025-11"
        assert result.months[-1].month == "2026-10"

        march = next(m for m in result.months if m.month == "2026-03")
        assert march.label == "Mar 2026"
        assert march.short_label == "Mar"
        assert march.income == Decimal("250.00")
        assert march.expenses == Decimal("80.00")

        april = next(m for m in result.months if m.month == "2026-04")
        assert april.income == Decimal("0.00")

        assert result.totals.income == Decimal("350.00")
        assert result.totals.expenses == Decimal("80.00")
        assert result.totals.net == Decimal("270.00")

    @pytest.mark.asyncio
    async def test_window_excludes_older_months(self, db_session: AsyncSession, ledger):
        result = await get_house_financials(db_session, ledger.id, 3, today=TODAY)

        assert [m.month for m in result.months] == ["2026-08", "2026-09", "2026-10"]
        assert result.totals.income == Decimal("100.00")
        assert result.totals.expenses == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_unknown_house(self, db_session: AsyncSession):
        with pytest.raises(LookupError, match="House not found"):
            await get_house_financials(db_session, uuid4(), 12, today=TODAY)


class TestPortfolioFinancials:
    """Org-wide income and expenses with the per-house breakdown."""

    @pytest.fixture
    async def quiet_house(self, db_session: AsyncSession) -> House:
        house = House(
            address1="3 Acacia Close",
            suburb="Blacktown",
            state=AustralianState.NSW,
            postcode="2148",
            bedroom_count=2,
        )
        db_session.add(house)
        await db_session.commit()
        db_session.add(expense(house, "40.00", date(2026, 5, 4)))
        await db_session.commit()
        return house

    @pytest.mark.asyncio
    async def test_best_house_first(self, db_session: AsyncSession, ledger, quiet_house):
        result = await get_portfolio_financials(db_session, 12, today=TODAY)

        assert result.totals.income == Decimal("350.00")
        assert result.totals.expenses == Decimal("120.00")
        assert result.totals.net == Decimal("230.00")

        assert [h.house_name for h in result.by_house] == ["Wattle House", "3 Acacia Close, Blacktown"]
        assert result.by_house[0].net == Decimal("270.00")
        assert result.by_house[1].net == Decimal("-40.00")

    @pytest.mark.asyncio
    async def test_filter_to_one_house(self, db_session: AsyncSession, ledger, quiet_house):
        result = await get_portfolio_financials(db_session, 12, house_id=quiet_house.id, today=TODAY)

        assert result.totals.income == Decimal("0.00")
        assert result.totals.expenses == Decimal("40.00")
        assert [h.house_id for h in result.by_house] == [quiet_house.id]

    @pytest.mark.asyncio
    async def test_no_houses(self, db_session: AsyncSession):
        result = await get_portfolio_financials(db_session, 6, today=TODAY)

        assert len(result.months) == 6
        assert result.by_house == []
        assert result.totals.net == Decimal("0.00")


# =============================================================================
# CLAIM SUMMARY
# =============================================================================

class TestClaimSummary:
    """Per-resident monthly transaction totals."""

    @pytest.mark.asyncio
    async def test_all_time_starts_at_first_transaction(self, db_session: AsyncSession, ledger, sample_resident):
        result = await get_resident_claim_summary(db_session, sample_resident.id, 0, today=TODAY)

        assert result.months[0].month == "2026-03"
        assert result.months[-1].month == "2026-10"
        assert len(result.months) == 8

        march = result.months[0]
        assert march.label == "March 2026"
        assert march.short_label == "Mar 26"
        assert march.amount == Decimal("250.00")
        assert march.count == 1

        assert result.months[1].count == 0  # April was voided
        assert result.totals.total_amount == Decimal("350.00")
        assert result.totals.total_claims == 2

    @pytest.mark.asyncio
    async def test_look_back_window(self, db_session: AsyncSession, ledger, sample_resident):
        result = await get_resident_claim_summary(db_session, sample_resident.id, 3, today=TODAY)

        assert [m.month for m in result.months] == ["2026-07", "2026-08", "2026-09", "2026-10"]
        assert result.totals.total_amount == Decimal("100.00")
        assert result.totals.total_claims == 1

    @pytest.mark.asyncio
    async def test_window_never_starts_before_move_in(self, db_session: AsyncSession, ledger, sample_resident):
        sample_resident.move_in_date = date(2026, 9, 5)
        await db_session.commit()

        result = await get_resident_claim_summary(db_session, sample_resident.id, 12, today=TODAY)

        assert [m.month for m in result.months] == ["2026-09", "2026-10"]
        assert result.totals.total_claims == 1

    @pytest.mark.asyncio
    async def test_house_go_live_is_the_fallback_anchor(
        self, db_session: AsyncSession, sample_house, sample_resident
    ):
        sample_house.go_live_date = date(2026, 8, 20)
        await db_session.commit()

        result = await get_resident_claim_summary(db_session, sample_resident.id, 0, today=TODAY)

        assert [m.month for m in result.months] == ["2026-08", "2026-09", "2026-10"]
        assert result.totals.total_claims == 0

    @pytest.mark.asyncio
    async def test_nothing_to_summarise(self, db_session: AsyncSession, sample_resident):
        result = await get_resident_claim_summary(db_session, sample_resident.id, 0, today=TODAY)

        assert result.months == []
        assert result.totals.total_amount == Decimal("0.00")
        assert result.totals.total_claims == 0


# =============================================================================
# OCCUPANCY
# =============================================================================

class TestOccupancy:
    """Bedroom occupancy now and over the last twelve months."""

    @pytest.mark.parametrize("occupied,bedrooms,expected", [
        (1, 4, Decimal("25.00")),
        (2, 3, Decimal("66.67")),
        (0, 2, Decimal("0.00")),
        (0, 0, None),
    ])
    def test_occupancy_rate(self, occupied, bedrooms, expected):
        assert occupancy_rate(occupied, bedrooms) == expected

    @pytest.mark.asyncio
    async def test_current_and_history(self, db_session: AsyncSession, sample_house, sample_contract):
        result = await get_house_occupancy(db_session, sample_house.id, today=TODAY)

        assert result.current.occupied_bedrooms == 1
        assert result.current.total_bedrooms == 4
        assert result.current.occupancy_rate == Decimal("25.00")

        assert len(result.history) == 12
        assert result.history[0].month_start == date(2025, 11, 1)
        assert result.history[0].month_name == "Nov 2025"
        # Contract starts 1 January 2026
        assert [m.occupied_bedrooms for m in result.history] == [0, 0] + [1] * 10

    @pytest.mark.asyncio
    async def test_expired_contract_counts_in_history_only(
        self, db_session: AsyncSession, sample_house, sample_contract
    ):
        sample_contract.contract_status = ContractStatus.EXPIRED
        sample_contract.end_date = date(2026, 6, 30)
        await db_session.commit()

        result = await get_house_occupancy(db_session, sample_house.id, today=TODAY)

        assert result.current.occupied_bedrooms == 0
        assert [m.occupied_bedrooms for m in result.history] == [0, 0] + [1] * 6 + [0] * 4

    @pytest.mark.asyncio
    async def test_moved_out_and_inactive_residents(
        self, db_session: AsyncSession, sample_house, sample_resident, sample_contract
    ):
        sample_resident.move_out_date = date(2026, 8, 1)
        prospect = Resident(
            house_id=sample_house.id, first_name="Riley", last_name="Tan", status=ResidentStatus.PROSPECT
        )
        db_session.add(prospect)
        await db_session.commit()
        db_session.add(FundingContract(
            resident_id=prospect.id,
            contract_status=ContractStatus.ACTIVE,
            contract_type=sample_contract.contract_type,
            original_amount=Decimal("5000.00"),
            current_balance=Decimal("5000.00"),
            start_date=date(2026, 1, 1),
        ))
        await db_session.commit()

        result = await get_house_occupancy(db_session, sample_house.id, today=TODAY)

        history = {m.month_start: m.occupied_bedrooms for m in result.history}
        assert history[date(2026, 7, 1)] == 1
        assert history[date(2026, 8, 1)] == 0
        assert result.current.occupied_bedrooms == 1  # current count ignores move-out dates

    @pytest.mark.asyncio
    async def test_unknown_house(self, db_session: AsyncSession):
        with pytest.raises(LookupError):
            await get_house_occupancy(db_session, uuid4(), today=TODAY)


# =============================================================================
# ENDPOINTS
# =============================================================================

class TestSummaryEndpoints:
    """Financial, claim and occupancy routes."""

    @pytest.mark.asyncio
    async def test_house_financials(self, client: AsyncClient, sample_house):
        response = await client.get(f"/api/houses/{sample_house.id}/financials", params={"months": 3})
        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["months"]) == 3
        assert set(data["totals"]) == {"income", "expenses", "net"}

    @pytest.mark.asyncio
    async def test_house_financials_validation(self, client: AsyncClient, sample_house):
        assert (await client.get(f"/api/houses/{uuid4()}/financials")).status_code == 404
        response = await client.get(f"/api/houses/{sample_house.id}/financials", params={"months": 0})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_dashboard_financials(self, client: AsyncClient, sample_house):
        response = await client.get("/api/dashboard/financials")
        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["months"]) == 12
        assert [h["house_name"] for h in data["by_house"]] == ["Wattle House"]

        missing = await client.get("/api/dashboard/financials", params={"house_id": str(uuid4())})
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_claim_summary(self, client: AsyncClient, sample_resident):
        response = await client.get(f"/api/residents/{sample_resident.id}/claim-summary")
        assert response.status_code == 200
        assert response.json()["data"]["months"] == []

        assert (await client.get(f"/api/residents/{uuid4()}/claim-summary")).status_code == 404

    @pytest.mark.asyncio
    async def test_occupancy(self, client: AsyncClient, sample_house):
        listing = await client.get("/api/houses/occupancy")
        assert listing.status_code == 200
        assert listing.json()["data"][str(sample_house.id)]["total_bedrooms"] == 4

        detail = await client.get(f"/api/houses/{sample_house.id}/occupancy")
        assert detail.status_code == 200
        assert len(detail.json()["data"]["history"]) == 12
