"""Tests for automated contract billing."""
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db_models import (
    BillingFrequency,
    ContractStatus,
    ContractType,
    FundingContract,
    RecordSource,
    Transaction,
    TransactionStatus,
)
from app.services.billing_run import AUTOMATION_USER, daily_rate_for, get_billing_run_service

RUN_DATE = date(2026, 10, 19)


async def add_contract(db: AsyncSession, resident, **overrides) -> FundingContract:
    values = dict(
        resident_id=resident.id,
        contract_type=ContractType.PRIVATE,
        contract_status=ContractStatus.ACTIVE,
        original_amount=Decimal("5000.00"),
        current_balance=Decimal("5000.00"),
        start_date=date(2026, 1, 1),
        end_date=date(2026, 12, 31),
        daily_support_item_cost=Decimal("100.00"),
        auto_billing_enabled=True,
        automated_drawdown_frequency=BillingFrequency.WEEKLY,
        next_run_date=RUN_DATE,
    )
    values.update(overrides)
    contract = FundingContract(**values)
    db.add(contract)
    await db.commit()
    await db.refresh(contract)
    return contract


class TestDailyRate:
    """Daily cost used by the billing run."""

    def test_uses_daily_support_item_cost(self):
        contract = FundingContract(daily_support_item_cost=Decimal("123.45"))
        assert daily_rate_for(contract) == Decimal("123.45")

    def test_derives_from_contract_term(self):
        contract = FundingContract(
            original_amount=Decimal("3650.00"),
            start_date=date(2026, 1, 1),
            end_date=date(2026, 12, 31),
        )
        assert daily_rate_for(contract) == Decimal("10.00")

    def test_unusable_term_gives_zero(self):
        contract = FundingContract(original_amount=Decimal("3650.00"))
        assert daily_rate_for(contract) == Decimal("0.00")


class TestBillingRun:
    """Generating draft drawdown transactions for due contracts."""

    @pytest.mark.asyncio
    async def test_bills_due_contract(self, db_session: AsyncSession, sample_contract):
        result = await get_billing_run_service().run(db_session, run_date=RUN_DATE)

        assert result.processed_contracts == 1
        assert result.successful_transactions == 1
        assert result.failed_transactions == 0
        assert result.summary.total_amount == Decimal("700.00")
        assert result.summary.frequency_breakdown == {"weekly": 1}

        txn = (await db_session.execute(
            select(Transaction).where(Transaction.id == result.transaction_ids[0])
        )).unique().scalar_one()
        assert txn.amount == Decimal("700.00")
        assert txn.status == TransactionStatus.DRAFT
        assert txn.created_by == AUTOMATION_USER
        assert txn.source == RecordSource.AUTOMATION
        assert txn.service_code == sample_contract.support_item_code

        assert sample_contract.current_balance == Decimal("9300.00")
        assert sample_contract.next_run_date == date(2026, 10, 26)
        assert sample_contract.last_drawdown_date == RUN_DATE

    @pytest.mark.asyncio
    async def test_second_run_same_day_finds_nothing_due(self, db_session: AsyncSession, sample_contract):
        service = get_billing_run_service()
        await service.run(db_session, run_date=RUN_DATE)
        result = await service.run(db_session, run_date=RUN_DATE)

        assert result.processed_contracts == 0
        assert result.successful_transactions == 0

    @pytest.mark.asyncio
    async def test_duplicate_prevented_for_resident(self, db_session: AsyncSession, sample_contract):
        service = get_billing_run_service()
        await service.run(db_session, run_date=RUN_DATE)

        sample_contract.next_run_date = RUN_DATE
        await db_session.commit()
        result = await service.run(db_session, run_date=RUN_DATE)

        assert result.successful_transactions == 0
        assert result.failed_transactions == 1
        assert result.errors[0].error.startswith("Duplicate prevented")

    @pytest.mark.asyncio
    async def test_one_contract_per_resident(self, db_session: AsyncSession, sample_resident, sample_contract):
        second = await add_contract(db_session, sample_resident)

        result = await get_billing_run_service().run(db_session, run_date=RUN_DATE)

        assert result.processed_contracts == 2
        assert result.successful_transactions == 1
        assert result.skipped == 1
        assert result.failed_transactions == 0
        assert result.errors[0].contract_id == second.id
        assert result.errors[0].error == "Skipped: duplicate contract for same resident"

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, db_session: AsyncSession, sample_resident):
        await add_contract(db_session, sample_resident, current_balance=Decimal("500.00"))

        result = await get_billing_run_service().run(db_session, run_date=RUN_DATE)

        assert result.processed_contracts == 1
        assert result.failed_transactions == 1
        assert result.errors[0].error == "Insufficient contract balance"

    @pytest.mark.asyncio
    async def test_overdue_contract_needs_catch_up(self, db_session: AsyncSession, sample_resident):
        await add_contract(db_session, sample_resident, next_run_date=date(2026, 10, 12))
        service = get_billing_run_service()

        skipped = await service.run(db_session, run_date=RUN_DATE)
        assert skipped.processed_contracts == 0

        caught_up = await service.run(db_session, run_date=RUN_DATE, catch_up_mode=True)
        assert caught_up.successful_transactions == 1

    @pytest.mark.asyncio
    async def test_failed_contract_does_not_block_resident(self, db_session: AsyncSession, sample_resident):
        await add_contract(
            db_session, sample_resident,
            current_balance=Decimal("500.00"),
            created_at=datetime(2026, 1, 1, 9, 0),
        )
        funded = await add_contract(db_session, sample_resident, created_at=datetime(2026, 1, 2, 9, 0))

        result = await get_billing_run_service().run(db_session, run_date=RUN_DATE)

        assert result.processed_contracts == 2
        assert result.successful_transactions == 1
        assert result.failed_transactions == 1
        assert result.skipped == 0
        assert [e.error for e in result.errors] == ["Insufficient contract balance"]
        assert funded.current_balance == Decimal("4300.00")
