"""Tests for the transaction lifecycle and drawdown validation."""
from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db_models import (
    AuditAction,
    DrawdownStatus,
    FundingContract,
    Resident,
    ResidentStatus,
    Transaction,
    TransactionStatus,
)
from app.schemas.transactions import (
    BulkAction,
    TransactionCreate,
    TransactionFilter,
    TransactionUpdate,
)
from app.services.drawdown_validation import DrawdownValidationError, is_valid_ndis_service_code
from app.services.transaction_service import (
    build_transaction_query,
    get_transaction_service,
    next_transaction_id,
)


def txn_data(resident: Resident, contract: FundingContract, **overrides) -> TransactionCreate:
    values = dict(
        resident_id=resident.id,
        contract_id=contract.id,
        occurred_at=datetime(2026, 3, 2, 9, 0),
        service_code="SDA",
        description="Weekly accommodation",
        quantity=Decimal("1"),
        unit_price=Decimal("250.00"),
        note="SDA accommodation for week of 2 March",
    )
    values.update(overrides)
    return TransactionCreate(**values)


# =============================================================================
# IDS AND CODES
# =============================================================================

class TestTransactionIds:
    """Sequential TXN ids."""

    def test_first_id(self):
        assert next_transaction_id(None, "HAVEN") == "TXN-HAVEN-A000001"

    def test_increments_number(self):
        assert next_transaction_id("TXN-HAVEN-A000041", "HAVEN") == "TXN-HAVEN-A000042"

    def test_letter_rolls_over(self):
        assert next_transaction_id("TXN-HAVEN-A999999", "HAVEN") == "TXN-HAVEN-B000001"

    def test_last_letter_is_exhausted(self):
        assert next_transaction_id("TXN-HAVEN-Z999998", "HAVEN") == "TXN-HAVEN-Z999999"
        with pytest.raises(ValueError, match="exhausted"):
            next_transaction_id("TXN-HAVEN-Z999999", "HAVEN")

    def test_unrecognised_id_restarts(self):
        assert next_transaction_id("legacy-17", "HAVEN") == "TXN-HAVEN-A000001"

    @pytest.mark.parametrize("code,valid", [
        ("01_011_0107_1_1", True),
        (" 01_011_0107_1_1 ", True),
        ("01-011-0107-1-1", False),
        ("", False),
        (None, False),
    ])
    def test_ndis_service_code_format(self, code, valid):
        assert is_valid_ndis_service_code(code) is valid


# =============================================================================
# LIFECYCLE
# =============================================================================

class TestTransactionLifecycle:
    """Create, update, delete, post and void."""

    @pytest.mark.asyncio
    async def test_create_deducts_balance(self, db_session: AsyncSession, sample_resident, sample_contract):
        service = get_transaction_service()
        txn = await service.create_transaction(db_session, txn_data(sample_resident, sample_contract), "tester")

        assert txn.id == "TXN-HAVEN-A000001"
        assert txn.status == TransactionStatus.DRAFT
        assert txn.drawdown_status == DrawdownStatus.PENDING
        assert txn.amount == Decimal("250.00")
        assert txn.service_item_code == sample_contract.support_item_code
        assert txn.participant_id == sample_resident.ndis_id
        assert sample_contract.current_balance == Decimal("9750.00")

        second = await service.create_transaction(db_session, txn_data(sample_resident, sample_contract), "tester")
        assert second.id == "TXN-HAVEN-A000002"

    @pytest.mark.asyncio
    async def test_orphaned_transaction_leaves_balance(self, db_session: AsyncSession, sample_resident, sample_contract):
        service = get_transaction_service()
        txn = await service.create_transaction(
            db_session,
            txn_data(sample_resident, sample_contract, occurred_at=datetime(2025, 12, 1, 9, 0)),
            "tester",
        )

        assert txn.is_orphaned
        assert sample_contract.current_balance == Decimal("10000.00")

    @pytest.mark.asyncio
    async def test_contract_must_belong_to_resident(self, db_session: AsyncSession, sample_contract):
        other = Resident(first_name="Sam", last_name="Ng", status=ResidentStatus.ACTIVE)
        db_session.add(other)
        await db_session.commit()

        with pytest.raises(ValueError, match="Contract does not belong"):
            await get_transaction_service().create_transaction(
                db_session, txn_data(other, sample_contract), "tester"
            )

    def test_update_requires_audit_comment(self):
        with pytest.raises(ValidationError):
            TransactionUpdate(unit_price=Decimal("300"), audit_comment="fix")

    @pytest.mark.asyncio
    async def test_update_adjusts_balance_and_audits(self, db_session: AsyncSession, sample_resident, sample_contract):
        service = get_transaction_service()
        txn = await service.create_transaction(db_session, txn_data(sample_resident, sample_contract), "tester")

        updated = await service.update_transaction(
            db_session,
            txn.id,
            TransactionUpdate(unit_price=Decimal("300.00"), audit_comment="Corrected weekly rate"),
            "reviewer",
        )

        assert updated.amount == Decimal("300.00")
        assert sample_contract.current_balance == Decimal("9700.00")

        trail = await service.get_audit_trail(db_session, txn.id)
        assert {entry.action for entry in trail} == {AuditAction.CREATED, AuditAction.UPDATED}
        update_entry = next(e for e in trail if e.action == AuditAction.UPDATED)
        assert update_entry.comment == "Corrected weekly rate"
        assert update_entry.user_id == "reviewer"
        assert set(update_entry.changes) == {"unit_price", "amount"}

    @pytest.mark.asyncio
    async def test_delete_draft_refunds(self, db_session: AsyncSession, sample_resident, sample_contract):
        service = get_transaction_service()
        txn = await service.create_transaction(db_session, txn_data(sample_resident, sample_contract), "tester")

        await service.delete_transaction(db_session, txn.id)

        assert sample_contract.current_balance == Decimal("10000.00")
        with pytest.raises(LookupError):
            await service.get_transaction(db_session, txn.id)

    @pytest.mark.asyncio
    async def test_post_and_void(self, db_session: AsyncSession, sample_resident, sample_contract):
        service = get_transaction_service()
        txn = await service.create_transaction(db_session, txn_data(sample_resident, sample_contract), "tester")

        posted = await service.post_transaction(db_session, txn.id, "approver")
        assert posted.status == TransactionStatus.POSTED
        assert posted.drawdown_status == DrawdownStatus.POSTED
        assert posted.posted_by == "approver"

        with pytest.raises(ValueError, match="Only draft transactions can be posted"):
            await service.post_transaction(db_session, txn.id, "approver")

        voided = await service.void_transaction(db_session, txn.id, "approver", "Duplicate entry")
        assert voided.status == TransactionStatus.VOIDED
        assert voided.void_reason == "Duplicate entry"
        assert sample_contract.current_balance == Decimal("10000.00")

    @pytest.mark.asyncio
    async def test_void_requires_posted(self, db_session: AsyncSession, sample_resident, sample_contract):
        service = get_transaction_service()
        txn = await service.create_transaction(db_session, txn_data(sample_resident, sample_contract), "tester")

        with pytest.raises(ValueError, match="Only posted transactions can be voided"):
            await service.void_transaction(db_session, txn.id, "approver", "Wrong resident")

    @pytest.mark.asyncio
    async def test_bulk_post_collects_errors(self, db_session: AsyncSession, sample_resident, sample_contract):
        service = get_transaction_service()
        first = await service.create_transaction(db_session, txn_data(sample_resident, sample_contract), "tester")
        second = await service.create_transaction(db_session, txn_data(sample_resident, sample_contract), "tester")

        result = await service.bulk_operation(
            db_session, BulkAction.POST, [first.id, second.id, "TXN-HAVEN-Z000001"], "approver"
        )

        assert result.processed == 2
        assert result.failed == 1
        assert result.errors[0].transaction_id == "TXN-HAVEN-Z000001"
        assert result.errors[0].error == "Transaction not found"


# =============================================================================
# DRAWDOWN
# =============================================================================

class TestDrawdown:
    """Drawdown validation on posting."""

    @pytest.mark.asyncio
    async def test_post_without_note_is_rejected(self, db_session: AsyncSession, sample_resident, sample_contract):
        service = get_transaction_service()
        txn = await service.create_transaction(
            db_session, txn_data(sample_resident, sample_contract, note=None), "tester"
        )

        with pytest.raises(DrawdownValidationError) as exc_info:
            await service.post_transaction(db_session, txn.id, "approver")

        result = exc_info.value.result
        assert not result.is_valid
        assert "Transaction must describe specific support provided" in result.errors
        failed = [r.rule for r in result.rule_results if not r.passed]
        assert failed == ["ATOMIC_TRANSACTION"]

        rejected = await service.get_transaction(db_session, txn.id)
        assert rejected.status == TransactionStatus.DRAFT
        assert rejected.drawdown_status == DrawdownStatus.REJECTED

    @pytest.mark.asyncio
    async def test_process_drawdown_posts(self, db_session: AsyncSession, sample_resident, sample_contract):
        txn, validation = await get_transaction_service().process_drawdown_transaction(
            db_session, txn_data(sample_resident, sample_contract), "approver"
        )

        assert validation.is_valid
        assert len(validation.rule_results) == 7
        assert txn.status == TransactionStatus.POSTED

    @pytest.mark.asyncio
    async def test_process_drawdown_failure_writes_nothing(self, db_session: AsyncSession, sample_resident, sample_contract):
        with pytest.raises(DrawdownValidationError):
            await get_transaction_service().process_drawdown_transaction(
                db_session,
                txn_data(sample_resident, sample_contract, quantity=Decimal("1.5")),
                "approver",
            )

        count = (await db_session.execute(select(func.count(Transaction.id)))).scalar()
        assert count == 0
        await db_session.refresh(sample_contract)
        assert sample_contract.current_balance == Decimal("10000.00")

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, db_session: AsyncSession, sample_resident, sample_contract):
        with pytest.raises(DrawdownValidationError, match="Insufficient balance"):
            await get_transaction_service().process_drawdown_transaction(
                db_session,
                txn_data(sample_resident, sample_contract, unit_price=Decimal("12000.00")),
                "approver",
            )

    @pytest.mark.asyncio
    async def test_balance_preview_warns_when_low(self, db_session: AsyncSession, sample_contract):
        service = get_transaction_service()

        low = await service.get_balance_preview(db_session, sample_contract.id, Decimal("9500.00"))
        assert low.can_post
        assert low.remaining_after_post == Decimal("500.00")
        assert low.warning_message == "Contract balance will be low after posting"

        over = await service.get_balance_preview(db_session, sample_contract.id, Decimal("20000.00"))
        assert not over.can_post
        assert over.warning_message == "Insufficient balance. Would exceed by $10000.00"


# =============================================================================
# QUERIES
# =============================================================================

class TestTransactionQuery:
    """Filtering used by list and export."""

    @pytest.mark.asyncio
    async def test_search_and_status_filters(self, db_session: AsyncSession, sample_resident, sample_contract):
        service = get_transaction_service()
        await service.create_transaction(db_session, txn_data(sample_resident, sample_contract), "tester")
        overnight = await service.create_transaction(
            db_session,
            txn_data(sample_resident, sample_contract, description="Overnight support"),
            "tester",
        )
        await service.post_transaction(db_session, overnight.id, "approver")

        async def run(filters: TransactionFilter):
            result = await db_session.execute(build_transaction_query(filters))
            return [t.id for t in result.scalars().unique().all()]

        assert await run(TransactionFilter(search="overnight")) == [overnight.id]
        assert await run(TransactionFilter(statuses=["posted"])) == [overnight.id]
        assert len(await run(TransactionFilter(search="jordan"))) == 2
        assert await run(TransactionFilter(resident_ids=[sample_contract.id])) == []
