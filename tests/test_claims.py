"""Tests for claim creation, export and funder response reconciliation."""
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db_models import ClaimStatus, TransactionStatus
from app.schemas.claims import ClaimFilters
from app.schemas.transactions import TransactionCreate
from app.services.claim_service import (
    UNMATCHED_NOTE,
    ClaimExportError,
    determine_claim_status,
    get_claim_service,
    next_claim_number,
    parse_response_file,
)
from app.services.transaction_service import get_transaction_service


@pytest.fixture
async def draft_transactions(db_session: AsyncSession, sample_resident, sample_contract):
    """Two $250 draft transactions in March 2026."""
    service = get_transaction_service()
    transactions = []
    for day in (2, 9):
        transactions.append(await service.create_transaction(
            db_session,
            TransactionCreate(
                resident_id=sample_resident.id,
                contract_id=sample_contract.id,
                occurred_at=datetime(2026, 3, day, 9, 0),
                service_code="SDA",
                quantity=Decimal("1"),
                unit_price=Decimal("250.00"),
                note=f"SDA accommodation week of {day} March",
            ),
            "tester",
        ))
    return transactions


# =============================================================================
# PURE HELPERS
# =============================================================================

class TestClaimHelpers:
    """Claim numbers, status rollup and response parsing."""

    def test_claim_numbers(self):
        assert next_claim_number(None) == "CLM-0000001"
        assert next_claim_number("CLM-0000042") == "CLM-0000043"

    @pytest.mark.parametrize("counts,expected", [
        ((2, 2, 0, 0), ClaimStatus.PAID),
        ((2, 0, 2, 0), ClaimStatus.REJECTED),
        ((2, 1, 1, 0), ClaimStatus.PARTIALLY_PAID),
        ((2, 1, 0, 1), ClaimStatus.PARTIALLY_PAID),
        ((2, 0, 1, 1), ClaimStatus.PROCESSED),
        ((0, 0, 0, 0), ClaimStatus.PROCESSED),
    ])
    def test_determine_claim_status(self, counts, expected):
        assert determine_claim_status(*counts) == expected

    def test_parse_response_file(self):
        content = (
            "Transaction_ID,Status,Amount\n"
            "TXN-HAVEN-A000001,Approved,\"$1,250.00\"\n"
            "\n"
            ",paid,10\n"
            "TXN-HAVEN-A000002,Denied,\n"
        )
        rows = parse_response_file(content)

        assert rows == [
            ("TXN-HAVEN-A000001", "approved", Decimal("1250.00")),
            ("TXN-HAVEN-A000002", "denied", None),
        ]

    def test_parse_requires_columns(self):
        with pytest.raises(ValueError, match="Transaction ID"):
            parse_response_file("Reference,Outcome\nTXN-HAVEN-A000001,paid\n")

    def test_parse_rejects_empty_file(self):
        with pytest.raises(ValueError, match="CSV file is empty or invalid"):
            parse_response_file("Transaction ID,Status\n")

    def test_parse_ignores_non_finite_amounts(self):
        content = "Transaction ID,Status,Amount\nTXN-HAVEN-A000001,paid,NaN\nTXN-HAVEN-A000002,paid,Infinity\n"

        assert [amount for _, _, amount in parse_response_file(content)] == [None, None]

    def test_parse_keeps_multiline_quoted_cells(self):
        content = (
            "Transaction ID,Status,Comment\n"
            "TXN-HAVEN-A000001,rejected,\"Missing plan\n\nnumber\"\n"
            "TXN-HAVEN-A000002,paid,\n"
        )

        assert parse_response_file(content) == [
            ("TXN-HAVEN-A000001", "rejected", None),
            ("TXN-HAVEN-A000002", "paid", None),
        ]


# =============================================================================
# CLAIM LIFECYCLE
# =============================================================================

class TestClaimService:
    """Creating, exporting and completing claims."""

    @pytest.mark.asyncio
    async def test_create_claim_picks_up_drafts(self, db_session: AsyncSession, draft_transactions):
        service = get_claim_service()
        claim = await service.create_claim(db_session, ClaimFilters(), "tester")

        assert claim.claim_number == "CLM-0000001"
        assert claim.status == ClaimStatus.DRAFT
        assert claim.transaction_count == 2
        assert claim.total_amount == Decimal("500.00")

        linked = await service.get_claim_transactions(db_session, claim.id)
        assert [t.status for t in linked] == [TransactionStatus.PICKED_UP] * 2

        with pytest.raises(ValueError, match="No eligible transactions"):
            await service.create_claim(db_session, ClaimFilters(), "tester")

    @pytest.mark.asyncio
    async def test_date_filters_and_include_all(self, db_session: AsyncSession, draft_transactions):
        service = get_claim_service()
        from_ninth = ClaimFilters(date_from=date(2026, 3, 9))

        eligible = await service.get_eligible_transactions(db_session, from_ninth)
        assert [t.id for t in eligible] == [draft_transactions[1].id]

        everything = ClaimFilters(date_from=date(2026, 3, 9), include_all=True)
        assert len(await service.get_eligible_transactions(db_session, everything)) == 2

    @pytest.mark.asyncio
    async def test_export_writes_file(self, db_session: AsyncSession, draft_transactions, export_dir):
        service = get_claim_service()
        claim = await service.create_claim(db_session, ClaimFilters(), "tester")

        file_name, content = await service.export_claim(db_session, claim.id, "exporter")

        lines = content.strip().splitlines()
        assert lines[0].startswith("Claim ID,Transaction ID,Resident Name")
        assert len(lines) == 3
        assert "CLM-0000001,TXN-HAVEN-A000001,Jordan Lee" in lines[1]
        assert file_name.startswith("HAVEN-CLAIM-CLM-0000001-")

        assert claim.status == ClaimStatus.IN_PROGRESS
        assert claim.file_generated_by == "exporter"
        path = await service.get_export_file(db_session, claim.id)
        assert path.parent == export_dir / "claims" / "CLM-0000001"

    @pytest.mark.asyncio
    async def test_export_requires_picked_up(self, db_session: AsyncSession, draft_transactions):
        service = get_claim_service()
        claim = await service.create_claim(db_session, ClaimFilters(), "tester")
        draft_transactions[0].status = TransactionStatus.PAID
        await db_session.commit()

        with pytest.raises(ClaimExportError) as exc_info:
            await service.export_claim(db_session, claim.id, "exporter")

        assert exc_info.value.details == [{"id": draft_transactions[0].id, "status": "paid"}]

    @pytest.mark.asyncio
    async def test_delete_releases_transactions(self, db_session: AsyncSession, draft_transactions):
        service = get_claim_service()
        claim = await service.create_claim(db_session, ClaimFilters(), "tester")

        await service.delete_claim(db_session, claim.id)

        assert all(t.status == TransactionStatus.DRAFT for t in draft_transactions)
        assert all(t.claim_id is None for t in draft_transactions)
        with pytest.raises(LookupError):
            await service.get_claim(db_session, claim.id)

    @pytest.mark.asyncio
    async def test_only_draft_claims_can_be_deleted(self, db_session: AsyncSession, draft_transactions):
        service = get_claim_service()
        claim = await service.create_claim(db_session, ClaimFilters(), "tester")
        await service.update_status(db_session, claim.id, ClaimStatus.SUBMITTED)

        with pytest.raises(ValueError, match="Only draft claims can be deleted"):
            await service.delete_claim(db_session, claim.id)

    @pytest.mark.asyncio
    async def test_submit_marks_transactions(self, db_session: AsyncSession, draft_transactions):
        service = get_claim_service()
        claim = await service.create_claim(db_session, ClaimFilters(), "tester")

        submitted = await service.update_status(db_session, claim.id, ClaimStatus.SUBMITTED)

        assert submitted.submitted_at is not None
        assert all(t.status == TransactionStatus.SUBMITTED for t in draft_transactions)
        with pytest.raises(ValueError, match="Claim is already submitted"):
            await service.update_status(db_session, claim.id, ClaimStatus.SUBMITTED)

    @pytest.mark.asyncio
    async def test_simulate_completion(self, db_session: AsyncSession, draft_transactions):
        service = get_claim_service()
        claim = await service.create_claim(db_session, ClaimFilters(), "tester")

        assert await service.simulate_completion(db_session, claim.id) == 2
        assert all(t.status == TransactionStatus.PAID for t in draft_transactions)
        with pytest.raises(ValueError):
            await service.simulate_completion(db_session, claim.id)


# =============================================================================
# RECONCILIATION
# =============================================================================

class TestReconciliation:
    """Applying funder response files."""

    @pytest.mark.asyncio
    async def test_partial_payment_with_missing_row(self, db_session: AsyncSession, draft_transactions):
        service = get_claim_service()
        claim = await service.create_claim(db_session, ClaimFilters(), "tester")
        first, second = draft_transactions

        content = (
            "Transaction ID,Status,Amount\n"
            f"{first.id},paid,240.00\n"
            "TXN-HAVEN-Z000001,paid,100.00\n"
        )
        summary = await service.reconcile_response(
            db_session, claim.id, "response.csv", content, "uploader"
        )

        assert summary.claim_status == ClaimStatus.PARTIALLY_PAID
        assert summary.total_processed == 2
        assert summary.total_paid == 1
        assert summary.total_errors == 1
        assert summary.unmatched_ids == ["TXN-HAVEN-Z000001"]

        paid_result = next(r for r in summary.results if r.transaction_id == first.id)
        assert paid_result.amount_mismatch
        assert "Amount mismatch" in first.note

        assert second.status == TransactionStatus.ERROR
        assert second.note.endswith(UNMATCHED_NOTE)
        assert claim.status == ClaimStatus.PARTIALLY_PAID

        records = await service.get_reconciliations(db_session, claim.id)
        assert len(records) == 1
        assert records[0].uploaded_by == "uploader"
        assert records[0].total_unmatched == 1

    @pytest.mark.asyncio
    async def test_all_paid(self, db_session: AsyncSession, draft_transactions):
        service = get_claim_service()
        claim = await service.create_claim(db_session, ClaimFilters(), "tester")

        content = "Transaction ID,Status\n" + "".join(
            f"{t.id},success\n" for t in draft_transactions
        )
        summary = await service.reconcile_response(
            db_session, claim.id, "response.csv", content, "uploader"
        )

        assert summary.claim_status == ClaimStatus.PAID
        assert all(not r.amount_mismatch for r in summary.results)

    @pytest.mark.asyncio
    async def test_unknown_status_is_an_error(self, db_session: AsyncSession, draft_transactions):
        service = get_claim_service()
        claim = await service.create_claim(db_session, ClaimFilters(), "tester")
        first, second = draft_transactions

        content = f"Transaction ID,Status\n{first.id},pending review\n{second.id},rejected\n"
        summary = await service.reconcile_response(
            db_session, claim.id, "response.csv", content, "uploader"
        )

        assert first.status == TransactionStatus.ERROR
        assert "Unknown status: pending review" in first.note
        assert second.status == TransactionStatus.REJECTED
        assert summary.total_rejected == 1
        assert summary.total_errors == 1
        assert summary.claim_status == ClaimStatus.PROCESSED

    @pytest.mark.asyncio
    async def test_only_csv_accepted(self, db_session: AsyncSession, draft_transactions):
        service = get_claim_service()
        claim = await service.create_claim(db_session, ClaimFilters(), "tester")

        with pytest.raises(ValueError, match="Only CSV files are supported"):
            await service.reconcile_response(db_session, claim.id, "response.xlsx", "", "uploader")

    @pytest.mark.asyncio
    async def test_history_lists_files(self, db_session: AsyncSession, draft_transactions):
        service = get_claim_service()
        claim = await service.create_claim(db_session, ClaimFilters(), "tester")
        await service.export_claim(db_session, claim.id, "exporter")
        await service.reconcile_response(
            db_session,
            claim.id,
            "response.csv",
            "Transaction ID,Status\n" + "".join(f"{t.id},paid\n" for t in draft_transactions),
            "uploader",
        )

        names = [f.file_name for f in service.list_files(claim.claim_number)]
        assert len(names) == 2
        assert any(name.startswith("RESPONSE-CLM-0000001-") for name in names)

    @pytest.mark.asyncio
    async def test_non_numeric_amount_is_not_a_mismatch(self, db_session: AsyncSession, draft_transactions):
        service = get_claim_service()
        claim = await service.create_claim(db_session, ClaimFilters(), "tester")

        content = "Transaction ID,Status,Amount\n" + "".join(
            f"{t.id},paid,NaN\n" for t in draft_transactions
        )
        summary = await service.reconcile_response(
            db_session, claim.id, "response.csv", content, "uploader"
        )

        assert summary.claim_status == ClaimStatus.PAID
        assert all(r.response_amount is None and not r.amount_mismatch for r in summary.results)

    @pytest.mark.asyncio
    async def test_repeated_rows_apply_once(self, db_session: AsyncSession, draft_transactions):
        service = get_claim_service()
        claim = await service.create_claim(db_session, ClaimFilters(), "tester")
        first, second = draft_transactions

        content = (
            "Transaction ID,Status\n"
            f"{first.id},paid\n"
            f"{first.id},paid\n"
            f"{first.id},rejected\n"
            f"{second.id},paid\n"
        )
        summary = await service.reconcile_response(
            db_session, claim.id, "response.csv", content, "uploader"
        )

        assert summary.total_paid == 2
        assert summary.total_rejected == 0
        assert summary.claim_status == ClaimStatus.PAID
        assert first.status == TransactionStatus.PAID
        assert len(summary.results) == 2
