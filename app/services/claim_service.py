"""Claim service: batch draft transactions, export them and reconcile funder responses."""
import csv
import io
import logging
import re
from datetime import datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.db_models import (
    Claim,
    ClaimReconciliation,
    ClaimStatus,
    Transaction,
    TransactionStatus,
    local_now,
)
from app.schemas.claims import (
    ClaimExportFile,
    ClaimFilters,
    ReconciliationResult,
    ReconciliationSummary,
)
from app.services.funding_calculations import to_money

logger = logging.getLogger(__name__)

CLAIM_NUMBER_PATTERN = re.compile(r"^CLM-(\d{7})$")

EXPORT_HEADERS = [
    "Claim ID",
    "Transaction ID",
    "Resident Name",
    "Contract ID",
    "Service Date",
    "Amount",
    "Description",
    "Status",
    "Organisation ID",
    "Exported At",
]

# Funder response status -> transaction status
RESPONSE_STATUS_MAP = {
    "success": TransactionStatus.PAID,
    "approved": TransactionStatus.PAID,
    "paid": TransactionStatus.PAID,
    "rejected": TransactionStatus.REJECTED,
    "denied": TransactionStatus.REJECTED,
    "error": TransactionStatus.ERROR,
}

AMOUNT_TOLERANCE = Decimal("0.01")
UNMATCHED_NOTE = "[Error: Unmatched during upload - not found in response file]"


class ClaimExportError(ValueError):
    """Raised when a claim cannot be exported; details lists the offending transactions."""

    def __init__(self, message: str, details: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.details = details or []


def next_claim_number(latest: Optional[str]) -> str:
    """Claim number following the latest one, e.g. CLM-0000042 -> CLM-0000043."""
    match = CLAIM_NUMBER_PATTERN.match(latest) if latest else None
    number = int(match.group(1)) + 1 if match else 1
    return f"CLM-{number:07d}"


def append_note(note: Optional[str], line: str) -> str:
    return f"{note}\n{line}" if note else line


def determine_claim_status(total: int, paid: int, rejected: int, errors: int) -> ClaimStatus:
    """Claim status after a funder response has been applied."""
    if total and paid == total:
        return ClaimStatus.PAID
    if total and rejected == total:
        return ClaimStatus.REJECTED
    if paid > 0 and (rejected > 0 or errors > 0):
        return ClaimStatus.PARTIALLY_PAID
    return ClaimStatus.PROCESSED


def _parse_amount(value: Optional[str]) -> Optional[Decimal]:
    if value is None or not value.strip():
        return None
    try:
        amount = Decimal(value.strip().lstrip("$").replace(",", ""))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_response_file(content: str) -> List[Tuple[str, str, Optional[Decimal]]]:
    """
    Parse a funder response CSV into (transaction_id, status, amount) rows.

    The header must contain a transaction id column and a status column;
    an amount column is optional. Blank rows are ignored, and quoted cells
    may span lines.

    Raises:
        ValueError: If the file is empty or the required columns are missing
    """
    records = [
        row for row in csv.reader(io.StringIO(content))
        if any(cell.strip() for cell in row)
    ]
    if len(records) < 2:
        raise ValueError("CSV file is empty or invalid")

    headers = [h.strip().lower() for h in records[0]]

    tx_index = next(
        (i for i, h in enumerate(headers) if "transaction" in h and "id" in h), None
    )
    status_index = next((i for i, h in enumerate(headers) if h == "status"), None)
    amount_index = next((i for i, h in enumerate(headers) if h == "amount"), None)

    if tx_index is None or status_index is None:
        raise ValueError('CSV must contain "Transaction ID" and "Status" columns')

    rows = []
    for row in records[1:]:
        cells = [cell.strip() for cell in row]
        transaction_id = cells[tx_index] if tx_index < len(cells) else ""
        if not transaction_id:
            continue
        status = cells[status_index].lower() if status_index < len(cells) else ""
        amount = None
        if amount_index is not None and amount_index < len(cells):
            amount = _parse_amount(cells[amount_index])
        rows.append((transaction_id, status, amount))
    return rows


class ClaimService:
    """Create, export and reconcile claims."""

    def __init__(self, export_dir: Optional[Path] = None):
        self._export_dir = export_dir

    @property
    def export_dir(self) -> Path:
        return Path(self._export_dir or settings.EXPORT_DIR)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def get_claim(self, db: AsyncSession, claim_id: UUID) -> Claim:
        claim = await db.get(Claim, claim_id)
        if claim is None:
            raise LookupError("Claim not found")
        return claim

    async def get_claim_transactions(
        self, db: AsyncSession, claim_id: UUID
    ) -> List[Transaction]:
        """Transactions linked to a claim, oldest service date first."""
        result = await db.execute(
            select(Transaction)
            .where(Transaction.claim_id == claim_id)
            .order_by(Transaction.occurred_at.asc(), Transaction.id.asc())
        )
        return list(result.scalars().all())

    async def list_claims(
        self,
        db: AsyncSession,
        status: Optional[ClaimStatus] = None,
        page: int = 1,
        page_size: int = 25,
    ) -> Tuple[List[Claim], int]:
        query = select(Claim)
        count_query = select(func.count(Claim.id))
        if status:
            query = query.where(Claim.status == status)
            count_query = count_query.where(Claim.status == status)

        total = (await db.execute(count_query)).scalar() or 0
        result = await db.execute(
            query.order_by(Claim.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def generate_claim_number(self, db: AsyncSession) -> str:
        result = await db.execute(
            select(Claim.claim_number).order_by(Claim.claim_number.desc()).limit(1)
        )
        return next_claim_number(result.scalar_one_or_none())

    # =========================================================================
    # CREATION
    # =========================================================================

    async def get_eligible_transactions(
        self, db: AsyncSession, filters: ClaimFilters
    ) -> List[Transaction]:
        """
        Draft transactions not yet on a claim that match the filters.

        include_all ignores the resident and date filters.
        """
        query = select(Transaction).where(
            Transaction.status == TransactionStatus.DRAFT,
            Transaction.claim_id.is_(None),
        )
        if not filters.include_all:
            if filters.resident_id:
                query = query.where(Transaction.resident_id == filters.resident_id)
            if filters.date_from:
                query = query.where(
                    Transaction.occurred_at >= datetime.combine(filters.date_from, time.min)
                )
            if filters.date_to:
                end = datetime.combine(filters.date_to + timedelta(days=1), time.min)
                query = query.where(Transaction.occurred_at < end)

        result = await db.execute(query.order_by(Transaction.occurred_at.asc()))
        return list(result.scalars().all())

    async def create_claim(
        self, db: AsyncSession, filters: ClaimFilters, created_by: str
    ) -> Claim:
        """
        Create a claim from the eligible draft transactions.

        The transactions are marked picked_up and linked to the claim.

        Raises:
            ValueError: If no transactions match the filters
        """
        transactions = await self.get_eligible_transactions(db, filters)
        if not transactions:
            raise ValueError("No eligible transactions found for the selected filters")

        claim = Claim(
            claim_number=await self.generate_claim_number(db),
            status=ClaimStatus.DRAFT,
            filters=filters.model_dump(mode="json"),
            transaction_count=len(transactions),
            total_amount=sum((to_money(t.amount) for t in transactions), Decimal("0.00")),
            created_by=created_by,
        )
        db.add(claim)
        await db.flush()

        for txn in transactions:
            txn.status = TransactionStatus.PICKED_UP
            txn.claim_id = claim.id

        await db.commit()
        await db.refresh(claim)

        logger.info(
            f"Created claim {claim.claim_number} with {claim.transaction_count} "
            f"transactions totalling ${claim.total_amount}"
        )
        return claim

    async def delete_claim(self, db: AsyncSession, claim_id: UUID):
        """Delete a draft claim and release its transactions back to draft."""
        claim = await self.get_claim(db, claim_id)
        if claim.status != ClaimStatus.DRAFT:
            raise ValueError("Only draft claims can be deleted")

        released = 0
        for txn in await self.get_claim_transactions(db, claim_id):
            txn.claim_id = None
            txn.status = TransactionStatus.DRAFT
            released += 1

        await db.delete(claim)
        await db.commit()
        logger.info(f"Deleted claim {claim.claim_number}, released {released} transactions")

    async def update_status(
        self, db: AsyncSession, claim_id: UUID, status: ClaimStatus
    ) -> Claim:
        """Change claim status; submitting also marks its transactions submitted."""
        claim = await self.get_claim(db, claim_id)
        if claim.status == status:
            raise ValueError(f"Claim is already {status.value}")

        if status == ClaimStatus.SUBMITTED:
            claim.submitted_at = local_now()
            for txn in await self.get_claim_transactions(db, claim_id):
                txn.status = TransactionStatus.SUBMITTED

        old_status = claim.status
        claim.status = status
        await db.commit()
        await db.refresh(claim)

        logger.info(f"Claim {claim.claim_number} status {old_status.value} -> {status.value}")
        return claim

    # =========================================================================
    # EXPORT
    # =========================================================================

    def claim_dir(self, claim_number: str) -> Path:
        return self.export_dir / "claims" / claim_number

    def build_export_csv(
        self, claim: Claim, transactions: List[Transaction], exported_at: datetime
    ) -> str:
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(EXPORT_HEADERS)

        exported = exported_at.strftime("%Y-%m-%d %H:%M:%S")
        for txn in transactions:
            writer.writerow([
                claim.claim_number,
                txn.id,
                txn.resident_name or "",
                str(txn.contract_id),
                txn.occurred_at.strftime("%Y-%m-%d"),
                f"{to_money(txn.amount):.2f}",
                txn.note or "",
                txn.status.value,
                settings.ORGANISATION_ID,
                exported,
            ])
        return output.getvalue()

    async def export_claim(
        self, db: AsyncSession, claim_id: UUID, exported_by: str
    ) -> Tuple[str, str]:
        """
        Write the claim CSV to the export directory.

        Every transaction on the claim must still be picked_up.

        Returns:
            Tuple of (file name, CSV content)

        Raises:
            ValueError: No transactions, or some have already moved on
        """
        claim = await self.get_claim(db, claim_id)
        transactions = await self.get_claim_transactions(db, claim_id)
        if not transactions:
            raise ValueError("No transactions found for this claim")

        invalid = [t for t in transactions if t.status != TransactionStatus.PICKED_UP]
        if invalid:
            raise ClaimExportError(
                f"Cannot export claim: {len(invalid)} transaction(s) have invalid status. "
                "All transactions must be in 'picked_up' status.",
                details=[{"id": t.id, "status": t.status.value} for t in invalid],
            )

        now = local_now()
        content = self.build_export_csv(claim, transactions, now)
        file_name = f"{settings.ORG_PREFIX.upper()}-CLAIM-{claim.claim_number}-{now.strftime('%Y%m%d-%H%M')}.csv"

        target_dir = self.claim_dir(claim.claim_number)
        target_dir.mkdir(parents=True, exist_ok=True)
        file_path = target_dir / file_name
        file_path.write_text(content, encoding="utf-8")

        claim.file_path = str(file_path)
        claim.file_generated_at = now
        claim.file_generated_by = exported_by
        claim.status = ClaimStatus.IN_PROGRESS
        await db.commit()

        logger.info(f"Exported claim {claim.claim_number} to {file_path} ({len(transactions)} rows)")
        return file_name, content

    async def get_export_file(self, db: AsyncSession, claim_id: UUID) -> Path:
        """Path of the last generated export file."""
        claim = await self.get_claim(db, claim_id)
        if not claim.file_path:
            raise LookupError("Claim has not been exported yet")
        path = Path(claim.file_path)
        if not path.exists():
            raise LookupError("Export file not found")
        return path

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    async def reconcile_response(
        self,
        db: AsyncSession,
        claim_id: UUID,
        file_name: str,
        content: str,
        uploaded_by: str,
    ) -> ReconciliationSummary:
        """
        Apply a funder response file to a claim's transactions.

        Matched rows take the mapped status. Claim transactions absent from the
        file are marked error. Ids that are not on the claim are reported as
        unmatched. The claim status is derived from the totals.

        Raises:
            ValueError: Bad file, or the claim has no transactions
        """
        if not file_name.lower().endswith(".csv"):
            raise ValueError("Only CSV files are supported")

        claim = await self.get_claim(db, claim_id)
        transactions = await self.get_claim_transactions(db, claim_id)
        if not transactions:
            raise ValueError("No transactions found for this claim")

        rows = parse_response_file(content)
        by_id: Dict[str, Transaction] = {t.id: t for t in transactions}
        seen = set()

        results: List[ReconciliationResult] = []
        unmatched_ids: List[str] = []
        unknown_statuses: List[Dict[str, str]] = []
        paid = rejected = errors = 0

        for transaction_id, response_status, response_amount in rows:
            txn = by_id.get(transaction_id)
            if txn is None:
                unmatched_ids.append(transaction_id)
                continue
            if transaction_id in seen:
                # First row for a transaction wins
                logger.warning(f"Claim {claim.claim_number}: ignoring repeated row for {transaction_id}")
                continue
            seen.add(transaction_id)

            new_status = RESPONSE_STATUS_MAP.get(response_status)
            if new_status is None:
                new_status = TransactionStatus.ERROR
                unknown_statuses.append(
                    {"transaction_id": transaction_id, "error": f"Unknown status: {response_status}"}
                )
                txn.note = append_note(txn.note, f"Unknown status: {response_status}")

            if new_status == TransactionStatus.PAID:
                paid += 1
            elif new_status == TransactionStatus.REJECTED:
                rejected += 1
            else:
                errors += 1

            expected = to_money(txn.amount)
            mismatch = (
                response_amount is not None
                and abs(expected - response_amount) > AMOUNT_TOLERANCE
            )
            if mismatch:
                txn.note = append_note(
                    txn.note,
                    f"[Warning: Amount mismatch - Expected: ${expected}, Response: ${response_amount}]",
                )

            txn.status = new_status
            results.append(ReconciliationResult(
                transaction_id=transaction_id,
                status=new_status,
                amount_mismatch=mismatch,
                expected_amount=expected,
                response_amount=response_amount,
                note=txn.note,
            ))

        for txn in transactions:
            if txn.id in seen:
                continue
            txn.status = TransactionStatus.ERROR
            txn.note = append_note(txn.note, UNMATCHED_NOTE)
            errors += 1
            results.append(ReconciliationResult(
                transaction_id=txn.id, status=TransactionStatus.ERROR, note=txn.note
            ))

        claim_status = determine_claim_status(len(transactions), paid, rejected, errors)
        claim.status = claim_status

        stored_path = self._store_response(claim.claim_number, content)

        summary = ReconciliationSummary(
            claim_id=claim.id,
            claim_status=claim_status,
            total_processed=len(rows),
            total_paid=paid,
            total_rejected=rejected,
            total_errors=errors,
            total_unmatched=len(unmatched_ids),
            unmatched_ids=unmatched_ids,
            results=results,
        )

        results_json = summary.model_dump(mode="json")
        results_json["unknown_statuses"] = unknown_statuses
        db.add(ClaimReconciliation(
            claim_id=claim.id,
            file_name=file_name,
            file_path=str(stored_path),
            total_processed=summary.total_processed,
            total_paid=paid,
            total_rejected=rejected,
            total_errors=errors,
            total_unmatched=summary.total_unmatched,
            results_json=results_json,
            uploaded_by=uploaded_by,
        ))
        await db.commit()

        logger.info(
            f"Reconciled claim {claim.claim_number}: {paid} paid, {rejected} rejected, "
            f"{errors} errors, {len(unmatched_ids)} unmatched -> {claim_status.value}"
        )
        return summary

    def _store_response(self, claim_number: str, content: str) -> Path:
        response_dir = self.claim_dir(claim_number) / "responses"
        response_dir.mkdir(parents=True, exist_ok=True)
        path = response_dir / f"RESPONSE-{claim_number}-{local_now().strftime('%Y%m%d-%H%M')}.csv"
        path.write_text(content, encoding="utf-8")
        return path

    async def get_reconciliations(
        self, db: AsyncSession, claim_id: UUID
    ) -> List[ClaimReconciliation]:
        await self.get_claim(db, claim_id)
        result = await db.execute(
            select(ClaimReconciliation)
            .where(ClaimReconciliation.claim_id == claim_id)
            .order_by(ClaimReconciliation.created_at.desc())
        )
        return list(result.scalars().all())

    def list_files(self, claim_number: str) -> List[ClaimExportFile]:
        """Export and response files on disk for a claim, newest first."""
        claim_dir = self.claim_dir(claim_number)
        if not claim_dir.exists():
            return []

        files = []
        for path in claim_dir.rglob("*.csv"):
            stat = path.stat()
            files.append(ClaimExportFile(
                file_name=path.name,
                file_path=str(path),
                size=stat.st_size,
                created_at=datetime.fromtimestamp(stat.st_mtime).astimezone(),
            ))
        return sorted(files, key=lambda f: f.created_at, reverse=True)

    async def simulate_completion(self, db: AsyncSession, claim_id: UUID) -> int:
        """
        Mark every picked_up transaction on a claim as paid.

        Used to exercise the downstream flow without a funder response.
        """
        claim = await self.get_claim(db, claim_id)
        updated = 0
        for txn in await self.get_claim_transactions(db, claim_id):
            if txn.status == TransactionStatus.PICKED_UP:
                txn.status = TransactionStatus.PAID
                updated += 1

        if updated == 0:
            raise ValueError("No picked up transactions to complete")

        await db.commit()
        logger.info(f"Simulated completion of claim {claim.claim_number}: {updated} paid")
        return updated


# Singleton instance
_claim_service: Optional[ClaimService] = None


def get_claim_service() -> ClaimService:
    """Get or create the claim service singleton."""
    global _claim_service
    if _claim_service is None:
        _claim_service = ClaimService()
    return _claim_service
