"""Transaction lifecycle service: create, update, post, void and audit."""
import logging
import re
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from app.config import settings
from app.models.db_models import (
    AuditAction,
    DrawdownStatus,
    FundingContract,
    RecordSource,
    Resident,
    Transaction,
    TransactionAuditEntry,
    TransactionStatus,
    local_now,
)
from app.schemas.transactions import (
    BalancePreview,
    BulkAction,
    BulkOperationError,
    BulkOperationResult,
    SortDirection,
    SortField,
    TransactionCreate,
    TransactionFilter,
    TransactionUpdate,
    ValidationResult,
)
from app.services.drawdown_validation import (
    DrawdownValidationError,
    calculate_balance_impact,
    validate_drawdown_transaction,
)
from app.services.funding_calculations import to_money

logger = logging.getLogger(__name__)

TXN_ID_PATTERN = re.compile(r"^TXN-(?:[A-Z0-9]+-)?([A-Z])(\d{6})$")
TXN_NUMBER_MAX = 999999

# Fields recorded in the audit trail
AUDITED_FIELDS = (
    "occurred_at",
    "service_code",
    "description",
    "quantity",
    "unit_price",
    "amount",
    "note",
    "status",
)

SORT_COLUMNS = {
    SortField.ID: Transaction.id,
    SortField.OCCURRED_AT: Transaction.occurred_at,
    SortField.AMOUNT: Transaction.amount,
    SortField.STATUS: Transaction.status,
    SortField.SERVICE_CODE: Transaction.service_code,
    SortField.CREATED_AT: Transaction.created_at,
}


def _audit_value(value: Any) -> Any:
    """Convert a column value into something JSON can store."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    return value


def next_transaction_id(latest_id: Optional[str], org_prefix: str) -> str:
    """
    Compute the ID that follows the latest issued transaction ID.

    IDs look like TXN-{ORG}-A000001. After 999999 the letter advances
    and the number restarts at 1.

    Raises:
        ValueError: The Z series is used up
    """
    match = TXN_ID_PATTERN.match(latest_id) if latest_id else None
    if not match:
        return f"TXN-{org_prefix}-A000001"

    letter, number = match.group(1), int(match.group(2))
    if number >= TXN_NUMBER_MAX:
        if letter == "Z":
            raise ValueError("Transaction ID space exhausted after Z999999")
        letter = chr(ord(letter) + 1)
        number = 1
    else:
        number += 1
    return f"TXN-{org_prefix}-{letter}{number:06d}"


def is_orphaned(occurred_at: datetime, contract: FundingContract) -> bool:
    """True when the transaction date falls outside the contract period."""
    occurred = occurred_at.date()
    if contract.start_date and occurred < contract.start_date:
        return True
    if contract.end_date and occurred > contract.end_date:
        return True
    return False


def build_transaction_query(
    filters: TransactionFilter,
    sort_by: SortField = SortField.OCCURRED_AT,
    sort_dir: SortDirection = SortDirection.DESC,
) -> Select:
    """Build a filtered, sorted transaction query."""
    query = select(Transaction)

    if filters.date_from:
        query = query.where(Transaction.occurred_at >= datetime.combine(filters.date_from, time.min))
    if filters.date_to:
        # Inclusive of the whole end day
        end = datetime.combine(filters.date_to + timedelta(days=1), time.min)
        query = query.where(Transaction.occurred_at < end)
    if filters.resident_ids:
        query = query.where(Transaction.resident_id.in_(filters.resident_ids))
    if filters.contract_ids:
        query = query.where(Transaction.contract_id.in_(filters.contract_ids))
    if filters.house_ids:
        house_residents = select(Resident.id).where(Resident.house_id.in_(filters.house_ids))
        query = query.where(Transaction.resident_id.in_(house_residents))
    if filters.statuses:
        query = query.where(Transaction.status.in_(filters.statuses))
    if filters.service_code:
        query = query.where(Transaction.service_code.ilike(f"%{filters.service_code}%"))
    if filters.search:
        term = f"%{filters.search}%"
        matching_residents = select(Resident.id).where(
            or_(Resident.first_name.ilike(term), Resident.last_name.ilike(term))
        )
        query = query.where(
            or_(
                Transaction.description.ilike(term),
                Transaction.note.ilike(term),
                Transaction.resident_id.in_(matching_residents),
            )
        )

    column = SORT_COLUMNS[sort_by]
    order = column.asc() if sort_dir == SortDirection.ASC else column.desc()
    # Secondary key keeps pagination stable
    return query.order_by(order, Transaction.id.desc())


class TransactionService:
    """Manage the transaction lifecycle and the contract balances it affects."""

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def get_transaction(self, db: AsyncSession, transaction_id: str) -> Transaction:
        result = await db.execute(select(Transaction).where(Transaction.id == transaction_id))
        txn = result.scalar_one_or_none()
        if txn is None:
            raise LookupError("Transaction not found")
        return txn

    async def get_contract(self, db: AsyncSession, contract_id: UUID) -> FundingContract:
        result = await db.execute(
            select(FundingContract).where(FundingContract.id == contract_id)
        )
        contract = result.scalar_one_or_none()
        if contract is None:
            raise LookupError("Contract not found")
        return contract

    async def get_audit_trail(
        self, db: AsyncSession, transaction_id: str
    ) -> List[TransactionAuditEntry]:
        """Audit entries for a transaction, newest first."""
        await self.get_transaction(db, transaction_id)
        result = await db.execute(
            select(TransactionAuditEntry)
            .where(TransactionAuditEntry.transaction_id == transaction_id)
            .order_by(TransactionAuditEntry.created_at.desc())
        )
        return list(result.scalars().all())

    async def generate_transaction_id(self, db: AsyncSession) -> str:
        """Issue the next sequential transaction ID for this organisation."""
        prefix = settings.ORG_PREFIX.upper()
        result = await db.execute(
            select(Transaction.id)
            .where(Transaction.id.like(f"TXN-{prefix}-%"))
            .order_by(Transaction.id.desc())
            .limit(1)
        )
        return next_transaction_id(result.scalar_one_or_none(), prefix)

    # =========================================================================
    # BALANCE
    # =========================================================================

    def _adjust_balance(self, contract: FundingContract, amount: Decimal, refund: bool = False):
        """Deduct from or refund to a contract, clamped to [0, original]."""
        balance = to_money(contract.current_balance)
        original = to_money(contract.original_amount)
        if refund:
            contract.current_balance = min(original, balance + amount)
        else:
            contract.current_balance = max(Decimal("0.00"), balance - amount)

    def _add_audit(
        self,
        db: AsyncSession,
        txn: Transaction,
        action: AuditAction,
        user_id: str,
        comment: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None,
    ):
        db.add(TransactionAuditEntry(
            transaction_id=txn.id,
            action=action,
            changes=changes,
            comment=comment,
            user_id=user_id,
        ))

    async def get_balance_preview(
        self, db: AsyncSession, contract_id: UUID, amount: Decimal
    ) -> BalancePreview:
        """Preview the contract balance if an amount were posted."""
        contract = await self.get_contract(db, contract_id)
        impact = await calculate_balance_impact(db, contract, amount)

        warning = None
        if not impact.is_valid:
            warning = impact.error_message
        elif to_money(contract.original_amount) > 0 and (
            impact.new_balance / to_money(contract.original_amount)
            < Decimal(str(settings.LOW_BALANCE_THRESHOLD))
        ):
            warning = "Contract balance will be low after posting"

        return BalancePreview(
            contract_id=contract.id,
            current_balance=impact.current_balance,
            transaction_amount=to_money(amount),
            remaining_after_post=impact.new_balance,
            can_post=impact.is_valid,
            warning_message=warning,
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def create_transaction(
        self,
        db: AsyncSession,
        data: TransactionCreate,
        created_by: str,
        source: RecordSource = RecordSource.MANUAL,
        automation_id: Optional[UUID] = None,
        commit: bool = True,
    ) -> Transaction:
        """
        Create a draft transaction and deduct it from the contract balance.

        Args:
            db: Database session
            data: Validated transaction input
            created_by: User (or system) creating the transaction
            source: Manual or automation
            automation_id: Automation that generated it, if any
            commit: Commit the session when done

        Returns:
            The new Transaction

        Raises:
            LookupError: Resident or contract not found
            ValueError: Contract does not belong to the resident
        """
        resident = await db.get(Resident, data.resident_id)
        if resident is None:
            raise LookupError("Resident not found")
        contract = await self.get_contract(db, data.contract_id)
        if contract.resident_id != resident.id:
            raise ValueError("Contract does not belong to the selected resident")

        amount = to_money(data.amount if data.amount is not None else data.quantity * data.unit_price)
        orphaned = is_orphaned(data.occurred_at, contract)

        txn = Transaction(
            id=await self.generate_transaction_id(db),
            resident=resident,
            contract_id=contract.id,
            occurred_at=data.occurred_at,
            service_code=data.service_code,
            description=data.description,
            quantity=data.quantity,
            unit_price=data.unit_price,
            amount=amount,
            note=data.note,
            status=TransactionStatus.DRAFT,
            drawdown_status=DrawdownStatus.PENDING,
            is_orphaned=orphaned,
            service_item_code=data.service_item_code or contract.support_item_code,
            support_agreement_id=data.support_agreement_id,
            participant_id=data.participant_id or resident.ndis_id,
            source=source,
            automation_id=automation_id,
            is_automated=source == RecordSource.AUTOMATION,
            created_by=created_by,
        )
        db.add(txn)

        if not orphaned:
            self._adjust_balance(contract, amount)
        else:
            logger.warning(
                f"Transaction {txn.id} falls outside contract {contract.id} period, balance untouched"
            )

        self._add_audit(
            db, txn, AuditAction.CREATED, created_by,
            comment="Transaction created",
            changes={field: {"old": None, "new": _audit_value(getattr(txn, field))} for field in AUDITED_FIELDS},
        )

        if commit:
            await db.commit()
            await db.refresh(txn)
        else:
            await db.flush()

        logger.info(f"Created transaction {txn.id} for ${amount} (orphaned={orphaned})")
        return txn

    async def update_transaction(
        self, db: AsyncSession, transaction_id: str, data: TransactionUpdate, updated_by: str
    ) -> Transaction:
        """Update a draft transaction, adjusting the contract balance by any amount change."""
        txn = await self.get_transaction(db, transaction_id)
        if txn.status != TransactionStatus.DRAFT:
            raise ValueError("Can only update draft transactions")

        before = {field: getattr(txn, field) for field in AUDITED_FIELDS}
        updates = data.model_dump(exclude_unset=True, exclude={"audit_comment"})
        for field, value in updates.items():
            setattr(txn, field, value)

        if "amount" not in updates and ("quantity" in updates or "unit_price" in updates):
            txn.amount = to_money(Decimal(str(txn.quantity)) * Decimal(str(txn.unit_price)))
        else:
            txn.amount = to_money(txn.amount)

        contract = await self.get_contract(db, txn.contract_id)
        if "occurred_at" in updates:
            txn.is_orphaned = is_orphaned(txn.occurred_at, contract)

        changes = {}
        for field in AUDITED_FIELDS:
            old, new = _audit_value(before[field]), _audit_value(getattr(txn, field))
            if old != new:
                changes[field] = {"old": old, "new": new}

        difference = to_money(txn.amount) - to_money(before["amount"])
        if difference != 0 and not txn.is_orphaned:
            self._adjust_balance(contract, abs(difference), refund=difference < 0)

        self._add_audit(db, txn, AuditAction.UPDATED, updated_by, data.audit_comment, changes)
        await db.commit()
        await db.refresh(txn)

        logger.info(f"Updated transaction {txn.id}: {sorted(changes)}")
        return txn

    async def delete_transaction(self, db: AsyncSession, transaction_id: str):
        """Delete a draft transaction and refund its amount to the contract."""
        txn = await self.get_transaction(db, transaction_id)
        if txn.status != TransactionStatus.DRAFT:
            raise ValueError("Can only delete draft transactions")

        if not txn.is_orphaned:
            contract = await self.get_contract(db, txn.contract_id)
            self._adjust_balance(contract, to_money(txn.amount), refund=True)

        await db.delete(txn)
        await db.commit()
        logger.info(f"Deleted transaction {transaction_id}")

    async def validate_for_posting(
        self, db: AsyncSession, txn: Transaction
    ) -> ValidationResult:
        contract = await self.get_contract(db, txn.contract_id)
        impact = await calculate_balance_impact(
            db, contract, to_money(txn.amount), exclude_transaction_id=txn.id
        )
        return validate_drawdown_transaction(txn, contract, impact)

    async def post_transaction(
        self, db: AsyncSession, transaction_id: str, posted_by: str, commit: bool = True
    ) -> Transaction:
        """
        Post a draft transaction after it passes every drawdown rule.

        Raises:
            ValueError: Transaction is not a draft
            DrawdownValidationError: A drawdown rule failed
        """
        txn = await self.get_transaction(db, transaction_id)
        if txn.status != TransactionStatus.DRAFT:
            raise ValueError("Only draft transactions can be posted")

        validation = await self.validate_for_posting(db, txn)
        if not validation.is_valid:
            txn.drawdown_status = DrawdownStatus.REJECTED
            await db.commit()
            raise DrawdownValidationError(validation)

        txn.status = TransactionStatus.POSTED
        txn.drawdown_status = DrawdownStatus.POSTED
        txn.posted_at = local_now()
        txn.posted_by = posted_by
        self._add_audit(
            db, txn, AuditAction.POSTED, posted_by,
            comment="Transaction posted",
            changes={"status": {"old": TransactionStatus.DRAFT.value, "new": TransactionStatus.POSTED.value}},
        )

        if commit:
            await db.commit()
            await db.refresh(txn)
        else:
            await db.flush()

        logger.info(f"Posted transaction {txn.id} by {posted_by}")
        return txn

    async def void_transaction(
        self, db: AsyncSession, transaction_id: str, voided_by: str, reason: str, commit: bool = True
    ) -> Transaction:
        """Void a posted transaction and refund its amount to the contract."""
        if not reason or not reason.strip():
            raise ValueError("Void reason is required")

        txn = await self.get_transaction(db, transaction_id)
        if txn.status != TransactionStatus.POSTED:
            raise ValueError("Only posted transactions can be voided")

        if not txn.is_orphaned:
            contract = await self.get_contract(db, txn.contract_id)
            self._adjust_balance(contract, to_money(txn.amount), refund=True)

        txn.status = TransactionStatus.VOIDED
        txn.drawdown_status = DrawdownStatus.VOIDED
        txn.voided_at = local_now()
        txn.voided_by = voided_by
        txn.void_reason = reason.strip()
        self._add_audit(
            db, txn, AuditAction.VOIDED, voided_by,
            comment=reason.strip(),
            changes={"status": {"old": TransactionStatus.POSTED.value, "new": TransactionStatus.VOIDED.value}},
        )

        if commit:
            await db.commit()
            await db.refresh(txn)
        else:
            await db.flush()

        logger.info(f"Voided transaction {txn.id} by {voided_by}: {reason}")
        return txn

    async def bulk_operation(
        self,
        db: AsyncSession,
        action: BulkAction,
        transaction_ids: List[str],
        user_id: str,
        reason: Optional[str] = None,
    ) -> BulkOperationResult:
        """Post or void many transactions; failures are collected, not raised."""
        if action == BulkAction.VOID and not (reason and reason.strip()):
            raise ValueError("Void reason is required")

        processed = 0
        errors: List[BulkOperationError] = []

        for transaction_id in transaction_ids:
            try:
                if action == BulkAction.POST:
                    await self.post_transaction(db, transaction_id, user_id)
                else:
                    await self.void_transaction(db, transaction_id, user_id, reason)
                processed += 1
            except (LookupError, ValueError) as e:
                errors.append(BulkOperationError(transaction_id=transaction_id, error=str(e)))
                logger.warning(f"Bulk {action.value} failed for {transaction_id}: {e}")

        return BulkOperationResult(processed=processed, failed=len(errors), errors=errors)

    async def process_drawdown_transaction(
        self, db: AsyncSession, data: TransactionCreate, user_id: str
    ) -> tuple:
        """
        Create, validate and post a drawdown transaction in one step.

        Nothing is written if validation fails.

        Returns:
            Tuple of (posted Transaction, ValidationResult)

        Raises:
            DrawdownValidationError: A drawdown rule failed
        """
        txn = await self.create_transaction(db, data, user_id, commit=False)
        validation = await self.validate_for_posting(db, txn)
        if not validation.is_valid:
            await db.rollback()
            raise DrawdownValidationError(validation)

        txn.drawdown_status = DrawdownStatus.VALIDATED
        txn = await self.post_transaction(db, txn.id, user_id)
        return txn, validation


# Singleton instance
_transaction_service: Optional[TransactionService] = None


def get_transaction_service() -> TransactionService:
    """Get or create the transaction service singleton."""
    global _transaction_service
    if _transaction_service is None:
        _transaction_service = TransactionService()
    return _transaction_service
