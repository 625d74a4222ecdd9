"""Drawdown validation rules for NDIS transactions.

Every rule is mandatory: a transaction can only be posted against a contract
when all of them pass.
"""
import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.db_models import ContractStatus, FundingContract, Transaction, TransactionStatus
from app.schemas.transactions import RuleResult, ValidationResult
from app.services.funding_calculations import to_money

logger = logging.getLogger(__name__)

# e.g. 01_011_0107_1_1
NDIS_SERVICE_CODE_PATTERN = re.compile(r"^\d{2}_\d{3}_\d{4}_\d_\d$")


def is_valid_ndis_service_code(code: Optional[str]) -> bool:
    return bool(code) and bool(NDIS_SERVICE_CODE_PATTERN.match(code.strip()))


@dataclass
class BalanceImpact:
    """Effect of posting an amount against a contract."""
    current_balance: Decimal
    new_balance: Decimal
    is_valid: bool
    error_message: Optional[str] = None


async def calculate_balance_impact(
    db: AsyncSession,
    contract: FundingContract,
    amount: Decimal,
    exclude_transaction_id: Optional[str] = None,
) -> BalanceImpact:
    """
    Work out the contract balance before and after posting an amount.

    The current balance is the original amount less every posted transaction
    on the contract.

    Args:
        db: Database session
        contract: Contract being drawn down
        amount: Amount to post
        exclude_transaction_id: Transaction to leave out of the posted total

    Returns:
        BalanceImpact
    """
    query = select(func.coalesce(func.sum(Transaction.amount), 0)).where(
        Transaction.contract_id == contract.id,
        Transaction.status == TransactionStatus.POSTED,
    )
    if exclude_transaction_id:
        query = query.where(Transaction.id != exclude_transaction_id)

    result = await db.execute(query)
    posted_total = to_money(result.scalar())

    current = to_money(contract.original_amount) - posted_total
    new_balance = current - to_money(amount)

    if new_balance < 0:
        return BalanceImpact(
            current_balance=current,
            new_balance=new_balance,
            is_valid=False,
            error_message=f"Insufficient balance. Would exceed by ${abs(new_balance):.2f}",
        )
    return BalanceImpact(current_balance=current, new_balance=new_balance, is_valid=True)


# =============================================================================
# RULES
# =============================================================================

def _non_zero_value(txn: Transaction, contract: FundingContract, impact: BalanceImpact):
    if to_money(txn.amount) <= 0:
        return "Transaction amount must be greater than zero"
    return None


def _valid_service_item_code(txn: Transaction, contract: FundingContract, impact: BalanceImpact):
    code = txn.service_item_code
    if not code or not code.strip():
        return "Service item code is required for NDIS compliance"
    if not is_valid_ndis_service_code(code):
        return "Service item code must follow NDIS format (e.g., 01_001_0107_1_1)"
    return None


def _participant_linking(txn: Transaction, contract: FundingContract, impact: BalanceImpact):
    if not txn.resident_id:
        return "Participant linking is required"
    if contract.resident_id != txn.resident_id:
        return "Transaction participant does not match the contract holder"
    return None


def _valid_timestamp(txn: Transaction, contract: FundingContract, impact: BalanceImpact):
    if txn.occurred_at is None:
        return "Valid transaction date is required"
    occurred = txn.occurred_at.date()
    if contract.start_date and occurred < contract.start_date:
        return "Transaction must occur within contract period"
    if contract.end_date and occurred > contract.end_date:
        return "Transaction must occur within contract period"
    return None


def _contract_reference(txn: Transaction, contract: FundingContract, impact: BalanceImpact):
    if contract is None:
        return "Valid contract reference is required"
    if contract.contract_status != ContractStatus.ACTIVE:
        return "Contract must be active for drawdown"
    return None


def _sufficient_balance(txn: Transaction, contract: FundingContract, impact: BalanceImpact):
    if not impact.is_valid:
        return impact.error_message
    return None


def _atomic_transaction(txn: Transaction, contract: FundingContract, impact: BalanceImpact):
    if not txn.note or not txn.note.strip():
        return "Transaction must describe specific support provided"
    quantity = Decimal(str(txn.quantity))
    if quantity <= 0 or quantity != quantity.to_integral_value():
        return "Transaction must specify valid quantity of service"
    return None


MANDATORY_DRAWDOWN_RULES: List[tuple] = [
    ("NON_ZERO_VALUE", _non_zero_value),
    ("VALID_SERVICE_ITEM_CODE", _valid_service_item_code),
    ("PARTICIPANT_LINKING", _participant_linking),
    ("VALID_TIMESTAMP", _valid_timestamp),
    ("CONTRACT_REFERENCE", _contract_reference),
    ("SUFFICIENT_BALANCE", _sufficient_balance),
    ("ATOMIC_TRANSACTION", _atomic_transaction),
]


def validate_drawdown_transaction(
    txn: Transaction,
    contract: FundingContract,
    impact: BalanceImpact,
) -> ValidationResult:
    """Run every mandatory drawdown rule against a transaction."""
    errors: List[str] = []
    warnings: List[str] = []
    rule_results: List[RuleResult] = []

    for rule_id, rule in MANDATORY_DRAWDOWN_RULES:
        error = rule(txn, contract, impact)
        rule_results.append(RuleResult(rule=rule_id, passed=error is None, message=error))
        if error:
            errors.append(error)

    original = to_money(contract.original_amount)
    if impact.is_valid and original > 0:
        remaining_ratio = impact.new_balance / original
        if remaining_ratio < Decimal(str(settings.LOW_BALANCE_THRESHOLD)):
            warnings.append(
                f"Contract balance will be low after posting (${impact.new_balance:.2f} remaining)"
            )

    if errors:
        logger.info(f"Drawdown validation failed for {txn.id}: {errors}")

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        rule_results=rule_results,
    )


class DrawdownValidationError(ValueError):
    """Raised when a transaction fails drawdown validation."""

    def __init__(self, result: ValidationResult):
        super().__init__("; ".join(result.errors) or "Drawdown validation failed")
        self.result = result
