"""Runners executed by automations.

Each runner takes an automation and returns a RunnerResult. Runners raise
ValueError or LookupError when their parameters cannot be acted on.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.db_models import (
    Automation,
    AutomationRun,
    AutomationRunStatus,
    AutomationType,
    Claim,
    ClaimStatus,
    ContractStatus,
    Expense,
    ExpenseStatus,
    FundingContract,
    RecordSource,
    Transaction,
    TransactionStatus,
    local_now,
)
from app.schemas.transactions import TransactionCreate
from app.services.billing_run import AUTOMATION_USER, get_billing_run_service
from app.services.funding_calculations import is_contract_expiring_soon, to_money
from app.services.transaction_service import get_transaction_service

logger = logging.getLogger(__name__)


@dataclass
class RunnerResult:
    """Outcome of one runner execution."""
    success: bool
    summary: str
    metrics: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


@dataclass
class PreflightResult:
    """Whether an automation can run right now."""
    can_run: bool
    reason: Optional[str] = None


def _param_uuid(parameters: Dict[str, Any], key: str) -> Optional[UUID]:
    value = parameters.get(key)
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        raise ValueError(f"Parameter '{key}' is not a valid id")


# =============================================================================
# RECURRING TRANSACTION
# =============================================================================

async def _clone_transaction(
    db: AsyncSession, automation: Automation, template_id: str
) -> RunnerResult:
    template = await db.get(Transaction, template_id)
    if template is None:
        raise LookupError(f"Template transaction {template_id} not found")

    txn = await get_transaction_service().create_transaction(
        db,
        TransactionCreate(
            resident_id=template.resident_id,
            contract_id=template.contract_id,
            occurred_at=local_now(),
            service_code=template.service_code,
            description=template.description,
            quantity=template.quantity,
            unit_price=template.unit_price,
            amount=template.amount,
            note=template.note,
            service_item_code=template.service_item_code,
            support_agreement_id=template.support_agreement_id,
            participant_id=template.participant_id,
        ),
        created_by=AUTOMATION_USER,
        source=RecordSource.AUTOMATION,
        automation_id=automation.id,
    )
    return RunnerResult(
        success=True,
        summary=f"Created transaction {txn.id} from template {template_id}",
        metrics={"transaction_id": txn.id, "amount": str(to_money(txn.amount))},
    )


async def _clone_expense(
    db: AsyncSession, automation: Automation, template_id: UUID
) -> RunnerResult:
    template = await db.get(Expense, template_id)
    if template is None:
        raise LookupError(f"Template expense {template_id} not found")

    expense = Expense(
        house_id=template.house_id,
        scope=template.scope,
        category=template.category,
        description=template.description,
        reference=template.reference,
        amount=template.amount,
        frequency=template.frequency,
        occurred_at=date.today(),
        status=ExpenseStatus.DRAFT,
        supplier_id=template.supplier_id,
        notes=template.notes,
        source=RecordSource.AUTOMATION,
        automation_id=automation.id,
        created_by=AUTOMATION_USER,
    )
    db.add(expense)
    await db.commit()
    await db.refresh(expense)

    return RunnerResult(
        success=True,
        summary=f"Created expense {expense.id} from template {template_id}",
        metrics={"expense_id": str(expense.id), "amount": str(to_money(expense.amount))},
    )


async def run_recurring_transaction(db: AsyncSession, automation: Automation) -> RunnerResult:
    """Clone the template transaction or expense named in the parameters."""
    parameters = automation.parameters or {}
    template_transaction_id = parameters.get("template_transaction_id")
    if template_transaction_id:
        return await _clone_transaction(db, automation, str(template_transaction_id))

    template_expense_id = _param_uuid(parameters, "template_expense_id")
    if template_expense_id:
        return await _clone_expense(db, automation, template_expense_id)

    raise ValueError("Recurring automation needs a template_transaction_id or template_expense_id")


# =============================================================================
# CONTRACT BILLING RUN
# =============================================================================

async def run_contract_billing(db: AsyncSession, automation: Automation) -> RunnerResult:
    parameters = automation.parameters or {}
    result = await get_billing_run_service().run(
        db,
        catch_up_mode=bool(parameters.get("catch_up_mode", False)),
        automation_id=automation.id,
    )
    summary = (
        f"Processed {result.processed_contracts} contracts: "
        f"{result.successful_transactions} created, {result.failed_transactions} failed, "
        f"{result.skipped} skipped"
    )
    return RunnerResult(
        success=True,
        summary=summary,
        metrics=result.model_dump(mode="json", exclude={"errors"}),
    )


# =============================================================================
# DAILY DIGEST
# =============================================================================

async def build_daily_digest(db: AsyncSession, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Snapshot of yesterday's activity and current warnings.

    Returns:
        Dictionary of digest metrics, JSON ready
    """
    today = today or date.today()
    yesterday = today - timedelta(days=1)
    start = datetime.combine(yesterday, time.min)
    end = datetime.combine(today, time.min)

    income = (await db.execute(
        select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.occurred_at >= start,
            Transaction.occurred_at < end,
            Transaction.status.notin_([TransactionStatus.VOIDED, TransactionStatus.REJECTED]),
        )
    )).scalar()
    costs = (await db.execute(
        select(func.coalesce(func.sum(Expense.amount), 0)).where(
            Expense.occurred_at == yesterday,
            Expense.status != ExpenseStatus.CANCELLED,
        )
    )).scalar()
    income, costs = to_money(income), to_money(costs)

    claim_counts = dict((await db.execute(
        select(Claim.status, func.count(Claim.id))
        .where(Claim.status.in_([ClaimStatus.DRAFT, ClaimStatus.SUBMITTED]))
        .group_by(Claim.status)
    )).all())

    failed_automations = (await db.execute(
        select(func.count(Automation.id)).where(
            Automation.last_run_status == AutomationRunStatus.FAILED
        )
    )).scalar() or 0

    active_contracts = (await db.execute(
        select(FundingContract).where(FundingContract.contract_status == ContractStatus.ACTIVE)
    )).scalars().all()

    threshold = Decimal(str(settings.LOW_BALANCE_THRESHOLD))
    expiring = [c for c in active_contracts if is_contract_expiring_soon(c, today=today)]
    low_balance = [
        c for c in active_contracts
        if to_money(c.original_amount) > 0
        and to_money(c.current_balance) / to_money(c.original_amount) < threshold
    ]

    return {
        "date": yesterday.isoformat(),
        "income": str(income),
        "costs": str(costs),
        "net": str(income - costs),
        "draft_claims": claim_counts.get(ClaimStatus.DRAFT, 0),
        "submitted_claims": claim_counts.get(ClaimStatus.SUBMITTED, 0),
        "expiring_contracts": len(expiring),
        "failed_automations": failed_automations,
        "low_balance_contracts": len(low_balance),
    }


async def run_daily_digest(db: AsyncSession, automation: Automation) -> RunnerResult:
    digest = await build_daily_digest(db)
    summary = (
        f"Digest for {digest['date']}: net ${digest['net']}, "
        f"{digest['expiring_contracts']} expiring, {digest['low_balance_contracts']} low balance"
    )
    return RunnerResult(success=True, summary=summary, metrics=digest)


RUNNERS = {
    AutomationType.RECURRING_TRANSACTION: run_recurring_transaction,
    AutomationType.CONTRACT_BILLING_RUN: run_contract_billing,
    AutomationType.DAILY_DIGEST: run_daily_digest,
}


async def preflight_check(db: AsyncSession, automation: Automation) -> PreflightResult:
    """Check an automation can run: nothing in flight and its template exists."""
    running = (await db.execute(
        select(func.count(AutomationRun.id)).where(
            AutomationRun.automation_id == automation.id,
            AutomationRun.status == AutomationRunStatus.RUNNING,
        )
    )).scalar()
    if running:
        return PreflightResult(can_run=False, reason="Automation is already running")

    if automation.type == AutomationType.RECURRING_TRANSACTION:
        parameters = automation.parameters or {}
        if parameters.get("template_transaction_id"):
            if await db.get(Transaction, str(parameters["template_transaction_id"])) is None:
                return PreflightResult(can_run=False, reason="Template transaction not found")
        elif parameters.get("template_expense_id"):
            try:
                expense_id = _param_uuid(parameters, "template_expense_id")
            except ValueError as e:
                return PreflightResult(can_run=False, reason=str(e))
            if await db.get(Expense, expense_id) is None:
                return PreflightResult(can_run=False, reason="Template expense not found")
        else:
            return PreflightResult(can_run=False, reason="No template configured")

    return PreflightResult(can_run=True)


async def execute_runner(db: AsyncSession, automation: Automation) -> RunnerResult:
    """
    Dispatch an automation to its runner.

    Raises:
        ValueError: Unknown type or unusable parameters
        LookupError: Template record missing
    """
    runner = RUNNERS.get(automation.type)
    if runner is None:
        raise ValueError(f"No runner for automation type {automation.type}")
    logger.info(f"Running automation {automation.id} ({automation.type.value})")
    return await runner(db, automation)
