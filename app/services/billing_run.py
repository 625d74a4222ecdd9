"""Automated contract billing: generate draft drawdown transactions for due contracts."""
import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.db_models import (
    FundingContract,
    RecordSource,
    Transaction,
    local_now,
)
from app.schemas.contracts import BillingRunError, BillingRunResponse, BillingRunSummary
from app.schemas.transactions import TransactionCreate
from app.services.contract_eligibility import check_contract_eligibility
from app.services.contract_rate_calculator import FREQUENCY_DAYS, calculate_contract_rates
from app.services.funding_calculations import to_money
from app.services.transaction_service import get_transaction_service

logger = logging.getLogger(__name__)

AUTOMATION_USER = "automation-system"
DEFAULT_SERVICE_CODE = "AUTO-DRAWDOWN"


def daily_rate_for(contract: FundingContract) -> Decimal:
    """Daily cost of a contract, derived from its amount and term when not set."""
    if contract.daily_support_item_cost:
        return to_money(contract.daily_support_item_cost)
    try:
        rates = calculate_contract_rates(
            contract.original_amount, contract.start_date, contract.end_date
        )
    except ValueError:
        return Decimal("0.00")
    return rates.daily_rate


class BillingRunService:
    """Generate automated drawdown transactions for contracts that are due."""

    def __init__(self):
        self.transaction_service = get_transaction_service()

    async def _has_automation_transaction_on(
        self, db: AsyncSession, resident_id: UUID, run_date: date
    ) -> bool:
        start = datetime.combine(run_date, time.min)
        end = datetime.combine(run_date + timedelta(days=1), time.min)
        result = await db.execute(
            select(Transaction.id)
            .where(
                Transaction.resident_id == resident_id,
                Transaction.created_by == AUTOMATION_USER,
                Transaction.occurred_at >= start,
                Transaction.occurred_at < end,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def _bill_contract(
        self,
        db: AsyncSession,
        contract: FundingContract,
        run_date: date,
        automation_id: Optional[UUID],
    ) -> Transaction:
        """
        Create one draft drawdown transaction for a contract.

        Raises:
            ValueError: With the reason the contract could not be billed
        """
        frequency = contract.automated_drawdown_frequency
        amount = to_money(daily_rate_for(contract) * FREQUENCY_DAYS[frequency])

        if amount <= 0:
            raise ValueError("Invalid transaction amount")
        if to_money(contract.current_balance) < amount:
            raise ValueError("Insufficient contract balance")
        if await self._has_automation_transaction_on(db, contract.resident_id, run_date):
            raise ValueError(
                "Duplicate prevented: automation transaction already exists for this resident today"
            )

        occurred_at = datetime.combine(run_date, local_now().timetz())
        txn = await self.transaction_service.create_transaction(
            db,
            TransactionCreate(
                resident_id=contract.resident_id,
                contract_id=contract.id,
                occurred_at=occurred_at,
                service_code=contract.support_item_code or DEFAULT_SERVICE_CODE,
                description=f"Automated {frequency.value} drawdown - {contract.contract_type.value}",
                quantity=Decimal("1"),
                unit_price=amount,
                amount=amount,
                service_item_code=contract.support_item_code,
            ),
            created_by=AUTOMATION_USER,
            source=RecordSource.AUTOMATION,
            automation_id=automation_id,
            commit=False,
        )

        base = contract.next_run_date or run_date
        contract.next_run_date = base + timedelta(days=FREQUENCY_DAYS[frequency])
        contract.last_drawdown_date = run_date
        return txn

    async def run(
        self,
        db: AsyncSession,
        run_date: Optional[date] = None,
        catch_up_mode: bool = False,
        automation_id: Optional[UUID] = None,
    ) -> BillingRunResponse:
        """
        Bill every eligible contract once.

        Only one contract per resident is billed in a run. Each contract is
        committed on its own so one failure does not undo the others.

        Args:
            db: Database session
            run_date: Billing date, defaults to today
            catch_up_mode: Also bill contracts whose next run date has passed
            automation_id: Automation that triggered the run, if any

        Returns:
            BillingRunResponse with counts, errors and a summary
        """
        run_date = run_date or date.today()

        result = await db.execute(
            select(FundingContract)
            .options(selectinload(FundingContract.resident))
            .where(FundingContract.auto_billing_enabled.is_(True))
            .order_by(FundingContract.created_at)
        )
        contracts = result.scalars().all()

        eligible = [
            c for c in contracts
            if check_contract_eligibility(c, today=run_date, catch_up_mode=catch_up_mode).is_eligible
        ]
        logger.info(
            f"Billing run for {run_date}: {len(eligible)} of {len(contracts)} contracts eligible"
        )

        successful: List[str] = []
        amounts: List[Decimal] = []
        errors: List[BillingRunError] = []
        frequency_breakdown = defaultdict(int)
        skipped = 0
        billed_residents = set()

        for contract in eligible:
            contract_id, resident_id = contract.id, contract.resident_id

            if resident_id in billed_residents:
                skipped += 1
                errors.append(BillingRunError(
                    contract_id=contract_id,
                    resident_id=resident_id,
                    error="Skipped: duplicate contract for same resident",
                ))
                logger.warning(
                    f"Skipping duplicate contract {contract_id} for resident {resident_id}"
                )
                continue

            try:
                txn = await self._bill_contract(db, contract, run_date, automation_id)
                await db.commit()
            except ValueError as e:
                errors.append(BillingRunError(
                    contract_id=contract_id, resident_id=resident_id, error=str(e)
                ))
                logger.warning(f"Contract {contract_id} not billed: {e}")
                continue

            billed_residents.add(resident_id)
            successful.append(txn.id)
            amounts.append(to_money(txn.amount))
            frequency_breakdown[contract.automated_drawdown_frequency.value] += 1

        total = sum(amounts, Decimal("0.00"))
        average = to_money(total / len(amounts)) if amounts else Decimal("0.00")

        logger.info(
            f"Billing run complete: {len(successful)} created, "
            f"{len(errors) - skipped} failed, {skipped} skipped, total ${total}"
        )

        return BillingRunResponse(
            processed_contracts=len(eligible),
            successful_transactions=len(successful),
            failed_transactions=len(errors) - skipped,
            skipped=skipped,
            transaction_ids=successful,
            errors=errors,
            summary=BillingRunSummary(
                total_amount=total,
                average_amount=average,
                frequency_breakdown=dict(frequency_breakdown),
            ),
        )


# Singleton instance
_billing_run_service: Optional[BillingRunService] = None


def get_billing_run_service() -> BillingRunService:
    """Get or create the billing run service singleton."""
    global _billing_run_service
    if _billing_run_service is None:
        _billing_run_service = BillingRunService()
    return _billing_run_service
