"""Eligibility checks for automated contract billing."""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from app.models.db_models import (
    ContractStatus,
    FundingContract,
    ResidentStatus,
)


@dataclass
class CheckResult:
    passed: bool
    reasons: List[str] = field(default_factory=list)


@dataclass
class EligibilityResult:
    """Combined result of all eligibility checks for a contract."""
    contract_id: object
    checks: Dict[str, CheckResult]

    @property
    def is_eligible(self) -> bool:
        return all(check.passed for check in self.checks.values())

    @property
    def reasons(self) -> List[str]:
        return [reason for check in self.checks.values() for reason in check.reasons]


def check_status(contract: FundingContract) -> CheckResult:
    reasons = []
    if contract.contract_status != ContractStatus.ACTIVE:
        reasons.append(
            f"Contract status is '{contract.contract_status.value}', must be 'Active'"
        )
    resident = contract.resident
    if resident is None or resident.status != ResidentStatus.ACTIVE:
        status = resident.status.value if resident is not None else None
        reasons.append(f"Resident status is '{status}', must be 'Active'")
    return CheckResult(passed=not reasons, reasons=reasons)


def check_automation(contract: FundingContract) -> CheckResult:
    reasons = []
    if not contract.auto_billing_enabled:
        reasons.append("Automation is not enabled for this contract")
    if not contract.automated_drawdown_frequency:
        reasons.append("Automation frequency is not set")
    return CheckResult(passed=not reasons, reasons=reasons)


def check_balance(contract: FundingContract) -> CheckResult:
    reasons = []
    balance = Decimal(str(contract.current_balance or 0))
    daily_cost = contract.daily_support_item_cost
    if balance <= 0:
        reasons.append("Contract has insufficient balance")
    if daily_cost and balance < Decimal(str(daily_cost)):
        reasons.append(f"Balance (${balance}) is less than daily cost (${daily_cost})")
    return CheckResult(passed=not reasons, reasons=reasons)


def check_date_range(contract: FundingContract, today: date) -> CheckResult:
    reasons = []
    if contract.start_date is None:
        reasons.append("Contract start date is not set")
    elif today < contract.start_date:
        reasons.append(f"Contract has not started yet (starts {contract.start_date.isoformat()})")
    if contract.end_date and today > contract.end_date:
        reasons.append(f"Contract has expired (ended {contract.end_date.isoformat()})")
    return CheckResult(passed=not reasons, reasons=reasons)


def check_next_run(contract: FundingContract, today: date, catch_up_mode: bool) -> CheckResult:
    """Due today, or overdue when catching up."""
    next_run = contract.next_run_date
    if next_run is None:
        return CheckResult(passed=False, reasons=["Next run date is not set"])
    if next_run > today:
        return CheckResult(
            passed=False,
            reasons=[f"Next run date is scheduled for the future ({next_run.isoformat()}) - not due today"],
        )
    if next_run < today and not catch_up_mode:
        return CheckResult(
            passed=False,
            reasons=[f"Next run date is in the past ({next_run.isoformat()}) - overdue, not scheduled for today"],
        )
    return CheckResult(passed=True)


def check_contract_eligibility(
    contract: FundingContract,
    today: Optional[date] = None,
    catch_up_mode: bool = False,
) -> EligibilityResult:
    """
    Run every eligibility check for automated billing.

    Args:
        contract: Contract with its resident loaded
        today: Billing date, defaults to today
        catch_up_mode: Accept overdue next run dates

    Returns:
        EligibilityResult with per-check outcomes
    """
    today = today or date.today()
    return EligibilityResult(
        contract_id=contract.id,
        checks={
            "status": check_status(contract),
            "automation": check_automation(contract),
            "balance": check_balance(contract),
            "date": check_date_range(contract, today),
            "next_run": check_next_run(contract, today, catch_up_mode),
        },
    )
