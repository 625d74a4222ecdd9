"""Funding contract balance and renewal calculations.

Contracts with auto drawdown enabled draw down linearly over their term, at the
granularity of their drawdown rate (daily, weekly or monthly periods).
"""
import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, Optional

from app.config import settings
from app.models.db_models import ContractStatus, DrawdownRate

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

DRAWDOWN_RATE_TEXT = {
    DrawdownRate.DAILY: "Daily",
    DrawdownRate.WEEKLY: "Weekly",
    DrawdownRate.MONTHLY: "Monthly",
}


def to_money(value: Any) -> Decimal:
    """Coerce a value to a Decimal rounded to cents."""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _months_between(start: date, end: date) -> int:
    """Whole calendar months from start to end, truncated toward zero."""
    if end < start:
        return -_months_between(end, start)
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return months


def get_elapsed_periods(start: date, end: date, rate: DrawdownRate) -> int:
    """Count whole drawdown periods between two dates."""
    days = (end - start).days
    if rate == DrawdownRate.DAILY:
        return days
    if rate == DrawdownRate.WEEKLY:
        return int(days / 7)
    if rate == DrawdownRate.MONTHLY:
        return _months_between(start, end)
    return 0


def calculate_current_balance(contract, today: Optional[date] = None) -> Decimal:
    """
    Calculate the time-based balance of a contract.

    Args:
        contract: Funding contract (or any object with the same attributes)
        today: Date to evaluate at, defaults to today

    Returns:
        Remaining balance after linear drawdown, never below zero
    """
    original = to_money(contract.original_amount)

    if contract.contract_status != ContractStatus.ACTIVE or not contract.auto_drawdown:
        return original
    if not contract.end_date or not contract.start_date:
        return original

    today = today or date.today()
    elapsed = get_elapsed_periods(contract.start_date, today, contract.drawdown_rate)
    total = get_elapsed_periods(contract.start_date, contract.end_date, contract.drawdown_rate)

    # Same-period contracts are fully drawn down
    if total == 0:
        return Decimal("0.00")

    ratio = min(Decimal(1), max(Decimal(0), Decimal(elapsed) / Decimal(total)))
    return max(Decimal("0.00"), to_money(original - original * ratio))


def calculate_drawdown_amount(contract, today: Optional[date] = None) -> Decimal:
    """Amount drawn down from a contract so far."""
    return to_money(contract.original_amount) - calculate_current_balance(contract, today)


def days_until_expiry(contract, today: Optional[date] = None) -> Optional[int]:
    if not contract.end_date:
        return None
    return (contract.end_date - (today or date.today())).days


def is_contract_expiring_soon(
    contract, days_threshold: Optional[int] = None, today: Optional[date] = None
) -> bool:
    """True when the contract ends within the threshold (and has not ended)."""
    threshold = settings.EXPIRY_WARNING_DAYS if days_threshold is None else days_threshold
    days = days_until_expiry(contract, today)
    if days is None:
        return False
    return 0 <= days <= threshold


def needs_renewal(contract, today: Optional[date] = None) -> bool:
    """True when the contract has expired or expires within the warning window."""
    days = days_until_expiry(contract, today)
    if days is None:
        return False
    return days <= settings.EXPIRY_WARNING_DAYS


def get_drawdown_percentage(contract, today: Optional[date] = None) -> Decimal:
    """Percentage (0-100) of the contract drawn down."""
    original = to_money(contract.original_amount)
    if original == 0:
        return Decimal("0")
    drawn = calculate_drawdown_amount(contract, today)
    return min(Decimal("100"), (drawn / original * 100).quantize(CENT))


def get_drawdown_rate_text(rate: Optional[DrawdownRate]) -> str:
    return DRAWDOWN_RATE_TEXT.get(rate, "Unknown")


def _add_one_year(d: date) -> date:
    try:
        return d.replace(year=d.year + 1)
    except ValueError:
        # 29 February
        return d.replace(year=d.year + 1, day=28)


def generate_contract_renewal(contract, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Build the fields for a renewal of an expiring contract.

    The renewal starts today, runs for one year, carries a full balance and is
    created as a Draft linked to its parent.
    """
    start = today or date.today()
    return {
        "resident_id": contract.resident_id,
        "contract_type": contract.contract_type,
        "contract_status": ContractStatus.DRAFT,
        "original_amount": to_money(contract.original_amount),
        "current_balance": to_money(contract.original_amount),
        "start_date": start,
        "end_date": _add_one_year(start),
        "drawdown_rate": contract.drawdown_rate,
        "auto_drawdown": contract.auto_drawdown,
        "support_item_code": contract.support_item_code,
        "daily_support_item_cost": contract.daily_support_item_cost,
        "parent_contract_id": contract.id,
        "description": f"Renewal of contract {contract.id}",
    }


def calculate_balance_summary(contracts: Iterable, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Summarise balances across contracts.

    Returns:
        Dict with total_original, total_current, total_drawn_down,
        active_contracts and expiring_soon
    """
    summary = {
        "total_original": Decimal("0.00"),
        "total_current": Decimal("0.00"),
        "total_drawn_down": Decimal("0.00"),
        "active_contracts": 0,
        "expiring_soon": 0,
    }

    for contract in contracts:
        original = to_money(contract.original_amount)
        current = calculate_current_balance(contract, today)
        summary["total_original"] += original
        summary["total_current"] += current
        summary["total_drawn_down"] += original - current

        if contract.contract_status == ContractStatus.ACTIVE:
            summary["active_contracts"] += 1
        if is_contract_expiring_soon(contract, today=today):
            summary["expiring_soon"] += 1

    return summary
