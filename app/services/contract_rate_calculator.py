"""Derive daily, weekly and fortnightly billing rates from a contract amount."""
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from app.models.db_models import BillingFrequency

FREQUENCY_DAYS = {
    BillingFrequency.DAILY: 1,
    BillingFrequency.WEEKLY: 7,
    BillingFrequency.FORTNIGHTLY: 14,
}


@dataclass
class ContractRates:
    """Rates calculated for a contract period."""
    total_days: int
    daily_rate: Decimal
    weekly_rate: Decimal
    fortnightly_rate: Decimal

    def rate_for(self, frequency: BillingFrequency) -> Decimal:
        return self.daily_rate * FREQUENCY_DAYS[frequency]


def calculate_contract_rates(
    amount: Decimal,
    start_date: Optional[date],
    end_date: Optional[date],
) -> ContractRates:
    """
    Calculate billing rates for a contract.

    Both ends of the contract period are inclusive.

    Raises:
        ValueError: If the amount is not positive or the dates are missing or reversed
    """
    amount = Decimal(str(amount))
    if amount <= 0:
        raise ValueError("Contract amount must be greater than 0")
    if not start_date or not end_date:
        raise ValueError("Start date and end date are required")
    if end_date <= start_date:
        raise ValueError("End date must be after start date")

    total_days = (end_date - start_date).days + 1
    daily = (amount / total_days).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    return ContractRates(
        total_days=total_days,
        daily_rate=daily,
        weekly_rate=daily * 7,
        fortnightly_rate=daily * 14,
    )
