"""Tests for contract balance, rate and eligibility calculations."""
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from app.models.db_models import (
    BillingFrequency,
    ContractStatus,
    ContractType,
    DrawdownRate,
    ResidentStatus,
)
from app.services.contract_eligibility import check_contract_eligibility, check_next_run
from app.services.contract_rate_calculator import calculate_contract_rates
from app.services.funding_calculations import (
    calculate_balance_summary,
    calculate_current_balance,
    calculate_drawdown_amount,
    generate_contract_renewal,
    get_drawdown_percentage,
    get_elapsed_periods,
    is_contract_expiring_soon,
    needs_renewal,
    to_money,
)


def make_contract(**overrides):
    values = dict(
        id=uuid4(),
        resident_id=uuid4(),
        contract_type=ContractType.NDIS,
        contract_status=ContractStatus.ACTIVE,
        original_amount=Decimal("1200.00"),
        current_balance=Decimal("1200.00"),
        start_date=date(2026, 1, 1),
        end_date=date(2027, 1, 1),
        drawdown_rate=DrawdownRate.MONTHLY,
        auto_drawdown=True,
        support_item_code="01_011_0107_1_1",
        daily_support_item_cost=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


# =============================================================================
# BALANCE
# =============================================================================

class TestCurrentBalance:
    """Time-based drawdown of contract balances."""

    def test_monthly_drawdown_halfway(self):
        contract = make_contract()
        assert calculate_current_balance(contract, today=date(2026, 7, 1)) == Decimal("600.00")

    def test_daily_drawdown(self):
        contract = make_contract(
            drawdown_rate=DrawdownRate.DAILY,
            start_date=date(2026, 1, 1),
            end_date=date(2026, 1, 11),
        )
        assert calculate_current_balance(contract, today=date(2026, 1, 6)) == Decimal("600.00")

    def test_without_auto_drawdown_returns_original(self):
        contract = make_contract(auto_drawdown=False)
        assert calculate_current_balance(contract, today=date(2026, 7, 1)) == Decimal("1200.00")

    def test_inactive_contract_returns_original(self):
        contract = make_contract(contract_status=ContractStatus.DRAFT)
        assert calculate_current_balance(contract, today=date(2026, 7, 1)) == Decimal("1200.00")

    def test_missing_end_date_returns_original(self):
        contract = make_contract(end_date=None)
        assert calculate_current_balance(contract, today=date(2026, 7, 1)) == Decimal("1200.00")

    def test_never_below_zero_after_end(self):
        contract = make_contract()
        assert calculate_current_balance(contract, today=date(2028, 1, 1)) == Decimal("0.00")

    def test_same_period_contract_is_fully_drawn(self):
        contract = make_contract(start_date=date(2026, 3, 1), end_date=date(2026, 3, 20))
        assert calculate_current_balance(contract, today=date(2026, 3, 10)) == Decimal("0.00")

    def test_drawdown_amount_and_percentage(self):
        contract = make_contract()
        assert calculate_drawdown_amount(contract, today=date(2026, 7, 1)) == Decimal("600.00")
        assert get_drawdown_percentage(contract, today=date(2026, 7, 1)) == Decimal("50.00")

    def test_elapsed_weekly_periods_truncate(self):
        assert get_elapsed_periods(date(2026, 1, 1), date(2026, 1, 21), DrawdownRate.WEEKLY) == 2

    def test_elapsed_months_respect_day_of_month(self):
        assert get_elapsed_periods(date(2026, 1, 15), date(2026, 3, 14), DrawdownRate.MONTHLY) == 1

    def test_to_money_rounds_half_up(self):
        assert to_money("10.005") == Decimal("10.01")
        assert to_money(None) == Decimal("0.00")


class TestExpiryAndRenewal:
    """Expiry windows and renewal generation."""

    def test_expiring_within_threshold(self):
        contract = make_contract(end_date=date(2026, 10, 29))
        assert is_contract_expiring_soon(contract, today=date(2026, 10, 19))

    def test_ended_contract_is_not_expiring_soon(self):
        contract = make_contract(end_date=date(2026, 10, 18))
        assert not is_contract_expiring_soon(contract, today=date(2026, 10, 19))

    def test_ended_contract_needs_renewal(self):
        contract = make_contract(end_date=date(2026, 10, 18))
        assert needs_renewal(contract, today=date(2026, 10, 19))

    def test_distant_end_does_not_need_renewal(self):
        contract = make_contract(end_date=date(2027, 6, 30))
        assert not needs_renewal(contract, today=date(2026, 10, 19))

    def test_custom_threshold(self):
        contract = make_contract(end_date=date(2026, 11, 30))
        assert not is_contract_expiring_soon(contract, days_threshold=30, today=date(2026, 10, 19))
        assert is_contract_expiring_soon(contract, days_threshold=60, today=date(2026, 10, 19))

    def test_renewal_is_draft_for_one_year(self):
        contract = make_contract()
        renewal = generate_contract_renewal(contract, today=date(2026, 10, 19))

        assert renewal["contract_status"] == ContractStatus.DRAFT
        assert renewal["start_date"] == date(2026, 10, 19)
        assert renewal["end_date"] == date(2027, 10, 19)
        assert renewal["current_balance"] == Decimal("1200.00")
        assert renewal["parent_contract_id"] == contract.id

    def test_renewal_from_leap_day(self):
        renewal = generate_contract_renewal(make_contract(), today=date(2028, 2, 29))
        assert renewal["end_date"] == date(2029, 2, 28)

    def test_balance_summary(self):
        contracts = [
            make_contract(),
            make_contract(
                contract_status=ContractStatus.DRAFT,
                original_amount=Decimal("500.00"),
                end_date=date(2026, 7, 10),
            ),
        ]
        summary = calculate_balance_summary(contracts, today=date(2026, 7, 1))

        assert summary["total_original"] == Decimal("1700.00")
        assert summary["total_current"] == Decimal("1100.00")
        assert summary["total_drawn_down"] == Decimal("600.00")
        assert summary["active_contracts"] == 1
        assert summary["expiring_soon"] == 1


# =============================================================================
# RATES
# =============================================================================

class TestContractRates:
    """Daily, weekly and fortnightly rates from a contract amount."""

    def test_full_year_rates(self):
        rates = calculate_contract_rates(Decimal("3650"), date(2026, 1, 1), date(2026, 12, 31))

        assert rates.total_days == 365
        assert rates.daily_rate == Decimal("10.00")
        assert rates.weekly_rate == Decimal("70.00")
        assert rates.fortnightly_rate == Decimal("140.00")
        assert rates.rate_for(BillingFrequency.FORTNIGHTLY) == Decimal("140.00")

    def test_daily_rate_rounds_half_up(self):
        rates = calculate_contract_rates(Decimal("100"), date(2026, 1, 1), date(2026, 1, 3))
        assert rates.total_days == 3
        assert rates.daily_rate == Decimal("33.33")

    @pytest.mark.parametrize("amount,start,end,message", [
        (Decimal("0"), date(2026, 1, 1), date(2026, 12, 31), "Contract amount must be greater than 0"),
        (Decimal("100"), None, date(2026, 12, 31), "Start date and end date are required"),
        (Decimal("100"), date(2026, 12, 31), date(2026, 1, 1), "End date must be after start date"),
    ])
    def test_invalid_input(self, amount, start, end, message):
        with pytest.raises(ValueError, match=message):
            calculate_contract_rates(amount, start, end)


# =============================================================================
# ELIGIBILITY
# =============================================================================

class TestContractEligibility:
    """Checks for automated billing."""

    def _billable(self, **overrides):
        values = dict(
            current_balance=Decimal("5000.00"),
            daily_support_item_cost=Decimal("100.00"),
            start_date=date(2026, 1, 1),
            end_date=date(2026, 12, 31),
            auto_billing_enabled=True,
            automated_drawdown_frequency=BillingFrequency.WEEKLY,
            next_run_date=date(2026, 10, 19),
            resident=SimpleNamespace(status=ResidentStatus.ACTIVE),
        )
        values.update(overrides)
        return make_contract(**values)

    def test_due_contract_is_eligible(self):
        result = check_contract_eligibility(self._billable(), today=date(2026, 10, 19))
        assert result.is_eligible
        assert result.reasons == []

    def test_inactive_resident(self):
        contract = self._billable(resident=SimpleNamespace(status=ResidentStatus.DEACTIVATED))
        result = check_contract_eligibility(contract, today=date(2026, 10, 19))

        assert not result.is_eligible
        assert not result.checks["status"].passed
        assert "Resident status is 'Deactivated', must be 'Active'" in result.reasons

    def test_automation_disabled(self):
        contract = self._billable(auto_billing_enabled=False, automated_drawdown_frequency=None)
        result = check_contract_eligibility(contract, today=date(2026, 10, 19))

        assert result.checks["automation"].reasons == [
            "Automation is not enabled for this contract",
            "Automation frequency is not set",
        ]

    def test_balance_below_daily_cost(self):
        contract = self._billable(current_balance=Decimal("50.00"))
        result = check_contract_eligibility(contract, today=date(2026, 10, 19))
        assert not result.checks["balance"].passed

    def test_expired_contract(self):
        contract = self._billable(end_date=date(2026, 10, 1))
        result = check_contract_eligibility(contract, today=date(2026, 10, 19))
        assert "Contract has expired (ended 2026-10-01)" in result.checks["date"].reasons

    def test_next_run_not_set(self):
        result = check_next_run(self._billable(next_run_date=None), date(2026, 10, 19), False)
        assert result.reasons == ["Next run date is not set"]

    def test_future_next_run_is_not_due(self):
        result = check_next_run(self._billable(next_run_date=date(2026, 10, 20)), date(2026, 10, 19), True)
        assert not result.passed

    def test_overdue_needs_catch_up_mode(self):
        contract = self._billable(next_run_date=date(2026, 10, 12))
        assert not check_next_run(contract, date(2026, 10, 19), False).passed
        assert check_next_run(contract, date(2026, 10, 19), True).passed
