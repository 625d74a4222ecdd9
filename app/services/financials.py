"""Monthly income, expense and claim aggregations.

Income is the amount of a resident's transactions, attributed to the house the
resident currently lives in. Expenses are the non-cancelled expenses recorded
against a house. Both are bucketed by calendar month of `occurred_at`.
"""
import calendar
import logging
from collections import defaultdict
from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db_models import Expense, ExpenseStatus, House, Resident, Transaction, TransactionStatus
from app.schemas.financials import (
    ClaimSummaryMonth,
    ClaimSummaryResponse,
    ClaimSummaryTotals,
    FinancialTotals,
    HouseFinancialsBreakdown,
    HouseFinancialsResponse,
    MonthlyFinancials,
    PortfolioFinancialsResponse,
)
from app.services.funding_calculations import to_money

logger = logging.getLogger(__name__)

# Transactions that never turned into money
NON_INCOME_STATUSES = [TransactionStatus.REJECTED, TransactionStatus.VOIDED]
NON_CLAIM_STATUSES = [TransactionStatus.REJECTED, TransactionStatus.ERROR, TransactionStatus.VOIDED]


def month_start(day, offset: int = 0) -> date:
    """First day of the month `offset` months away from the month of `day`."""
    index = day.year * 12 + day.month - 1 + offset
    return date(index // 12, index % 12 + 1, 1)


def month_key(day) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def month_range(start: date, end: date) -> List[date]:
    """Month starts from the month of `start` through the month of `end`."""
    months = []
    cursor = month_start(start)
    last = month_start(end)
    while cursor <= last:
        months.append(cursor)
        cursor = month_start(cursor, 1)
    return months


def _totals(income: Decimal, expenses: Decimal) -> FinancialTotals:
    income, expenses = to_money(income), to_money(expenses)
    return FinancialTotals(income=income, expenses=expenses, net=income - expenses)


def summarise_financials(
    months: Sequence[date],
    income_rows: Iterable,
    expense_rows: Iterable,
) -> tuple:
    """
    Bucket income and expense rows by month and by house.

    Args:
        months: Month starts to report, oldest first
        income_rows: (occurred_at, amount, house_id) rows
        expense_rows: (occurred_at, amount, house_id) rows

    Returns:
        Tuple of (monthly list, totals, {house_id: [income, expenses]}).
        Rows outside the reported months are ignored.
    """
    buckets = {month_key(m): [Decimal("0"), Decimal("0")] for m in months}
    per_house: Dict[UUID, List[Decimal]] = defaultdict(lambda: [Decimal("0"), Decimal("0")])

    for column, rows in ((0, income_rows), (1, expense_rows)):
        for occurred_at, amount, house_id in rows:
            bucket = buckets.get(month_key(occurred_at))
            if bucket is None:
                continue
            value = to_money(amount)
            bucket[column] += value
            if house_id is not None:
                per_house[house_id][column] += value

    monthly = [
        MonthlyFinancials(
            month=month_key(m),
            label=f"{calendar.month_abbr[m.month]} {m.year}",
            short_label=calendar.month_abbr[m.month],
            income=to_money(buckets[month_key(m)][0]),
            expenses=to_money(buckets[month_key(m)][1]),
        )
        for m in months
    ]
    totals = _totals(
        sum((m.income for m in monthly), Decimal("0")),
        sum((m.expenses for m in monthly), Decimal("0")),
    )
    return monthly, totals, per_house


async def _income_rows(db: AsyncSession, house_ids: List[UUID], start: date) -> List:
    result = await db.execute(
        select(Transaction.occurred_at, Transaction.amount, Resident.house_id)
        .join(Resident, Transaction.resident_id == Resident.id)
        .where(
            Resident.house_id.in_(house_ids),
            Transaction.occurred_at >= datetime.combine(start, time.min),
            Transaction.status.notin_(NON_INCOME_STATUSES),
        )
    )
    return result.all()


async def _expense_rows(db: AsyncSession, house_ids: List[UUID], start: date) -> List:
    result = await db.execute(
        select(Expense.occurred_at, Expense.amount, Expense.house_id).where(
            Expense.house_id.in_(house_ids),
            Expense.occurred_at >= start,
            Expense.status != ExpenseStatus.CANCELLED,
        )
    )
    return result.all()


async def get_house_financials(
    db: AsyncSession, house_id: UUID, months: int = 12, today: Optional[date] = None
) -> HouseFinancialsResponse:
    """Income and expenses of one house for the last `months` months, this month included."""
    if await db.get(House, house_id) is None:
        raise LookupError("House not found")

    today = today or date.today()
    start = month_start(today, -(months - 1))
    monthly, totals, _ = summarise_financials(
        month_range(start, today),
        await _income_rows(db, [house_id], start),
        await _expense_rows(db, [house_id], start),
    )
    return HouseFinancialsResponse(months=monthly, totals=totals)


async def get_portfolio_financials(
    db: AsyncSession,
    months: int = 12,
    house_id: Optional[UUID] = None,
    today: Optional[date] = None,
) -> PortfolioFinancialsResponse:
    """
    Income and expenses across all houses, or one house when `house_id` is set.

    The per-house breakdown is ordered best net result first.
    """
    query = select(House)
    if house_id:
        query = query.where(House.id == house_id)
    houses = (await db.execute(query)).scalars().all()
    if house_id and not houses:
        raise LookupError("House not found")

    today = today or date.today()
    start = month_start(today, -(months - 1))
    house_ids = [h.id for h in houses]
    monthly, totals, per_house = summarise_financials(
        month_range(start, today),
        await _income_rows(db, house_ids, start) if house_ids else [],
        await _expense_rows(db, house_ids, start) if house_ids else [],
    )

    by_house = []
    for house in houses:
        income, expenses = per_house.get(house.id, (Decimal("0"), Decimal("0")))
        house_totals = _totals(income, expenses)
        by_house.append(HouseFinancialsBreakdown(
            house_id=house.id,
            house_name=house.display_name,
            income=house_totals.income,
            expenses=house_totals.expenses,
            net=house_totals.net,
        ))
    by_house.sort(key=lambda h: h.net, reverse=True)

    logger.debug(f"Portfolio financials for {len(houses)} house(s) from {start}")
    return PortfolioFinancialsResponse(months=monthly, totals=totals, by_house=by_house)


async def get_resident_claim_summary(
    db: AsyncSession, resident_id: UUID, months: int = 0, today: Optional[date] = None
) -> ClaimSummaryResponse:
    """
    Monthly transaction amount and count for a resident.

    Args:
        db: Database session
        resident_id: Resident to summarise
        months: Look-back window in months, 0 for all time
        today: Date to evaluate at, defaults to today

    Months run continuously up to the current month. They start at the
    resident's move-in month (falling back to the house go-live month), never
    earlier than the look-back window; with neither date set and no window,
    they start at the month of the first transaction.
    """
    resident = await db.get(Resident, resident_id)
    if resident is None:
        raise LookupError("Resident not found")

    today = today or date.today()
    anchor = resident.move_in_date
    if anchor is None and resident.house_id:
        house = await db.get(House, resident.house_id)
        anchor = house.go_live_date if house else None
    anchor_month = month_start(anchor) if anchor else None

    query = (
        select(Transaction.occurred_at, Transaction.amount)
        .where(
            Transaction.resident_id == resident_id,
            Transaction.status.notin_(NON_CLAIM_STATUSES),
        )
        .order_by(Transaction.occurred_at.asc())
    )
    range_start = None
    if months > 0:
        range_start = month_start(today, -months)
        if anchor_month and anchor_month > range_start:
            range_start = anchor_month
        query = query.where(Transaction.occurred_at >= datetime.combine(range_start, time.min))

    rows = (await db.execute(query)).all()

    if range_start is None:
        if anchor_month:
            range_start = anchor_month
        elif rows:
            range_start = month_start(rows[0].occurred_at)
        else:
            return ClaimSummaryResponse(
                months=[], totals=ClaimSummaryTotals(total_amount=Decimal("0.00"), total_claims=0)
            )

    buckets: Dict[str, List] = defaultdict(lambda: [Decimal("0"), 0])
    for occurred_at, amount in rows:
        bucket = buckets[month_key(occurred_at)]
        bucket[0] += to_money(amount)
        bucket[1] += 1

    summary = []
    for m in month_range(range_start, today):
        amount, count = buckets.get(month_key(m), (Decimal("0"), 0))
        summary.append(ClaimSummaryMonth(
            month=month_key(m),
            label=f"{calendar.month_name[m.month]} {m.year}",
            short_label=f"{calendar.month_abbr[m.month]} {str(m.year)[-2:]}",
            amount=to_money(amount),
            count=count,
        ))

    return ClaimSummaryResponse(
        months=summary,
        totals=ClaimSummaryTotals(
            total_amount=to_money(sum((m.amount for m in summary), Decimal("0"))),
            total_claims=sum(m.count for m in summary),
        ),
    )
