"""Pydantic schemas for financial, claim and occupancy summaries."""
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel


# Income and expenses
class MonthlyFinancials(BaseModel):
    """Income and expenses for one calendar month."""
    month: str  # YYYY-MM
    label: str
    short_label: str
    income: Decimal
    expenses: Decimal


class FinancialTotals(BaseModel):
    income: Decimal
    expenses: Decimal
    net: Decimal


class HouseFinancialsBreakdown(BaseModel):
    """One house's share of a portfolio summary."""
    house_id: UUID
    house_name: str
    income: Decimal
    expenses: Decimal
    net: Decimal


class HouseFinancialsResponse(BaseModel):
    """Monthly financials for a single house."""
    months: List[MonthlyFinancials]
    totals: FinancialTotals


class PortfolioFinancialsResponse(BaseModel):
    """Monthly financials across houses, with a per-house breakdown."""
    months: List[MonthlyFinancials]
    totals: FinancialTotals
    by_house: List[HouseFinancialsBreakdown]


# Resident claims
class ClaimSummaryMonth(BaseModel):
    month: str  # YYYY-MM
    label: str
    short_label: str
    amount: Decimal
    count: int


class ClaimSummaryTotals(BaseModel):
    total_amount: Decimal
    total_claims: int


class ClaimSummaryResponse(BaseModel):
    """Monthly transaction totals for a resident."""
    months: List[ClaimSummaryMonth]
    totals: ClaimSummaryTotals


# Occupancy
class OccupancySnapshot(BaseModel):
    occupied_bedrooms: int
    total_bedrooms: int
    occupancy_rate: Optional[Decimal] = None  # percent; None when the house has no bedrooms


class OccupancyMonth(OccupancySnapshot):
    month_start: date
    month_name: str


class HouseOccupancyResponse(BaseModel):
    """Current occupancy and the last twelve months."""
    current: OccupancySnapshot
    history: List[OccupancyMonth]


OccupancyMap = Dict[str, OccupancySnapshot]
