"""Bedroom occupancy of houses.

A bedroom counts as occupied by an Active resident of the house who holds a
funding contract covering the date in question.
"""
import calendar
from collections import defaultdict
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.db_models import ContractStatus, House, Resident, ResidentStatus
from app.schemas.financials import HouseOccupancyResponse, OccupancyMonth, OccupancySnapshot
from app.services.financials import month_start
from app.services.funding_calculations import CENT

HISTORY_MONTHS = 12
SNAPSHOT_DAY = 15  # history is sampled mid-month


def occupancy_rate(occupied: int, bedrooms: int) -> Optional[Decimal]:
    """Occupied bedrooms as a percentage, None for a house without bedrooms."""
    if not bedrooms:
        return None
    return (Decimal(occupied) * 100 / Decimal(bedrooms)).quantize(CENT, rounding=ROUND_HALF_UP)


def holds_current_contract(resident: Resident, today: date) -> bool:
    return any(
        c.contract_status == ContractStatus.ACTIVE and (c.end_date is None or c.end_date >= today)
        for c in resident.contracts
    )


def was_resident_on(resident: Resident, day: date) -> bool:
    """Living in the house on `day` under an Active or since-Expired contract."""
    if resident.move_in_date and resident.move_in_date > day:
        return False
    if resident.move_out_date and resident.move_out_date < day:
        return False
    return any(
        c.contract_status in (ContractStatus.ACTIVE, ContractStatus.EXPIRED)
        and (c.start_date is None or c.start_date <= day)
        and (c.end_date is None or c.end_date >= day)
        for c in resident.contracts
    )


def current_occupancy(house: House, residents: Iterable[Resident], today: date) -> OccupancySnapshot:
    occupied = sum(1 for r in residents if holds_current_contract(r, today))
    return OccupancySnapshot(
        occupied_bedrooms=occupied,
        total_bedrooms=house.bedroom_count,
        occupancy_rate=occupancy_rate(occupied, house.bedroom_count),
    )


def occupancy_history(house: House, residents: List[Resident], today: date) -> List[OccupancyMonth]:
    """One entry per month for the last twelve months, oldest first."""
    history = []
    for offset in range(HISTORY_MONTHS - 1, -1, -1):
        start = month_start(today, -offset)
        check_date = start.replace(day=SNAPSHOT_DAY)
        occupied = sum(1 for r in residents if was_resident_on(r, check_date))
        history.append(OccupancyMonth(
            month_start=start,
            month_name=f"{calendar.month_abbr[start.month]} {start.year}",
            occupied_bedrooms=occupied,
            total_bedrooms=house.bedroom_count,
            occupancy_rate=occupancy_rate(occupied, house.bedroom_count),
        ))
    return history


async def _active_residents(db: AsyncSession, house_ids: List[UUID]) -> Dict[UUID, List[Resident]]:
    result = await db.execute(
        select(Resident)
        .options(selectinload(Resident.contracts))
        .where(Resident.house_id.in_(house_ids), Resident.status == ResidentStatus.ACTIVE)
    )
    by_house = defaultdict(list)
    for resident in result.scalars().all():
        by_house[resident.house_id].append(resident)
    return by_house


async def get_house_occupancy(
    db: AsyncSession, house_id: UUID, today: Optional[date] = None
) -> HouseOccupancyResponse:
    house = await db.get(House, house_id)
    if house is None:
        raise LookupError("House not found")

    today = today or date.today()
    residents = (await _active_residents(db, [house_id]))[house_id]
    return HouseOccupancyResponse(
        current=current_occupancy(house, residents, today),
        history=occupancy_history(house, residents, today),
    )


async def get_all_occupancy(db: AsyncSession, today: Optional[date] = None) -> Dict[str, OccupancySnapshot]:
    """Current occupancy keyed by house id."""
    today = today or date.today()
    houses = (await db.execute(select(House))).scalars().all()
    residents = await _active_residents(db, [h.id for h in houses]) if houses else {}
    return {
        str(house.id): current_occupancy(house, residents.get(house.id, []), today)
        for house in houses
    }
