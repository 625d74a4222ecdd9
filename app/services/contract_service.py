"""Funding contract service: creation, status transitions, renewal and summaries."""
import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.db_models import ContractStatus, FundingContract, Resident, Transaction
from app.schemas.contracts import BalanceSummary, ContractCreate, ContractUpdate
from app.services.contract_eligibility import EligibilityResult, check_contract_eligibility
from app.services.funding_calculations import (
    calculate_balance_summary,
    generate_contract_renewal,
    needs_renewal,
)

logger = logging.getLogger(__name__)

# Allowed contract status transitions; Cancelled is terminal
STATUS_TRANSITIONS = {
    ContractStatus.DRAFT: {ContractStatus.ACTIVE, ContractStatus.CANCELLED},
    ContractStatus.ACTIVE: {ContractStatus.EXPIRED, ContractStatus.CANCELLED},
    ContractStatus.EXPIRED: {ContractStatus.RENEWED, ContractStatus.CANCELLED},
    ContractStatus.RENEWED: {ContractStatus.ACTIVE},
    ContractStatus.CANCELLED: set(),
}


def can_transition(current: ContractStatus, new: ContractStatus) -> bool:
    return new in STATUS_TRANSITIONS.get(current, set())


class ContractService:
    """Manage funding contracts."""

    async def get_contract(
        self, db: AsyncSession, contract_id: UUID, with_resident: bool = False
    ) -> FundingContract:
        query = select(FundingContract).where(FundingContract.id == contract_id)
        if with_resident:
            query = query.options(selectinload(FundingContract.resident))
        contract = (await db.execute(query)).scalar_one_or_none()
        if contract is None:
            raise LookupError("Contract not found")
        return contract

    async def list_for_resident(self, db: AsyncSession, resident_id: UUID) -> List[FundingContract]:
        if await db.get(Resident, resident_id) is None:
            raise LookupError("Resident not found")
        result = await db.execute(
            select(FundingContract)
            .where(FundingContract.resident_id == resident_id)
            .order_by(FundingContract.start_date.desc(), FundingContract.created_at.desc())
        )
        return list(result.scalars().all())

    async def create_contract(
        self, db: AsyncSession, resident_id: UUID, data: ContractCreate
    ) -> FundingContract:
        """Create a Draft contract for a resident; the balance defaults to the full amount."""
        if await db.get(Resident, resident_id) is None:
            raise LookupError("Resident not found")

        values = data.model_dump()
        if values["current_balance"] is None:
            values["current_balance"] = data.original_amount

        contract = FundingContract(resident_id=resident_id, **values)
        db.add(contract)
        await db.commit()
        await db.refresh(contract)

        logger.info(f"Created {contract.contract_type.value} contract {contract.id} for resident {resident_id}")
        return contract

    async def update_contract(
        self, db: AsyncSession, contract_id: UUID, data: ContractUpdate
    ) -> FundingContract:
        contract = await self.get_contract(db, contract_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(contract, field, value)

        if contract.current_balance > contract.original_amount:
            raise ValueError("Current balance cannot exceed original amount")
        if contract.start_date and contract.end_date and contract.end_date < contract.start_date:
            raise ValueError("End date must be after start date")
        if contract.start_date and contract.renewal_date and contract.renewal_date <= contract.start_date:
            raise ValueError("Renewal date must be after start date")

        await db.commit()
        await db.refresh(contract)
        return contract

    async def delete_contract(self, db: AsyncSession, contract_id: UUID):
        contract = await self.get_contract(db, contract_id)
        result = await db.execute(
            select(Transaction.id).where(Transaction.contract_id == contract_id).limit(1)
        )
        if result.scalar_one_or_none() is not None:
            raise ValueError("Cannot delete a contract that has transactions")
        await db.delete(contract)
        await db.commit()
        logger.info(f"Deleted contract {contract_id}")

    async def change_status(
        self, db: AsyncSession, contract_id: UUID, status: ContractStatus
    ) -> FundingContract:
        contract = await self.get_contract(db, contract_id)
        current = contract.contract_status
        if not can_transition(current, status):
            raise ValueError(
                f"Cannot change contract status from {current.value} to {status.value}"
            )
        contract.contract_status = status
        await db.commit()
        await db.refresh(contract)
        logger.info(f"Contract {contract.id} status {current.value} -> {status.value}")
        return contract

    async def renew_contract(
        self, db: AsyncSession, contract_id: UUID, today: Optional[date] = None
    ) -> FundingContract:
        """Create a Draft renewal of a contract, linked to it as parent."""
        contract = await self.get_contract(db, contract_id)
        if contract.contract_status == ContractStatus.CANCELLED:
            raise ValueError("Cannot renew a cancelled contract")

        renewal = FundingContract(**generate_contract_renewal(contract, today))
        db.add(renewal)
        await db.commit()
        await db.refresh(renewal)

        logger.info(f"Renewed contract {contract.id} as {renewal.id}")
        return renewal

    async def get_summary(self, db: AsyncSession, today: Optional[date] = None) -> BalanceSummary:
        result = await db.execute(select(FundingContract))
        return BalanceSummary(**calculate_balance_summary(result.scalars().all(), today))

    async def get_expiring(self, db: AsyncSession, today: Optional[date] = None) -> List[FundingContract]:
        """Active contracts that have ended or end within the warning window."""
        result = await db.execute(
            select(FundingContract)
            .where(FundingContract.contract_status == ContractStatus.ACTIVE)
            .order_by(FundingContract.end_date.asc())
        )
        return [c for c in result.scalars().all() if needs_renewal(c, today)]

    async def check_eligibility(
        self, db: AsyncSession, contract_id: UUID, today: Optional[date] = None
    ) -> EligibilityResult:
        contract = await self.get_contract(db, contract_id, with_resident=True)
        return check_contract_eligibility(contract, today=today)


# Singleton instance
_contract_service: Optional[ContractService] = None


def get_contract_service() -> ContractService:
    """Get or create the contract service singleton."""
    global _contract_service
    if _contract_service is None:
        _contract_service = ContractService()
    return _contract_service
