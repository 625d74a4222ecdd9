"""SQLAlchemy database models."""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from app.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def local_now():
    """Return current time in local timezone."""
    return datetime.now().astimezone()


# =============================================================================
# ENUMERATIONS
# =============================================================================

class AustralianState(str, enum.Enum):
    """Australian state or territory."""

    ACT = "ACT"
    NSW = "NSW"
    NT = "NT"
    QLD = "QLD"
    SA = "SA"
    TAS = "TAS"
    VIC = "VIC"
    WA = "WA"


class HouseStatus(str, enum.Enum):
    """House status enumeration."""

    ACTIVE = "Active"
    VACANT = "Vacant"
    UNDER_MAINTENANCE = "Under maintenance"


class HeadLeaseStatus(str, enum.Enum):
    """Head lease status enumeration."""

    ACTIVE = "active"
    UPCOMING = "upcoming"
    EXPIRED = "expired"


class RentFrequency(str, enum.Enum):
    """Head lease rent frequency."""

    WEEKLY = "weekly"
    FORTNIGHTLY = "fortnightly"
    MONTHLY = "monthly"


class Gender(str, enum.Enum):
    """Resident gender enumeration."""

    MALE = "Male"
    FEMALE = "Female"
    NON_BINARY = "Non-binary"
    PREFER_NOT_TO_SAY = "Prefer not to say"


class ResidentStatus(str, enum.Enum):
    """Resident lifecycle status."""

    DRAFT = "Draft"
    PROSPECT = "Prospect"
    ACTIVE = "Active"
    DEACTIVATED = "Deactivated"


class ContractType(str, enum.Enum):
    """Funding contract type."""

    NDIS = "NDIS"
    GOVERNMENT = "Government"
    PRIVATE = "Private"
    FAMILY = "Family"
    OTHER = "Other"


class ContractStatus(str, enum.Enum):
    """Funding contract status."""

    DRAFT = "Draft"
    ACTIVE = "Active"
    EXPIRED = "Expired"
    CANCELLED = "Cancelled"
    RENEWED = "Renewed"


class DrawdownRate(str, enum.Enum):
    """Rate at which a contract balance draws down."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class BillingFrequency(str, enum.Enum):
    """Frequency of automated contract billing."""

    DAILY = "daily"
    WEEKLY = "weekly"
    FORTNIGHTLY = "fortnightly"


class TransactionStatus(str, enum.Enum):
    """Transaction status enumeration."""

    DRAFT = "draft"
    PICKED_UP = "picked_up"
    SUBMITTED = "submitted"
    PAID = "paid"
    REJECTED = "rejected"
    ERROR = "error"
    # Legacy drawdown states
    POSTED = "posted"
    VOIDED = "voided"


class DrawdownStatus(str, enum.Enum):
    """Drawdown processing status of a transaction."""

    PENDING = "pending"
    VALIDATED = "validated"
    POSTED = "posted"
    REJECTED = "rejected"
    VOIDED = "voided"


class RecordSource(str, enum.Enum):
    """Origin of a generated record."""

    MANUAL = "manual"
    AUTOMATION = "automation"


class AuditAction(str, enum.Enum):
    """Transaction audit action."""

    CREATED = "created"
    UPDATED = "updated"
    POSTED = "posted"
    VOIDED = "voided"


class ClaimStatus(str, enum.Enum):
    """Claim status enumeration."""

    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    PROCESSED = "processed"
    SUBMITTED = "submitted"
    PAID = "paid"
    REJECTED = "rejected"
    PARTIALLY_PAID = "partially_paid"


class AutomationType(str, enum.Enum):
    """Automation runner type."""

    RECURRING_TRANSACTION = "recurring_transaction"
    CONTRACT_BILLING_RUN = "contract_billing_run"
    DAILY_DIGEST = "daily_digest"


class AutomationRunStatus(str, enum.Enum):
    """Automation run status."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class SupplierType(str, enum.Enum):
    """Supplier trade type."""

    GENERAL_MAINTENANCE = "General Maintenance"
    PLUMBER = "Plumber"
    ELECTRICIAN = "Electrician"
    CLEANING = "Cleaning"
    LANDSCAPING = "Landscaping"
    HVAC = "HVAC"
    SECURITY = "Security"
    OTHER = "Other"


class ExpenseScope(str, enum.Enum):
    """Whether an expense belongs to a property or the organisation."""

    PROPERTY = "property"
    ORGANISATION = "organisation"


class ExpenseFrequency(str, enum.Enum):
    """Expense recurrence frequency."""

    ONE_OFF = "one_off"
    WEEKLY = "weekly"
    FORTNIGHTLY = "fortnightly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"


class ExpenseStatus(str, enum.Enum):
    """Expense status enumeration."""

    DRAFT = "draft"
    APPROVED = "approved"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


# =============================================================================
# DIRECTORY: OWNERS, PLAN MANAGERS, CONTACTS, SUPPLIERS
# =============================================================================

class Owner(Base):
    """Property owner model."""

    __tablename__ = "owners"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    owner_type = Column(String(50), nullable=False)  # e.g. "individual", "company", "trust"
    primary_contact_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )

    # Relationships
    houses = relationship("House", back_populates="owner")
    head_leases = relationship("HeadLease", back_populates="owner")


class PlanManager(Base):
    """NDIS plan manager model."""

    __tablename__ = "plan_managers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    billing_email = Column(String(255), nullable=True)
    notes = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )

    # Relationships
    residents = relationship("Resident", back_populates="plan_manager")


class Contact(Base):
    """Contact model (family, support coordinator, guardian, etc.)."""

    __tablename__ = "contacts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    role = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )

    # Relationships
    resident_links = relationship(
        "ResidentContact", back_populates="contact", cascade="all, delete-orphan"
    )


class Supplier(Base):
    """Supplier model."""

    __tablename__ = "suppliers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    supplier_type = Column(Enum(SupplierType), nullable=False)
    contact_name = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )

    # Relationships
    expenses = relationship("Expense", back_populates="supplier")


# =============================================================================
# HOUSES AND RESIDENTS
# =============================================================================

class House(Base):
    """House model."""

    __tablename__ = "houses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    address1 = Column(String(120), nullable=False)
    unit = Column(String(20), nullable=True)
    suburb = Column(String(100), nullable=False)
    state = Column(Enum(AustralianState), nullable=False)
    postcode = Column(String(4), nullable=False)
    country = Column(String(2), default="AU", nullable=False)
    status = Column(Enum(HouseStatus), default=HouseStatus.ACTIVE, nullable=False)
    descriptor = Column(String(255), nullable=True)  # Friendly name, e.g. "Sunset House"
    bedroom_count = Column(Integer, default=0, nullable=False)
    notes = Column(Text, nullable=True)
    go_live_date = Column(Date, nullable=True)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("owners.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )

    # Relationships
    owner = relationship("Owner", back_populates="houses")
    residents = relationship("Resident", back_populates="house")
    expenses = relationship("Expense", back_populates="house")
    head_leases = relationship("HeadLease", back_populates="house", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        """Descriptor if set, otherwise the street address."""
        if self.descriptor:
            return self.descriptor
        if self.unit:
            return f"{self.unit}/{self.address1}, {self.suburb}"
        return f"{self.address1}, {self.suburb}"


class HeadLease(Base):
    """Lease under which the organisation rents a house from its owner."""

    __tablename__ = "head_leases"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    house_id = Column(Uuid(as_uuid=True), ForeignKey("houses.id"), nullable=False, index=True)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("owners.id"), nullable=False)
    reference = Column(String(100), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    status = Column(Enum(HeadLeaseStatus), default=HeadLeaseStatus.ACTIVE, nullable=False)
    rent_amount = Column(Numeric(12, 2), nullable=True)
    rent_frequency = Column(Enum(RentFrequency), default=RentFrequency.WEEKLY, nullable=False)
    review_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    document_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )

    # Relationships
    house = relationship("House", back_populates="head_leases")
    owner = relationship("Owner", back_populates="head_leases")

class Resident(Base):
    """Resident (NDIS participant) model."""

    __tablename__ = "residents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    house_id = Column(Uuid(as_uuid=True), ForeignKey("houses.id"), nullable=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(Enum(Gender), nullable=True)
    phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    ndis_id = Column(String(12), nullable=True)
    status = Column(Enum(ResidentStatus), default=ResidentStatus.DRAFT, nullable=False)
    notes = Column(String(500), nullable=True)
    plan_manager_id = Column(Uuid(as_uuid=True), ForeignKey("plan_managers.id"), nullable=True)
    room_label = Column(String(50), nullable=True)
    move_in_date = Column(Date, nullable=True)
    move_out_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )

    # Relationships
    house = relationship("House", back_populates="residents")
    plan_manager = relationship("PlanManager", back_populates="residents")
    contracts = relationship(
        "FundingContract", back_populates="resident", cascade="all, delete-orphan"
    )
    transactions = relationship("Transaction", back_populates="resident")
    contact_links = relationship(
        "ResidentContact", back_populates="resident", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class ResidentContact(Base):
    """Link between a resident and a contact."""

    __tablename__ = "resident_contacts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    resident_id = Column(Uuid(as_uuid=True), ForeignKey("residents.id"), nullable=False)
    contact_id = Column(Uuid(as_uuid=True), ForeignKey("contacts.id"), nullable=False)
    relationship_note = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)

    # Relationships
    resident = relationship("Resident", back_populates="contact_links")
    contact = relationship("Contact", back_populates="resident_links", lazy="joined")

    __table_args__ = (
        UniqueConstraint("resident_id", "contact_id", name="uq_resident_contact"),
    )


# =============================================================================
# FUNDING CONTRACTS
# =============================================================================

class FundingContract(Base):
    """Funding contract held by a resident."""

    __tablename__ = "funding_contracts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    resident_id = Column(Uuid(as_uuid=True), ForeignKey("residents.id"), nullable=False)
    contract_type = Column(Enum(ContractType), nullable=False)
    contract_status = Column(Enum(ContractStatus), default=ContractStatus.DRAFT, nullable=False)
    original_amount = Column(Numeric(12, 2), nullable=False)
    current_balance = Column(Numeric(12, 2), nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    renewal_date = Column(Date, nullable=True)
    drawdown_rate = Column(Enum(DrawdownRate), default=DrawdownRate.MONTHLY, nullable=False)
    auto_drawdown = Column(Boolean, default=False, nullable=False)
    description = Column(Text, nullable=True)

    # NDIS support item
    support_item_code = Column(String(20), nullable=True)  # e.g. "01_011_0107_1_1"
    daily_support_item_cost = Column(Numeric(12, 2), nullable=True)

    # Automated billing
    auto_billing_enabled = Column(Boolean, default=False, nullable=False)
    automated_drawdown_frequency = Column(Enum(BillingFrequency), nullable=True)
    next_run_date = Column(Date, nullable=True)
    last_drawdown_date = Column(Date, nullable=True)

    parent_contract_id = Column(
        Uuid(as_uuid=True), ForeignKey("funding_contracts.id"), nullable=True
    )
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )

    # Relationships
    resident = relationship("Resident", back_populates="contracts")
    transactions = relationship("Transaction", back_populates="contract")


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(Base):
    """Service transaction billed against a funding contract."""

    __tablename__ = "transactions"

    id = Column(String(40), primary_key=True)  # TXN-{ORG}-A000001
    resident_id = Column(Uuid(as_uuid=True), ForeignKey("residents.id"), nullable=False)
    contract_id = Column(Uuid(as_uuid=True), ForeignKey("funding_contracts.id"), nullable=False)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    service_code = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Numeric(10, 2), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    note = Column(Text, nullable=True)
    status = Column(Enum(TransactionStatus), default=TransactionStatus.DRAFT, nullable=False)

    # Drawdown
    drawdown_status = Column(
        Enum(DrawdownStatus), default=DrawdownStatus.PENDING, nullable=False
    )
    is_orphaned = Column(Boolean, default=False, nullable=False)
    service_item_code = Column(String(20), nullable=True)
    support_agreement_id = Column(String(100), nullable=True)
    participant_id = Column(String(50), nullable=True)

    # Provenance
    source = Column(Enum(RecordSource), default=RecordSource.MANUAL, nullable=False)
    automation_id = Column(
        Uuid(as_uuid=True), ForeignKey("automations.id", ondelete="SET NULL"), nullable=True
    )
    is_automated = Column(Boolean, default=False, nullable=False)

    # Claim
    claim_id = Column(Uuid(as_uuid=True), ForeignKey("claims.id"), nullable=True)

    # Lifecycle
    created_by = Column(String(100), nullable=False)
    posted_at = Column(DateTime(timezone=True), nullable=True)
    posted_by = Column(String(100), nullable=True)
    voided_at = Column(DateTime(timezone=True), nullable=True)
    voided_by = Column(String(100), nullable=True)
    void_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )

    # Relationships
    resident = relationship("Resident", back_populates="transactions", lazy="joined")
    contract = relationship("FundingContract", back_populates="transactions")
    claim = relationship("Claim", back_populates="transactions")
    audit_entries = relationship(
        "TransactionAuditEntry", back_populates="transaction", cascade="all, delete-orphan"
    )

    @property
    def resident_name(self) -> Optional[str]:
        return self.resident.full_name if self.resident else None

    __table_args__ = (
        Index("ix_transactions_resident_id", "resident_id"),
        Index("ix_transactions_contract_id", "contract_id"),
        Index("ix_transactions_status", "status"),
        Index("ix_transactions_occurred_at", "occurred_at"),
        Index("ix_transactions_claim_id", "claim_id"),
    )


class TransactionAuditEntry(Base):
    """Audit trail entry for a transaction change."""

    __tablename__ = "transaction_audit_log"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    transaction_id = Column(
        String(40), ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False
    )
    action = Column(Enum(AuditAction), nullable=False)
    changes = Column(JSONType, nullable=True)  # {field: {"old": ..., "new": ...}}
    comment = Column(Text, nullable=True)
    user_id = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)

    # Relationships
    transaction = relationship("Transaction", back_populates="audit_entries")


# =============================================================================
# CLAIMS
# =============================================================================

class Claim(Base):
    """A batch of transactions submitted to a funder."""

    __tablename__ = "claims"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    claim_number = Column(String(20), nullable=False, unique=True)  # CLM-0000001
    status = Column(Enum(ClaimStatus), default=ClaimStatus.DRAFT, nullable=False)
    filters = Column(JSONType, nullable=True)
    transaction_count = Column(Integer, default=0, nullable=False)
    total_amount = Column(Numeric(12, 2), default=0, nullable=False)
    file_path = Column(Text, nullable=True)
    file_generated_at = Column(DateTime(timezone=True), nullable=True)
    file_generated_by = Column(String(100), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )

    # Relationships
    transactions = relationship("Transaction", back_populates="claim")
    reconciliations = relationship(
        "ClaimReconciliation", back_populates="claim", cascade="all, delete-orphan"
    )


class ClaimReconciliation(Base):
    """Result of uploading a funder response file against a claim."""

    __tablename__ = "claim_reconciliations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    claim_id = Column(Uuid(as_uuid=True), ForeignKey("claims.id"), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_path = Column(Text, nullable=True)
    total_processed = Column(Integer, default=0, nullable=False)
    total_paid = Column(Integer, default=0, nullable=False)
    total_rejected = Column(Integer, default=0, nullable=False)
    total_errors = Column(Integer, default=0, nullable=False)
    total_unmatched = Column(Integer, default=0, nullable=False)
    results_json = Column(JSONType, nullable=True)
    uploaded_by = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)

    # Relationships
    claim = relationship("Claim", back_populates="reconciliations")


# =============================================================================
# AUTOMATIONS
# =============================================================================

class Automation(Base):
    """Scheduled automation."""

    __tablename__ = "automations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(Enum(AutomationType), nullable=False)
    is_enabled = Column(Boolean, default=True, nullable=False)
    schedule = Column(JSONType, nullable=False)
    parameters = Column(JSONType, nullable=False, default=dict)
    last_run_at = Column(DateTime(timezone=True), nullable=True)
    next_run_at = Column(DateTime(timezone=True), nullable=True)
    last_run_status = Column(Enum(AutomationRunStatus), nullable=True)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )

    # Relationships
    runs = relationship(
        "AutomationRun", back_populates="automation", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_automations_type", "type"),
        Index("ix_automations_next_run_at", "next_run_at"),
    )


class AutomationRun(Base):
    """A single execution of an automation."""

    __tablename__ = "automation_runs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    automation_id = Column(
        Uuid(as_uuid=True), ForeignKey("automations.id", ondelete="CASCADE"), nullable=False
    )
    started_at = Column(DateTime(timezone=True), default=local_now, nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(
        Enum(AutomationRunStatus), default=AutomationRunStatus.RUNNING, nullable=False
    )
    summary = Column(Text, nullable=True)
    metrics = Column(JSONType, nullable=True)
    error = Column(JSONType, nullable=True)

    # Relationships
    automation = relationship("Automation", back_populates="runs")


# =============================================================================
# EXPENSES
# =============================================================================

class Expense(Base):
    """Property or organisation expense."""

    __tablename__ = "expenses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    house_id = Column(Uuid(as_uuid=True), ForeignKey("houses.id"), nullable=True)  # NULL = organisation
    scope = Column(Enum(ExpenseScope), default=ExpenseScope.PROPERTY, nullable=False)
    category = Column(String(50), nullable=False)
    description = Column(String(500), nullable=False)
    reference = Column(String(100), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    frequency = Column(Enum(ExpenseFrequency), default=ExpenseFrequency.ONE_OFF, nullable=False)
    occurred_at = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)
    paid_at = Column(Date, nullable=True)
    status = Column(Enum(ExpenseStatus), default=ExpenseStatus.DRAFT, nullable=False)
    supplier_id = Column(Uuid(as_uuid=True), ForeignKey("suppliers.id"), nullable=True)
    notes = Column(Text, nullable=True)

    # Utility snapshots
    is_snapshot = Column(Boolean, default=False, nullable=False)
    meter_reading = Column(Numeric(12, 2), nullable=True)
    reading_unit = Column(String(20), nullable=True)

    # Provenance
    source = Column(Enum(RecordSource), default=RecordSource.MANUAL, nullable=False)
    automation_id = Column(
        Uuid(as_uuid=True), ForeignKey("automations.id", ondelete="SET NULL"), nullable=True
    )
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )

    # Relationships
    house = relationship("House", back_populates="expenses")
    supplier = relationship("Supplier", back_populates="expenses")

    __table_args__ = (
        Index("ix_expenses_house_id", "house_id"),
        Index("ix_expenses_occurred_at", "occurred_at"),
    )


# Database Indexes
Index("ix_residents_house_id", Resident.house_id)
Index("ix_residents_status", Resident.status)
Index("ix_funding_contracts_resident_id", FundingContract.resident_id)
Index("ix_funding_contracts_status", FundingContract.contract_status)
Index("ix_claims_status", Claim.status)
Index("ix_automation_runs_automation_id", AutomationRun.automation_id)
