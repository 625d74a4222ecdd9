"""Database models package."""
from app.models.db_models import (
    # Enumerations
    AuditAction,
    AustralianState,
    AutomationRunStatus,
    AutomationType,
    BillingFrequency,
    ClaimStatus,
    ContractStatus,
    ContractType,
    DrawdownRate,
    DrawdownStatus,
    ExpenseFrequency,
    ExpenseScope,
    ExpenseStatus,
    Gender,
    HouseStatus,
    RecordSource,
    ResidentStatus,
    SupplierType,
    TransactionStatus,
    # Directory
    Contact,
    Owner,
    PlanManager,
    Supplier,
    # Houses & Residents
    House,
    Resident,
    ResidentContact,
    # Funding & Transactions
    FundingContract,
    Transaction,
    TransactionAuditEntry,
    # Claims
    Claim,
    ClaimReconciliation,
    # Automations
    Automation,
    AutomationRun,
    # Expenses
    Expense,
)

__all__ = [
    # Enumerations
    "AuditAction",
    "AustralianState",
    "AutomationRunStatus",
    "AutomationType",
    "BillingFrequency",
    "ClaimStatus",
    "ContractStatus",
    "ContractType",
    "DrawdownRate",
    "DrawdownStatus",
    "ExpenseFrequency",
    "ExpenseScope",
    "ExpenseStatus",
    "Gender",
    "HouseStatus",
    "RecordSource",
    "ResidentStatus",
    "SupplierType",
    "TransactionStatus",
    # Directory
    "Contact",
    "Owner",
    "PlanManager",
    "Supplier",
    # Houses & Residents
    "House",
    "Resident",
    "ResidentContact",
    # Funding & Transactions
    "FundingContract",
    "Transaction",
    "TransactionAuditEntry",
    # Claims
    "Claim",
    "ClaimReconciliation",
    # Automations
    "Automation",
    "AutomationRun",
    # Expenses
    "Expense",
]
