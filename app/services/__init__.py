"""Services package."""
from app.services.automation_service import AutomationService, get_automation_service
from app.services.billing_run import BillingRunService, get_billing_run_service
from app.services.claim_service import ClaimService, get_claim_service
from app.services.contract_service import ContractService, get_contract_service
from app.services.transaction_service import TransactionService, get_transaction_service

__all__ = [
    "AutomationService",
    "get_automation_service",
    "BillingRunService",
    "get_billing_run_service",
    "ClaimService",
    "get_claim_service",
    "ContractService",
    "get_contract_service",
    "TransactionService",
    "get_transaction_service",
]
