"""Pydantic schemas package."""
from app.schemas.common import ApiResponse, MessageResponse, Page
from app.schemas.houses import HouseCreate, HouseResponse, HouseUpdate
from app.schemas.residents import ResidentCreate, ResidentResponse, ResidentUpdate
from app.schemas.contracts import ContractCreate, ContractResponse, ContractUpdate
from app.schemas.transactions import TransactionCreate, TransactionResponse, TransactionUpdate
from app.schemas.claims import ClaimCreate, ClaimDetailResponse, ClaimResponse
from app.schemas.automations import AutomationCreate, AutomationResponse, AutomationUpdate

__all__ = [
    "ApiResponse",
    "MessageResponse",
    "Page",
    "HouseCreate",
    "HouseResponse",
    "HouseUpdate",
    "ResidentCreate",
    "ResidentResponse",
    "ResidentUpdate",
    "ContractCreate",
    "ContractResponse",
    "ContractUpdate",
    "TransactionCreate",
    "TransactionResponse",
    "TransactionUpdate",
    "ClaimCreate",
    "ClaimDetailResponse",
    "ClaimResponse",
    "AutomationCreate",
    "AutomationResponse",
    "AutomationUpdate",
]
