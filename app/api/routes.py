"""Aggregated API router for the Haven service."""
from fastapi import APIRouter

from app.api import (
    automation_routes,
    claim_routes,
    contact_routes,
    contract_routes,
    dashboard_routes,
    expense_routes,
    head_lease_routes,
    house_routes,
    owner_routes,
    plan_manager_routes,
    resident_routes,
    supplier_routes,
    transaction_routes,
)

api_router = APIRouter()

for module in (
    house_routes,
    resident_routes,
    contract_routes,
    transaction_routes,
    claim_routes,
    automation_routes,
    supplier_routes,
    expense_routes,
    contact_routes,
    owner_routes,
    plan_manager_routes,
    head_lease_routes,
    dashboard_routes,
):
    api_router.include_router(module.router)
