from fastapi import APIRouter

from backend.app.api.v1.endpoints import (
    amc_quotes,
    customers,
    dg_invoices,
    general_settings,
    inventory,
    po_from_customers,
    qr_code,
    quotes,
    users,
)

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(customers.router, prefix="/customers", tags=["customers"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(quotes.router, prefix="/quotations", tags=["quotations"])
api_router.include_router(amc_quotes.router, prefix="/amc-quotations", tags=["amc-quotations"])
api_router.include_router(dg_invoices.router, prefix="/dg-invoices", tags=["dg-invoices"])
api_router.include_router(
    po_from_customers.router, prefix="/po-from-customers", tags=["po-from-customers"]
)
api_router.include_router(
    general_settings.router, prefix="/general-settings", tags=["general-settings"]
)
api_router.include_router(qr_code.router, prefix="/qr-code", tags=["qr-code"])
