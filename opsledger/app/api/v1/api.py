from fastapi import APIRouter

from opsledger.app.api.v1.endpoints import (
    accounts,
    employees,
    fixed_assets,
    rental,
    transfers,
)

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(accounts.router, prefix="/accounts", tags=["accounts"])
api_router.include_router(fixed_assets.router, prefix="/fixed-assets", tags=["fixed-assets"])
api_router.include_router(rental.router, prefix="/rental", tags=["rental"])
api_router.include_router(transfers.router, prefix="/account-transfers", tags=["account-transfers"])
api_router.include_router(employees.router, prefix="/employees", tags=["employees"])
