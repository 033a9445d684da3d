from fastapi import APIRouter

from app.api.balances import balances_router
from app.api.employees import employees_router
from app.api.grants import grants_router, policy_grants_router
from app.api.policies import router as policies_router

api_router = APIRouter()
api_router.include_router(policies_router)
api_router.include_router(policy_grants_router)
api_router.include_router(grants_router)
api_router.include_router(balances_router)
api_router.include_router(employees_router)
