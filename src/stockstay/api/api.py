from fastapi import APIRouter

from src.stockstay.api.endpoints import billing, team, warehouses

api_router = APIRouter()
api_router.include_router(billing.router)
api_router.include_router(team.router)
api_router.include_router(warehouses.router)
