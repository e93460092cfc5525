from fastapi import APIRouter

from app.api.v1 import health, production, productivity

api_router = APIRouter()

api_router.include_router(health.router, prefix="/v1", tags=["health"])
api_router.include_router(production.router, prefix="/v1/production", tags=["production"])
api_router.include_router(productivity.router, prefix="/v1/productivity", tags=["productivity"])
