from fastapi import APIRouter

from .health import router as health_router
from .status import router as status_router
from .trades import router as trades_router

"""
Router principal de l’API : regroupe les routeurs par domaine (health, system, trades).
"""

api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(status_router)
api_router.include_router(trades_router)
