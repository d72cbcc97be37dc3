from fastapi import APIRouter

from stockbot.core.settings import settings

"""
API Health.

Rôle (fonctionnel) :
- Vérifie que l’API répond (sans toucher la base).
"""

router = APIRouter()


@router.get("/health")
def health():
    return {
        "status": "ok",
        "env": settings.ENV,
        "app": settings.APP_NAME,
    }
