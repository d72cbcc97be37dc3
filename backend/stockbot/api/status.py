from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stockbot.db.session import get_db
from stockbot.models.stock_transaction import StockTransaction
from stockbot.services.member_locks import member_locks

"""
API System Status.

Rôle (fonctionnel) :
- Healthcheck plateforme : disponibilité de la base (requête minimale).
- Fraîcheur : date du dernier trade commité.
- Charge : nombre de membres ayant un trade en cours dans ce process.
"""

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/status")
async def system_status(db: AsyncSession = Depends(get_db)):
    db_ok = True
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        db_ok = False

    last_trade = None
    if db_ok:
        try:
            value = (await db.execute(select(func.max(StockTransaction.created_at)))).scalar()
            last_trade = value.isoformat() if value else None
        except SQLAlchemyError:
            last_trade = None

    return {
        "ok": db_ok,
        "db": {"ok": db_ok},
        "trading": {"members_in_flight": member_locks.active_count()},
        "last_trade": last_trade,
        "ts": datetime.now(timezone.utc).isoformat(),
    }
