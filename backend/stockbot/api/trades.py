from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Header

from stockbot.api.deps import ApiKeyDep, CallerDep, StorageDep
from stockbot.core.security import CallerContext
from stockbot.schemas.trades import PortfolioOut, StockTransactionCreate, StockTransactionOut
from stockbot.services.ledger_queries import LedgerQueryService
from stockbot.services.stores import LedgerStorage
from stockbot.services.trading_engine import TradingEngine

"""
API Trades.

Rôle (fonctionnel) :
- POST /members/{member_id}/stock-transactions : achat / vente d’un item (moteur de trading).
- GET  /members/{member_id}/stock-transactions/{transaction_id} : détail d’une transaction.
- GET  /members/{member_id}/portfolio : solde + détentions actives.

Notes :
- Les erreurs métier (TradeError) remontent telles quelles : main.py les convertit
  en payload d’erreur standard (code stable + status HTTP).
- Idempotency-Key (header) est repris si le corps ne porte pas déjà idempotency_key.
"""

router = APIRouter(prefix="/members/{member_id}", tags=["trades"], dependencies=[ApiKeyDep])


@router.post("/stock-transactions", response_model=StockTransactionOut, status_code=201)
async def create_stock_transaction(
    member_id: UUID,
    payload: StockTransactionCreate,
    caller: CallerContext = CallerDep,
    storage: LedgerStorage = StorageDep,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
):
    if payload.idempotency_key is None and idempotency_key and idempotency_key.strip():
        payload = payload.model_copy(update={"idempotency_key": idempotency_key.strip()})

    engine = TradingEngine(storage)
    record = await engine.execute(caller, member_id, payload)
    return StockTransactionOut.model_validate(record)


@router.get("/stock-transactions/{transaction_id}", response_model=StockTransactionOut)
async def get_stock_transaction(
    member_id: UUID,
    transaction_id: UUID,
    caller: CallerContext = CallerDep,
    storage: LedgerStorage = StorageDep,
):
    record = await LedgerQueryService(storage).get_transaction(caller, member_id, transaction_id)
    return StockTransactionOut.model_validate(record)


@router.get("/portfolio", response_model=PortfolioOut)
async def get_portfolio(
    member_id: UUID,
    caller: CallerContext = CallerDep,
    storage: LedgerStorage = StorageDep,
):
    return await LedgerQueryService(storage).get_portfolio(caller, member_id)
