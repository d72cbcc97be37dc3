from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from stockbot.core.errors import (
    AuthorizationError,
    CommitFailure,
    IdempotencyConflictError,
    InsufficientFundsError,
    InsufficientHoldingsError,
    LimitExceededError,
    NotFoundError,
    TradeError,
)
from stockbot.core.request_id import get_request_id
from stockbot.core.security import CallerContext
from stockbot.core.settings import settings
from stockbot.models.stock_transaction import StockTransaction
from stockbot.schemas.trades import StockTransactionCreate
from stockbot.services.member_locks import MemberLockRegistry, member_locks
from stockbot.services.stores import (
    ActiveHolding,
    HoldingState,
    LedgerStorage,
    RemovedHolding,
    StaleHoldingError,
    held_quantity,
)
from stockbot.services.trade_validation import MAX_AMOUNT, TradeKind, TradeRejection, ValidTrade, validate_trade

"""
Trading Engine.

Rôle (fonctionnel) :
- Exécute un achat / une vente d’item pour un membre, en appliquant ensemble :
  - l’insertion dans le journal (stock_transactions),
  - la mise à jour de la détention (stock_holdings),
  - la mise à jour du solde (member_points).
- Garantit les invariants : solde >= 0, détention >= 0, tout-ou-rien.

Déroulé de execute() :
1) Contrôles (premier échec gagne, aucune écriture) :
   membre appelant == acteur, membre existant, item existant, forme de la demande.
2) Section critique par membre (MemberLockRegistry + SELECT … FOR UPDATE) :
   rejeu idempotent éventuel, lecture solde + détention, règles métier, écritures, commit.
3) Toute erreur dans la section critique -> rollback complet.
   Erreur de stockage ou délai dépassé -> CommitFailure (seule erreur rejouable).
"""

log = logging.getLogger("stockbot.trading")


def apply_trade(points: int, holding: HoldingState, trade: ValidTrade) -> Tuple[int, HoldingState]:
    """
    Calcule le nouvel état (solde, détention) d’un trade, ou lève l’erreur métier.

    Fonction pure : aucune lecture / écriture, utilisée à l’intérieur de la section critique.
    """
    qty = trade.quantity

    if trade.kind is TradeKind.BUY:
        if points < trade.total_price:
            raise InsufficientFundsError(points=points, total_price=trade.total_price)

        if isinstance(holding, ActiveHolding):
            if holding.quantity + qty > MAX_AMOUNT:
                raise LimitExceededError("quantity", MAX_AMOUNT)
            new_holding: HoldingState = ActiveHolding(holding.quantity + qty, holding.holding_id)
        elif isinstance(holding, RemovedHolding) or holding is None:
            # Rachat après liquidation (ou premier achat) : nouvelle ligne active
            new_holding = ActiveHolding(qty)
        else:
            raise TypeError(f"État de détention inconnu: {holding!r}")
        return points - trade.total_price, new_holding

    if trade.kind is TradeKind.SELL:
        held = held_quantity(holding)
        if not isinstance(holding, ActiveHolding) or held < qty:
            raise InsufficientHoldingsError(held=held, requested=qty)
        if points + trade.total_price > MAX_AMOUNT:
            raise LimitExceededError("points", MAX_AMOUNT)

        remaining = held - qty
        if remaining == 0:
            new_holding = RemovedHolding(holding.holding_id)
        else:
            new_holding = ActiveHolding(remaining, holding.holding_id)
        return points + trade.total_price, new_holding

    raise TypeError(f"Type de trade inconnu: {trade.kind!r}")


def _as_uuid(value: Any) -> Optional[uuid.UUID]:
    # Identifiant mal formé : aucun item ne peut le porter
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, str):
        try:
            return uuid.UUID(value)
        except ValueError:
            return None
    return None


def _same_trade(record: StockTransaction, trade: ValidTrade) -> bool:
    return (
        record.stock_item_id == trade.stock_item_id
        and record.transaction_type == trade.kind.value
        and record.quantity == trade.quantity
        and record.price_per_unit == trade.price_per_unit
        and record.transaction_fee == trade.transaction_fee
        and record.total_price == trade.total_price
    )


class TradingEngine:
    """
    Moteur de transaction du ledger.

    Dépendances injectées :
    - storage : LedgerStorage construit sur la session de la requête
    - locks   : registre des verrous par membre (global au process par défaut)
    - timeouts (secondes) : attente du verrou, durée max de la section critique
    """

    def __init__(
        self,
        storage: LedgerStorage,
        *,
        locks: MemberLockRegistry | None = None,
        lock_timeout_s: Optional[float] = None,
        commit_timeout_s: Optional[float] = None,
    ) -> None:
        self.storage = storage
        self.locks = locks or member_locks
        self.lock_timeout_s = (
            lock_timeout_s if lock_timeout_s is not None else settings.TRADE_LOCK_TIMEOUT_MS / 1000
        )
        self.commit_timeout_s = (
            commit_timeout_s if commit_timeout_s is not None else settings.TRADE_COMMIT_TIMEOUT_MS / 1000
        )

    async def execute(
        self,
        caller: CallerContext,
        actor_id: uuid.UUID,
        request: StockTransactionCreate,
    ) -> StockTransaction:
        """Exécute le trade et retourne l’enregistrement du journal (nouveau ou rejoué)."""
        try:
            record, replayed = await self._execute(caller, actor_id, request)
        except TradeError as exc:
            log.log(
                logging.WARNING if exc.retryable else logging.INFO,
                "trade_rejected",
                extra={
                    "member_id": actor_id,
                    "stock_item_id": request.stock_item_id,
                    "transaction_type": request.transaction_type,
                    "error_code": exc.code,
                },
            )
            raise

        log.info(
            "trade_replayed" if replayed else "trade_committed",
            extra={
                "member_id": record.member_id,
                "stock_item_id": record.stock_item_id,
                "transaction_type": record.transaction_type,
                "quantity": record.quantity,
                "total_price": record.total_price,
                "transaction_id": record.id,
                "replayed": replayed,
            },
        )
        return record

    async def _validate(
        self,
        caller: CallerContext,
        actor_id: uuid.UUID,
        request: StockTransactionCreate,
    ) -> ValidTrade:
        if actor_id != caller.member_id:
            raise AuthorizationError()

        if not await self.storage.members.exists(actor_id):
            raise NotFoundError("member")

        item_id = _as_uuid(request.stock_item_id)
        if item_id is None or not await self.storage.catalog.exists(item_id):
            raise NotFoundError("item")

        outcome = validate_trade(
            stock_item_id=item_id,
            transaction_type=request.transaction_type,
            quantity=request.quantity,
            price_per_unit=request.price_per_unit,
            transaction_fee=request.transaction_fee,
            total_price=request.total_price,
            idempotency_key=request.idempotency_key,
        )
        if isinstance(outcome, TradeRejection):
            raise outcome.to_error()
        return outcome

    async def _execute(
        self,
        caller: CallerContext,
        actor_id: uuid.UUID,
        request: StockTransactionCreate,
    ) -> Tuple[StockTransaction, bool]:
        trade = await self._validate(caller, actor_id, request)

        # Ferme la transaction de lecture : la section critique repart d’un état frais
        if self.storage.session.in_transaction():
            await self.storage.rollback()

        async with self.locks.hold(actor_id, timeout=self.lock_timeout_s):
            try:
                return await asyncio.wait_for(
                    self._apply(caller, actor_id, trade),
                    timeout=self.commit_timeout_s,
                )
            except TradeError:
                await self.storage.rollback()
                raise
            except asyncio.TimeoutError:
                await self.storage.rollback()
                raise CommitFailure(
                    "Délai de commit dépassé, aucune modification appliquée",
                    details={"commit_timeout_s": self.commit_timeout_s},
                )
            except (SQLAlchemyError, StaleHoldingError) as exc:
                await self.storage.rollback()
                raise CommitFailure(details={"reason": type(exc).__name__}) from exc
            except Exception:
                await self.storage.rollback()
                raise

    async def _apply(
        self,
        caller: CallerContext,
        member_id: uuid.UUID,
        trade: ValidTrade,
    ) -> Tuple[StockTransaction, bool]:
        s = self.storage

        if trade.idempotency_key:
            existing = await s.log.find_by_idempotency_key(member_id, trade.idempotency_key)
            if existing is not None:
                if not _same_trade(existing, trade):
                    raise IdempotencyConflictError(trade.idempotency_key)
                # Rien à écrire : on termine la transaction sans expirer l’objet
                await s.commit()
                return existing, True

        points = await s.balances.read(member_id, for_update=True)
        holding = await s.holdings.read(member_id, trade.stock_item_id, for_update=True)

        new_points, new_holding = apply_trade(points or 0, holding, trade)

        record = StockTransaction(
            id=uuid.uuid4(),
            member_id=member_id,
            stock_item_id=trade.stock_item_id,
            transaction_type=trade.kind.value,
            quantity=trade.quantity,
            price_per_unit=trade.price_per_unit,
            transaction_fee=trade.transaction_fee,
            total_price=trade.total_price,
            idempotency_key=trade.idempotency_key,
            request_id=caller.request_id or get_request_id(),
            created_at=datetime.now(timezone.utc),
        )

        await s.log.append(record)
        await s.holdings.write(member_id, trade.stock_item_id, new_holding)
        await s.balances.write(member_id, new_points)
        await s.commit()

        return record, False
