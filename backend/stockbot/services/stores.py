from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockbot.models.member import Member
from stockbot.models.member_points import MemberPoints
from stockbot.models.stock_holding import StockHolding
from stockbot.models.stock_item import StockItem
from stockbot.models.stock_transaction import StockTransaction

"""
Ledger Stores.

Rôle (fonctionnel) :
- Adapte les tables du ledger en “stores” simples (read / write) au-dessus d’une AsyncSession :
  - MemberDirectory : existence d’un membre (externe)
  - CatalogLookup   : existence d’un item (externe)
  - BalanceStore    : solde de points (absence == 0)
  - HoldingStore    : détention (membre, item) avec cycle de vie explicite
  - TransactionLog  : journal append-only
- LedgerStorage regroupe les stores d’une même session : c’est l’objet injecté dans le moteur.

Principe :
- Aucun store n’applique de règle métier : les invariants sont vérifiés par le moteur avant write().
- Les write() font un flush : une contrainte DB violée remonte avant le commit.
- for_update=True pose un verrou ligne (SELECT … FOR UPDATE) sur Postgres ; ignoré par SQLite.
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StaleHoldingError(Exception):
    """La ligne de détention lue n’existe plus au moment de l’écriture."""


# --- Cycle de vie d’une détention ---


@dataclass(frozen=True)
class ActiveHolding:
    """Détention courante. holding_id=None : ligne à créer au prochain write()."""
    quantity: int
    holding_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class RemovedHolding:
    """Détention entièrement liquidée (quantity == 0, ligne conservée)."""
    holding_id: Optional[uuid.UUID] = None


# None = jamais détenu
HoldingState = Union[ActiveHolding, RemovedHolding, None]


def held_quantity(state: HoldingState) -> int:
    if isinstance(state, ActiveHolding):
        return state.quantity
    if isinstance(state, RemovedHolding):
        return 0
    if state is None:
        return 0
    raise TypeError(f"État de détention inconnu: {state!r}")


# --- Stores ---


class MemberDirectory:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def exists(self, member_id: uuid.UUID) -> bool:
        row = await self.session.execute(select(Member.id).where(Member.id == member_id))
        return row.first() is not None


class CatalogLookup:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def exists(self, item_id: uuid.UUID) -> bool:
        row = await self.session.execute(select(StockItem.id).where(StockItem.id == item_id))
        return row.first() is not None


class BalanceStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _row(self, member_id: uuid.UUID, *, for_update: bool = False) -> Optional[MemberPoints]:
        stmt = select(MemberPoints).where(MemberPoints.member_id == member_id)
        if for_update:
            stmt = stmt.with_for_update()
        return (await self.session.execute(stmt)).scalars().first()

    async def read(self, member_id: uuid.UUID, *, for_update: bool = False) -> Optional[int]:
        """Solde courant, ou None si aucune ligne (équivaut à 0 point)."""
        row = await self._row(member_id, for_update=for_update)
        return row.points if row is not None else None

    async def write(self, member_id: uuid.UUID, points: int) -> None:
        # UPSERT applicatif : la ligne est créée au premier mouvement
        row = await self._row(member_id)
        if row is None:
            self.session.add(MemberPoints(member_id=member_id, points=points, updated_at=_utcnow()))
        else:
            row.points = points
            row.updated_at = _utcnow()
        await self.session.flush()


class HoldingStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def read(
        self,
        member_id: uuid.UUID,
        item_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> HoldingState:
        """
        Retourne l’état courant de la détention :
        - ActiveHolding si une ligne active existe,
        - RemovedHolding si seule une ligne retirée existe (la plus récente),
        - None si le membre n’a jamais détenu l’item.
        """
        stmt = select(StockHolding).where(
            StockHolding.member_id == member_id,
            StockHolding.stock_item_id == item_id,
            StockHolding.deleted_at.is_(None),
        )
        if for_update:
            stmt = stmt.with_for_update()
        active = (await self.session.execute(stmt)).scalars().first()
        if active is not None:
            return ActiveHolding(quantity=active.quantity, holding_id=active.id)

        removed = (
            await self.session.execute(
                select(StockHolding.id)
                .where(
                    StockHolding.member_id == member_id,
                    StockHolding.stock_item_id == item_id,
                    StockHolding.deleted_at.is_not(None),
                )
                .order_by(StockHolding.deleted_at.desc())
                .limit(1)
            )
        ).first()
        if removed is not None:
            return RemovedHolding(holding_id=removed[0])
        return None

    async def write(self, member_id: uuid.UUID, item_id: uuid.UUID, state: HoldingState) -> None:
        now = _utcnow()

        if isinstance(state, ActiveHolding):
            if state.holding_id is None:
                self.session.add(
                    StockHolding(
                        member_id=member_id,
                        stock_item_id=item_id,
                        quantity=state.quantity,
                        created_at=now,
                        updated_at=now,
                    )
                )
            else:
                row = await self.session.get(StockHolding, state.holding_id)
                if row is None:
                    raise StaleHoldingError(f"stock_holding {state.holding_id} absent")
                row.quantity = state.quantity
                row.updated_at = now
        elif isinstance(state, RemovedHolding):
            if state.holding_id is None:
                raise ValueError("Impossible de retirer une détention qui n’existe pas")
            row = await self.session.get(StockHolding, state.holding_id)
            if row is None:
                raise StaleHoldingError(f"stock_holding {state.holding_id} absent")
            row.quantity = 0
            row.deleted_at = now
            row.updated_at = now
        else:
            raise TypeError(f"État de détention non inscriptible: {state!r}")

        await self.session.flush()

    async def list_active(self, member_id: uuid.UUID) -> List[StockHolding]:
        stmt = (
            select(StockHolding)
            .where(StockHolding.member_id == member_id, StockHolding.deleted_at.is_(None))
            .order_by(StockHolding.created_at.asc())
        )
        return list((await self.session.execute(stmt)).scalars().all())


class TransactionLog:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def append(self, record: StockTransaction) -> StockTransaction:
        if record.created_at is None:
            record.created_at = _utcnow()
        self.session.add(record)
        await self.session.flush()
        return record

    async def get(self, transaction_id: uuid.UUID) -> Optional[StockTransaction]:
        stmt = select(StockTransaction).where(StockTransaction.id == transaction_id)
        return (await self.session.execute(stmt)).scalars().first()

    async def find_by_idempotency_key(self, member_id: uuid.UUID, key: str) -> Optional[StockTransaction]:
        stmt = select(StockTransaction).where(
            StockTransaction.member_id == member_id,
            StockTransaction.idempotency_key == key,
        )
        return (await self.session.execute(stmt)).scalars().first()


class LedgerStorage:
    """Ensemble des stores partageant une même session (une unité de commit)."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.members = MemberDirectory(session)
        self.catalog = CatalogLookup(session)
        self.balances = BalanceStore(session)
        self.holdings = HoldingStore(session)
        self.log = TransactionLog(session)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
