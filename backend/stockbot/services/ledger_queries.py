from __future__ import annotations

import uuid

from stockbot.core.errors import AuthorizationError, NotFoundError
from stockbot.core.security import CallerContext
from stockbot.models.stock_transaction import StockTransaction
from stockbot.schemas.trades import HoldingOut, PortfolioOut
from stockbot.services.stores import LedgerStorage

"""
Ledger Queries.

Rôle (fonctionnel) :
- Lectures du ledger pour le membre authentifié (aucune écriture) :
  - détail d’une transaction du journal,
  - portefeuille : solde de points + détentions actives.
- Un membre ne lit que ses propres données (AuthorizationError sinon).
- Une transaction d’un autre membre est traitée comme inexistante (pas de fuite d’existence).
"""


class LedgerQueryService:
    def __init__(self, storage: LedgerStorage) -> None:
        self.storage = storage

    @staticmethod
    def _authorize(caller: CallerContext, member_id: uuid.UUID) -> None:
        if caller.member_id != member_id:
            raise AuthorizationError()

    async def get_transaction(
        self,
        caller: CallerContext,
        member_id: uuid.UUID,
        transaction_id: uuid.UUID,
    ) -> StockTransaction:
        self._authorize(caller, member_id)

        record = await self.storage.log.get(transaction_id)
        if record is None or record.member_id != member_id:
            raise NotFoundError("transaction")
        return record

    async def get_portfolio(self, caller: CallerContext, member_id: uuid.UUID) -> PortfolioOut:
        self._authorize(caller, member_id)

        if not await self.storage.members.exists(member_id):
            raise NotFoundError("member")

        points = await self.storage.balances.read(member_id)
        holdings = await self.storage.holdings.list_active(member_id)

        return PortfolioOut(
            member_id=member_id,
            points=points or 0,
            holdings=[HoldingOut.model_validate(h) for h in holdings],
        )
