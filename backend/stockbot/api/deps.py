from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from stockbot.core.security import get_caller, require_api_key
from stockbot.db.session import get_db
from stockbot.services.stores import LedgerStorage

"""
Dépendances API.

Rôle (fonctionnel) :
- ApiKeyDep : protection par clé API (optionnelle en dev).
- CallerDep : membre authentifié (header posé par la passerelle de session).
- get_storage : stores du ledger construits sur la session DB de la requête.
"""


async def require_service_auth(request: Request) -> None:
    await require_api_key(request)


async def get_storage(db: AsyncSession = Depends(get_db)) -> LedgerStorage:
    return LedgerStorage(db)


ApiKeyDep = Depends(require_service_auth)
CallerDep = Depends(get_caller)
StorageDep = Depends(get_storage)


