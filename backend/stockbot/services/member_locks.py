from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Optional

from stockbot.core.errors import CommitFailure

"""
Member Locks.

Rôle (fonctionnel) :
- Sérialise, dans un process, les trades d’un même membre : un asyncio.Lock par membre,
  tenu pendant toute la séquence lecture -> contrôle -> écriture -> commit.
- Les membres différents ne se bloquent jamais entre eux.
- Le registre ne grossit pas : une entrée disparaît dès que plus personne ne l’attend.

Notes :
- En multi-process (plusieurs workers uvicorn), la sérialisation inter-process est assurée
  par les verrous ligne (SELECT … FOR UPDATE) posés par les stores.
- Dépassement du délai d’attente -> CommitFailure (transitoire, rejouable) ; un verrou
  obtenu pendant l’abandon de l’attente est immédiatement rendu.
"""


def _release_if_acquired(lock: asyncio.Lock):
    def callback(waiter: asyncio.Future) -> None:
        if not waiter.cancelled() and waiter.exception() is None:
            lock.release()
    return callback


async def acquire_within(lock: asyncio.Lock, timeout: Optional[float]) -> bool:
    """
    Attend `lock` au plus `timeout` secondes ; False si le délai est dépassé.

    Un acquire() abandonné peut aboutir au moment même de l’annulation :
    le verrou ainsi obtenu est rendu dès que la tâche se termine.
    """
    waiter = asyncio.ensure_future(lock.acquire())
    try:
        done, _ = await asyncio.wait({waiter}, timeout=timeout)
    except BaseException:
        waiter.cancel()
        waiter.add_done_callback(_release_if_acquired(lock))
        raise

    if not done:
        waiter.cancel()
        waiter.add_done_callback(_release_if_acquired(lock))
        return False
    return waiter.result()


@dataclass
class _Entry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class MemberLockRegistry:
    def __init__(self) -> None:
        self._entries: Dict[uuid.UUID, _Entry] = {}

    def active_count(self) -> int:
        """Nombre de membres ayant un verrou tenu ou attendu."""
        return len(self._entries)

    def is_locked(self, member_id: uuid.UUID) -> bool:
        entry = self._entries.get(member_id)
        return bool(entry and entry.lock.locked())

    @asynccontextmanager
    async def hold(self, member_id: uuid.UUID, timeout: Optional[float] = None) -> AsyncIterator[None]:
        entry = self._entries.get(member_id)
        if entry is None:
            entry = self._entries[member_id] = _Entry()
        entry.users += 1

        try:
            if not await acquire_within(entry.lock, timeout):
                raise CommitFailure(
                    "Trade concurrent en cours pour ce membre, réessayer",
                    details={"lock_timeout_s": timeout},
                )

            try:
                yield
            finally:
                entry.lock.release()
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._entries.pop(member_id, None)


# Registre global du process (partagé par toutes les requêtes)
member_locks = MemberLockRegistry()
