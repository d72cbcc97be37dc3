from __future__ import annotations

import uuid
from contextvars import ContextVar

"""
Core Request ID.

Rôle (fonctionnel) :
- Porte l’identifiant de requête (request_id) du contexte courant dans un ContextVar.
- Le request_id vient du header X-Request-Id, ou est généré s’il est absent.
- Il est repris par les logs JSON, le payload d’erreur et chaque transaction
  enregistrée (colonne request_id), ce qui permet de relier un trade à sa requête HTTP.
"""

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(rid: str | None) -> None:
    _request_id.set(rid)


def get_request_id() -> str | None:
    return _request_id.get()


def ensure_request_id(incoming: str | None = None) -> str:
    """Réutilise le request_id entrant (nettoyé, tronqué à 64) ou génère un UUID."""
    rid = (incoming or "").strip()[:64] or str(uuid.uuid4())
    set_request_id(rid)
    return rid
