from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from stockbot.core.errors import AppHTTPException
from stockbot.core.settings import settings

"""
Core Security.

Rôle (fonctionnel) :
- API key optionnelle (comme en démo) :
  - Authorization: Bearer <token>
  - X-API-Key: <token>
- Contexte appelant (CallerContext) : l’identité du membre est validée en amont
  (passerelle de session du chatbot) et transmise via le header settings.MEMBER_HEADER.
  Ce backend ne vérifie pas de mot de passe : il fait confiance à ce header.

Comportement API key :
- Si API_KEY est configurée : la clé est requise.
- Si API_KEY est vide et ENV != prod : bypass (dev / local / tests).
- Si API_KEY est vide et ENV = prod : erreur 500 (configuration serveur invalide).
"""


@dataclass(frozen=True)
class CallerContext:
    """Membre authentifié à l’origine de la requête."""
    member_id: uuid.UUID
    request_id: Optional[str] = None


def _extract_token(request: Request) -> Optional[str]:
    """Extrait un token depuis Authorization Bearer ou X-API-Key (si présent)."""
    auth = request.headers.get("authorization")
    if auth:
        parts = auth.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1].strip()

    x_api_key = request.headers.get("x-api-key")
    if x_api_key:
        return x_api_key.strip()

    return None


async def require_api_key(request: Request) -> None:
    """Dépendance FastAPI : vérifie la présence/validité d’une API key."""
    expected = getattr(settings, "API_KEY", "") or ""

    if not expected:
        if str(getattr(settings, "ENV", "dev")).lower() == "prod":
            raise AppHTTPException(500, "SERVER_MISCONFIG", "API_KEY manquante côté serveur")
        return

    token = _extract_token(request)
    if not token or not secrets.compare_digest(token, expected):
        raise AppHTTPException(401, "UNAUTHORIZED", "Clé API invalide ou manquante")


async def get_caller(request: Request) -> CallerContext:
    """
    Dépendance FastAPI : construit le CallerContext depuis le header membre.

    - Header absent -> 401 (aucune session).
    - Header non UUID -> 401 (session invalide).
    """
    raw = (request.headers.get(settings.MEMBER_HEADER) or "").strip()
    if not raw:
        raise AppHTTPException(401, "UNAUTHENTICATED", "Session membre absente")

    try:
        member_id = uuid.UUID(raw)
    except ValueError:
        raise AppHTTPException(401, "UNAUTHENTICATED", "Session membre invalide")

    rid = getattr(request.state, "request_id", None)
    return CallerContext(member_id=member_id, request_id=rid)
