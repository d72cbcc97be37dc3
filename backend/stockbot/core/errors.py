from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException

"""
Core Errors.

Rôle (fonctionnel) :
- Standardise le format des erreurs renvoyées par l’API (payload homogène).
- Fournit une exception HTTP applicative (AppHTTPException) pour la couche transport.
- Définit la taxonomie des erreurs du moteur de trading (TradeError et sous-classes).
  Chaque erreur porte un code stable, un status HTTP et un flag `retryable`.

Convention de réponse (exemple) :
{
  "error": {
    "code": "INSUFFICIENT_FUNDS",
    "message": "Solde de points insuffisant",
    "status": 409,
    "request_id": "...",
    "timestamp": "...",
    "details": {"points": 500, "total_price": 2000}
  }
}

Seule CommitFailure est “retryable” : toutes les autres erreurs sont terminales
pour la requête (la rejouer à l’identique échouera de la même façon).
"""


def now_iso() -> str:
    """Timestamp ISO-8601 en UTC (utilisé dans toutes les erreurs)."""
    return datetime.now(timezone.utc).isoformat()


def error_payload(
    *,
    code: str,
    message: str,
    status: int,
    request_id: str,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    """Construit un payload d’erreur homogène pour l’API."""
    payload: Dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "status": status,
            "request_id": request_id,
            "timestamp": now_iso(),
        }
    }
    if details is not None:
        payload["error"]["details"] = details
    return payload


class AppHTTPException(HTTPException):
    """
    Exception HTTP standardisée (couche API : auth, rate-limit, config serveur).

    Exemple :
        raise AppHTTPException(401, "UNAUTHORIZED", "Clé API invalide ou manquante")
    """

    def __init__(self, status_code: int, code: str, message: str, details: Any = None):
        super().__init__(status_code=status_code, detail={"code": code, "message": message, "details": details})


# --- Erreurs métier du moteur de trading ---


class TradeError(Exception):
    """Racine des erreurs du moteur (indépendantes du transport HTTP)."""

    code: str = "TRADE_ERROR"
    status: int = 400
    retryable: bool = False

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class AuthorizationError(TradeError):
    code = "FORBIDDEN"
    status = 403

    def __init__(self, message: str = "Membre non autorisé pour cette ressource", details: Any = None) -> None:
        super().__init__(message, details)


class NotFoundError(TradeError):
    code = "NOT_FOUND"
    status = 404

    def __init__(self, entity: str, details: Any = None) -> None:
        super().__init__(f"{entity} introuvable", details)
        self.entity = entity


class ValidationError(TradeError):
    code = "VALIDATION_ERROR"
    status = 422

    def __init__(self, field: str, reason: str = "valeur invalide") -> None:
        super().__init__(f"{field}: {reason}", {"field": field, "reason": reason})
        self.field = field
        self.reason = reason


class InsufficientFundsError(TradeError):
    code = "INSUFFICIENT_FUNDS"
    status = 409

    def __init__(self, points: int, total_price: int) -> None:
        super().__init__(
            "Solde de points insuffisant",
            {"points": points, "total_price": total_price},
        )


class InsufficientHoldingsError(TradeError):
    code = "INSUFFICIENT_HOLDINGS"
    status = 409

    def __init__(self, held: int, requested: int) -> None:
        super().__init__(
            "Quantité détenue insuffisante",
            {"held": held, "requested": requested},
        )


class IdempotencyConflictError(TradeError):
    code = "IDEMPOTENCY_CONFLICT"
    status = 409

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            "Clé d’idempotence déjà utilisée pour une autre transaction",
            {"idempotency_key": idempotency_key},
        )


class CommitFailure(TradeError):
    """Échec transitoire (stockage, timeout verrou/commit) : rien n’a été appliqué."""

    code = "COMMIT_FAILED"
    status = 503
    retryable = True

    def __init__(self, message: str = "Échec du commit, aucune modification appliquée", details: Any = None) -> None:
        super().__init__(message, details)


class LimitExceededError(TradeError):
    """Le résultat du trade dépasserait la capacité d’une colonne (solde ou quantité)."""

    code = "LIMIT_EXCEEDED"
    status = 409

    def __init__(self, field: str, limit: int) -> None:
        super().__init__(
            f"{field}: plafond de {limit} dépassé",
            {"field": field, "limit": limit},
        )
