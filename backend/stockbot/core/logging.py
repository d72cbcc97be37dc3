from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .request_id import get_request_id

"""
Core Logging.

Rôle (fonctionnel) :
- Configure un logging JSON uniforme pour tout le backend (API + uvicorn).
- Injecte le request_id dans chaque log pour corréler les événements d’une même requête.
- Supporte des “extras” structurés :
  - HTTP : method, path, status_code, duration_ms, client_ip
  - trading : member_id, stock_item_id, transaction_type, quantity, transaction_id, error_code

Notes :
- Une ligne = un event JSON (adapté aux agrégateurs de logs).
- Le root logger est configuré et uvicorn est aligné sur le même handler.
"""

# Extras reconnus (si fournis via logger.info(..., extra={...}))
EXTRA_KEYS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_ip",
    "member_id",
    "stock_item_id",
    "transaction_type",
    "quantity",
    "total_price",
    "transaction_id",
    "error_code",
    "replayed",
)


class RequestIdFilter(logging.Filter):
    """Ajoute request_id au LogRecord (valeur '-' si absent)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "msg": record.getMessage(),
        }

        for key in EXTRA_KEYS:
            if hasattr(record, key):
                value = getattr(record, key)
                # UUID / Decimal -> str pour rester sérialisable
                payload[key] = value if isinstance(value, (int, float, bool, str, type(None))) else str(value)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: str = "INFO") -> None:
    """
    Initialise le logging global (root) en JSON et aligne uvicorn dessus.

    - Nettoie les handlers existants (évite les doublons avec --reload).
    - StreamHandler stdout + JsonFormatter + RequestIdFilter.
    """
    lvl = level.upper()

    root = logging.getLogger()
    root.setLevel(lvl)

    if root.handlers:
        root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        logger.handlers = root.handlers
        logger.setLevel(lvl)
