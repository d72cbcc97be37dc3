from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Tuple

from fastapi import Request

from stockbot.core.errors import AppHTTPException
from stockbot.core.settings import settings

"""
Core Rate Limit.

Rôle (fonctionnel) :
- Protège les routes de trading contre les rafales (bot qui boucle, double-clic…).
- Fenêtre fixe de 60 secondes, en mémoire, par appelant + route.
  L’appelant est le membre (header settings.MEMBER_HEADER) s’il est présent, sinon l’IP.
- En multi-instances, chaque process a son propre compteur (best-effort).

Activation via settings :
- RATE_LIMIT_ENABLED / RATE_LIMIT_RPM.
"""


@dataclass
class _Bucket:
    window_start: float
    count: int


class InMemoryRateLimiter:
    """Compteur par (appelant, "METHOD /path") ; lève AppHTTPException(429) au-delà de la limite."""

    def __init__(self, window_s: float = 60.0) -> None:
        self._lock = Lock()
        self._window_s = window_s
        self._buckets: Dict[Tuple[str, str], _Bucket] = {}

    def _caller_key(self, request: Request) -> str:
        member = (request.headers.get(settings.MEMBER_HEADER) or "").strip()
        if member:
            return f"member:{member}"
        return f"ip:{request.client.host if request.client else 'unknown'}"

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()

    def check(self, request: Request) -> None:
        if not getattr(settings, "RATE_LIMIT_ENABLED", False):
            return

        limit = int(getattr(settings, "RATE_LIMIT_RPM", 120) or 120)
        if limit <= 0:
            return

        key = (self._caller_key(request), f"{request.method} {request.url.path}")
        now = time.time()

        with self._lock:
            bucket = self._buckets.get(key)

            # Nouvelle fenêtre : on réinitialise
            if bucket is None or (now - bucket.window_start) >= self._window_s:
                self._buckets[key] = _Bucket(window_start=now, count=1)
                return

            bucket.count += 1

            if bucket.count > limit:
                raise AppHTTPException(
                    429,
                    "RATE_LIMITED",
                    f"Trop de requêtes (limite: {limit}/min).",
                    details={"limit_rpm": limit},
                )


rate_limiter = InMemoryRateLimiter()
