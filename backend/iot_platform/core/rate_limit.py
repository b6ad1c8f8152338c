from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Tuple

from fastapi import Request

from iot_platform.core.errors import AppHTTPException
from iot_platform.core.settings import settings

"""
Core Rate Limit.

Rôle (fonctionnel) :
- Protège l’API contre les rafales (ex : un device en HttpPush mal configuré qui inonde /devices/{id}/data).
- Implémentation “in-memory” par IP + route (method + path), fenêtre fixe de 60 secondes (RPM).
- Conçu pour un déploiement mono-instance : un limiter distribué serait nécessaire au-delà.

Activation via settings :
- RATE_LIMIT_ENABLED : active/désactive le rate limiting.
- RATE_LIMIT_RPM : limite de requêtes par minute (par IP + route).
"""

# Préfixes de routes soumis au rate limit (écritures fréquentes côté devices / opérateurs)
LIMITED_PREFIXES = ("/readings", "/alerts", "/devices")


@dataclass
class _Bucket:
    """État minimal d’un compteur sur une fenêtre fixe."""
    window_start: float
    count: int


class InMemoryRateLimiter:
    """
    Rate limiter en mémoire (best-effort).

    - Stocke un compteur par clé (IP, "METHOD /path") sur une fenêtre de 60s.
    - Déclenche AppHTTPException(429) si la limite est dépassée.
    """

    def __init__(self, window_seconds: float = 60.0) -> None:
        self._lock = Lock()
        self._buckets: Dict[Tuple[str, str], _Bucket] = {}
        self.window_seconds = window_seconds

    def applies_to(self, path: str) -> bool:
        return path.startswith(LIMITED_PREFIXES)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()

    def _client_ip(self, request: Request) -> str:
        return request.client.host if request.client else "unknown"

    def check(self, request: Request) -> None:
        """Vérifie la limite pour (IP + route). Lève 429 si dépassement."""
        if not getattr(settings, "RATE_LIMIT_ENABLED", False):
            return

        limit = int(getattr(settings, "RATE_LIMIT_RPM", 120) or 120)
        if limit <= 0:
            return

        key = (self._client_ip(request), f"{request.method} {request.url.path}")
        now = time.time()

        with self._lock:
            bucket = self._buckets.get(key)

            if bucket is None or (now - bucket.window_start) >= self.window_seconds:
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


# Instance globale importable (utilisée dans le middleware)
rate_limiter = InMemoryRateLimiter()
