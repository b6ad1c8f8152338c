from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

"""
Core Clock.

Rôle (fonctionnel) :
- Fournit l’heure courante en UTC (timezone-aware) pour tous les horodatages métier.
- Normalise les dates lues en base : certains drivers (SQLite) renvoient des datetimes naïfs,
  considérés comme UTC.

Les services acceptent une horloge injectable (`Clock`) pour les tests.
"""

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    """Datetime -> UTC aware (naïf = UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
