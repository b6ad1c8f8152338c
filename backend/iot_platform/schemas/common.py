from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel

from iot_platform.core.clock import as_utc

"""
Schemas communs (Pydantic).

Rôle (fonctionnel) :
- Métadonnées de pagination partagées par les listes paginées.
- UTCDateTime : datetime toujours timezone-aware en UTC (un datetime naïf, lu depuis SQLite
  ou envoyé par un client, est considéré comme UTC).
"""

UTCDateTime = Annotated[datetime, AfterValidator(as_utc)]


class PageMeta(BaseModel):
    """Métadonnées de pagination (page, taille, total)."""
    page: int
    page_size: int
    total: int
