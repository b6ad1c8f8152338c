from __future__ import annotations

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from iot_platform.schemas.common import UTCDateTime

"""
Schemas Locations (Pydantic).

Rôle (fonctionnel) :
- Contrat HTTP des localisations (lieux d’installation des devices).
"""


class LocationIn(BaseModel):
    """Création / mise à jour complète d’une localisation."""
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)

    model_config = ConfigDict(extra="forbid")


class LocationOut(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    created_at: UTCDateTime

    model_config = ConfigDict(from_attributes=True)
