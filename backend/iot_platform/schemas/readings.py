from __future__ import annotations

import uuid
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from iot_platform.models.enums import ReadingOrigin
from iot_platform.schemas.alerts import AlertOut
from iot_platform.schemas.common import PageMeta, UTCDateTime

"""
Schemas Readings (Pydantic).

Rôle (fonctionnel) :
- Contrat HTTP des relevés (saisie manuelle, consultation, correction).
- La réponse d’ingestion inclut les alertes créées / résolues par l’évaluation.

Notes :
- value est un Decimal (virgule fixe, 2 décimales) : sérialisé en chaîne JSON ("12.50")
  pour ne pas perdre la précision.
"""


class ReadingCreate(BaseModel):
    sensor_id: uuid.UUID
    value: Decimal
    measured_at: Optional[UTCDateTime] = None
    origin: ReadingOrigin = ReadingOrigin.MANUAL

    model_config = ConfigDict(extra="forbid", use_enum_values=True)


class ReadingUpdate(BaseModel):
    value: Optional[Decimal] = None
    measured_at: Optional[UTCDateTime] = None
    origin: Optional[ReadingOrigin] = None

    model_config = ConfigDict(extra="forbid", use_enum_values=True)


class ReadingOut(BaseModel):
    id: uuid.UUID
    sensor_id: uuid.UUID
    value: Decimal
    measured_at: UTCDateTime
    origin: str

    model_config = ConfigDict(from_attributes=True)


class ReadingIngestOut(BaseModel):
    """Relevé persisté + effets de l’évaluation des seuils."""
    reading: ReadingOut
    alerts_created: List[AlertOut] = Field(default_factory=list)
    alerts_resolved: List[AlertOut] = Field(default_factory=list)


class ReadingListResponse(BaseModel):
    data: List[ReadingOut]
    meta: PageMeta
