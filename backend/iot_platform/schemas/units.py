from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field

from iot_platform.models.enums import SensorType
from iot_platform.schemas.common import UTCDateTime

"""
Schemas Units (Pydantic).

Rôle (fonctionnel) :
- Contrat HTTP des unités de mesure. Une unité est rattachée à un type de sonde
  (ex : "°C" -> TEMPERATURE) : une sonde ne peut utiliser qu’une unité de son type.
"""

class UnitCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    symbol: str = Field(min_length=1, max_length=10)
    sensor_type: SensorType

    model_config = ConfigDict(extra="forbid", use_enum_values=True)

class UnitOut(BaseModel):
    id: uuid.UUID
    name: str
    symbol: str
    sensor_type: str
    created_at: UTCDateTime

    model_config = ConfigDict(from_attributes=True)
