from __future__ import annotations

import uuid
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from iot_platform.models.enums import AlertSeverity, ThresholdKind
from iot_platform.schemas.common import UTCDateTime

"""
Schemas Thresholds (Pydantic).

Rôle (fonctionnel) :
- Contrat HTTP du registre des seuils.
- Un seuil créé est inactif par défaut : il faut l’activer explicitement
  (création avec is_active=true, update ou toggle).
- kind / severity ne sont pas modifiables : pour changer de nature, on crée un autre seuil.
"""

class ThresholdCreate(BaseModel):
    sensor_id: uuid.UUID
    kind: ThresholdKind
    severity: AlertSeverity
    value: Decimal
    is_active: bool = False

    model_config = ConfigDict(extra="forbid", use_enum_values=True)

class ThresholdUpdate(BaseModel):
    value: Decimal
    is_active: bool

    model_config = ConfigDict(extra="forbid")

class ThresholdOut(BaseModel):
    id: uuid.UUID
    sensor_id: uuid.UUID
    kind: str
    severity: str
    value: Decimal
    is_active: bool
    created_at: UTCDateTime

    model_config = ConfigDict(from_attributes=True)
