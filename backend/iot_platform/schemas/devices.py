from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from iot_platform.models.enums import ActuatorType, CommunicationChannel, SensorType
from iot_platform.schemas.common import UTCDateTime

"""
Schemas Devices (Pydantic).

Rôle (fonctionnel) :
- Contrat HTTP des sondes et actionneurs (deux vues d’une même table devices).
- Payloads de communication :
  - DeviceDataIn        : donnée poussée par un device (webhook)
  - ConnectionTestOut   : résultat d’un test de connexion HTTP_PULL
- État d’actionneur : ActuatorStateIn (commande) / ActuatorStateOut (état courant)

Notes :
- use_enum_values=True : les services reçoivent des chaînes (valeurs stockées en base).
- Les Update sont partiels : seuls les champs envoyés sont appliqués (exclude_unset).
- device_credentials n’est jamais renvoyé en sortie.
"""

class _DeviceBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    location_id: uuid.UUID
    is_active: bool = True
    installed_at: Optional[UTCDateTime] = None
    channel: CommunicationChannel = CommunicationChannel.HTTP_PUSH
    device_url: Optional[str] = Field(default=None, max_length=500)
    device_credentials: Optional[str] = Field(default=None, max_length=200)
    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None

    model_config = ConfigDict(extra="forbid", use_enum_values=True)

class SensorCreate(_DeviceBase):
    sensor_type: SensorType
    unit_id: uuid.UUID

class ActuatorCreate(_DeviceBase):
    actuator_type: ActuatorType

class _DeviceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    location_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None
    installed_at: Optional[UTCDateTime] = None
    channel: Optional[CommunicationChannel] = None
    device_url: Optional[str] = Field(default=None, max_length=500)
    device_credentials: Optional[str] = Field(default=None, max_length=200)
    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None

    model_config = ConfigDict(extra="forbid", use_enum_values=True)

class SensorUpdate(_DeviceUpdate):
    sensor_type: Optional[SensorType] = None
    unit_id: Optional[uuid.UUID] = None

class ActuatorUpdate(_DeviceUpdate):
    actuator_type: Optional[ActuatorType] = None

class _DeviceOut(BaseModel):
    id: uuid.UUID
    kind: str
    name: str
    location_id: uuid.UUID
    is_active: bool
    installed_at: UTCDateTime
    created_at: UTCDateTime
    channel: str
    device_url: Optional[str] = None
    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)

class SensorOut(_DeviceOut):
    sensor_type: str
    unit_id: Optional[uuid.UUID] = None

class ActuatorOut(_DeviceOut):
    actuator_type: Optional[str] = None

class DeviceDataIn(BaseModel):
    """Donnée poussée par un device : valeur + horodatage optionnel (défaut : maintenant)."""
    value: Decimal
    timestamp: Optional[UTCDateTime] = None

    model_config = ConfigDict(extra="ignore")

class DeviceDataAccepted(BaseModel):
    """Accusé de réception d’une donnée d’actionneur (aucun relevé créé)."""
    device_id: uuid.UUID
    accepted: bool = True

class ConnectionTestOut(BaseModel):
    success: bool
    message: str
    value: Optional[Decimal] = None
    timestamp: Optional[UTCDateTime] = None
    duration_ms: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

class ActuatorStateIn(BaseModel):
    """Commande d’un actionneur : pourcentage requis pour allumer un variateur ou un moteur."""
    is_on: bool
    percentage: Optional[int] = Field(default=None, ge=0, le=100)

    model_config = ConfigDict(extra="forbid")

class ActuatorStateOut(BaseModel):
    actuator_id: uuid.UUID
    is_on: bool
    percentage: int
    updated_at: UTCDateTime

    model_config = ConfigDict(from_attributes=True)
