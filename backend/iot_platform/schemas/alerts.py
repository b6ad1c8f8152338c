from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from iot_platform.schemas.common import UTCDateTime

"""
Schemas Alerts (Pydantic).

Rôle (fonctionnel) :
- Définit le contrat HTTP autour des alertes (requests / responses).
- Valide et sérialise :
  - les actions manuelles (acquittement / résolution + commentaire optionnel),
  - la représentation d’une alerte,
  - le détail d’une alerte (instantanés sonde + seuil),
  - les événements d’historique (audit).

Notes :
- Ces schémas sont distincts des modèles ORM (iot_platform.models.*).
- ConfigDict(from_attributes=True) permet de construire un schéma depuis un objet ORM.
"""


class AlertActionIn(BaseModel):
    """Payload d’acquittement / résolution (commentaire optionnel, ajouté au message)."""
    comment: Optional[str] = Field(default=None, max_length=2000)

    # Refuse les champs inattendus (API contract strict)
    model_config = ConfigDict(extra="forbid")


class AlertEventOut(BaseModel):
    """Sortie API pour un événement d’historique d’alerte (audit trail)."""
    id: uuid.UUID
    alert_id: uuid.UUID
    event_type: str
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    message: Optional[str] = None

    # Traçabilité : acteur + request_id
    actor: Optional[str] = None
    request_id: Optional[str] = None

    created_at: UTCDateTime

    model_config = ConfigDict(from_attributes=True)


class AlertOut(BaseModel):
    """Sortie API pour une alerte (snapshot seuil + statut + horodatages)."""
    id: uuid.UUID
    sensor_id: uuid.UUID
    threshold_id: Optional[uuid.UUID] = None
    kind: str
    severity: str
    status: str
    message: Optional[str] = None
    created_at: UTCDateTime
    acknowledged_at: Optional[UTCDateTime] = None
    resolved_at: Optional[UTCDateTime] = None

    model_config = ConfigDict(from_attributes=True)


class SensorSnapshot(BaseModel):
    id: uuid.UUID
    name: str
    sensor_type: Optional[str] = None
    location_id: uuid.UUID
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class ThresholdSnapshot(BaseModel):
    id: uuid.UUID
    kind: str
    severity: str
    value: Decimal
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class AlertDetailsOut(BaseModel):
    """
    Détail d’une alerte.

    Composition :
    - alert : l’alerte
    - sensor : la sonde concernée (None si supprimée)
    - threshold : le seuil d’origine dans son état actuel (None si supprimé)
    """
    alert: AlertOut
    sensor: Optional[SensorSnapshot] = None
    threshold: Optional[ThresholdSnapshot] = None
