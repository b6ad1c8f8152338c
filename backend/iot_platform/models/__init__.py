"""
iot_platform.models

Package ORM (SQLAlchemy) : entités persistées de la plateforme IoT.

Rôle (fonctionnel) :
- Centralise les modèles (Location, MeasurementUnit, Device, ActuatorState, Reading, Threshold, Alert, AlertEvent).
- Relations exprimées par identifiants (colonnes *_id + requêtes explicites), sans navigation ORM
  bidirectionnelle : pas de graphe d’objets cyclique.
- Expose explicitement l’API publique du package via __all__.
"""

from iot_platform.models.location import Location
from iot_platform.models.unit import MeasurementUnit
from iot_platform.models.device import Device
from iot_platform.models.reading import Reading
from iot_platform.models.threshold import Threshold
from iot_platform.models.alert import Alert
from iot_platform.models.alert_event import AlertEvent
from iot_platform.models.actuator_state import ActuatorState

__all__ = [
    "Location",
    "MeasurementUnit",
    "Device",
    "Reading",
    "Threshold",
    "Alert",
    "AlertEvent",
    "ActuatorState",
]
