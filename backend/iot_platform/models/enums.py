from __future__ import annotations

from enum import Enum

"""
Enums métier.

Rôle (fonctionnel) :
- Vocabulaire partagé par les modèles ORM, les schémas API et les services.
- Stockés en base sous forme de chaînes (String) : valeurs stables et lisibles en SQL.

Points clés :
- ThresholdKind (Minimum / Maximum) et AlertSeverity (Alert / Warning) sont indépendants :
  une sonde peut avoir simultanément un Warning et une Alert actifs sur un même kind.
- AlertStatus suit un cycle de vie strict : ACTIVE -> ACKNOWLEDGED -> RESOLVED (terminal),
  ou ACTIVE -> RESOLVED directement.
"""


class DeviceKind(str, Enum):
    """Discriminant de la table devices (variante étiquetée)."""
    SENSOR = "SENSOR"
    ACTUATOR = "ACTUATOR"


class CommunicationChannel(str, Enum):
    """Mode d’échange avec le device."""
    HTTP_PUSH = "HTTP_PUSH"  # le device pousse ses données (webhook)
    HTTP_PULL = "HTTP_PULL"  # la plateforme interroge le device périodiquement
    MQTT = "MQTT"
    SIGNALR = "SIGNALR"


class SensorType(str, Enum):
    TEMPERATURE = "TEMPERATURE"
    HUMIDITY = "HUMIDITY"
    AIR_QUALITY = "AIR_QUALITY"


class ActuatorType(str, Enum):
    SIMPLE_BULB = "SIMPLE_BULB"
    DIMMABLE_BULB = "DIMMABLE_BULB"
    MOTOR = "MOTOR"


class ReadingOrigin(str, Enum):
    MANUAL = "MANUAL"
    AUTOMATIC = "AUTOMATIC"


class ThresholdKind(str, Enum):
    MINIMUM = "MINIMUM"  # dépassé si valeur < seuil
    MAXIMUM = "MAXIMUM"  # dépassé si valeur > seuil


class AlertSeverity(str, Enum):
    ALERT = "ALERT"      # critique
    WARNING = "WARNING"  # informatif


class AlertStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    RESOLVED = "RESOLVED"


class AlertEventType(str, Enum):
    CREATED = "CREATED"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    RESOLVED = "RESOLVED"
    AUTO_RESOLVED = "AUTO_RESOLVED"
