from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from iot_platform.core.clock import utc_now
from iot_platform.db.base import Base

"""
Model Device.

Rôle (fonctionnel) :
- Table unique pour les deux variantes de device :
  - SENSOR   (sonde) : produit des relevés, porte des seuils et des alertes
  - ACTUATOR (actionneur) : device pilotable, hors du périmètre d’évaluation des alertes
- La variante est portée par la colonne `kind` et résolue par filtre de requête
  (where Device.kind == ...), pas par héritage ORM.

Champs communs :
- name, location_id, is_active, installed_at, channel (HTTP_PUSH / HTTP_PULL / MQTT / SIGNALR),
  device_url + device_credentials ("user:password") pour le mode HTTP_PULL,
  min_value / max_value : plage physique optionnelle du device.

Champs spécifiques (NULL pour l’autre variante) :
- SENSOR   : sensor_type, unit_id
- ACTUATOR : actuator_type
"""


class Device(Base):
    __tablename__ = "devices"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Discriminant (DeviceKind)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    location_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("locations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    installed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    # Communication
    channel: Mapped[str] = mapped_column(String(20), nullable=False, default="HTTP_PUSH")
    device_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    device_credentials: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Plage physique du device (optionnelle)
    min_value: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    max_value: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    # --- SENSOR ---
    sensor_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    unit_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("measurement_units.id", ondelete="RESTRICT"),
        nullable=True,
    )

    # --- ACTUATOR ---
    actuator_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Polling : sondes actives par canal
    __table_args__ = (
        Index("ix_devices_kind_channel_active", "kind", "channel", "is_active"),
    )
