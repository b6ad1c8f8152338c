from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from iot_platform.core.clock import utc_now
from iot_platform.db.base import Base

"""
Model Threshold.

Rôle (fonctionnel) :
- Seuil configuré pour une sonde : borne MINIMUM ou MAXIMUM, sévérité ALERT ou WARNING.
- Un seuil inactif n’est jamais évalué.

Règles :
- Pas d’unicité sur (sensor, kind, severity) : plusieurs niveaux peuvent coexister,
  ex. MINIMUM/WARNING à 18.00 et MINIMUM/ALERT à 15.00.
"""


class Threshold(Base):
    __tablename__ = "thresholds"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    sensor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("devices.id", ondelete="CASCADE"),
        nullable=False,
    )

    # ThresholdKind / AlertSeverity
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)

    # Valeur à virgule fixe (2 décimales)
    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    # Chemin chaud de l’évaluation : seuils actifs d’une sonde
    __table_args__ = (
        Index("ix_thresholds_sensor_active", "sensor_id", "is_active"),
    )
