from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from iot_platform.db.base import Base

"""
Model Reading.

Rôle (fonctionnel) :
- Relevé de mesure d’une sonde à un instant donné (valeur à 2 décimales).
- origin : MANUAL (saisie opérateur) ou AUTOMATIC (push / pull device).

Note :
- Aucun lien stocké vers les alertes : un relevé DÉCLENCHE l’évaluation,
  l’alerte ne conserve pas de reading_id.
"""


class Reading(Base):
    __tablename__ = "readings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    sensor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("devices.id", ondelete="CASCADE"),
        nullable=False,
    )

    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    measured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # ReadingOrigin
    origin: Mapped[str] = mapped_column(String(20), nullable=False, default="MANUAL")

    # Historique d’une sonde (tri chronologique) + listes par date
    __table_args__ = (
        Index("ix_readings_sensor_date", "sensor_id", "measured_at"),
        Index("ix_readings_date", "measured_at"),
    )
