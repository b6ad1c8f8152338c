from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from iot_platform.core.clock import utc_now
from iot_platform.db.base import Base

"""
Model MeasurementUnit.

Rôle (fonctionnel) :
- Unité de mesure d’une sonde (°C, %HR, ppm…), rattachée à un type de sonde.
"""


class MeasurementUnit(Base):
    __tablename__ = "measurement_units"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    symbol: Mapped[str] = mapped_column(String(10), nullable=False)

    # SensorType (TEMPERATURE / HUMIDITY / AIR_QUALITY)
    sensor_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
