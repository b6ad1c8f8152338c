from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from iot_platform.core.clock import utc_now
from iot_platform.db.base import Base

"""
Model ActuatorState.

Rôle (fonctionnel) :
- État courant d’un actionneur (1 ligne par actionneur, pas d’historique) :
  - is_on      : allumé / éteint
  - percentage : intensité (ampoule à variateur) ou vitesse (moteur), 0..100
- updated_at est renseigné à chaque changement d’état.
"""


class ActuatorState(Base):
    __tablename__ = "actuator_states"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    actuator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("devices.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    is_on: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint("percentage >= 0 AND percentage <= 100", name="ck_actuator_states_percentage"),
    )
