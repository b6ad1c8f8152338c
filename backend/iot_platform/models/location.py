from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from iot_platform.core.clock import utc_now
from iot_platform.db.base import Base

"""
Model Location.

Rôle (fonctionnel) :
- Lieu physique où sont installés les devices (pièce, serre, entrepôt…).
- Référencé par identifiant depuis devices.location_id (pas de navigation inverse).
"""


class Location(Base):
    __tablename__ = "locations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Nom unique (affiché dans le front)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
