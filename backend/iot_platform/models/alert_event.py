from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from iot_platform.core.clock import utc_now
from iot_platform.db.base import Base

"""
Model AlertEvent.

Rôle (fonctionnel) :
- Historique (audit trail) des transitions d’une alerte :
  - CREATED       : création par l’évaluateur (seuil franchi)
  - AUTO_RESOLVED : retour dans les bornes constaté par un relevé
  - ACKNOWLEDGED  : acquittement manuel
  - RESOLVED      : résolution manuelle
- Trace l’auteur (actor : "system" pour l’évaluateur, X-Actor pour un opérateur)
  et le request_id (corrélation logs / API / cycle de polling).
"""


class AlertEvent(Base):
    __tablename__ = "alert_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    alert_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("alerts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # AlertEventType
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Transition de statut
    old_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    new_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Commentaire / motif
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    actor: Mapped[str | None] = mapped_column(String(120), nullable=True)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
