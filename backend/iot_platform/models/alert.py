from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from iot_platform.core.clock import utc_now
from iot_platform.db.base import Base

"""
Model Alert.

Rôle (fonctionnel) :
- Alerte créée lorsqu’un relevé franchit un seuil actif d’une sonde.
- kind / severity sont COPIÉS du seuil à la création : l’historique reste stable
  même si le seuil est modifié ou supprimé ensuite.
- Porte le cycle de vie : ACTIVE -> ACKNOWLEDGED -> RESOLVED (terminal), ou ACTIVE -> RESOLVED.
  Une alerte résolue n’est jamais rouverte : une nouvelle alerte est créée si le dépassement revient.

Relations (par identifiant uniquement) :
- sensor_id    -> devices.id
- threshold_id -> thresholds.id (NULL si le seuil a été supprimé)
- Aucun lien vers le relevé déclencheur.

Index :
- ux_alerts_active_per_threshold : au plus UNE alerte ACTIVE par (sonde, seuil, sévérité).
  Index partiel (Postgres / SQLite) : garantit l’absence de doublon si deux relevés
  de la même sonde sont évalués en parallèle (saisie manuelle vs polling).
"""


class Alert(Base):
    __tablename__ = "alerts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    sensor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("devices.id", ondelete="CASCADE"),
        nullable=False,
    )

    threshold_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("thresholds.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Snapshot du seuil au moment de l’alerte (ThresholdKind / AlertSeverity)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)

    # AlertStatus
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE", index=True)

    # Horodatages du cycle de vie
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Message lisible (+ commentaires d’acquittement / résolution concaténés)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_alerts_sensor_status", "sensor_id", "status"),
        Index("ix_alerts_date_status", "created_at", "status"),
        Index(
            "ux_alerts_active_per_threshold",
            "sensor_id",
            "threshold_id",
            "severity",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )
