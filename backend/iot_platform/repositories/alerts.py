from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import asc, desc, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.core.errors import StorageFailure
from iot_platform.models.alert import Alert
from iot_platform.models.alert_event import AlertEvent
from iot_platform.models.enums import AlertStatus
from iot_platform.repositories._guard import storage_guard

"""
Repository Alerts.

Rôle (fonctionnel) :
- Collaborateur de stockage de l’évaluateur et du cycle de vie :
  - get_active_alert(sensor, threshold, severity) : clé de déduplication
  - create_alert : insertion protégée par l’index partiel ux_alerts_active_per_threshold
  - update_alert / get_alert / listes
- Historique : add_event / list_events (table alert_events).

Concurrence :
- create_alert insère dans un SAVEPOINT. Si un autre flux a créé la même alerte ACTIVE
  entre la lecture et l’écriture, l’index unique lève IntegrityError : on annule le savepoint
  et on renvoie l’alerte existante (créée = False). La transaction englobante reste utilisable.
"""

log = logging.getLogger("iot_platform.repositories.alerts")


class AlertRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_alert(self, alert_id: uuid.UUID) -> Optional[Alert]:
        with storage_guard("alert.get"):
            return await self.session.get(Alert, alert_id)

    async def get_active_alert(
        self,
        sensor_id: uuid.UUID,
        threshold_id: uuid.UUID,
        severity: str,
    ) -> Optional[Alert]:
        """Alerte ACTIVE pour (sonde, seuil, sévérité), ou None."""
        stmt = select(Alert).where(
            Alert.sensor_id == sensor_id,
            Alert.threshold_id == threshold_id,
            Alert.severity == severity,
            Alert.status == AlertStatus.ACTIVE.value,
        )
        with storage_guard("alert.get_active_alert"):
            return (await self.session.execute(stmt)).scalars().first()

    async def create_alert(self, alert: Alert) -> Tuple[Alert, bool]:
        """
        Insère une alerte ACTIVE.

        Retourne (alerte, True) si créée, ou (alerte existante, False) si une alerte ACTIVE
        équivalente a été insérée entre-temps par un autre flux.
        """
        try:
            async with self.session.begin_nested():
                self.session.add(alert)
        except IntegrityError:
            log.info(
                "alert_create_conflict",
                extra={
                    "sensor_id": str(alert.sensor_id),
                    "threshold_id": str(alert.threshold_id),
                    "severity": alert.severity,
                },
            )
            existing = await self.get_active_alert(alert.sensor_id, alert.threshold_id, alert.severity)
            if existing is None:
                raise StorageFailure(
                    "Conflit d’insertion d’alerte sans alerte active correspondante",
                    details={"sensor_id": str(alert.sensor_id), "threshold_id": str(alert.threshold_id)},
                )
            return existing, False
        except SQLAlchemyError as exc:
            raise StorageFailure(
                "Échec de persistance (alert.create)",
                details={"operation": "alert.create", "error": exc.__class__.__name__},
            ) from exc
        return alert, True

    async def update_alert(self, alert: Alert) -> Alert:
        with storage_guard("alert.update"):
            self.session.add(alert)
            await self.session.flush()
        return alert

    async def list_active_for_sensor(self, sensor_id: uuid.UUID) -> List[Alert]:
        stmt = (
            select(Alert)
            .where(Alert.sensor_id == sensor_id, Alert.status == AlertStatus.ACTIVE.value)
            .order_by(asc(Alert.created_at))
        )
        with storage_guard("alert.list_active_for_sensor"):
            return list((await self.session.execute(stmt)).scalars().all())

    async def list_active(self, limit: Optional[int] = None) -> List[Alert]:
        """Alertes ACTIVE, les plus récentes d’abord."""
        stmt = (
            select(Alert)
            .where(Alert.status == AlertStatus.ACTIVE.value)
            .order_by(desc(Alert.created_at))
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with storage_guard("alert.list_active"):
            return list((await self.session.execute(stmt)).scalars().all())

    async def list_by_sensor(
        self,
        sensor_id: uuid.UUID,
        *,
        status: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> List[Alert]:
        stmt = select(Alert).where(Alert.sensor_id == sensor_id)
        if status:
            stmt = stmt.where(Alert.status == status)
        if kind:
            stmt = stmt.where(Alert.kind == kind)
        stmt = stmt.order_by(desc(Alert.created_at))
        with storage_guard("alert.list_by_sensor"):
            return list((await self.session.execute(stmt)).scalars().all())

    async def add_event(self, event: AlertEvent) -> AlertEvent:
        with storage_guard("alert_event.add"):
            self.session.add(event)
            await self.session.flush()
        return event

    async def list_events(self, alert_id: uuid.UUID) -> List[AlertEvent]:
        stmt = (
            select(AlertEvent)
            .where(AlertEvent.alert_id == alert_id)
            .order_by(asc(AlertEvent.created_at))
        )
        with storage_guard("alert_event.list"):
            return list((await self.session.execute(stmt)).scalars().all())
