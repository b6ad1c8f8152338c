from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.core.clock import Clock, utc_now
from iot_platform.core.errors import InvalidStateTransition, NotFoundError
from iot_platform.core.request_id import get_request_id
from iot_platform.models.alert import Alert
from iot_platform.models.alert_event import AlertEvent
from iot_platform.models.device import Device
from iot_platform.models.enums import AlertEventType, AlertStatus
from iot_platform.models.threshold import Threshold
from iot_platform.repositories._guard import storage_guard
from iot_platform.repositories.alerts import AlertRepository

"""
Alert Service (cycle de vie + consultation).

Rôle (fonctionnel) :
- Transitions manuelles d’une alerte :
  - acknowledge : ACTIVE -> ACKNOWLEDGED
  - resolve     : ACTIVE | ACKNOWLEDGED -> RESOLVED
  Toute autre transition lève InvalidStateTransition ; une alerte absente lève NotFoundError.
- Chaque transition est tracée (alert_events : actor + request_id) puis commitée.
- Consultation : dashboard (alertes ACTIVE), détails, liste par sonde, historique.
"""

log = logging.getLogger("iot_platform.alerts")


@dataclass(frozen=True)
class StatusChange:
    """Résultat d’une transition manuelle (ancien statut inclus pour logs / temps réel)."""
    alert: Alert
    old_status: str


@dataclass(frozen=True)
class AlertDetails:
    """Alerte + instantanés de la sonde et du seuil (None si supprimés)."""
    alert: Alert
    sensor: Optional[Device]
    threshold: Optional[Threshold]


def _append_comment(message: Optional[str], comment: Optional[str]) -> Optional[str]:
    if comment is None or not comment.strip():
        return message
    return (message or "") + f" - {comment.strip()}"


class AlertService:
    def __init__(self, session: AsyncSession, *, clock: Clock = utc_now) -> None:
        self.session = session
        self.clock = clock
        self.alerts = AlertRepository(session)

    async def _require(self, alert_id: uuid.UUID) -> Alert:
        alert = await self.alerts.get_alert(alert_id)
        if alert is None:
            raise NotFoundError("Alerte introuvable", details={"alert_id": str(alert_id)})
        return alert

    async def acknowledge(
        self,
        alert_id: uuid.UUID,
        comment: Optional[str] = None,
        *,
        actor: str = "operator",
    ) -> StatusChange:
        alert = await self._require(alert_id)
        if alert.status != AlertStatus.ACTIVE.value:
            raise InvalidStateTransition(
                "Seule une alerte active peut être acquittée",
                current_status=alert.status,
                target_status=AlertStatus.ACKNOWLEDGED.value,
            )

        now = self.clock()
        alert.status = AlertStatus.ACKNOWLEDGED.value
        alert.acknowledged_at = now
        alert.message = _append_comment(alert.message, comment)

        await self._record_transition(
            alert,
            AlertEventType.ACKNOWLEDGED,
            old_status=AlertStatus.ACTIVE.value,
            comment=comment,
            actor=actor,
            at=now,
        )
        return StatusChange(alert=alert, old_status=AlertStatus.ACTIVE.value)

    async def resolve(
        self,
        alert_id: uuid.UUID,
        comment: Optional[str] = None,
        *,
        actor: str = "operator",
    ) -> StatusChange:
        alert = await self._require(alert_id)
        if alert.status == AlertStatus.RESOLVED.value:
            raise InvalidStateTransition(
                "Alerte déjà résolue",
                current_status=alert.status,
                target_status=AlertStatus.RESOLVED.value,
            )

        old_status = alert.status
        now = self.clock()
        alert.status = AlertStatus.RESOLVED.value
        alert.resolved_at = now
        alert.message = _append_comment(alert.message, comment)

        await self._record_transition(
            alert,
            AlertEventType.RESOLVED,
            old_status=old_status,
            comment=comment,
            actor=actor,
            at=now,
        )
        return StatusChange(alert=alert, old_status=old_status)

    async def _record_transition(
        self,
        alert: Alert,
        event_type: AlertEventType,
        *,
        old_status: str,
        comment: Optional[str],
        actor: str,
        at: datetime,
    ) -> None:
        rid = get_request_id()
        try:
            await self.alerts.update_alert(alert)
            await self.alerts.add_event(
                AlertEvent(
                    alert_id=alert.id,
                    event_type=event_type.value,
                    old_status=old_status,
                    new_status=alert.status,
                    message=comment,
                    actor=actor,
                    request_id=rid,
                    created_at=at,
                )
            )
            with storage_guard("alert.commit"):
                await self.session.commit()
        except Exception:
            # statut et événement ne sont jamais persistés séparément
            await self.session.rollback()
            raise

        log.info(
            "alert_status_change",
            extra={
                "request_id": rid,
                "actor": actor,
                "alert_id": str(alert.id),
                "old_status": old_status,
                "new_status": alert.status,
            },
        )

    async def get_details(self, alert_id: uuid.UUID) -> AlertDetails:
        alert = await self._require(alert_id)
        with storage_guard("alert.details"):
            sensor = await self.session.get(Device, alert.sensor_id)
            threshold = await self.session.get(Threshold, alert.threshold_id) if alert.threshold_id else None
        return AlertDetails(alert=alert, sensor=sensor, threshold=threshold)

    async def get_dashboard(self) -> List[Alert]:
        """Toutes les alertes ACTIVE, les plus récentes d’abord."""
        return await self.alerts.list_active()

    async def list_by_sensor(
        self,
        sensor_id: uuid.UUID,
        *,
        status: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> List[Alert]:
        return await self.alerts.list_by_sensor(sensor_id, status=status, kind=kind)

    async def list_events(self, alert_id: uuid.UUID) -> List[AlertEvent]:
        await self._require(alert_id)
        return await self.alerts.list_events(alert_id)
