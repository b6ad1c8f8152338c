from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.core.errors import NotFoundError, ValidationError
from iot_platform.models.alert import Alert
from iot_platform.models.device import Device
from iot_platform.models.enums import DeviceKind, ThresholdKind
from iot_platform.models.threshold import Threshold
from iot_platform.repositories._guard import storage_guard
from iot_platform.repositories.thresholds import ThresholdRepository
from iot_platform.services.alert_evaluator import quantize

"""
Threshold Service (registre des seuils).

Rôle (fonctionnel) :
- CRUD des seuils d’une sonde + activation / désactivation.
- Règle de cohérence : tant qu’ils sont actifs, tout seuil MINIMUM doit être strictement
  inférieur à tout seuil MAXIMUM de la même sonde.
- Suppression refusée tant que le seuil porte des alertes non résolues ; les alertes
  résolues conservent kind / severity copiés et perdent leur threshold_id.

Note :
- Modifier la valeur d’un seuil ne réévalue pas les alertes existantes :
  la résolution se fera au prochain relevé de la sonde.
"""

log = logging.getLogger("iot_platform.thresholds")


class ThresholdService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.repo = ThresholdRepository(session)

    async def _require_sensor(self, sensor_id: uuid.UUID) -> Device:
        with storage_guard("sensor.get"):
            sensor = await self.session.get(Device, sensor_id)
        if sensor is None or sensor.kind != DeviceKind.SENSOR.value:
            raise NotFoundError("Sonde introuvable", details={"sensor_id": str(sensor_id)})
        return sensor

    async def get(self, threshold_id: uuid.UUID) -> Threshold:
        threshold = await self.repo.get(threshold_id)
        if threshold is None:
            raise NotFoundError("Seuil introuvable", details={"threshold_id": str(threshold_id)})
        return threshold

    async def list_by_sensor(self, sensor_id: uuid.UUID) -> List[Threshold]:
        await self._require_sensor(sensor_id)
        return await self.repo.list_by_sensor(sensor_id)

    async def _check_coherence(
        self,
        sensor_id: uuid.UUID,
        kind: str,
        value: Decimal,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        for other in await self.repo.get_active_for_sensor(sensor_id):
            if other.id == exclude_id or other.kind == kind:
                continue

            other_value = quantize(other.value)
            if kind == ThresholdKind.MINIMUM.value and not value < other_value:
                raise ValidationError(
                    f"Cohérence requise : seuil minimum ({value}) < seuil maximum ({other_value})",
                    details={"conflicting_threshold_id": str(other.id)},
                )
            if kind == ThresholdKind.MAXIMUM.value and not other_value < value:
                raise ValidationError(
                    f"Cohérence requise : seuil minimum ({other_value}) < seuil maximum ({value})",
                    details={"conflicting_threshold_id": str(other.id)},
                )

    async def create(
        self,
        *,
        sensor_id: uuid.UUID,
        kind: str,
        severity: str,
        value: Decimal,
        is_active: bool = False,
    ) -> Threshold:
        await self._require_sensor(sensor_id)
        value = quantize(value)

        if is_active:
            await self._check_coherence(sensor_id, kind, value)

        threshold = Threshold(
            sensor_id=sensor_id,
            kind=kind,
            severity=severity,
            value=value,
            is_active=is_active,
        )
        with storage_guard("threshold.create"):
            self.session.add(threshold)
            await self.session.commit()
            await self.session.refresh(threshold)

        log.info(
            "threshold_created",
            extra={
                "threshold_id": str(threshold.id),
                "sensor_id": str(sensor_id),
                "kind": kind,
                "severity": severity,
            },
        )
        return threshold

    async def update(self, threshold_id: uuid.UUID, *, value: Decimal, is_active: bool) -> Threshold:
        threshold = await self.get(threshold_id)
        value = quantize(value)

        if is_active:
            await self._check_coherence(threshold.sensor_id, threshold.kind, value, exclude_id=threshold.id)

        threshold.value = value
        threshold.is_active = is_active
        with storage_guard("threshold.update"):
            await self.session.commit()
            await self.session.refresh(threshold)
        return threshold

    async def toggle(self, threshold_id: uuid.UUID) -> Threshold:
        threshold = await self.get(threshold_id)
        activate = not threshold.is_active

        if activate:
            await self._check_coherence(
                threshold.sensor_id,
                threshold.kind,
                quantize(threshold.value),
                exclude_id=threshold.id,
            )

        threshold.is_active = activate
        with storage_guard("threshold.toggle"):
            await self.session.commit()
            await self.session.refresh(threshold)

        log.info("threshold_toggled", extra={"threshold_id": str(threshold.id), "success": activate})
        return threshold

    async def delete(self, threshold_id: uuid.UUID) -> None:
        threshold = await self.get(threshold_id)

        open_alerts = await self.repo.count_open_alerts(threshold.id)
        if open_alerts:
            raise ValidationError(
                "Impossible de supprimer un seuil possédant des alertes non résolues",
                details={"threshold_id": str(threshold.id), "open_alerts": open_alerts},
            )

        with storage_guard("threshold.delete"):
            await self.session.execute(
                update(Alert).where(Alert.threshold_id == threshold.id).values(threshold_id=None)
            )
            await self.session.delete(threshold)
            await self.session.commit()

        log.info("threshold_deleted", extra={"threshold_id": str(threshold_id)})
