from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import asc, select
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.core.clock import Clock, as_utc, utc_now
from iot_platform.core.errors import NotFoundError, ValidationError
from iot_platform.core.settings import settings
from iot_platform.models.actuator_state import ActuatorState
from iot_platform.models.device import Device
from iot_platform.models.enums import CommunicationChannel, DeviceKind
from iot_platform.models.location import Location
from iot_platform.models.unit import MeasurementUnit
from iot_platform.repositories._guard import storage_guard
from iot_platform.services.alert_evaluator import quantize

"""
Device Service : sondes (SENSOR) et actionneurs (ACTUATOR).

Rôle (fonctionnel) :
- CRUD des deux variantes, stockées dans la table devices et filtrées par `kind`.
- Validations communes :
  - localisation existante
  - date d’installation non future
  - URL obligatoire pour tout canal autre que HTTP_PUSH
  - min_value < max_value si les deux sont renseignées
- Validations sonde : unité existante et cohérente avec le type de sonde.
- Un actionneur est créé avec un état initial éteint (actuator_states).
- La suppression d’un device emporte ses relevés, seuils, alertes et son état (cascade en base).
"""

log = logging.getLogger("iot_platform.devices")

_COMMON_FIELDS = (
    "name",
    "location_id",
    "is_active",
    "installed_at",
    "channel",
    "device_url",
    "device_credentials",
    "min_value",
    "max_value",
)
SENSOR_FIELDS = _COMMON_FIELDS + ("sensor_type", "unit_id")
ACTUATOR_FIELDS = _COMMON_FIELDS + ("actuator_type",)


class DeviceService:
    def __init__(self, session: AsyncSession, *, clock: Clock = utc_now) -> None:
        self.session = session
        self.clock = clock

    # -----------------------------
    # Lecture
    # -----------------------------
    async def _get(self, device_id: uuid.UUID, kind: Optional[DeviceKind] = None) -> Device:
        with storage_guard("device.get"):
            device = await self.session.get(Device, device_id)
        if device is None or (kind is not None and device.kind != kind.value):
            label = "Sonde" if kind == DeviceKind.SENSOR else "Actionneur" if kind else "Device"
            raise NotFoundError(f"{label} introuvable", details={"device_id": str(device_id)})
        return device

    async def get_device(self, device_id: uuid.UUID) -> Device:
        return await self._get(device_id)

    async def get_sensor(self, sensor_id: uuid.UUID) -> Device:
        return await self._get(sensor_id, DeviceKind.SENSOR)

    async def get_actuator(self, actuator_id: uuid.UUID) -> Device:
        return await self._get(actuator_id, DeviceKind.ACTUATOR)

    async def _list(self, kind: DeviceKind, *filters) -> List[Device]:
        stmt = select(Device).where(Device.kind == kind.value, *filters).order_by(asc(Device.name))
        with storage_guard("device.list"):
            return list((await self.session.execute(stmt)).scalars().all())

    async def list_sensors(
        self,
        *,
        location_id: Optional[uuid.UUID] = None,
        sensor_type: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> List[Device]:
        filters = []
        if location_id is not None:
            filters.append(Device.location_id == location_id)
        if sensor_type:
            filters.append(Device.sensor_type == sensor_type)
        if is_active is not None:
            filters.append(Device.is_active.is_(is_active))
        return await self._list(DeviceKind.SENSOR, *filters)

    async def list_actuators(self, *, location_id: Optional[uuid.UUID] = None) -> List[Device]:
        filters = []
        if location_id is not None:
            filters.append(Device.location_id == location_id)
        return await self._list(DeviceKind.ACTUATOR, *filters)

    async def list_pollable_sensors(self) -> List[Device]:
        """Sondes actives en HTTP_PULL disposant d’une URL (périmètre du polling)."""
        return await self._list(
            DeviceKind.SENSOR,
            Device.is_active.is_(True),
            Device.channel == CommunicationChannel.HTTP_PULL.value,
            Device.device_url.is_not(None),
        )

    # -----------------------------
    # Validation
    # -----------------------------
    async def _validate(self, device: Device) -> None:
        with storage_guard("device.validate"):
            location = await self.session.get(Location, device.location_id)
        if location is None:
            raise NotFoundError("Localisation introuvable", details={"location_id": str(device.location_id)})

        installed_at = as_utc(device.installed_at)
        if installed_at > self.clock() + timedelta(minutes=settings.READING_FUTURE_TOLERANCE_MINUTES):
            raise ValidationError("La date d’installation ne peut pas être dans le futur")

        if device.channel != CommunicationChannel.HTTP_PUSH.value and not (device.device_url or "").strip():
            raise ValidationError(
                "URL du device obligatoire pour ce canal",
                details={"channel": device.channel},
            )

        if device.min_value is not None and device.max_value is not None:
            if not quantize(device.min_value) < quantize(device.max_value):
                raise ValidationError("min_value doit être strictement inférieure à max_value")

        if device.kind == DeviceKind.SENSOR.value:
            with storage_guard("device.validate_unit"):
                unit = await self.session.get(MeasurementUnit, device.unit_id) if device.unit_id else None
            if unit is None:
                raise NotFoundError("Unité de mesure introuvable", details={"unit_id": str(device.unit_id)})
            if unit.sensor_type != device.sensor_type:
                raise ValidationError(
                    "Unité de mesure incohérente avec le type de sonde",
                    details={"sensor_type": device.sensor_type, "unit_sensor_type": unit.sensor_type},
                )

    # -----------------------------
    # Écriture
    # -----------------------------
    async def _create(self, kind: DeviceKind, allowed: tuple, data: Dict[str, Any]) -> Device:
        values = {k: v for k, v in data.items() if k in allowed and v is not None}
        values.setdefault("installed_at", self.clock())
        values["installed_at"] = as_utc(values["installed_at"])

        device = Device(kind=kind.value, **values)
        if device.channel is None:
            device.channel = CommunicationChannel.HTTP_PUSH.value
        if device.is_active is None:
            device.is_active = True
        await self._validate(device)

        with storage_guard("device.create"):
            self.session.add(device)
            if kind is DeviceKind.ACTUATOR:
                await self.session.flush()
                self.session.add(ActuatorState(actuator_id=device.id, is_on=False, percentage=0, updated_at=self.clock()))
            await self.session.commit()
            await self.session.refresh(device)

        log.info("device_created", extra={"sensor_id": str(device.id), "kind": device.kind})
        return device

    async def _update(self, device: Device, allowed: tuple, data: Dict[str, Any]) -> Device:
        for key, value in data.items():
            if key in allowed:
                setattr(device, key, as_utc(value) if key == "installed_at" else value)

        try:
            await self._validate(device)
        except Exception:
            await self.session.rollback()
            raise

        with storage_guard("device.update"):
            await self.session.commit()
            await self.session.refresh(device)
        return device

    async def create_sensor(self, data: Dict[str, Any]) -> Device:
        return await self._create(DeviceKind.SENSOR, SENSOR_FIELDS, data)

    async def create_actuator(self, data: Dict[str, Any]) -> Device:
        return await self._create(DeviceKind.ACTUATOR, ACTUATOR_FIELDS, data)

    async def update_sensor(self, sensor_id: uuid.UUID, data: Dict[str, Any]) -> Device:
        return await self._update(await self.get_sensor(sensor_id), SENSOR_FIELDS, data)

    async def update_actuator(self, actuator_id: uuid.UUID, data: Dict[str, Any]) -> Device:
        return await self._update(await self.get_actuator(actuator_id), ACTUATOR_FIELDS, data)

    async def delete(self, device_id: uuid.UUID, kind: DeviceKind) -> None:
        device = await self._get(device_id, kind)
        with storage_guard("device.delete"):
            await self.session.delete(device)
            await self.session.commit()
        log.info("device_deleted", extra={"sensor_id": str(device_id), "kind": kind.value})
