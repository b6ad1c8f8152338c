from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import asc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.core.errors import NotFoundError, ValidationError
from iot_platform.models.device import Device
from iot_platform.models.location import Location
from iot_platform.models.unit import MeasurementUnit
from iot_platform.repositories._guard import storage_guard

"""
Catalog Service : localisations et unités de mesure.

Rôle (fonctionnel) :
- Référentiels simples utilisés par les devices (location_id, unit_id).
- Suppression refusée tant qu’un device y fait référence.
"""


class LocationService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, location_id: uuid.UUID) -> Location:
        with storage_guard("location.get"):
            location = await self.session.get(Location, location_id)
        if location is None:
            raise NotFoundError("Localisation introuvable", details={"location_id": str(location_id)})
        return location

    async def list(self) -> List[Location]:
        with storage_guard("location.list"):
            rows = (await self.session.execute(select(Location).order_by(asc(Location.name)))).scalars().all()
        return list(rows)

    async def _check_name_free(self, name: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        stmt = select(Location).where(func.lower(Location.name) == name.lower())
        with storage_guard("location.find_by_name"):
            existing = (await self.session.execute(stmt)).scalars().first()
        if existing is not None and existing.id != exclude_id:
            raise ValidationError("Une localisation porte déjà ce nom", details={"name": name})

    async def create(self, *, name: str, description: Optional[str] = None) -> Location:
        name = name.strip()
        await self._check_name_free(name)

        location = Location(name=name, description=description)
        with storage_guard("location.create"):
            self.session.add(location)
            await self.session.commit()
            await self.session.refresh(location)
        return location

    async def update(self, location_id: uuid.UUID, *, name: str, description: Optional[str] = None) -> Location:
        location = await self.get(location_id)
        name = name.strip()
        await self._check_name_free(name, exclude_id=location.id)

        location.name = name
        location.description = description
        with storage_guard("location.update"):
            await self.session.commit()
            await self.session.refresh(location)
        return location

    async def delete(self, location_id: uuid.UUID) -> None:
        location = await self.get(location_id)

        stmt = select(func.count()).select_from(Device).where(Device.location_id == location.id)
        with storage_guard("location.count_devices"):
            used = int((await self.session.execute(stmt)).scalar_one())
        if used:
            raise ValidationError(
                "Localisation utilisée par des devices",
                details={"location_id": str(location.id), "devices": used},
            )

        with storage_guard("location.delete"):
            await self.session.delete(location)
            await self.session.commit()


class UnitService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, unit_id: uuid.UUID) -> MeasurementUnit:
        with storage_guard("unit.get"):
            unit = await self.session.get(MeasurementUnit, unit_id)
        if unit is None:
            raise NotFoundError("Unité de mesure introuvable", details={"unit_id": str(unit_id)})
        return unit

    async def list(self, *, sensor_type: Optional[str] = None) -> List[MeasurementUnit]:
        stmt = select(MeasurementUnit)
        if sensor_type:
            stmt = stmt.where(MeasurementUnit.sensor_type == sensor_type)
        stmt = stmt.order_by(asc(MeasurementUnit.name))
        with storage_guard("unit.list"):
            return list((await self.session.execute(stmt)).scalars().all())

    async def create(self, *, name: str, symbol: str, sensor_type: str) -> MeasurementUnit:
        unit = MeasurementUnit(name=name.strip(), symbol=symbol.strip(), sensor_type=sensor_type)
        with storage_guard("unit.create"):
            self.session.add(unit)
            await self.session.commit()
            await self.session.refresh(unit)
        return unit

    async def delete(self, unit_id: uuid.UUID) -> None:
        unit = await self.get(unit_id)

        stmt = select(func.count()).select_from(Device).where(Device.unit_id == unit.id)
        with storage_guard("unit.count_devices"):
            used = int((await self.session.execute(stmt)).scalar_one())
        if used:
            raise ValidationError(
                "Unité de mesure utilisée par des sondes",
                details={"unit_id": str(unit.id), "sensors": used},
            )

        with storage_guard("unit.delete"):
            await self.session.delete(unit)
            await self.session.commit()
