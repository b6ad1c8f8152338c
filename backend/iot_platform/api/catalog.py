from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.api.deps import OperatorAuthDep
from iot_platform.db.session import get_db
from iot_platform.models.enums import SensorType
from iot_platform.schemas.locations import LocationIn, LocationOut
from iot_platform.schemas.units import UnitCreate, UnitOut
from iot_platform.services.catalog_service import LocationService, UnitService

"""
API Référentiels : localisations et unités de mesure.
"""

router = APIRouter(tags=["catalog"])


@router.get("/locations", response_model=List[LocationOut])
async def list_locations(db: AsyncSession = Depends(get_db)):
    return await LocationService(db).list()


@router.post("/locations", response_model=LocationOut, status_code=201, dependencies=[OperatorAuthDep])
async def create_location(payload: LocationIn, db: AsyncSession = Depends(get_db)):
    return await LocationService(db).create(name=payload.name, description=payload.description)


@router.get("/locations/{location_id}", response_model=LocationOut)
async def get_location(location_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await LocationService(db).get(location_id)


@router.put("/locations/{location_id}", response_model=LocationOut, dependencies=[OperatorAuthDep])
async def update_location(location_id: uuid.UUID, payload: LocationIn, db: AsyncSession = Depends(get_db)):
    return await LocationService(db).update(location_id, name=payload.name, description=payload.description)


@router.delete("/locations/{location_id}", status_code=204, dependencies=[OperatorAuthDep])
async def delete_location(location_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await LocationService(db).delete(location_id)
    return Response(status_code=204)


@router.get("/units", response_model=List[UnitOut])
async def list_units(db: AsyncSession = Depends(get_db), sensor_type: Optional[SensorType] = None):
    return await UnitService(db).list(sensor_type=sensor_type.value if sensor_type else None)


@router.post("/units", response_model=UnitOut, status_code=201, dependencies=[OperatorAuthDep])
async def create_unit(payload: UnitCreate, db: AsyncSession = Depends(get_db)):
    return await UnitService(db).create(name=payload.name, symbol=payload.symbol, sensor_type=payload.sensor_type)


@router.get("/units/{unit_id}", response_model=UnitOut)
async def get_unit(unit_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await UnitService(db).get(unit_id)


@router.delete("/units/{unit_id}", status_code=204, dependencies=[OperatorAuthDep])
async def delete_unit(unit_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await UnitService(db).delete(unit_id)
    return Response(status_code=204)
