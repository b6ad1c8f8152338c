from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.api.deps import OperatorAuthDep, ws_manager
from iot_platform.api.readings import ingest_response
from iot_platform.db.session import get_db
from iot_platform.models.enums import DeviceKind, SensorType
from iot_platform.schemas.devices import (
    ActuatorCreate,
    ActuatorOut,
    ActuatorStateIn,
    ActuatorStateOut,
    ActuatorUpdate,
    ConnectionTestOut,
    DeviceDataAccepted,
    DeviceDataIn,
    SensorCreate,
    SensorOut,
    SensorUpdate,
)
from iot_platform.schemas.readings import ReadingIngestOut
from iot_platform.services.actuator_state_service import ActuatorStateService
from iot_platform.services.device_communication import DeviceCommunicationService
from iot_platform.services.device_service import DeviceService
from iot_platform.services.notifications import publish_evaluation

"""
API Devices.

Rôle (fonctionnel) :
- CRUD des sondes (/sensors) et des actionneurs (/actuators).
- Communication device :
  - POST /devices/{id}/data : webhook HTTP_PUSH (sonde -> relevé AUTOMATIC + évaluation,
    actionneur -> 202 sans relevé)
  - POST /devices/{id}/test : test de connexion HTTP_PULL (aucune persistance)
  - POST /sensors/{id}/force-pull : relevé immédiat d’une sonde HTTP_PULL (protégé)
- État courant des actionneurs : GET / PUT /actuators/{id}/state (écriture protégée).

Le webhook n’exige pas de clé API (appelé par les devices) mais reste soumis au rate limit.
"""

router = APIRouter(tags=["devices"])


# -----------------------------
# Sondes
# -----------------------------
@router.get("/sensors", response_model=List[SensorOut])
async def list_sensors(
    db: AsyncSession = Depends(get_db),
    location_id: Optional[uuid.UUID] = None,
    sensor_type: Optional[SensorType] = None,
    is_active: Optional[bool] = None,
):
    return await DeviceService(db).list_sensors(
        location_id=location_id,
        sensor_type=sensor_type.value if sensor_type else None,
        is_active=is_active,
    )


@router.post("/sensors", response_model=SensorOut, status_code=201, dependencies=[OperatorAuthDep])
async def create_sensor(payload: SensorCreate, db: AsyncSession = Depends(get_db)):
    return await DeviceService(db).create_sensor(payload.model_dump())


@router.get("/sensors/{sensor_id}", response_model=SensorOut)
async def get_sensor(sensor_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await DeviceService(db).get_sensor(sensor_id)


@router.put("/sensors/{sensor_id}", response_model=SensorOut, dependencies=[OperatorAuthDep])
async def update_sensor(sensor_id: uuid.UUID, payload: SensorUpdate, db: AsyncSession = Depends(get_db)):
    return await DeviceService(db).update_sensor(sensor_id, payload.model_dump(exclude_unset=True))


@router.delete("/sensors/{sensor_id}", status_code=204, dependencies=[OperatorAuthDep])
async def delete_sensor(sensor_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await DeviceService(db).delete(sensor_id, DeviceKind.SENSOR)
    return Response(status_code=204)


@router.post("/sensors/{sensor_id}/force-pull", response_model=ReadingIngestOut, dependencies=[OperatorAuthDep])
async def force_pull_sensor(sensor_id: uuid.UUID, request: Request, db: AsyncSession = Depends(get_db)):
    result = await DeviceCommunicationService(db).force_pull(sensor_id)
    await publish_evaluation(ws_manager(request), result.evaluation)
    return ingest_response(result)


# -----------------------------
# Actionneurs
# -----------------------------
@router.get("/actuators", response_model=List[ActuatorOut])
async def list_actuators(db: AsyncSession = Depends(get_db), location_id: Optional[uuid.UUID] = None):
    return await DeviceService(db).list_actuators(location_id=location_id)


@router.post("/actuators", response_model=ActuatorOut, status_code=201, dependencies=[OperatorAuthDep])
async def create_actuator(payload: ActuatorCreate, db: AsyncSession = Depends(get_db)):
    return await DeviceService(db).create_actuator(payload.model_dump())


@router.get("/actuators/{actuator_id}", response_model=ActuatorOut)
async def get_actuator(actuator_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await DeviceService(db).get_actuator(actuator_id)


@router.put("/actuators/{actuator_id}", response_model=ActuatorOut, dependencies=[OperatorAuthDep])
async def update_actuator(actuator_id: uuid.UUID, payload: ActuatorUpdate, db: AsyncSession = Depends(get_db)):
    return await DeviceService(db).update_actuator(actuator_id, payload.model_dump(exclude_unset=True))


@router.delete("/actuators/{actuator_id}", status_code=204, dependencies=[OperatorAuthDep])
async def delete_actuator(actuator_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await DeviceService(db).delete(actuator_id, DeviceKind.ACTUATOR)
    return Response(status_code=204)


@router.get("/actuators/{actuator_id}/state", response_model=ActuatorStateOut)
async def get_actuator_state(actuator_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await ActuatorStateService(db).get(actuator_id)


@router.put("/actuators/{actuator_id}/state", response_model=ActuatorStateOut, dependencies=[OperatorAuthDep])
async def update_actuator_state(actuator_id: uuid.UUID, payload: ActuatorStateIn, db: AsyncSession = Depends(get_db)):
    return await ActuatorStateService(db).update(actuator_id, is_on=payload.is_on, percentage=payload.percentage)


# -----------------------------
# Communication
# -----------------------------
@router.post("/devices/{device_id}/data", response_model=ReadingIngestOut, status_code=201)
async def receive_device_data(
    device_id: uuid.UUID,
    payload: DeviceDataIn,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    result = await DeviceCommunicationService(db).receive(
        device_id,
        value=payload.value,
        timestamp=payload.timestamp,
    )
    if result is None:
        accepted = DeviceDataAccepted(device_id=device_id)
        return JSONResponse(status_code=202, content=accepted.model_dump(mode="json"))

    await publish_evaluation(ws_manager(request), result.evaluation)
    return ingest_response(result)


@router.post("/devices/{device_id}/test", response_model=ConnectionTestOut)
async def test_device_connection(device_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await DeviceCommunicationService(db).test_connection(device_id)
