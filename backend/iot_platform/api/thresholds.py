from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.api.deps import OperatorAuthDep
from iot_platform.db.session import get_db
from iot_platform.schemas.thresholds import ThresholdCreate, ThresholdOut, ThresholdUpdate
from iot_platform.services.threshold_service import ThresholdService

"""
API Seuils.

Rôle (fonctionnel) :
- Configuration des seuils d’alerte d’une sonde (création, valeur, activation, suppression).
- Lecture libre, écritures protégées (clé API).
"""

router = APIRouter(prefix="/thresholds", tags=["thresholds"])


@router.get("", response_model=List[ThresholdOut])
async def list_thresholds(
    sensor_id: uuid.UUID = Query(...),
    db: AsyncSession = Depends(get_db),
):
    return await ThresholdService(db).list_by_sensor(sensor_id)


@router.post("", response_model=ThresholdOut, status_code=201, dependencies=[OperatorAuthDep])
async def create_threshold(payload: ThresholdCreate, db: AsyncSession = Depends(get_db)):
    return await ThresholdService(db).create(**payload.model_dump())


@router.get("/{threshold_id}", response_model=ThresholdOut)
async def get_threshold(threshold_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await ThresholdService(db).get(threshold_id)


@router.put("/{threshold_id}", response_model=ThresholdOut, dependencies=[OperatorAuthDep])
async def update_threshold(
    threshold_id: uuid.UUID,
    payload: ThresholdUpdate,
    db: AsyncSession = Depends(get_db),
):
    return await ThresholdService(db).update(threshold_id, value=payload.value, is_active=payload.is_active)


@router.post("/{threshold_id}/toggle", response_model=ThresholdOut, dependencies=[OperatorAuthDep])
async def toggle_threshold(threshold_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await ThresholdService(db).toggle(threshold_id)


@router.delete("/{threshold_id}", status_code=204, dependencies=[OperatorAuthDep])
async def delete_threshold(threshold_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await ThresholdService(db).delete(threshold_id)
    return Response(status_code=204)
