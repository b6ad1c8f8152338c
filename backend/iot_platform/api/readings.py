from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.api.deps import OperatorAuthDep, ws_manager
from iot_platform.db.session import get_db
from iot_platform.models.enums import ReadingOrigin
from iot_platform.schemas.alerts import AlertOut
from iot_platform.schemas.common import PageMeta
from iot_platform.schemas.readings import (
    ReadingCreate,
    ReadingIngestOut,
    ReadingListResponse,
    ReadingOut,
    ReadingUpdate,
)
from iot_platform.services.notifications import publish_evaluation
from iot_platform.services.reading_service import IngestionResult, ReadingService

"""
API Relevés.

Rôle (fonctionnel) :
- Saisie manuelle d’un relevé : ingestion + évaluation des seuils (alertes créées / résolues
  renvoyées dans la réponse et poussées en temps réel).
- Consultation paginée (filtres origine / dates), relevés d’une sonde, derniers relevés.
- Correction / suppression (protégées), sans réévaluation.
"""

router = APIRouter(tags=["readings"])


def ingest_response(result: IngestionResult) -> ReadingIngestOut:
    return ReadingIngestOut(
        reading=ReadingOut.model_validate(result.reading),
        alerts_created=[AlertOut.model_validate(a) for a in result.evaluation.created],
        alerts_resolved=[AlertOut.model_validate(a) for a in result.evaluation.resolved],
    )


@router.post("/readings", response_model=ReadingIngestOut, status_code=201, dependencies=[OperatorAuthDep])
async def create_reading(payload: ReadingCreate, request: Request, db: AsyncSession = Depends(get_db)):
    result = await ReadingService(db).ingest(
        sensor_id=payload.sensor_id,
        value=payload.value,
        measured_at=payload.measured_at,
        origin=payload.origin,
    )
    await publish_evaluation(ws_manager(request), result.evaluation)
    return ingest_response(result)


@router.get("/readings", response_model=ReadingListResponse)
async def list_readings(
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    origin: Optional[ReadingOrigin] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
):
    rows, total = await ReadingService(db).list(
        page=page,
        page_size=page_size,
        origin=origin.value if origin else None,
        date_from=date_from,
        date_to=date_to,
    )
    return {"data": rows, "meta": PageMeta(page=page, page_size=page_size, total=total)}


@router.get("/readings/{reading_id}", response_model=ReadingOut)
async def get_reading(reading_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await ReadingService(db).get(reading_id)


@router.put("/readings/{reading_id}", response_model=ReadingOut, dependencies=[OperatorAuthDep])
async def update_reading(reading_id: uuid.UUID, payload: ReadingUpdate, db: AsyncSession = Depends(get_db)):
    return await ReadingService(db).update(reading_id, **payload.model_dump(exclude_unset=True))


@router.delete("/readings/{reading_id}", status_code=204, dependencies=[OperatorAuthDep])
async def delete_reading(reading_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await ReadingService(db).delete(reading_id)
    return Response(status_code=204)


@router.get("/sensors/{sensor_id}/readings", response_model=List[ReadingOut])
async def sensor_readings(
    sensor_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
):
    return await ReadingService(db).list_by_sensor(sensor_id, date_from=date_from, date_to=date_to)


@router.get("/sensors/{sensor_id}/readings/recent", response_model=List[ReadingOut])
async def sensor_recent_readings(
    sensor_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    n: int = Query(10, ge=1, le=500),
):
    return await ReadingService(db).recent_by_sensor(sensor_id, n)
