from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.api.deps import OperatorAuthDep, current_request_id, ws_manager
from iot_platform.core.security import actor_from_request
from iot_platform.db.session import get_db
from iot_platform.models.enums import AlertStatus, ThresholdKind
from iot_platform.schemas.alerts import (
    AlertActionIn,
    AlertDetailsOut,
    AlertEventOut,
    AlertOut,
    SensorSnapshot,
    ThresholdSnapshot,
)
from iot_platform.services.alert_service import AlertService
from iot_platform.services.notifications import publish_status_change

"""
API Alertes.

Rôle (fonctionnel) :
- Dashboard : toutes les alertes ACTIVE (plus récentes d’abord).
- Consultation : alertes d’une sonde (filtres statut / kind), détail, historique.
- Actions opérateur (protégées) : acquittement et résolution, tracées :
  - en base via alert_events
  - en logs via request_id / actor
  - en temps réel via WebSocket (si actif)

Les erreurs métier (NotFoundError, InvalidStateTransition) sont traduites par main.py.
"""

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("/dashboard", response_model=List[AlertOut])
async def alerts_dashboard(db: AsyncSession = Depends(get_db)):
    return await AlertService(db).get_dashboard()


@router.get("/by-sensor/{sensor_id}", response_model=List[AlertOut])
async def alerts_by_sensor(
    sensor_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    status: Optional[AlertStatus] = None,
    kind: Optional[ThresholdKind] = None,
):
    return await AlertService(db).list_by_sensor(
        sensor_id,
        status=status.value if status else None,
        kind=kind.value if kind else None,
    )


@router.get("/{alert_id}", response_model=AlertDetailsOut)
async def alert_details(alert_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    details = await AlertService(db).get_details(alert_id)
    return AlertDetailsOut(
        alert=AlertOut.model_validate(details.alert),
        sensor=SensorSnapshot.model_validate(details.sensor) if details.sensor else None,
        threshold=ThresholdSnapshot.model_validate(details.threshold) if details.threshold else None,
    )


@router.get("/{alert_id}/events", response_model=List[AlertEventOut])
async def alert_events(alert_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await AlertService(db).list_events(alert_id)


async def _apply_action(action: str, alert_id: uuid.UUID, payload: Optional[AlertActionIn], request: Request, db):
    comment = payload.comment if payload else None
    actor = actor_from_request(request)
    service = AlertService(db)

    if action == "acknowledge":
        change = await service.acknowledge(alert_id, comment, actor=actor)
    else:
        change = await service.resolve(alert_id, comment, actor=actor)

    await publish_status_change(
        ws_manager(request),
        change.alert,
        old_status=change.old_status,
        comment=comment,
        actor=actor,
        request_id=current_request_id(request),
    )
    return change.alert


@router.post("/{alert_id}/acknowledge", response_model=AlertOut, dependencies=[OperatorAuthDep])
async def acknowledge_alert(
    alert_id: uuid.UUID,
    request: Request,
    payload: Optional[AlertActionIn] = None,
    db: AsyncSession = Depends(get_db),
):
    return await _apply_action("acknowledge", alert_id, payload, request, db)


@router.post("/{alert_id}/resolve", response_model=AlertOut, dependencies=[OperatorAuthDep])
async def resolve_alert(
    alert_id: uuid.UUID,
    request: Request,
    payload: Optional[AlertActionIn] = None,
    db: AsyncSession = Depends(get_db),
):
    return await _apply_action("resolve", alert_id, payload, request, db)
