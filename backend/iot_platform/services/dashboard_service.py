from __future__ import annotations

from datetime import datetime, time
from typing import Dict

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.core.clock import Clock, utc_now
from iot_platform.models.alert import Alert
from iot_platform.models.device import Device
from iot_platform.models.enums import AlertStatus, DeviceKind
from iot_platform.models.reading import Reading
from iot_platform.repositories._guard import storage_guard
from iot_platform.repositories.alerts import AlertRepository
from iot_platform.schemas.alerts import AlertOut
from iot_platform.schemas.dashboard import DashboardStats, DashboardSummaryOut, DeviceCounts
from iot_platform.schemas.readings import ReadingOut

"""
Dashboard Service.

Rôle (fonctionnel) :
- Calcule la vue agrégée de l’écran d’accueil (1 endpoint = 1 payload complet) :
  - compteurs devices (sondes / actionneurs, actifs / inactifs)
  - compteurs alertes (actives, acquittées, résolues aujourd’hui)
  - relevés du jour
  - 10 dernières alertes actives + 20 derniers relevés

Notes :
- "Aujourd’hui" = depuis minuit UTC (horloge injectable).
- L’objectif est que le front consomme un objet stable (DashboardSummaryOut) sans assembler
  plusieurs endpoints.
"""

LATEST_ALERTS = 10
LATEST_READINGS = 20


async def _device_counts(db: AsyncSession, kind: DeviceKind) -> DeviceCounts:
    stmt = (
        select(Device.is_active, func.count())
        .where(Device.kind == kind.value)
        .group_by(Device.is_active)
    )
    rows = (await db.execute(stmt)).all()
    by_state: Dict[bool, int] = {bool(active): int(n) for active, n in rows}
    active = by_state.get(True, 0)
    inactive = by_state.get(False, 0)
    return DeviceCounts(total=active + inactive, active=active, inactive=inactive)


async def get_dashboard_summary(db: AsyncSession, *, clock: Clock = utc_now) -> DashboardSummaryOut:
    now = clock()
    start_of_day = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)

    with storage_guard("dashboard.summary"):
        sensors = await _device_counts(db, DeviceKind.SENSOR)
        actuators = await _device_counts(db, DeviceKind.ACTUATOR)

        status_rows = (
            await db.execute(select(Alert.status, func.count()).group_by(Alert.status))
        ).all()
        by_status: Dict[str, int] = {str(s): int(n) for s, n in status_rows}

        resolved_today = (
            await db.execute(
                select(func.count())
                .select_from(Alert)
                .where(Alert.status == AlertStatus.RESOLVED.value, Alert.resolved_at >= start_of_day)
            )
        ).scalar_one()

        readings_today = (
            await db.execute(
                select(func.count()).select_from(Reading).where(Reading.measured_at >= start_of_day)
            )
        ).scalar_one()

        latest_readings = (
            await db.execute(select(Reading).order_by(desc(Reading.measured_at)).limit(LATEST_READINGS))
        ).scalars().all()

    latest_alerts = await AlertRepository(db).list_active(limit=LATEST_ALERTS)

    return DashboardSummaryOut(
        stats=DashboardStats(
            sensors=sensors,
            actuators=actuators,
            alerts_active=by_status.get(AlertStatus.ACTIVE.value, 0),
            alerts_acknowledged=by_status.get(AlertStatus.ACKNOWLEDGED.value, 0),
            alerts_resolved_today=int(resolved_today),
            readings_today=int(readings_today),
        ),
        latest_alerts=[AlertOut.model_validate(a) for a in latest_alerts],
        latest_readings=[ReadingOut.model_validate(r) for r in latest_readings],
        generated_at=now,
    )
