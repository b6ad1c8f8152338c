from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import asc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.models.alert import Alert
from iot_platform.models.enums import AlertStatus
from iot_platform.models.threshold import Threshold
from iot_platform.repositories._guard import storage_guard

"""
Repository Thresholds.

Rôle (fonctionnel) :
- Lecture du registre des seuils pour l’évaluateur (seuils actifs d’une sonde).
- Requêtes de support pour la configuration (liste, cohérence min/max, alertes ouvertes).
"""


class ThresholdRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, threshold_id: uuid.UUID) -> Optional[Threshold]:
        with storage_guard("threshold.get"):
            return await self.session.get(Threshold, threshold_id)

    async def get_active_for_sensor(self, sensor_id: uuid.UUID) -> List[Threshold]:
        """Seuils actifs d’une sonde (liste vide si aucun)."""
        stmt = (
            select(Threshold)
            .where(Threshold.sensor_id == sensor_id, Threshold.is_active.is_(True))
            .order_by(asc(Threshold.created_at))
        )
        with storage_guard("threshold.get_active_for_sensor"):
            return list((await self.session.execute(stmt)).scalars().all())

    async def list_by_sensor(self, sensor_id: uuid.UUID) -> List[Threshold]:
        stmt = select(Threshold).where(Threshold.sensor_id == sensor_id).order_by(asc(Threshold.created_at))
        with storage_guard("threshold.list_by_sensor"):
            return list((await self.session.execute(stmt)).scalars().all())

    async def count_open_alerts(self, threshold_id: uuid.UUID) -> int:
        """Nombre d’alertes non résolues (ACTIVE / ACKNOWLEDGED) rattachées au seuil."""
        stmt = (
            select(func.count())
            .select_from(Alert)
            .where(
                Alert.threshold_id == threshold_id,
                Alert.status.in_([AlertStatus.ACTIVE.value, AlertStatus.ACKNOWLEDGED.value]),
            )
        )
        with storage_guard("threshold.count_open_alerts"):
            return int((await self.session.execute(stmt)).scalar_one())
