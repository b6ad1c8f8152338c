from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.core.clock import Clock, as_utc, utc_now
from iot_platform.core.errors import NotFoundError, ValidationError
from iot_platform.core.settings import settings
from iot_platform.models.device import Device
from iot_platform.models.enums import DeviceKind, ReadingOrigin
from iot_platform.models.reading import Reading
from iot_platform.repositories._guard import storage_guard
from iot_platform.services.alert_evaluator import AlertEvaluator, EvaluationResult, quantize

"""
Reading Service (ingestion + CRUD des relevés).

Rôle (fonctionnel) :
- ingest() : point d’entrée unique d’un nouveau relevé (saisie manuelle, push device, polling).
  1) valide la sonde, la valeur et la date (pas plus de READING_FUTURE_TOLERANCE_MINUTES dans le futur)
  2) persiste le relevé
  3) déclenche l’évaluation des seuils dans la MÊME transaction
  4) commit unique : relevé + alertes créées / résolues sont visibles ensemble
- Une entrée invalide est rejetée AVANT toute évaluation (ValidationError).
- CRUD + listes (pagination, filtres origine / dates, derniers relevés d’une sonde).

Note :
- update() ne relance pas l’évaluation : un relevé corrigé ne rouvre ni ne résout d’alerte.
"""

log = logging.getLogger("iot_platform.readings")

# Numeric(10, 2)
MAX_ABS_VALUE = Decimal("99999999.99")


@dataclass(frozen=True)
class IngestionResult:
    reading: Reading
    evaluation: EvaluationResult


def normalize_value(value) -> Decimal:
    """Valeur brute -> Decimal à 2 décimales (ValidationError si absente ou invalide)."""
    if value is None:
        raise ValidationError("Valeur du relevé manquante")
    if isinstance(value, bool):
        raise ValidationError("Valeur du relevé invalide", details={"value": value})
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("Valeur du relevé invalide", details={"value": str(value)}) from exc
    if not dec.is_finite():
        raise ValidationError("Valeur du relevé invalide", details={"value": str(value)})
    dec = quantize(dec)
    if abs(dec) > MAX_ABS_VALUE:
        raise ValidationError("Valeur du relevé hors plage", details={"value": str(dec)})
    return dec


class ReadingService:
    def __init__(self, session: AsyncSession, *, clock: Clock = utc_now) -> None:
        self.session = session
        self.clock = clock

    async def _require_sensor(self, sensor_id: uuid.UUID) -> Device:
        with storage_guard("sensor.get"):
            sensor = await self.session.get(Device, sensor_id)
        if sensor is None or sensor.kind != DeviceKind.SENSOR.value:
            raise NotFoundError("Sonde introuvable", details={"sensor_id": str(sensor_id)})
        return sensor

    def check_not_in_future(self, measured_at: datetime) -> None:
        limit = self.clock() + timedelta(minutes=settings.READING_FUTURE_TOLERANCE_MINUTES)
        if measured_at > limit:
            raise ValidationError(
                "La date du relevé ne peut pas être dans le futur",
                details={"measured_at": measured_at.isoformat()},
            )

    async def ingest(
        self,
        *,
        sensor_id: uuid.UUID,
        value,
        measured_at: Optional[datetime] = None,
        origin: str = ReadingOrigin.MANUAL.value,
    ) -> IngestionResult:
        await self._require_sensor(sensor_id)
        dec = normalize_value(value)

        measured_at = as_utc(measured_at) if measured_at is not None else self.clock()
        self.check_not_in_future(measured_at)

        reading = Reading(sensor_id=sensor_id, value=dec, measured_at=measured_at, origin=origin)
        try:
            with storage_guard("reading.create"):
                self.session.add(reading)
                await self.session.flush()
            evaluation = await AlertEvaluator(self.session, clock=self.clock).evaluate_reading(reading)
            with storage_guard("reading.commit"):
                await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        log.info(
            "reading_ingested",
            extra={
                "reading_id": str(reading.id),
                "sensor_id": str(sensor_id),
                "alerts_created": len(evaluation.created),
                "alerts_resolved": len(evaluation.resolved),
            },
        )
        return IngestionResult(reading=reading, evaluation=evaluation)

    async def get(self, reading_id: uuid.UUID) -> Reading:
        with storage_guard("reading.get"):
            reading = await self.session.get(Reading, reading_id)
        if reading is None:
            raise NotFoundError("Relevé introuvable", details={"reading_id": str(reading_id)})
        return reading

    async def list(
        self,
        *,
        page: int = 1,
        page_size: int = 50,
        origin: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Tuple[List[Reading], int]:
        filters = []
        if origin:
            filters.append(Reading.origin == origin)
        if date_from is not None:
            filters.append(Reading.measured_at >= as_utc(date_from))
        if date_to is not None:
            filters.append(Reading.measured_at <= as_utc(date_to))

        stmt = (
            select(Reading)
            .where(*filters)
            .order_by(desc(Reading.measured_at))
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        count_stmt = select(func.count()).select_from(Reading).where(*filters)

        with storage_guard("reading.list"):
            total = (await self.session.execute(count_stmt)).scalar_one()
            rows = (await self.session.execute(stmt)).scalars().all()
        return list(rows), int(total)

    async def list_by_sensor(
        self,
        sensor_id: uuid.UUID,
        *,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[Reading]:
        await self._require_sensor(sensor_id)
        stmt = select(Reading).where(Reading.sensor_id == sensor_id)
        if date_from is not None:
            stmt = stmt.where(Reading.measured_at >= as_utc(date_from))
        if date_to is not None:
            stmt = stmt.where(Reading.measured_at <= as_utc(date_to))
        stmt = stmt.order_by(desc(Reading.measured_at))

        with storage_guard("reading.list_by_sensor"):
            return list((await self.session.execute(stmt)).scalars().all())

    async def recent_by_sensor(self, sensor_id: uuid.UUID, n: int = 10) -> List[Reading]:
        """Les n derniers relevés d’une sonde (plus récent d’abord)."""
        await self._require_sensor(sensor_id)
        stmt = (
            select(Reading)
            .where(Reading.sensor_id == sensor_id)
            .order_by(desc(Reading.measured_at))
            .limit(n)
        )
        with storage_guard("reading.recent_by_sensor"):
            return list((await self.session.execute(stmt)).scalars().all())

    async def update(
        self,
        reading_id: uuid.UUID,
        *,
        value=None,
        measured_at: Optional[datetime] = None,
        origin: Optional[str] = None,
    ) -> Reading:
        reading = await self.get(reading_id)

        if value is not None:
            reading.value = normalize_value(value)
        if measured_at is not None:
            measured_at = as_utc(measured_at)
            self.check_not_in_future(measured_at)
            reading.measured_at = measured_at
        if origin is not None:
            reading.origin = origin

        with storage_guard("reading.update"):
            await self.session.commit()
            await self.session.refresh(reading)
        return reading

    async def delete(self, reading_id: uuid.UUID) -> None:
        reading = await self.get(reading_id)
        with storage_guard("reading.delete"):
            await self.session.delete(reading)
            await self.session.commit()
