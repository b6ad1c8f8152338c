from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.core.clock import Clock, as_utc, utc_now
from iot_platform.core.request_id import get_request_id
from iot_platform.models.alert import Alert
from iot_platform.models.alert_event import AlertEvent
from iot_platform.models.enums import AlertEventType, AlertStatus, ThresholdKind
from iot_platform.models.reading import Reading
from iot_platform.models.threshold import Threshold
from iot_platform.repositories.alerts import AlertRepository
from iot_platform.repositories.thresholds import ThresholdRepository

"""
Alert Evaluator.

Rôle (fonctionnel) :
- Compare un relevé aux seuils actifs de sa sonde.
- Crée une alerte ACTIVE par seuil franchi, sauf si une alerte ACTIVE existe déjà
  pour (sonde, seuil, sévérité) : pas de doublon.
- Résout automatiquement les alertes ACTIVE de la sonde dont le seuil n’est plus franchi.

Règles de franchissement (comparaison stricte, virgule fixe à 2 décimales) :
- MINIMUM : valeur < seuil
- MAXIMUM : valeur > seuil
  Une valeur égale au seuil ne déclenche rien.

Points clés :
- WARNING et ALERT sont indépendants : un même relevé peut ouvrir les deux.
- Idempotent : réévaluer le même relevé ne crée rien et ne réécrit pas une alerte déjà résolue.
- Ne commite pas : l’appelant (ingestion) persiste relevé + alertes en une seule transaction.
- Aucune reprise sur erreur : StorageFailure remonte à l’appelant.
"""

log = logging.getLogger("iot_platform.evaluator")

TWO_PLACES = Decimal("0.01")
SYSTEM_ACTOR = "system"


@dataclass
class EvaluationResult:
    """Alertes créées / résolues par une évaluation (logs + notifications temps réel)."""
    created: List[Alert] = field(default_factory=list)
    resolved: List[Alert] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created or self.resolved)


def quantize(value: Decimal | int | float | str) -> Decimal:
    """Normalise une valeur en Decimal à 2 décimales."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def is_breached(value: Decimal, kind: str, bound: Decimal) -> bool:
    if kind == ThresholdKind.MINIMUM.value:
        return value < bound
    if kind == ThresholdKind.MAXIMUM.value:
        return value > bound
    return False


def _fmt_date(reading: Reading) -> str:
    return as_utc(reading.measured_at).strftime("%d/%m/%Y %H:%M")


def build_alert_message(value: Decimal, threshold: Threshold, reading: Reading) -> str:
    direction = "en dessous" if threshold.kind == ThresholdKind.MINIMUM.value else "au-dessus"
    return (
        f"Valeur {quantize(value)} détectée le {_fmt_date(reading)} "
        f"{direction} du seuil ({quantize(threshold.value)})"
    )


class AlertEvaluator:
    """
    Évaluation d’un relevé contre le registre des seuils.

    Dépendances injectables (tests) :
    - clock : horloge UTC (created_at / resolved_at)
    - alerts / thresholds : repositories (par défaut construits sur la session)
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        clock: Clock = utc_now,
        alerts: Optional[AlertRepository] = None,
        thresholds: Optional[ThresholdRepository] = None,
    ) -> None:
        self.session = session
        self.clock = clock
        self.alerts = alerts or AlertRepository(session)
        self.thresholds = thresholds or ThresholdRepository(session)

    async def evaluate_reading(self, reading: Reading) -> EvaluationResult:
        result = EvaluationResult()
        value = quantize(reading.value)

        # 1) Création : un seuil actif franchi -> une alerte ACTIVE (si absente)
        active_thresholds = await self.thresholds.get_active_for_sensor(reading.sensor_id)
        for threshold in active_thresholds:
            if not is_breached(value, threshold.kind, quantize(threshold.value)):
                continue

            existing = await self.alerts.get_active_alert(reading.sensor_id, threshold.id, threshold.severity)
            if existing is not None:
                continue

            alert = await self._create_alert(reading, threshold, value)
            if alert is not None:
                result.created.append(alert)

        # 2) Résolution : alertes ACTIVE de la sonde dont le seuil n’est plus franchi
        for alert in await self.alerts.list_active_for_sensor(reading.sensor_id):
            if alert.threshold_id is None:
                continue
            threshold = await self.thresholds.get(alert.threshold_id)
            if threshold is None:
                continue
            if is_breached(value, alert.kind, quantize(threshold.value)):
                continue

            await self._auto_resolve(alert, reading)
            result.resolved.append(alert)

        if result.changed:
            log.info(
                "reading_evaluated",
                extra={
                    "sensor_id": str(reading.sensor_id),
                    "reading_id": str(reading.id) if reading.id else None,
                    "alerts_created": len(result.created),
                    "alerts_resolved": len(result.resolved),
                },
            )
        return result

    async def _create_alert(self, reading: Reading, threshold: Threshold, value: Decimal) -> Optional[Alert]:
        candidate = Alert(
            sensor_id=reading.sensor_id,
            threshold_id=threshold.id,
            kind=threshold.kind,
            severity=threshold.severity,
            status=AlertStatus.ACTIVE.value,
            created_at=self.clock(),
            message=build_alert_message(value, threshold, reading),
        )

        alert, created = await self.alerts.create_alert(candidate)
        if not created:
            # Créée entre-temps par un flux concurrent : déjà signalée
            return None

        await self.alerts.add_event(
            AlertEvent(
                alert_id=alert.id,
                event_type=AlertEventType.CREATED.value,
                old_status=None,
                new_status=AlertStatus.ACTIVE.value,
                message=alert.message,
                actor=SYSTEM_ACTOR,
                request_id=get_request_id(),
                created_at=alert.created_at,
            )
        )

        log.warning(
            "alert_created",
            extra={
                "alert_id": str(alert.id),
                "sensor_id": str(alert.sensor_id),
                "threshold_id": str(threshold.id),
                "kind": alert.kind,
                "severity": alert.severity,
            },
        )
        return alert

    async def _auto_resolve(self, alert: Alert, reading: Reading) -> None:
        now = self.clock()
        alert.status = AlertStatus.RESOLVED.value
        alert.resolved_at = now
        alert.message = (alert.message or "") + f" - Résolu automatiquement par le relevé du {_fmt_date(reading)}"
        await self.alerts.update_alert(alert)

        await self.alerts.add_event(
            AlertEvent(
                alert_id=alert.id,
                event_type=AlertEventType.AUTO_RESOLVED.value,
                old_status=AlertStatus.ACTIVE.value,
                new_status=AlertStatus.RESOLVED.value,
                message=f"Retour dans les bornes (valeur {quantize(reading.value)})",
                actor=SYSTEM_ACTOR,
                request_id=get_request_id(),
                created_at=now,
            )
        )

        log.info(
            "alert_auto_resolved",
            extra={
                "alert_id": str(alert.id),
                "sensor_id": str(alert.sensor_id),
                "old_status": AlertStatus.ACTIVE.value,
                "new_status": AlertStatus.RESOLVED.value,
            },
        )
