from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from iot_platform.core.clock import Clock, utc_now
from iot_platform.core.request_id import ensure_request_id, set_request_id
from iot_platform.core.settings import settings
from iot_platform.services.alert_evaluator import EvaluationResult
from iot_platform.services.device_communication import DeviceClient, DeviceCommunicationService
from iot_platform.services.device_service import DeviceService

"""
Device Poller (HTTP_PULL planifié).

Rôle (fonctionnel) :
- Toutes les POLLING_INTERVAL_SECONDS, interroge chaque sonde active en HTTP_PULL
  et ingère la valeur reçue (évaluation des seuils incluse).
- Isolation par sonde : chaque sonde a sa propre session / transaction.
  Un échec est journalisé et compté, n’interrompt pas le cycle et n’est pas rejoué
  avant le cycle suivant.
- Un request_id "poll-<uuid>" par cycle corrèle les logs et l’historique des alertes.

Démarré par le lifespan FastAPI (POLLING_ENABLED=true), annulé à l’arrêt.
"""

log = logging.getLogger("iot_platform.polling")

EvaluationListener = Callable[[EvaluationResult], Awaitable[None]]


@dataclass
class PollReport:
    sensors: int = 0
    success: int = 0
    errors: int = 0
    created: int = 0
    resolved: int = 0


class DevicePoller:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        client: Optional[DeviceClient] = None,
        interval_seconds: Optional[float] = None,
        clock: Clock = utc_now,
        on_evaluation: Optional[EvaluationListener] = None,
    ) -> None:
        self.session_factory = session_factory
        self.client = client or DeviceClient()
        self.interval_seconds = (
            settings.POLLING_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        )
        self.clock = clock
        self.on_evaluation = on_evaluation

    async def run_once(self) -> PollReport:
        """Un cycle de polling complet."""
        report = PollReport()

        async with self.session_factory() as session:
            sensors = await DeviceService(session).list_pollable_sensors()
        report.sensors = len(sensors)
        log.info("polling_cycle_start", extra={"sensors": report.sensors})

        for sensor in sensors:
            try:
                async with self.session_factory() as session:
                    result = await DeviceCommunicationService(
                        session, client=self.client, clock=self.clock
                    ).pull(sensor)
            except Exception:
                report.errors += 1
                log.warning(
                    "polling_sensor_failed",
                    exc_info=True,
                    extra={"sensor_id": str(sensor.id), "device_url": sensor.device_url},
                )
                continue

            report.success += 1
            report.created += len(result.evaluation.created)
            report.resolved += len(result.evaluation.resolved)

            if self.on_evaluation is not None and result.evaluation.changed:
                try:
                    await self.on_evaluation(result.evaluation)
                except Exception:
                    log.warning("polling_listener_failed", exc_info=True, extra={"sensor_id": str(sensor.id)})

        log.info(
            "polling_cycle_done",
            extra={
                "sensors": report.sensors,
                "success": report.success,
                "errors": report.errors,
                "alerts_created": report.created,
                "alerts_resolved": report.resolved,
            },
        )
        return report

    async def run_forever(self) -> None:
        """Boucle planifiée ; se termine uniquement par annulation de la tâche."""
        while True:
            ensure_request_id(prefix="poll-")
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("polling_cycle_failed")
            finally:
                set_request_id(None)

            await asyncio.sleep(self.interval_seconds)
