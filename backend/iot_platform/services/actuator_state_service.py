from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.core.clock import Clock, utc_now
from iot_platform.core.errors import ValidationError
from iot_platform.models.actuator_state import ActuatorState
from iot_platform.models.device import Device
from iot_platform.models.enums import ActuatorType
from iot_platform.repositories._guard import storage_guard
from iot_platform.services.device_service import DeviceService

"""
Actuator State Service.

Rôle (fonctionnel) :
- Lecture et pilotage de l’état courant d’un actionneur (on/off + pourcentage).
- Règles par type :
  - SIMPLE_BULB   : pas de variation, pourcentage = 100 allumé, 0 éteint
  - DIMMABLE_BULB : pourcentage = intensité lumineuse (0..100), requis si allumé
  - MOTOR         : pourcentage = vitesse de rotation (0..100), requis si allumé
- Un actionneur éteint a toujours un pourcentage de 0.
"""

log = logging.getLogger("iot_platform.actuators")


def resolve_percentage(actuator_type: Optional[str], is_on: bool, percentage: Optional[int]) -> int:
    if not is_on:
        return 0
    if actuator_type == ActuatorType.SIMPLE_BULB.value:
        return 100
    if percentage is None:
        raise ValidationError(
            "Pourcentage obligatoire (0..100) pour allumer cet actionneur",
            details={"actuator_type": actuator_type},
        )
    if not 0 <= percentage <= 100:
        raise ValidationError("Le pourcentage doit être compris entre 0 et 100", details={"percentage": percentage})
    return percentage


class ActuatorStateService:
    def __init__(self, session: AsyncSession, *, clock: Clock = utc_now) -> None:
        self.session = session
        self.clock = clock

    async def _load(self, actuator: Device) -> ActuatorState:
        with storage_guard("actuator_state.get"):
            state = (
                await self.session.execute(select(ActuatorState).where(ActuatorState.actuator_id == actuator.id))
            ).scalar_one_or_none()
            if state is None:
                # actionneur enregistré sans état (import, données antérieures) : état éteint
                state = ActuatorState(actuator_id=actuator.id, is_on=False, percentage=0, updated_at=self.clock())
                self.session.add(state)
                await self.session.commit()
        return state

    async def get(self, actuator_id: uuid.UUID) -> ActuatorState:
        actuator = await DeviceService(self.session).get_actuator(actuator_id)
        return await self._load(actuator)

    async def update(self, actuator_id: uuid.UUID, *, is_on: bool, percentage: Optional[int] = None) -> ActuatorState:
        actuator = await DeviceService(self.session).get_actuator(actuator_id)
        value = resolve_percentage(actuator.actuator_type, is_on, percentage)

        state = await self._load(actuator)
        state.is_on = is_on
        state.percentage = value
        state.updated_at = self.clock()

        with storage_guard("actuator_state.update"):
            await self.session.commit()

        log.info(
            "actuator_state_changed",
            extra={"actuator_id": str(actuator_id), "is_on": is_on, "percentage": value},
        )
        return state
