from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.core.clock import Clock, as_utc, utc_now
from iot_platform.core.errors import DomainError, ValidationError
from iot_platform.core.settings import settings
from iot_platform.models.device import Device
from iot_platform.models.enums import CommunicationChannel, DeviceKind, ReadingOrigin
from iot_platform.services.device_service import DeviceService
from iot_platform.services.reading_service import IngestionResult, ReadingService

"""
Device Communication.

Rôle (fonctionnel) :
- HTTP_PULL : interroge un device (GET <url>/data, repli sur GET <url> si 404),
  authentification basique optionnelle ("user:password"), timeout configurable.
- HTTP_PUSH : réception d’une donnée poussée par un device (webhook /devices/{id}/data).
  - sonde      : relevé AUTOMATIC ingéré (évaluation des seuils incluse)
  - actionneur : donnée acceptée sans relevé
- Relevé forcé : pull immédiat d’une sonde HTTP_PULL active (hors cycle de polling).
- Test de connexion : interroge le device sans rien persister.

Format attendu côté device (JSON, clés insensibles à la casse) :
  {"value": 21.5, "timestamp": "2024-03-01T10:00:00Z"}   (timestamp optionnel)
"""

log = logging.getLogger("iot_platform.devices.communication")


class DeviceCommunicationError(DomainError):
    """Device injoignable ou réponse inexploitable."""
    status_code = 502
    code = "DEVICE_COMMUNICATION_ERROR"


class DevicePayload(BaseModel):
    value: Decimal
    timestamp: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


@dataclass(frozen=True)
class ConnectionTestResult:
    success: bool
    message: str
    value: Optional[Decimal] = None
    timestamp: Optional[datetime] = None
    duration_ms: Optional[int] = None


def _parse_auth(credentials: Optional[str]) -> Optional[httpx.BasicAuth]:
    if not credentials:
        return None
    parts = credentials.split(":")
    if len(parts) != 2:
        return None
    return httpx.BasicAuth(parts[0], parts[1])


def parse_device_payload(raw: Any) -> DevicePayload:
    if not isinstance(raw, dict):
        raise DeviceCommunicationError("Format de réponse du device invalide")
    try:
        return DevicePayload.model_validate({str(k).lower(): v for k, v in raw.items()})
    except PydanticValidationError as exc:
        raise DeviceCommunicationError(
            "Format de réponse du device invalide",
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


class DeviceClient:
    """Client HTTP des devices en mode pull (httpx)."""

    def __init__(
        self,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = settings.DEVICE_HTTP_TIMEOUT_SECONDS if timeout is None else timeout
        self._transport = transport

    async def fetch(self, device: Device) -> DevicePayload:
        url = (device.device_url or "").strip()
        if not url:
            raise DeviceCommunicationError("URL du device non définie", details={"device_id": str(device.id)})

        base = url.rstrip("/")
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=_parse_auth(device.device_credentials),
                transport=self._transport,
            ) as client:
                response = await client.get(f"{base}/data")
                if response.status_code == 404:
                    response = await client.get(base)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise DeviceCommunicationError(
                f"Réponse HTTP {exc.response.status_code} du device",
                details={"device_url": url},
            ) from exc
        except httpx.HTTPError as exc:
            raise DeviceCommunicationError(
                f"Device injoignable ({exc.__class__.__name__})",
                details={"device_url": url},
            ) from exc

        try:
            raw = response.json()
        except ValueError as exc:
            preview = response.text[:100]
            raise DeviceCommunicationError(
                "Réponse du device non JSON",
                details={"device_url": url, "preview": preview},
            ) from exc

        return parse_device_payload(raw)


class DeviceCommunicationService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        client: DeviceClient | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.session = session
        self.client = client or DeviceClient()
        self.clock = clock

    async def pull(self, sensor: Device) -> IngestionResult:
        """Interroge une sonde HTTP_PULL et ingère la valeur reçue."""
        data = await self.client.fetch(sensor)
        return await ReadingService(self.session, clock=self.clock).ingest(
            sensor_id=sensor.id,
            value=data.value,
            measured_at=data.timestamp,
            origin=ReadingOrigin.AUTOMATIC.value,
        )

    async def force_pull(self, sensor_id: uuid.UUID) -> IngestionResult:
        """Relevé immédiat d’une sonde HTTP_PULL active, hors cycle de polling."""
        sensor = await DeviceService(self.session).get_sensor(sensor_id)
        if not sensor.is_active or sensor.channel != CommunicationChannel.HTTP_PULL.value:
            raise ValidationError(
                "Récupération impossible : sonde inactive ou non HTTP_PULL",
                details={"sensor_id": str(sensor_id), "channel": sensor.channel, "is_active": sensor.is_active},
            )
        if not (sensor.device_url or "").strip():
            raise ValidationError("URL du device non définie", details={"sensor_id": str(sensor_id)})
        return await self.pull(sensor)

    async def test_connection(self, device_id: uuid.UUID) -> ConnectionTestResult:
        device = await DeviceService(self.session).get_device(device_id)
        if not (device.device_url or "").strip():
            return ConnectionTestResult(success=False, message="URL du device non définie")

        start = time.perf_counter()
        try:
            data = await self.client.fetch(device)
        except DeviceCommunicationError as exc:
            duration_ms = int((time.perf_counter() - start) * 1000)
            log.info(
                "device_test_failed",
                extra={"sensor_id": str(device.id), "device_url": device.device_url, "success": False},
            )
            return ConnectionTestResult(success=False, message=f"Erreur: {exc.message}", duration_ms=duration_ms)

        duration_ms = int((time.perf_counter() - start) * 1000)
        return ConnectionTestResult(
            success=True,
            message="Connexion réussie",
            value=data.value,
            timestamp=as_utc(data.timestamp),
            duration_ms=duration_ms,
        )

    async def receive(
        self,
        device_id: uuid.UUID,
        *,
        value: Any,
        timestamp: Optional[datetime] = None,
    ) -> Optional[IngestionResult]:
        """
        Donnée poussée par un device.

        Retourne le résultat d’ingestion pour une sonde, None pour un actionneur.
        """
        device = await DeviceService(self.session).get_device(device_id)
        if not device.is_active:
            raise ValidationError("Device inactif", details={"device_id": str(device_id)})

        if device.kind == DeviceKind.ACTUATOR.value:
            if timestamp is not None:
                ReadingService(self.session, clock=self.clock).check_not_in_future(as_utc(timestamp))
            log.info("actuator_data_received", extra={"sensor_id": str(device_id), "kind": device.kind})
            return None

        return await ReadingService(self.session, clock=self.clock).ingest(
            sensor_id=device.id,
            value=value,
            measured_at=timestamp,
            origin=ReadingOrigin.AUTOMATIC.value,
        )
