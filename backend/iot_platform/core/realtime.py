from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

"""
Core Realtime (WebSocket Manager).

Rôle (fonctionnel) :
- Tient le registre des écrans connectés (liste des alertes, dashboard, fiche sonde).
- Diffuse les événements d’alerte, éventuellement filtrés par sonde :
  une connexion ouverte avec sensor_id ne reçoit que les événements de cette sonde.

Notes :
- Best-effort : un échec d’envoi ne fait jamais échouer l’ingestion d’un relevé.
- Une connexion morte est retirée du registre au premier envoi raté.
"""

logger = logging.getLogger("iot_platform.realtime")


def _event_sensor(payload: Dict[str, Any]) -> Optional[str]:
    alert = (payload.get("data") or {}).get("alert") or {}
    sensor_id = alert.get("sensor_id")
    return str(sensor_id) if sensor_id else None


class ConnectionManager:
    """Registre des WebSockets : connexion -> filtre sonde (None = toutes)."""

    def __init__(self) -> None:
        self._subscriptions: Dict[WebSocket, Optional[str]] = {}
        self._lock = asyncio.Lock()

    def count(self) -> int:
        return len(self._subscriptions)

    @staticmethod
    def envelope(event_type: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Format commun des messages poussés : {type, ts, data}."""
        message: Dict[str, Any] = {"type": event_type, "ts": datetime.now(timezone.utc).isoformat()}
        if data is not None:
            message["data"] = data
        return message

    async def connect(self, ws: WebSocket, *, sensor_id: Optional[str] = None) -> None:
        await ws.accept()
        async with self._lock:
            self._subscriptions[ws] = sensor_id
        logger.info("ws_connected", extra={"sensor_id": sensor_id, "clients": self.count()})

    async def disconnect(self, ws: WebSocket) -> None:
        async with self._lock:
            self._subscriptions.pop(ws, None)
        logger.info("ws_disconnected", extra={"clients": self.count()})

    async def broadcast_json(self, payload: Dict[str, Any]) -> int:
        """Envoie l’événement aux connexions concernées. Retourne le nombre de destinataires."""
        sensor_id = _event_sensor(payload)
        async with self._lock:
            targets = [
                ws for ws, wanted in self._subscriptions.items()
                if wanted is None or wanted == sensor_id
            ]

        if not targets:
            return 0

        body = jsonable_encoder(payload)
        sent = 0
        dead = []
        for ws in targets:
            try:
                await ws.send_json(body)
                sent += 1
            except Exception:
                dead.append(ws)

        if dead:
            async with self._lock:
                for ws in dead:
                    self._subscriptions.pop(ws, None)
            logger.info("ws_purged", extra={"dead": len(dead), "clients": self.count()})
        return sent

    async def close_all(self) -> None:
        async with self._lock:
            conns = list(self._subscriptions)
            self._subscriptions.clear()

        for ws in conns:
            try:
                await ws.close()
            except Exception:
                logger.debug("ws_close_failed", exc_info=True)
