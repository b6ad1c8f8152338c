from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

"""
API Realtime (WebSocket).

Rôle (fonctionnel) :
- Canal /ws/alerts : pousse au front les événements du cycle de vie des alertes
  (ALERT_CREATED, ALERT_RESOLVED, ALERT_STATUS_CHANGED).
- Filtre optionnel ?sensor_id=... : l’écran d’une sonde ne reçoit que ses alertes.
- Messages client : "PING" -> "PONG".

Les événements sont émis par services.notifications (API relevés / alertes et polling).
"""

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/alerts")
async def ws_alerts(ws: WebSocket, sensor_id: Optional[uuid.UUID] = Query(None)):
    manager = getattr(ws.app.state, "ws_manager", None)
    if manager is None:
        await ws.close(code=1011)
        return

    await manager.connect(ws, sensor_id=str(sensor_id) if sensor_id else None)
    await ws.send_json(manager.envelope("WS_CONNECTED", {"sensor_id": str(sensor_id) if sensor_id else None}))

    try:
        while True:
            msg = await ws.receive_text()
            if msg.strip().upper() == "PING":
                await ws.send_json(manager.envelope("PONG"))
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(ws)
