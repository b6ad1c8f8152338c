from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from iot_platform.core.realtime import ConnectionManager
from iot_platform.models.alert import Alert
from iot_platform.services.alert_evaluator import EvaluationResult

"""
Notifications temps réel (WebSocket).

Rôle (fonctionnel) :
- Construit les événements poussés au front :
  - ALERT_CREATED / ALERT_RESOLVED : résultat d’une évaluation (API ou polling)
  - ALERT_STATUS_CHANGED           : acquittement / résolution manuelle
- Best-effort : une erreur d’envoi est journalisée, jamais propagée.
"""

log = logging.getLogger("iot_platform.realtime")


def alert_payload(alert: Alert) -> Dict[str, Any]:
    return {
        "id": str(alert.id),
        "sensor_id": str(alert.sensor_id),
        "threshold_id": str(alert.threshold_id) if alert.threshold_id else None,
        "kind": alert.kind,
        "severity": alert.severity,
        "status": alert.status,
        "message": alert.message,
        "created_at": alert.created_at,
        "acknowledged_at": alert.acknowledged_at,
        "resolved_at": alert.resolved_at,
    }


async def _send(manager: Optional[ConnectionManager], payload: Dict[str, Any]) -> None:
    if manager is None:
        return
    try:
        await manager.broadcast_json(payload)
    except Exception:
        log.warning("ws_broadcast_failed", exc_info=True)


async def publish_evaluation(manager: Optional[ConnectionManager], evaluation: EvaluationResult) -> None:
    for alert in evaluation.created:
        await _send(manager, ConnectionManager.envelope("ALERT_CREATED", {"alert": alert_payload(alert)}))
    for alert in evaluation.resolved:
        await _send(manager, ConnectionManager.envelope("ALERT_RESOLVED", {"alert": alert_payload(alert)}))


async def publish_status_change(
    manager: Optional[ConnectionManager],
    alert: Alert,
    *,
    old_status: str,
    comment: Optional[str],
    actor: str,
    request_id: Optional[str],
) -> None:
    await _send(
        manager,
        ConnectionManager.envelope(
            "ALERT_STATUS_CHANGED",
            {
                "alert": alert_payload(alert),
                "old_status": old_status,
                "comment": comment,
                "actor": actor,
                "request_id": request_id,
            },
        ),
    )
