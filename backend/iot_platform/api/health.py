from fastapi import APIRouter, Request

from iot_platform import __version__
from iot_platform.core.settings import settings

"""
API Health.

Rôle (fonctionnel) :
- Liveness : répond sans toucher la base (la readiness est sur /system/status).
- Expose l’environnement, la version et l’état de configuration du polling.
"""

router = APIRouter(tags=["system"])


@router.get("/health")
def health(request: Request):
    manager = getattr(request.app.state, "ws_manager", None)
    return {
        "status": "ok",
        "env": settings.ENV,
        "version": __version__,
        "polling": {
            "enabled": settings.POLLING_ENABLED,
            "interval_seconds": settings.POLLING_INTERVAL_SECONDS,
        },
        "ws_clients": manager.count() if manager else 0,
    }
