from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.core.clock import as_utc
from iot_platform.core.settings import settings
from iot_platform.db.session import get_db
from iot_platform.models.reading import Reading

"""
API System Status.

Rôle (fonctionnel) :
- Expose un endpoint de statut "healthcheck" pour la plateforme.
- Vérifie la disponibilité de la base (requête simple).
- Expose l’état du polling HTTP_PULL (activé, intervalle, tâche vivante).
- Fournit une information de fraîcheur via la date du dernier relevé.
"""

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/status")
async def system_status(request: Request, db: AsyncSession = Depends(get_db)):
    # 1) DB check (requête minimale)
    db_ok = True
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        db_ok = False

    # 2) Polling : tâche de fond démarrée par le lifespan
    task = getattr(request.app.state, "poller_task", None)
    poller_running = task is not None and not task.done()

    # 3) Last update (dernier relevé)
    last_update = None
    if db_ok:
        try:
            last = (await db.execute(select(func.max(Reading.measured_at)))).scalar_one_or_none()
            last_update = as_utc(last).isoformat() if last else None
        except SQLAlchemyError:
            last_update = None

    # Réponse (format constant) pour monitoring / UI
    return {
        "ok": bool(db_ok and (poller_running or not settings.POLLING_ENABLED)),
        "db": {"ok": db_ok},
        "polling": {
            "enabled": settings.POLLING_ENABLED,
            "running": poller_running,
            "interval_seconds": settings.POLLING_INTERVAL_SECONDS,
        },
        "last_update": last_update,
        "ts": datetime.now(timezone.utc).isoformat(),
    }
