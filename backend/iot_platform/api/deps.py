from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from iot_platform.core.realtime import ConnectionManager
from iot_platform.core.request_id import get_request_id
from iot_platform.core.security import require_api_key

"""
Dépendances API.

Rôle (fonctionnel) :
- Centralise les dépendances réutilisables sur les routes.
- Protection des actions opérateur (configuration, acquittement / résolution) via clé API.
- Accès au manager WebSocket et au request_id courant.
"""


async def require_operator_auth(request: Request) -> None:
    await require_api_key(request)


# Dépendance prête à l’emploi pour protéger un endpoint
OperatorAuthDep = Depends(require_operator_auth)


def ws_manager(request: Request) -> Optional[ConnectionManager]:
    return getattr(request.app.state, "ws_manager", None)


def current_request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or get_request_id()
