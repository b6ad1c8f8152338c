from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Request

from iot_platform.core.settings import settings
from iot_platform.core.errors import AppHTTPException

"""
Core Security (API Key).

Rôle (fonctionnel) :
- Protège les opérations d’écriture sensibles (acquittement / résolution d’alertes,
  configuration des seuils, gestion des devices) par une API key simple.
- Supporte deux formats de headers :
  - Authorization: Bearer <token>
  - X-API-Key: <token>

Comportement :
- Si API_KEY est configurée : la clé est requise.
- Si API_KEY est vide et ENV != prod : bypass (dev / local / tests).
- Si API_KEY est vide et ENV = prod : erreur 500 (configuration serveur invalide).
"""


def _extract_token(request: Request) -> Optional[str]:
    """Extrait un token depuis Authorization Bearer ou X-API-Key (si présent)."""
    auth = request.headers.get("authorization")
    if auth:
        parts = auth.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1].strip()

    x_api_key = request.headers.get("x-api-key")
    if x_api_key:
        return x_api_key.strip()

    return None


async def require_api_key(request: Request) -> None:
    """
    Dépendance FastAPI : vérifie la présence/validité d’une API key.

    Ne retourne rien : lève AppHTTPException si non autorisé.
    """
    expected = getattr(settings, "API_KEY", "") or ""

    if not expected:
        if str(getattr(settings, "ENV", "dev")).lower() == "prod":
            raise AppHTTPException(
                500,
                "SERVER_MISCONFIG",
                "API_KEY manquante côté serveur",
            )
        return

    token = _extract_token(request)
    if not token or not secrets.compare_digest(token, expected):
        raise AppHTTPException(
            401,
            "UNAUTHORIZED",
            "Clé API invalide ou manquante",
        )


def actor_from_request(request: Request, default: str = "operator") -> str:
    """Auteur d’une action manuelle (header X-Actor côté front), tronqué à la taille de la colonne."""
    actor = (request.headers.get("x-actor") or "").strip()
    return (actor or default)[:120]
