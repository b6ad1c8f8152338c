from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException

"""
Core Errors.

Rôle (fonctionnel) :
- Standardise le format des erreurs renvoyées par l’API (payload homogène).
- Définit la taxonomie des erreurs métier levées par les services :
  - NotFoundError          : alerte / seuil / sonde / relevé introuvable (404)
  - InvalidStateTransition : transition de cycle de vie interdite (400)
  - ValidationError        : entrée incohérente, rejetée avant évaluation (400)
  - StorageFailure         : échec de persistance, propagé sans retry (500)
- Conserve AppHTTPException pour les erreurs purement HTTP (401, 429…).

Convention de réponse (exemple) :
{
  "error": {
    "code": "NOT_FOUND",
    "message": "Alerte introuvable",
    "status": 404,
    "request_id": "...",
    "timestamp": "...",
    "details": {...}
  }
}
"""


def now_iso() -> str:
    """Timestamp ISO-8601 en UTC (utilisé dans toutes les erreurs)."""
    return datetime.now(timezone.utc).isoformat()


def error_payload(
    *,
    code: str,
    message: str,
    status: int,
    request_id: str,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    """Construit un payload d’erreur homogène pour l’API."""
    payload: Dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "status": status,
            "request_id": request_id,
            "timestamp": now_iso(),
        }
    }
    if details is not None:
        payload["error"]["details"] = details
    return payload


class AppHTTPException(HTTPException):
    """
    Exception HTTP standardisée (auth, rate-limit…).

    Exemple :
        raise AppHTTPException(401, "UNAUTHORIZED", "Clé API invalide ou manquante")
    """

    def __init__(self, status_code: int, code: str, message: str, details: Any = None):
        super().__init__(status_code=status_code, detail={"code": code, "message": message, "details": details})


class DomainError(Exception):
    """
    Erreur métier levée par les services (indépendante du transport HTTP).

    La couche API (main.py) la traduit en error_payload avec `status_code` et `code`.
    """

    status_code: int = 400
    code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(DomainError):
    status_code = 404
    code = "NOT_FOUND"


class InvalidStateTransition(DomainError):
    status_code = 400
    code = "INVALID_STATE_TRANSITION"

    def __init__(self, message: str, *, current_status: str | None = None, target_status: str | None = None):
        details = None
        if current_status is not None or target_status is not None:
            details = {"current_status": current_status, "target_status": target_status}
        super().__init__(message, details)
        self.current_status = current_status
        self.target_status = target_status


class ValidationError(DomainError):
    status_code = 400
    code = "VALIDATION_ERROR"


class StorageFailure(DomainError):
    status_code = 500
    code = "STORAGE_FAILURE"
