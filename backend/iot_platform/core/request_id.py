from __future__ import annotations

import uuid
from contextvars import ContextVar

"""
Core Request ID.

Rôle (fonctionnel) :
- Gère un identifiant de corrélation (request_id) stocké dans un ContextVar.
- Permet de corréler logs, erreurs et événements d’alertes (alert_events.request_id).
- Le request_id peut être :
  - fourni par un header entrant (X-Request-Id),
  - généré automatiquement si absent,
  - préfixé pour les tâches de fond (ex : "poll-<uuid>" pour un cycle de polling).

Notes :
- ContextVar est adapté aux contextes async : chaque requête / tâche garde son propre request_id.
"""

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(rid: str | None) -> None:
    """Force la valeur du request_id pour le contexte courant."""
    _request_id.set(rid)


def get_request_id() -> str | None:
    """Retourne le request_id du contexte courant (ou None)."""
    return _request_id.get()


def ensure_request_id(incoming: str | None = None, *, prefix: str = "") -> str:
    """
    Garantit un request_id pour le contexte courant.

    - Si un request_id entrant est fourni, il est nettoyé et réutilisé.
    - Sinon, on génère un UUID (éventuellement préfixé).
    """
    rid = (incoming or "").strip() or f"{prefix}{uuid.uuid4()}"
    set_request_id(rid)
    return rid
