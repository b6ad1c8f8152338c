from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError

from iot_platform.core.errors import StorageFailure

"""
Garde de persistance.

Rôle (fonctionnel) :
- Enveloppe un bloc d’accès base et convertit toute SQLAlchemyError en StorageFailure.
- L’erreur d’origine reste chaînée (__cause__) pour les logs serveur.
"""


@contextmanager
def storage_guard(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise StorageFailure(
            f"Échec de persistance ({operation})",
            details={"operation": operation, "error": exc.__class__.__name__},
        ) from exc
