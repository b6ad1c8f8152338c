"""
iot_platform.repositories

Accès aux données du cœur "alertes" (seuils, alertes, historique).

Rôle (fonctionnel) :
- Isole les requêtes SQLAlchemy utilisées par l’évaluateur et le cycle de vie des alertes.
- Traduit les erreurs SQLAlchemy en StorageFailure (erreur métier, sans retry).
- Ne commite jamais : la transaction appartient au service appelant.
"""

from iot_platform.repositories.alerts import AlertRepository
from iot_platform.repositories.thresholds import ThresholdRepository

__all__ = ["AlertRepository", "ThresholdRepository"]
