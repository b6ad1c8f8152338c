"""
iot_platform

Package racine du backend de la plateforme de supervision IoT.

Rôle (fonctionnel) :
- Contient tout le code applicatif (API, logique métier, accès DB, schémas, polling des devices).
- Sert de point d’ancrage pour les imports : `from iot_platform...`

Organisation (haute-level) :
- iot_platform.api          : routes FastAPI (contrats HTTP, dépendances, sérialisation)
- iot_platform.core         : briques transverses (settings, errors, logs, sécurité, realtime, rate-limit…)
- iot_platform.db           : base SQLAlchemy + session async
- iot_platform.models       : modèles ORM (référentiels, devices, relevés, seuils, alertes)
- iot_platform.repositories : accès DB du registre de seuils et du stockage des alertes
- iot_platform.schemas      : schémas Pydantic (entrées/sorties API)
- iot_platform.services     : logique métier / use-cases (ingestion, évaluation, cycle de vie, polling…)
"""

__version__ = "0.1.0"
