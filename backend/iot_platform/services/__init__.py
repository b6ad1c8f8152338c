"""
iot_platform.services

Package “services” : logique applicative (use-cases) indépendante des endpoints HTTP.

Rôle (fonctionnel) :
- Contient les services qui orchestrent :
  - l’ingestion des relevés et leur évaluation contre les seuils actifs,
  - le cycle de vie des alertes (création, acquittement, résolution) et leur historique,
  - la communication avec les devices (push, pull, polling planifié),
  - les référentiels (localisations, unités, devices, seuils).

Principe :
- iot_platform.api = transport HTTP (routes, validation, dépendances)
- iot_platform.services = orchestration métier (réutilisable, testable, sans HTTP)
- Les erreurs métier sont levées en DomainError (core.errors), jamais en HTTPException.
"""
