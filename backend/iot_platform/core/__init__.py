"""
iot_platform.core

Package “cœur” transverse : tout ce qui s’applique à plusieurs endpoints/services et ne dépend
pas d’un domaine métier précis (devices, relevés, seuils, alertes).

- settings
  Configuration (variables d’environnement : DB, API key, polling des devices, tolérances…).

- errors
  Format d’erreur API uniforme + taxonomie métier (NotFoundError, InvalidStateTransition,
  ValidationError, StorageFailure) traduite en HTTP par main.py.

- logging
  Logs JSON (1 ligne par événement) enrichis du request_id et d’extras structurés.

- request_id
  Identifiant de corrélation par requête HTTP ou par cycle de polling.

- clock
  Heure courante UTC + normalisation des dates lues en base.

- security / rate_limit
  API key (mode démo) et limitation de débit en mémoire.

- realtime
  Manager WebSocket : diffusion des événements d’alertes vers le front.
"""
