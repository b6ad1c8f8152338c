from fastapi import APIRouter

from .health import router as health_router

from iot_platform.api.alerts import router as alerts_router
from iot_platform.api.catalog import router as catalog_router
from iot_platform.api.dashboard import router as dashboard_router
from iot_platform.api.devices import router as devices_router
from iot_platform.api.readings import router as readings_router
from iot_platform.api.status import router as status_router
from iot_platform.api.thresholds import router as thresholds_router

"""
Router principal de l’API.

Rôle (fonctionnel) :
- Regroupe les routeurs par domaine (health, référentiels, devices, relevés, seuils, alertes, dashboard…)
- Sert de point d’entrée unique pour l’inclusion dans l’application FastAPI.
"""

api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(catalog_router)
api_router.include_router(devices_router)
api_router.include_router(readings_router)
api_router.include_router(thresholds_router)
api_router.include_router(alerts_router)
api_router.include_router(status_router)
api_router.include_router(dashboard_router)
