from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict

from iot_platform.schemas.alerts import AlertOut
from iot_platform.schemas.readings import ReadingOut
from iot_platform.schemas.common import UTCDateTime

"""
Schemas Dashboard (Pydantic).

Rôle (fonctionnel) :
- Définit le contrat de réponse de l’endpoint de synthèse.
- Structure les données nécessaires au front :
  - compteurs devices / alertes / relevés,
  - dernières alertes actives,
  - derniers relevés.

Notes :
- Ces schémas sont des DTO de lecture : ils agrègent des données calculées (pas des lignes DB).
- extra="forbid" sur DashboardSummaryOut impose un contrat strict côté API.
"""

class DeviceCounts(BaseModel):
    total: int
    active: int
    inactive: int

class DashboardStats(BaseModel):
    """Compteurs globaux ("today" = depuis minuit UTC)."""
    sensors: DeviceCounts
    actuators: DeviceCounts
    alerts_active: int
    alerts_acknowledged: int
    alerts_resolved_today: int
    readings_today: int

class DashboardSummaryOut(BaseModel):
    """Réponse complète du dashboard : compteurs + dernières alertes + derniers relevés."""
    stats: DashboardStats
    latest_alerts: List[AlertOut]
    latest_readings: List[ReadingOut]
    generated_at: UTCDateTime

    model_config = ConfigDict(extra="forbid")
