from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from iot_platform.db.session import get_db
from iot_platform.schemas.dashboard import DashboardSummaryOut
from iot_platform.services.dashboard_service import get_dashboard_summary

"""
API Dashboard.

Rôle (fonctionnel) :
- Expose un endpoint de synthèse pour l’écran d’accueil (compteurs + dernières alertes / relevés).
"""

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=DashboardSummaryOut)
async def dashboard_summary(db: AsyncSession = Depends(get_db)):
    return await get_dashboard_summary(db)
