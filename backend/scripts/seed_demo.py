# backend/scripts/seed_demo.py
from __future__ import annotations

import argparse
import asyncio
import math
import random
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

from sqlalchemy import delete

# Permet de lancer le script depuis backend/ sans souci d'import
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

from iot_platform.core.settings import settings
from iot_platform.db.session import build_engine, build_session_factory, init_models
from iot_platform.models import AlertEvent, Alert, Device, Location, MeasurementUnit, Reading, Threshold
from iot_platform.services.catalog_service import LocationService, UnitService
from iot_platform.services.device_service import DeviceService
from iot_platform.services.reading_service import ReadingService
from iot_platform.services.threshold_service import ThresholdService

"""
Seed de démonstration.

Crée un petit parc (localisations, unités, sondes, seuils) puis rejoue un historique de relevés
via ReadingService.ingest : les alertes sont donc produites par l’évaluateur réel
(création, auto-résolution), exactement comme en production.
"""

# ---- Parc de démo ----
LOCATIONS = ["Serre Nord", "Serre Sud", "Entrepôt", "Chambre froide"]

UNITS = [
    ("Degré Celsius", "°C", "TEMPERATURE"),
    ("Humidité relative", "%HR", "HUMIDITY"),
    ("Parties par million", "ppm", "AIR_QUALITY"),
]

# type -> (valeur moyenne, amplitude journalière, bruit, seuils [(kind, severity, value)])
PROFILES = {
    "TEMPERATURE": (Decimal("19"), 5.0, 1.5, [
        ("MINIMUM", "WARNING", Decimal("15.00")),
        ("MINIMUM", "ALERT", Decimal("12.00")),
        ("MAXIMUM", "WARNING", Decimal("24.00")),
        ("MAXIMUM", "ALERT", Decimal("28.00")),
    ]),
    "HUMIDITY": (Decimal("60"), 15.0, 4.0, [
        ("MINIMUM", "ALERT", Decimal("40.00")),
        ("MAXIMUM", "ALERT", Decimal("80.00")),
    ]),
    "AIR_QUALITY": (Decimal("650"), 250.0, 80.0, [
        ("MAXIMUM", "WARNING", Decimal("900.00")),
        ("MAXIMUM", "ALERT", Decimal("1200.00")),
    ]),
}


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def simulated_value(sensor_type: str, at: datetime) -> Decimal:
    # Cycle jour/nuit + bruit gaussien : suffisant pour franchir les seuils de temps en temps
    mean, amplitude, noise = PROFILES[sensor_type][:3]
    phase = (at.hour + at.minute / 60) / 24 * 2 * math.pi
    value = float(mean) + amplitude * math.sin(phase - math.pi / 2) + random.gauss(0, noise)
    return Decimal(str(round(value, 2)))


async def reset_data(session) -> None:
    # ordre inverse des FK
    for model in (AlertEvent, Alert, Reading, Threshold, Device, MeasurementUnit, Location):
        await session.execute(delete(model))
    await session.commit()
    print("✅ Reset done (all demo data deleted).")


async def seed(reset: bool, per_location: int, days: int, step_minutes: int) -> None:
    engine = build_engine(settings.DATABASE_URL)
    SessionLocal = build_session_factory(engine)

    if settings.DB_AUTO_CREATE:
        await init_models(engine)

    try:
        async with SessionLocal() as db:
            if reset:
                await reset_data(db)

            units = {}
            for name, symbol, sensor_type in UNITS:
                units[sensor_type] = await UnitService(db).create(name=name, symbol=symbol, sensor_type=sensor_type)

            start = now_utc() - timedelta(days=days)
            sensors = []
            thresholds_count = 0

            for loc_name in LOCATIONS:
                location = await LocationService(db).create(name=loc_name, description="Site de démonstration")

                for i in range(per_location):
                    sensor_type = random.choice(list(PROFILES))
                    sensor = await DeviceService(db).create_sensor(
                        {
                            "name": f"{loc_name} - {sensor_type.lower()} #{i + 1}",
                            "location_id": location.id,
                            "installed_at": start,
                            "channel": "HTTP_PUSH",
                            "sensor_type": sensor_type,
                            "unit_id": units[sensor_type].id,
                        }
                    )
                    sensors.append(sensor)

                    for kind, severity, value in PROFILES[sensor_type][3]:
                        await ThresholdService(db).create(
                            sensor_id=sensor.id,
                            kind=kind,
                            severity=severity,
                            value=value,
                            is_active=True,
                        )
                        thresholds_count += 1

        readings_count = 0
        created = 0
        resolved = 0

        for sensor in sensors:
            at = start
            async with SessionLocal() as db:
                service = ReadingService(db)
                while at < now_utc():
                    result = await service.ingest(
                        sensor_id=sensor.id,
                        value=simulated_value(sensor.sensor_type, at),
                        measured_at=at,
                        origin="AUTOMATIC",
                    )
                    readings_count += 1
                    created += len(result.evaluation.created)
                    resolved += len(result.evaluation.resolved)
                    at += timedelta(minutes=step_minutes)
            print(f"… {sensor.name} : historique rejoué")

        print("✅ Seed terminé.")
        print(f"   - Sondes créées: {len(sensors)}")
        print(f"   - Seuils actifs: {thresholds_count}")
        print(f"   - Relevés ingérés: {readings_count}")
        print(f"   - Alertes créées: {created} (dont {resolved} auto-résolues)")
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--reset", action="store_true", help="Supprime les données demo avant de reseed")
    parser.add_argument("--per-location", type=int, default=3, help="Nombre de sondes par localisation")
    parser.add_argument("--days", type=int, default=7, help="Fenêtre de dates (derniers N jours)")
    parser.add_argument("--step", type=int, default=30, help="Intervalle entre deux relevés (minutes)")
    parser.add_argument("--seed", type=int, default=42, help="Seed RNG pour reproductibilité")
    args = parser.parse_args()

    random.seed(args.seed)
    asyncio.run(seed(reset=args.reset, per_location=args.per_location, days=args.days, step_minutes=args.step))


if __name__ == "__main__":
    main()
