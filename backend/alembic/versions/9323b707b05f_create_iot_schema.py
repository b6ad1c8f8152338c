"""Création du schéma de la plateforme IoT.

Rôle (fonctionnel) :
- Référentiels : locations, measurement_units.
- Devices (sondes + actionneurs dans une table unique, discriminant `kind`).
- Relevés, seuils, alertes et historique des alertes (alert_events).
- Index partiel ux_alerts_active_per_threshold : au plus une alerte ACTIVE par
  (sonde, seuil, sévérité), y compris sous évaluations concurrentes.

Revision ID: 9323b707b05f
Revises:
Create Date: 2026-10-19 09:12:40.118203
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Identifiants Alembic
revision: str = "9323b707b05f"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Application des changements de schéma."""
    op.create_table(
        "locations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "measurement_units",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("symbol", sa.String(length=10), nullable=False),
        sa.Column("sensor_type", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_measurement_units_sensor_type"), "measurement_units", ["sensor_type"], unique=False
    )

    op.create_table(
        "devices",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("location_id", sa.Uuid(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("installed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("channel", sa.String(length=20), nullable=False),
        sa.Column("device_url", sa.String(length=500), nullable=True),
        sa.Column("device_credentials", sa.String(length=200), nullable=True),
        sa.Column("min_value", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("max_value", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("sensor_type", sa.String(length=20), nullable=True),
        sa.Column("unit_id", sa.Uuid(), nullable=True),
        sa.Column("actuator_type", sa.String(length=20), nullable=True),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["unit_id"], ["measurement_units.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_devices_location_id"), "devices", ["location_id"], unique=False)
    op.create_index("ix_devices_kind_channel_active", "devices", ["kind", "channel", "is_active"], unique=False)

    op.create_table(
        "readings",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sensor_id", sa.Uuid(), nullable=False),
        sa.Column("value", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("measured_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("origin", sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(["sensor_id"], ["devices.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_readings_sensor_date", "readings", ["sensor_id", "measured_at"], unique=False)
    op.create_index("ix_readings_date", "readings", ["measured_at"], unique=False)

    op.create_table(
        "thresholds",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sensor_id", sa.Uuid(), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("severity", sa.String(length=20), nullable=False),
        sa.Column("value", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["sensor_id"], ["devices.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_thresholds_sensor_active", "thresholds", ["sensor_id", "is_active"], unique=False)

    op.create_table(
        "alerts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sensor_id", sa.Uuid(), nullable=False),
        sa.Column("threshold_id", sa.Uuid(), nullable=True),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("severity", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["sensor_id"], ["devices.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["threshold_id"], ["thresholds.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_alerts_threshold_id"), "alerts", ["threshold_id"], unique=False)
    op.create_index(op.f("ix_alerts_status"), "alerts", ["status"], unique=False)
    op.create_index("ix_alerts_sensor_status", "alerts", ["sensor_id", "status"], unique=False)
    op.create_index("ix_alerts_date_status", "alerts", ["created_at", "status"], unique=False)
    op.create_index(
        "ux_alerts_active_per_threshold",
        "alerts",
        ["sensor_id", "threshold_id", "severity"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
        sqlite_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        "alert_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("alert_id", sa.Uuid(), nullable=False),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("old_status", sa.String(length=20), nullable=True),
        sa.Column("new_status", sa.String(length=20), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("actor", sa.String(length=120), nullable=True),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["alert_id"], ["alerts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_alert_events_alert_id"), "alert_events", ["alert_id"], unique=False)
    op.create_index(op.f("ix_alert_events_request_id"), "alert_events", ["request_id"], unique=False)


def downgrade() -> None:
    """Retour arrière des changements de schéma."""
    op.drop_index(op.f("ix_alert_events_request_id"), table_name="alert_events")
    op.drop_index(op.f("ix_alert_events_alert_id"), table_name="alert_events")
    op.drop_table("alert_events")

    op.drop_index("ux_alerts_active_per_threshold", table_name="alerts")
    op.drop_index("ix_alerts_date_status", table_name="alerts")
    op.drop_index("ix_alerts_sensor_status", table_name="alerts")
    op.drop_index(op.f("ix_alerts_status"), table_name="alerts")
    op.drop_index(op.f("ix_alerts_threshold_id"), table_name="alerts")
    op.drop_table("alerts")

    op.drop_index("ix_thresholds_sensor_active", table_name="thresholds")
    op.drop_table("thresholds")

    op.drop_index("ix_readings_date", table_name="readings")
    op.drop_index("ix_readings_sensor_date", table_name="readings")
    op.drop_table("readings")

    op.drop_index("ix_devices_kind_channel_active", table_name="devices")
    op.drop_index(op.f("ix_devices_location_id"), table_name="devices")
    op.drop_table("devices")

    op.drop_index(op.f("ix_measurement_units_sensor_type"), table_name="measurement_units")
    op.drop_table("measurement_units")

    op.drop_table("locations")
