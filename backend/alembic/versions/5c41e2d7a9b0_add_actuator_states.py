"""add actuator states

- Table actuator_states : état courant (on/off + pourcentage) de chaque actionneur.
- Les actionneurs existants reçoivent un état initial éteint.

Revision ID: 5c41e2d7a9b0
Revises: 9323b707b05f
Create Date: 2026-10-19 15:40:02.517730
"""

import uuid
from datetime import datetime, timezone
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Identifiants Alembic
revision: str = "5c41e2d7a9b0"
down_revision: Union[str, Sequence[str], None] = "9323b707b05f"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Application des changements de schéma."""
    op.create_table(
        "actuator_states",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("actuator_id", sa.Uuid(), nullable=False),
        sa.Column("is_on", sa.Boolean(), nullable=False),
        sa.Column("percentage", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("percentage >= 0 AND percentage <= 100", name="ck_actuator_states_percentage"),
        sa.ForeignKeyConstraint(["actuator_id"], ["devices.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("actuator_id"),
    )

    # Backfill : un état éteint par actionneur déjà enregistré
    devices = sa.table("devices", sa.column("id", sa.Uuid()), sa.column("kind", sa.String()))
    actuator_ids = op.get_bind().execute(sa.select(devices.c.id).where(devices.c.kind == "ACTUATOR")).scalars().all()
    if not actuator_ids:
        return

    states = sa.table(
        "actuator_states",
        sa.column("id", sa.Uuid()),
        sa.column("actuator_id", sa.Uuid()),
        sa.column("is_on", sa.Boolean()),
        sa.column("percentage", sa.Integer()),
        sa.column("updated_at", sa.DateTime(timezone=True)),
    )
    now = datetime.now(timezone.utc)
    op.bulk_insert(
        states,
        [
            {"id": uuid.uuid4(), "actuator_id": aid, "is_on": False, "percentage": 0, "updated_at": now}
            for aid in actuator_ids
        ],
    )


def downgrade() -> None:
    """Retour arrière des changements de schéma."""
    op.drop_table("actuator_states")
