"""create_alert_table

Revision ID: e1a4c7d2b903
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "e1a4c7d2b903"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Apply migration - create alert table."""
    op.create_table(
        "alert",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("alert_id", sa.String(length=64), nullable=False),
        sa.Column("analysis_id", sa.String(length=32), nullable=False),
        sa.Column("rule_id", sa.String(length=100), nullable=False),
        sa.Column("product_id", sa.String(length=100), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("type", sa.String(length=30), nullable=False),
        sa.Column("severity", sa.String(length=10), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.String(length=2000), nullable=False),
        sa.Column("action_required", sa.String(length=500), nullable=False),
        # Impact and metric snapshots
        sa.Column("impact", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("urgency_score", sa.Integer(), nullable=False),
        # Lifecycle
        sa.Column("acknowledged", sa.Boolean(), nullable=False),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved", sa.Boolean(), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        # Timestamps (from TimestampMixin)
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "severity IN ('low', 'medium', 'high', 'critical')",
            name="ck_alert_valid_severity",
        ),
        sa.CheckConstraint(
            "urgency_score BETWEEN 1 AND 10",
            name="ck_alert_valid_urgency",
        ),
    )
    op.create_index(op.f("ix_alert_alert_id"), "alert", ["alert_id"], unique=True)
    op.create_index(op.f("ix_alert_analysis_id"), "alert", ["analysis_id"], unique=False)
    op.create_index(op.f("ix_alert_rule_id"), "alert", ["rule_id"], unique=False)
    op.create_index(op.f("ix_alert_product_id"), "alert", ["product_id"], unique=False)
    op.create_index(op.f("ix_alert_type"), "alert", ["type"], unique=False)
    op.create_index(op.f("ix_alert_severity"), "alert", ["severity"], unique=False)
    op.create_index(op.f("ix_alert_resolved"), "alert", ["resolved"], unique=False)
    op.create_index(
        "ix_alert_product_severity", "alert", ["product_id", "severity"], unique=False
    )


def downgrade() -> None:
    """Revert migration - drop alert table."""
    op.drop_index("ix_alert_product_severity", table_name="alert")
    op.drop_index(op.f("ix_alert_resolved"), table_name="alert")
    op.drop_index(op.f("ix_alert_severity"), table_name="alert")
    op.drop_index(op.f("ix_alert_type"), table_name="alert")
    op.drop_index(op.f("ix_alert_product_id"), table_name="alert")
    op.drop_index(op.f("ix_alert_rule_id"), table_name="alert")
    op.drop_index(op.f("ix_alert_analysis_id"), table_name="alert")
    op.drop_index(op.f("ix_alert_alert_id"), table_name="alert")
    op.drop_table("alert")
