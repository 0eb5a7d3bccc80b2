"""Alert store ORM model.

Alerts are written once per batch analysis and afterwards only their
acknowledged / resolved state changes.

CRITICAL: Uses PostgreSQL JSONB for impact and data snapshots.
"""

from __future__ import annotations

import datetime
from typing import Any

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.shared.models import TimestampMixin


class AlertRecord(TimestampMixin, Base):
    """Persisted alert.

    Attributes:
        id: Primary key.
        alert_id: External identifier from the evaluator's id generator.
        analysis_id: Batch analysis that raised the alert.
        rule_id: Rule that fired.
        product_id: Product the alert is about.
        category: Product category.
        type: Alert type.
        severity: Alert severity.
        priority: Rule priority (1 = highest).
        title: Short headline.
        message: Full description.
        action_required: Recommended next step.
        impact: Revenue at risk / profit opportunity / time to critical (JSONB).
        data: Metric snapshot at evaluation time (JSONB).
        urgency_score: 1-10 urgency.
        acknowledged: Whether a user has seen the alert.
        acknowledged_at: When it was acknowledged.
        resolved: Whether the alert is closed.
        resolved_at: When it was resolved.
    """

    __tablename__ = "alert"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    alert_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    analysis_id: Mapped[str] = mapped_column(String(32), index=True)
    rule_id: Mapped[str] = mapped_column(String(100), index=True)
    product_id: Mapped[str] = mapped_column(String(100), index=True)
    category: Mapped[str] = mapped_column(String(50))
    type: Mapped[str] = mapped_column(String(30), index=True)
    severity: Mapped[str] = mapped_column(String(10), index=True)
    priority: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(200))
    message: Mapped[str] = mapped_column(String(2000))
    action_required: Mapped[str] = mapped_column(String(500))
    impact: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    urgency_score: Mapped[int] = mapped_column(Integer)

    acknowledged: Mapped[bool] = mapped_column(Boolean, default=False)
    acknowledged_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    resolved: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    resolved_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_alert_product_severity", "product_id", "severity"),
        CheckConstraint(
            "severity IN ('low', 'medium', 'high', 'critical')",
            name="ck_alert_valid_severity",
        ),
        CheckConstraint(
            "urgency_score BETWEEN 1 AND 10",
            name="ck_alert_valid_urgency",
        ),
    )
