"""Alert store: persist evaluated alerts and manage their lifecycle."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.features.alerting.models import AlertRecord
from app.features.alerting.schemas import (
    Alert,
    AlertType,
    Severity,
    StoredAlertResponse,
    StoredAlertSummary,
)
from app.shared.schemas import PaginatedResponse, PaginationParams
from app.shared.utils import paginate_response

logger = structlog.get_logger()


class AlertRepository:
    """Async repository over the ``alert`` table.

    The caller owns the session and its transaction; the repository only
    flushes so generated values are visible.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        """Initialize the repository.

        Args:
            clock: Timestamp source for acknowledge / resolve (UTC now by default).
        """
        self._clock = clock or (lambda: datetime.now(UTC))

    async def save_alerts(
        self,
        db: AsyncSession,
        analysis_id: str,
        alerts: Sequence[Alert],
    ) -> int:
        """Persist a batch's alerts.

        Args:
            db: Database session.
            analysis_id: Batch analysis identifier.
            alerts: Ranked alerts from the evaluator.

        Returns:
            Number of alerts written.
        """
        records = [
            AlertRecord(
                alert_id=alert.id,
                analysis_id=analysis_id,
                rule_id=alert.rule_id,
                product_id=alert.product_id,
                category=alert.category,
                type=alert.type.value,
                severity=alert.severity.value,
                priority=alert.priority,
                title=alert.title,
                message=alert.message,
                action_required=alert.action_required,
                impact=alert.impact.model_dump(mode="json"),
                data=alert.data.model_dump(mode="json"),
                urgency_score=alert.urgency_score,
                acknowledged=alert.acknowledged,
                resolved=alert.resolved,
            )
            for alert in alerts
        ]
        db.add_all(records)
        await db.flush()

        logger.info(
            "alerting.alerts_saved",
            analysis_id=analysis_id,
            alert_count=len(records),
        )
        return len(records)

    async def _get_record(self, db: AsyncSession, alert_id: str) -> AlertRecord:
        stmt = select(AlertRecord).where(AlertRecord.alert_id == alert_id)
        result = await db.execute(stmt)
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError(
                message=f"Alert not found: {alert_id}",
                details={"alert_id": alert_id},
            )
        return record

    async def get_alert(self, db: AsyncSession, alert_id: str) -> StoredAlertResponse:
        """Get one stored alert.

        Raises:
            NotFoundError: If the alert does not exist.
        """
        record = await self._get_record(db, alert_id)
        return StoredAlertResponse.model_validate(record)

    async def list_alerts(
        self,
        db: AsyncSession,
        pagination: PaginationParams,
        product_id: str | None = None,
        severity: Severity | None = None,
        alert_type: AlertType | None = None,
        resolved: bool | None = None,
        analysis_id: str | None = None,
    ) -> PaginatedResponse[StoredAlertResponse]:
        """List stored alerts with filtering and pagination.

        Args:
            db: Database session.
            pagination: Page and page size.
            product_id: Filter by product.
            severity: Filter by severity.
            alert_type: Filter by alert type.
            resolved: Filter by resolved flag.
            analysis_id: Filter by batch analysis.

        Returns:
            Page of alerts, most urgent first.
        """
        stmt = select(AlertRecord)

        if product_id is not None:
            stmt = stmt.where(AlertRecord.product_id == product_id)
        if severity is not None:
            stmt = stmt.where(AlertRecord.severity == severity.value)
        if alert_type is not None:
            stmt = stmt.where(AlertRecord.type == alert_type.value)
        if resolved is not None:
            stmt = stmt.where(AlertRecord.resolved == resolved)
        if analysis_id is not None:
            stmt = stmt.where(AlertRecord.analysis_id == analysis_id)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total_result = await db.execute(count_stmt)
        total = total_result.scalar_one()

        stmt = (
            stmt.order_by(
                AlertRecord.created_at.desc(),
                AlertRecord.urgency_score.desc(),
                AlertRecord.id,
            )
            .offset(pagination.offset)
            .limit(pagination.limit)
        )
        result = await db.execute(stmt)
        records = result.scalars().all()

        return paginate_response(
            [StoredAlertResponse.model_validate(r) for r in records],
            total,
            pagination,
        )

    async def acknowledge(self, db: AsyncSession, alert_id: str) -> StoredAlertResponse:
        """Mark an alert as acknowledged; repeating is a no-op.

        Raises:
            NotFoundError: If the alert does not exist.
        """
        record = await self._get_record(db, alert_id)
        if not record.acknowledged:
            record.acknowledged = True
            record.acknowledged_at = self._clock()
            await db.flush()
            logger.info("alerting.alert_acknowledged", alert_id=alert_id)
        return StoredAlertResponse.model_validate(record)

    async def resolve(self, db: AsyncSession, alert_id: str) -> StoredAlertResponse:
        """Resolve an alert, acknowledging it if needed.

        Raises:
            NotFoundError: If the alert does not exist.
            ConflictError: If the alert is already resolved.
        """
        record = await self._get_record(db, alert_id)
        if record.resolved:
            raise ConflictError(
                message=f"Alert already resolved: {alert_id}",
                details={"alert_id": alert_id},
            )
        now = self._clock()
        if not record.acknowledged:
            record.acknowledged = True
            record.acknowledged_at = now
        record.resolved = True
        record.resolved_at = now
        await db.flush()
        logger.info("alerting.alert_resolved", alert_id=alert_id)
        return StoredAlertResponse.model_validate(record)

    async def summary(self, db: AsyncSession) -> StoredAlertSummary:
        """Counts by state, severity and type across stored alerts."""
        state_stmt = select(
            func.count(),
            func.count().filter(AlertRecord.acknowledged.is_(True)),
            func.count().filter(AlertRecord.resolved.is_(True)),
        ).select_from(AlertRecord)
        total, acknowledged, resolved = (await db.execute(state_stmt)).one()

        severity_stmt = select(AlertRecord.severity, func.count()).group_by(AlertRecord.severity)
        by_severity = {row[0]: row[1] for row in (await db.execute(severity_stmt)).all()}

        type_stmt = select(AlertRecord.type, func.count()).group_by(AlertRecord.type)
        by_type = {row[0]: row[1] for row in (await db.execute(type_stmt)).all()}

        open_risk_stmt = select(
            func.coalesce(func.sum(AlertRecord.impact["revenue_at_risk"].as_float()), 0.0)
        ).where(AlertRecord.resolved.is_(False))
        open_revenue_at_risk = (await db.execute(open_risk_stmt)).scalar_one()

        return StoredAlertSummary(
            total_alerts=total,
            open_alerts=total - resolved,
            acknowledged_alerts=acknowledged,
            resolved_alerts=resolved,
            by_severity={s.value: by_severity.get(s.value, 0) for s in Severity},
            by_type=by_type,
            open_revenue_at_risk=round(open_revenue_at_risk),
        )
