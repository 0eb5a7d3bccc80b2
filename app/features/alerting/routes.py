"""Alerts API routes: rule catalog and stored alert lifecycle."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db
from app.core.exceptions import DatabaseError
from app.core.logging import get_logger
from app.features.alerting.catalog import get_effective_rules
from app.features.alerting.persistence import AlertRepository
from app.features.alerting.schemas import (
    AlertType,
    RuleCatalogResponse,
    Severity,
    StoredAlertResponse,
    StoredAlertSummary,
)
from app.shared.schemas import PaginatedResponse, PaginationParams

logger = get_logger(__name__)

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get(
    "/rules",
    response_model=RuleCatalogResponse,
    summary="Get the effective alert rule catalog",
    description="""
Return the rules used by batch analysis: the configured catalog file (or the
built-in defaults) with tenant overrides applied, ordered as configured.
""",
)
async def list_rules() -> RuleCatalogResponse:
    """List effective alert rules.

    Returns:
        Rule catalog with counts.
    """
    rules = get_effective_rules(get_settings())
    return RuleCatalogResponse(
        rules=rules,
        total=len(rules),
        enabled=sum(1 for rule in rules if rule.enabled),
    )


@router.get(
    "",
    response_model=PaginatedResponse[StoredAlertResponse],
    summary="List stored alerts",
    description="""
List alerts persisted by batch analyses, newest first.

**Filters:** `product_id`, `severity`, `type`, `resolved`, `analysis_id`

**Pagination:** `page` (1-indexed), `page_size` (default 50, max 1000)
""",
)
async def list_alerts(
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=1000, description="Alerts per page"),
    product_id: str | None = Query(None, description="Filter by product"),
    severity: Severity | None = Query(None, description="Filter by severity"),
    alert_type: AlertType | None = Query(None, alias="type", description="Filter by type"),
    resolved: bool | None = Query(None, description="Filter by resolved flag"),
    analysis_id: str | None = Query(None, description="Filter by batch analysis"),
) -> PaginatedResponse[StoredAlertResponse]:
    """List stored alerts with filtering and pagination.

    Raises:
        DatabaseError: If the alert store query fails.
    """
    repository = AlertRepository()
    try:
        return await repository.list_alerts(
            db=db,
            pagination=PaginationParams(page=page, page_size=page_size),
            product_id=product_id,
            severity=severity,
            alert_type=alert_type,
            resolved=resolved,
            analysis_id=analysis_id,
        )
    except SQLAlchemyError as e:
        logger.error("alerting.list_failed", error=str(e), error_type=type(e).__name__)
        raise DatabaseError(
            message="Failed to list alerts",
            details={"error": str(e)},
        ) from e


@router.get(
    "/summary",
    response_model=StoredAlertSummary,
    summary="Summarize stored alerts",
)
async def alerts_summary(db: AsyncSession = Depends(get_db)) -> StoredAlertSummary:
    """Counts by state, severity and type.

    Raises:
        DatabaseError: If the alert store query fails.
    """
    try:
        return await AlertRepository().summary(db)
    except SQLAlchemyError as e:
        logger.error("alerting.summary_failed", error=str(e), error_type=type(e).__name__)
        raise DatabaseError(
            message="Failed to summarize alerts",
            details={"error": str(e)},
        ) from e


@router.post(
    "/{alert_id}/acknowledge",
    response_model=StoredAlertResponse,
    status_code=status.HTTP_200_OK,
    summary="Acknowledge an alert",
)
async def acknowledge_alert(
    alert_id: str,
    db: AsyncSession = Depends(get_db),
) -> StoredAlertResponse:
    """Acknowledge an alert.

    Raises:
        NotFoundError: If the alert does not exist.
        DatabaseError: If the alert store update fails.
    """
    try:
        response = await AlertRepository().acknowledge(db, alert_id)
    except SQLAlchemyError as e:
        logger.error(
            "alerting.acknowledge_failed",
            alert_id=alert_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise DatabaseError(
            message="Failed to acknowledge alert",
            details={"error": str(e)},
        ) from e

    logger.info("alerting.acknowledge_request_completed", alert_id=alert_id)
    return response


@router.post(
    "/{alert_id}/resolve",
    response_model=StoredAlertResponse,
    status_code=status.HTTP_200_OK,
    summary="Resolve an alert",
    description="Resolve an alert. Resolving an already resolved alert returns 409.",
)
async def resolve_alert(
    alert_id: str,
    db: AsyncSession = Depends(get_db),
) -> StoredAlertResponse:
    """Resolve an alert.

    Raises:
        NotFoundError: If the alert does not exist.
        ConflictError: If the alert is already resolved.
        DatabaseError: If the alert store update fails.
    """
    try:
        response = await AlertRepository().resolve(db, alert_id)
    except SQLAlchemyError as e:
        logger.error(
            "alerting.resolve_failed",
            alert_id=alert_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise DatabaseError(
            message="Failed to resolve alert",
            details={"error": str(e)},
        ) from e

    logger.info("alerting.resolve_request_completed", alert_id=alert_id)
    return response


@router.get(
    "/{alert_id}",
    response_model=StoredAlertResponse,
    summary="Get a stored alert",
)
async def get_alert(
    alert_id: str,
    db: AsyncSession = Depends(get_db),
) -> StoredAlertResponse:
    """Get one stored alert by its external id.

    Raises:
        NotFoundError: If the alert does not exist.
        DatabaseError: If the alert store query fails.
    """
    try:
        return await AlertRepository().get_alert(db, alert_id)
    except SQLAlchemyError as e:
        logger.error(
            "alerting.get_failed",
            alert_id=alert_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise DatabaseError(
            message="Failed to get alert",
            details={"error": str(e)},
        ) from e
