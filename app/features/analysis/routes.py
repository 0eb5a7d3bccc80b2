"""Batch analysis API routes."""

import asyncio
import time

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db
from app.core.exceptions import DatabaseError
from app.core.logging import get_logger
from app.features.alerting.persistence import AlertRepository
from app.features.analysis.schemas import BatchAnalysisRequest, BatchAnalysisResponse
from app.features.analysis.service import BatchAnalysisService

logger = get_logger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])


@router.post(
    "/batch",
    response_model=BatchAnalysisResponse,
    status_code=status.HTTP_200_OK,
    summary="Run a batch analysis",
    description="""
Forecast demand and evaluate alert rules for a batch of products.

**Per product:** one forecast (with recommendation and market context), then
every enabled alert rule against that forecast, capped at
`max_alerts_per_product`.

**Alerts** are ranked across the whole batch by severity, urgency score and
monetary impact.

**Shape errors** (duplicate product ids, histories or competitor prices for
products not in the batch) return 400 with the offending record. Numeric
oddities (negative prices or stock, NaN) are clamped and logged instead.

Set `options.persist_alerts` to store the ranked alerts under the returned
`analysis_id`.
""",
)
async def run_batch_analysis(
    request: BatchAnalysisRequest,
    db: AsyncSession = Depends(get_db),
) -> BatchAnalysisResponse:
    """Run a batch analysis.

    Args:
        request: Products, histories, competitor prices and options.
        db: Database session (used only when persisting alerts).

    Returns:
        Forecasts, ranked alerts and summaries.

    Raises:
        HTTPException: If the horizon exceeds the configured maximum.
        BatchInputError: If the batch records do not line up.
        DatabaseError: If persisting alerts fails.
    """
    settings = get_settings()
    options = request.options
    horizon_days = options.horizon_days or settings.forecast_default_horizon_days

    if horizon_days > settings.forecast_max_horizon_days:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"horizon_days {horizon_days} exceeds maximum "
                f"{settings.forecast_max_horizon_days}"
            ),
        )

    logger.info(
        "analysis.batch_request_received",
        product_count=len(request.products),
        history_count=len(request.histories),
        competitor_count=sum(len(rows) for rows in request.competitors.values()),
        persist_alerts=options.persist_alerts,
    )

    start_time = time.perf_counter()
    service = BatchAnalysisService()

    try:
        result = await asyncio.to_thread(
            service.run_batch_analysis,
            request.products,
            request.histories,
            request.competitors,
            options,
        )
    except ValueError as e:
        logger.warning(
            "analysis.batch_request_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e

    persisted: int | None = None
    if options.persist_alerts:
        try:
            persisted = await AlertRepository().save_alerts(db, result.analysis_id, result.alerts)
        except SQLAlchemyError as e:
            logger.error(
                "analysis.persist_failed",
                analysis_id=result.analysis_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DatabaseError(
                message="Failed to persist alerts",
                details={"analysis_id": result.analysis_id, "error": str(e)},
            ) from e

    duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
    logger.info(
        "analysis.batch_request_completed",
        analysis_id=result.analysis_id,
        product_count=len(request.products),
        alert_count=len(result.alerts),
        persisted_alerts=persisted,
        duration_ms=duration_ms,
    )

    return BatchAnalysisResponse(
        **result.model_dump(),
        persisted_alerts=persisted,
        duration_ms=duration_ms,
    )
