"""Forecasting API routes."""

import time

from fastapi import APIRouter, HTTPException, status

from app.core.config import get_settings
from app.core.logging import get_logger
from app.features.forecasting.catalog import catalog_from_settings
from app.features.forecasting.schemas import ForecastRequest, ForecastResponse
from app.features.forecasting.service import DemandForecaster

logger = get_logger(__name__)

router = APIRouter(prefix="/forecasting", tags=["forecasting"])


@router.post(
    "/forecast",
    response_model=ForecastResponse,
    status_code=status.HTTP_200_OK,
    summary="Forecast demand for one product",
    description="""
Forecast demand for a single product from its sales history.

**Algorithm:**
- Exponential smoothing of units sold, OLS trend on the smoothed series
- Category seasonality with a boost when the seasonal peak is near
- 95% interval from the population variance of raw sales

**Empty history** never fails: a low-confidence fallback built from the
weekly sales rate is returned with `is_fallback=true`.

**Response:** forecast, price elasticity, recommendation with target price,
and market context (competitor position, compliance notes).
""",
)
async def forecast_product(request: ForecastRequest) -> ForecastResponse:
    """Forecast demand for a single product.

    Args:
        request: Product, history and competitor prices.

    Returns:
        Forecast with timing.

    Raises:
        HTTPException: If the horizon exceeds the configured maximum.
    """
    settings = get_settings()
    horizon_days = request.horizon_days or settings.forecast_default_horizon_days

    if horizon_days > settings.forecast_max_horizon_days:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"horizon_days {horizon_days} exceeds maximum "
                f"{settings.forecast_max_horizon_days}"
            ),
        )

    logger.info(
        "forecasting.forecast_request_received",
        product_id=request.product.product_id,
        n_history=len(request.history),
        n_competitors=len(request.competitors),
        horizon_days=horizon_days,
    )

    start_time = time.perf_counter()
    forecaster = DemandForecaster(catalog=catalog_from_settings(settings))

    try:
        result = forecaster.forecast(
            product=request.product,
            history=request.history,
            competitors=request.competitors,
            horizon_days=horizon_days,
            as_of=request.as_of,
        )
    except ValueError as e:
        logger.warning(
            "forecasting.forecast_request_failed",
            product_id=request.product.product_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e

    duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
    logger.info(
        "forecasting.forecast_request_completed",
        product_id=request.product.product_id,
        predicted_demand=result.predicted_demand,
        action=result.recommendation.action.value,
        is_fallback=result.is_fallback,
        duration_ms=duration_ms,
    )

    return ForecastResponse(forecast=result, duration_ms=duration_ms)
