"""Demand forecasting for single products.

Exports:
    Catalog:
        - ForecastCatalog, SeasonalPattern: Category reference data
        - DEFAULT_FORECAST_CATALOG, catalog_from_settings

    Models:
        - ExponentialSmoothingForecaster: Level-plus-slope forecaster
        - weeks_of_stock, competitor_advantage, format_delta

    Schemas:
        - HistoricalPoint, ProductSnapshot, CompetitorPrice: Inputs
        - ForecastResult, Recommendation: Outputs

    Service:
        - DemandForecaster: Forecast and recommend per product
"""

from app.features.forecasting.catalog import (
    DEFAULT_FORECAST_CATALOG,
    ForecastCatalog,
    SeasonalPattern,
    catalog_from_settings,
)
from app.features.forecasting.models import (
    ExponentialSmoothingForecaster,
    competitor_advantage,
    format_delta,
    weeks_of_stock,
)
from app.features.forecasting.schemas import (
    CompetitorPrice,
    ForecastRequest,
    ForecastResponse,
    ForecastResult,
    HistoricalPoint,
    PricingAction,
    ProductSnapshot,
    Recommendation,
)
from app.features.forecasting.service import DemandForecaster

__all__ = [
    "DEFAULT_FORECAST_CATALOG",
    "CompetitorPrice",
    "DemandForecaster",
    "ExponentialSmoothingForecaster",
    "ForecastCatalog",
    "ForecastRequest",
    "ForecastResponse",
    "ForecastResult",
    "HistoricalPoint",
    "PricingAction",
    "ProductSnapshot",
    "Recommendation",
    "SeasonalPattern",
    "catalog_from_settings",
    "competitor_advantage",
    "format_delta",
    "weeks_of_stock",
]
