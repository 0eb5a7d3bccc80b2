"""Pydantic schemas for batch analysis.

The batch request is the single validated ingestion boundary: product,
history and competitor records are parsed (and numerically clamped) here once,
and the service works only with the typed entities.
"""

from __future__ import annotations

from datetime import date as date_type

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.features.alerting.schemas import Alert, AlertSummary, Severity
from app.features.forecasting.schemas import (
    CompetitorPrice,
    ForecastResult,
    HistoricalPoint,
    PricingAction,
    ProductSnapshot,
    RiskLevel,
)

# =============================================================================
# Request
# =============================================================================


class AnalysisOptions(BaseModel):
    """Per-call analysis options.

    Attributes:
        max_alerts_per_product: Alert cap per product (defaults to settings).
        min_severity: Drop alerts below this severity.
        horizon_days: Forecast horizon (defaults to settings).
        synthesize_missing_history: Generate a seeded weekly history for
            products sent without one, instead of the empty-history fallback.
        persist_alerts: Save the ranked alerts to the alert store.
        as_of: Reference date for seasonality (defaults to today).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_alerts_per_product: int | None = Field(default=None, ge=1, le=20)
    min_severity: Severity | None = None
    horizon_days: int | None = Field(default=None, ge=1, le=365)
    synthesize_missing_history: bool = False
    persist_alerts: bool = False
    as_of: date_type | None = None


class BatchAnalysisRequest(BaseModel):
    """Request body for POST /analysis/batch.

    Histories and competitor prices are keyed by product id; every key must
    name a product in ``products``.
    """

    model_config = ConfigDict(extra="forbid")

    products: list[ProductSnapshot] = Field(..., min_length=1)
    histories: dict[str, list[HistoricalPoint]] = Field(default_factory=dict)
    competitors: dict[str, list[CompetitorPrice]] = Field(default_factory=dict)
    options: AnalysisOptions = Field(default_factory=AnalysisOptions)

    @field_validator("histories")
    @classmethod
    def sort_histories(
        cls, v: dict[str, list[HistoricalPoint]]
    ) -> dict[str, list[HistoricalPoint]]:
        """Order each product's history by date."""
        return {
            product_id: sorted(points, key=lambda point: point.date)
            for product_id, points in v.items()
        }


# =============================================================================
# Summary
# =============================================================================


class CategoryBreakdown(BaseModel):
    """Per-category batch figures."""

    count: int = Field(..., ge=0)
    revenue_potential: int
    avg_confidence: float = Field(..., ge=0.0, le=1.0)


class SeasonalOpportunity(BaseModel):
    """A product whose category peak is less than 90 days away."""

    product_id: str
    category: str
    days_to_peak: int
    revenue_potential: int


class CompetitorThreat(BaseModel):
    """A product priced well above its competitors."""

    product_id: str
    category: str
    threat_level: RiskLevel
    action_needed: PricingAction


class BatchSummary(BaseModel):
    """Aggregate figures for a batch.

    Attributes:
        total_skus: Products analysed.
        total_revenue_potential: Sum of recommendation revenue changes.
        high_confidence_count: Forecasts with confidence above 0.8.
        critical_stock_count: Products with under two weeks of stock.
        avg_confidence: Mean forecast confidence.
        category_breakdown: Figures per category.
        seasonal_opportunities: Nearest seasonal peaks (top 5).
        competitor_threats: Products lagging on price (top 5).
    """

    total_skus: int = Field(..., ge=0)
    total_revenue_potential: int
    high_confidence_count: int = Field(..., ge=0)
    critical_stock_count: int = Field(..., ge=0)
    avg_confidence: float = Field(..., ge=0.0, le=1.0)
    category_breakdown: dict[str, CategoryBreakdown]
    seasonal_opportunities: list[SeasonalOpportunity]
    competitor_threats: list[CompetitorThreat]


# =============================================================================
# Response
# =============================================================================


class BatchAnalysisResult(BaseModel):
    """Output of one batch analysis.

    Attributes:
        analysis_id: Identifier for this run (also tags persisted alerts).
        forecasts: Forecast per product id, in request order.
        product_insights: Short insight strings per product id.
        alerts: Globally ranked alerts.
        summary: Batch figures.
        alert_summary: Alert counts and totals.
        insights: Alert highlights for the whole batch.
        synthesized_history: Product ids that were given a synthetic history.
    """

    analysis_id: str
    forecasts: dict[str, ForecastResult]
    product_insights: dict[str, list[str]]
    alerts: list[Alert]
    summary: BatchSummary
    alert_summary: AlertSummary
    insights: list[str]
    synthesized_history: list[str] = Field(default_factory=list)


class BatchAnalysisResponse(BatchAnalysisResult):
    """Response body for POST /analysis/batch."""

    persisted_alerts: int | None = Field(
        default=None, description="Alerts written to the store, when requested"
    )
    duration_ms: float = Field(..., ge=0)
