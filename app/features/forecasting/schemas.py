"""Pydantic schemas for forecasting inputs, results and API contracts.

Input records are validated once here; numeric oddities (negative values,
NaN) are clamped and logged so the numeric core only sees clean data.
Result models are immutable (frozen=True) and created fresh per call.
"""

from __future__ import annotations

from datetime import date as date_type
from enum import Enum

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

from app.shared.utils import clamp_non_negative

# =============================================================================
# Enumerations
# =============================================================================


class Season(str, Enum):
    """Calendar season of a date (northern hemisphere)."""

    SPRING = "spring"
    SUMMER = "summer"
    FALL = "fall"
    WINTER = "winter"


class Trend(str, Enum):
    """Direction of the smoothed sales series."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class CategoryTrend(str, Enum):
    """Market direction of a whole product category."""

    GROWING = "growing"
    DECLINING = "declining"
    STABLE = "stable"


class PricingAction(str, Enum):
    """Recommended commercial action."""

    INCREASE_PRICE = "increase_price"
    DECREASE_PRICE = "decrease_price"
    MAINTAIN_PRICE = "maintain_price"
    REORDER_STOCK = "reorder_stock"
    PROMOTIONAL_PRICING = "promotional_pricing"


class ActionTiming(str, Enum):
    """How soon a recommendation should be acted on."""

    IMMEDIATE = "immediate"
    WITHIN_WEEK = "within_week"
    WITHIN_MONTH = "within_month"


class RiskLevel(str, Enum):
    """Risk attached to a recommendation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CompetitorPosition(str, Enum):
    """Our price relative to the competitor mean."""

    LEADING = "leading"
    COMPETITIVE = "competitive"
    LAGGING = "lagging"


class CategoryPerformance(str, Enum):
    """Product trend relative to its category trend."""

    OUTPERFORMING = "outperforming"
    UNDERPERFORMING = "underperforming"
    AVERAGE = "average"


# =============================================================================
# Input Records
# =============================================================================


class HistoricalPoint(BaseModel):
    """One observation of a product's sales history.

    Attributes:
        date: Observation date.
        units_sold: Units sold in the period (clamped to >= 0).
        unit_price: Selling price in the period (clamped to >= 0).
        inventory_on_hand: Stock at the end of the period (clamped to >= 0).
        day_of_week: Optional weekday, 0 = Monday.
        month: Optional calendar month, 1-12.
        is_holiday: Optional holiday flag.
        is_weekend: Optional weekend flag.
        season: Optional season label.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    date: date_type = Field(..., description="Observation date")
    units_sold: float = Field(..., description="Units sold in the period")
    unit_price: float = Field(..., description="Selling price in the period")
    inventory_on_hand: float = Field(default=0.0, description="Stock at period end")
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    month: int | None = Field(default=None, ge=1, le=12)
    is_holiday: bool | None = None
    is_weekend: bool | None = None
    season: Season | None = None

    @field_validator("units_sold", "unit_price", "inventory_on_hand")
    @classmethod
    def clamp_quantities(cls, v: float, info: ValidationInfo) -> float:
        """Clamp negative or non-finite quantities to zero."""
        return clamp_non_negative(v, field=f"history.{info.field_name}")


class ProductSnapshot(BaseModel):
    """Current state of one product.

    Attributes:
        product_id: Merchant SKU, unique within a batch.
        category: Product category, normalised to lower case.
        unit_price: Current selling price.
        weekly_sales_rate: Average units sold per week.
        inventory_level: Units currently in stock.
        potency: Optional alcohol by volume, in percent.
        shelf_life_days: Optional shelf life.
        origin_country: Optional country of origin.
        cost_price: Optional unit cost, enables margin checks.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    product_id: str = Field(..., min_length=1, description="Merchant SKU")
    category: str = Field(..., min_length=1, description="Product category")
    unit_price: float = Field(..., description="Current selling price")
    weekly_sales_rate: float = Field(..., description="Average units sold per week")
    inventory_level: float = Field(..., description="Units currently in stock")
    potency: float | None = Field(default=None, description="Alcohol by volume (%)")
    shelf_life_days: int | None = Field(default=None, ge=0)
    origin_country: str | None = None
    cost_price: float | None = Field(default=None, description="Unit cost")
    name: str | None = None
    subcategory: str | None = None
    brand: str | None = None

    @field_validator("category")
    @classmethod
    def normalise_category(cls, v: str) -> str:
        """Categories are matched case-insensitively."""
        return v.strip().lower()

    @field_validator("unit_price", "weekly_sales_rate", "inventory_level")
    @classmethod
    def clamp_quantities(cls, v: float, info: ValidationInfo) -> float:
        """Clamp negative or non-finite quantities to zero."""
        return clamp_non_negative(v, field=f"product.{info.field_name}")

    @field_validator("potency", "cost_price")
    @classmethod
    def clamp_optional(cls, v: float | None, info: ValidationInfo) -> float | None:
        """Clamp optional quantities when supplied."""
        if v is None:
            return None
        return clamp_non_negative(v, field=f"product.{info.field_name}")


class CompetitorPrice(BaseModel):
    """A competitor's observed price for one of our products."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    product_id: str = Field(..., min_length=1, description="Our SKU this price refers to")
    competitor: str = Field(..., min_length=1, description="Competitor name")
    competitor_price: float = Field(..., description="Observed competitor price")
    available: bool = Field(default=True, description="Whether the competitor has stock")
    promotional: bool = Field(default=False, description="Whether the price is a promotion")

    @field_validator("competitor_price")
    @classmethod
    def clamp_price(cls, v: float) -> float:
        """Clamp negative or non-finite prices to zero."""
        return clamp_non_negative(v, field="competitor.competitor_price")


# =============================================================================
# Forecast Result
# =============================================================================


class ConfidenceInterval(BaseModel):
    """Bounds around the point forecast."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    lower: int = Field(..., ge=0)
    upper: int = Field(..., ge=0)
    confidence_level: float = Field(..., ge=0.0, le=1.0)

    @model_validator(mode="after")
    def validate_bounds(self) -> ConfidenceInterval:
        """Ensure upper >= lower."""
        if self.upper < self.lower:
            raise ValueError(f"upper ({self.upper}) must be >= lower ({self.lower})")
        return self


class ExpectedImpact(BaseModel):
    """Monetary effect of following a recommendation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    revenue_change: int
    profit_change: int
    risk_level: RiskLevel
    competitive_risk: float = 0.0


class Recommendation(BaseModel):
    """Recommended action for one product."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    action: PricingAction
    confidence: float = Field(..., ge=0.0, le=1.0)
    timing: ActionTiming
    expected_impact: ExpectedImpact
    target_price: float = Field(..., ge=0.0, description="Suggested selling price")
    rationale: str = Field(..., description="Why this action was chosen")


class OptimalPriceRange(BaseModel):
    """Price band suggested by the elasticity model."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    min: float
    max: float
    recommended: float


class PriceElasticity(BaseModel):
    """Price sensitivity estimate; informational, not used in the point forecast."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_demand: float
    price_sensitivity: float
    category_elasticity: float
    competitor_influence: float
    optimal_price_range: OptimalPriceRange


class MarketContext(BaseModel):
    """Category and competitive context for a forecast."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    seasonal_peak_in_days: int = Field(..., ge=0)
    approaching_peak: bool
    competitor_price_position: CompetitorPosition
    category_performance: CategoryPerformance
    compliance_notes: list[str] = Field(default_factory=list)


class ForecastResult(BaseModel):
    """Demand forecast and recommendation for one product.

    Attributes:
        product_id: Product the forecast refers to.
        horizon_days: Forecast horizon.
        predicted_demand: Units expected over the horizon.
        confidence_interval: Bounds and overall confidence.
        trend: Direction of the smoothed sales series.
        seasonality_factor: Category multiplier for the current season.
        category_trend: Market direction of the category.
        recommendation: Recommended action.
        price_elasticity: Price sensitivity estimate.
        market_context: Seasonal, competitive and compliance context.
        is_fallback: True when no history was available.
        n_observations: Number of history points used.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    product_id: str
    horizon_days: int = Field(..., ge=1)
    predicted_demand: int = Field(..., ge=0)
    confidence_interval: ConfidenceInterval
    trend: Trend
    seasonality_factor: float = Field(..., gt=0.0)
    category_trend: CategoryTrend
    recommendation: Recommendation
    price_elasticity: PriceElasticity
    market_context: MarketContext
    is_fallback: bool = False
    n_observations: int = Field(default=0, ge=0)


# =============================================================================
# API Request/Response Schemas
# =============================================================================


class ForecastRequest(BaseModel):
    """Request body for POST /forecasting/forecast.

    Attributes:
        product: Product to forecast.
        history: Sales history; sorted chronologically on ingestion.
        competitors: Competitor prices for this product.
        horizon_days: Forecast horizon (defaults to the configured horizon).
        as_of: Reference date for seasonality (defaults to today).
    """

    model_config = ConfigDict(extra="forbid")

    product: ProductSnapshot
    history: list[HistoricalPoint] = Field(default_factory=list)
    competitors: list[CompetitorPrice] = Field(default_factory=list)
    horizon_days: int | None = Field(default=None, ge=1, le=365)
    as_of: date_type | None = None

    @field_validator("history")
    @classmethod
    def sort_history(cls, v: list[HistoricalPoint]) -> list[HistoricalPoint]:
        """Order history by date."""
        return sorted(v, key=lambda point: point.date)

    @model_validator(mode="after")
    def validate_competitor_products(self) -> ForecastRequest:
        """Competitor rows must refer to the requested product."""
        for competitor in self.competitors:
            if competitor.product_id != self.product.product_id:
                raise ValueError(
                    f"competitor price for '{competitor.product_id}' does not match "
                    f"product '{self.product.product_id}'"
                )
        return self


class ForecastResponse(BaseModel):
    """Response body for POST /forecasting/forecast."""

    forecast: ForecastResult
    duration_ms: float = Field(..., ge=0)
