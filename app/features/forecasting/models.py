"""Numeric building blocks for demand forecasting.

The smoothing forecaster follows a scikit-learn-style interface:
- fit(y) -> self
- predict(horizon) -> np.ndarray
- get_params() -> dict

Everything in this module is a pure function of its inputs; the as-of date
is always passed in explicitly so results are reproducible.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date as date_type
from typing import Any

import numpy as np

from app.features.forecasting.catalog import ForecastCatalog
from app.features.forecasting.schemas import (
    CategoryPerformance,
    CategoryTrend,
    CompetitorPosition,
    CompetitorPrice,
    HistoricalPoint,
    OptimalPriceRange,
    PriceElasticity,
    ProductSnapshot,
    Season,
    Trend,
)

FloatArray = np.ndarray[Any, np.dtype[np.floating[Any]]]

# Days to peak reported for categories without a seasonal pattern
NO_PEAK_DAYS = 365

# Competitor price gaps
POSITION_BAND = 0.10
INFLUENCE_BAND = 0.15


# =============================================================================
# Smoothing and Trend
# =============================================================================


def exponential_smoothing(values: FloatArray, alpha: float = 0.3) -> FloatArray:
    """Single exponential smoothing.

    Formula: S[0] = x[0], S[i] = alpha * x[i] + (1 - alpha) * S[i-1]

    Args:
        values: Raw series.
        alpha: Smoothing factor in (0, 1].

    Returns:
        Smoothed series of the same length (empty for empty input).
    """
    smoothed = np.empty(len(values), dtype=np.float64)
    if len(values) == 0:
        return smoothed
    smoothed[0] = values[0]
    for i in range(1, len(values)):
        smoothed[i] = alpha * values[i] + (1 - alpha) * smoothed[i - 1]
    return smoothed


def ols_slope(values: FloatArray) -> float:
    """Least-squares slope of ``values`` against their index.

    Returns 0.0 for fewer than two points.
    """
    n = len(values)
    if n < 2:
        return 0.0
    x = np.arange(n, dtype=np.float64)
    x_centered = x - x.mean()
    return float(np.dot(x_centered, values - values.mean()) / np.dot(x_centered, x_centered))


def classify_trend(slope: float, stable_threshold: float = 0.1) -> Trend:
    """Map a slope to a trend label; |slope| below the threshold is stable."""
    if abs(slope) < stable_threshold:
        return Trend.STABLE
    return Trend.INCREASING if slope > 0 else Trend.DECREASING


def population_variance(values: FloatArray) -> float:
    """Population variance (divides by n); 0.0 for an empty series."""
    if len(values) == 0:
        return 0.0
    return float(np.var(values))


class ExponentialSmoothingForecaster:
    """Level-plus-slope forecaster over an exponentially smoothed series.

    The level is the last smoothed value; the slope is the OLS slope of the
    smoothed series. Forecasts extrapolate the level linearly.

    Attributes:
        alpha: Smoothing factor.
        stable_threshold: Absolute slope below which the trend is stable.
    """

    def __init__(self, alpha: float = 0.3, stable_threshold: float = 0.1) -> None:
        """Initialize the forecaster.

        Args:
            alpha: Smoothing factor in (0, 1].
            stable_threshold: Absolute slope below which the trend is stable.

        Raises:
            ValueError: If alpha is outside (0, 1].
        """
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        self.alpha = alpha
        self.stable_threshold = stable_threshold
        self._level: float | None = None
        self._slope: float = 0.0

    @property
    def is_fitted(self) -> bool:
        """Check if model has been fitted."""
        return self._level is not None

    @property
    def slope(self) -> float:
        """Fitted slope per observation."""
        return self._slope

    @property
    def trend(self) -> Trend:
        """Trend label for the fitted slope."""
        return classify_trend(self._slope, self.stable_threshold)

    def fit(self, y: FloatArray) -> ExponentialSmoothingForecaster:
        """Fit level and slope.

        Args:
            y: Observed values (1D array).

        Returns:
            self (for method chaining).

        Raises:
            ValueError: If y is empty.
        """
        if len(y) == 0:
            raise ValueError("Cannot fit on empty array")
        smoothed = exponential_smoothing(np.asarray(y, dtype=np.float64), self.alpha)
        self._level = float(smoothed[-1])
        self._slope = ols_slope(smoothed)
        return self

    def predict(self, horizon: int) -> FloatArray:
        """Extrapolate the level for ``horizon`` steps.

        Args:
            horizon: Number of steps to forecast.

        Returns:
            Array of shape [horizon]; element k is level + slope * (k + 1).

        Raises:
            RuntimeError: If model has not been fitted.
        """
        if self._level is None:
            raise RuntimeError("Model must be fitted before predict")
        steps = np.arange(1, horizon + 1, dtype=np.float64)
        result: FloatArray = self._level + self._slope * steps
        return result

    def get_params(self) -> dict[str, Any]:
        """Get model parameters."""
        return {"alpha": self.alpha, "stable_threshold": self.stable_threshold}


# =============================================================================
# Seasonality and Category Context
# =============================================================================


@dataclass(frozen=True)
class SeasonalityEstimate:
    """Seasonal position of a category on a given date.

    Attributes:
        season: Season of the as-of date.
        factor: Category multiplier for that season.
        peak_in_days: Approximate days until the next peak month.
        approaching_peak: Whether the peak is within the configured window.
    """

    season: Season
    factor: float
    peak_in_days: int
    approaching_peak: bool


def season_for_month(month: int) -> Season:
    """Season of a calendar month (1-12)."""
    if 3 <= month <= 5:
        return Season.SPRING
    if 6 <= month <= 8:
        return Season.SUMMER
    if 9 <= month <= 11:
        return Season.FALL
    return Season.WINTER


def days_to_month(current_month: int, target_month: int) -> int:
    """Approximate days until ``target_month`` starts, at 30 days per month.

    The current month counts as a full cycle away, so the result is always
    between 30 and 360.
    """
    months_ahead = target_month - current_month
    if months_ahead <= 0:
        months_ahead += 12
    return months_ahead * 30


def detect_seasonality(
    category: str,
    as_of: date_type,
    catalog: ForecastCatalog,
) -> SeasonalityEstimate:
    """Seasonal factor and peak proximity for a category.

    Args:
        category: Normalised category name.
        as_of: Reference date.
        catalog: Category reference data.

    Returns:
        SeasonalityEstimate; unknown categories get factor 1.0 and no peak.
    """
    season = season_for_month(as_of.month)
    pattern = catalog.pattern_for(category)
    if pattern is None:
        return SeasonalityEstimate(
            season=season, factor=1.0, peak_in_days=NO_PEAK_DAYS, approaching_peak=False
        )

    peak_in_days = days_to_month(as_of.month, pattern.peak_months[0])
    return SeasonalityEstimate(
        season=season,
        factor=pattern.factor_for(season),
        peak_in_days=peak_in_days,
        approaching_peak=peak_in_days <= catalog.peak_window_days,
    )


def classify_category_trend(category: str, catalog: ForecastCatalog) -> CategoryTrend:
    """Category market direction from its annual growth rate."""
    growth = catalog.growth_rate_for(category)
    if growth > catalog.growth_threshold:
        return CategoryTrend.GROWING
    if growth < -catalog.growth_threshold:
        return CategoryTrend.DECLINING
    return CategoryTrend.STABLE


def category_performance(trend: Trend, category_trend: CategoryTrend) -> CategoryPerformance:
    """Compare a product's own trend with its category's direction."""
    if trend == Trend.INCREASING and category_trend in (
        CategoryTrend.GROWING,
        CategoryTrend.DECLINING,
    ):
        return CategoryPerformance.OUTPERFORMING
    if trend == Trend.DECREASING and category_trend == CategoryTrend.GROWING:
        return CategoryPerformance.UNDERPERFORMING
    return CategoryPerformance.AVERAGE


def is_shelf_life_sensitive(product: ProductSnapshot, catalog: ForecastCatalog) -> bool:
    """Perishable category, or a declared shelf life below the threshold."""
    if product.category in catalog.perishable_categories:
        return True
    return (
        product.shelf_life_days is not None
        and product.shelf_life_days < catalog.shelf_life_sensitive_days
    )


def compliance_notes(product: ProductSnapshot, catalog: ForecastCatalog) -> list[str]:
    """Regulatory and data-quality notes for a product."""
    notes: list[str] = []
    if product.potency is not None and product.potency > catalog.high_potency_threshold:
        notes.append(f"High-strength product ({product.potency:g}% ABV): additional duty applies")
    origin = (product.origin_country or "").strip()
    if origin and origin.lower() not in catalog.domestic_origins:
        notes.append(f"Imported from {origin}: import duties and tariffs apply")
    if product.cost_price is None:
        notes.append("Cost price missing: margin checks unavailable")
    return notes


# =============================================================================
# Stock and Competitor Metrics
# =============================================================================


def weeks_of_stock(inventory: float, weekly_sales: float, epsilon: float = 0.1) -> float:
    """Inventory runway in weeks; weekly sales are floored at ``epsilon``."""
    return inventory / max(weekly_sales, epsilon)


def available_competitors(competitors: Sequence[CompetitorPrice]) -> list[CompetitorPrice]:
    """Competitor rows that are in stock and carry a usable price."""
    return [c for c in competitors if c.available and c.competitor_price > 0]


def competitor_mean_price(competitors: Sequence[CompetitorPrice]) -> float | None:
    """Mean price over available competitors, or None when there are none."""
    usable = available_competitors(competitors)
    if not usable:
        return None
    return float(np.mean([c.competitor_price for c in usable]))


def competitor_advantage(our_price: float, competitors: Sequence[CompetitorPrice]) -> float:
    """Relative price gap ``(ours - mean) / mean``; 0.0 without competitors."""
    mean_price = competitor_mean_price(competitors)
    if mean_price is None:
        return 0.0
    return (our_price - mean_price) / mean_price


def format_delta(advantage: float) -> str:
    """Human label for a competitor gap, e.g. ``25% above``."""
    direction = "above" if advantage >= 0 else "below"
    return f"{abs(advantage) * 100:.0f}% {direction}"


def competitor_position(our_price: float, competitors: Sequence[CompetitorPrice]) -> CompetitorPosition:
    """Leading when >10% cheaper than the mean, lagging when >10% dearer."""
    if competitor_mean_price(competitors) is None:
        return CompetitorPosition.COMPETITIVE
    advantage = competitor_advantage(our_price, competitors)
    if advantage < -POSITION_BAND:
        return CompetitorPosition.LEADING
    if advantage > POSITION_BAND:
        return CompetitorPosition.LAGGING
    return CompetitorPosition.COMPETITIVE


def competitor_influence(our_price: float, competitors: Sequence[CompetitorPrice]) -> float:
    """Pricing power granted by the competitive position."""
    if competitor_mean_price(competitors) is None:
        return 0.1
    advantage = competitor_advantage(our_price, competitors)
    if advantage > INFLUENCE_BAND:
        return -0.1
    if advantage < -INFLUENCE_BAND:
        return 0.2
    return 0.05


def estimate_price_elasticity(
    history: Sequence[HistoricalPoint],
    category: str,
    competitors: Sequence[CompetitorPrice],
    catalog: ForecastCatalog,
) -> PriceElasticity:
    """Regression-style price sensitivity and an optimal price band.

    Sensitivity is ``sum((p - p_mean)(d - d_mean)) / sum((p - p_mean)^2)``.
    With fewer than three points, or no price variance, the category default
    is used instead.

    Args:
        history: Chronological sales history.
        category: Normalised category name.
        competitors: Competitor prices for the product.
        catalog: Category reference data.

    Returns:
        PriceElasticity estimate.
    """
    category_elasticity = catalog.elasticity_for(category)

    if len(history) < 3:
        first_price = history[0].unit_price if history else 0.0
        return PriceElasticity(
            base_demand=history[0].units_sold if history else 0.0,
            price_sensitivity=category_elasticity,
            category_elasticity=category_elasticity,
            competitor_influence=0.1,
            optimal_price_range=OptimalPriceRange(
                min=round(first_price * 0.9, 2),
                max=round(first_price * 1.15, 2),
                recommended=round(first_price, 2),
            ),
        )

    prices = np.array([p.unit_price for p in history], dtype=np.float64)
    demands = np.array([p.units_sold for p in history], dtype=np.float64)
    price_dev = prices - prices.mean()
    denominator = float(np.dot(price_dev, price_dev))
    if denominator > 0:
        sensitivity = float(np.dot(price_dev, demands - demands.mean()) / denominator)
    else:
        sensitivity = category_elasticity

    avg_price = float(prices.mean())
    influence = competitor_influence(avg_price, competitors)
    return PriceElasticity(
        base_demand=float(demands.mean()),
        price_sensitivity=sensitivity,
        category_elasticity=category_elasticity,
        competitor_influence=influence,
        optimal_price_range=OptimalPriceRange(
            min=round(avg_price * 0.95, 2),
            max=round(avg_price * min(1.2, 1 + influence), 2),
            recommended=round(avg_price * (1 + max(0.0, influence / 2)), 2),
        ),
    )
