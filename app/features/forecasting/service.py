"""Demand forecasting service.

Orchestrates, per product:
- Exponential smoothing and trend detection
- Category seasonality and peak proximity
- Confidence interval from the raw sales variance
- A first-match-wins pricing / stock recommendation

The forecaster is pure: no I/O, no shared mutable state. The as-of date comes
from an injectable clock so results are reproducible in tests.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from datetime import date as date_type

import numpy as np
import structlog

from app.features.forecasting.catalog import DEFAULT_FORECAST_CATALOG, ForecastCatalog
from app.features.forecasting.models import (
    ExponentialSmoothingForecaster,
    SeasonalityEstimate,
    available_competitors,
    category_performance,
    classify_category_trend,
    competitor_advantage,
    competitor_position,
    compliance_notes,
    detect_seasonality,
    estimate_price_elasticity,
    format_delta,
    is_shelf_life_sensitive,
    population_variance,
    weeks_of_stock,
)
from app.features.forecasting.schemas import (
    ActionTiming,
    CategoryTrend,
    CompetitorPrice,
    ConfidenceInterval,
    ExpectedImpact,
    ForecastResult,
    HistoricalPoint,
    MarketContext,
    PricingAction,
    ProductSnapshot,
    Recommendation,
    RiskLevel,
    Trend,
)
from app.shared.utils import round_half_up

logger = structlog.get_logger()

# Confidence for forecasts built without any history
FALLBACK_CONFIDENCE = 0.3

# z-score for a 95% interval
Z_95 = 1.96

# Target price multipliers per action
PRICE_INCREASE_FACTOR = 1.05
PRICE_DECREASE_FACTOR = 0.95
PROMOTION_FACTOR = 0.8


class DemandForecaster:
    """Forecast demand and recommend an action for one product at a time.

    Attributes:
        catalog: Category reference data and tunables.
    """

    def __init__(
        self,
        catalog: ForecastCatalog = DEFAULT_FORECAST_CATALOG,
        clock: Callable[[], date_type] = date_type.today,
    ) -> None:
        """Initialize the forecaster.

        Args:
            catalog: Category reference data.
            clock: Returns the as-of date when none is passed to ``forecast``.
        """
        self.catalog = catalog
        self._clock = clock

    def forecast(
        self,
        product: ProductSnapshot,
        history: Sequence[HistoricalPoint],
        competitors: Sequence[CompetitorPrice] = (),
        horizon_days: int = 30,
        as_of: date_type | None = None,
    ) -> ForecastResult:
        """Forecast demand over ``horizon_days``.

        Empty history never raises; it produces a low-confidence fallback.

        Args:
            product: Product snapshot.
            history: Chronological sales history (may be empty).
            competitors: Competitor prices for this product.
            horizon_days: Forecast horizon in days.
            as_of: Reference date for seasonality (defaults to the clock).

        Returns:
            ForecastResult for the product.

        Raises:
            ValueError: If horizon_days is not positive.
        """
        if horizon_days <= 0:
            raise ValueError(f"horizon_days must be positive, got {horizon_days}")

        reference_date = as_of or self._clock()
        if not history:
            return self.fallback_forecast(product, competitors, horizon_days, reference_date)

        catalog = self.catalog
        sales = np.array([point.units_sold for point in history], dtype=np.float64)

        model = ExponentialSmoothingForecaster(
            alpha=catalog.smoothing_alpha,
            stable_threshold=catalog.stable_slope_threshold,
        ).fit(sales)
        trend = model.trend

        seasonality = detect_seasonality(product.category, reference_date, catalog)
        category_trend = classify_category_trend(product.category, catalog)
        elasticity = estimate_price_elasticity(history, product.category, competitors, catalog)

        seasonal_adjustment = seasonality.factor
        if seasonality.approaching_peak:
            seasonal_adjustment *= catalog.peak_boost
        extrapolated = float(model.predict(horizon_days)[-1])
        predicted_demand = round_half_up(max(0.0, extrapolated * seasonal_adjustment))

        n = len(sales)
        margin = Z_95 * math.sqrt(population_variance(sales) / n)
        if not math.isfinite(margin):
            logger.warning(
                "forecasting.interval_degenerate",
                product_id=product.product_id,
                reason="non_finite_variance",
            )
            margin = 0.0
        data_quality = min(1.0, n / 12)
        seasonal_confidence = 0.9 if seasonality.approaching_peak else 0.7
        competitor_confidence = 0.8 if available_competitors(competitors) else 0.6
        confidence_level = (data_quality + seasonal_confidence + competitor_confidence) / 3

        interval = ConfidenceInterval(
            lower=max(0, round_half_up(predicted_demand - margin)),
            upper=round_half_up(predicted_demand + margin),
            confidence_level=round(confidence_level, 4),
        )

        recommendation = self._recommend(
            product=product,
            predicted_demand=predicted_demand,
            trend=trend,
            seasonality=seasonality,
            competitors=competitors,
            confidence=confidence_level,
        )

        result = ForecastResult(
            product_id=product.product_id,
            horizon_days=horizon_days,
            predicted_demand=predicted_demand,
            confidence_interval=interval,
            trend=trend,
            seasonality_factor=seasonality.factor,
            category_trend=category_trend,
            recommendation=recommendation,
            price_elasticity=elasticity,
            market_context=MarketContext(
                seasonal_peak_in_days=seasonality.peak_in_days,
                approaching_peak=seasonality.approaching_peak,
                competitor_price_position=competitor_position(product.unit_price, competitors),
                category_performance=category_performance(trend, category_trend),
                compliance_notes=compliance_notes(product, catalog),
            ),
            is_fallback=False,
            n_observations=n,
        )

        logger.debug(
            "forecasting.forecast_completed",
            product_id=product.product_id,
            predicted_demand=predicted_demand,
            trend=trend.value,
            action=recommendation.action.value,
            n_observations=n,
        )
        return result

    def fallback_forecast(
        self,
        product: ProductSnapshot,
        competitors: Sequence[CompetitorPrice],
        horizon_days: int,
        as_of: date_type,
        reason: str = "empty_history",
    ) -> ForecastResult:
        """Low-confidence forecast from the weekly sales rate alone."""
        logger.info(
            "forecasting.fallback_used",
            product_id=product.product_id,
            reason=reason,
        )
        catalog = self.catalog
        weekly = product.weekly_sales_rate
        seasonality = detect_seasonality(product.category, as_of, catalog)

        return ForecastResult(
            product_id=product.product_id,
            horizon_days=horizon_days,
            predicted_demand=round_half_up(weekly * 4),
            confidence_interval=ConfidenceInterval(
                lower=0,
                upper=round_half_up(weekly * 6),
                confidence_level=FALLBACK_CONFIDENCE,
            ),
            trend=Trend.STABLE,
            seasonality_factor=1.0,
            category_trend=CategoryTrend.STABLE,
            recommendation=Recommendation(
                action=PricingAction.MAINTAIN_PRICE,
                confidence=FALLBACK_CONFIDENCE,
                timing=ActionTiming.WITHIN_MONTH,
                expected_impact=ExpectedImpact(
                    revenue_change=0,
                    profit_change=0,
                    risk_level=RiskLevel.HIGH,
                ),
                target_price=round(product.unit_price, 2),
                rationale="No sales history available; holding price until data accumulates",
            ),
            price_elasticity=estimate_price_elasticity([], product.category, competitors, catalog),
            market_context=MarketContext(
                seasonal_peak_in_days=seasonality.peak_in_days,
                approaching_peak=seasonality.approaching_peak,
                competitor_price_position=competitor_position(product.unit_price, competitors),
                category_performance=category_performance(Trend.STABLE, CategoryTrend.STABLE),
                compliance_notes=compliance_notes(product, catalog),
            ),
            is_fallback=True,
            n_observations=0,
        )

    def _recommend(
        self,
        product: ProductSnapshot,
        predicted_demand: int,
        trend: Trend,
        seasonality: SeasonalityEstimate,
        competitors: Sequence[CompetitorPrice],
        confidence: float,
    ) -> Recommendation:
        """Pick the first matching action.

        Order: stockout reorder, pre-peak reorder, perishable overstock
        promotion, then competitor / seasonal price moves.
        """
        catalog = self.catalog
        price = product.unit_price
        stock_weeks = weeks_of_stock(
            product.inventory_level,
            product.weekly_sales_rate,
            catalog.weeks_of_stock_epsilon,
        )
        demand_value = predicted_demand * price

        timing = ActionTiming.WITHIN_WEEK
        competitive_risk = 0.0
        target_price = price

        if stock_weeks < 1:
            action = PricingAction.REORDER_STOCK
            timing = ActionTiming.IMMEDIATE
            revenue_change = -(demand_value * 0.3)
            rationale = f"Only {stock_weeks:.1f} weeks of stock on hand"
        elif seasonality.approaching_peak and stock_weeks < 4:
            action = PricingAction.REORDER_STOCK
            timing = ActionTiming.IMMEDIATE
            revenue_change = demand_value * (seasonality.factor - 1)
            rationale = (
                f"Seasonal peak in {seasonality.peak_in_days} days with "
                f"{stock_weeks:.1f} weeks of stock"
            )
        elif stock_weeks > 12 and is_shelf_life_sensitive(product, catalog):
            action = PricingAction.PROMOTIONAL_PRICING
            timing = ActionTiming.IMMEDIATE
            revenue_change = -0.2 * product.inventory_level * price
            target_price = price * PROMOTION_FACTOR
            rationale = f"{stock_weeks:.1f} weeks of stock on a shelf-life-sensitive product"
        else:
            advantage = competitor_advantage(price, competitors)
            if advantage < -0.1 and trend == Trend.INCREASING:
                action = PricingAction.INCREASE_PRICE
                revenue_change = demand_value * 0.05
                competitive_risk = 0.1
                target_price = price * PRICE_INCREASE_FACTOR
                rationale = (
                    f"Priced {format_delta(advantage)} competitor average with rising demand"
                )
            elif advantage > 0.15:
                action = PricingAction.DECREASE_PRICE
                revenue_change = demand_value * 0.1
                competitive_risk = -0.1
                target_price = price * PRICE_DECREASE_FACTOR
                rationale = f"Priced {format_delta(advantage)} competitor average"
            elif seasonality.approaching_peak:
                action = PricingAction.INCREASE_PRICE
                revenue_change = demand_value * 0.08
                competitive_risk = 0.05
                target_price = price * PRICE_INCREASE_FACTOR
                rationale = f"Seasonal peak in {seasonality.peak_in_days} days"
            else:
                action = PricingAction.MAINTAIN_PRICE
                revenue_change = 0.0
                rationale = "Demand and pricing are in line with the market"

        if action == PricingAction.REORDER_STOCK:
            risk_level = RiskLevel.HIGH
        elif action == PricingAction.INCREASE_PRICE and confidence >= 0.7:
            risk_level = RiskLevel.LOW
        else:
            risk_level = RiskLevel.MEDIUM

        return Recommendation(
            action=action,
            confidence=round(confidence, 2),
            timing=timing,
            expected_impact=ExpectedImpact(
                revenue_change=round_half_up(revenue_change),
                profit_change=round_half_up(revenue_change * catalog.assumed_margin),
                risk_level=risk_level,
                competitive_risk=competitive_risk,
            ),
            target_price=round(target_price, 2),
            rationale=rationale,
        )
