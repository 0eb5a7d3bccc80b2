"""Rule-type predicates.

Each predicate looks at one product (snapshot, forecast, available competitor
prices) and returns a RuleOutcome when the rule fires, or None. Thresholds
come from the rule's conditions; a predicate whose required threshold is
missing never fires.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from app.features.alerting.schemas import AlertImpact, AlertRule, AlertType
from app.features.forecasting.catalog import ForecastCatalog
from app.features.forecasting.models import (
    competitor_advantage,
    competitor_mean_price,
    format_delta,
    is_shelf_life_sensitive,
)
from app.features.forecasting.schemas import (
    CompetitorPrice,
    ForecastResult,
    PricingAction,
    ProductSnapshot,
    Trend,
)
from app.features.forecasting.service import PRICE_DECREASE_FACTOR, PRICE_INCREASE_FACTOR

# Stock runway considered healthy; overstock excess is measured from here
OPTIMAL_WEEKS_OF_STOCK = 8.0

# Weeks of lost sales counted as revenue at risk
LOST_SALES_WEEKS = 4

# Weeks of peak-season demand to hold in stock
PEAK_COVER_WEEKS = 4


@dataclass(frozen=True)
class RuleContext:
    """Everything a predicate may look at for one product."""

    product: ProductSnapshot
    forecast: ForecastResult
    competitors: list[CompetitorPrice]
    weeks_of_stock: float
    catalog: ForecastCatalog

    @property
    def confidence(self) -> float:
        return self.forecast.confidence_interval.confidence_level

    @property
    def weekly_revenue(self) -> float:
        return self.product.weekly_sales_rate * self.product.unit_price


@dataclass(frozen=True)
class RuleOutcome:
    """Text and impact of a fired rule."""

    title: str
    message: str
    action_required: str
    impact: AlertImpact = field(default_factory=AlertImpact)


Predicate = Callable[[AlertRule, RuleContext], RuleOutcome | None]


def _pct(value: float) -> str:
    return f"{round(value * 100)}%"


def check_stockout(rule: AlertRule, ctx: RuleContext) -> RuleOutcome | None:
    threshold = rule.conditions.weeks_of_stock_below
    if threshold is None or ctx.weeks_of_stock >= threshold:
        return None

    pid = ctx.product.product_id
    days_to_stockout = ctx.weeks_of_stock * 7
    return RuleOutcome(
        title=f"{rule.severity.value.upper()}: {pid} stock critical",
        message=(
            f"Only {ctx.weeks_of_stock:.1f} weeks of stock remaining for {pid}. "
            f"Stockout expected in {days_to_stockout:.0f} days "
            f"({_pct(ctx.confidence)} confidence)."
        ),
        action_required=(
            "URGENT: Reorder immediately"
            if days_to_stockout < 7
            else "Schedule reorder within 48 hours"
        ),
        impact=AlertImpact(
            revenue_at_risk=ctx.weekly_revenue * LOST_SALES_WEEKS,
            time_to_critical_days=days_to_stockout,
        ),
    )


def check_overstock(rule: AlertRule, ctx: RuleContext) -> RuleOutcome | None:
    threshold = rule.conditions.weeks_of_stock_above
    if threshold is None or ctx.weeks_of_stock <= threshold:
        return None

    product = ctx.product
    pid = product.product_id
    excess_weeks = max(0.0, ctx.weeks_of_stock - OPTIMAL_WEEKS_OF_STOCK)
    excess_units = round(excess_weeks * product.weekly_sales_rate)
    profit_opportunity = excess_weeks * ctx.weekly_revenue * 0.1

    if is_shelf_life_sensitive(product, ctx.catalog):
        shelf_life = (
            f"{product.shelf_life_days}-day shelf life"
            if product.shelf_life_days is not None
            else "short shelf life"
        )
        return RuleOutcome(
            title=f"Expiration Risk: {pid}",
            message=(
                f"{pid} has {ctx.weeks_of_stock:.1f} weeks of stock against a "
                f"{shelf_life}. Around {excess_units} units may expire unsold."
            ),
            action_required="Discount or bundle to clear stock before expiry",
            impact=AlertImpact(
                profit_opportunity=profit_opportunity,
                time_to_critical_days=(
                    float(product.shelf_life_days) if product.shelf_life_days is not None else None
                ),
            ),
        )

    return RuleOutcome(
        title=f"Overstock Alert: {pid}",
        message=(
            f"{pid} has {ctx.weeks_of_stock:.1f} weeks of inventory. Consider "
            f"promotional pricing to move {excess_units} excess units."
        ),
        action_required="Create promotion or adjust pricing strategy",
        impact=AlertImpact(profit_opportunity=profit_opportunity),
    )


def check_price_opportunity(rule: AlertRule, ctx: RuleContext) -> RuleOutcome | None:
    threshold = rule.conditions.revenue_opportunity_above
    recommendation = ctx.forecast.recommendation
    revenue_change = recommendation.expected_impact.revenue_change
    if threshold is None or revenue_change <= threshold:
        return None

    pid = ctx.product.product_id
    action_label = recommendation.action.value.replace("_", " ")
    if recommendation.action in (PricingAction.INCREASE_PRICE, PricingAction.DECREASE_PRICE):
        detail = f"{action_label} to £{recommendation.target_price:.2f}"
    else:
        detail = action_label
    return RuleOutcome(
        title=f"Revenue Opportunity: {pid}",
        message=(
            f"£{revenue_change} revenue opportunity identified for {pid}: "
            f"{recommendation.rationale} ({_pct(ctx.confidence)} confidence)."
        ),
        action_required=detail.capitalize(),
        impact=AlertImpact(profit_opportunity=float(revenue_change)),
    )


def check_demand_spike(rule: AlertRule, ctx: RuleContext) -> RuleOutcome | None:
    threshold = rule.conditions.demand_change_percentage
    weekly = ctx.product.weekly_sales_rate
    forecast = ctx.forecast
    if threshold is None or forecast.trend != Trend.INCREASING or weekly <= 0:
        return None

    predicted_weekly = forecast.predicted_demand / forecast.horizon_days * 7
    increase_pct = (predicted_weekly - weekly) / weekly * 100
    if increase_pct <= threshold:
        return None

    pid = ctx.product.product_id
    return RuleOutcome(
        title=f"Demand Surge Detected: {pid}",
        message=(
            f"Weekly demand for {pid} forecast to rise {increase_pct:.0f}%. "
            "Current inventory may be insufficient for the surge."
        ),
        action_required="Increase inventory and review pricing",
        impact=AlertImpact(
            revenue_at_risk=increase_pct / 100 * ctx.weekly_revenue,
            time_to_critical_days=ctx.weeks_of_stock * 7 / (1 + increase_pct / 100),
        ),
    )


def check_trend_change(rule: AlertRule, ctx: RuleContext) -> RuleOutcome | None:
    trend = ctx.forecast.trend
    if trend == Trend.STABLE:
        return None

    pid = ctx.product.product_id
    return RuleOutcome(
        title=f"Trend Change: {pid}",
        message=(
            f"{pid} is showing a {trend.value} sales trend "
            f"({_pct(ctx.confidence)} confidence). Review pricing strategy."
        ),
        action_required=(
            "Consider a price increase"
            if trend == Trend.INCREASING
            else "Review pricing and promotion strategy"
        ),
        impact=AlertImpact(
            profit_opportunity=float(abs(ctx.forecast.recommendation.expected_impact.revenue_change))
        ),
    )


def check_competitor_threat(rule: AlertRule, ctx: RuleContext) -> RuleOutcome | None:
    threshold = rule.conditions.competitor_price_delta_above
    mean_price = competitor_mean_price(ctx.competitors)
    if threshold is None or mean_price is None:
        return None

    price = ctx.product.unit_price
    advantage = competitor_advantage(price, ctx.competitors)
    if advantage <= threshold:
        return None

    pid = ctx.product.product_id
    cheapest = min(ctx.competitors, key=lambda c: c.competitor_price)
    return RuleOutcome(
        title=f"Competitor Threat: {pid}",
        message=(
            f"{pid} is priced {format_delta(advantage)} the competitor average of "
            f"£{mean_price:.2f} across {len(ctx.competitors)} competitor(s); "
            f"{cheapest.competitor} sells at £{cheapest.competitor_price:.2f}."
        ),
        action_required=f"Review price: reduce to £{price * PRICE_DECREASE_FACTOR:.2f}",
        impact=AlertImpact(
            revenue_at_risk=ctx.weekly_revenue * LOST_SALES_WEEKS * min(advantage, 1.0),
        ),
    )


def check_seasonal_prep(rule: AlertRule, ctx: RuleContext) -> RuleOutcome | None:
    threshold = rule.conditions.days_to_peak_below
    peak_in_days = ctx.forecast.market_context.seasonal_peak_in_days
    if threshold is None or peak_in_days >= threshold:
        return None

    product = ctx.product
    required_units = (peak_in_days / 7 + PEAK_COVER_WEEKS) * product.weekly_sales_rate
    shortfall = required_units - product.inventory_level
    if shortfall <= 0:
        return None

    pid = product.product_id
    return RuleOutcome(
        title=f"Seasonal Peak Approaching: {pid}",
        message=(
            f"{product.category.title()} peak season starts in {peak_in_days} days. "
            f"{pid} is about {round(shortfall)} units short of peak cover."
        ),
        action_required=(
            f"Order {round(shortfall)} units and consider a price move to "
            f"£{product.unit_price * PRICE_INCREASE_FACTOR:.2f}"
        ),
        impact=AlertImpact(
            revenue_at_risk=shortfall * product.unit_price,
            time_to_critical_days=float(peak_in_days),
        ),
    )


def check_compliance(rule: AlertRule, ctx: RuleContext) -> RuleOutcome | None:
    threshold = rule.conditions.potency_above
    potency = ctx.product.potency
    if threshold is None or potency is None or potency <= threshold:
        return None

    pid = ctx.product.product_id
    notes = ctx.forecast.market_context.compliance_notes
    return RuleOutcome(
        title=f"Compliance Check: {pid}",
        message=f"{pid} is {potency:g}% ABV. " + " ".join(f"{note}." for note in notes),
        action_required="Confirm duty, labelling and licensing requirements",
    )


def check_low_margin(rule: AlertRule, ctx: RuleContext) -> RuleOutcome | None:
    threshold = rule.conditions.margin_below
    product = ctx.product
    if threshold is None or product.cost_price is None or product.unit_price <= 0:
        return None

    margin = (product.unit_price - product.cost_price) / product.unit_price
    if margin >= threshold:
        return None

    pid = product.product_id
    return RuleOutcome(
        title=f"Low Margin: {pid}",
        message=(
            f"{pid} earns a {_pct(margin)} gross margin, below the {_pct(threshold)} floor "
            f"(cost £{product.cost_price:.2f}, price £{product.unit_price:.2f})."
        ),
        action_required="Renegotiate cost or raise price",
        impact=AlertImpact(
            profit_opportunity=(threshold - margin) * ctx.weekly_revenue * LOST_SALES_WEEKS,
        ),
    )


PREDICATES: dict[AlertType, Predicate] = {
    AlertType.STOCKOUT: check_stockout,
    AlertType.OVERSTOCK: check_overstock,
    AlertType.PRICE_OPPORTUNITY: check_price_opportunity,
    AlertType.DEMAND_SPIKE: check_demand_spike,
    AlertType.TREND_CHANGE: check_trend_change,
    AlertType.COMPETITOR_THREAT: check_competitor_threat,
    AlertType.SEASONAL_PREP: check_seasonal_prep,
    AlertType.COMPLIANCE: check_compliance,
    AlertType.LOW_MARGIN: check_low_margin,
}
