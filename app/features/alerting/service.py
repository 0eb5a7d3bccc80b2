"""Rule evaluation: turn forecasts into ranked, capped alerts.

Evaluation is deterministic for identical inputs except for alert ids and
timestamps, which come from the injected id generator and clock.
"""

from __future__ import annotations

import itertools
import threading
import uuid
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime

import structlog

from app.features.alerting.rules import PREDICATES, RuleContext, RuleOutcome
from app.features.alerting.schemas import (
    Alert,
    AlertData,
    AlertRule,
    AlertSummary,
    AlertType,
    Severity,
)
from app.features.forecasting.catalog import DEFAULT_FORECAST_CATALOG, ForecastCatalog
from app.features.forecasting.models import available_competitors, weeks_of_stock
from app.features.forecasting.schemas import CompetitorPrice, ForecastResult, ProductSnapshot

logger = structlog.get_logger()

AlertIdGenerator = Callable[[], str]

BASE_URGENCY: dict[Severity, int] = {
    Severity.CRITICAL: 10,
    Severity.HIGH: 8,
    Severity.MEDIUM: 5,
    Severity.LOW: 3,
}
MAX_URGENCY = 10


class UuidAlertIdGenerator:
    """Random alert ids, safe across threads and processes."""

    def __call__(self) -> str:
        return f"alert-{uuid.uuid4().hex}"


class SequentialAlertIdGenerator:
    """Predictable alert ids (``alert-000001``...) for tests.

    The counter is lock-guarded so concurrent workers never share an id.
    """

    def __init__(self, prefix: str = "alert", start: int = 1) -> None:
        self.prefix = prefix
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            value = next(self._counter)
        return f"{self.prefix}-{value:06d}"


def urgency_score(severity: Severity, outcome: RuleOutcome) -> int:
    """Severity base plus time and impact bonuses, capped at 10.

    Time bonus: +2 within 7 days of critical, +1 within 14.
    Impact bonus: +2 above 1000 at stake, +1 above 500.
    """
    score = BASE_URGENCY[severity]
    days = outcome.impact.time_to_critical_days
    if days is not None:
        if days <= 7:
            score += 2
        elif days <= 14:
            score += 1
    value = outcome.impact.total_value
    if value > 1000:
        score += 2
    elif value > 500:
        score += 1
    return min(score, MAX_URGENCY)


def sort_alerts(alerts: Iterable[Alert]) -> list[Alert]:
    """Global order: severity, urgency, monetary impact, then stable ids.

    The trailing product / rule / alert id keys make the order total, so any
    shuffle of the same alerts sorts identically.
    """
    return sorted(
        alerts,
        key=lambda a: (
            -a.severity.rank,
            -a.urgency_score,
            -a.impact.total_value,
            a.product_id,
            a.rule_id,
            a.id,
        ),
    )


class RuleEvaluator:
    """Evaluate an alert rule catalog against forecasts.

    Misconfigured rules (unknown type, unknown category in the filter) are
    dropped once at construction and logged; evaluation never fails because
    of them.

    Attributes:
        rules: Usable enabled rules, ordered by priority.
        max_alerts_per_product: Cap on alerts per product.
        min_severity: Alerts below this severity are dropped before capping.
    """

    def __init__(
        self,
        rules: Sequence[AlertRule],
        catalog: ForecastCatalog = DEFAULT_FORECAST_CATALOG,
        id_generator: AlertIdGenerator | None = None,
        clock: Callable[[], datetime] | None = None,
        max_alerts_per_product: int = 3,
        min_severity: Severity | None = None,
    ) -> None:
        """Initialize the evaluator.

        Args:
            rules: Rule catalog for this pass (read-only).
            catalog: Forecast catalog, for perishability and known categories.
            id_generator: Alert id source (UUIDs by default).
            clock: Timestamp source for created_at (UTC now by default).
            max_alerts_per_product: Cap on alerts per product.
            min_severity: Optional severity floor.

        Raises:
            ValueError: If max_alerts_per_product is below 1.
        """
        if max_alerts_per_product < 1:
            raise ValueError(
                f"max_alerts_per_product must be >= 1, got {max_alerts_per_product}"
            )
        self.catalog = catalog
        self.max_alerts_per_product = max_alerts_per_product
        self.min_severity = min_severity
        self._id_generator = id_generator or UuidAlertIdGenerator()
        self._clock = clock or (lambda: datetime.now(UTC))
        self.rules = self._usable_rules(rules)

    def _usable_rules(self, rules: Sequence[AlertRule]) -> list[tuple[AlertRule, AlertType]]:
        known_categories = self.catalog.known_categories
        usable: list[tuple[int, int, AlertRule, AlertType]] = []

        for position, rule in enumerate(rules):
            if not rule.enabled:
                continue
            try:
                rule_type = AlertType(rule.type)
            except ValueError:
                logger.warning(
                    "alerting.rule_skipped",
                    rule_id=rule.id,
                    reason="unknown_type",
                    rule_type=rule.type,
                )
                continue
            if rule.categories is not None:
                unknown = sorted(set(rule.categories) - known_categories)
                if unknown:
                    logger.warning(
                        "alerting.rule_skipped",
                        rule_id=rule.id,
                        reason="unknown_category",
                        categories=unknown,
                    )
                    continue
            usable.append((rule.priority, position, rule, rule_type))

        usable.sort(key=lambda item: (item[0], item[1]))
        return [(rule, rule_type) for _, _, rule, rule_type in usable]

    def evaluate_product(
        self,
        product: ProductSnapshot,
        forecast: ForecastResult,
        competitors: Sequence[CompetitorPrice] = (),
    ) -> list[Alert]:
        """Evaluate every usable rule for one product.

        Args:
            product: Product snapshot.
            forecast: Forecast for the product.
            competitors: Competitor prices (unavailable ones are ignored).

        Returns:
            At most ``max_alerts_per_product`` alerts, highest priority first.
        """
        stock_weeks = weeks_of_stock(
            product.inventory_level,
            product.weekly_sales_rate,
            self.catalog.weeks_of_stock_epsilon,
        )
        ctx = RuleContext(
            product=product,
            forecast=forecast,
            competitors=available_competitors(competitors),
            weeks_of_stock=stock_weeks,
            catalog=self.catalog,
        )
        confidence = ctx.confidence

        alerts: list[Alert] = []
        for rule, rule_type in self.rules:
            if len(alerts) >= self.max_alerts_per_product:
                break
            if rule.categories is not None and product.category not in rule.categories:
                continue
            if self.min_severity is not None and rule.severity.rank < self.min_severity.rank:
                continue
            threshold = rule.conditions.confidence_threshold
            if threshold is not None and confidence < threshold:
                continue

            try:
                outcome = PREDICATES[rule_type](rule, ctx)
            except Exception as e:  # noqa: BLE001
                logger.error(
                    "alerting.rule_failed",
                    rule_id=rule.id,
                    product_id=product.product_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            if outcome is None:
                continue
            if not outcome.impact.is_finite():
                logger.error(
                    "alerting.rule_failed",
                    rule_id=rule.id,
                    product_id=product.product_id,
                    error="non-finite impact",
                    error_type="ArithmeticError",
                )
                continue

            alerts.append(self._build_alert(rule, rule_type, product, forecast, ctx, outcome))

        return alerts

    def evaluate(
        self,
        items: Iterable[tuple[ProductSnapshot, ForecastResult, Sequence[CompetitorPrice]]],
    ) -> list[Alert]:
        """Evaluate many products and return globally ranked alerts."""
        alerts: list[Alert] = []
        for product, forecast, competitors in items:
            alerts.extend(self.evaluate_product(product, forecast, competitors))
        return sort_alerts(alerts)

    def _build_alert(
        self,
        rule: AlertRule,
        rule_type: AlertType,
        product: ProductSnapshot,
        forecast: ForecastResult,
        ctx: RuleContext,
        outcome: RuleOutcome,
    ) -> Alert:
        return Alert(
            id=self._id_generator(),
            rule_id=rule.id,
            product_id=product.product_id,
            category=product.category,
            type=rule_type,
            severity=rule.severity,
            priority=rule.priority,
            title=outcome.title,
            message=outcome.message,
            action_required=outcome.action_required,
            impact=outcome.impact,
            data=AlertData(
                current_stock=product.inventory_level,
                predicted_demand=forecast.predicted_demand,
                weeks_of_stock=round(ctx.weeks_of_stock, 2),
                confidence=ctx.confidence,
                trend=forecast.trend.value,
            ),
            urgency_score=urgency_score(rule.severity, outcome),
            created_at=self._clock(),
            delivery_methods=list(rule.delivery_methods),
        )


# =============================================================================
# Summaries
# =============================================================================


def summarize_alerts(alerts: Sequence[Alert]) -> AlertSummary:
    """Counts and totals for a ranked alert list.

    Args:
        alerts: Alerts, already in global order.

    Returns:
        AlertSummary; ``most_urgent`` is the first alert.
    """
    by_severity = Counter(a.severity.value for a in alerts)
    return AlertSummary(
        total_alerts=len(alerts),
        critical_alerts=by_severity.get(Severity.CRITICAL.value, 0),
        high_priority_alerts=by_severity.get(Severity.HIGH.value, 0),
        by_severity={s.value: by_severity.get(s.value, 0) for s in Severity},
        by_type=dict(Counter(a.type.value for a in alerts)),
        total_revenue_at_risk=round(sum(a.impact.revenue_at_risk or 0.0 for a in alerts)),
        total_profit_opportunity=round(sum(a.impact.profit_opportunity or 0.0 for a in alerts)),
        most_urgent=alerts[0] if alerts else None,
    )


def _plural(count: int, word: str, suffix: str = "s") -> str:
    return f"{count} {word}{suffix if count != 1 else ''}"


def alert_insights(alerts: Sequence[Alert]) -> list[str]:
    """Short human-readable highlights for a dashboard."""
    insights: list[str] = []

    critical = sum(1 for a in alerts if a.severity == Severity.CRITICAL)
    if critical:
        verb = "requires" if critical == 1 else "require"
        insights.append(f"{_plural(critical, 'critical alert')} {verb} immediate attention")

    stockout_products = {a.product_id for a in alerts if a.type == AlertType.STOCKOUT}
    if stockout_products:
        insights.append(f"{_plural(len(stockout_products), 'product')} at risk of stockout")

    opportunity = sum(
        a.impact.profit_opportunity
        for a in alerts
        if a.impact.profit_opportunity is not None and a.impact.profit_opportunity > 0
    )
    if opportunity > 0:
        insights.append(f"£{round(opportunity)} in revenue opportunities identified")

    threats = sum(1 for a in alerts if a.type == AlertType.COMPETITOR_THREAT)
    if threats:
        insights.append(f"{_plural(threats, 'product')} undercut by competitors")

    spikes = sum(1 for a in alerts if a.type == AlertType.DEMAND_SPIKE)
    if spikes:
        insights.append(f"{_plural(spikes, 'demand surge', 's')} detected")

    return insights
