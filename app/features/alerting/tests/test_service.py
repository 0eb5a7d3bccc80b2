"""Tests for the rule evaluator, urgency scoring and summaries."""

import random
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from unittest.mock import patch

import pytest

from app.features.alerting.rules import PREDICATES, RuleOutcome
from app.features.alerting.schemas import (
    AlertImpact,
    AlertRule,
    AlertType,
    RuleConditions,
    Severity,
)
from app.features.alerting.service import (
    SequentialAlertIdGenerator,
    UuidAlertIdGenerator,
    alert_insights,
    sort_alerts,
    summarize_alerts,
    urgency_score,
)
from app.features.forecasting.schemas import CompetitorPrice, HistoricalPoint, ProductSnapshot


def flat_history(units: float = 10.0, price: float = 20.0, weeks: int = 12) -> list[HistoricalPoint]:
    return [
        HistoricalPoint(date=date(2023, 12, 22) + timedelta(weeks=i), units_sold=units, unit_price=price)
        for i in range(weeks)
    ]


def rivals(product_id: str) -> list[CompetitorPrice]:
    return [
        CompetitorPrice(product_id=product_id, competitor=f"Rival {i}", competitor_price=p)
        for i, p in enumerate((38.0, 40.0, 42.0), start=1)
    ]


@pytest.fixture
def squeezed_spirit() -> ProductSnapshot:
    """Low stock, thin margin, high strength and overpriced."""
    return ProductSnapshot(
        product_id="SPIRIT-HOT",
        category="spirits",
        unit_price=50.0,
        weekly_sales_rate=10.0,
        inventory_level=5.0,
        cost_price=48.0,
        potency=45.0,
    )


class TestUrgencyScore:
    """Tests for urgency_score."""

    def test_low_severity_with_bonuses(self):
        """Low base 3, +1 for 10 days, +1 for 600 at stake."""
        outcome = RuleOutcome(
            title="t",
            message="m",
            action_required="a",
            impact=AlertImpact(time_to_critical_days=10, profit_opportunity=600),
        )

        assert urgency_score(Severity.LOW, outcome) == 5

    def test_capped_at_ten(self):
        """Critical with every bonus stays at 10."""
        outcome = RuleOutcome(
            title="t",
            message="m",
            action_required="a",
            impact=AlertImpact(time_to_critical_days=1, revenue_at_risk=5000),
        )

        assert urgency_score(Severity.CRITICAL, outcome) == 10

    def test_no_bonus(self):
        """Without time or value the base is returned."""
        outcome = RuleOutcome(title="t", message="m", action_required="a")

        assert urgency_score(Severity.MEDIUM, outcome) == 5


class TestRuleEvaluator:
    """Tests for RuleEvaluator."""

    def test_single_critical_stockout(
        self, make_evaluator, forecaster, low_stock_product, critical_stockout_rule
    ):
        """Half a week of stock under a one-week rule raises one critical alert."""
        evaluator = make_evaluator([critical_stockout_rule])
        forecast = forecaster.forecast(low_stock_product, flat_history())

        alerts = evaluator.evaluate_product(low_stock_product, forecast)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.id == "alert-000001"
        assert alert.severity == Severity.CRITICAL
        assert alert.type == AlertType.STOCKOUT
        assert alert.impact.time_to_critical_days == pytest.approx(3.5)
        assert alert.impact.revenue_at_risk == pytest.approx(800.0)
        assert alert.urgency_score == 10
        assert alert.data.weeks_of_stock == 0.5
        assert alert.data.confidence == pytest.approx(0.7667)
        assert alert.acknowledged is False
        assert alert.resolved is False

    def test_perishable_overstock_only(self, make_evaluator, forecaster, perishable_overstock_product):
        """Fourteen weeks of beer raises only an expiration alert."""
        rules = [
            AlertRule(
                id="overstock",
                name="Overstock",
                type="overstock",
                severity=Severity.MEDIUM,
                priority=2,
                conditions=RuleConditions(weeks_of_stock_above=8),
            ),
            AlertRule(
                id="stockout",
                name="Stockout",
                type="stockout",
                severity=Severity.HIGH,
                priority=1,
                conditions=RuleConditions(weeks_of_stock_below=4),
            ),
        ]
        evaluator = make_evaluator(rules)
        forecast = forecaster.forecast(perishable_overstock_product, flat_history())

        alerts = evaluator.evaluate_product(perishable_overstock_product, forecast)

        assert [a.rule_id for a in alerts] == ["overstock"]
        assert alerts[0].title.startswith("Expiration Risk")
        assert alerts[0].impact.profit_opportunity == pytest.approx(120.0)

    def test_competitor_threat_with_defaults(self, make_evaluator, forecaster, overpriced_product):
        """A spirit 25% above its rivals raises exactly one competitor threat."""
        competitors = rivals("SPIRIT-050")
        forecast = forecaster.forecast(overpriced_product, flat_history(price=50.0), competitors)

        alerts = make_evaluator().evaluate_product(overpriced_product, forecast, competitors)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.rule_id == "competitor-threat"
        assert alert.severity == Severity.HIGH
        assert "25% above" in alert.message
        assert alert.impact.revenue_at_risk == pytest.approx(500.0)
        assert alert.urgency_score == 8

    def test_cap_keeps_highest_priority_rules(self, make_evaluator, forecaster, squeezed_spirit):
        """The cap keeps the first rules in priority order."""
        competitors = rivals("SPIRIT-HOT")
        forecast = forecaster.forecast(squeezed_spirit, flat_history(price=50.0), competitors)

        alerts = make_evaluator(max_alerts_per_product=3).evaluate_product(
            squeezed_spirit, forecast, competitors
        )

        assert [a.rule_id for a in alerts] == [
            "critical-stockout",
            "competitor-threat",
            "stockout-warning",
        ]

    def test_without_cap_pressure_all_rules_fire(self, make_evaluator, forecaster, squeezed_spirit):
        """Margin and compliance rules fire once the cap allows them."""
        competitors = rivals("SPIRIT-HOT")
        forecast = forecaster.forecast(squeezed_spirit, flat_history(price=50.0), competitors)

        alerts = make_evaluator(max_alerts_per_product=10).evaluate_product(
            squeezed_spirit, forecast, competitors
        )

        assert [a.rule_id for a in alerts] == [
            "critical-stockout",
            "competitor-threat",
            "stockout-warning",
            "low-margin",
            "high-strength-compliance",
        ]

    def test_min_severity_filters_before_cap(self, make_evaluator, forecaster, squeezed_spirit):
        """Only critical rules survive a critical severity floor."""
        competitors = rivals("SPIRIT-HOT")
        forecast = forecaster.forecast(squeezed_spirit, flat_history(price=50.0), competitors)

        alerts = make_evaluator(min_severity=Severity.CRITICAL).evaluate_product(
            squeezed_spirit, forecast, competitors
        )

        assert [a.rule_id for a in alerts] == ["critical-stockout"]

    def test_evaluate_sorts_globally(self, make_evaluator, forecaster, squeezed_spirit):
        """Global order is severity, then urgency."""
        competitors = rivals("SPIRIT-HOT")
        forecast = forecaster.forecast(squeezed_spirit, flat_history(price=50.0), competitors)

        alerts = make_evaluator().evaluate([(squeezed_spirit, forecast, competitors)])

        assert [a.rule_id for a in alerts] == [
            "critical-stockout",
            "stockout-warning",
            "competitor-threat",
        ]

    def test_unavailable_competitors_ignored(self, make_evaluator, forecaster, overpriced_product):
        """Out-of-stock rivals do not count as a threat."""
        competitors = [c.model_copy(update={"available": False}) for c in rivals("SPIRIT-050")]
        forecast = forecaster.forecast(overpriced_product, flat_history(price=50.0), competitors)

        alerts = make_evaluator().evaluate_product(overpriced_product, forecast, competitors)

        assert alerts == []

    def test_confidence_threshold_blocks_rule(
        self, make_evaluator, forecaster, low_stock_product
    ):
        """A rule demanding 90% confidence stays quiet at 77%."""
        rule = AlertRule(
            id="picky",
            name="Picky",
            type="stockout",
            severity=Severity.HIGH,
            conditions=RuleConditions(weeks_of_stock_below=1, confidence_threshold=0.9),
        )
        forecast = forecaster.forecast(low_stock_product, flat_history())

        assert make_evaluator([rule]).evaluate_product(low_stock_product, forecast) == []

    def test_category_filter(self, make_evaluator, forecaster, low_stock_product):
        """A beer-only rule does not fire for wine."""
        rule = AlertRule(
            id="beer-only",
            name="Beer only",
            type="stockout",
            severity=Severity.HIGH,
            categories=["Beer"],
            conditions=RuleConditions(weeks_of_stock_below=1),
        )
        forecast = forecaster.forecast(low_stock_product, flat_history())

        assert make_evaluator([rule]).evaluate_product(low_stock_product, forecast) == []

    def test_misconfigured_rules_skipped(self, make_evaluator, critical_stockout_rule):
        """Unknown types and unknown categories are dropped at construction."""
        rules = [
            critical_stockout_rule,
            AlertRule(id="mystery", name="Mystery", type="weather", severity=Severity.LOW),
            AlertRule(
                id="sake",
                name="Sake",
                type="stockout",
                severity=Severity.LOW,
                categories=["sake"],
            ),
            AlertRule(
                id="wine",
                name="Wine",
                type="overstock",
                severity=Severity.LOW,
                categories=[" Wine "],
            ),
        ]

        evaluator = make_evaluator(rules)

        assert [rule.id for rule, _ in evaluator.rules] == ["critical-stockout", "wine"]

    def test_failing_predicate_is_skipped(
        self, make_evaluator, forecaster, low_stock_product, critical_stockout_rule
    ):
        """A predicate that raises is logged and the batch carries on."""

        def boom(rule, ctx):
            raise ZeroDivisionError("division by zero")

        margin_rule = AlertRule(
            id="margin",
            name="Margin",
            type="low_margin",
            severity=Severity.MEDIUM,
            priority=2,
            conditions=RuleConditions(margin_below=0.9),
        )
        forecast = forecaster.forecast(low_stock_product, flat_history())

        with patch.dict(PREDICATES, {AlertType.STOCKOUT: boom}):
            alerts = make_evaluator([critical_stockout_rule, margin_rule]).evaluate_product(
                low_stock_product, forecast
            )

        assert [a.rule_id for a in alerts] == ["margin"]

    def test_non_finite_impact_is_skipped(
        self, make_evaluator, forecaster, low_stock_product, critical_stockout_rule
    ):
        """An infinite impact never reaches an alert."""

        def infinite(rule, ctx):
            return RuleOutcome(
                title="t",
                message="m",
                action_required="a",
                impact=AlertImpact(revenue_at_risk=float("inf")),
            )

        forecast = forecaster.forecast(low_stock_product, flat_history())

        with patch.dict(PREDICATES, {AlertType.STOCKOUT: infinite}):
            alerts = make_evaluator([critical_stockout_rule]).evaluate_product(
                low_stock_product, forecast
            )

        assert alerts == []

    def test_invalid_cap(self, make_evaluator):
        """A cap below one is rejected."""
        with pytest.raises(ValueError, match="max_alerts_per_product"):
            make_evaluator(max_alerts_per_product=0)


class TestSortAlerts:
    """Tests for sort_alerts."""

    def test_order_independent_of_input_order(
        self, make_evaluator, forecaster, squeezed_spirit, low_stock_product, overpriced_product
    ):
        """Any shuffle of the same alerts sorts identically."""
        evaluator = make_evaluator(max_alerts_per_product=10)
        alerts = []
        for product, price in (
            (squeezed_spirit, 50.0),
            (low_stock_product, 20.0),
            (overpriced_product, 50.0),
        ):
            competitors = rivals(product.product_id) if product.category == "spirits" else []
            forecast = forecaster.forecast(product, flat_history(price=price), competitors)
            alerts.extend(evaluator.evaluate_product(product, forecast, competitors))

        expected = [a.id for a in sort_alerts(alerts)]
        rng = random.Random(7)
        for _ in range(5):
            shuffled = alerts[:]
            rng.shuffle(shuffled)
            assert [a.id for a in sort_alerts(shuffled)] == expected

        ranks = [a.severity.rank for a in sort_alerts(alerts)]
        assert ranks == sorted(ranks, reverse=True)


class TestIdGenerators:
    """Tests for alert id generators."""

    def test_sequential_ids(self):
        """Sequential ids are zero-padded and ordered."""
        generator = SequentialAlertIdGenerator(prefix="test", start=41)

        assert [generator(), generator()] == ["test-000041", "test-000042"]

    def test_sequential_ids_unique_across_threads(self):
        """Concurrent callers never share an id."""
        generator = SequentialAlertIdGenerator()

        with ThreadPoolExecutor(max_workers=8) as pool:
            ids = list(pool.map(lambda _: generator(), range(1000)))

        assert len(set(ids)) == 1000

    def test_uuid_ids(self):
        """UUID ids carry the alert prefix and differ."""
        generator = UuidAlertIdGenerator()

        first, second = generator(), generator()

        assert first.startswith("alert-")
        assert first != second


class TestSummaries:
    """Tests for summarize_alerts and alert_insights."""

    def test_summary_and_insights(self, make_evaluator, forecaster, squeezed_spirit):
        """Counts, totals and highlights for one troubled product."""
        competitors = rivals("SPIRIT-HOT")
        forecast = forecaster.forecast(squeezed_spirit, flat_history(price=50.0), competitors)
        alerts = make_evaluator(max_alerts_per_product=10).evaluate(
            [(squeezed_spirit, forecast, competitors)]
        )

        summary = summarize_alerts(alerts)

        assert summary.total_alerts == 5
        assert summary.critical_alerts == 1
        assert summary.high_priority_alerts == 2
        assert summary.by_severity == {"low": 1, "medium": 1, "high": 2, "critical": 1}
        assert summary.by_type == {"stockout": 2, "competitor_threat": 1, "low_margin": 1, "compliance": 1}
        assert summary.total_revenue_at_risk == 4500
        assert summary.total_profit_opportunity == 320
        assert summary.most_urgent is not None
        assert summary.most_urgent.rule_id == "critical-stockout"

        assert alert_insights(alerts) == [
            "1 critical alert requires immediate attention",
            "1 product at risk of stockout",
            "£320 in revenue opportunities identified",
            "1 product undercut by competitors",
        ]

    def test_empty(self):
        """No alerts means zero counts and no insights."""
        summary = summarize_alerts([])

        assert summary.total_alerts == 0
        assert summary.most_urgent is None
        assert alert_insights([]) == []
