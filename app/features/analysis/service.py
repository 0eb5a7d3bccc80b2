"""Batch analysis service.

Orchestrates, per batch:
- Shape validation of the typed request (duplicate ids, orphan records)
- Per-product forecast + rule evaluation, fanned out over a thread pool
- Global alert ranking, batch summary and alert summary

Per-product work shares nothing mutable; the only shared collaborator is the
alert id generator, which is safe across threads.
"""

from __future__ import annotations

import contextvars
import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date as date_type
from datetime import datetime

import pandas as pd
import structlog

from app.core.config import get_settings
from app.core.exceptions import BatchInputError
from app.core.logging import analysis_id_ctx
from app.features.alerting.catalog import get_effective_rules
from app.features.alerting.schemas import Alert, AlertRule
from app.features.alerting.service import (
    AlertIdGenerator,
    RuleEvaluator,
    alert_insights,
    sort_alerts,
    summarize_alerts,
)
from app.features.analysis.schemas import (
    AnalysisOptions,
    BatchAnalysisResult,
    BatchSummary,
    CategoryBreakdown,
    CompetitorThreat,
    SeasonalOpportunity,
)
from app.features.analysis.synthetic import SyntheticHistoryGenerator
from app.features.forecasting.catalog import ForecastCatalog, catalog_from_settings
from app.features.forecasting.models import (
    available_competitors,
    competitor_advantage,
    format_delta,
    weeks_of_stock,
)
from app.features.forecasting.schemas import (
    CategoryPerformance,
    CompetitorPosition,
    CompetitorPrice,
    ForecastResult,
    HistoricalPoint,
    ProductSnapshot,
    RiskLevel,
)
from app.features.forecasting.service import DemandForecaster

logger = structlog.get_logger()

HIGH_CONFIDENCE = 0.8
CRITICAL_STOCK_WEEKS = 2.0
SEASONAL_OPPORTUNITY_DAYS = 90
TOP_N = 5


@dataclass(frozen=True)
class ProductAnalysis:
    """Everything produced for one product."""

    product: ProductSnapshot
    forecast: ForecastResult
    alerts: list[Alert]
    insights: list[str]
    weeks_of_stock: float


def product_insights(
    product: ProductSnapshot,
    forecast: ForecastResult,
    competitors: Sequence[CompetitorPrice],
    catalog: ForecastCatalog,
) -> list[str]:
    """Short human-readable notes for one product."""
    insights: list[str] = []
    context = forecast.market_context

    if context.seasonal_peak_in_days < 60:
        insights.append(
            f"Peak season approaching in {context.seasonal_peak_in_days} days: prepare inventory"
        )

    if context.category_performance == CategoryPerformance.OUTPERFORMING:
        insights.append(f"{product.product_id} outperforming {product.category} category average")

    if available_competitors(competitors):
        advantage = competitor_advantage(product.unit_price, competitors)
        if advantage > 0.15:
            insights.append(f"Priced {format_delta(advantage)} competitors: risk of lost sales")
        elif advantage < -0.15:
            insights.append(f"Priced {format_delta(advantage)} competitors: pricing opportunity")

    stock_weeks = weeks_of_stock(
        product.inventory_level, product.weekly_sales_rate, catalog.weeks_of_stock_epsilon
    )
    if stock_weeks < CRITICAL_STOCK_WEEKS:
        insights.append(f"Critical: only {stock_weeks:.1f} weeks of stock, reorder now")
    elif (
        stock_weeks > 10
        and product.shelf_life_days is not None
        and product.shelf_life_days < 365
    ):
        insights.append("Overstock with limited shelf life: consider promotional pricing")

    if product.category == "spirits" and product.unit_price > 50:
        insights.append("Premium spirits: focus on experience and education marketing")
    elif product.category == "rtd":
        insights.append("RTD category: emphasise convenience and seasonal promotions")

    if context.compliance_notes:
        insights.append(f"Compliance: {context.compliance_notes[0]}")

    return insights


def summarize_batch(analyses: Sequence[ProductAnalysis]) -> BatchSummary:
    """Batch figures over per-product analyses.

    Args:
        analyses: Per-product results, in request order.

    Returns:
        BatchSummary (all zeros for an empty batch).
    """
    if not analyses:
        return BatchSummary(
            total_skus=0,
            total_revenue_potential=0,
            high_confidence_count=0,
            critical_stock_count=0,
            avg_confidence=0.0,
            category_breakdown={},
            seasonal_opportunities=[],
            competitor_threats=[],
        )

    df = pd.DataFrame(
        [
            {
                "product_id": a.product.product_id,
                "category": a.product.category,
                "revenue_change": a.forecast.recommendation.expected_impact.revenue_change,
                "competitive_risk": a.forecast.recommendation.expected_impact.competitive_risk,
                "action": a.forecast.recommendation.action,
                "confidence": a.forecast.confidence_interval.confidence_level,
                "weeks_of_stock": a.weeks_of_stock,
                "days_to_peak": a.forecast.market_context.seasonal_peak_in_days,
                "position": a.forecast.market_context.competitor_price_position.value,
            }
            for a in analyses
        ]
    )

    breakdown = df.groupby("category", sort=True).agg(
        count=("product_id", "size"),
        revenue_potential=("revenue_change", "sum"),
        avg_confidence=("confidence", "mean"),
    )

    seasonal = (
        df[df["days_to_peak"] < SEASONAL_OPPORTUNITY_DAYS]
        .sort_values("days_to_peak", kind="stable")
        .head(TOP_N)
    )
    lagging = df[df["position"] == CompetitorPosition.LAGGING.value].head(TOP_N)

    return BatchSummary(
        total_skus=len(df),
        total_revenue_potential=int(df["revenue_change"].sum()),
        high_confidence_count=int((df["confidence"] > HIGH_CONFIDENCE).sum()),
        critical_stock_count=int((df["weeks_of_stock"] < CRITICAL_STOCK_WEEKS).sum()),
        avg_confidence=round(float(df["confidence"].mean()), 4),
        category_breakdown={
            str(category): CategoryBreakdown(
                count=int(row["count"]),
                revenue_potential=int(row["revenue_potential"]),
                avg_confidence=round(float(row["avg_confidence"]), 4),
            )
            for category, row in breakdown.iterrows()
        },
        seasonal_opportunities=[
            SeasonalOpportunity(
                product_id=row.product_id,
                category=row.category,
                days_to_peak=int(row.days_to_peak),
                revenue_potential=int(row.revenue_change),
            )
            for row in seasonal.itertuples(index=False)
        ],
        competitor_threats=[
            CompetitorThreat(
                product_id=row.product_id,
                category=row.category,
                threat_level=RiskLevel.HIGH if row.competitive_risk > 0.1 else RiskLevel.MEDIUM,
                action_needed=row.action,
            )
            for row in lagging.itertuples(index=False)
        ],
    )


class BatchAnalysisService:
    """Run forecasts and alert rules over a batch of products.

    Attributes:
        settings: Application settings.
        catalog: Forecast catalog used for every product.
    """

    def __init__(
        self,
        catalog: ForecastCatalog | None = None,
        rules: Sequence[AlertRule] | None = None,
        id_generator: AlertIdGenerator | None = None,
        clock: Callable[[], date_type] | None = None,
        alert_clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the batch analysis service.

        Args:
            catalog: Forecast catalog (defaults to settings-tuned defaults).
            rules: Rule catalog (defaults to the configured effective rules).
            id_generator: Alert id source (UUIDs by default).
            clock: As-of date source for seasonality and synthetic history.
            alert_clock: Timestamp source for alert created_at.

        Raises:
            RuleCatalogError: If a configured rule file cannot be loaded.
        """
        self.settings = get_settings()
        self.catalog = catalog or catalog_from_settings(self.settings)
        self.rules = list(rules) if rules is not None else get_effective_rules(self.settings)
        self._id_generator = id_generator
        self._clock = clock or date_type.today
        self._alert_clock = alert_clock
        self.history_generator = SyntheticHistoryGenerator(
            self.catalog, seed=self.settings.forecast_random_seed
        )

    def _validate_shape(
        self,
        products: Sequence[ProductSnapshot],
        histories: Mapping[str, Sequence[HistoricalPoint]],
        competitors: Mapping[str, Sequence[CompetitorPrice]],
    ) -> None:
        """Reject batches whose records do not line up.

        Raises:
            BatchInputError: On the first offending record.
        """
        if len(products) > self.settings.analysis_max_products:
            raise BatchInputError(
                message=(
                    f"Batch has {len(products)} products, maximum is "
                    f"{self.settings.analysis_max_products}"
                ),
                record={"products": len(products)},
            )

        seen: set[str] = set()
        for index, product in enumerate(products):
            if product.product_id in seen:
                raise BatchInputError(
                    message=f"Duplicate product_id: {product.product_id}",
                    record={"index": index, "product_id": product.product_id},
                )
            seen.add(product.product_id)

        for product_id in histories:
            if product_id not in seen:
                raise BatchInputError(
                    message=f"History references unknown product_id: {product_id}",
                    record={"field": "histories", "product_id": product_id},
                )

        for product_id, rows in competitors.items():
            if product_id not in seen:
                raise BatchInputError(
                    message=f"Competitor prices reference unknown product_id: {product_id}",
                    record={"field": "competitors", "product_id": product_id},
                )
            for index, row in enumerate(rows):
                if row.product_id != product_id:
                    raise BatchInputError(
                        message=(
                            f"Competitor price for {row.product_id} listed under {product_id}"
                        ),
                        record={
                            "field": "competitors",
                            "product_id": product_id,
                            "index": index,
                            "competitor": row.competitor,
                        },
                    )

    def _analyze_product(
        self,
        forecaster: DemandForecaster,
        evaluator: RuleEvaluator,
        product: ProductSnapshot,
        history: Sequence[HistoricalPoint],
        competitors: Sequence[CompetitorPrice],
        horizon_days: int,
        as_of: date_type,
    ) -> ProductAnalysis:
        try:
            forecast = forecaster.forecast(
                product=product,
                history=history,
                competitors=competitors,
                horizon_days=horizon_days,
                as_of=as_of,
            )
        except Exception as e:  # noqa: BLE001
            logger.error(
                "analysis.product_failed",
                product_id=product.product_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            forecast = forecaster.fallback_forecast(
                product, competitors, horizon_days, as_of, reason="forecast_failed"
            )
        alerts = evaluator.evaluate_product(product, forecast, competitors)
        return ProductAnalysis(
            product=product,
            forecast=forecast,
            alerts=alerts,
            insights=product_insights(product, forecast, competitors, self.catalog),
            weeks_of_stock=weeks_of_stock(
                product.inventory_level,
                product.weekly_sales_rate,
                self.catalog.weeks_of_stock_epsilon,
            ),
        )

    def run_batch_analysis(
        self,
        products: Sequence[ProductSnapshot],
        histories: Mapping[str, Sequence[HistoricalPoint]] | None = None,
        competitors: Mapping[str, Sequence[CompetitorPrice]] | None = None,
        options: AnalysisOptions | None = None,
        rules: Sequence[AlertRule] | None = None,
    ) -> BatchAnalysisResult:
        """Forecast and evaluate alert rules for every product in a batch.

        Args:
            products: Products to analyse; product ids must be unique.
            histories: Sales history per product id (missing means empty).
            competitors: Competitor prices per product id.
            options: Per-call options.
            rules: Rule catalog for this call (defaults to the service's).

        Returns:
            Forecasts, globally ranked alerts and summaries.

        Raises:
            BatchInputError: If the batch records do not line up.
            ValueError: If the horizon is not positive.
        """
        histories = histories or {}
        competitors = competitors or {}
        options = options or AnalysisOptions()
        self._validate_shape(products, histories, competitors)
        horizon_days = options.horizon_days or self.settings.forecast_default_horizon_days
        if horizon_days <= 0:
            raise ValueError(f"horizon_days must be positive, got {horizon_days}")

        settings = self.settings
        analysis_id = uuid.uuid4().hex
        token = analysis_id_ctx.set(analysis_id)
        try:
            as_of = options.as_of or self._clock()
            max_alerts = options.max_alerts_per_product or settings.alerts_max_per_product

            logger.info(
                "analysis.batch_started",
                product_count=len(products),
                horizon_days=horizon_days,
                max_alerts_per_product=max_alerts,
                min_severity=options.min_severity.value if options.min_severity else None,
            )
            start_time = time.perf_counter()

            forecaster = DemandForecaster(catalog=self.catalog, clock=self._clock)
            evaluator = RuleEvaluator(
                rules if rules is not None else self.rules,
                catalog=self.catalog,
                id_generator=self._id_generator,
                clock=self._alert_clock,
                max_alerts_per_product=max_alerts,
                min_severity=options.min_severity,
            )

            synthesized: list[str] = []
            product_histories: list[Sequence[HistoricalPoint]] = []
            for product in products:
                history = histories.get(product.product_id, [])
                if not history and options.synthesize_missing_history:
                    history = self.history_generator.generate(product, as_of)
                    synthesized.append(product.product_id)
                product_histories.append(history)

            with ThreadPoolExecutor(max_workers=settings.analysis_max_workers) as pool:
                futures = [
                    pool.submit(
                        contextvars.copy_context().run,
                        self._analyze_product,
                        forecaster,
                        evaluator,
                        product,
                        history,
                        competitors.get(product.product_id, []),
                        horizon_days,
                        as_of,
                    )
                    for product, history in zip(products, product_histories, strict=True)
                ]
                analyses = [future.result() for future in futures]

            alerts = sort_alerts(alert for a in analyses for alert in a.alerts)
            result = BatchAnalysisResult(
                analysis_id=analysis_id,
                forecasts={a.product.product_id: a.forecast for a in analyses},
                product_insights={a.product.product_id: a.insights for a in analyses},
                alerts=alerts,
                summary=summarize_batch(analyses),
                alert_summary=summarize_alerts(alerts),
                insights=alert_insights(alerts),
                synthesized_history=synthesized,
            )

            logger.info(
                "analysis.batch_completed",
                product_count=len(products),
                alert_count=len(alerts),
                synthesized_count=len(synthesized),
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            return result
        finally:
            analysis_id_ctx.reset(token)
