"""Alert rule catalog: defaults, JSON loading and tenant overrides."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

import pydantic
import structlog
from pydantic import TypeAdapter

from app.core.config import Settings
from app.core.exceptions import RuleCatalogError
from app.features.alerting.schemas import (
    AlertRule,
    AlertType,
    RuleConditions,
    RuleOverride,
    Severity,
)

logger = structlog.get_logger()

_RULES_ADAPTER = TypeAdapter(list[AlertRule])
_OVERRIDES_ADAPTER = TypeAdapter(list[RuleOverride])


DEFAULT_ALERT_RULES: tuple[AlertRule, ...] = (
    AlertRule(
        id="critical-stockout",
        name="Critical Stockout Warning",
        type=AlertType.STOCKOUT.value,
        severity=Severity.CRITICAL,
        priority=1,
        conditions=RuleConditions(weeks_of_stock_below=2, confidence_threshold=0.5),
        delivery_methods=["email", "push"],
        frequency="immediate",
    ),
    AlertRule(
        id="competitor-threat",
        name="Competitor Price Threat",
        type=AlertType.COMPETITOR_THREAT.value,
        severity=Severity.HIGH,
        priority=2,
        conditions=RuleConditions(competitor_price_delta_above=0.15),
        delivery_methods=["email"],
        frequency="daily",
    ),
    AlertRule(
        id="stockout-warning",
        name="Low Stock Alert",
        type=AlertType.STOCKOUT.value,
        severity=Severity.HIGH,
        priority=3,
        conditions=RuleConditions(weeks_of_stock_below=4, confidence_threshold=0.4),
        delivery_methods=["email"],
        frequency="daily",
    ),
    AlertRule(
        id="demand-spike",
        name="Demand Spike Detection",
        type=AlertType.DEMAND_SPIKE.value,
        severity=Severity.HIGH,
        priority=4,
        conditions=RuleConditions(demand_change_percentage=30, confidence_threshold=0.6),
        delivery_methods=["email", "push"],
        frequency="immediate",
    ),
    AlertRule(
        id="seasonal-prep",
        name="Seasonal Peak Preparation",
        type=AlertType.SEASONAL_PREP.value,
        severity=Severity.MEDIUM,
        priority=5,
        conditions=RuleConditions(days_to_peak_below=75, confidence_threshold=0.5),
        delivery_methods=["email"],
        frequency="weekly",
    ),
    AlertRule(
        id="overstock-alert",
        name="Overstock Detection",
        type=AlertType.OVERSTOCK.value,
        severity=Severity.MEDIUM,
        priority=6,
        conditions=RuleConditions(weeks_of_stock_above=10, confidence_threshold=0.5),
        delivery_methods=["email"],
        frequency="weekly",
    ),
    AlertRule(
        id="price-opportunity",
        name="Revenue Opportunity",
        type=AlertType.PRICE_OPPORTUNITY.value,
        severity=Severity.MEDIUM,
        priority=7,
        conditions=RuleConditions(revenue_opportunity_above=50, confidence_threshold=0.6),
        delivery_methods=["email"],
        frequency="daily",
    ),
    AlertRule(
        id="low-margin",
        name="Low Margin Warning",
        type=AlertType.LOW_MARGIN.value,
        severity=Severity.MEDIUM,
        priority=8,
        conditions=RuleConditions(margin_below=0.2),
        delivery_methods=["email"],
        frequency="weekly",
    ),
    AlertRule(
        id="trend-change",
        name="Trend Change",
        type=AlertType.TREND_CHANGE.value,
        severity=Severity.LOW,
        priority=9,
        enabled=False,
        conditions=RuleConditions(confidence_threshold=0.6),
        delivery_methods=["email"],
        frequency="weekly",
    ),
    AlertRule(
        id="high-strength-compliance",
        name="High-Strength Compliance",
        type=AlertType.COMPLIANCE.value,
        severity=Severity.LOW,
        priority=10,
        conditions=RuleConditions(potency_above=40),
        delivery_methods=["email"],
        frequency="weekly",
    ),
)


def load_rule_catalog(path: str | Path) -> list[AlertRule]:
    """Load rule definitions from a JSON list.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed rules in file order.

    Raises:
        RuleCatalogError: If the file cannot be read or parsed.
    """
    try:
        rules = _RULES_ADAPTER.validate_json(Path(path).read_bytes())
    except (OSError, pydantic.ValidationError) as e:
        logger.error("alerting.catalog_load_failed", path=str(path), error=str(e))
        raise RuleCatalogError(
            message=f"Alert rule catalog could not be loaded from {path}",
            details={"path": str(path), "error_type": type(e).__name__},
        ) from e

    logger.info("alerting.catalog_loaded", path=str(path), rule_count=len(rules))
    return rules


def load_rule_overrides(path: str | Path) -> list[RuleOverride]:
    """Load tenant overrides from a JSON list.

    Raises:
        RuleCatalogError: If the file cannot be read or parsed.
    """
    try:
        overrides = _OVERRIDES_ADAPTER.validate_json(Path(path).read_bytes())
    except (OSError, pydantic.ValidationError) as e:
        logger.error("alerting.overrides_load_failed", path=str(path), error=str(e))
        raise RuleCatalogError(
            message=f"Alert rule overrides could not be loaded from {path}",
            details={"path": str(path), "error_type": type(e).__name__},
        ) from e
    return overrides


def apply_rule_overrides(
    rules: Sequence[AlertRule],
    overrides: Iterable[RuleOverride],
) -> list[AlertRule]:
    """Apply tenant overrides to a rule list without mutating it.

    Condition overrides are merged field by field; other fields replace the
    default when set. Overrides for unknown rule ids are logged and ignored.

    Args:
        rules: Base rules (typically the defaults).
        overrides: Tenant overrides.

    Returns:
        New list of rules in the original order.
    """
    by_id = {override.rule_id: override for override in overrides}
    known_ids = {rule.id for rule in rules}
    for unknown in sorted(set(by_id) - known_ids):
        logger.warning("alerting.override_unknown_rule", rule_id=unknown)

    result: list[AlertRule] = []
    for rule in rules:
        override = by_id.get(rule.id)
        if override is None:
            result.append(rule)
            continue

        update = override.model_dump(
            exclude={"rule_id", "conditions"},
            exclude_none=True,
        )
        if override.conditions is not None:
            merged = rule.conditions.model_copy(
                update=override.conditions.model_dump(exclude_none=True)
            )
            update["conditions"] = merged
        # Round-trip through validation so overridden values are checked
        result.append(AlertRule.model_validate({**rule.model_dump(), **update}))
    return result


def get_effective_rules(settings: Settings) -> list[AlertRule]:
    """Rule catalog after applying configured files.

    Args:
        settings: Application settings.

    Returns:
        Catalog file rules (or the defaults), with overrides applied.

    Raises:
        RuleCatalogError: If a configured file cannot be loaded.
    """
    if settings.alerts_rule_catalog_path:
        rules = load_rule_catalog(settings.alerts_rule_catalog_path)
    else:
        rules = list(DEFAULT_ALERT_RULES)

    if settings.alerts_rule_overrides_path:
        rules = apply_rule_overrides(rules, load_rule_overrides(settings.alerts_rule_overrides_path))
    return rules
