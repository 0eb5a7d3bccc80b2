"""Business-rule alerting over demand forecasts.

Exports:
    Catalog:
        - DEFAULT_ALERT_RULES, apply_rule_overrides, get_effective_rules

    Schemas:
        - AlertRule, RuleConditions, RuleOverride: Rule configuration
        - Alert, AlertImpact, AlertSummary: Evaluation output

    Service:
        - RuleEvaluator: Evaluate rules per product, cap and rank alerts
        - SequentialAlertIdGenerator, UuidAlertIdGenerator
        - sort_alerts, summarize_alerts, alert_insights

    Persistence:
        - AlertRepository: Alert store
"""

from app.features.alerting.catalog import (
    DEFAULT_ALERT_RULES,
    apply_rule_overrides,
    get_effective_rules,
)
from app.features.alerting.persistence import AlertRepository
from app.features.alerting.schemas import (
    Alert,
    AlertImpact,
    AlertRule,
    AlertSummary,
    AlertType,
    RuleConditions,
    RuleOverride,
    Severity,
)
from app.features.alerting.service import (
    RuleEvaluator,
    SequentialAlertIdGenerator,
    UuidAlertIdGenerator,
    alert_insights,
    sort_alerts,
    summarize_alerts,
)

__all__ = [
    "DEFAULT_ALERT_RULES",
    "Alert",
    "AlertImpact",
    "AlertRepository",
    "AlertRule",
    "AlertSummary",
    "AlertType",
    "RuleConditions",
    "RuleEvaluator",
    "RuleOverride",
    "SequentialAlertIdGenerator",
    "Severity",
    "UuidAlertIdGenerator",
    "alert_insights",
    "apply_rule_overrides",
    "get_effective_rules",
    "sort_alerts",
    "summarize_alerts",
]
