"""Pydantic schemas for alert rules, alerts and the alerts API.

Rules are read-only during an evaluation pass; alerts are created fresh by
the evaluator and only the alert store flips their acknowledged / resolved
state afterwards.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# =============================================================================
# Enumerations
# =============================================================================


class AlertType(str, Enum):
    """Kinds of condition a rule can detect."""

    STOCKOUT = "stockout"
    OVERSTOCK = "overstock"
    PRICE_OPPORTUNITY = "price_opportunity"
    DEMAND_SPIKE = "demand_spike"
    TREND_CHANGE = "trend_change"
    COMPETITOR_THREAT = "competitor_threat"
    SEASONAL_PREP = "seasonal_prep"
    COMPLIANCE = "compliance"
    LOW_MARGIN = "low_margin"


class Severity(str, Enum):
    """Alert severity, ordered low < medium < high < critical."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Numeric rank, higher is more severe."""
        return SEVERITY_RANK[self]


SEVERITY_RANK: dict[Severity, int] = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

DeliveryMethod = Literal["email", "sms", "push", "slack"]
Frequency = Literal["immediate", "daily", "weekly"]


# =============================================================================
# Rules
# =============================================================================


class RuleConditions(BaseModel):
    """Per-type thresholds; each rule type reads the fields it needs.

    Attributes:
        weeks_of_stock_below: Stockout / seasonal prep runway threshold.
        weeks_of_stock_above: Overstock runway threshold.
        confidence_threshold: Minimum forecast confidence for any rule.
        revenue_opportunity_above: Minimum recommendation revenue change.
        demand_change_percentage: Minimum weekly demand increase, in percent.
        competitor_price_delta_above: Minimum gap above competitor mean (0.15 = 15%).
        days_to_peak_below: Seasonal peak window, in days.
        potency_above: Potency (ABV %) above which compliance alerts fire.
        margin_below: Gross margin fraction below which margin alerts fire.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    weeks_of_stock_below: float | None = Field(default=None, ge=0)
    weeks_of_stock_above: float | None = Field(default=None, ge=0)
    confidence_threshold: float | None = Field(default=None, ge=0, le=1)
    revenue_opportunity_above: float | None = None
    demand_change_percentage: float | None = Field(default=None, ge=0)
    competitor_price_delta_above: float | None = Field(default=None, ge=0)
    days_to_peak_below: int | None = Field(default=None, ge=0)
    potency_above: float | None = Field(default=None, ge=0)
    margin_below: float | None = Field(default=None, le=1)


class AlertRule(BaseModel):
    """A configured alert rule.

    ``type`` is a plain string so catalogs with unknown rule types still load;
    the evaluator skips and logs such rules instead of failing the batch.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1, description="Stable rule identifier")
    name: str = Field(..., min_length=1)
    type: str = Field(..., description="One of the AlertType values")
    severity: Severity
    priority: int = Field(default=5, ge=1, description="1 = highest priority")
    enabled: bool = True
    conditions: RuleConditions = Field(default_factory=RuleConditions)
    categories: list[str] | None = Field(
        default=None,
        description="Restrict the rule to these categories (None = all)",
    )
    delivery_methods: list[DeliveryMethod] = Field(default_factory=lambda: ["email"])
    frequency: Frequency = "daily"

    @field_validator("categories")
    @classmethod
    def normalise_categories(cls, v: list[str] | None) -> list[str] | None:
        """Category filters match case-insensitively."""
        if v is None:
            return None
        return [c.strip().lower() for c in v]


class RuleOverride(BaseModel):
    """Tenant-level changes to one rule; unset fields keep the default."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    rule_id: str = Field(..., min_length=1)
    enabled: bool | None = None
    severity: Severity | None = None
    priority: int | None = Field(default=None, ge=1)
    conditions: RuleConditions | None = None
    categories: list[str] | None = None


# =============================================================================
# Alerts
# =============================================================================


class AlertImpact(BaseModel):
    """Monetary and time impact of an alert."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    revenue_at_risk: float | None = None
    profit_opportunity: float | None = None
    time_to_critical_days: float | None = Field(default=None, ge=0)

    @property
    def total_value(self) -> float:
        """revenue_at_risk + profit_opportunity, missing values as zero."""
        return (self.revenue_at_risk or 0.0) + (self.profit_opportunity or 0.0)

    def is_finite(self) -> bool:
        """True when every supplied number is finite."""
        values = (self.revenue_at_risk, self.profit_opportunity, self.time_to_critical_days)
        return all(v is None or math.isfinite(v) for v in values)


class AlertData(BaseModel):
    """Snapshot of the metrics that triggered an alert."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    current_stock: float
    predicted_demand: int
    weeks_of_stock: float
    confidence: float
    trend: str


class Alert(BaseModel):
    """An actionable alert raised for one product by one rule."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    rule_id: str
    product_id: str
    category: str
    type: AlertType
    severity: Severity
    priority: int = Field(..., ge=1)
    title: str
    message: str
    action_required: str
    impact: AlertImpact
    data: AlertData
    urgency_score: int = Field(..., ge=1, le=10)
    created_at: datetime
    acknowledged: bool = False
    resolved: bool = False
    delivery_methods: list[str] = Field(default_factory=list)


class AlertSummary(BaseModel):
    """Aggregate view of a set of alerts."""

    total_alerts: int = Field(..., ge=0)
    critical_alerts: int = Field(..., ge=0)
    high_priority_alerts: int = Field(..., ge=0)
    by_severity: dict[str, int]
    by_type: dict[str, int]
    total_revenue_at_risk: int
    total_profit_opportunity: int
    most_urgent: Alert | None = None


# =============================================================================
# API Request/Response Schemas
# =============================================================================


class RuleCatalogResponse(BaseModel):
    """Response body for GET /alerts/rules."""

    rules: list[AlertRule]
    total: int = Field(..., ge=0)
    enabled: int = Field(..., ge=0)


class StoredAlertResponse(BaseModel):
    """A persisted alert as returned by the alerts API."""

    model_config = ConfigDict(from_attributes=True)

    alert_id: str
    analysis_id: str
    rule_id: str
    product_id: str
    category: str
    type: AlertType
    severity: Severity
    title: str
    message: str
    action_required: str
    impact: AlertImpact
    data: AlertData
    urgency_score: int
    acknowledged: bool
    acknowledged_at: datetime | None = None
    resolved: bool
    resolved_at: datetime | None = None
    created_at: datetime


class StoredAlertSummary(BaseModel):
    """Response body for GET /alerts/summary."""

    total_alerts: int = Field(..., ge=0)
    open_alerts: int = Field(..., ge=0)
    acknowledged_alerts: int = Field(..., ge=0)
    resolved_alerts: int = Field(..., ge=0)
    by_severity: dict[str, int]
    by_type: dict[str, int]
    open_revenue_at_risk: int
