"""Category reference data used by the demand forecaster.

The catalog is an explicit, immutable configuration object handed to
``DemandForecaster`` at construction time. Tests and tenants substitute their
own catalog instead of patching module globals.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.config import Settings
from app.features.forecasting.schemas import Season


class SeasonalPattern(BaseModel):
    """Per-season demand multipliers and peak months for one category.

    Attributes:
        spring: Multiplier for March-May.
        summer: Multiplier for June-August.
        fall: Multiplier for September-November.
        winter: Multiplier for December-February.
        peak_months: Calendar months (1-12) of peak demand; the first entry
            marks the start of the peak.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    spring: float = Field(..., gt=0)
    summer: float = Field(..., gt=0)
    fall: float = Field(..., gt=0)
    winter: float = Field(..., gt=0)
    peak_months: tuple[int, ...] = Field(..., min_length=1)

    @field_validator("peak_months")
    @classmethod
    def validate_peak_months(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        """Ensure every peak month is a calendar month."""
        for month in v:
            if not 1 <= month <= 12:
                raise ValueError(f"peak month must be in 1..12, got {month}")
        return v

    def factor_for(self, season: Season) -> float:
        """Return the multiplier for a season."""
        factor: float = getattr(self, season.value)
        return factor


class ForecastCatalog(BaseModel):
    """Reference tables and tunables for forecasting.

    Attributes:
        seasonal_patterns: Seasonal multipliers keyed by category.
        category_elasticity: Default price elasticity keyed by category.
        category_growth_rates: Annual category growth rate keyed by category.
        perishable_categories: Categories treated as shelf-life-sensitive.
        domestic_origins: Origin countries that do not attract import duty.
        default_elasticity: Elasticity used for unknown categories.
        smoothing_alpha: Exponential smoothing factor.
        stable_slope_threshold: Absolute slope below which demand is stable.
        peak_window_days: Days before a peak that count as "approaching".
        peak_boost: Extra multiplier applied while approaching a peak.
        shelf_life_sensitive_days: Shelf life below which stock is perishable.
        assumed_margin: Profit margin applied to revenue changes.
        weeks_of_stock_epsilon: Floor for weekly sales in weeks-of-stock.
        growth_threshold: Growth rate separating growing/declining from stable.
        high_potency_threshold: Potency above which excise notes apply.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    seasonal_patterns: dict[str, SeasonalPattern]
    category_elasticity: dict[str, float]
    category_growth_rates: dict[str, float]
    perishable_categories: frozenset[str] = frozenset()
    domestic_origins: frozenset[str] = frozenset({"uk", "gb", "united kingdom"})
    default_elasticity: float = -0.5
    smoothing_alpha: float = Field(default=0.3, gt=0, le=1)
    stable_slope_threshold: float = Field(default=0.1, ge=0)
    peak_window_days: int = Field(default=60, ge=0)
    peak_boost: float = Field(default=1.1, gt=0)
    shelf_life_sensitive_days: int = Field(default=180, ge=0)
    assumed_margin: float = Field(default=0.35, ge=0, le=1)
    weeks_of_stock_epsilon: float = Field(default=0.1, gt=0)
    growth_threshold: float = Field(default=0.02, ge=0)
    high_potency_threshold: float = Field(default=40.0, ge=0)

    @property
    def known_categories(self) -> frozenset[str]:
        """All categories the catalog has reference data for."""
        return frozenset(
            set(self.seasonal_patterns)
            | set(self.category_elasticity)
            | set(self.category_growth_rates)
            | set(self.perishable_categories)
        )

    def pattern_for(self, category: str) -> SeasonalPattern | None:
        """Seasonal pattern for a category, or None if unknown."""
        return self.seasonal_patterns.get(category)

    def elasticity_for(self, category: str) -> float:
        """Default elasticity for a category."""
        return self.category_elasticity.get(category, self.default_elasticity)

    def growth_rate_for(self, category: str) -> float:
        """Annual growth rate for a category (0 when unknown)."""
        return self.category_growth_rates.get(category, 0.0)


DEFAULT_FORECAST_CATALOG = ForecastCatalog(
    seasonal_patterns={
        "beer": SeasonalPattern(
            spring=1.1, summer=1.4, fall=1.0, winter=0.8, peak_months=(5, 6, 7, 8)
        ),
        "wine": SeasonalPattern(
            spring=1.0, summer=1.1, fall=1.3, winter=1.4, peak_months=(10, 11, 12, 1)
        ),
        "spirits": SeasonalPattern(
            spring=0.9, summer=1.0, fall=1.2, winter=1.5, peak_months=(11, 12, 1)
        ),
        "rtd": SeasonalPattern(
            spring=1.2, summer=1.5, fall=1.0, winter=0.7, peak_months=(4, 5, 6, 7, 8, 9)
        ),
        "cider": SeasonalPattern(
            spring=1.0, summer=1.1, fall=1.4, winter=0.9, peak_months=(9, 10, 11)
        ),
    },
    category_elasticity={
        "beer": -0.8,
        "wine": -0.6,
        "spirits": -0.4,
        "rtd": -1.2,
        "cider": -0.9,
    },
    category_growth_rates={
        "beer": -0.02,
        "wine": 0.01,
        "spirits": 0.05,
        "rtd": 0.15,
        "cider": 0.03,
    },
    perishable_categories=frozenset({"beer", "cider", "rtd"}),
)


def catalog_from_settings(
    settings: Settings,
    base: ForecastCatalog = DEFAULT_FORECAST_CATALOG,
) -> ForecastCatalog:
    """Apply settings-level tunables on top of a base catalog.

    Args:
        settings: Application settings.
        base: Catalog providing the category reference tables.

    Returns:
        New catalog; ``base`` is left untouched.
    """
    return base.model_copy(
        update={
            "smoothing_alpha": settings.forecast_smoothing_alpha,
            "peak_window_days": settings.forecast_peak_window_days,
        }
    )
