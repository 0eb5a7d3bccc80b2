"""Seeded synthetic weekly sales history.

Used when a batch asks for history to be synthesized for products sent
without one. Each product gets its own generator seeded from the configured
seed and its product id, so output does not depend on worker scheduling.
"""

from __future__ import annotations

import random
from datetime import date, timedelta

from app.features.forecasting.catalog import ForecastCatalog
from app.features.forecasting.models import season_for_month
from app.features.forecasting.schemas import HistoricalPoint, ProductSnapshot
from app.shared.utils import round_half_up

DEFAULT_WEEKLY_SALES = 10.0
DEFAULT_PRICE = 20.0

HOLIDAY_FACTOR = 1.3
WEEKEND_FACTOR = 1.2


def is_holiday_period(day: date) -> bool:
    """Retail holiday windows (Christmas, New Year, late November, early
    July, late May and early September)."""
    month, dom = day.month, day.day
    return (
        (month == 12 and dom >= 15)
        or (month == 1 and dom <= 15)
        or (month == 11 and dom >= 20)
        or (month == 7 and dom <= 7)
        or (month == 5 and dom >= 25)
        or (month == 9 and dom <= 7)
    )


class SyntheticHistoryGenerator:
    """Generate a weekly sales history for one product.

    Units sold combine the category seasonal factor, a holiday boost, a
    Friday/Saturday boost, the category growth trend and +/-20% noise. Prices
    wobble within +/-2% of the current price.
    """

    def __init__(self, catalog: ForecastCatalog, seed: int = 42) -> None:
        """Initialize the generator.

        Args:
            catalog: Category reference data.
            seed: Base seed; combined with each product id.
        """
        self.catalog = catalog
        self.seed = seed

    def rng_for(self, product_id: str) -> random.Random:
        """Deterministic random source for one product."""
        return random.Random(f"{self.seed}:{product_id}")

    def generate(
        self,
        product: ProductSnapshot,
        as_of: date,
        weeks: int = 12,
    ) -> list[HistoricalPoint]:
        """Generate ``weeks + 1`` weekly points ending on ``as_of``.

        Args:
            product: Product snapshot.
            as_of: Date of the last point.
            weeks: Number of weeks back from ``as_of``.

        Returns:
            Chronological history.
        """
        rng = self.rng_for(product.product_id)
        weekly = product.weekly_sales_rate or DEFAULT_WEEKLY_SALES
        price = product.unit_price or DEFAULT_PRICE
        pattern = self.catalog.pattern_for(product.category)
        growth = self.catalog.growth_rate_for(product.category)

        history: list[HistoricalPoint] = []
        for i in range(weeks, -1, -1):
            day = as_of - timedelta(weeks=i)
            season = season_for_month(day.month)
            weekday = day.weekday()

            seasonal_factor = pattern.factor_for(season) if pattern else 1.0
            holiday = is_holiday_period(day)
            holiday_factor = HOLIDAY_FACTOR if holiday else 1.0
            weekend_factor = WEEKEND_FACTOR if weekday in (4, 5) else 1.0
            trend_factor = 1 + (weeks - i) * growth / 52
            noise = 0.8 + rng.random() * 0.4

            units = max(
                0,
                round_half_up(
                    weekly * seasonal_factor * holiday_factor * weekend_factor * trend_factor * noise
                ),
            )
            history.append(
                HistoricalPoint(
                    date=day,
                    units_sold=units,
                    unit_price=round(price * (0.98 + rng.random() * 0.04), 2),
                    inventory_on_hand=units * 3 + rng.random() * 30,
                    day_of_week=weekday,
                    month=day.month,
                    is_holiday=holiday,
                    is_weekend=weekday >= 5,
                    season=season,
                )
            )
        return history
