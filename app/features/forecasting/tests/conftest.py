"""Test fixtures for forecasting module."""

from datetime import date, timedelta

import numpy as np
import pytest

from app.features.forecasting.catalog import DEFAULT_FORECAST_CATALOG
from app.features.forecasting.schemas import (
    CompetitorPrice,
    HistoricalPoint,
    ProductSnapshot,
)
from app.features.forecasting.service import DemandForecaster

# Mid-March: spring, beer peak (May) is 60 days out, wine peak (Oct) 210
AS_OF = date(2024, 3, 15)


def make_history(
    units: list[float],
    price: float = 20.0,
    start: date = date(2023, 12, 22),
) -> list[HistoricalPoint]:
    """Weekly history with one point per entry in ``units``."""
    return [
        HistoricalPoint(
            date=start + timedelta(weeks=i),
            units_sold=u,
            unit_price=price,
            inventory_on_hand=u * 3,
        )
        for i, u in enumerate(units)
    ]


@pytest.fixture
def forecaster() -> DemandForecaster:
    """Forecaster pinned to a fixed as-of date."""
    return DemandForecaster(catalog=DEFAULT_FORECAST_CATALOG, clock=lambda: AS_OF)


@pytest.fixture
def wine_product() -> ProductSnapshot:
    """Wine SKU with five weeks of stock."""
    return ProductSnapshot(
        product_id="WINE-001",
        category="Wine",
        unit_price=20.0,
        weekly_sales_rate=10.0,
        inventory_level=50.0,
        cost_price=12.0,
        origin_country="UK",
    )


@pytest.fixture
def constant_history() -> list[HistoricalPoint]:
    """Twelve weeks of flat sales (10 units at 20.00)."""
    return make_history([10.0] * 12)


@pytest.fixture
def rising_history() -> list[HistoricalPoint]:
    """Twelve weeks of steadily rising sales."""
    return make_history([10.0 + 2 * i for i in range(12)])


@pytest.fixture
def three_competitors() -> list[CompetitorPrice]:
    """Competitor prices averaging 40.00."""
    return [
        CompetitorPrice(product_id="SPIRIT-050", competitor="Alpha", competitor_price=38.0),
        CompetitorPrice(product_id="SPIRIT-050", competitor="Beta", competitor_price=40.0),
        CompetitorPrice(product_id="SPIRIT-050", competitor="Gamma", competitor_price=42.0),
    ]


@pytest.fixture
def sample_time_series() -> np.ndarray:
    """Sequential values 1..20 for easy verification."""
    return np.arange(1, 21, dtype=np.float64)


@pytest.fixture
def history_factory():
    """Build weekly history from a list of unit counts."""
    return make_history
