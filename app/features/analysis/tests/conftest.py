"""Test fixtures for analysis module."""

from collections.abc import AsyncGenerator
from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.features.alerting.catalog import DEFAULT_ALERT_RULES
from app.features.alerting.service import SequentialAlertIdGenerator
from app.features.analysis.service import BatchAnalysisService
from app.features.forecasting.schemas import CompetitorPrice, HistoricalPoint, ProductSnapshot
from app.main import app

AS_OF = date(2024, 3, 15)
NOW = datetime(2024, 3, 15, 9, 0, tzinfo=UTC)


def weekly_history(units: float = 10.0, price: float = 20.0, weeks: int = 12) -> list[HistoricalPoint]:
    """Flat weekly history ending a week before AS_OF."""
    return [
        HistoricalPoint(
            date=AS_OF - timedelta(weeks=weeks - i),
            units_sold=units,
            unit_price=price,
        )
        for i in range(weeks)
    ]


@pytest.fixture
def service() -> BatchAnalysisService:
    """Batch service with default rules, sequential ids and fixed clocks."""
    return BatchAnalysisService(
        rules=DEFAULT_ALERT_RULES,
        id_generator=SequentialAlertIdGenerator(),
        clock=lambda: AS_OF,
        alert_clock=lambda: NOW,
    )


@pytest.fixture
def products() -> list[ProductSnapshot]:
    """Three products: low-stock wine, overpriced spirit, overstocked beer."""
    return [
        ProductSnapshot(
            product_id="WINE-LOW",
            category="wine",
            unit_price=20.0,
            weekly_sales_rate=10.0,
            inventory_level=5.0,
            cost_price=10.0,
        ),
        ProductSnapshot(
            product_id="SPIRIT-050",
            category="spirits",
            unit_price=50.0,
            weekly_sales_rate=10.0,
            inventory_level=50.0,
            cost_price=30.0,
        ),
        ProductSnapshot(
            product_id="BEER-OVER",
            category="beer",
            unit_price=20.0,
            weekly_sales_rate=10.0,
            inventory_level=140.0,
            cost_price=10.0,
        ),
    ]


@pytest.fixture
def histories() -> dict[str, list[HistoricalPoint]]:
    """Flat histories for the three products."""
    return {
        "WINE-LOW": weekly_history(),
        "SPIRIT-050": weekly_history(price=50.0),
        "BEER-OVER": weekly_history(),
    }


@pytest.fixture
def competitors() -> dict[str, list[CompetitorPrice]]:
    """Three rivals pricing the spirit around 40.00."""
    return {
        "SPIRIT-050": [
            CompetitorPrice(product_id="SPIRIT-050", competitor=f"Rival {i}", competitor_price=p)
            for i, p in enumerate((38.0, 40.0, 42.0), start=1)
        ]
    }


@pytest.fixture
def batch_payload(products, histories, competitors) -> dict:
    """JSON body for POST /analysis/batch."""
    return {
        "products": [p.model_dump(mode="json", exclude_none=True) for p in products],
        "histories": {
            pid: [h.model_dump(mode="json", exclude_none=True) for h in rows]
            for pid, rows in histories.items()
        },
        "competitors": {
            pid: [c.model_dump(mode="json") for c in rows] for pid, rows in competitors.items()
        },
        "options": {"as_of": AS_OF.isoformat()},
    }


@pytest.fixture
def mock_db() -> MagicMock:
    """AsyncSession stand-in for the alert store."""
    session = MagicMock(spec=AsyncSession)
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
async def mock_client(mock_db: MagicMock) -> AsyncGenerator[AsyncClient, None]:
    """Test client whose database dependency yields ``mock_db``."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
