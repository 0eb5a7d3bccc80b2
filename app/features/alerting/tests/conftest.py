"""Test fixtures for alerting module."""

from collections.abc import AsyncGenerator
from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import get_settings
from app.core.database import Base, get_db
from app.features.alerting.catalog import DEFAULT_ALERT_RULES
from app.features.alerting.models import AlertRecord
from app.features.alerting.schemas import AlertRule, AlertType, RuleConditions, Severity
from app.features.alerting.service import RuleEvaluator, SequentialAlertIdGenerator
from app.features.forecasting.catalog import DEFAULT_FORECAST_CATALOG
from app.features.forecasting.schemas import HistoricalPoint, ProductSnapshot
from app.features.forecasting.service import DemandForecaster
from app.main import app

AS_OF = date(2024, 3, 15)
NOW = datetime(2024, 3, 15, 9, 0, tzinfo=UTC)


@pytest.fixture
def forecaster() -> DemandForecaster:
    """Forecaster pinned to mid-March."""
    return DemandForecaster(catalog=DEFAULT_FORECAST_CATALOG, clock=lambda: AS_OF)


@pytest.fixture
def steady_history() -> list[HistoricalPoint]:
    """Twelve weeks of 10 units at 20.00."""
    return [
        HistoricalPoint(date=date(2023, 12, 22) + timedelta(weeks=i), units_sold=10, unit_price=20.0)
        for i in range(12)
    ]


@pytest.fixture
def make_evaluator():
    """Build evaluators with sequential ids and a fixed clock."""

    def _make(rules=DEFAULT_ALERT_RULES, **kwargs) -> RuleEvaluator:
        kwargs.setdefault("id_generator", SequentialAlertIdGenerator())
        kwargs.setdefault("clock", lambda: NOW)
        return RuleEvaluator(rules, **kwargs)

    return _make


@pytest.fixture
def low_stock_product() -> ProductSnapshot:
    """Half a week of stock."""
    return ProductSnapshot(
        product_id="WINE-LOW",
        category="wine",
        unit_price=20.0,
        weekly_sales_rate=10.0,
        inventory_level=5.0,
        cost_price=10.0,
    )


@pytest.fixture
def perishable_overstock_product() -> ProductSnapshot:
    """Fourteen weeks of beer."""
    return ProductSnapshot(
        product_id="BEER-OVER",
        category="beer",
        unit_price=20.0,
        weekly_sales_rate=10.0,
        inventory_level=140.0,
        cost_price=10.0,
    )


@pytest.fixture
def overpriced_product() -> ProductSnapshot:
    """Spirit priced at 50.00 with five weeks of stock."""
    return ProductSnapshot(
        product_id="SPIRIT-050",
        category="spirits",
        unit_price=50.0,
        weekly_sales_rate=10.0,
        inventory_level=50.0,
        cost_price=30.0,
    )


@pytest.fixture
def critical_stockout_rule() -> AlertRule:
    """Critical stockout below one week of stock."""
    return AlertRule(
        id="critical-stockout",
        name="Critical Stockout",
        type=AlertType.STOCKOUT.value,
        severity=Severity.CRITICAL,
        priority=1,
        conditions=RuleConditions(weeks_of_stock_below=1),
    )


# =============================================================================
# Alert Store Fixtures
# =============================================================================


@pytest.fixture
def stored_record() -> AlertRecord:
    """An open stored alert, not yet attached to a session."""
    return AlertRecord(
        id=1,
        alert_id="alert-000001",
        analysis_id="test-analysis",
        rule_id="critical-stockout",
        product_id="WINE-LOW",
        category="wine",
        type="stockout",
        severity="critical",
        priority=1,
        title="CRITICAL: WINE-LOW stock critical",
        message="Only 0.5 weeks of stock remaining for WINE-LOW.",
        action_required="URGENT: Reorder immediately",
        impact={"revenue_at_risk": 800.0, "profit_opportunity": None, "time_to_critical_days": 3.5},
        data={
            "current_stock": 5.0,
            "predicted_demand": 10,
            "weeks_of_stock": 0.5,
            "confidence": 0.7667,
            "trend": "stable",
        },
        urgency_score=10,
        acknowledged=False,
        acknowledged_at=None,
        resolved=False,
        resolved_at=None,
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture
def mock_db(stored_record: AlertRecord) -> MagicMock:
    """AsyncSession stand-in whose lookups return ``stored_record``."""
    session = MagicMock(spec=AsyncSession)
    result = MagicMock()
    result.scalar_one_or_none.return_value = stored_record
    session.execute = AsyncMock(return_value=result)
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


# =============================================================================
# Database Fixtures for Integration Tests
# =============================================================================


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for integration tests.

    Creates tables if needed, provides a session, and cleans up test alerts
    (those with analysis_id starting with "test-").
    Requires PostgreSQL to be running (docker-compose up -d).
    """
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.execute(delete(AlertRecord).where(AlertRecord.analysis_id.like("test-%")))
            await session.commit()

    await engine.dispose()
