"""Tests for forecasting routes."""

import pytest
from httpx import AsyncClient


def _payload(**overrides) -> dict:
    payload = {
        "product": {
            "product_id": "WINE-001",
            "category": "wine",
            "unit_price": 20.0,
            "weekly_sales_rate": 10.0,
            "inventory_level": 50.0,
            "cost_price": 11.0,
        },
        "history": [
            {"date": f"2024-01-{day:02d}", "units_sold": 10, "unit_price": 20.0}
            for day in range(1, 29, 7)
        ],
        "as_of": "2024-03-15",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
class TestForecastRoute:
    """Tests for POST /forecasting/forecast."""

    async def test_forecast(self, client: AsyncClient) -> None:
        """A valid request returns a forecast."""
        response = await client.post("/forecasting/forecast", json=_payload())

        assert response.status_code == 200
        data = response.json()
        assert data["forecast"]["product_id"] == "WINE-001"
        assert data["forecast"]["predicted_demand"] == 10
        assert data["forecast"]["trend"] == "stable"
        assert data["forecast"]["horizon_days"] == 30
        assert data["duration_ms"] >= 0

    async def test_empty_history_returns_fallback(self, client: AsyncClient) -> None:
        """Missing history is not an error."""
        response = await client.post("/forecasting/forecast", json=_payload(history=[]))

        assert response.status_code == 200
        forecast = response.json()["forecast"]
        assert forecast["is_fallback"] is True
        assert forecast["confidence_interval"]["confidence_level"] == 0.3

    async def test_missing_product_field(self, client: AsyncClient) -> None:
        """Shape violations return 422 problem details."""
        payload = _payload()
        del payload["product"]["unit_price"]

        response = await client.post("/forecasting/forecast", json=payload)

        assert response.status_code == 422
        assert response.headers["content-type"].startswith("application/problem+json")
        assert any(
            err["field"] == "product.unit_price" for err in response.json()["errors"]
        )
