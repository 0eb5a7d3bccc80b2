"""Tests for alerts API routes."""

from unittest.mock import AsyncMock, patch

from sqlalchemy.exc import OperationalError

from app.core.exceptions import ConflictError, NotFoundError
from app.features.alerting.persistence import AlertRepository
from app.features.alerting.schemas import StoredAlertResponse, StoredAlertSummary
from app.shared.schemas import PaginatedResponse


class TestListRules:
    """Tests for GET /alerts/rules."""

    async def test_default_catalog(self, client):
        """The built-in rules are returned with counts."""
        response = await client.get("/alerts/rules")

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 10
        assert body["enabled"] == 9
        assert body["rules"][0]["id"] == "critical-stockout"


class TestStoredAlerts:
    """Tests for the stored alert endpoints."""

    async def test_get_alert(self, mock_client):
        """A stored alert is returned by its external id."""
        response = await mock_client.get("/alerts/alert-000001")

        assert response.status_code == 200
        body = response.json()
        assert body["alert_id"] == "alert-000001"
        assert body["severity"] == "critical"
        assert body["impact"]["revenue_at_risk"] == 800.0

    async def test_get_missing_alert(self, mock_client, mock_db):
        """Unknown ids render a 404 problem document."""
        mock_db.execute.return_value.scalar_one_or_none.return_value = None

        response = await mock_client.get("/alerts/alert-missing")

        assert response.status_code == 404
        assert response.headers["content-type"].startswith("application/problem+json")
        assert response.json()["code"] == "NOT_FOUND"

    async def test_list_alerts_passes_filters(self, mock_client, stored_record):
        """Query parameters reach the repository."""
        page = PaginatedResponse[StoredAlertResponse](
            items=[StoredAlertResponse.model_validate(stored_record)],
            total=1,
            page=2,
            page_size=5,
            pages=1,
        )
        with patch.object(AlertRepository, "list_alerts", AsyncMock(return_value=page)) as mocked:
            response = await mock_client.get(
                "/alerts",
                params={"page": 2, "page_size": 5, "severity": "critical", "type": "stockout"},
            )

        assert response.status_code == 200
        assert response.json()["items"][0]["alert_id"] == "alert-000001"
        kwargs = mocked.await_args.kwargs
        assert kwargs["pagination"].page == 2
        assert kwargs["pagination"].page_size == 5
        assert kwargs["severity"].value == "critical"
        assert kwargs["alert_type"].value == "stockout"
        assert kwargs["resolved"] is None

    async def test_list_alerts_rejects_unknown_severity(self, mock_client):
        """Invalid enum filters are a 422."""
        response = await mock_client.get("/alerts", params={"severity": "urgent"})

        assert response.status_code == 422

    async def test_list_alerts_database_failure(self, mock_client):
        """Store failures surface as a 500 database error."""
        failure = OperationalError("SELECT 1", {}, Exception("connection refused"))
        with patch.object(AlertRepository, "list_alerts", AsyncMock(side_effect=failure)):
            response = await mock_client.get("/alerts")

        assert response.status_code == 500
        assert response.json()["code"] == "DATABASE_ERROR"

    async def test_summary(self, mock_client):
        """The summary endpoint returns stored alert counts."""
        summary = StoredAlertSummary(
            total_alerts=3,
            open_alerts=2,
            acknowledged_alerts=1,
            resolved_alerts=1,
            by_severity={"low": 0, "medium": 1, "high": 1, "critical": 1},
            by_type={"stockout": 3},
            open_revenue_at_risk=1600,
        )
        with patch.object(AlertRepository, "summary", AsyncMock(return_value=summary)):
            response = await mock_client.get("/alerts/summary")

        assert response.status_code == 200
        assert response.json()["open_alerts"] == 2

    async def test_acknowledge(self, mock_client):
        """Acknowledging returns the updated alert."""
        response = await mock_client.post("/alerts/alert-000001/acknowledge")

        assert response.status_code == 200
        body = response.json()
        assert body["acknowledged"] is True
        assert body["acknowledged_at"] is not None
        assert body["resolved"] is False

    async def test_resolve(self, mock_client):
        """Resolving returns the closed alert."""
        response = await mock_client.post("/alerts/alert-000001/resolve")

        assert response.status_code == 200
        body = response.json()
        assert body["resolved"] is True
        assert body["acknowledged"] is True

    async def test_resolve_conflict(self, mock_client):
        """Resolving twice is a 409."""
        with patch.object(
            AlertRepository,
            "resolve",
            AsyncMock(side_effect=ConflictError(message="Alert already resolved: alert-000001")),
        ):
            response = await mock_client.post("/alerts/alert-000001/resolve")

        assert response.status_code == 409

    async def test_acknowledge_missing(self, mock_client):
        """Acknowledging an unknown alert is a 404."""
        with patch.object(
            AlertRepository,
            "acknowledge",
            AsyncMock(side_effect=NotFoundError(message="Alert not found: nope")),
        ):
            response = await mock_client.post("/alerts/nope/acknowledge")

        assert response.status_code == 404
