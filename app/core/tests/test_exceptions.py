"""Tests for application exceptions and problem-details rendering."""

import json

import pytest

from app.core.exceptions import (
    BatchInputError,
    ConflictError,
    DatabaseError,
    InventoryIQError,
    NotFoundError,
    RuleCatalogError,
    inventoryiq_exception_handler,
)
from app.core.logging import request_id_ctx


class TestExceptionClasses:
    """Status codes and codes per exception type."""

    @pytest.mark.parametrize(
        ("exc", "status_code", "code"),
        [
            (NotFoundError(), 404, "NOT_FOUND"),
            (BatchInputError(), 400, "INVALID_BATCH_INPUT"),
            (ConflictError(), 409, "CONFLICT"),
            (RuleCatalogError(), 500, "RULE_CATALOG_ERROR"),
            (DatabaseError(), 500, "DATABASE_ERROR"),
        ],
    )
    def test_status_and_code(self, exc, status_code, code):
        assert isinstance(exc, InventoryIQError)
        assert exc.status_code == status_code
        assert exc.code == code

    def test_batch_input_error_carries_record(self):
        exc = BatchInputError("Duplicate product_id: A", record={"index": 1, "product_id": "A"})

        assert exc.details == {"record": {"index": 1, "product_id": "A"}}
        assert str(exc) == "Duplicate product_id: A"

    def test_title_from_code(self):
        assert NotFoundError().title == "Not Found"


@pytest.mark.asyncio
class TestExceptionHandler:
    """Tests for inventoryiq_exception_handler."""

    async def test_renders_problem_document(self):
        exc = BatchInputError("Duplicate product_id: A", record={"index": 1, "product_id": "A"})

        response = await inventoryiq_exception_handler(None, exc)

        assert response.status_code == 400
        assert response.media_type == "application/problem+json"
        body = json.loads(response.body)
        assert body["status"] == 400
        assert body["code"] == "INVALID_BATCH_INPUT"
        assert body["detail"] == "Duplicate product_id: A"
        assert body["errors"] == [{"record": {"index": 1, "product_id": "A"}}]

    async def test_includes_request_id(self):
        token = request_id_ctx.set("req-123")
        try:
            response = await inventoryiq_exception_handler(None, NotFoundError("Alert not found"))
        finally:
            request_id_ctx.reset(token)

        body = json.loads(response.body)
        assert body["request_id"] == "req-123"
        assert body["instance"] == "/requests/req-123"
        assert "errors" not in body
