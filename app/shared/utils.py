"""Shared utility functions."""

import math

import structlog

from app.shared.schemas import PaginatedResponse, PaginationParams

logger = structlog.get_logger()


def paginate_response[T](
    items: list[T],
    total: int,
    pagination: PaginationParams,
) -> PaginatedResponse[T]:
    """Create a paginated response from items and total count.

    Args:
        items: List of items for the current page.
        total: Total count of all items.
        pagination: Pagination parameters used for the query.

    Returns:
        PaginatedResponse with computed page count.
    """
    pages = math.ceil(total / pagination.page_size) if total > 0 else 0
    return PaginatedResponse[T](
        items=items,
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
        pages=pages,
    )


def clamp_non_negative(value: float, field: str, floor: float = 0.0) -> float:
    """Clamp a numeric input to ``floor`` when negative or not finite.

    Used at the ingestion boundary so the numeric core never sees negative
    quantities, NaN or infinities.

    Args:
        value: Raw numeric input.
        field: Field name, for the log event.
        floor: Smallest accepted value.

    Returns:
        ``value`` unchanged when acceptable, otherwise ``floor``.
    """
    if math.isfinite(value) and value >= floor:
        return value
    logger.warning(
        "analysis.input_clamped",
        field=field,
        original=str(value),
        clamped_to=floor,
    )
    return floor


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties away from negative infinity.

    Python's ``round`` uses banker's rounding; forecast quantities need
    ``floor(x + 0.5)`` so 2.5 becomes 3.
    """
    return math.floor(value + 0.5)
