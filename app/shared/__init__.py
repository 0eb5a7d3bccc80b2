"""Shared utilities used across features."""

from app.shared.models import TimestampMixin
from app.shared.schemas import PaginatedResponse, PaginationParams
from app.shared.utils import clamp_non_negative, paginate_response, round_half_up

__all__ = [
    "PaginatedResponse",
    "PaginationParams",
    "TimestampMixin",
    "clamp_non_negative",
    "paginate_response",
    "round_half_up",
]
