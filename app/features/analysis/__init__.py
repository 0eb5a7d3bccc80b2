"""Batch analysis: forecasts, ranked alerts and summaries for many products.

Exports:
    Schemas:
        - AnalysisOptions, BatchAnalysisRequest: Input
        - BatchAnalysisResult, BatchSummary: Output

    Service:
        - BatchAnalysisService: Fan out per-product work, rank alerts
        - product_insights, summarize_batch

    Synthetic:
        - SyntheticHistoryGenerator: Seeded weekly history
"""

from app.features.analysis.schemas import (
    AnalysisOptions,
    BatchAnalysisRequest,
    BatchAnalysisResponse,
    BatchAnalysisResult,
    BatchSummary,
)
from app.features.analysis.service import (
    BatchAnalysisService,
    product_insights,
    summarize_batch,
)
from app.features.analysis.synthetic import SyntheticHistoryGenerator

__all__ = [
    "AnalysisOptions",
    "BatchAnalysisRequest",
    "BatchAnalysisResponse",
    "BatchAnalysisResult",
    "BatchAnalysisService",
    "BatchSummary",
    "SyntheticHistoryGenerator",
    "product_insights",
    "summarize_batch",
]
