"""Digest aggregation pipeline and its observability events."""

from __future__ import annotations

from .observability import (
    DigestEventLogger,
    DigestEventType,
    ErrorCategory,
    categorize_error,
)
from .pipeline import (
    OPEN_UNCLAIMED_OPTIONS,
    DigestPipeline,
    DigestPipelineConfig,
    DigestRunResult,
    distinct_projects,
)

__all__ = [
    "OPEN_UNCLAIMED_OPTIONS",
    "DigestEventLogger",
    "DigestEventType",
    "DigestPipeline",
    "DigestPipelineConfig",
    "DigestRunResult",
    "ErrorCategory",
    "categorize_error",
    "distinct_projects",
]
