"""
Forecast store — persistence interface for learned patterns and predictions.

The engine never talks to a database directly. Callers hand it an object that
satisfies ``ForecastStore``; errors raised by the store propagate unchanged.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from flowpilot.analyzers.feedback import PatternCacheEntry
    from flowpilot.analyzers.patterns import PatternAnalysisResult
    from flowpilot.models.prediction import AccuracyMetrics, PredictionRecord


class ForecastStore(Protocol):
    """Protocol for per-user pattern, prediction, and accuracy storage."""

    def get_patterns(self, user_id: str) -> PatternCacheEntry | None:
        """Return cached patterns, or None if none were ever stored."""
        ...

    def upsert_patterns(
        self,
        user_id: str,
        analysis: PatternAnalysisResult,
        calculated_at: datetime,
    ) -> PatternCacheEntry:
        """Merge patterns keyed by (type, dimension, category) and income by source name."""
        ...

    def get_pending_predictions(self, user_id: str, before: date, limit: int | None = None) -> list[PredictionRecord]:
        """Unreconciled predictions dated before ``before``, oldest first."""
        ...

    def update_predictions(self, user_id: str, records: list[PredictionRecord]) -> None: ...

    def insert_predictions(self, user_id: str, records: list[PredictionRecord]) -> None: ...

    def delete_predictions(self, user_id: str) -> int:
        """Delete every prediction for the user; returns the number removed."""
        ...

    def list_predictions(self, user_id: str) -> list[PredictionRecord]: ...

    def latest_accuracy(self, user_id: str) -> AccuracyMetrics | None: ...

    def upsert_accuracy(self, user_id: str, metrics: AccuracyMetrics) -> None:
        """Store metrics keyed by (period type, period start)."""
        ...
