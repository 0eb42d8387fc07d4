"""In-process ``ForecastStore`` backed by dictionaries."""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime

from flowpilot.analyzers.feedback import PatternCacheEntry
from flowpilot.analyzers.patterns import IncomePattern, PatternAnalysisResult, PatternType, SpendingPattern
from flowpilot.models.prediction import AccuracyMetrics, PredictionRecord

logger = logging.getLogger("flowpilot.storage.memory")

_PatternKey = tuple[PatternType, str, "str | None"]


class InMemoryForecastStore:
    """Thread-safe in-memory store, one namespace per user.

    Suitable for tests, the CLI, and single-process services. Nothing is
    persisted across restarts.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._spending: dict[str, dict[_PatternKey, SpendingPattern]] = {}
        self._income: dict[str, dict[str, IncomePattern]] = {}
        self._calculated_at: dict[str, datetime] = {}
        self._predictions: dict[str, dict[str, PredictionRecord]] = {}
        self._accuracy: dict[str, dict[tuple[str, date], AccuracyMetrics]] = {}

    # ------------------------------------------------------------------ #
    #  Patterns                                                           #
    # ------------------------------------------------------------------ #

    def get_patterns(self, user_id: str) -> PatternCacheEntry | None:
        with self._lock:
            return self._entry(user_id)

    def upsert_patterns(
        self,
        user_id: str,
        analysis: PatternAnalysisResult,
        calculated_at: datetime,
    ) -> PatternCacheEntry:
        with self._lock:
            spending = self._spending.setdefault(user_id, {})
            for p in analysis.spending_patterns:
                spending[(p.pattern_type, p.dimension_key, p.category)] = p

            income = self._income.setdefault(user_id, {})
            for i in analysis.income_patterns:
                income[i.source_name] = i

            self._calculated_at[user_id] = calculated_at
            logger.debug(
                "Stored %d spending / %d income patterns for %s",
                len(analysis.spending_patterns),
                len(analysis.income_patterns),
                user_id,
            )
            entry = self._entry(user_id)
            assert entry is not None
            return entry

    def _entry(self, user_id: str) -> PatternCacheEntry | None:
        if user_id not in self._calculated_at:
            return None
        return PatternCacheEntry(
            spending_patterns=list(self._spending.get(user_id, {}).values()),
            income_patterns=list(self._income.get(user_id, {}).values()),
            last_calculated_at=self._calculated_at[user_id],
        )

    # ------------------------------------------------------------------ #
    #  Predictions                                                        #
    # ------------------------------------------------------------------ #

    def get_pending_predictions(self, user_id: str, before: date, limit: int | None = None) -> list[PredictionRecord]:
        with self._lock:
            pending = sorted(
                (
                    p
                    for p in self._predictions.get(user_id, {}).values()
                    if p.prediction_date < before and not p.is_reconciled
                ),
                key=lambda p: p.prediction_date,
            )
        return pending[:limit] if limit is not None else pending

    def update_predictions(self, user_id: str, records: list[PredictionRecord]) -> None:
        with self._lock:
            stored = self._predictions.setdefault(user_id, {})
            for r in records:
                if r.id not in stored:
                    logger.warning("Ignoring update for unknown prediction %s", r.id)
                    continue
                stored[r.id] = r

    def insert_predictions(self, user_id: str, records: list[PredictionRecord]) -> None:
        with self._lock:
            stored = self._predictions.setdefault(user_id, {})
            for r in records:
                stored[r.id] = r

    def delete_predictions(self, user_id: str) -> int:
        with self._lock:
            removed = self._predictions.pop(user_id, {})
        return len(removed)

    def list_predictions(self, user_id: str) -> list[PredictionRecord]:
        with self._lock:
            records = list(self._predictions.get(user_id, {}).values())
        return sorted(records, key=lambda p: (p.prediction_date, p.created_at))

    # ------------------------------------------------------------------ #
    #  Accuracy                                                           #
    # ------------------------------------------------------------------ #

    def latest_accuracy(self, user_id: str) -> AccuracyMetrics | None:
        with self._lock:
            metrics = list(self._accuracy.get(user_id, {}).values())
        if not metrics:
            return None
        return max(metrics, key=lambda m: (m.period_start, m.created_at))

    def upsert_accuracy(self, user_id: str, metrics: AccuracyMetrics) -> None:
        with self._lock:
            self._accuracy.setdefault(user_id, {})[(metrics.period_type, metrics.period_start)] = metrics
