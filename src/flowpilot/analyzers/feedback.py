"""
Accuracy Feedback Loop — compare past predictions to what actually happened.

Closes the forecasting loop:
1. **Staleness** — decides when learned patterns must be recomputed.
2. **Reconciliation** — back-fills stored predictions with realized balances,
   income, and expenses, and records the variance.
3. **Accuracy metrics** — MAE, mean percentage error, RMSE, and direction
   accuracy over a trailing window.
4. **Correction** — turns the mean percentage error into a multiplier on the
   discretionary spending rate.
5. **Snapshots** — stores the first week of a forecast for later comparison.

All functions take the current time as an argument; nothing reads the clock.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

from flowpilot.analyzers.forecast import CashFlowForecast, ForecastTransactionType
from flowpilot.analyzers.patterns import IncomePattern, SpendingPattern
from flowpilot.analyzers.recurring import ConfidenceLevel
from flowpilot.models.financial import Transaction, coerce_transactions
from flowpilot.models.prediction import AccuracyMetrics, PredictionRecord

logger = logging.getLogger("flowpilot.analyzers.feedback")

STALENESS_TTL = timedelta(hours=24)
MIN_TRANSACTIONS_FOR_LEARNING = 10
MIN_PREDICTIONS_FOR_ACCURACY = 3
SNAPSHOT_DAYS = 7

# Mean percentage error (as a fraction) below which no correction is applied
_CORRECTION_THRESHOLD = 0.10
_CORRECTION_STRENGTH = 0.5

_SNAPSHOT_CONFIDENCE: dict[ConfidenceLevel, float] = {
    ConfidenceLevel.HIGH: 0.8,
    ConfidenceLevel.MEDIUM: 0.5,
    ConfidenceLevel.LOW: 0.3,
}


@dataclass
class PatternCacheEntry:
    """Learned patterns for one user and when they were computed."""

    spending_patterns: list[SpendingPattern] = field(default_factory=list)
    income_patterns: list[IncomePattern] = field(default_factory=list)
    last_calculated_at: datetime | None = None


def _as_utc(value: datetime) -> datetime:
    # naive timestamps are taken to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_stale(now: datetime, last_calculated_at: datetime | None, ttl: timedelta = STALENESS_TTL) -> bool:
    """True when patterns were never computed or are older than ``ttl``.

    Naive and timezone-aware values may be mixed; naive ones are read as UTC.
    """
    if last_calculated_at is None:
        return True
    return _as_utc(now) - _as_utc(last_calculated_at) > ttl


def compute_variance(predicted: float, actual: float) -> tuple[float, float]:
    """Return ``(actual - predicted, percent of |predicted|)``; 0% when predicted is 0."""
    variance = actual - predicted
    pct = variance / abs(predicted) * 100 if predicted != 0 else 0.0
    return variance, pct


def accuracy_adjustment(mean_percentage_error: float | None) -> float:
    """Spending-rate multiplier from historical prediction error.

    Errors above 10% are half-corrected; anything smaller is left alone.
    """
    if not mean_percentage_error:
        return 1.0
    error = mean_percentage_error / 100
    if error > _CORRECTION_THRESHOLD:
        return 1 + error * _CORRECTION_STRENGTH
    return 1.0


class AccuracyFeedbackLoop:
    """Reconcile predictions, score them, and decide when to relearn."""

    @staticmethod
    def should_recompute(
        cache: PatternCacheEntry | None,
        transaction_count: int,
        now: datetime,
        *,
        ttl: timedelta = STALENESS_TTL,
        min_transactions: int = MIN_TRANSACTIONS_FOR_LEARNING,
    ) -> bool:
        """Relearn when the cache is missing, empty, or stale, and there is enough history."""
        needs_update = cache is None or not cache.spending_patterns or is_stale(now, cache.last_calculated_at, ttl)
        return needs_update and transaction_count >= min_transactions

    @staticmethod
    def reconcile(
        predictions: Iterable[PredictionRecord],
        transactions: Iterable[Transaction | Mapping[str, Any]],
        current_balance: float,
        today: date,
        *,
        limit: int | None = None,
        recorded_at: datetime | None = None,
    ) -> list[PredictionRecord]:
        """Back-fill past, unreconciled predictions with realized figures.

        Balances are estimated by walking backwards from ``current_balance``:
        each day's realized expenses are added back and its income removed.

        Args:
            predictions: Stored predictions; only those dated before ``today``
                without an actual balance are touched.
            transactions: Realized transactions covering the prediction dates.
            current_balance: Today's liquid balance.
            today: Reconciliation date.
            limit: Reconcile at most this many (oldest first).
            recorded_at: Timestamp stored as ``actual_recorded_at``.

        Returns:
            Updated copies, newest first. The inputs are not modified.
        """
        pending = sorted(
            (p for p in predictions if p.prediction_date < today and not p.is_reconciled),
            key=lambda p: p.prediction_date,
        )
        if limit is not None:
            pending = pending[:limit]
        if not pending:
            return []

        wanted = {p.prediction_date for p in pending}
        actuals: dict[date, tuple[float, float]] = {}
        for t in coerce_transactions(transactions):
            if t.date not in wanted:
                continue
            income, expenses = actuals.get(t.date, (0.0, 0.0))
            if t.is_inflow:
                income += abs(t.amount)
            else:
                expenses += t.amount
            actuals[t.date] = (income, expenses)

        stamp = recorded_at or datetime.now()
        running = current_balance
        updated: list[PredictionRecord] = []
        for p in sorted(pending, key=lambda p: p.prediction_date, reverse=True):
            income, expenses = actuals.get(p.prediction_date, (0.0, 0.0))
            actual_balance = running
            running = running + expenses - income

            variance, pct = compute_variance(p.predicted_balance, actual_balance)
            updated.append(
                p.model_copy(
                    update={
                        "actual_balance": actual_balance,
                        "actual_income": income,
                        "actual_expenses": expenses,
                        "actual_recorded_at": stamp,
                        "variance_amount": variance,
                        "variance_percentage": pct,
                    }
                )
            )

        logger.info("Reconciled %d predictions against actuals", len(updated))
        return updated

    @staticmethod
    def calculate_accuracy(
        predictions: Iterable[PredictionRecord],
        today: date,
        window_days: int = 30,
    ) -> AccuracyMetrics | None:
        """Aggregate accuracy over reconciled predictions in the trailing window.

        Returns None with fewer than three reconciled predictions.
        """
        start = today - timedelta(days=window_days)
        scored = sorted(
            (p for p in predictions if p.is_reconciled and p.prediction_date >= start),
            key=lambda p: p.prediction_date,
        )
        if len(scored) < MIN_PREDICTIONS_FOR_ACCURACY:
            logger.debug("Only %d reconciled predictions; skipping accuracy", len(scored))
            return None

        errors = [abs(p.variance_amount or 0.0) for p in scored]
        pct_errors = [abs(p.variance_percentage or 0.0) for p in scored]

        correct = 0
        for prev, cur in zip(scored, scored[1:]):
            predicted_change = cur.predicted_balance - prev.predicted_balance
            actual_change = (cur.actual_balance or 0.0) - (prev.actual_balance or 0.0)
            if (predicted_change >= 0) == (actual_change >= 0):
                correct += 1

        return AccuracyMetrics(
            period_type="monthly",
            period_start=start,
            period_end=today,
            mean_absolute_error=sum(errors) / len(errors),
            mean_percentage_error=sum(pct_errors) / len(pct_errors),
            root_mean_square_error=math.sqrt(sum(e * e for e in errors) / len(errors)),
            predictions_count=len(scored),
            direction_accuracy=correct / (len(scored) - 1),
        )

    @staticmethod
    def snapshot_predictions(
        forecast: CashFlowForecast,
        factors: dict[str, Any] | None = None,
        days: int = SNAPSHOT_DAYS,
        created_at: datetime | None = None,
    ) -> list[PredictionRecord]:
        """Turn the first ``days`` forecast days into prediction records."""
        confidence = _SNAPSHOT_CONFIDENCE[forecast.confidence]
        stamp = created_at or datetime.now()
        records: list[PredictionRecord] = []

        for day in forecast.daily_forecasts[:days]:
            by_type: dict[ForecastTransactionType, float] = {t: 0.0 for t in ForecastTransactionType}
            for tx in day.transactions:
                by_type[tx.type] += abs(tx.amount)

            records.append(
                PredictionRecord(
                    prediction_date=day.date,
                    created_at=stamp,
                    predicted_balance=day.projected_balance,
                    predicted_income=by_type[ForecastTransactionType.RECURRING_INCOME],
                    predicted_expenses=(
                        by_type[ForecastTransactionType.RECURRING_EXPENSE]
                        + by_type[ForecastTransactionType.PROJECTED_SPENDING]
                    ),
                    predicted_recurring=by_type[ForecastTransactionType.RECURRING_EXPENSE],
                    predicted_discretionary=by_type[ForecastTransactionType.PROJECTED_SPENDING],
                    confidence_score=confidence,
                    prediction_factors=dict(factors or {}),
                )
            )
        return records


def reconcile(
    predictions: Iterable[PredictionRecord],
    transactions: Iterable[Transaction | Mapping[str, Any]],
    current_balance: float,
    today: date,
    limit: int | None = None,
) -> list[PredictionRecord]:
    """Quick reconciliation stamped with the current time."""
    return AccuracyFeedbackLoop.reconcile(predictions, transactions, current_balance, today, limit=limit)
