"""
FlowPilot — Main orchestrator.

The FlowPilot class runs the forecast request pipeline: it refreshes learned
patterns when they are stale, reconciles past predictions against what
actually happened, detects recurring series, and simulates the balance
forward with the corrected spending rate.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from flowpilot.analyzers.feedback import AccuracyFeedbackLoop, PatternCacheEntry, accuracy_adjustment
from flowpilot.analyzers.forecast import (
    CashFlowForecast,
    ForecastBreakdown,
    ForecastSimulator,
    blend_spending_rate,
    build_breakdown,
    calculate_daily_spending_rate,
    forecast_summary,
    income_patterns_as_recurring,
)
from flowpilot.analyzers.patterns import Categorizer, PatternInsight, PatternLearningEngine
from flowpilot.analyzers.recurring import (
    RecurringItem,
    RecurringTransactionDetector,
    recurring_keys,
    upcoming_recurring,
)
from flowpilot.analyzers.stats import money
from flowpilot.config import FlowPilotConfig
from flowpilot.connectors.base import BaseConnector
from flowpilot.dates import add_months
from flowpilot.models.financial import AccountBalance, Transaction, coerce_transactions
from flowpilot.models.prediction import AccuracyMetrics
from flowpilot.storage import ForecastStore, InMemoryForecastStore

logger = logging.getLogger("flowpilot")


@dataclass
class LearningStatus:
    """How much the learned state influenced a forecast."""

    used_learned_patterns: bool = False
    patterns_count: int = 0
    income_sources_count: int = 0
    patterns_recomputed: bool = False
    predictions_reconciled: int = 0
    accuracy_adjustment: float | None = None  # None when no correction applied
    recent_accuracy: AccuracyMetrics | None = None


@dataclass
class ForecastReport:
    """Everything a caller needs to render a forecast."""

    forecast: CashFlowForecast
    summary: str
    daily_spending_rate: float
    recurring_items: list[RecurringItem]
    upcoming_recurring: list[RecurringItem]
    breakdown: ForecastBreakdown
    learning: LearningStatus
    insights: list[PatternInsight] = field(default_factory=list)
    balances: list[AccountBalance] = field(default_factory=list)


@dataclass
class FlowPilot:
    """Top-level orchestrator for the forecasting engine.

    Usage::

        from flowpilot import FlowPilot

        pilot = FlowPilot.from_config("flowpilot.yaml")
        report = pilot.forecast("user-1", transactions, balances)
        print(report.summary)

    State that must survive between requests (learned patterns, stored
    predictions, accuracy metrics) lives in ``store``.
    """

    config: FlowPilotConfig = field(default_factory=FlowPilotConfig)
    store: ForecastStore = field(default_factory=InMemoryForecastStore)
    categorize: Categorizer | None = None
    clock: Callable[[], datetime] = datetime.now

    @classmethod
    def from_config(
        cls,
        config_path: str | None = None,
        store: ForecastStore | None = None,
        **overrides: Any,
    ) -> FlowPilot:
        """Create a FlowPilot from a config file or keyword arguments."""
        config = FlowPilotConfig.load(config_path, **overrides)
        return cls(config=config, store=store or InMemoryForecastStore())

    def forecast(
        self,
        user_id: str,
        transactions: Iterable[Transaction | Mapping[str, Any]],
        balances: Iterable[AccountBalance] = (),
        *,
        current_balance: float | None = None,
        days: int | None = None,
        low_balance_threshold: float | None = None,
        store_predictions: bool = False,
        recalculate: bool = False,
    ) -> ForecastReport:
        """Run the full forecast pipeline for one user.

        Args:
            user_id: Namespace for stored patterns and predictions.
            transactions: Transaction history; only the trailing months
                configured in ``recurring.history_months`` are used.
            balances: Account balances; depository accounts are summed into
                the starting balance.
            current_balance: Explicit starting balance, overriding ``balances``.
            days: Forecast horizon; defaults to ``forecast.days``.
            low_balance_threshold: Defaults to ``forecast.low_balance_threshold``.
            store_predictions: Snapshot the first days of the forecast so they
                can be reconciled later.
            recalculate: Discard every stored prediction before forecasting.

        Returns:
            ForecastReport.

        Raises:
            DataError: If a transaction is malformed.
        """
        cfg = self.config
        now = self.clock()
        today = now.date()
        horizon = days if days is not None else cfg.forecast.days
        threshold = low_balance_threshold if low_balance_threshold is not None else cfg.forecast.low_balance_threshold
        balances = list(balances)

        if recalculate:
            removed = self.store.delete_predictions(user_id)
            logger.info("Recalculate requested: discarded %d stored predictions", removed)

        if current_balance is None:
            current_balance = sum(b.current_balance or 0.0 for b in balances if b.is_liquid)

        cutoff = add_months(today, -cfg.recurring.history_months)
        history = [t for t in coerce_transactions(transactions) if t.date >= cutoff]

        learning = LearningStatus()
        insights: list[PatternInsight] = []

        # Refresh learned patterns
        cache = self.store.get_patterns(user_id)
        if AccuracyFeedbackLoop.should_recompute(
            cache,
            len(history),
            now,
            ttl=timedelta(hours=cfg.learning.staleness_hours),
            min_transactions=cfg.learning.min_transactions,
        ):
            analysis = PatternLearningEngine.analyze(history, categorize=self.categorize)
            cache = self.store.upsert_patterns(user_id, analysis, now)
            learning.patterns_recomputed = True
            insights = analysis.insights

        # Compare past predictions to actuals
        pending = self.store.get_pending_predictions(user_id, today, cfg.forecast.reconcile_limit)
        if pending:
            updated = AccuracyFeedbackLoop.reconcile(pending, history, current_balance, today, recorded_at=now)
            self.store.update_predictions(user_id, updated)
            learning.predictions_reconciled = len(updated)
            self._refresh_accuracy(user_id, today)

        accuracy = self.store.latest_accuracy(user_id)
        adjustment = accuracy_adjustment(accuracy.mean_percentage_error if accuracy else None)

        # Recurring series plus projected income sources
        detected = RecurringTransactionDetector.detect(history, min_occurrences=cfg.recurring.min_occurrences)
        items = list(detected)
        if cache is not None:
            items.extend(income_patterns_as_recurring(cache.income_patterns, today))

        base_rate = calculate_daily_spending_rate(
            history,
            today,
            recurring_keys(detected),
            cfg.recurring.spending_window_days,
        )
        spending_patterns = cache.spending_patterns if cache is not None else []
        rate = blend_spending_rate(base_rate, spending_patterns, today, adjustment)

        forecast = ForecastSimulator.simulate(
            current_balance,
            items,
            rate,
            horizon,
            threshold,
            start_date=today,
            large_expense_threshold=cfg.forecast.large_expense_threshold,
            weekend_multiplier=cfg.forecast.weekend_multiplier,
            max_alerts=cfg.forecast.max_alerts,
        )

        if store_predictions and forecast.daily_forecasts:
            factors = {
                "used_learned_patterns": bool(spending_patterns),
                "accuracy_adjustment": adjustment,
                "daily_spending_rate": rate,
                "recurring_items_count": len(items),
            }
            records = AccuracyFeedbackLoop.snapshot_predictions(
                forecast, factors, days=cfg.forecast.snapshot_days, created_at=now
            )
            self.store.insert_predictions(user_id, records)
            logger.info("Stored %d prediction snapshots for %s", len(records), user_id)

        learning.used_learned_patterns = bool(spending_patterns)
        learning.patterns_count = len(spending_patterns)
        learning.income_sources_count = len(cache.income_patterns) if cache is not None else 0
        learning.accuracy_adjustment = adjustment if adjustment != 1.0 else None
        learning.recent_accuracy = accuracy

        return ForecastReport(
            forecast=forecast,
            summary=forecast_summary(forecast, horizon),
            daily_spending_rate=money(rate),
            recurring_items=items,
            upcoming_recurring=upcoming_recurring(items, today),
            breakdown=build_breakdown(forecast, rate),
            learning=learning,
            insights=insights,
            balances=[b for b in balances if b.is_liquid],
        )

    async def forecast_from(self, connector: BaseConnector, user_id: str, **kwargs: Any) -> ForecastReport:
        """Pull a dataset from ``connector`` and forecast it."""
        dataset = await connector.pull()
        logger.info("Pulled %d transactions from %s", len(dataset.transactions), dataset.source)
        return self.forecast(user_id, dataset.transactions, dataset.balances, **kwargs)

    def forecast_sync(self, connector: BaseConnector, user_id: str, **kwargs: Any) -> ForecastReport:
        """Synchronous wrapper around :meth:`forecast_from`."""
        return asyncio.run(self.forecast_from(connector, user_id, **kwargs))

    def learn(
        self,
        user_id: str,
        transactions: Iterable[Transaction | Mapping[str, Any]],
    ) -> PatternCacheEntry:
        """Force a pattern-learning pass regardless of staleness."""
        analysis = PatternLearningEngine.analyze(transactions, categorize=self.categorize)
        return self.store.upsert_patterns(user_id, analysis, self.clock())

    def _refresh_accuracy(self, user_id: str, today: date) -> AccuracyMetrics | None:
        metrics = AccuracyFeedbackLoop.calculate_accuracy(
            self.store.list_predictions(user_id),
            today,
            self.config.learning.accuracy_window_days,
        )
        if metrics is not None:
            self.store.upsert_accuracy(user_id, metrics)
            logger.info(
                "Prediction accuracy for %s: MPE %.1f%% over %d predictions",
                user_id,
                metrics.mean_percentage_error,
                metrics.predictions_count,
            )
        return metrics
