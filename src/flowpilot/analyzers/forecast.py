"""
Cash Flow Forecaster — day-by-day projection of future account balance.

Combines the two learned signals into a forward balance trajectory:
1. **Recurring series** — every expected occurrence of bills, subscriptions,
   and paychecks inside the horizon.
2. **Discretionary spending** — a daily rate (historical average blended with
   learned patterns), scaled up on weekends.
3. **Risk alerts** — large upcoming expenses, low and negative balances.
4. **Overall confidence** — from the quality of the recurring series used.

No LLM needed — pure calendar arithmetic.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any

from flowpilot.analyzers.patterns import IncomePattern, SpendingPattern, predict_daily_spending
from flowpilot.analyzers.recurring import ConfidenceLevel, RecurringItem
from flowpilot.analyzers.stats import money
from flowpilot.dates import weekday_index
from flowpilot.models.financial import Transaction, coerce_transactions

logger = logging.getLogger("flowpilot.analyzers.forecast")

# Canonical step, in days, between occurrences of each frequency
FREQUENCY_DAYS: dict[str, int] = {
    "weekly": 7,
    "bi-weekly": 14,
    "semi-monthly": 15,
    "monthly": 30,
    "quarterly": 91,
    "yearly": 365,
    "irregular": 30,
}

DEFAULT_FREQUENCY_DAYS = 30

# Learned patterns are only trusted above this confidence
PATTERN_BLEND_MIN_CONFIDENCE = 0.3
PATTERN_BLEND_MAX_WEIGHT = 0.6


class ForecastTransactionType(str, Enum):
    RECURRING_INCOME = "recurring_income"
    RECURRING_EXPENSE = "recurring_expense"
    PROJECTED_SPENDING = "projected_spending"


class AlertType(str, Enum):
    LOW_BALANCE = "low_balance"
    NEGATIVE_BALANCE = "negative_balance"
    LARGE_EXPENSE = "large_expense"
    MISSED_INCOME = "missed_income"  # reserved; the simulator never emits it


class AlertSeverity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class ForecastTransaction:
    """An expected money movement on a forecast day."""

    name: str
    amount: float  # signed: positive = inflow
    type: ForecastTransactionType
    confidence: ConfidenceLevel
    category: str | None = None


@dataclass
class DailyForecast:
    date: date
    day_of_week: int  # 0 = Sunday
    projected_balance: float
    transactions: list[ForecastTransaction] = field(default_factory=list)
    is_low_balance: bool = False
    is_negative: bool = False


@dataclass
class CashFlowAlert:
    type: AlertType
    date: date
    message: str
    severity: AlertSeverity
    amount: float | None = None


@dataclass
class CashFlowForecast:
    """Complete forward projection."""

    start_date: date
    end_date: date
    current_balance: float
    projected_end_balance: float
    lowest_balance: float
    lowest_balance_date: date
    highest_balance: float
    highest_balance_date: date
    total_income: float
    total_expenses: float
    net_cash_flow: float
    daily_forecasts: list[DailyForecast] = field(default_factory=list)
    alerts: list[CashFlowAlert] = field(default_factory=list)
    confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM


@dataclass
class BreakdownItem:
    name: str
    amount: float


@dataclass
class ForecastBreakdown:
    """Where the projected money comes from and goes to."""

    income_total: float
    income_items: list[BreakdownItem]
    recurring_expense_total: float
    recurring_expense_items: list[BreakdownItem]
    discretionary_total: float
    daily_average: float
    net_change: float

    @property
    def discretionary_description(self) -> str:
        return f"Based on your average daily spending of ${self.daily_average:.2f}"


class ForecastSimulator:
    """Simulate a daily balance trajectory from recurring items and a spend rate."""

    @classmethod
    def simulate(
        cls,
        current_balance: float,
        recurring_items: list[RecurringItem],
        daily_spending_rate: float,
        forecast_days: int = 30,
        low_balance_threshold: float = 100.0,
        *,
        start_date: date | None = None,
        large_expense_threshold: float = 500.0,
        weekend_multiplier: float = 1.3,
        max_alerts: int = 10,
    ) -> CashFlowForecast:
        """Project balances for ``start_date`` through ``start_date + forecast_days``.

        Args:
            current_balance: Liquid balance on the start date.
            recurring_items: Detected series plus any projected income sources.
            daily_spending_rate: Expected discretionary spend per weekday.
            forecast_days: Horizon length; ``forecast_days + 1`` days are emitted.
            low_balance_threshold: Balances in ``[0, threshold)`` raise a warning.
            start_date: First forecast day; defaults to today.
            large_expense_threshold: Recurring expenses above this within the
                first week raise a warning.
            weekend_multiplier: Spend-rate multiplier for Saturday and Sunday.
            max_alerts: Alerts beyond this count are dropped in generation order.

        Returns:
            CashFlowForecast with one DailyForecast per day.
        """
        start = start_date or date.today()
        end = start + timedelta(days=forecast_days)

        schedule: dict[date, list[RecurringItem]] = {}
        for item in recurring_items:
            for occurrence in cls.occurrences_in_range(item, start, end):
                schedule.setdefault(occurrence, []).append(item)

        running = current_balance
        lowest, lowest_date = current_balance, start
        highest, highest_date = current_balance, start
        total_income = 0.0
        total_expenses = 0.0
        alerts: list[CashFlowAlert] = []
        seen_alerts: set[tuple[AlertType, date]] = set()
        days: list[DailyForecast] = []

        def add_alert(alert: CashFlowAlert) -> None:
            key = (alert.type, alert.date)
            if key not in seen_alerts:
                seen_alerts.add(key)
                alerts.append(alert)

        for day in range(forecast_days + 1):
            current = start + timedelta(days=day)
            dow = weekday_index(current)
            transactions: list[ForecastTransaction] = []

            for item in schedule.get(current, []):
                amount = item.average_amount
                if item.is_income:
                    running += amount
                    total_income += amount
                    transactions.append(
                        ForecastTransaction(
                            name=item.display_name,
                            amount=amount,
                            type=ForecastTransactionType.RECURRING_INCOME,
                            confidence=item.confidence,
                            category=item.category,
                        )
                    )
                    continue

                running -= amount
                total_expenses += amount
                transactions.append(
                    ForecastTransaction(
                        name=item.display_name,
                        amount=-amount,
                        type=ForecastTransactionType.RECURRING_EXPENSE,
                        confidence=item.confidence,
                        category=item.category,
                    )
                )
                if amount > large_expense_threshold and 0 < day <= 7:
                    add_alert(
                        CashFlowAlert(
                            type=AlertType.LARGE_EXPENSE,
                            date=current,
                            message=f"{item.display_name} (${amount:.2f}) coming up on {_format_day(current)}",
                            severity=AlertSeverity.WARNING,
                            amount=amount,
                        )
                    )

            if day > 0:
                multiplier = weekend_multiplier if dow in (0, 6) else 1.0
                projected = daily_spending_rate * multiplier
                running -= projected
                total_expenses += projected
                transactions.append(
                    ForecastTransaction(
                        name="Projected daily spending",
                        amount=-projected,
                        type=ForecastTransactionType.PROJECTED_SPENDING,
                        confidence=ConfidenceLevel.MEDIUM,
                    )
                )

            if running < lowest:
                lowest, lowest_date = running, current
            if running > highest:
                highest, highest_date = running, current

            is_negative = running < 0
            is_low = 0 <= running < low_balance_threshold

            if day > 0 and is_negative:
                add_alert(
                    CashFlowAlert(
                        type=AlertType.NEGATIVE_BALANCE,
                        date=current,
                        message=f"Projected negative balance of ${abs(running):.2f} on {_format_day(current)}",
                        severity=AlertSeverity.CRITICAL,
                        amount=running,
                    )
                )
            elif day > 0 and is_low:
                add_alert(
                    CashFlowAlert(
                        type=AlertType.LOW_BALANCE,
                        date=current,
                        message=f"Balance projected to drop to ${running:.2f} on {_format_day(current)}",
                        severity=AlertSeverity.WARNING,
                        amount=running,
                    )
                )

            days.append(
                DailyForecast(
                    date=current,
                    day_of_week=dow,
                    projected_balance=money(running),
                    transactions=transactions,
                    is_low_balance=is_low,
                    is_negative=is_negative,
                )
            )

        if len(alerts) > max_alerts:
            logger.debug("Dropping %d alerts beyond the cap of %d", len(alerts) - max_alerts, max_alerts)

        forecast = CashFlowForecast(
            start_date=start,
            end_date=end,
            current_balance=current_balance,
            projected_end_balance=money(running),
            lowest_balance=money(lowest),
            lowest_balance_date=lowest_date,
            highest_balance=money(highest),
            highest_balance_date=highest_date,
            total_income=money(total_income),
            total_expenses=money(total_expenses),
            net_cash_flow=money(total_income - total_expenses),
            daily_forecasts=days,
            alerts=alerts[:max_alerts],
            confidence=cls.overall_confidence(recurring_items),
        )
        logger.info(
            "Forecast %s..%s: %.2f -> %.2f (%d alerts, %s confidence)",
            start,
            end,
            current_balance,
            forecast.projected_end_balance,
            len(forecast.alerts),
            forecast.confidence.value,
        )
        return forecast

    @staticmethod
    def occurrences_in_range(item: RecurringItem, start: date, end: date) -> list[date]:
        """Expected dates of ``item`` within ``[start, end]``."""
        step = timedelta(days=FREQUENCY_DAYS.get(item.frequency.value, DEFAULT_FREQUENCY_DAYS))
        current = item.next_date
        while current < start:
            current += step

        occurrences: list[date] = []
        while current <= end:
            occurrences.append(current)
            current += step
        return occurrences

    @staticmethod
    def overall_confidence(items: list[RecurringItem]) -> ConfidenceLevel:
        total = len(items)
        high = sum(1 for i in items if i.confidence == ConfidenceLevel.HIGH)
        ratio = high / total if total else 0.0

        if ratio >= 0.7 and total >= 3:
            return ConfidenceLevel.HIGH
        if ratio < 0.3 or total < 2:
            return ConfidenceLevel.LOW
        return ConfidenceLevel.MEDIUM


def _format_day(d: date) -> str:
    return f"{d:%a, %b} {d.day}"


# ------------------------------------------------------------------ #
#  Spending rate                                                      #
# ------------------------------------------------------------------ #


def calculate_daily_spending_rate(
    transactions: Iterable[Transaction | Mapping[str, Any]],
    today: date,
    recurring_keys: Collection[str] = frozenset(),
    days_to_analyze: int = 30,
) -> float:
    """Average daily discretionary spend over the trailing window.

    Non-recurring outflows dated on or after ``today - days_to_analyze``
    are summed and divided by the window length.
    """
    cutoff = today - timedelta(days=days_to_analyze)
    total = sum(
        t.amount
        for t in coerce_transactions(transactions)
        if t.date >= cutoff and t.amount > 0 and t.identity_key not in recurring_keys
    )
    return total / days_to_analyze


def blend_spending_rate(
    base_rate: float,
    patterns: list[SpendingPattern],
    today: date,
    accuracy_adjustment: float = 1.0,
) -> float:
    """Blend the historical rate with a pattern-based prediction, then correct it."""
    rate = base_rate
    if patterns:
        prediction = predict_daily_spending(patterns, today)
        if prediction.confidence > PATTERN_BLEND_MIN_CONFIDENCE:
            weight = min(prediction.confidence, PATTERN_BLEND_MAX_WEIGHT)
            rate = rate * (1 - weight) + prediction.amount * weight
            logger.debug("Blended spending rate %.2f with pattern %.2f (w=%.2f)", base_rate, prediction.amount, weight)
    return rate * accuracy_adjustment


def income_patterns_as_recurring(patterns: Iterable[IncomePattern], today: date) -> list[RecurringItem]:
    """Project active income sources as recurring income items."""
    items: list[RecurringItem] = []
    for p in patterns:
        if p.next_expected is None or p.next_expected < today:
            continue
        if p.confidence_score >= 0.7:
            confidence = ConfidenceLevel.HIGH
        elif p.confidence_score >= 0.4:
            confidence = ConfidenceLevel.MEDIUM
        else:
            confidence = ConfidenceLevel.LOW
        items.append(
            RecurringItem(
                id=f"income-{p.source_name}",
                name=p.source_name,
                display_name=p.source_name,
                amount=p.average_amount,
                average_amount=p.average_amount,
                frequency=p.frequency,
                next_date=p.next_expected,
                last_date=p.last_occurrence,
                confidence=confidence,
                occurrences=p.occurrences_analyzed,
                is_income=True,
                category="Income",
            )
        )
    return items


# ------------------------------------------------------------------ #
#  Reporting                                                          #
# ------------------------------------------------------------------ #


def forecast_summary(forecast: CashFlowForecast, horizon_days: int = 30) -> str:
    """One-line narrative of the projected change."""
    if forecast.lowest_balance < 0:
        return (
            f"Warning: Your balance may go negative around {forecast.lowest_balance_date.isoformat()}. "
            "Consider adjusting spending."
        )

    change = forecast.projected_end_balance - forecast.current_balance
    pct = change / forecast.current_balance * 100 if forecast.current_balance else 0.0

    if change >= 0:
        return (
            f"Your balance is projected to increase by ${change:,.2f} ({pct:.1f}%) "
            f"over the next {horizon_days} days."
        )
    return (
        f"Your balance is projected to decrease by ${abs(change):,.2f} ({abs(pct):.1f}%) "
        f"over the next {horizon_days} days."
    )


def build_breakdown(forecast: CashFlowForecast, daily_rate: float) -> ForecastBreakdown:
    """Aggregate the forecast's transactions by source."""
    income: dict[str, float] = {}
    expenses: dict[str, float] = {}
    discretionary = 0.0

    for day in forecast.daily_forecasts:
        for tx in day.transactions:
            if tx.type == ForecastTransactionType.RECURRING_INCOME:
                income[tx.name] = income.get(tx.name, 0.0) + tx.amount
            elif tx.type == ForecastTransactionType.RECURRING_EXPENSE:
                expenses[tx.name] = expenses.get(tx.name, 0.0) + abs(tx.amount)
            else:
                discretionary += abs(tx.amount)

    def ranked(totals: dict[str, float]) -> list[BreakdownItem]:
        items = [BreakdownItem(name=name, amount=money(amount)) for name, amount in totals.items()]
        return sorted(items, key=lambda i: i.amount, reverse=True)

    return ForecastBreakdown(
        income_total=forecast.total_income,
        income_items=ranked(income),
        recurring_expense_total=money(forecast.total_expenses - discretionary),
        recurring_expense_items=ranked(expenses),
        discretionary_total=money(discretionary),
        daily_average=daily_rate,
        net_change=forecast.net_cash_flow,
    )


def generate_forecast(
    current_balance: float,
    recurring_items: list[RecurringItem],
    daily_spending_rate: float,
    forecast_days: int = 30,
    low_balance_threshold: float = 100.0,
) -> CashFlowForecast:
    """Quick forecast starting today."""
    return ForecastSimulator.simulate(
        current_balance,
        recurring_items,
        daily_spending_rate,
        forecast_days,
        low_balance_threshold,
    )
