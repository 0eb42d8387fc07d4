"""
Recurring Transaction Detector — find subscriptions, bills, and paychecks.

Groups a transaction history by counterparty and keeps the groups that
repeat at a stable interval:
1. **Grouping** — by normalized display/merchant name.
2. **Periodicity** — mean day-gap mapped to weekly ... yearly buckets.
3. **Consistency** — amount CV < 0.2 and gap std-dev < 10 days.
4. **Confidence** — high / medium / low from consistency and sample size.

No LLM needed — pure statistics over the transaction list.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from flowpilot.analyzers.stats import mean, population_std, round_half_up
from flowpilot.models.financial import Transaction, coerce_transactions

if TYPE_CHECKING:
    from flowpilot.analyzers.patterns import IncomeFrequency

logger = logging.getLogger("flowpilot.analyzers.recurring")


class RecurringFrequency(str, Enum):
    """How often a recurring series repeats."""

    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class ConfidenceLevel(str, Enum):
    """Coarse confidence bucket."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Upper bound (inclusive) of the average gap, in days, for each bucket
_FREQUENCY_BOUNDS: tuple[tuple[float, RecurringFrequency], ...] = (
    (10, RecurringFrequency.WEEKLY),
    (20, RecurringFrequency.BI_WEEKLY),
    (40, RecurringFrequency.MONTHLY),
    (100, RecurringFrequency.QUARTERLY),
    (400, RecurringFrequency.YEARLY),
)

_YEARLY_MULTIPLIER: dict[str, int] = {
    "weekly": 52,
    "bi-weekly": 26,
    "semi-monthly": 24,
    "monthly": 12,
    "quarterly": 4,
    "yearly": 1,
}

_FREQUENCY_LABELS: dict[RecurringFrequency, str] = {
    RecurringFrequency.WEEKLY: "Weekly",
    RecurringFrequency.BI_WEEKLY: "Every 2 weeks",
    RecurringFrequency.MONTHLY: "Monthly",
    RecurringFrequency.QUARTERLY: "Quarterly",
    RecurringFrequency.YEARLY: "Yearly",
}


@dataclass
class RecurringItem:
    """A transaction series judged to repeat at a stable interval."""

    id: str
    name: str
    display_name: str
    amount: float  # absolute amount of the most recent occurrence
    average_amount: float
    frequency: RecurringFrequency | IncomeFrequency
    next_date: date
    last_date: date | None
    confidence: ConfidenceLevel
    occurrences: int
    is_income: bool
    category: str | None = None
    account_id: str | None = None


class RecurringTransactionDetector:
    """Classify a transaction history into recurring series."""

    AMOUNT_CV_LIMIT = 0.2
    INTERVAL_STD_LIMIT_DAYS = 10.0

    @classmethod
    def detect(
        cls,
        transactions: Iterable[Transaction | Mapping[str, Any]],
        *,
        min_occurrences: int = 2,
    ) -> list[RecurringItem]:
        """Detect recurring series.

        Args:
            transactions: History to scan, typically the trailing 12 months.
            min_occurrences: Groups smaller than this are ignored (never below 2).

        Returns:
            RecurringItems sorted by next expected date.
        """
        txns = coerce_transactions(transactions)
        floor = max(2, min_occurrences)

        groups: dict[str, list[Transaction]] = {}
        for t in txns:
            groups.setdefault(t.identity_key, []).append(t)

        items: list[RecurringItem] = []
        for key, group in groups.items():
            if len(group) < floor:
                continue
            item = cls._classify_group(group)
            if item is None:
                logger.debug("Group %r has no stable periodicity", key)
                continue
            items.append(item)

        items.sort(key=lambda i: i.next_date)
        logger.info("Detected %d recurring series from %d transactions", len(items), len(txns))
        return items

    @classmethod
    def _classify_group(cls, group: list[Transaction]) -> RecurringItem | None:
        ordered = sorted(group, key=lambda t: t.date)
        n = len(ordered)

        # Same-day duplicates yield zero gaps and pull the average down.
        gaps = [float((b.date - a.date).days) for a, b in zip(ordered, ordered[1:])]
        avg_interval = mean(gaps)

        amounts = [abs(t.amount) for t in ordered]
        avg_amount = mean(amounts)
        amount_cv = population_std(amounts) / avg_amount if avg_amount > 0 else 0.0
        amount_consistent = amount_cv < cls.AMOUNT_CV_LIMIT
        interval_consistent = population_std(gaps) < cls.INTERVAL_STD_LIMIT_DAYS

        frequency = cls.frequency_for_interval(avg_interval)
        if frequency is None:
            return None

        if amount_consistent and interval_consistent and n >= 3:
            confidence = ConfidenceLevel.HIGH
        elif (amount_consistent or interval_consistent) and n >= 3:
            confidence = ConfidenceLevel.MEDIUM
        elif n >= 4:
            confidence = ConfidenceLevel.MEDIUM
        else:
            confidence = ConfidenceLevel.LOW

        if confidence == ConfidenceLevel.LOW and n < 4:
            return None

        first, last = ordered[0], ordered[-1]
        return RecurringItem(
            id=first.id or first.identity_key,
            name=first.name or first.label,
            display_name=first.label,
            amount=abs(last.amount),
            average_amount=avg_amount,
            frequency=frequency,
            next_date=last.date + timedelta(days=round_half_up(avg_interval)),
            last_date=last.date,
            confidence=confidence,
            occurrences=n,
            is_income=first.is_income or last.amount < 0,
            category=first.category,
            account_id=first.account_id,
        )

    @staticmethod
    def frequency_for_interval(avg_days: float) -> RecurringFrequency | None:
        """Map an average gap in days to a frequency bucket, or None if out of range."""
        for upper, frequency in _FREQUENCY_BOUNDS:
            if avg_days <= upper:
                return frequency
        return None


# ------------------------------------------------------------------ #
#  Helpers for callers                                                #
# ------------------------------------------------------------------ #


def yearly_cost(item: RecurringItem) -> float:
    """Annualized cost of a recurring series based on its average amount."""
    multiplier = _YEARLY_MULTIPLIER.get(item.frequency.value, 12)
    return item.average_amount * multiplier


def format_frequency(frequency: RecurringFrequency) -> str:
    return _FREQUENCY_LABELS[frequency]


def recurring_keys(items: Iterable[RecurringItem]) -> set[str]:
    """Identity keys of the series explained by recurring items.

    A transaction is recurring when ``t.identity_key`` is in this set.
    """
    return {item.display_name.lower().strip() for item in items}


def mark_recurring(
    transactions: Iterable[Transaction | Mapping[str, Any]],
    items: Iterable[RecurringItem],
) -> set[str]:
    """Ids of the transactions that belong to one of the recurring series."""
    keys = recurring_keys(items)
    return {t.id for t in coerce_transactions(transactions) if t.id and t.identity_key in keys}


def upcoming_recurring(
    items: Iterable[RecurringItem],
    today: date,
    days: int = 7,
) -> list[RecurringItem]:
    """Recurring items expected within the next ``days`` days, soonest first."""
    horizon = today + timedelta(days=days)
    upcoming = [i for i in items if today <= i.next_date <= horizon]
    return sorted(upcoming, key=lambda i: i.next_date)


def detect_recurring(
    transactions: Iterable[Transaction | Mapping[str, Any]],
    min_occurrences: int = 2,
) -> list[RecurringItem]:
    """Quick recurring-series detection."""
    return RecurringTransactionDetector.detect(transactions, min_occurrences=min_occurrences)
