"""
Pattern Learning Engine — learn how a household earns and spends over time.

Extracts, from long-range transaction history:
1. **Temporal spending patterns** — by weekday, week of month, calendar month,
   and season.
2. **Category patterns** — daily and monthly totals per spending category.
3. **Income patterns** — pay sources, their cadence, typical pay days, and
   how much they vary.
4. **Insights** — ranked, human-readable observations about the above.

Every pattern carries a confidence score in [0, 1] that rewards sample
volume, consistency, and length of history independently::

    confidence = clamp01(min(n/10, 0.4) + max(0, 0.3 - CV*0.3) + min(months/12, 0.3))

Buckets below their minimum sample floor are omitted rather than reported
with low confidence. The engine is a pure function of its input: the same
transaction list always yields the same patterns in the same order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any

from flowpilot.analyzers.stats import round_half_up, summarize
from flowpilot.dates import (
    MONTH_NAMES,
    WEEKDAY_NAMES,
    add_months,
    month_name,
    season,
    week_of_month,
    weekday_index,
    weekday_name,
)
from flowpilot.models.financial import Transaction, coerce_transactions

logger = logging.getLogger("flowpilot.analyzers.patterns")


class PatternType(str, Enum):
    """Dimension a spending pattern is bucketed by."""

    DAY_OF_WEEK = "day_of_week"
    WEEK_OF_MONTH = "week_of_month"
    MONTH_OF_YEAR = "month_of_year"
    CATEGORY_DAILY = "category_daily"
    CATEGORY_MONTHLY = "category_monthly"
    SEASONAL = "seasonal"


class IncomeSourceType(str, Enum):
    SALARY = "salary"
    FREELANCE = "freelance"
    INVESTMENT = "investment"
    TRANSFER = "transfer"
    OTHER = "other"


class IncomeFrequency(str, Enum):
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    SEMI_MONTHLY = "semi-monthly"
    MONTHLY = "monthly"
    IRREGULAR = "irregular"


class InsightType(str, Enum):
    PATTERN_DISCOVERED = "pattern_discovered"
    ANOMALY_DETECTED = "anomaly_detected"
    RECOMMENDATION = "recommendation"


# Minimum samples before a bucket is emitted
TEMPORAL_MIN_SAMPLES = 3
CATEGORY_MIN_TRANSACTIONS = 5
AGGREGATE_MIN_SAMPLES = 2
SEASONAL_MIN_MONTHS = 6
INCOME_MIN_OCCURRENCES = 2

MAX_INSIGHTS = 10

# Relative weights when blending patterns into a daily prediction
_DAY_WEIGHT = 0.30
_WEEK_WEIGHT = 0.25
_MONTH_WEIGHT = 0.25
_SEASON_WEIGHT = 0.20
_CATEGORY_WEIGHT = 0.40
_DAYS_PER_MONTH = 30


@dataclass
class SpendingPattern:
    """Summary statistics of spending in one bucket."""

    pattern_type: PatternType
    dimension_key: str  # "monday", "week_1", "december", "daily", "winter"
    category: str | None
    average_amount: float
    median_amount: float
    std_deviation: float
    min_amount: float
    max_amount: float
    occurrence_count: int
    confidence_score: float
    weight: float
    data_points_used: int
    months_of_data: int


@dataclass
class IncomePattern:
    """Cadence and size of one income source."""

    source_name: str
    source_type: IncomeSourceType
    typical_days_of_month: list[int]
    typical_day_of_week: int | None  # 0 = Sunday; only set for weekly income
    frequency: IncomeFrequency
    average_amount: float
    min_amount: float
    max_amount: float
    variability: float  # std-dev / mean
    confidence_score: float
    occurrences_analyzed: int
    last_occurrence: date | None
    next_expected: date | None


@dataclass
class PatternInsight:
    """A human-readable observation about the learned patterns."""

    type: InsightType
    title: str
    description: str
    impact_score: float
    actionable: bool
    category: str | None = None


@dataclass
class DataQuality:
    total_transactions: int = 0
    months_of_data: int = 0
    category_coverage: float = 0.0
    data_completeness: float = 0.0


@dataclass
class PatternAnalysisResult:
    """Complete output of one learning pass."""

    spending_patterns: list[SpendingPattern] = field(default_factory=list)
    income_patterns: list[IncomePattern] = field(default_factory=list)
    insights: list[PatternInsight] = field(default_factory=list)
    data_quality: DataQuality = field(default_factory=DataQuality)


@dataclass(frozen=True)
class DailySpendingPrediction:
    amount: float
    confidence: float


Categorizer = Callable[[Transaction], "str | None"]
SourceClassifier = Callable[[str], IncomeSourceType]


def calculate_confidence(
    occurrence_count: int,
    std_dev: float,
    average: float,
    months_of_data: int,
) -> float:
    """Additive confidence score clamped to [0, 1]."""
    confidence = min(occurrence_count / 10, 0.4)

    cv = std_dev / average if average > 0 else 1.0
    confidence += max(0.0, 0.3 - cv * 0.3)

    confidence += min(months_of_data / 12, 0.3)

    return min(max(confidence, 0.0), 1.0)


def classify_income_source(source_name: str) -> IncomeSourceType:
    """Keyword-based income source classification."""
    name = source_name.lower()
    if "payroll" in name or "salary" in name or "direct dep" in name:
        return IncomeSourceType.SALARY
    if "venmo" in name or "paypal" in name or "zelle" in name:
        return IncomeSourceType.TRANSFER
    if "dividend" in name or "interest" in name:
        return IncomeSourceType.INVESTMENT
    return IncomeSourceType.OTHER


class PatternLearningEngine:
    """Learn spending and income patterns from transaction history.

    Usage::

        result = PatternLearningEngine.analyze(transactions)
        for p in result.spending_patterns:
            print(p.pattern_type.value, p.dimension_key, p.average_amount)

        tomorrow = PatternLearningEngine.predict_daily_spending(
            result.spending_patterns, date.today() + timedelta(days=1)
        )

    Category assignment and income-source classification are injected so that
    rule engines living outside the forecasting core can feed in.
    """

    @classmethod
    def analyze(
        cls,
        transactions: Iterable[Transaction | Mapping[str, Any]],
        *,
        categorize: Categorizer | None = None,
        classify_source: SourceClassifier = classify_income_source,
    ) -> PatternAnalysisResult:
        """Run every extraction pass over the history.

        Args:
            transactions: Long-range history, any order.
            categorize: Optional function returning a transaction's category;
                defaults to the transaction's own ``category`` field.
            classify_source: Maps a normalized income source name to its type.

        Returns:
            PatternAnalysisResult with patterns, insights, and data quality.
        """
        txns = coerce_transactions(transactions)
        if not txns:
            return PatternAnalysisResult()

        months = cls._months_of_data(txns)
        categories = [cls._category_of(t, categorize) for t in txns]
        categorized = sum(1 for c in categories if c)
        coverage = categorized / len(txns)

        expenses = [t for t in txns if t.is_expense]
        expense_categories = [c for t, c in zip(txns, categories) if t.is_expense]

        spending: list[SpendingPattern] = [
            *cls._day_of_week_patterns(expenses, months),
            *cls._week_of_month_patterns(expenses, months),
            *cls._month_of_year_patterns(expenses, months),
            *cls._category_patterns(expenses, expense_categories, months),
            *cls._seasonal_patterns(expenses, months),
        ]
        income = cls._income_patterns(txns, classify_source)
        insights = cls._generate_insights(spending, income)

        logger.info(
            "Learned %d spending patterns and %d income sources from %d transactions (%d months)",
            len(spending),
            len(income),
            len(txns),
            months,
        )

        return PatternAnalysisResult(
            spending_patterns=spending,
            income_patterns=income,
            insights=insights,
            data_quality=DataQuality(
                total_transactions=len(txns),
                months_of_data=months,
                category_coverage=coverage,
                data_completeness=min(months / 12, 1.0) * 0.5 + coverage * 0.5,
            ),
        )

    # ------------------------------------------------------------------ #
    #  Spending pattern extraction                                        #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _build_pattern(
        pattern_type: PatternType,
        key: str,
        category: str | None,
        values: list[float],
        months: int,
    ) -> SpendingPattern:
        stats = summarize(values)
        return SpendingPattern(
            pattern_type=pattern_type,
            dimension_key=key,
            category=category,
            average_amount=stats.average,
            median_amount=stats.median,
            std_deviation=stats.std_dev,
            min_amount=stats.minimum,
            max_amount=stats.maximum,
            occurrence_count=len(values),
            confidence_score=calculate_confidence(len(values), stats.std_dev, stats.average, months),
            weight=1.0,
            data_points_used=len(values),
            months_of_data=months,
        )

    @classmethod
    def _bucket_patterns(
        cls,
        pattern_type: PatternType,
        buckets: dict[str, list[float]],
        min_samples: int,
        months: int,
    ) -> list[SpendingPattern]:
        return [
            cls._build_pattern(pattern_type, key, None, values, months)
            for key, values in buckets.items()
            if len(values) >= min_samples
        ]

    @classmethod
    def _day_of_week_patterns(cls, expenses: list[Transaction], months: int) -> list[SpendingPattern]:
        buckets: dict[str, list[float]] = {day: [] for day in WEEKDAY_NAMES}
        for t in expenses:
            buckets[weekday_name(t.date)].append(t.amount)
        return cls._bucket_patterns(PatternType.DAY_OF_WEEK, buckets, TEMPORAL_MIN_SAMPLES, months)

    @classmethod
    def _week_of_month_patterns(cls, expenses: list[Transaction], months: int) -> list[SpendingPattern]:
        buckets: dict[str, list[float]] = {f"week_{i}": [] for i in range(1, 5)}
        for t in expenses:
            buckets[week_of_month(t.date)].append(t.amount)
        return cls._bucket_patterns(PatternType.WEEK_OF_MONTH, buckets, TEMPORAL_MIN_SAMPLES, months)

    @classmethod
    def _month_of_year_patterns(cls, expenses: list[Transaction], months: int) -> list[SpendingPattern]:
        buckets: dict[str, list[float]] = {}
        for (_, month), total in cls._monthly_totals(expenses).items():
            buckets.setdefault(MONTH_NAMES[month - 1], []).append(total)
        return cls._bucket_patterns(PatternType.MONTH_OF_YEAR, buckets, AGGREGATE_MIN_SAMPLES, months)

    @classmethod
    def _category_patterns(
        cls,
        expenses: list[Transaction],
        categories: list[str | None],
        months: int,
    ) -> list[SpendingPattern]:
        groups: dict[str, list[Transaction]] = {}
        for t, category in zip(expenses, categories):
            groups.setdefault(category or "uncategorized", []).append(t)

        patterns: list[SpendingPattern] = []
        for category, txns in groups.items():
            if len(txns) < CATEGORY_MIN_TRANSACTIONS:
                continue

            daily: dict[date, float] = {}
            for t in txns:
                daily[t.date] = daily.get(t.date, 0.0) + t.amount
            patterns.append(
                cls._build_pattern(PatternType.CATEGORY_DAILY, "daily", category, list(daily.values()), months)
            )

            monthly = list(cls._monthly_totals(txns).values())
            if len(monthly) >= AGGREGATE_MIN_SAMPLES:
                patterns.append(
                    cls._build_pattern(PatternType.CATEGORY_MONTHLY, "monthly", category, monthly, months)
                )

        return patterns

    @classmethod
    def _seasonal_patterns(cls, expenses: list[Transaction], months: int) -> list[SpendingPattern]:
        if months < SEASONAL_MIN_MONTHS:
            return []

        buckets: dict[str, list[float]] = {s: [] for s in ("spring", "summer", "fall", "winter")}
        for (year, month), total in cls._monthly_totals(expenses).items():
            buckets[season(date(year, month, 15))].append(total)
        return cls._bucket_patterns(PatternType.SEASONAL, buckets, AGGREGATE_MIN_SAMPLES, months)

    # ------------------------------------------------------------------ #
    #  Income pattern extraction                                          #
    # ------------------------------------------------------------------ #

    @classmethod
    def _income_patterns(
        cls,
        transactions: list[Transaction],
        classify_source: SourceClassifier,
    ) -> list[IncomePattern]:
        groups: dict[str, list[Transaction]] = {}
        for t in transactions:
            if not t.is_inflow:
                continue
            source = (t.merchant_name or t.name).lower().strip()
            groups.setdefault(source, []).append(t)

        patterns: list[IncomePattern] = []
        for source, txns in groups.items():
            if len(txns) < INCOME_MIN_OCCURRENCES:
                continue

            amounts = [abs(t.amount) for t in txns]
            stats = summarize(amounts)
            dates = sorted(t.date for t in txns)

            gaps = [(b - a).days for a, b in zip(dates, dates[1:])]
            avg_gap = sum(gaps) / len(gaps) if gaps else 30.0
            frequency = cls._income_frequency(avg_gap)

            day_counts: dict[int, int] = {}
            for d in dates:
                day_counts[d.day] = day_counts.get(d.day, 0) + 1
            typical_days = sorted(day for day, count in day_counts.items() if count >= len(txns) * 0.3)

            last = dates[-1]
            patterns.append(
                IncomePattern(
                    source_name=" ".join(w[:1].upper() + w[1:] for w in source.split(" ")),
                    source_type=classify_source(source),
                    typical_days_of_month=typical_days,
                    typical_day_of_week=weekday_index(dates[0]) if frequency == IncomeFrequency.WEEKLY else None,
                    frequency=frequency,
                    average_amount=stats.average,
                    min_amount=stats.minimum,
                    max_amount=stats.maximum,
                    variability=stats.std_dev / stats.average if stats.average > 0 else 0.0,
                    # Income confidence always credits a full year of history.
                    confidence_score=calculate_confidence(len(txns), stats.std_dev, stats.average, 12),
                    occurrences_analyzed=len(txns),
                    last_occurrence=last,
                    next_expected=cls._next_income_date(last, frequency),
                )
            )

        patterns.sort(key=lambda p: p.average_amount, reverse=True)
        return patterns

    @staticmethod
    def _income_frequency(avg_gap: float) -> IncomeFrequency:
        if avg_gap <= 10:
            return IncomeFrequency.WEEKLY
        if avg_gap <= 18:
            return IncomeFrequency.BI_WEEKLY
        if avg_gap <= 20:
            return IncomeFrequency.SEMI_MONTHLY
        if avg_gap <= 35:
            return IncomeFrequency.MONTHLY
        return IncomeFrequency.IRREGULAR

    @staticmethod
    def _next_income_date(last: date, frequency: IncomeFrequency) -> date:
        if frequency == IncomeFrequency.WEEKLY:
            return last + timedelta(days=7)
        if frequency == IncomeFrequency.BI_WEEKLY:
            return last + timedelta(days=14)
        if frequency == IncomeFrequency.SEMI_MONTHLY:
            return last + timedelta(days=15)
        return add_months(last, 1)

    # ------------------------------------------------------------------ #
    #  Insights                                                           #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _generate_insights(
        patterns: list[SpendingPattern],
        income_patterns: list[IncomePattern],
    ) -> list[PatternInsight]:
        insights: list[PatternInsight] = []

        day_patterns = [p for p in patterns if p.pattern_type == PatternType.DAY_OF_WEEK]
        if day_patterns:
            avg_daily = sum(p.average_amount for p in day_patterns) / len(day_patterns)
            for p in day_patterns:
                if avg_daily > 0 and p.average_amount > avg_daily * 1.3:
                    excess = p.average_amount / avg_daily - 1
                    insights.append(
                        PatternInsight(
                            type=InsightType.PATTERN_DISCOVERED,
                            title=f"Higher spending on {p.dimension_key}s",
                            description=(
                                f"You spend {excess * 100:.0f}% more on {p.dimension_key}s compared to other days."
                            ),
                            impact_score=min(excess * 0.5, 0.8),
                            actionable=True,
                        )
                    )

        weeks = {p.dimension_key: p for p in patterns if p.pattern_type == PatternType.WEEK_OF_MONTH}
        week1, week4 = weeks.get("week_1"), weeks.get("week_4")
        if week1 and week4 and week1.average_amount > week4.average_amount * 1.5:
            spike = (week1.average_amount / week4.average_amount - 1) * 100 if week4.average_amount else 0.0
            insights.append(
                PatternInsight(
                    type=InsightType.PATTERN_DISCOVERED,
                    title="Post-payday spending spike",
                    description=(
                        f"You spend {spike:.0f}% more in the first week of the month compared to the last week."
                    ),
                    impact_score=0.7,
                    actionable=True,
                )
            )

        for p in patterns:
            if p.pattern_type != PatternType.CATEGORY_MONTHLY:
                continue
            cv = p.std_deviation / p.average_amount if p.average_amount > 0 else 0.0
            if cv > 0.5 and p.average_amount > 100:
                insights.append(
                    PatternInsight(
                        type=InsightType.PATTERN_DISCOVERED,
                        title=f"Inconsistent {p.category} spending",
                        description=(
                            f"Your {p.category} spending varies significantly month to month "
                            f"(±{cv * 100:.0f}%). This makes predictions less accurate."
                        ),
                        impact_score=cv * 0.6,
                        actionable=False,
                        category=p.category,
                    )
                )

        for income in income_patterns:
            if income.variability > 0.2:
                insights.append(
                    PatternInsight(
                        type=InsightType.PATTERN_DISCOVERED,
                        title=f"Variable income from {income.source_name}",
                        description=(
                            f"Income from {income.source_name} varies by ±{income.variability * 100:.0f}%. "
                            f"Using average of ${income.average_amount:,.0f} for predictions."
                        ),
                        impact_score=income.variability * 0.5,
                        actionable=False,
                    )
                )

        insights.sort(key=lambda i: i.impact_score, reverse=True)
        return insights[:MAX_INSIGHTS]

    # ------------------------------------------------------------------ #
    #  Prediction                                                         #
    # ------------------------------------------------------------------ #

    @staticmethod
    def predict_daily_spending(
        patterns: list[SpendingPattern],
        day: date,
        category: str | None = None,
    ) -> DailySpendingPrediction:
        """Blend learned patterns into an expected spend for ``day``.

        Each matching pattern contributes its (daily) average weighted by
        ``confidence * relative_weight``. Monthly and seasonal totals are
        converted to a daily rate by dividing by 30.
        """

        def find(pattern_type: PatternType, key: str) -> SpendingPattern | None:
            for p in patterns:
                if p.pattern_type == pattern_type and p.dimension_key == key and not p.category:
                    return p
            return None

        contributions: list[tuple[float, float, float]] = []  # (amount, relative weight, confidence)

        if p := find(PatternType.DAY_OF_WEEK, weekday_name(day)):
            contributions.append((p.average_amount, _DAY_WEIGHT, p.confidence_score))
        if p := find(PatternType.WEEK_OF_MONTH, week_of_month(day)):
            contributions.append((p.average_amount, _WEEK_WEIGHT, p.confidence_score))
        if p := find(PatternType.MONTH_OF_YEAR, month_name(day)):
            contributions.append((p.average_amount / _DAYS_PER_MONTH, _MONTH_WEIGHT, p.confidence_score))
        if p := find(PatternType.SEASONAL, season(day)):
            contributions.append((p.average_amount / _DAYS_PER_MONTH, _SEASON_WEIGHT, p.confidence_score))

        if category:
            for p in patterns:
                if p.pattern_type == PatternType.CATEGORY_DAILY and p.category == category:
                    contributions.append((p.average_amount, _CATEGORY_WEIGHT, p.confidence_score))
                    break

        total_weight = sum(w * c for _, w, c in contributions)
        if total_weight <= 0:
            return DailySpendingPrediction(amount=0.0, confidence=0.0)

        weighted = sum(a * w * c for a, w, c in contributions)
        confidence_sum = sum(c for _, _, c in contributions)
        return DailySpendingPrediction(
            amount=weighted / total_weight,
            confidence=confidence_sum / (5 if category else 4),
        )

    # ------------------------------------------------------------------ #
    #  Utilities                                                          #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _months_of_data(transactions: list[Transaction]) -> int:
        dates = [t.date for t in transactions]
        span_days = (max(dates) - min(dates)).days
        return max(1, round_half_up(span_days / 30))

    @staticmethod
    def _monthly_totals(transactions: list[Transaction]) -> dict[tuple[int, int], float]:
        totals: dict[tuple[int, int], float] = {}
        for t in transactions:
            key = (t.date.year, t.date.month)
            totals[key] = totals.get(key, 0.0) + t.amount
        return totals

    @staticmethod
    def _category_of(t: Transaction, categorize: Categorizer | None) -> str | None:
        if categorize is not None:
            return categorize(t)
        return t.category


def analyze_patterns(
    transactions: Iterable[Transaction | Mapping[str, Any]],
    categorize: Categorizer | None = None,
) -> PatternAnalysisResult:
    """Quick pattern analysis with default source classification."""
    return PatternLearningEngine.analyze(transactions, categorize=categorize)


def predict_daily_spending(
    patterns: list[SpendingPattern],
    day: date,
    category: str | None = None,
) -> DailySpendingPrediction:
    """Module-level alias for :meth:`PatternLearningEngine.predict_daily_spending`."""
    return PatternLearningEngine.predict_daily_spending(patterns, day, category)
