"""Tests for the pattern learning engine."""

from datetime import date, timedelta
from typing import Any

import pytest

from flowpilot.analyzers.patterns import (
    IncomeFrequency,
    IncomeSourceType,
    InsightType,
    PatternLearningEngine,
    PatternType,
    SpendingPattern,
    analyze_patterns,
    calculate_confidence,
    classify_income_source,
    predict_daily_spending,
)
from flowpilot.exceptions import DataError
from flowpilot.models.financial import Transaction


def _txn(name: str, amount: float, d: date, **kwargs: Any) -> Transaction:
    return Transaction(name=name, amount=amount, date=d, **kwargs)


def _pattern(
    pattern_type: PatternType,
    key: str,
    average: float,
    confidence: float,
    category: str | None = None,
) -> SpendingPattern:
    return SpendingPattern(
        pattern_type=pattern_type,
        dimension_key=key,
        category=category,
        average_amount=average,
        median_amount=average,
        std_deviation=0.0,
        min_amount=average,
        max_amount=average,
        occurrence_count=5,
        confidence_score=confidence,
        weight=1.0,
        data_points_used=5,
        months_of_data=6,
    )


def _by_type(patterns: list[SpendingPattern], pattern_type: PatternType) -> dict[str, SpendingPattern]:
    return {p.dimension_key: p for p in patterns if p.pattern_type == pattern_type}


class TestConfidence:
    def test_full_marks(self) -> None:
        assert calculate_confidence(100, 0.0, 10.0, 24) == pytest.approx(1.0)

    def test_zero_mean_counts_as_fully_variable(self) -> None:
        assert calculate_confidence(0, 5.0, 0.0, 0) == pytest.approx(0.0)

    def test_components_are_additive(self) -> None:
        # 0.3 (n=3) + 0.3 - 0.5*0.3 (cv=0.5) + 0.25 (3 months)
        assert calculate_confidence(3, 5.0, 10.0, 3) == pytest.approx(0.3 + 0.15 + 0.25)

    @pytest.mark.parametrize("n", [0, 1, 5, 50])
    @pytest.mark.parametrize("std", [0.0, 1.0, 100.0])
    def test_always_in_unit_interval(self, n: int, std: float) -> None:
        for avg in (-10.0, 0.0, 10.0):
            for months in (0, 6, 36):
                assert 0.0 <= calculate_confidence(n, std, avg, months) <= 1.0


class TestSpendingPatterns:
    def test_empty_history(self) -> None:
        result = PatternLearningEngine.analyze([])
        assert result.spending_patterns == []
        assert result.income_patterns == []
        assert result.insights == []
        assert result.data_quality.months_of_data == 0
        assert result.data_quality.total_transactions == 0

    def test_buckets_below_floor_are_omitted(self) -> None:
        # 2024-01-01 is a Monday
        txns = [
            _txn("Cafe", 10.0, date(2024, 1, 1)),
            _txn("Cafe", 20.0, date(2024, 1, 8)),
            _txn("Cafe", 30.0, date(2024, 1, 15)),
            _txn("Bakery", 5.0, date(2024, 1, 2)),
            _txn("Bakery", 5.0, date(2024, 1, 9)),
        ]
        result = PatternLearningEngine.analyze(txns)

        kinds = [(p.pattern_type, p.dimension_key) for p in result.spending_patterns]
        assert kinds == [
            (PatternType.DAY_OF_WEEK, "monday"),
            (PatternType.CATEGORY_DAILY, "daily"),
        ]

        monday = result.spending_patterns[0]
        assert monday.average_amount == pytest.approx(20.0)
        assert monday.median_amount == pytest.approx(20.0)
        assert monday.min_amount == 10.0
        assert monday.max_amount == 30.0
        assert monday.std_deviation == pytest.approx((200 / 3) ** 0.5)
        assert monday.occurrence_count == 3
        assert monday.months_of_data == 1
        assert monday.confidence_score == pytest.approx(calculate_confidence(3, monday.std_deviation, 20.0, 1))

        category = result.spending_patterns[1]
        assert category.category == "uncategorized"
        assert category.occurrence_count == 5
        assert category.average_amount == pytest.approx(14.0)

    def test_income_excluded_from_spending(self) -> None:
        txns = [_txn("Refund", -10.0, date(2024, 1, 1) + timedelta(days=7 * i)) for i in range(5)]
        txns += [_txn("Bonus", 10.0, date(2024, 1, 1) + timedelta(days=7 * i), is_income=True) for i in range(5)]
        result = PatternLearningEngine.analyze(txns)
        assert result.spending_patterns == []

    def test_week_of_month_buckets(self) -> None:
        days = [1, 2, 3, 22, 23, 24, 29]
        txns = [_txn("Shop", 10.0, date(2024, 1, d)) for d in days]
        weeks = _by_type(PatternLearningEngine.analyze(txns).spending_patterns, PatternType.WEEK_OF_MONTH)

        assert set(weeks) == {"week_1", "week_4"}
        assert weeks["week_1"].occurrence_count == 3
        assert weeks["week_4"].occurrence_count == 4

    def test_month_of_year_uses_monthly_totals(self) -> None:
        txns = [
            _txn("Shop", 100.0, date(2023, 1, 5)),
            _txn("Shop", 50.0, date(2023, 1, 20)),
            _txn("Shop", 200.0, date(2024, 1, 5)),
        ]
        months = _by_type(PatternLearningEngine.analyze(txns).spending_patterns, PatternType.MONTH_OF_YEAR)

        assert set(months) == {"january"}
        assert months["january"].average_amount == pytest.approx(175.0)
        assert months["january"].occurrence_count == 2

    def test_category_patterns_use_injected_categorizer(self) -> None:
        txns = [_txn(f"Store {i}", 20.0, date(2024, 1, 1) + timedelta(days=15 * i)) for i in range(6)]
        result = PatternLearningEngine.analyze(txns, categorize=lambda t: "Groceries")

        daily = [p for p in result.spending_patterns if p.pattern_type == PatternType.CATEGORY_DAILY]
        monthly = [p for p in result.spending_patterns if p.pattern_type == PatternType.CATEGORY_MONTHLY]
        assert [p.category for p in daily] == ["Groceries"]
        assert [p.category for p in monthly] == ["Groceries"]
        assert monthly[0].dimension_key == "monthly"
        assert result.data_quality.category_coverage == pytest.approx(1.0)

    def test_category_needs_five_transactions(self) -> None:
        txns = [_txn("Dinner", 40.0, date(2024, 1, 1) + timedelta(days=i), category="Dining") for i in range(4)]
        result = PatternLearningEngine.analyze(txns)
        assert not [p for p in result.spending_patterns if p.category == "Dining"]

    def test_seasonal_requires_six_months(self) -> None:
        txns = [_txn("Utility", 100.0, date(2024, m, 10)) for m in range(1, 8)]
        result = PatternLearningEngine.analyze(txns)
        seasons = _by_type(result.spending_patterns, PatternType.SEASONAL)

        assert result.data_quality.months_of_data == 6
        assert set(seasons) == {"winter", "spring", "summer"}
        assert seasons["spring"].occurrence_count == 3
        assert seasons["winter"].average_amount == pytest.approx(100.0)

        short = PatternLearningEngine.analyze(txns[:5])
        assert not _by_type(short.spending_patterns, PatternType.SEASONAL)

    def test_data_quality(self) -> None:
        txns = [
            _txn("A", 10.0, date(2024, 1, 1), category="Food"),
            _txn("B", 10.0, date(2024, 3, 1)),
        ]
        quality = PatternLearningEngine.analyze(txns).data_quality

        assert quality.total_transactions == 2
        assert quality.months_of_data == 2
        assert quality.category_coverage == pytest.approx(0.5)
        assert quality.data_completeness == pytest.approx(2 / 12 * 0.5 + 0.25)

    def test_deterministic(self) -> None:
        txns = [
            _txn(f"Shop {i % 4}", 10.0 + i, date(2024, 1, 1) + timedelta(days=3 * i), category=f"C{i % 2}")
            for i in range(60)
        ]
        txns += [_txn("Payroll", -1500.0, date(2024, 1, 5) + timedelta(days=14 * i)) for i in range(12)]
        assert PatternLearningEngine.analyze(txns) == PatternLearningEngine.analyze(list(txns))

    def test_malformed_date_raises(self) -> None:
        with pytest.raises(DataError):
            analyze_patterns([{"name": "x", "amount": 1, "date": "2024-13-45"}])


class TestIncomePatterns:
    def test_biweekly_salary(self) -> None:
        txns = [_txn("ACME PAYROLL", -2000.0, date(2024, 1, d)) for d in (1, 15, 29)]
        result = PatternLearningEngine.analyze(txns)

        assert len(result.income_patterns) == 1
        income = result.income_patterns[0]
        assert income.source_name == "Acme Payroll"
        assert income.source_type == IncomeSourceType.SALARY
        assert income.frequency == IncomeFrequency.BI_WEEKLY
        assert income.typical_days_of_month == [1, 15, 29]
        assert income.typical_day_of_week is None
        assert income.average_amount == pytest.approx(2000.0)
        assert income.variability == pytest.approx(0.0)
        assert income.confidence_score == pytest.approx(0.9)
        assert income.occurrences_analyzed == 3
        assert income.last_occurrence == date(2024, 1, 29)
        assert income.next_expected == date(2024, 2, 12)

    def test_weekly_records_day_of_week(self) -> None:
        # 2024-01-05 is a Friday
        txns = [_txn("Tips", -100.0, date(2024, 1, 5) + timedelta(days=7 * i)) for i in range(4)]
        income = PatternLearningEngine.analyze(txns).income_patterns[0]

        assert income.frequency == IncomeFrequency.WEEKLY
        assert income.typical_day_of_week == 5
        assert income.next_expected == date(2024, 2, 2)

    def test_monthly_next_date_clamps_to_month_end(self) -> None:
        txns = [_txn("Interest", -5.0, date(2023, 12, 31)), _txn("Interest", -5.0, date(2024, 1, 31))]
        income = PatternLearningEngine.analyze(txns).income_patterns[0]

        assert income.frequency == IncomeFrequency.MONTHLY
        assert income.source_type == IncomeSourceType.INVESTMENT
        assert income.next_expected == date(2024, 2, 29)

    def test_irregular_and_typical_days(self) -> None:
        txns = [
            _txn("Client", 0.0, date(2024, 1, 10), is_income=True, merchant_name="Client Co"),
            _txn("Client", -300.0, date(2024, 3, 10), merchant_name="Client Co"),
            _txn("Client", -300.0, date(2024, 5, 20), merchant_name="Client Co"),
        ]
        income = PatternLearningEngine.analyze(txns).income_patterns[0]

        assert income.source_name == "Client Co"
        assert income.frequency == IncomeFrequency.IRREGULAR
        assert income.typical_days_of_month == [10, 20]
        assert income.next_expected == date(2024, 6, 20)

    def test_single_occurrence_ignored(self) -> None:
        txns = [_txn("Gift", -50.0, date(2024, 1, 1))]
        assert PatternLearningEngine.analyze(txns).income_patterns == []

    def test_sorted_by_average_amount(self) -> None:
        txns = [_txn("Side Gig", -200.0, date(2024, 1, 1) + timedelta(days=30 * i)) for i in range(3)]
        txns += [_txn("Payroll", -3000.0, date(2024, 1, 1) + timedelta(days=30 * i)) for i in range(3)]
        names = [p.source_name for p in PatternLearningEngine.analyze(txns).income_patterns]
        assert names == ["Payroll", "Side Gig"]

    def test_injected_classifier(self) -> None:
        txns = [_txn("Upwork", -500.0, date(2024, 1, 1) + timedelta(days=30 * i)) for i in range(3)]
        result = PatternLearningEngine.analyze(txns, classify_source=lambda name: IncomeSourceType.FREELANCE)
        assert result.income_patterns[0].source_type == IncomeSourceType.FREELANCE

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("acme payroll", IncomeSourceType.SALARY),
            ("monthly salary", IncomeSourceType.SALARY),
            ("direct deposit", IncomeSourceType.SALARY),
            ("venmo cashout", IncomeSourceType.TRANSFER),
            ("zelle from sam", IncomeSourceType.TRANSFER),
            ("vanguard dividend", IncomeSourceType.INVESTMENT),
            ("etsy", IncomeSourceType.OTHER),
        ],
    )
    def test_default_classifier(self, name: str, expected: IncomeSourceType) -> None:
        assert classify_income_source(name) == expected


class TestInsights:
    def test_high_spending_weekday(self) -> None:
        txns = []
        for week in range(3):
            base = date(2024, 1, 1) + timedelta(days=7 * week)  # Mondays
            txns.append(_txn("Bar", 100.0, base))
            txns.append(_txn("Cafe", 10.0, base + timedelta(days=1)))
            txns.append(_txn("Cafe", 10.0, base + timedelta(days=2)))
        insights = PatternLearningEngine.analyze(txns).insights

        weekday = [i for i in insights if i.title == "Higher spending on mondays"]
        assert len(weekday) == 1
        assert weekday[0].type == InsightType.PATTERN_DISCOVERED
        assert weekday[0].impact_score == pytest.approx(0.75)
        assert weekday[0].actionable is True
        assert "150%" in weekday[0].description

    def test_post_payday_spike(self) -> None:
        txns = [_txn("Mall", 100.0, date(2024, 1, d)) for d in (1, 2, 3)]
        txns += [_txn("Mall", 10.0, date(2024, 1, d)) for d in (22, 23, 24)]
        insights = PatternLearningEngine.analyze(txns).insights

        spike = [i for i in insights if i.title == "Post-payday spending spike"]
        assert len(spike) == 1
        assert spike[0].impact_score == pytest.approx(0.7)
        assert "900%" in spike[0].description

    def test_variable_income(self) -> None:
        txns = [
            _txn("Gigs", -1000.0, date(2024, 1, 1)),
            _txn("Gigs", -2000.0, date(2024, 1, 31)),
        ]
        insights = PatternLearningEngine.analyze(txns).insights

        assert len(insights) == 1
        assert insights[0].title == "Variable income from Gigs"
        assert insights[0].impact_score == pytest.approx((500 / 1500) * 0.5)
        assert insights[0].actionable is False

    def test_sorted_by_impact_and_capped(self) -> None:
        txns = []
        for i in range(12):
            txns += [
                _txn(f"Source {i}", -100.0 * (i + 1), date(2024, 1, 1)),
                _txn(f"Source {i}", -300.0 * (i + 1), date(2024, 1, 31)),
            ]
        insights = PatternLearningEngine.analyze(txns).insights

        assert len(insights) == 10
        scores = [i.impact_score for i in insights]
        assert scores == sorted(scores, reverse=True)


class TestPredictDailySpending:
    # 2024-01-01: monday, week_1, january, winter
    DAY = date(2024, 1, 1)

    def test_weighted_by_relative_weight_and_confidence(self) -> None:
        patterns = [
            _pattern(PatternType.DAY_OF_WEEK, "monday", 30.0, 0.5),
            _pattern(PatternType.WEEK_OF_MONTH, "week_1", 60.0, 1.0),
        ]
        prediction = predict_daily_spending(patterns, self.DAY)

        assert prediction.amount == pytest.approx((30 * 0.3 * 0.5 + 60 * 0.25) / (0.15 + 0.25))
        assert prediction.confidence == pytest.approx(1.5 / 4)

    def test_monthly_and_seasonal_totals_become_daily(self) -> None:
        patterns = [
            _pattern(PatternType.MONTH_OF_YEAR, "january", 300.0, 1.0),
            _pattern(PatternType.SEASONAL, "winter", 600.0, 1.0),
        ]
        prediction = predict_daily_spending(patterns, self.DAY)

        assert prediction.amount == pytest.approx((10 * 0.25 + 20 * 0.2) / 0.45)
        assert prediction.confidence == pytest.approx(0.5)

    def test_category_adds_weight_and_divisor(self) -> None:
        patterns = [
            _pattern(PatternType.DAY_OF_WEEK, "monday", 30.0, 1.0),
            _pattern(PatternType.CATEGORY_DAILY, "daily", 20.0, 1.0, category="Dining"),
        ]
        prediction = predict_daily_spending(patterns, self.DAY, category="Dining")

        assert prediction.amount == pytest.approx((30 * 0.3 + 20 * 0.4) / 0.7)
        assert prediction.confidence == pytest.approx(2 / 5)

    def test_category_scoped_temporal_patterns_are_ignored(self) -> None:
        patterns = [_pattern(PatternType.DAY_OF_WEEK, "monday", 30.0, 1.0, category="Dining")]
        prediction = predict_daily_spending(patterns, self.DAY)
        assert prediction.amount == 0.0
        assert prediction.confidence == 0.0

    def test_no_match(self) -> None:
        patterns = [_pattern(PatternType.DAY_OF_WEEK, "friday", 30.0, 1.0)]
        prediction = PatternLearningEngine.predict_daily_spending(patterns, self.DAY)
        assert prediction.amount == 0.0
        assert prediction.confidence == 0.0
