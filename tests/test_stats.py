"""Tests for the shared statistics helpers."""

import pytest

from flowpilot.analyzers.stats import mean, money, population_std, round_half_up, summarize


class TestSummaryStats:
    def test_empty(self) -> None:
        assert mean([]) == 0.0
        assert population_std([]) == 0.0
        assert summarize([]).average == 0.0

    def test_summarize(self) -> None:
        stats = summarize([4.0, 1.0, 3.0, 2.0])

        assert stats.average == pytest.approx(2.5)
        assert stats.median == pytest.approx(2.5)
        assert stats.std_dev == pytest.approx(1.25**0.5)
        assert stats.minimum == 1.0
        assert stats.maximum == 4.0

    def test_odd_median(self) -> None:
        assert summarize([10.0, 30.0, 20.0]).median == 20.0


class TestRounding:
    def test_round_half_up(self) -> None:
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2

    @pytest.mark.parametrize(
        "value,expected",
        [(100.125, 100.13), (0.375, 0.38), (-300.0, -300.0), (1234.56, 1234.56), (2.5, 2.5)],
    )
    def test_money_rounds_halves_up(self, value: float, expected: float) -> None:
        assert money(value) == expected
