"""Descriptive statistics used by the pattern and recurring analyzers."""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass


@dataclass(frozen=True)
class SummaryStats:
    average: float
    median: float
    std_dev: float  # population standard deviation
    minimum: float
    maximum: float


def mean(values: list[float]) -> float:
    return statistics.fmean(values) if values else 0.0


def population_std(values: list[float]) -> float:
    return statistics.pstdev(values) if values else 0.0


def summarize(values: list[float]) -> SummaryStats:
    if not values:
        return SummaryStats(0.0, 0.0, 0.0, 0.0, 0.0)

    return SummaryStats(
        average=mean(values),
        median=float(statistics.median(values)),
        std_dev=population_std(values),
        minimum=min(values),
        maximum=max(values),
    )


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)."""
    return math.floor(value + 0.5)


def money(value: float) -> float:
    """Round a monetary amount to cents, halves going up."""
    return math.floor(value * 100 + 0.5) / 100
