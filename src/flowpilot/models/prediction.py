"""
Prediction tracking models — forecast snapshots and their realized outcomes.

A PredictionRecord is written for each of the next 7 forecast days, then
back-filled with actuals once the day has passed. AccuracyMetrics aggregate
reconciled records over a window and feed the spending-rate correction.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from flowpilot.dates import parse_date


class PredictionRecord(BaseModel):
    """A stored daily balance prediction."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    prediction_date: date
    created_at: datetime = Field(default_factory=datetime.now)

    predicted_balance: float
    predicted_income: float = 0.0
    predicted_expenses: float = 0.0
    predicted_recurring: float = 0.0
    predicted_discretionary: float = 0.0
    confidence_score: float = Field(default=0.5, ge=0.0, le=1.0)
    prediction_factors: dict[str, Any] = Field(default_factory=dict)

    # Filled in once prediction_date has passed
    actual_balance: float | None = None
    actual_income: float | None = None
    actual_expenses: float | None = None
    actual_recorded_at: datetime | None = None
    variance_amount: float | None = None
    variance_percentage: float | None = None

    @field_validator("prediction_date", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> date:
        return parse_date(value)

    @property
    def is_reconciled(self) -> bool:
        return self.actual_balance is not None


class AccuracyMetrics(BaseModel):
    """Aggregated prediction accuracy over a period."""

    period_type: str = "monthly"  # daily, weekly, monthly
    period_start: date
    period_end: date
    mean_absolute_error: float
    mean_percentage_error: float
    root_mean_square_error: float
    predictions_count: int = Field(ge=0)
    direction_accuracy: float = Field(ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=datetime.now)
