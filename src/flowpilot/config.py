"""
FlowPilot configuration management.

Supports loading from YAML files, environment variables, and keyword overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from flowpilot.exceptions import ConfigError


class ForecastConfig(BaseModel):
    """Balance simulation settings."""

    days: int = Field(default=30, ge=1, le=365, description="Forecast horizon in days")
    low_balance_threshold: float = Field(default=100.0, ge=0.0)
    large_expense_threshold: float = Field(default=500.0, ge=0.0)
    weekend_multiplier: float = Field(default=1.3, gt=0.0)
    max_alerts: int = Field(default=10, ge=0)
    snapshot_days: int = Field(default=7, ge=0, description="Days of each forecast stored as predictions")
    reconcile_limit: int = Field(default=7, ge=1, description="Predictions reconciled per request")


class RecurringConfig(BaseModel):
    """Recurring-series detection settings."""

    min_occurrences: int = Field(default=2, ge=2)
    history_months: int = Field(default=12, ge=1, description="Trailing history fed to the engine")
    spending_window_days: int = Field(default=30, ge=1)


class LearningConfig(BaseModel):
    """Pattern learning and feedback settings."""

    staleness_hours: float = Field(default=24.0, gt=0.0)
    min_transactions: int = Field(default=10, ge=0)
    accuracy_window_days: int = Field(default=30, ge=1)


class FlowPilotConfig(BaseModel):
    """Root configuration for FlowPilot."""

    forecast: ForecastConfig = Field(default_factory=ForecastConfig)
    recurring: RecurringConfig = Field(default_factory=RecurringConfig)
    learning: LearningConfig = Field(default_factory=LearningConfig)

    currency: str = Field(default="USD")

    @classmethod
    def load(cls, config_path: str | None = None, **overrides: Any) -> FlowPilotConfig:
        """Load configuration from file, env vars, and overrides.

        Priority: overrides > env vars > config file > defaults.

        Raises:
            ConfigError: If the file is not valid YAML or a value is out of range.
        """
        data: dict[str, Any] = {}

        # 1. Load from YAML file if provided
        if config_path:
            path = Path(config_path)
            if path.exists():
                try:
                    with open(path) as f:
                        data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigError(f"Invalid YAML in {path}: {e}") from e
                if not isinstance(data, dict):
                    raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")

        # 2. Override from environment variables
        env_days = os.environ.get("FLOWPILOT_FORECAST_DAYS")
        env_threshold = os.environ.get("FLOWPILOT_LOW_BALANCE_THRESHOLD")
        env_staleness = os.environ.get("FLOWPILOT_STALENESS_HOURS")

        if env_days or env_threshold:
            forecast = data.get("forecast", {})
            if env_days:
                forecast["days"] = env_days
            if env_threshold:
                forecast["low_balance_threshold"] = env_threshold
            data["forecast"] = forecast

        if env_staleness:
            learning = data.get("learning", {})
            learning["staleness_hours"] = env_staleness
            data["learning"] = learning

        # 3. Apply keyword overrides
        data.update(overrides)

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e
