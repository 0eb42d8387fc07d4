"""Storage backends for learned patterns, predictions, and accuracy metrics."""

from flowpilot.storage.base import ForecastStore
from flowpilot.storage.memory import InMemoryForecastStore

__all__ = ["ForecastStore", "InMemoryForecastStore"]
