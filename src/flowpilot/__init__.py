"""
FlowPilot — cash flow forecasting that learns from your history.

Detect. Learn. Forecast.
Finds recurring bills and paychecks, learns how you spend, and projects your
balance day by day, correcting itself as predictions meet reality.
"""

__version__ = "0.1.0"
__all__ = ["FlowPilot"]

from flowpilot.pilot import FlowPilot  # noqa: E402
