"""
FlowPilot Analyzers — pure computation modules.

Statistical engines that turn transaction history into recurring series,
learned spending/income patterns, balance forecasts, and accuracy feedback.
"""

from flowpilot.analyzers.feedback import (
    AccuracyFeedbackLoop,
    PatternCacheEntry,
    accuracy_adjustment,
    compute_variance,
    is_stale,
    reconcile,
)
from flowpilot.analyzers.forecast import (
    AlertSeverity,
    AlertType,
    CashFlowAlert,
    CashFlowForecast,
    DailyForecast,
    ForecastBreakdown,
    ForecastSimulator,
    ForecastTransaction,
    ForecastTransactionType,
    blend_spending_rate,
    build_breakdown,
    calculate_daily_spending_rate,
    forecast_summary,
    generate_forecast,
    income_patterns_as_recurring,
)
from flowpilot.analyzers.patterns import (
    DailySpendingPrediction,
    IncomeFrequency,
    IncomePattern,
    IncomeSourceType,
    PatternAnalysisResult,
    PatternInsight,
    PatternLearningEngine,
    PatternType,
    SpendingPattern,
    analyze_patterns,
    calculate_confidence,
    classify_income_source,
    predict_daily_spending,
)
from flowpilot.analyzers.recurring import (
    ConfidenceLevel,
    RecurringFrequency,
    RecurringItem,
    RecurringTransactionDetector,
    detect_recurring,
    format_frequency,
    mark_recurring,
    upcoming_recurring,
    yearly_cost,
)

__all__ = [
    "AccuracyFeedbackLoop",
    "AlertSeverity",
    "AlertType",
    "CashFlowAlert",
    "CashFlowForecast",
    "ConfidenceLevel",
    "DailyForecast",
    "DailySpendingPrediction",
    "ForecastBreakdown",
    "ForecastSimulator",
    "ForecastTransaction",
    "ForecastTransactionType",
    "IncomeFrequency",
    "IncomePattern",
    "IncomeSourceType",
    "PatternAnalysisResult",
    "PatternCacheEntry",
    "PatternInsight",
    "PatternLearningEngine",
    "PatternType",
    "RecurringFrequency",
    "RecurringItem",
    "RecurringTransactionDetector",
    "SpendingPattern",
    "accuracy_adjustment",
    "analyze_patterns",
    "blend_spending_rate",
    "build_breakdown",
    "calculate_confidence",
    "calculate_daily_spending_rate",
    "classify_income_source",
    "compute_variance",
    "detect_recurring",
    "forecast_summary",
    "format_frequency",
    "generate_forecast",
    "income_patterns_as_recurring",
    "is_stale",
    "mark_recurring",
    "predict_daily_spending",
    "reconcile",
    "upcoming_recurring",
    "yearly_cost",
]
