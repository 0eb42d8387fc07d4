"""
Markdown report exporter.

Renders a ForecastReport as Markdown, suitable for GitHub, Notion, or any
Markdown viewer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from flowpilot.analyzers.forecast import AlertSeverity
from flowpilot.analyzers.recurring import RecurringFrequency, format_frequency

if TYPE_CHECKING:
    from flowpilot.analyzers.recurring import RecurringItem
    from flowpilot.pilot import ForecastReport


def _frequency_label(item: RecurringItem) -> str:
    if isinstance(item.frequency, RecurringFrequency):
        return format_frequency(item.frequency)
    return item.frequency.value.replace("-", " ").title()


def render_markdown(report: ForecastReport) -> str:
    """Render a ForecastReport as Markdown."""
    forecast = report.forecast
    lines: list[str] = []

    # Header
    lines.append("# 💸 FlowPilot Cash Flow Forecast")
    lines.append("")
    lines.append(f"*Period: {forecast.start_date} to {forecast.end_date}*")
    lines.append("")
    lines.append(report.summary)
    lines.append("")

    # Overview
    lines.append("## 📊 Overview")
    lines.append("")
    lines.append("| Metric | Value |")
    lines.append("|--------|-------|")
    lines.append(f"| **Current Balance** | ${forecast.current_balance:,.2f} |")
    lines.append(f"| **Projected End Balance** | ${forecast.projected_end_balance:,.2f} |")
    lines.append(f"| **Lowest Balance** | ${forecast.lowest_balance:,.2f} ({forecast.lowest_balance_date}) |")
    lines.append(f"| **Highest Balance** | ${forecast.highest_balance:,.2f} ({forecast.highest_balance_date}) |")
    lines.append(f"| **Total Income** | ${forecast.total_income:,.2f} |")
    lines.append(f"| **Total Expenses** | ${forecast.total_expenses:,.2f} |")
    lines.append(f"| **Net Cash Flow** | ${forecast.net_cash_flow:,.2f} |")
    lines.append(f"| **Daily Spending Rate** | ${report.daily_spending_rate:,.2f} |")
    lines.append(f"| **Confidence** | {forecast.confidence.value.title()} |")
    lines.append("")

    # Alerts
    if forecast.alerts:
        severity_emoji = {AlertSeverity.CRITICAL: "🔴", AlertSeverity.WARNING: "🟡"}
        lines.append(f"## ⚠️ Alerts ({len(forecast.alerts)})")
        lines.append("")
        for alert in forecast.alerts:
            lines.append(f"- {severity_emoji[alert.severity]} **{alert.date}** {alert.message}")
        lines.append("")

    # Breakdown
    breakdown = report.breakdown
    lines.append("## 🧾 Breakdown")
    lines.append("")
    lines.append(f"### Income (${breakdown.income_total:,.2f})")
    lines.append("")
    for item in breakdown.income_items:
        lines.append(f"- {item.name}: ${item.amount:,.2f}")
    if not breakdown.income_items:
        lines.append("- *No recurring income expected*")
    lines.append("")
    lines.append(f"### Recurring Expenses (${breakdown.recurring_expense_total:,.2f})")
    lines.append("")
    for item in breakdown.recurring_expense_items:
        lines.append(f"- {item.name}: ${item.amount:,.2f}")
    if not breakdown.recurring_expense_items:
        lines.append("- *No recurring expenses expected*")
    lines.append("")
    lines.append(f"### Discretionary Spending (${breakdown.discretionary_total:,.2f})")
    lines.append("")
    lines.append(breakdown.discretionary_description)
    lines.append("")

    # Upcoming
    if report.upcoming_recurring:
        lines.append("## 📅 Upcoming This Week")
        lines.append("")
        lines.append("| Date | Name | Amount | Frequency |")
        lines.append("|------|------|--------|-----------|")
        for r in report.upcoming_recurring:
            sign = "+" if r.is_income else "-"
            lines.append(f"| {r.next_date} | {r.display_name} | {sign}${r.average_amount:,.2f} | {_frequency_label(r)} |")
        lines.append("")

    # Daily trajectory
    lines.append("## 📈 Daily Balance")
    lines.append("")
    lines.append("| Date | Balance | Flags |")
    lines.append("|------|---------|-------|")
    for day in forecast.daily_forecasts:
        flag = "negative" if day.is_negative else "low" if day.is_low_balance else ""
        lines.append(f"| {day.date} | ${day.projected_balance:,.2f} | {flag} |")
    lines.append("")

    # Insights
    if report.insights:
        lines.append("## 💡 Insights")
        lines.append("")
        for insight in report.insights:
            lines.append(f"- **{insight.title}**: {insight.description}")
        lines.append("")

    # Footer
    lines.append("---")
    lines.append("*Generated by FlowPilot*")

    return "\n".join(lines)
