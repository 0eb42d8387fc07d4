"""
FlowPilot CLI — command-line interface.

Usage:
    flowpilot forecast --csv transactions.csv --balance 2500
    flowpilot recurring --csv transactions.csv
    flowpilot patterns --csv transactions.csv
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from flowpilot import __version__
from flowpilot.exceptions import FlowPilotError

if TYPE_CHECKING:
    from flowpilot.models.financial import FinancialDataset
    from flowpilot.pilot import ForecastReport

app = typer.Typer(
    name="flowpilot",
    help="💸 FlowPilot — cash flow forecasting that learns from your history",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold]FlowPilot[/bold] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Log engine decisions to the terminal",
    ),
) -> None:
    """💸 FlowPilot — detect recurring bills, learn patterns, forecast your balance."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


def _load(csv: str, balance: float | None = None, expenses_negative: bool = False) -> FinancialDataset:
    from flowpilot.connectors.csv_connector import CSVConnector

    connector = CSVConnector(file_path=csv, current_balance=balance, expenses_negative=expenses_negative)
    try:
        return asyncio.run(connector.pull())
    except (FileNotFoundError, FlowPilotError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e


@app.command()
def forecast(
    csv: str = typer.Option(..., "--csv", help="Path to CSV file with transactions"),
    balance: float = typer.Option(..., "--balance", "-b", help="Current liquid balance"),
    days: int = typer.Option(None, "--days", "-d", help="Forecast horizon in days"),
    threshold: float = typer.Option(None, "--threshold", "-t", help="Low-balance warning threshold"),
    config: str = typer.Option("flowpilot.yaml", "--config", "-c", help="Path to config file"),
    output: str = typer.Option(None, "--output", "-o", help="Write a Markdown report to this path"),
    expenses_negative: bool = typer.Option(
        False,
        "--expenses-negative",
        help="The CSV records spending as negative amounts",
    ),
) -> None:
    """Forecast your balance day by day."""
    from flowpilot.pilot import FlowPilot

    console.print(Panel.fit(
        "[bold blue]💸 FlowPilot[/bold blue] — Cash Flow Forecast",
        subtitle=f"v{__version__}",
    ))

    dataset = _load(csv, balance, expenses_negative)
    config_path = config if Path(config).exists() else None

    try:
        pilot = FlowPilot.from_config(config_path)
        with console.status("[bold green]Forecasting...[/bold green]"):
            report = pilot.forecast(
                "cli",
                dataset.transactions,
                dataset.balances,
                days=days,
                low_balance_threshold=threshold,
            )
    except FlowPilotError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e

    _display_forecast(report)
    if output:
        _save_report(report, output)


@app.command()
def recurring(
    csv: str = typer.Option(..., "--csv", help="Path to CSV file with transactions"),
    min_occurrences: int = typer.Option(2, "--min-occurrences", help="Ignore series seen fewer times"),
    expenses_negative: bool = typer.Option(False, "--expenses-negative"),
) -> None:
    """List recurring bills, subscriptions, and paychecks."""
    from flowpilot.analyzers.recurring import RecurringTransactionDetector, format_frequency, yearly_cost

    dataset = _load(csv, expenses_negative=expenses_negative)
    items = RecurringTransactionDetector.detect(dataset.transactions, min_occurrences=min_occurrences)

    if not items:
        console.print("[yellow]No recurring transactions found.[/yellow]")
        return

    table = Table(title=f"Recurring Transactions ({len(items)})")
    table.add_column("Name", style="bold")
    table.add_column("Amount", justify="right")
    table.add_column("Frequency")
    table.add_column("Next", justify="right")
    table.add_column("Confidence")
    table.add_column("Per Year", justify="right")

    confidence_colors = {"high": "green", "medium": "yellow", "low": "red"}
    for item in items:
        color = confidence_colors[item.confidence.value]
        amount = f"{'+' if item.is_income else '-'}${item.average_amount:,.2f}"
        table.add_row(
            item.display_name,
            amount,
            format_frequency(item.frequency),
            str(item.next_date),
            f"[{color}]{item.confidence.value}[/{color}]",
            f"${yearly_cost(item):,.2f}",
        )

    console.print(table)


@app.command()
def patterns(
    csv: str = typer.Option(..., "--csv", help="Path to CSV file with transactions"),
    expenses_negative: bool = typer.Option(False, "--expenses-negative"),
) -> None:
    """Show learned spending patterns, income sources, and insights."""
    from flowpilot.analyzers.patterns import PatternLearningEngine

    dataset = _load(csv, expenses_negative=expenses_negative)
    result = PatternLearningEngine.analyze(dataset.transactions)

    quality = result.data_quality
    console.print(
        f"[dim]{quality.total_transactions} transactions, {quality.months_of_data} months, "
        f"{quality.category_coverage:.0%} categorized[/dim]"
    )

    if result.spending_patterns:
        table = Table(title="Spending Patterns")
        table.add_column("Type", style="bold cyan")
        table.add_column("Key")
        table.add_column("Category")
        table.add_column("Average", justify="right")
        table.add_column("Samples", justify="right")
        table.add_column("Confidence", justify="right")
        for p in result.spending_patterns:
            table.add_row(
                p.pattern_type.value,
                p.dimension_key,
                p.category or "",
                f"${p.average_amount:,.2f}",
                str(p.occurrence_count),
                f"{p.confidence_score:.0%}",
            )
        console.print(table)

    if result.income_patterns:
        table = Table(title="Income Sources")
        table.add_column("Source", style="bold")
        table.add_column("Type")
        table.add_column("Frequency")
        table.add_column("Average", justify="right")
        table.add_column("Next Expected", justify="right")
        for i in result.income_patterns:
            table.add_row(
                i.source_name,
                i.source_type.value,
                i.frequency.value,
                f"${i.average_amount:,.2f}",
                str(i.next_expected or ""),
            )
        console.print(table)

    if result.insights:
        console.print("[bold]Insights:[/bold]")
        for n, insight in enumerate(result.insights, 1):
            console.print(f"  {n}. [bold]{insight.title}[/bold] — {insight.description}")


def _display_forecast(report: ForecastReport) -> None:
    """Display forecast summary in the terminal."""
    fc = report.forecast
    console.print()

    table = Table(title="Forecast Summary", show_lines=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Period", f"{fc.start_date} → {fc.end_date}")
    table.add_row("Current Balance", f"${fc.current_balance:,.2f}")
    table.add_row("Projected End Balance", f"${fc.projected_end_balance:,.2f}")
    table.add_row("Lowest Balance", f"${fc.lowest_balance:,.2f} ({fc.lowest_balance_date})")
    table.add_row("Total Income", f"${fc.total_income:,.2f}")
    table.add_row("Total Expenses", f"${fc.total_expenses:,.2f}")
    table.add_row("Daily Spending Rate", f"${report.daily_spending_rate:,.2f}")
    table.add_row("Recurring Items", str(len(report.recurring_items)))
    table.add_row("Confidence", fc.confidence.value)

    console.print(table)
    console.print()
    console.print(report.summary)
    console.print()

    if fc.alerts:
        console.print("[bold]Alerts:[/bold]")
        for alert in fc.alerts:
            color = "red" if alert.severity.value == "critical" else "yellow"
            console.print(f"  [{color}]\\[{alert.severity.value.upper()}][/{color}] {alert.message}")
        console.print()


def _save_report(report: ForecastReport, output: str) -> None:
    """Save report to file."""
    from flowpilot.exporters.markdown import render_markdown

    path = Path(output)
    path.write_text(render_markdown(report))
    console.print(f"[green]✓[/green] Report saved to [bold]{path}[/bold]")


if __name__ == "__main__":
    app()
