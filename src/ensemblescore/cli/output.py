"""Rich output formatting for the CLI."""

from __future__ import annotations

import json

from rich.console import Console
from rich.table import Table

from ensemblescore.engine.report import LearningReport

console = Console()


def format_percent(value: float) -> str:
    return f"{value * 100:.1f}%"


def accuracy_style(value: float) -> str:
    """Color for an accuracy value: green healthy, yellow watch, red poor."""
    if value >= 0.85:
        return "green"
    if value >= 0.75:
        return "yellow"
    return "red"


def create_report_table(report: LearningReport) -> Table:
    """Build the per-category learning summary table."""
    table = Table(title="Ensemble Learning Report")
    table.add_column("Category", style="cyan", no_wrap=True)
    table.add_column("Cycles", justify="right")
    table.add_column("Avg Error", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Effectiveness", justify="right")
    table.add_column("Adaptations", justify="right")
    table.add_column("Scored", justify="right")
    table.add_column("Model", style="dim")
    for category_report in report.categories.values():
        style = accuracy_style(category_report.current_accuracy)
        table.add_row(
            category_report.category.value,
            str(category_report.total_cycles),
            f"{category_report.average_error:.3f}",
            f"[{style}]{format_percent(category_report.current_accuracy)}[/{style}]",
            f"{category_report.learning_effectiveness:+.3f}",
            str(category_report.adaptation_count),
            str(category_report.prediction_count),
            "trained" if category_report.has_trained_model else "-",
        )
    return table


def print_report(report: LearningReport) -> None:
    """Print the report table followed by recommendations."""
    console.print(create_report_table(report))
    overall = report.overall
    best = overall.best_category.value if overall.best_category else "-"
    console.print(
        f"\nAverage accuracy: [bold]{format_percent(overall.average_accuracy)}[/bold]  "
        f"Total adaptations: [bold]{overall.total_adaptations}[/bold]  "
        f"Best category: [cyan]{best}[/cyan]"
    )
    recommendations = [
        (c.category.value, r)
        for c in report.categories.values()
        if c.total_cycles
        for r in c.recommendations
    ]
    if recommendations or report.system_recommendations:
        console.print("\n[bold]Recommendations[/bold]")
        for category, text in recommendations:
            console.print(f"  [cyan]{category}[/cyan]: {text}")
        for text in report.system_recommendations:
            console.print(f"  [yellow]system[/yellow]: {text}")


def print_json(data: object) -> None:
    """Print data as indented JSON without Rich markup or wrapping."""
    console.print(
        json.dumps(data, indent=2, default=str),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )
