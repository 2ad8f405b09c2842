"""
Terminal rendering of the survey dashboard.

Run against a JSON-file store with:
    python -m health_survey.services.console_report ./data
"""

import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from health_survey.config import configure_logging, get_config
from health_survey.services.dashboard import ChartSeries, DashboardView, table_row
from health_survey.services.survey_service import HealthSurveyService

CLASSIFICATION_STYLES = {"healthy": "green", "moderate": "yellow", "abnormal": "red"}


def _series_table(series: ChartSeries) -> Table:
    table = Table(title=series.title)
    table.add_column("Label", style="cyan")
    table.add_column("Value", style="magenta", justify="right")
    for label, value in zip(series.labels, series.values, strict=True):
        table.add_row(label, str(value))
    return table


def render_dashboard(view: DashboardView, console: Console | None = None) -> None:
    console = console or Console()
    summary = view.summary

    last_updated = summary.last_updated.date().isoformat() if summary.last_updated else "Never"
    console.print(
        Panel(
            f"Total submissions: {summary.total_submissions}\n"
            f"Average health score: {summary.average_health_score}\n"
            f"Healthy: {summary.healthy_percentage}%\n"
            f"Last updated: {last_updated}",
            title="Health Survey Dashboard",
            style="blue",
        )
    )

    if summary.total_submissions == 0:
        console.print("No survey data available yet.", style="yellow")
        return

    for series in view.charts.values():
        if series.labels:
            console.print(_series_table(series))

    page = view.table
    if page is None:
        return

    table = Table(title="Recent Submissions")
    for column in ("Date", "Age", "Gender", "Location", "Score", "Classification", "Risk Factors"):
        table.add_column(column)
    for item in page.items:
        row = table_row(item)
        style = CLASSIFICATION_STYLES.get(row["classification"], "white")
        table.add_row(
            row["date"],
            row["age_group"],
            row["gender"],
            row["location"],
            str(row["health_score"]),
            f"[{style}]{row['classification']}[/{style}]",
            row["risk_factors"],
        )
    console.print(table)
    console.print(
        f"Showing {page.start_index}-{page.end_index} of {page.total_items} entries "
        f"(page {page.page} of {page.total_pages})"
    )


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    config = get_config()
    if args:
        config = config.model_copy(
            update={"storage": config.storage.model_copy(update={"data_dir": args[0]})}
        )
    configure_logging(config.logging)

    service = HealthSurveyService(config=config)
    render_dashboard(service.dashboard())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
