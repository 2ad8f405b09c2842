"""
Export of stored survey data as a JSON document or a CSV table.

Exports never raise: every failure is reported as an ExportResult with
``success=False`` and a message, so callers can show it directly.
"""

import csv
import io
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from health_survey.domain.models import ExportResult, Settings, StatisticsSummary, SurveyResponse
from health_survey.services.storage import DATA_VERSION

EXPORT_SOURCE = "Health Feedback Form"
LIST_SEPARATOR = "; "

CSV_HEADERS: tuple[str, ...] = (
    "Timestamp",
    "Age Group",
    "Gender",
    "Location",
    "Physical Activity",
    "Diet Habits",
    "Sleep Hours",
    "Smoking",
    "Alcohol",
    "Medical Conditions",
    "Overall Health",
    "Health Score",
    "Health Classification",
    "Risk Factors",
)

CONTENT_TYPES = {"json": "application/json", "csv": "text/csv"}

logger = structlog.get_logger(__name__)



def export_filename(fmt: str, when: datetime) -> str:
    stem = "health-feedback-data" if fmt == "json" else "health-feedback-submissions"
    return f"{stem}-{when.astimezone(UTC).date().isoformat()}.{fmt}"


def _timestamp(ts: datetime) -> str:
    return ts.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _success(fmt: str, content: str, when: datetime) -> ExportResult:
    return ExportResult(
        success=True,
        filename=export_filename(fmt, when),
        content_type=CONTENT_TYPES[fmt],
        content=content,
        size=len(content.encode()),
    )


def export_json(
    submissions: list[SurveyResponse],
    statistics: StatisticsSummary,
    settings: Settings | None = None,
    *,
    include_submissions: bool = True,
    include_statistics: bool = True,
    include_settings: bool = False,
    now: datetime | None = None,
) -> ExportResult:
    """Structured export: metadata plus the selected records. Empty input is fine."""
    now = now or datetime.now(UTC)
    document: dict[str, Any] = {
        "metadata": {
            "exportDate": _timestamp(now),
            "totalSubmissions": len(submissions),
            "dataVersion": DATA_VERSION,
            "source": EXPORT_SOURCE,
        },
        "submissions": (
            [s.model_dump(mode="json", by_alias=True) for s in submissions]
            if include_submissions
            else []
        ),
        "statistics": statistics.model_dump(mode="json", by_alias=True) if include_statistics else {},
        "settings": (
            settings.model_dump(mode="json", by_alias=True)
            if include_settings and settings is not None
            else {}
        ),
    }
    return _success("json", json.dumps(document, indent=2), now)


def csv_row(submission: SurveyResponse) -> list[str | int]:
    return [
        _timestamp(submission.timestamp),
        submission.demographics.age_group,
        submission.demographics.gender,
        submission.demographics.location,
        submission.lifestyle.physical_activity,
        submission.lifestyle.diet_habits,
        submission.lifestyle.sleep_hours,
        submission.lifestyle.smoking,
        submission.lifestyle.alcohol,
        LIST_SEPARATOR.join(submission.medical_conditions),
        submission.overall_health,
        submission.health_score,
        submission.health_classification.value,
        LIST_SEPARATOR.join(submission.risk_factors),
    ]


def export_csv(submissions: list[SurveyResponse], *, now: datetime | None = None) -> ExportResult:
    """One header row plus one row per response. Fails on an empty collection."""
    if not submissions:
        return ExportResult.failure("No data to export")

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    writer.writerows(csv_row(s) for s in submissions)
    return _success("csv", buffer.getvalue().rstrip("\n"), now or datetime.now(UTC))


def export_data(
    fmt: str,
    submissions: list[SurveyResponse],
    statistics: StatisticsSummary,
    settings: Settings | None = None,
    *,
    now: datetime | None = None,
    **options: bool,
) -> ExportResult:
    """Dispatch on ``fmt`` (``json`` or ``csv``, case-insensitive)."""
    log = logger.bind(component="exporter")
    normalized = fmt.strip().lower()
    try:
        if normalized == "json":
            result = export_json(submissions, statistics, settings, now=now, **options)
        elif normalized == "csv":
            result = export_csv(submissions, now=now)
        else:
            result = ExportResult.failure(f"Unsupported export format: {fmt}")
    except (TypeError, ValueError) as e:
        log.exception("export_failed", format=fmt, error=str(e))
        return ExportResult.failure(str(e))

    if result.success:
        log.info("export_created", format=normalized, filename=result.filename, size=result.size)
    else:
        log.warning("export_failed", format=fmt, error=result.error)
    return result


def write_export(result: ExportResult, directory: str | Path) -> Path:
    """Save a successful export under its generated filename."""
    if not result.success or result.filename is None:
        raise ValueError(f"Cannot write failed export: {result.error}")
    log = logger.bind(component="exporter")
    target = Path(directory)
    target.mkdir(parents=True, exist_ok=True)
    path = target / result.filename
    path.write_text(result.content, encoding="utf-8")
    log.info("export_written", path=str(path), size=result.size)
    return path
