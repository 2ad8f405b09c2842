"""
Survey service that wires classification, storage, aggregation and export.

Pipeline for one submission:
1. Sanitize and validate the raw answers
2. Classify (classification, score, risk factors)
3. Append to the store, which trims capacity and rebuilds the statistics
"""

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from health_survey.adapters.key_value import InMemoryKeyValueStore, JsonFileKeyValueStore
from health_survey.config import AppConfig, get_config
from health_survey.domain.models import ExportResult, SurveyAnswers, SurveyForm, SurveyResponse
from health_survey.services.anonymizer import sanitize_text
from health_survey.services.classifier import classify_response
from health_survey.services.dashboard import (
    DEFAULT_PAGE_SIZE,
    DashboardFilters,
    DashboardView,
    normalize_filters,
    build_dashboard,
)
from health_survey.services.exporter import export_data, write_export
from health_survey.services.storage import KeyValueBackend, Result, SurveyDataStore

logger = structlog.get_logger(__name__)


def backend_from_config(config: AppConfig) -> KeyValueBackend:
    if config.storage.backend == "memory":
        return InMemoryKeyValueStore()
    return JsonFileKeyValueStore(config.storage.data_dir)


def _sanitized(raw: dict[str, Any]) -> dict[str, Any]:
    """Copy of raw form input with free-text fields cleaned."""
    cleaned = dict(raw)
    demographics = cleaned.get("demographics")
    if isinstance(demographics, dict) and "location" in demographics:
        cleaned["demographics"] = {
            **demographics,
            "location": sanitize_text(demographics["location"]),
        }
    for key in ("additionalComments", "additional_comments"):
        if key in cleaned:
            cleaned[key] = sanitize_text(cleaned[key])
    return cleaned


class HealthSurveyService:
    """
    Entry point used by the form and dashboard front ends.

    The store is handed in (or built from config) so the whole flow runs the
    same against an in-memory backend in tests and JSON files in production.
    """

    def __init__(
        self,
        store: SurveyDataStore | None = None,
        config: AppConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or get_config()
        self._clock = clock or (lambda: datetime.now(UTC))
        self.store = store or SurveyDataStore(
            backend_from_config(self.config),
            namespace=self.config.storage.namespace,
            default_settings=self.config.retention.default_settings(),
            clock=self._clock,
        )
        self.logger = logger.bind(component="health_survey_service")

        self.store.initialize()
        self.store.perform_maintenance()

    def submit(self, answers: SurveyAnswers | dict[str, Any]) -> Result[SurveyResponse, Exception]:
        """Classify one filled-in survey and store it."""
        if not isinstance(answers, SurveyAnswers):
            try:
                answers = SurveyForm.model_validate(_sanitized(answers))
            except ValidationError as e:
                self.logger.warning("survey_answers_invalid", error_count=e.error_count())
                return Result.err(e)

        response = classify_response(answers)
        result = self.store.add_submission(response)
        if result.is_ok():
            self.logger.info(
                "survey_submitted",
                classification=response.health_classification.value,
                score=response.health_score,
            )
        return result

    def export(self, fmt: str | None = None, **options: bool) -> ExportResult:
        """Export with ``fmt`` or the stored preference when omitted."""
        settings = self.store.get_settings()
        return export_data(
            fmt or settings.export_format,
            self.store.get_submissions(),
            self.store.get_statistics(),
            settings,
            now=self._clock(),
            **options,
        )

    def export_to_file(
        self, fmt: str | None = None, directory: str | Path | None = None, **options: bool
    ) -> Result[Path, Exception]:
        result = self.export(fmt, **options)
        if not result.success:
            return Result.err(ValueError(result.error))
        try:
            return Result.ok(write_export(result, directory or self.config.export.output_dir))
        except OSError as e:
            self.logger.exception("export_write_failed", error=str(e))
            return Result.err(e)

    def dashboard(
        self,
        filters: DashboardFilters | dict[str, Any] | None = None,
        page: int = 1,
        per_page: int = DEFAULT_PAGE_SIZE,
    ) -> DashboardView:
        """Dashboard over the stored responses. Raw filter dicts are normalized first."""
        if not isinstance(filters, DashboardFilters):
            filters = normalize_filters(filters)
        return build_dashboard(
            self.store.get_submissions(),
            filters,
            page=page,
            per_page=per_page,
            last_updated=self.store.get_statistics().last_updated,
        )

    def run_maintenance(self) -> bool:
        return self.store.perform_maintenance(self._clock())
