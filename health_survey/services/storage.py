"""
Storage accessor for survey data kept in a namespaced key-value store.

Key patterns:
- Protocol-based backend injection (in-memory, JSON files, anything with get/set/remove)
- Explicit Result type for expected failures such as rejected submissions
- Reads never fail: malformed or missing records fall back to documented defaults
- Whole-record writes only; the statistics record is rebuilt from the submissions
"""

import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Generic, Protocol, TypeVar

import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError

from health_survey.domain.models import (
    Settings,
    StatisticsSummary,
    StorageInfo,
    SurveyResponse,
    to_utc,
)
from health_survey.services.aggregator import aggregate, top_counts
from health_survey.services.anonymizer import anonymize_response

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

DATA_VERSION = "1.0"
DEFAULT_NAMESPACE = "healthFeedback"
MAINTENANCE_INTERVAL = timedelta(days=7)

ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)


class Result(Generic[ValueT, ErrorT]):
    """
    Explicit error handling without exceptions for expected failures.

    A rejected submission is business as usual for the store, not an exceptional
    condition, so it comes back as ``Result.err`` and the caller decides.
    """

    def __init__(self, value: ValueT | None = None, error: ErrorT | None = None) -> None:
        if value is not None and error is not None:
            raise ValueError("Result cannot have both value and error")
        if value is None and error is None:
            raise ValueError("Result must have either value or error")
        self._value: ValueT | None = value
        self._error: ErrorT | None = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        if self._error:
            raise self._error
        return self._value  # type: ignore

    def unwrap_or(self, default: ValueT) -> ValueT:
        return self._value if self._error is None else default  # type: ignore

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error


class KeyValueBackend(Protocol):
    """
    String key-value persistence, shaped like browser local storage.

    Why Protocol over ABC: structural typing, trivial test doubles.
    """

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class StorageKeys(BaseModel):
    """Names of the three independently stored records."""

    submissions: str
    statistics: str
    settings: str

    @classmethod
    def for_namespace(cls, namespace: str = DEFAULT_NAMESPACE) -> "StorageKeys":
        return cls(
            submissions=f"{namespace}Submissions",
            statistics=f"{namespace}Stats",
            settings=f"{namespace}Settings",
        )


_SUBMISSIONS = TypeAdapter(list[SurveyResponse])
_RECORDS = TypeAdapter(list[Any])

# Backend failures that reads turn into defaults
READ_ERRORS: tuple[type[Exception], ...] = (ValidationError, UnicodeDecodeError, OSError)


def format_bytes(size: int) -> str:
    """Human readable size: ``1536`` -> ``1.5 KB``."""
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{float(f'{value:.2f}'):g} {units[index]}"


class SurveyDataStore:
    """
    Reads and writes submissions, statistics and settings.

    Design principles:
    - Full overwrite on every write, never partial merges in the backend
    - Capacity and retention enforced here, not by callers
    - Observable (structured logging for every mutation)
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        namespace: str = DEFAULT_NAMESPACE,
        default_settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.backend = backend
        self.keys = StorageKeys.for_namespace(namespace)
        self.default_settings = default_settings or Settings()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self.logger = logger.bind(component="survey_data_store", namespace=namespace)

    def initialize(self) -> None:
        """Write default records for any key that is not stored yet."""
        if not self._is_stored(self.keys.submissions):
            self.set_submissions([])
        if not self._is_stored(self.keys.statistics):
            self.set_statistics(StatisticsSummary())
        if not self._is_stored(self.keys.settings):
            self.set_settings(self.default_settings)

    # Record accessors

    def _is_stored(self, key: str) -> bool:
        """True when the key holds something, even if it cannot be decoded."""
        try:
            return self.backend.get_item(key) is not None
        except (UnicodeDecodeError, OSError) as e:
            self.logger.warning("stored_record_unreadable", key=key, error=str(e))
            return True

    def _read(self, key: str, parse: Callable[[str], Any], default: Any) -> Any:
        try:
            raw = self.backend.get_item(key)
            if raw is None:
                return default
            return parse(raw)
        except READ_ERRORS as e:
            self.logger.warning("stored_record_unreadable", key=key, error=str(e))
            return default

    def _parse_submissions(self, raw: str) -> list[SurveyResponse]:
        """Validate entries one by one so a single bad record does not hide the others."""
        submissions = []
        for index, record in enumerate(_RECORDS.validate_json(raw)):
            try:
                submissions.append(SurveyResponse.model_validate(record))
            except ValidationError as e:
                self.logger.warning(
                    "stored_submission_skipped", index=index, error_count=e.error_count()
                )
        return submissions

    def get_submissions(self) -> list[SurveyResponse]:
        return self._read(self.keys.submissions, self._parse_submissions, [])

    def set_submissions(self, submissions: list[SurveyResponse]) -> None:
        payload = _SUBMISSIONS.dump_json(submissions, by_alias=True).decode()
        self.backend.set_item(self.keys.submissions, payload)

    def get_statistics(self) -> StatisticsSummary:
        return self._read(
            self.keys.statistics, StatisticsSummary.model_validate_json, StatisticsSummary()
        )

    def set_statistics(self, statistics: StatisticsSummary) -> None:
        self.backend.set_item(self.keys.statistics, statistics.model_dump_json(by_alias=True))

    def get_settings(self) -> Settings:
        return self._read(self.keys.settings, Settings.model_validate_json, self.default_settings)

    def set_settings(self, settings: Settings) -> None:
        self.backend.set_item(self.keys.settings, settings.model_dump_json(by_alias=True))

    def update_settings(self, **changes: Any) -> Settings:
        """Merge ``changes`` (snake_case names) into the stored settings and rewrite them."""
        merged = Settings.model_validate({**self.get_settings().model_dump(), **changes})
        self.set_settings(merged)
        self.logger.info("settings_updated", changed=sorted(changes))
        return merged

    # Mutations

    def refresh_statistics(
        self, submissions: list[SurveyResponse] | None = None
    ) -> StatisticsSummary:
        """Rebuild the statistics record from the stored (or given) submissions."""
        if submissions is None:
            submissions = self.get_submissions()
        statistics = aggregate(submissions)
        self.set_statistics(statistics)
        return statistics

    def add_submission(
        self, submission: SurveyResponse | dict[str, Any]
    ) -> Result[SurveyResponse, Exception]:
        """
        Validate and append one classified response.

        Oldest submissions are evicted first so the collection never grows past
        ``max_submissions``. A rejected submission leaves every record untouched.
        """
        try:
            response = (
                submission
                if isinstance(submission, SurveyResponse)
                else SurveyResponse.model_validate(submission)
            )
        except ValidationError as e:
            self.logger.warning("submission_rejected", error_count=e.error_count())
            return Result.err(e)

        settings = self.get_settings()
        submissions = self.get_submissions()

        overflow = len(submissions) - settings.max_submissions + 1
        if overflow > 0:
            del submissions[:overflow]
            self.logger.info(
                "submissions_evicted", count=overflow, max_submissions=settings.max_submissions
            )

        if response.id is None:
            response = response.model_copy(update={"id": self._id_factory()})
        if settings.anonymize_data:
            response = anonymize_response(response)

        submissions.append(response)
        try:
            self.set_submissions(submissions)
            self.refresh_statistics(submissions)
        except OSError as e:
            self.logger.exception("submission_write_failed", error=str(e))
            return Result.err(e)

        self.logger.info(
            "submission_added",
            submission_id=response.id,
            classification=response.health_classification.value,
            total=len(submissions),
        )
        return Result.ok(response)

    def cleanup_old_data(self, now: datetime | None = None) -> int:
        """Delete responses older than the retention window. Returns how many were removed."""
        now = to_utc(now or self._clock())
        settings = self.get_settings()
        cutoff = now - timedelta(days=settings.data_retention_days)

        submissions = self.get_submissions()
        kept = [s for s in submissions if s.timestamp > cutoff]
        removed = len(submissions) - len(kept)

        if removed:
            self.set_submissions(kept)
            self.refresh_statistics(kept)
            self.logger.info("old_submissions_removed", count=removed, cutoff=cutoff.isoformat())
        return removed

    def perform_maintenance(self, now: datetime | None = None) -> bool:
        """Run retention cleanup when the last one is more than a week old."""
        now = to_utc(now or self._clock())
        last_cleanup = self.get_settings().last_cleanup
        if last_cleanup is not None and now - last_cleanup <= MAINTENANCE_INTERVAL:
            return False

        self.cleanup_old_data(now)
        self.update_settings(last_cleanup=now)
        return True

    def clear_all_data(self, confirm: bool = False) -> bool:
        """Drop every record and start over with defaults. Requires ``confirm``."""
        if not confirm:
            return False

        for key in (self.keys.submissions, self.keys.statistics, self.keys.settings):
            self.backend.remove_item(key)
        self.initialize()
        self.logger.warning("all_data_cleared")
        return True

    # Reporting

    def get_storage_info(self) -> StorageInfo:
        submissions = self._read(self.keys.submissions, str, "[]")
        statistics = self._read(self.keys.statistics, str, "{}")
        settings = self._read(self.keys.settings, str, "{}")

        submissions_size = len(submissions.encode())
        statistics_size = len(statistics.encode())
        settings_size = len(settings.encode())
        total = submissions_size + statistics_size + settings_size

        return StorageInfo(
            total_size=total,
            submissions_size=submissions_size,
            statistics_size=statistics_size,
            settings_size=settings_size,
            submission_count=len(self.get_submissions()),
            formatted_size=format_bytes(total),
        )

    def get_repository_data(self) -> dict[str, Any]:
        """Aggregate-only snapshot, safe to publish: no individual submissions."""
        stats = self.get_statistics()
        dumped = stats.model_dump(mode="json", by_alias=True)
        return {
            "metadata": {
                "lastUpdated": dumped["lastUpdated"],
                "totalSubmissions": stats.total_submissions,
                "dataVersion": DATA_VERSION,
            },
            "summary": {
                "demographics": dumped["demographics"],
                "healthClassifications": dumped["healthClassifications"],
                "averageHealthScore": stats.health_scores.average,
                "commonRiskFactors": top_counts(stats.risk_factors, 10),
                "trends": {"monthly": dumped["trends"]["monthly"]},
            },
            "aggregatedData": {
                "healthScoreDistribution": dumped["healthScores"]["distribution"],
                "lifestylePatterns": dumped["lifestyle"],
            },
        }
