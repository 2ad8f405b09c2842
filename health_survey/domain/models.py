"""
Domain models for health survey responses.

These models represent the core business concepts and are framework-agnostic.
Persisted JSON keeps the camelCase keys written by the survey form
(``ageGroup``, ``healthScore``...); Python code uses snake_case attributes.
"""

import re
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

NO_CONDITIONS = "none"

# Limits the survey form enforces on free-text input
LOCATION_PATTERN = re.compile(r"^[a-zA-Z\s,.-]+$")
MIN_LOCATION_LENGTH = 2
MAX_COMMENT_LENGTH = 500

# (label, inclusive upper bound) in ascending order
SCORE_BUCKETS: tuple[tuple[str, int], ...] = (
    ("0-20", 20),
    ("21-40", 40),
    ("41-60", 60),
    ("61-80", 80),
    ("81-100", 100),
)


class HealthClassification(str, Enum):
    """Three-way outcome of the health vote."""

    HEALTHY = "healthy"
    MODERATE = "moderate"
    ABNORMAL = "abnormal"


class SurveyModel(BaseModel):
    """Base for every persisted record: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Demographics(SurveyModel):
    age_group: str = Field(min_length=1)
    gender: str = Field(min_length=1)
    location: str = ""

    @field_validator("location", mode="before")
    def none_location_is_blank(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def location_key(self) -> str:
        """City/region part of the location (text before the first comma)."""
        return self.location.split(",")[0].strip()


class Lifestyle(SurveyModel):
    """Lifestyle answers. Values outside the known tables are kept as-is."""

    physical_activity: str = ""
    diet_habits: str = ""
    sleep_hours: str = ""
    smoking: str = ""
    alcohol: str = ""

    @field_validator("*", mode="before")
    def none_is_blank(cls, v: Any) -> Any:
        return "" if v is None else v


class SurveyAnswers(SurveyModel):
    """One filled-in survey before classification."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    demographics: Demographics
    lifestyle: Lifestyle
    medical_conditions: list[str]
    overall_health: str
    additional_comments: str = ""

    @field_validator("timestamp")
    def timestamp_in_utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @field_validator("additional_comments", mode="before")
    def none_comment_is_blank(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("medical_conditions")
    def dedupe_conditions(cls, v: list[str]) -> list[str]:
        seen: list[str] = []
        for condition in v:
            condition = condition.strip()
            if condition and condition not in seen:
                seen.append(condition)
        return seen

    @model_validator(mode="after")
    def none_is_exclusive(self) -> "SurveyAnswers":
        """The "none" tag cannot be combined with an actual condition."""
        if NO_CONDITIONS in self.medical_conditions and len(self.medical_conditions) > 1:
            raise ValueError('"none" cannot be combined with other medical conditions')
        return self


class SurveyForm(SurveyAnswers):
    """Answers as entered in the form, held to the form's input rules before storage."""

    additional_comments: str = Field(default="", max_length=MAX_COMMENT_LENGTH)

    @model_validator(mode="after")
    def location_is_a_place_name(self) -> "SurveyForm":
        location = self.demographics.location
        if len(location) < MIN_LOCATION_LENGTH or not LOCATION_PATTERN.match(location):
            raise ValueError(
                "location must be at least 2 characters of letters, spaces, commas, "
                "periods or hyphens"
            )
        return self


class SurveyResponse(SurveyAnswers):
    """A classified, storable survey response."""

    id: str | None = None
    health_classification: HealthClassification
    health_score: int = Field(ge=0, le=100)
    risk_factors: list[str] = Field(default_factory=list)


class DemographicCounts(SurveyModel):
    age_groups: dict[str, int] = Field(default_factory=dict)
    genders: dict[str, int] = Field(default_factory=dict)
    locations: dict[str, int] = Field(default_factory=dict)


class LifestyleCounts(SurveyModel):
    physical_activity: dict[str, int] = Field(default_factory=dict)
    diet_habits: dict[str, int] = Field(default_factory=dict)
    sleep_hours: dict[str, int] = Field(default_factory=dict)
    smoking: dict[str, int] = Field(default_factory=dict)
    alcohol: dict[str, int] = Field(default_factory=dict)


class ScoreStatistics(SurveyModel):
    average: int = 0
    min: int = 0
    max: int = 0
    distribution: dict[str, int] = Field(
        default_factory=lambda: {label: 0 for label, _ in SCORE_BUCKETS}
    )


class TrendCounts(SurveyModel):
    daily: dict[str, int] = Field(default_factory=dict)
    weekly: dict[str, int] = Field(default_factory=dict)
    monthly: dict[str, int] = Field(default_factory=dict)


class StatisticsSummary(SurveyModel):
    """
    Aggregate view over the stored responses.

    Always rebuilt from the full collection; it is a cache, never a source of truth.
    """

    total_submissions: int = 0
    last_updated: datetime | None = None
    demographics: DemographicCounts = Field(default_factory=DemographicCounts)
    lifestyle: LifestyleCounts = Field(default_factory=LifestyleCounts)
    health_classifications: dict[str, int] = Field(
        default_factory=lambda: {c.value: 0 for c in HealthClassification}
    )
    medical_conditions: dict[str, int] = Field(default_factory=dict)
    health_scores: ScoreStatistics = Field(default_factory=ScoreStatistics)
    risk_factors: dict[str, int] = Field(default_factory=dict)
    trends: TrendCounts = Field(default_factory=TrendCounts)


class Settings(SurveyModel):
    """Retention, capacity and export preferences stored next to the data."""

    data_retention_days: int = Field(default=365, gt=0)
    max_submissions: int = Field(default=10000, gt=0)
    export_format: Literal["json", "csv"] = "json"
    anonymize_data: bool = True
    last_cleanup: datetime | None = None

    @field_validator("last_cleanup")
    def last_cleanup_in_utc(cls, v: datetime | None) -> datetime | None:
        return None if v is None else to_utc(v)


class ExportResult(SurveyModel):
    """Outcome of an export. Failures carry a message instead of raising."""

    success: bool
    error: str | None = None
    filename: str | None = None
    content_type: str | None = None
    content: str = ""
    size: int = 0

    @classmethod
    def failure(cls, message: str) -> "ExportResult":
        return cls(success=False, error=message)


class StorageInfo(SurveyModel):
    total_size: int = 0
    submissions_size: int = 0
    statistics_size: int = 0
    settings_size: int = 0
    submission_count: int = 0
    formatted_size: str = "0 B"
