"""
Dashboard view computed from the stored responses.

Everything here is UI-agnostic and JSON-serializable: filtering, the summary
cards, one labels/values series per chart and the paginated response table.
"""

from collections import Counter, defaultdict
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from health_survey.domain.models import HealthClassification, SurveyResponse
from health_survey.services.aggregator import day_key, rounded_ratio, top_counts

DEFAULT_PAGE_SIZE = 10
TOP_N = 10
TABLE_RISK_FACTORS = 3


@dataclass(frozen=True)
class DashboardFilters:
    """Empty string means "any"."""

    age_group: str = ""
    gender: str = ""
    location: str = ""

    def matches(self, response: SurveyResponse) -> bool:
        demographics = response.demographics
        if self.age_group and demographics.age_group != self.age_group:
            return False
        if self.gender and demographics.gender != self.gender:
            return False
        if self.location and self.location not in demographics.location:
            return False
        return True


def normalize_filters(raw: dict[str, Any] | None) -> DashboardFilters:
    raw = raw or {}
    return DashboardFilters(
        age_group=str(raw.get("age_group") or "").strip(),
        gender=str(raw.get("gender") or "").strip(),
        location=str(raw.get("location") or "").strip(),
    )


@dataclass(frozen=True)
class SummaryCards:
    total_submissions: int
    average_health_score: int
    healthy_percentage: int
    last_updated: datetime | None


@dataclass(frozen=True)
class ChartSeries:
    title: str
    labels: list[str]
    values: list[int]


@dataclass(frozen=True)
class Page:
    items: list[SurveyResponse]
    page: int
    per_page: int
    total_items: int
    total_pages: int

    @property
    def start_index(self) -> int:
        """1-based index of the first row shown, 0 when the page is empty."""
        return (self.page - 1) * self.per_page + 1 if self.items else 0

    @property
    def end_index(self) -> int:
        return (self.page - 1) * self.per_page + len(self.items)

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


@dataclass(frozen=True)
class DashboardView:
    filters: DashboardFilters
    summary: SummaryCards
    charts: dict[str, ChartSeries] = field(default_factory=dict)
    table: Page | None = None
    location_options: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        last_updated = self.summary.last_updated
        payload["summary"]["last_updated"] = last_updated.isoformat() if last_updated else None
        if self.table is not None:
            payload["table"]["items"] = [table_row(item) for item in self.table.items]
        return payload


def apply_filters(
    responses: Iterable[SurveyResponse], filters: DashboardFilters
) -> list[SurveyResponse]:
    return [r for r in responses if filters.matches(r)]


def location_options(responses: Iterable[SurveyResponse]) -> list[str]:
    return sorted({r.demographics.location_key for r in responses if r.demographics.location_key})


def summary_cards(
    responses: list[SurveyResponse], last_updated: datetime | None = None
) -> SummaryCards:
    total = len(responses)
    healthy = sum(1 for r in responses if r.health_classification is HealthClassification.HEALTHY)
    return SummaryCards(
        total_submissions=total,
        average_health_score=rounded_ratio(sum(r.health_score for r in responses), total),
        healthy_percentage=rounded_ratio(healthy * 100, total),
        last_updated=last_updated,
    )


def _series(title: str, counts: dict[str, int]) -> ChartSeries:
    return ChartSeries(title=title, labels=list(counts), values=list(counts.values()))


def _distribution(
    title: str, responses: list[SurveyResponse], key: Callable[[SurveyResponse], str]
) -> ChartSeries:
    counts: Counter[str] = Counter(key(r) for r in responses if key(r))
    return _series(title, dict(counts))


def _average_scores(
    responses: list[SurveyResponse], key: Callable[[SurveyResponse], str]
) -> dict[str, int]:
    groups: dict[str, list[int]] = defaultdict(list)
    for r in responses:
        groups[key(r)].append(r.health_score)
    return {name: rounded_ratio(sum(scores), len(scores)) for name, scores in groups.items()}


def build_charts(responses: list[SurveyResponse]) -> dict[str, ChartSeries]:
    """One series per dashboard chart, keyed by chart id."""
    classifications = Counter(r.health_classification.value for r in responses)
    risk_factors: Counter[str] = Counter(f for r in responses for f in r.risk_factors)
    by_location = _average_scores(responses, lambda r: r.demographics.location_key)
    timeline = Counter(day_key(r.timestamp) for r in responses)

    return {
        "age_distribution": _distribution(
            "Age Distribution", responses, lambda r: r.demographics.age_group
        ),
        "gender_distribution": _distribution(
            "Gender Distribution", responses, lambda r: r.demographics.gender
        ),
        "health_classification": _series(
            "Health Classification",
            {c.value: classifications[c.value] for c in HealthClassification},
        ),
        "health_scores_by_age": _series(
            "Average Health Score by Age Group",
            _average_scores(responses, lambda r: r.demographics.age_group),
        ),
        "physical_activity": _distribution(
            "Physical Activity Levels", responses, lambda r: r.lifestyle.physical_activity
        ),
        "sleep_patterns": _distribution(
            "Sleep Patterns", responses, lambda r: r.lifestyle.sleep_hours
        ),
        "risk_factors": _series("Most Common Risk Factors", top_counts(dict(risk_factors), TOP_N)),
        "health_scores_by_location": _series(
            "Average Health Score by Location", top_counts(by_location, TOP_N)
        ),
        "submissions_timeline": _series(
            "Submissions Over Time", {day: timeline[day] for day in sorted(timeline)}
        ),
    }


def paginate(
    items: list[SurveyResponse], page: int = 1, per_page: int = DEFAULT_PAGE_SIZE
) -> Page:
    """Slice one page out of ``items``; out-of-range pages clamp to the nearest valid one."""
    if per_page <= 0:
        raise ValueError("per_page must be positive")
    total_items = len(items)
    total_pages = -(-total_items // per_page)
    page = max(1, min(page, max(total_pages, 1)))
    start = (page - 1) * per_page
    return Page(
        items=items[start : start + per_page],
        page=page,
        per_page=per_page,
        total_items=total_items,
        total_pages=total_pages,
    )


def table_row(response: SurveyResponse) -> dict[str, Any]:
    """Row of the recent-submissions table; risk factors truncated to three."""
    factors = response.risk_factors
    shown = ", ".join(factors[:TABLE_RISK_FACTORS])
    if len(factors) > TABLE_RISK_FACTORS:
        shown += "..."
    return {
        "date": response.timestamp.date().isoformat(),
        "age_group": response.demographics.age_group,
        "gender": response.demographics.gender,
        "location": response.demographics.location,
        "health_score": response.health_score,
        "classification": response.health_classification.value,
        "risk_factors": shown or "None",
    }


def build_dashboard(
    responses: list[SurveyResponse],
    filters: DashboardFilters | None = None,
    *,
    page: int = 1,
    per_page: int = DEFAULT_PAGE_SIZE,
    last_updated: datetime | None = None,
) -> DashboardView:
    filters = filters or DashboardFilters()
    filtered = apply_filters(responses, filters)
    return DashboardView(
        filters=filters,
        summary=summary_cards(filtered, last_updated),
        charts=build_charts(filtered),
        table=paginate(filtered, page, per_page),
        location_options=location_options(responses),
    )
