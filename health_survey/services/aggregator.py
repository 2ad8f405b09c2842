"""
Statistics aggregation over the full response collection.

The summary is rebuilt from scratch on every call: a single pass, no incremental
state. Counter keys are emitted sorted so two runs over the same responses
serialize identically whatever their order.
"""

import math
from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

from health_survey.domain.models import (
    NO_CONDITIONS,
    SCORE_BUCKETS,
    DemographicCounts,
    HealthClassification,
    LifestyleCounts,
    ScoreStatistics,
    StatisticsSummary,
    SurveyResponse,
    TrendCounts,
)


def rounded_ratio(numerator: int, denominator: int) -> int:
    """numerator / denominator rounded half-up; 0 when the denominator is 0."""
    if not denominator:
        return 0
    ratio = Decimal(numerator) / Decimal(denominator)
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def score_bucket(score: int) -> str:
    for label, upper in SCORE_BUCKETS:
        if score <= upper:
            return label
    return SCORE_BUCKETS[-1][0]


def day_key(ts: datetime) -> str:
    return ts.astimezone(UTC).strftime("%Y-%m-%d")


def week_key(ts: datetime) -> str:
    """
    Year-week key such as ``2024-W03``.

    Week 1 is the (possibly partial) week holding Jan 1, with weeks starting on
    Sunday, so Jan 1 always falls in week 1.
    """
    ts = ts.astimezone(UTC)
    start_of_year = datetime(ts.year, 1, 1, tzinfo=UTC)
    days = (ts - start_of_year).days
    jan1_weekday = (start_of_year.weekday() + 1) % 7  # Sunday == 0
    week = math.ceil((days + jan1_weekday + 1) / 7)
    return f"{ts.year}-W{week:02d}"


def month_key(ts: datetime) -> str:
    return ts.astimezone(UTC).strftime("%Y-%m")


def _count(counter: Counter[str], key: str | None) -> None:
    if key:
        counter[key] += 1


def _sorted(counter: Counter[str]) -> dict[str, int]:
    return {key: counter[key] for key in sorted(counter)}


def aggregate(responses: Iterable[SurveyResponse]) -> StatisticsSummary:
    """Fold every response into a fresh StatisticsSummary."""
    age_groups: Counter[str] = Counter()
    genders: Counter[str] = Counter()
    locations: Counter[str] = Counter()
    activity: Counter[str] = Counter()
    diet: Counter[str] = Counter()
    sleep: Counter[str] = Counter()
    smoking: Counter[str] = Counter()
    alcohol: Counter[str] = Counter()
    classifications: Counter[str] = Counter({c.value: 0 for c in HealthClassification})
    conditions: Counter[str] = Counter()
    distribution: Counter[str] = Counter({label: 0 for label, _ in SCORE_BUCKETS})
    risk_factors: Counter[str] = Counter()
    daily: Counter[str] = Counter()
    weekly: Counter[str] = Counter()
    monthly: Counter[str] = Counter()

    total = 0
    score_sum = 0
    min_score: int | None = None
    max_score: int | None = None
    last_updated: datetime | None = None

    for response in responses:
        total += 1

        _count(age_groups, response.demographics.age_group)
        _count(genders, response.demographics.gender)
        _count(locations, response.demographics.location_key)

        _count(activity, response.lifestyle.physical_activity)
        _count(diet, response.lifestyle.diet_habits)
        _count(sleep, response.lifestyle.sleep_hours)
        _count(smoking, response.lifestyle.smoking)
        _count(alcohol, response.lifestyle.alcohol)

        _count(classifications, response.health_classification.value)
        for condition in response.medical_conditions:
            if condition != NO_CONDITIONS:
                _count(conditions, condition)

        score = response.health_score
        score_sum += score
        min_score = score if min_score is None else min(min_score, score)
        max_score = score if max_score is None else max(max_score, score)
        distribution[score_bucket(score)] += 1

        for factor in response.risk_factors:
            _count(risk_factors, factor)

        _count(daily, day_key(response.timestamp))
        _count(weekly, week_key(response.timestamp))
        _count(monthly, month_key(response.timestamp))

        if last_updated is None or response.timestamp > last_updated:
            last_updated = response.timestamp

    return StatisticsSummary(
        total_submissions=total,
        last_updated=last_updated,
        demographics=DemographicCounts(
            age_groups=_sorted(age_groups),
            genders=_sorted(genders),
            locations=_sorted(locations),
        ),
        lifestyle=LifestyleCounts(
            physical_activity=_sorted(activity),
            diet_habits=_sorted(diet),
            sleep_hours=_sorted(sleep),
            smoking=_sorted(smoking),
            alcohol=_sorted(alcohol),
        ),
        health_classifications={c.value: classifications[c.value] for c in HealthClassification},
        medical_conditions=_sorted(conditions),
        health_scores=ScoreStatistics(
            average=rounded_ratio(score_sum, total),
            min=min_score or 0,
            max=max_score or 0,
            distribution={label: distribution[label] for label, _ in SCORE_BUCKETS},
        ),
        risk_factors=_sorted(risk_factors),
        trends=TrendCounts(
            daily=_sorted(daily),
            weekly=_sorted(weekly),
            monthly=_sorted(monthly),
        ),
    )


def top_counts(counts: dict[str, int], limit: int = 10) -> dict[str, int]:
    """Most frequent entries first; ties keep key order."""
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return dict(ranked[:limit])
