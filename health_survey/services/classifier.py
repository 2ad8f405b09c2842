"""
Rule-based health classification for survey answers.

Every lifestyle answer casts at most one vote (healthy or abnormal) and moves the
score by a fixed delta. Medical risk conditions weigh double in the vote.
Unknown answer values are ignored rather than rejected.
"""

import re
from dataclasses import dataclass

import structlog

from health_survey.domain.models import (
    NO_CONDITIONS,
    HealthClassification,
    SurveyAnswers,
    SurveyResponse,
)

logger = structlog.get_logger(__name__)

BASE_SCORE = 50
MIN_SCORE = 0
MAX_SCORE = 100

RISK_CONDITIONS: tuple[str, ...] = (
    "diabetes",
    "hypertension",
    "heart-disease",
    "asthma",
    "arthritis",
    "depression",
    "anxiety",
    "obesity",
)
RISK_CONDITION_VOTES = 2
RISK_CONDITION_PENALTY = 10
NO_CONDITIONS_BONUS = 10


@dataclass(frozen=True)
class VoteBuckets:
    healthy: frozenset[str]
    abnormal: frozenset[str]


HEALTH_THRESHOLDS: dict[str, VoteBuckets] = {
    "physical_activity": VoteBuckets(
        healthy=frozenset({"moderate", "active", "very-active"}),
        abnormal=frozenset({"sedentary", "light"}),
    ),
    "sleep_hours": VoteBuckets(
        healthy=frozenset({"7-8", "9-10"}),
        abnormal=frozenset({"less-than-5", "5-6", "more-than-10"}),
    ),
    "smoking": VoteBuckets(
        healthy=frozenset({"never"}),
        abnormal=frozenset({"former", "occasional", "regular"}),
    ),
    "alcohol": VoteBuckets(
        healthy=frozenset({"never", "rarely", "moderate"}),
        abnormal=frozenset({"regular"}),
    ),
    "overall_health": VoteBuckets(
        healthy=frozenset({"excellent", "good"}),
        abnormal=frozenset({"fair", "poor"}),
    ),
}

SCORE_DELTAS: dict[str, dict[str, int]] = {
    "physical_activity": {
        "very-active": 20,
        "active": 15,
        "moderate": 10,
        "light": 5,
        "sedentary": -10,
    },
    "sleep_hours": {
        "7-8": 15,
        "9-10": 10,
        "5-6": 5,
        "less-than-5": -15,
        "more-than-10": -5,
    },
    "smoking": {"never": 10, "former": 5, "occasional": -5, "regular": -20},
    "alcohol": {"never": 5, "rarely": 5, "moderate": 0, "regular": -10},
    "overall_health": {"excellent": 20, "good": 10, "fair": -5, "poor": -20},
}

# (field, triggering values, label) in reporting order
LIFESTYLE_RISK_FACTORS: tuple[tuple[str, frozenset[str], str], ...] = (
    ("physical_activity", frozenset({"sedentary"}), "Sedentary lifestyle"),
    ("sleep_hours", frozenset({"less-than-5", "more-than-10"}), "Poor sleep patterns"),
    ("smoking", frozenset({"former", "occasional", "regular"}), "Smoking"),
    ("alcohol", frozenset({"regular"}), "High alcohol consumption"),
    ("diet_habits", frozenset({"fast-food"}), "Poor diet habits"),
)


@dataclass(frozen=True)
class VoteTally:
    healthy: int = 0
    abnormal: int = 0


@dataclass(frozen=True)
class HealthAssessment:
    """Derived fields attached to a response after classification."""

    classification: HealthClassification
    score: int
    risk_factors: list[str]


def _answer(answers: SurveyAnswers, field: str) -> str:
    if field == "overall_health":
        return answers.overall_health
    return getattr(answers.lifestyle, field)


def risk_conditions(answers: SurveyAnswers) -> list[str]:
    """Medical conditions that count as health risks, in submission order."""
    return [c for c in answers.medical_conditions if c in RISK_CONDITIONS]


def tally_votes(answers: SurveyAnswers) -> VoteTally:
    healthy = 0
    abnormal = 0

    for field, buckets in HEALTH_THRESHOLDS.items():
        value = _answer(answers, field)
        if value in buckets.healthy:
            healthy += 1
        elif value in buckets.abnormal:
            abnormal += 1

    if risk_conditions(answers):
        abnormal += RISK_CONDITION_VOTES
    elif NO_CONDITIONS in answers.medical_conditions:
        healthy += 1

    return VoteTally(healthy=healthy, abnormal=abnormal)


def classify_health(answers: SurveyAnswers) -> HealthClassification:
    tally = tally_votes(answers)
    if tally.abnormal > tally.healthy:
        return HealthClassification.ABNORMAL
    if tally.healthy > tally.abnormal:
        return HealthClassification.HEALTHY
    return HealthClassification.MODERATE


def calculate_health_score(answers: SurveyAnswers) -> int:
    score = BASE_SCORE
    for field, deltas in SCORE_DELTAS.items():
        score += deltas.get(_answer(answers, field), 0)

    score -= len(risk_conditions(answers)) * RISK_CONDITION_PENALTY
    if NO_CONDITIONS in answers.medical_conditions:
        score += NO_CONDITIONS_BONUS

    return max(MIN_SCORE, min(MAX_SCORE, score))


def condition_label(condition: str) -> str:
    """``heart-disease`` -> ``Heart Disease``."""
    return re.sub(r"\b\w", lambda m: m.group().upper(), condition.replace("-", " ", 1))


def identify_risk_factors(answers: SurveyAnswers) -> list[str]:
    factors = [
        label
        for field, triggers, label in LIFESTYLE_RISK_FACTORS
        if getattr(answers.lifestyle, field) in triggers
    ]
    factors.extend(condition_label(c) for c in risk_conditions(answers))
    return factors


def assess(answers: SurveyAnswers) -> HealthAssessment:
    return HealthAssessment(
        classification=classify_health(answers),
        score=calculate_health_score(answers),
        risk_factors=identify_risk_factors(answers),
    )


def classify_response(answers: SurveyAnswers) -> SurveyResponse:
    """Attach classification, score and risk factors to raw answers."""
    assessment = assess(answers)
    logger.debug(
        "response_classified",
        classification=assessment.classification.value,
        score=assessment.score,
        risk_factor_count=len(assessment.risk_factors),
    )
    return SurveyResponse(
        **answers.model_dump(include=set(SurveyAnswers.model_fields)),
        health_classification=assessment.classification,
        health_score=assessment.score,
        risk_factors=assessment.risk_factors,
    )
