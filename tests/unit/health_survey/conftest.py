"""Shared builders for survey test data."""

from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

import pytest

from health_survey.adapters.key_value import InMemoryKeyValueStore
from health_survey.domain.models import SurveyAnswers, SurveyResponse
from health_survey.services.classifier import classify_response
from health_survey.services.storage import SurveyDataStore

FIXED_NOW = datetime(2024, 6, 30, 12, 0, tzinfo=UTC)


def build_answers(
    *,
    activity: str = "moderate",
    diet: str = "balanced",
    sleep: str = "7-8",
    smoking: str = "never",
    alcohol: str = "rarely",
    overall: str = "good",
    conditions: Sequence[str] = ("none",),
    age_group: str = "25-34",
    gender: str = "female",
    location: str = "Portland, OR",
    comments: str = "",
    timestamp: datetime = FIXED_NOW,
) -> SurveyAnswers:
    return SurveyAnswers(
        timestamp=timestamp,
        demographics={"age_group": age_group, "gender": gender, "location": location},
        lifestyle={
            "physical_activity": activity,
            "diet_habits": diet,
            "sleep_hours": sleep,
            "smoking": smoking,
            "alcohol": alcohol,
        },
        medical_conditions=list(conditions),
        overall_health=overall,
        additional_comments=comments,
    )


def build_response(**overrides: Any) -> SurveyResponse:
    return classify_response(build_answers(**overrides))


@pytest.fixture(scope="session")
def make_answers() -> Callable[..., SurveyAnswers]:
    return build_answers


@pytest.fixture(scope="session")
def make_response() -> Callable[..., SurveyResponse]:
    return build_response


@pytest.fixture
def backend() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def store(backend: InMemoryKeyValueStore) -> SurveyDataStore:
    """Store with a fixed clock and predictable ids (sub-1, sub-2, ...)."""
    counter = iter(range(1, 1_000_000))
    return SurveyDataStore(
        backend,
        clock=lambda: FIXED_NOW,
        id_factory=lambda: f"sub-{next(counter)}",
    )


def build_sample_responses() -> list[SurveyResponse]:
    """Three responses, one per classification, spread over two months."""
    return [
        # healthy, score 100
        build_response(timestamp=datetime(2024, 1, 1, 10, 0, tzinfo=UTC)),
        # abnormal, score 0
        build_response(
            activity="sedentary",
            diet="fast-food",
            sleep="less-than-5",
            smoking="regular",
            alcohol="regular",
            overall="poor",
            conditions=["diabetes"],
            age_group="45-54",
            gender="male",
            location="Austin, TX",
            timestamp=datetime(2024, 1, 7, 12, 0, tzinfo=UTC),
        ),
        # moderate, score 70
        build_response(
            activity="light",
            sleep="5-6",
            alcohol="moderate",
            overall="",
            conditions=[],
            location="Portland",
            timestamp=datetime(2024, 2, 15, 8, 0, tzinfo=UTC),
        ),
    ]


@pytest.fixture
def sample_responses() -> list[SurveyResponse]:
    return build_sample_responses()


@pytest.fixture(scope="session")
def sample_responses_factory() -> Callable[[], list[SurveyResponse]]:
    return build_sample_responses


@pytest.fixture(scope="session")
def fixed_now() -> datetime:
    return FIXED_NOW
