"""
Tests for the survey data store.

Covers:
- The Result type for explicit error handling
- Default records on missing or malformed content
- Validation, capacity trimming and anonymization on insert
- Retention cleanup and the weekly maintenance trigger
"""

import json
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from health_survey.adapters.key_value import InMemoryKeyValueStore, JsonFileKeyValueStore
from health_survey.domain.models import Settings, StatisticsSummary, SurveyResponse
from health_survey.services.anonymizer import REDACTED_COMMENT
from health_survey.services.storage import Result, StorageKeys, SurveyDataStore, format_bytes

ResponseFactory = Callable[..., SurveyResponse]


class TestResult:
    """Test the Result type for explicit error handling."""

    def test_result_ok_creates_successful_result(self) -> None:
        result: Result[str, Exception] = Result.ok("success")
        assert result.is_ok()
        assert not result.is_err()
        assert result.unwrap() == "success"

    def test_result_error_creates_failed_result(self) -> None:
        error = ValueError("test error")
        result: Result[str, ValueError] = Result.err(error)
        assert not result.is_ok()
        assert result.is_err()
        assert result.unwrap_or("default") == "default"

    def test_unwrap_raises_on_error_result(self) -> None:
        result: Result[str, ValueError] = Result.err(ValueError("test error"))

        with pytest.raises(ValueError, match="test error"):
            result.unwrap()

    def test_unwrap_err_on_ok_raises(self) -> None:
        with pytest.raises(ValueError, match="unwrap_err"):
            Result.ok(1).unwrap_err()


class TestReads:
    def test_missing_records_return_defaults(self, store: SurveyDataStore) -> None:
        assert store.get_submissions() == []
        assert store.get_statistics() == StatisticsSummary()
        assert store.get_settings() == Settings()

    def test_malformed_records_return_defaults(
        self, store: SurveyDataStore, backend: InMemoryKeyValueStore
    ) -> None:
        backend.set_item("healthFeedbackSubmissions", "{not json")
        backend.set_item("healthFeedbackStats", "[1, 2, 3]")
        backend.set_item("healthFeedbackSettings", '{"maxSubmissions": -4}')

        assert store.get_submissions() == []
        assert store.get_statistics() == StatisticsSummary()
        assert store.get_settings() == Settings()

    def test_initialize_writes_all_three_records(
        self, store: SurveyDataStore, backend: InMemoryKeyValueStore
    ) -> None:
        store.initialize()

        assert backend.keys() == [
            "healthFeedbackSettings",
            "healthFeedbackStats",
            "healthFeedbackSubmissions",
        ]
        assert backend.get_item("healthFeedbackSubmissions") == "[]"

    def test_namespace_prefixes_keys(self) -> None:
        keys = StorageKeys.for_namespace("clinicA")
        assert (keys.submissions, keys.statistics, keys.settings) == (
            "clinicASubmissions",
            "clinicAStats",
            "clinicASettings",
        )

    def test_records_are_camel_case_json(
        self, store: SurveyDataStore, backend: InMemoryKeyValueStore, make_response: ResponseFactory
    ) -> None:
        store.add_submission(make_response())

        stored = json.loads(backend.get_item("healthFeedbackSubmissions") or "")
        assert stored[0]["demographics"]["ageGroup"] == "25-34"
        assert stored[0]["healthClassification"] == "healthy"
        assert stored[0]["healthScore"] == 100


class TestAddSubmission:
    def test_valid_submission_is_stored_and_counted(
        self, store: SurveyDataStore, make_response: ResponseFactory
    ) -> None:
        result = store.add_submission(make_response())

        assert result.is_ok()
        stored = result.unwrap()
        assert stored.id == "sub-1"
        assert store.get_submissions() == [stored]
        assert store.get_statistics().total_submissions == 1

    def test_existing_id_is_kept(
        self, store: SurveyDataStore, make_response: ResponseFactory
    ) -> None:
        response = make_response().model_copy(update={"id": "external-7"})
        assert store.add_submission(response).unwrap().id == "external-7"

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda d: d.update(healthScore=150),
            lambda d: d.update(healthScore=-1),
            lambda d: d.update(healthClassification="great"),
            lambda d: d.pop("overallHealth"),
            lambda d: d["demographics"].pop("gender"),
        ],
        ids=["score-high", "score-low", "bad-classification", "no-overall", "no-gender"],
    )
    def test_invalid_submission_leaves_state_untouched(
        self,
        store: SurveyDataStore,
        backend: InMemoryKeyValueStore,
        make_response: ResponseFactory,
        mutate: Callable[[dict], object],
    ) -> None:
        store.add_submission(make_response())
        before = dict((key, backend.get_item(key)) for key in backend.keys())

        payload = make_response().model_dump(mode="json", by_alias=True)
        mutate(payload)
        result = store.add_submission(payload)

        assert result.is_err()
        assert isinstance(result.unwrap_err(), ValidationError)
        assert dict((key, backend.get_item(key)) for key in backend.keys()) == before

    def test_capacity_evicts_oldest_first(
        self, store: SurveyDataStore, make_response: ResponseFactory
    ) -> None:
        store.update_settings(max_submissions=3)

        for i in range(5):
            store.add_submission(make_response(location=f"City{i}"))

        submissions = store.get_submissions()
        assert [s.id for s in submissions] == ["sub-3", "sub-4", "sub-5"]
        assert [s.demographics.location for s in submissions] == ["City2", "City3", "City4"]
        assert store.get_statistics().total_submissions == 3

    def test_lowered_capacity_trims_on_next_insert(
        self, store: SurveyDataStore, make_response: ResponseFactory
    ) -> None:
        for _ in range(4):
            store.add_submission(make_response())
        store.update_settings(max_submissions=2)

        store.add_submission(make_response())

        assert [s.id for s in store.get_submissions()] == ["sub-4", "sub-5"]

    def test_anonymizes_when_enabled(
        self, store: SurveyDataStore, make_response: ResponseFactory
    ) -> None:
        response = make_response(
            location="Portland, OR, USA", comments="email me at jane.doe@example.com"
        )

        stored = store.add_submission(response).unwrap()

        assert stored.demographics.location == "Portland"
        assert stored.additional_comments == REDACTED_COMMENT

    def test_keeps_raw_values_when_anonymizing_is_off(
        self, store: SurveyDataStore, make_response: ResponseFactory
    ) -> None:
        store.update_settings(anonymize_data=False)
        response = make_response(location="Portland, OR", comments="call 555-123-4567")

        stored = store.add_submission(response).unwrap()

        assert stored.demographics.location == "Portland, OR"
        assert stored.additional_comments == "call 555-123-4567"


class TestRetention:
    @pytest.fixture
    def aged_store(
        self, store: SurveyDataStore, make_response: ResponseFactory, fixed_now: datetime
    ) -> SurveyDataStore:
        store.update_settings(data_retention_days=30)
        for age_days in (40, 30, 29, 1):
            store.add_submission(
                make_response(
                    location=f"Age{age_days}", timestamp=fixed_now - timedelta(days=age_days)
                )
            )
        return store

    def test_cleanup_removes_only_expired(
        self, aged_store: SurveyDataStore, fixed_now: datetime
    ) -> None:
        removed = aged_store.cleanup_old_data(fixed_now)

        assert removed == 2
        remaining = [s.demographics.location for s in aged_store.get_submissions()]
        assert remaining == ["Age29", "Age1"]
        assert aged_store.get_statistics().total_submissions == 2

    def test_cleanup_without_expired_entries_is_a_no_op(
        self, aged_store: SurveyDataStore, backend: InMemoryKeyValueStore, fixed_now: datetime
    ) -> None:
        aged_store.cleanup_old_data(fixed_now)
        before = backend.get_item("healthFeedbackSubmissions")

        assert aged_store.cleanup_old_data(fixed_now) == 0
        assert backend.get_item("healthFeedbackSubmissions") == before

    def test_maintenance_runs_weekly(self, aged_store: SurveyDataStore, fixed_now: datetime) -> None:
        assert aged_store.perform_maintenance(fixed_now) is True
        assert aged_store.get_settings().last_cleanup == fixed_now
        assert len(aged_store.get_submissions()) == 2

        assert aged_store.perform_maintenance(fixed_now + timedelta(days=1)) is False
        assert aged_store.perform_maintenance(fixed_now + timedelta(days=7)) is False
        assert aged_store.perform_maintenance(fixed_now + timedelta(days=8)) is True

    def test_maintenance_uses_store_clock(
        self, aged_store: SurveyDataStore, fixed_now: datetime
    ) -> None:
        assert aged_store.perform_maintenance() is True
        assert aged_store.get_settings().last_cleanup == fixed_now

    def test_naive_now_is_treated_as_utc(
        self, aged_store: SurveyDataStore, fixed_now: datetime
    ) -> None:
        naive_now = fixed_now.replace(tzinfo=None)

        assert aged_store.perform_maintenance(naive_now) is True
        assert aged_store.get_settings().last_cleanup == fixed_now
        assert len(aged_store.get_submissions()) == 2
        assert aged_store.cleanup_old_data(naive_now) == 0


class FailingBackend(InMemoryKeyValueStore):
    """Backend whose reads fail at the OS level."""

    def get_item(self, key: str) -> str | None:
        raise OSError("disk unavailable")


class TestUnreadableRecords:
    def test_undecodable_file_falls_back_to_defaults(self, tmp_path: Path) -> None:
        corrupt = tmp_path / "healthFeedbackSubmissions.json"
        corrupt.write_bytes(b"[\xff\xfe]")
        store = SurveyDataStore(JsonFileKeyValueStore(tmp_path))

        assert store.get_submissions() == []
        assert store.get_storage_info().submission_count == 0

        store.initialize()

        assert corrupt.read_bytes() == b"[\xff\xfe]"
        assert store.get_settings() == Settings()

    def test_os_errors_fall_back_to_defaults(self) -> None:
        store = SurveyDataStore(FailingBackend())

        assert store.get_submissions() == []
        assert store.get_statistics() == StatisticsSummary()
        assert store.get_settings() == Settings()
        store.initialize()

    def test_one_invalid_record_does_not_hide_the_rest(
        self,
        store: SurveyDataStore,
        backend: InMemoryKeyValueStore,
        make_response: ResponseFactory,
    ) -> None:
        for name in ("Alpha", "Beta", "Gamma"):
            store.add_submission(make_response(location=name))
        records = json.loads(backend.get_item("healthFeedbackSubmissions") or "")
        records[1]["healthScore"] = 101
        backend.set_item("healthFeedbackSubmissions", json.dumps(records))

        assert [s.demographics.location for s in store.get_submissions()] == ["Alpha", "Gamma"]

        store.add_submission(make_response(location="Delta"))

        locations = [s.demographics.location for s in store.get_submissions()]
        assert locations == ["Alpha", "Gamma", "Delta"]
        assert store.get_statistics().total_submissions == 3


class TestSettingsAndHousekeeping:
    def test_update_settings_merges(self, store: SurveyDataStore) -> None:
        store.update_settings(max_submissions=50)
        updated = store.update_settings(export_format="csv")

        assert updated.max_submissions == 50
        assert updated.export_format == "csv"
        assert store.get_settings() == updated

    def test_update_settings_rejects_invalid_values(self, store: SurveyDataStore) -> None:
        with pytest.raises(ValidationError):
            store.update_settings(max_submissions=0)

    def test_clear_all_data_requires_confirmation(
        self, store: SurveyDataStore, make_response: ResponseFactory
    ) -> None:
        store.add_submission(make_response())

        assert store.clear_all_data() is False
        assert len(store.get_submissions()) == 1

        assert store.clear_all_data(confirm=True) is True
        assert store.get_submissions() == []
        assert store.get_statistics() == StatisticsSummary()

    def test_storage_info(self, store: SurveyDataStore, make_response: ResponseFactory) -> None:
        store.add_submission(make_response())
        info = store.get_storage_info()

        assert info.submission_count == 1
        assert info.submissions_size > 0
        assert info.total_size == info.submissions_size + info.statistics_size + info.settings_size
        assert info.formatted_size.endswith(("B", "KB"))

    def test_repository_data_is_aggregate_only(
        self, store: SurveyDataStore, make_response: ResponseFactory
    ) -> None:
        store.add_submission(make_response(activity="sedentary", conditions=["asthma"]))
        data = store.get_repository_data()

        assert "submissions" not in data
        assert data["metadata"]["totalSubmissions"] == 1
        assert data["metadata"]["dataVersion"] == "1.0"
        assert data["summary"]["commonRiskFactors"] == {"Asthma": 1, "Sedentary lifestyle": 1}
        assert data["aggregatedData"]["healthScoreDistribution"]["0-20"] == 0


@pytest.mark.parametrize(
    "size,expected",
    [(0, "0 B"), (500, "500 B"), (1024, "1 KB"), (1536, "1.5 KB"), (1048576, "1 MB")],
)
def test_format_bytes(size: int, expected: str) -> None:
    assert format_bytes(size) == expected
