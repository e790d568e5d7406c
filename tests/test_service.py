"""Tests for the request-scoped progress service."""

from datetime import UTC, datetime, timedelta

import pytest

from ai_pulse.engine.resume import ResumePolicy
from ai_pulse.errors import ChallengeNotFound, ConflictError, InvalidDay, UnknownPath, UserNotFound
from ai_pulse.models.path import Challenge, Path
from ai_pulse.models.user import SubscriptionTier, UserAccount
from ai_pulse.service import CHALLENGE_COMPLETED, DASHBOARD_VISIT, ProgressService
from ai_pulse.storage.memory import InMemoryProgressStore

NOW = datetime(2026, 3, 14, 9, 30, tzinfo=UTC)


class RacingStore(InMemoryProgressStore):
    """Store where another request completes ``racing_day`` before our first write."""

    def __init__(self, *args, racing_day: int, races: int = 1, **kwargs):
        super().__init__(*args, **kwargs)
        self.racing_day = racing_day
        self.races = races
        self.put_calls = 0

    def put_enrollment(self, enrollment):
        self.put_calls += 1
        if self.races > 0:
            self.races -= 1
            current = self.get_enrollment(enrollment.user_id, enrollment.path_id)
            if current is None:
                rival = enrollment.model_copy(update={"progress": [self.racing_day]})
            else:
                rival = current.model_copy(
                    update={"progress": sorted({*current.progress, self.racing_day})}
                )
            super().put_enrollment(rival)
        return super().put_enrollment(enrollment)


class TestSubmitAnswer:
    def test_scenario_first_completion(self, service, store):
        result = service.submit_answer("paid-user", "ml-basics", 3, "ml-basics-3", now=NOW)
        assert result.correct is True
        assert result.enrollment.progress == [3]
        assert result.enrollment.completion_percentage == pytest.approx(20.0)
        assert result.enrollment.version == 1
        assert result.next_day == 4
        assert store.get_enrollment("paid-user", "ml-basics") == result.enrollment

    def test_wrong_answer_persists_nothing(self, service, store):
        result = service.submit_answer("paid-user", "ml-basics", 1, "wrong", now=NOW)
        assert result.correct is False
        assert result.enrollment is None
        assert result.next_day == 1
        assert store.get_enrollment("paid-user", "ml-basics") is None
        assert store.list_activity_events("paid-user", 10) == []

    def test_correct_answer_logs_activity_and_sets_current_path(self, service, store):
        service.submit_answer("paid-user", "neural-networks", 1, "neural-networks-1", now=NOW)
        events = store.list_activity_events("paid-user", 10)
        assert [e.type for e in events] == [CHALLENGE_COMPLETED]
        assert events[0].data == {"path_id": "neural-networks", "day": 1}
        assert store.get_user("paid-user").current_path_id == "neural-networks"

    def test_resubmission_refreshes_activity_only(self, service, store):
        for day in range(1, 6):
            service.submit_answer("paid-user", "ml-basics", day, f"ml-basics-{day}", now=NOW)
        done = store.get_enrollment("paid-user", "ml-basics")
        later = NOW + timedelta(days=1)
        result = service.submit_answer("paid-user", "ml-basics", 5, "ml-basics-5", now=later)
        assert result.enrollment.progress == done.progress
        assert result.enrollment.completed_at == done.completed_at
        assert result.enrollment.last_activity_at == later
        assert result.next_day == 5

    def test_invalid_day(self, service, store):
        with pytest.raises(InvalidDay):
            service.submit_answer("paid-user", "ml-basics", 6, "anything", now=NOW)
        assert store.get_enrollment("paid-user", "ml-basics") is None

    def test_unknown_path(self, service):
        with pytest.raises(UnknownPath):
            service.submit_answer("paid-user", "quantum", 1, "x", now=NOW)

    def test_hidden_path_reported_unknown_for_free_tier(self, service):
        with pytest.raises(UnknownPath):
            service.submit_answer("free-user", "neural-networks", 1, "neural-networks-1", now=NOW)

    def test_unknown_user(self, service):
        with pytest.raises(UserNotFound):
            service.submit_answer("ghost", "ml-basics", 1, "ml-basics-1", now=NOW)

    def test_day_in_range_without_challenge(self, settings):
        sparse = Path(
            id="ml-basics",
            name="Sparse",
            challenge_count=5,
            challenges=[Challenge(day=1, task="t", expected_output="o")],
        )
        store = InMemoryProgressStore([sparse], [UserAccount(id="u1")])
        with pytest.raises(ChallengeNotFound):
            ProgressService(store, settings).submit_answer("u1", "ml-basics", 2, "o", now=NOW)

    def test_tier_change_during_submission_survives(self, catalog, users, settings):
        store = TierChangingStore(catalog, users)
        service = ProgressService(store, settings)
        result = service.submit_answer("free-user", "ml-basics", 1, "ml-basics-1", now=NOW)
        assert result.correct
        account = store.get_user("free-user")
        assert account.subscription_tier == SubscriptionTier.PAID
        assert account.current_path_id == "ml-basics"


class TierChangingStore(InMemoryProgressStore):
    """Store where the billing webhook upgrades the user mid-request."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.upgraded = False

    def get_enrollment(self, user_id, path_id):
        if not self.upgraded:
            self.upgraded = True
            account = self.get_user(user_id)
            self.put_user(account.model_copy(update={"subscription_tier": SubscriptionTier.PAID}))
        return super().get_enrollment(user_id, path_id)


class TestConflictRetry:
    def test_retry_keeps_concurrent_day(self, catalog, users, settings):
        store = RacingStore(catalog, users, racing_day=2)
        service = ProgressService(store, settings)
        result = service.submit_answer("paid-user", "ml-basics", 4, "ml-basics-4", now=NOW)
        assert result.enrollment.progress == [2, 4]
        assert result.enrollment.completion_percentage == pytest.approx(40.0)
        assert store.put_calls == 2

    def test_gives_up_after_retry_budget(self, catalog, users, settings):
        settings.max_conflict_retries = 1
        store = RacingStore(catalog, users, racing_day=2, races=5)
        service = ProgressService(store, settings)
        with pytest.raises(ConflictError):
            service.submit_answer("paid-user", "ml-basics", 4, "ml-basics-4", now=NOW)
        assert store.put_calls == 2
        assert store.list_activity_events("paid-user", 10) == []


class TestDashboard:
    def test_new_user(self, service, store):
        dashboard = service.dashboard("free-user", now=NOW)
        assert dashboard.streak == 0
        assert dashboard.completion_percentage == 0.0
        assert dashboard.resume_day is None
        assert [p.path_id for p in dashboard.paths] == ["ml-basics"]
        assert dashboard.paths[0].next_day == 1
        # The visit itself is recorded and shows up today
        assert dashboard.calendar[-1].is_active is True
        assert [e.type for e in store.list_activity_events("free-user", 10)] == [DASHBOARD_VISIT]

    def test_scenario_gapped_progress(self, service):
        for day in (1, 2, 4):
            service.submit_answer("paid-user", "ml-basics", day, f"ml-basics-{day}", now=NOW)
        dashboard = service.dashboard("paid-user", now=NOW)
        assert dashboard.current_path_id == "ml-basics"
        assert dashboard.streak == 3
        assert dashboard.completion_percentage == pytest.approx(60.0)
        assert dashboard.resume_day == 5
        summary = {p.path_id: p for p in dashboard.paths}
        assert summary["ml-basics"].completion_percentage == pytest.approx(60.0)
        assert summary["neural-networks"].next_day == 1
        assert summary["ml-basics"].completed is False

    def test_lowest_unsolved_policy(self, store, settings):
        settings.resume_policy = ResumePolicy.LOWEST_UNSOLVED
        service = ProgressService(store, settings)
        for day in (1, 2, 4):
            service.submit_answer("paid-user", "ml-basics", day, f"ml-basics-{day}", now=NOW)
        assert service.dashboard("paid-user", now=NOW).resume_day == 3

    def test_calendar_reflects_events_not_progress(self, service):
        service.record_activity("free-user", "dashboard_visit", now=NOW - timedelta(days=27))
        dashboard = service.dashboard("free-user", now=NOW)
        active = [i for i, day in enumerate(dashboard.calendar) if day.is_active]
        assert len(dashboard.calendar) == 28
        assert active == [0, 27]

    def test_streak_follows_current_path(self, service):
        service.submit_answer("paid-user", "ml-basics", 1, "ml-basics-1", now=NOW)
        service.submit_answer("paid-user", "ml-basics", 2, "ml-basics-2", now=NOW)
        service.submit_answer("paid-user", "neural-networks", 1, "neural-networks-1", now=NOW)
        dashboard = service.dashboard("paid-user", now=NOW)
        assert dashboard.current_path_id == "neural-networks"
        assert dashboard.streak == 1

    def test_current_path_hidden_after_downgrade(self, service, store):
        service.submit_answer("paid-user", "neural-networks", 1, "neural-networks-1", now=NOW)
        store.put_user(
            UserAccount(
                id="paid-user",
                subscription_tier=SubscriptionTier.FREE,
                current_path_id="neural-networks",
            )
        )
        dashboard = service.dashboard("paid-user", now=NOW)
        assert dashboard.current_path_id is None
        assert dashboard.streak == 0
        assert dashboard.resume_day is None
        assert dashboard.completion_percentage == 0.0
        assert [p.path_id for p in dashboard.paths] == ["ml-basics"]


class TestCatalog:
    def test_free_catalog(self, service):
        assert [p.id for p in service.visible_catalog("free-user")] == ["ml-basics"]

    def test_paid_catalog(self, service):
        assert len(service.visible_catalog("paid-user")) == 3

    def test_get_visible_path(self, service):
        assert service.get_visible_path("free-user", "ml-basics").id == "ml-basics"
        with pytest.raises(UnknownPath):
            service.get_visible_path("free-user", "prompt-engineering")

    def test_get_challenge(self, service):
        challenge = service.get_challenge("free-user", "ml-basics", 2)
        assert challenge.day == 2
        assert challenge.task == "Machine Learning Basics task 2"

    @pytest.mark.parametrize("day", [0, 6])
    def test_get_challenge_out_of_range(self, service, day):
        with pytest.raises(InvalidDay):
            service.get_challenge("free-user", "ml-basics", day)


class TestRecordActivity:
    def test_records_event(self, service, store):
        event = service.record_activity("free-user", "profile_view", {"tab": "settings"}, now=NOW)
        assert store.list_activity_events("free-user", 10) == [event]

    def test_unknown_user(self, service, store):
        with pytest.raises(UserNotFound):
            service.record_activity("ghost", "profile_view", now=NOW)
        assert store.list_activity_events("ghost", 10) == []
