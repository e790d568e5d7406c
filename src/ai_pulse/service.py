"""Request-scoped progress service.

Loads records through the store, runs the pure engine functions, and
persists the results. Conflicting enrollment writes are retried here with a
fresh read; the engine itself never retries.
"""

from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, Field

from ai_pulse.config import Settings, load_catalog
from ai_pulse.engine.activity import activity_calendar, streak
from ai_pulse.engine.catalog import visible_paths
from ai_pulse.engine.enrollment import apply_completion
from ai_pulse.engine.resume import next_day
from ai_pulse.errors import ChallengeNotFound, ConflictError, InvalidDay, UnknownPath, UserNotFound
from ai_pulse.models.activity import ActivityEvent, CalendarDay
from ai_pulse.models.common import as_utc, utc_now
from ai_pulse.models.enrollment import Enrollment
from ai_pulse.models.path import Challenge, Path
from ai_pulse.models.user import SubscriptionTier, UserAccount
from ai_pulse.storage.base import ProgressStore
from ai_pulse.storage.json_store import JsonProgressStore
from ai_pulse.storage.memory import InMemoryProgressStore

logger = structlog.get_logger()

CHALLENGE_COMPLETED = "challenge_completed"
DASHBOARD_VISIT = "dashboard_visit"


class SubmissionResult(BaseModel):
    """Result of one answer submission."""

    correct: bool
    enrollment: Enrollment | None = None
    next_day: int


class PathSummary(BaseModel):
    """Per-path progress line shown on the dashboard."""

    path_id: str
    name: str
    difficulty: str | None = None
    challenge_count: int | None = None
    completion_percentage: float = 0.0
    next_day: int | None = None
    completed: bool = False


class Dashboard(BaseModel):
    user_id: str
    subscription_tier: SubscriptionTier
    current_path_id: str | None = None
    streak: int = 0
    completion_percentage: float = 0.0
    resume_day: int | None = None
    calendar: list[CalendarDay] = Field(default_factory=list)
    paths: list[PathSummary] = Field(default_factory=list)


class ProgressService:
    """Caller layer between request handlers and the progress engine.

    Args:
        store: Persistence adapter (one long-lived handle per process).
        settings: Application settings.
    """

    def __init__(self, store: ProgressStore, settings: Settings):
        self.store = store
        self.settings = settings

    def _require_user(self, user_id: str) -> UserAccount:
        account = self.store.get_user(user_id)
        if account is None:
            raise UserNotFound(user_id)
        return account

    def _visible(self, account: UserAccount) -> list[Path]:
        return visible_paths(
            self.store.list_paths(),
            account.subscription_tier,
            self.settings.free_tier_path_ids,
        )

    def visible_catalog(self, user_id: str) -> list[Path]:
        """Paths the user's subscription tier may see, in catalog order."""
        return self._visible(self._require_user(user_id))

    def get_visible_path(self, user_id: str, path_id: str) -> Path:
        """Return one path, reporting paths hidden from the user's tier as unknown."""
        account = self._require_user(user_id)
        return self._path_for(account, path_id)

    def _path_for(self, account: UserAccount, path_id: str) -> Path:
        for path in self._visible(account):
            if path.id == path_id:
                return path
        raise UnknownPath(path_id)

    @staticmethod
    def _challenge_for(path: Path, day: int) -> Challenge:
        challenge_count = path.challenge_count
        if challenge_count is None:
            raise UnknownPath(path.id)
        if not 1 <= day <= challenge_count:
            raise InvalidDay(day, challenge_count)
        challenge = path.challenge_for(day)
        if challenge is None:
            raise ChallengeNotFound(path.id, day)
        return challenge

    def get_challenge(self, user_id: str, path_id: str, day: int) -> Challenge:
        """Return one day of a visible path, validated like a submission."""
        return self._challenge_for(self.get_visible_path(user_id, path_id), day)

    def record_activity(
        self,
        user_id: str,
        activity_type: str,
        data: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> ActivityEvent:
        """Append one activity event to the log of an existing user."""
        self._require_user(user_id)
        return self._append_event(user_id, activity_type, data, now)

    def _append_event(
        self,
        user_id: str,
        activity_type: str,
        data: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> ActivityEvent:
        event = ActivityEvent(
            user_id=user_id,
            type=activity_type,
            created_at=now if now is not None else utc_now(),
            data=data or {},
        )
        self.store.append_activity_event(event)
        logger.debug("activity_recorded", user_id=user_id, type=activity_type)
        return event

    def submit_answer(
        self,
        user_id: str,
        path_id: str,
        day: int,
        answer: str,
        now: datetime | None = None,
    ) -> SubmissionResult:
        """Check an answer and persist the resulting progress.

        Wrong answers create no record and log no activity. Correct answers
        update the enrollment, log a ``challenge_completed`` event and make
        ``path_id`` the user's current path.

        Raises:
            UserNotFound: user_id has no account.
            UnknownPath: path missing or hidden from the user's tier.
            InvalidDay: day outside the path's range.
            ChallengeNotFound: day in range but no challenge stored for it.
            ConflictError: concurrent writes persisted past the retry budget.
        """
        now = as_utc(now if now is not None else utc_now())
        account = self._require_user(user_id)
        path = self._path_for(account, path_id)
        challenge = self._challenge_for(path, day)
        challenge_count = path.challenge_count

        retries = self.settings.max_conflict_retries
        for attempt in range(retries + 1):
            current = self.store.get_enrollment(user_id, path_id)
            result = apply_completion(
                current,
                user_id=user_id,
                path_id=path_id,
                day=day,
                challenge_count=challenge_count,
                submitted_answer=answer,
                expected_answer=challenge.expected_output,
                now=now,
            )
            if not result.correct:
                logger.info("answer_incorrect", user_id=user_id, path_id=path_id, day=day)
                return SubmissionResult(
                    correct=False,
                    enrollment=current,
                    next_day=next_day(current, challenge_count, self.settings.resume_policy),
                )
            try:
                stored = self.store.put_enrollment(result.enrollment)
                break
            except ConflictError:
                if attempt == retries:
                    logger.error(
                        "enrollment_conflict_exhausted",
                        user_id=user_id,
                        path_id=path_id,
                        attempts=attempt + 1,
                    )
                    raise
                logger.warning(
                    "enrollment_conflict_retry", user_id=user_id, path_id=path_id, attempt=attempt + 1
                )

        self._append_event(user_id, CHALLENGE_COMPLETED, {"path_id": path_id, "day": day}, now=now)
        if account.current_path_id != path_id:
            # Touches current_path_id only; the tier may change concurrently
            self.store.set_current_path(user_id, path_id)

        logger.info(
            "answer_accepted",
            user_id=user_id,
            path_id=path_id,
            day=day,
            completion_percentage=stored.completion_percentage,
        )
        return SubmissionResult(
            correct=True,
            enrollment=stored,
            next_day=next_day(stored, challenge_count, self.settings.resume_policy),
        )

    def dashboard(self, user_id: str, now: datetime | None = None) -> Dashboard:
        """Record a dashboard visit and summarise the user's progress."""
        now = as_utc(now if now is not None else utc_now())
        account = self._require_user(user_id)
        self._append_event(user_id, DASHBOARD_VISIT, now=now)

        enrollments = {e.path_id: e for e in self.store.list_enrollments(user_id)}
        policy = self.settings.resume_policy
        visible = self._visible(account)

        summaries = []
        for path in visible:
            enrollment = enrollments.get(path.id)
            summaries.append(
                PathSummary(
                    path_id=path.id,
                    name=path.name,
                    difficulty=path.difficulty,
                    challenge_count=path.challenge_count,
                    completion_percentage=enrollment.completion_percentage if enrollment else 0.0,
                    next_day=next_day(enrollment, path.challenge_count, policy)
                    if path.challenge_count
                    else None,
                    completed=enrollment is not None and enrollment.is_completed,
                )
            )

        # A current path the tier no longer shows counts as no current path
        current_path = next((p for p in visible if p.id == account.current_path_id), None)
        current = enrollments.get(current_path.id) if current_path is not None else None
        resume_day = None
        if current_path is not None and current_path.challenge_count:
            resume_day = next_day(current, current_path.challenge_count, policy)

        events = self.store.list_activity_events(user_id, self.settings.activity_fetch_limit)
        return Dashboard(
            user_id=user_id,
            subscription_tier=account.subscription_tier,
            current_path_id=current_path.id if current_path is not None else None,
            streak=streak(current),
            completion_percentage=current.completion_percentage if current else 0.0,
            resume_day=resume_day,
            calendar=activity_calendar(events, self.settings.activity_window_days, now),
            paths=summaries,
        )


def create_store(settings: Settings) -> ProgressStore:
    """Build the configured store, seeded with the YAML catalog."""
    catalog = load_catalog(settings.catalog_path) if settings.catalog_path.exists() else []
    if settings.storage_backend == "json":
        return JsonProgressStore(settings.data_dir, catalog)
    return InMemoryProgressStore(catalog)
