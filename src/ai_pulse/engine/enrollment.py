"""Enrollment engine: applies a challenge completion to an enrollment record."""

from dataclasses import dataclass
from datetime import datetime

import structlog

from ai_pulse.errors import InvalidDay, MalformedAnswer, UnknownPath
from ai_pulse.models.common import as_utc
from ai_pulse.models.enrollment import Enrollment

logger = structlog.get_logger()


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of one answer submission.

    ``enrollment`` is ``None`` only for a wrong answer on a path the user
    never started.
    """

    enrollment: Enrollment | None
    correct: bool


def completion_percentage(completed_days: int, challenge_count: int) -> float:
    """Percentage of the path completed, independent of day order."""
    return completed_days / challenge_count * 100


def apply_completion(
    enrollment: Enrollment | None,
    *,
    user_id: str,
    path_id: str,
    day: int,
    challenge_count: int | None,
    submitted_answer: str,
    expected_answer: str,
    now: datetime,
) -> CompletionResult:
    """Apply a submitted answer for ``day`` of ``path_id``.

    Args:
        enrollment: Current record, or None if the user never answered correctly.
        user_id: Authenticated user id.
        path_id: Path being attempted.
        day: Day number, must lie in ``1..challenge_count``.
        challenge_count: Number of days in the path; None if the path is unknown.
        submitted_answer: Answer as typed by the user.
        expected_answer: Expected output of the challenge (exact, case-sensitive).
        now: Submission time.

    Returns:
        New enrollment (the input is never mutated) and whether the answer
        was correct.

    Raises:
        UnknownPath: challenge_count could not be resolved.
        InvalidDay: day outside the path's range.
        MalformedAnswer: submitted_answer is not a string.
    """
    if challenge_count is None:
        raise UnknownPath(path_id)
    assert challenge_count > 0, f"challenge_count must be positive, got {challenge_count}"
    if enrollment is not None:
        assert (enrollment.user_id, enrollment.path_id) == (user_id, path_id), (
            "enrollment belongs to a different user or path"
        )

    if isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= challenge_count:
        raise InvalidDay(day, challenge_count)
    if not isinstance(submitted_answer, str):
        raise MalformedAnswer(f"Answer must be a string, got {type(submitted_answer).__name__}")

    if submitted_answer != expected_answer:
        logger.debug("completion_rejected", user_id=user_id, path_id=path_id, day=day)
        return CompletionResult(enrollment=enrollment, correct=False)

    now = as_utc(now)

    if enrollment is None:
        created = Enrollment(
            user_id=user_id,
            path_id=path_id,
            progress=[day],
            completion_percentage=completion_percentage(1, challenge_count),
            enrolled_at=now,
            last_activity_at=now,
            completed_at=now if challenge_count == 1 else None,
        )
        logger.debug("enrollment_created", user_id=user_id, path_id=path_id, day=day)
        return CompletionResult(enrollment=created, correct=True)

    if day in enrollment.progress:
        # Re-solving a known day counts as activity only
        refreshed = enrollment.model_copy(update={"last_activity_at": now})
        logger.debug("completion_repeated", user_id=user_id, path_id=path_id, day=day)
        return CompletionResult(enrollment=refreshed, correct=True)

    progress = sorted([*enrollment.progress, day])
    completed_at = enrollment.completed_at
    if completed_at is None and len(progress) >= challenge_count:
        completed_at = now

    updated = enrollment.model_copy(
        update={
            "progress": progress,
            "completion_percentage": completion_percentage(len(progress), challenge_count),
            "last_activity_at": now,
            "completed_at": completed_at,
        }
    )
    logger.debug(
        "completion_applied",
        user_id=user_id,
        path_id=path_id,
        day=day,
        completed_days=len(progress),
        path_completed=completed_at is not None,
    )
    return CompletionResult(enrollment=updated, correct=True)
