"""Resume resolver: which day the user should attempt next."""

from enum import StrEnum

from ai_pulse.models.enrollment import Enrollment


class ResumePolicy(StrEnum):
    """How gaps in progress affect the resume day.

    HIGHEST_PLUS_ONE advances past the highest solved day, so {1, 2, 4}
    resumes at 5. LOWEST_UNSOLVED fills gaps first, so {1, 2, 4} resumes at 3.
    """

    HIGHEST_PLUS_ONE = "highest_plus_one"
    LOWEST_UNSOLVED = "lowest_unsolved"


def next_day(
    enrollment: Enrollment | None,
    challenge_count: int,
    policy: ResumePolicy = ResumePolicy.HIGHEST_PLUS_ONE,
) -> int:
    """Return the day to present next, always within ``1..challenge_count``."""
    assert challenge_count >= 1, f"challenge_count must be positive, got {challenge_count}"
    if enrollment is None or not enrollment.progress:
        return 1

    if policy == ResumePolicy.LOWEST_UNSOLVED:
        solved = set(enrollment.progress)
        for day in range(1, challenge_count + 1):
            if day not in solved:
                return day
        return challenge_count

    highest = max(enrollment.progress)
    if highest >= challenge_count:
        # Completed paths revisit the final day
        return challenge_count
    return highest + 1
