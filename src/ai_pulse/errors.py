"""Error taxonomy for the progress engine and its store adapters."""


class ProgressError(Exception):
    """Base class for all progress-engine errors."""


class ValidationError(ProgressError):
    """Input rejected before any state change. Never retried."""


class InvalidDay(ValidationError):
    """Day number outside the path's declared range."""

    def __init__(self, day: int, challenge_count: int):
        self.day = day
        self.challenge_count = challenge_count
        super().__init__(f"Day {day} is outside 1..{challenge_count}")


class MalformedAnswer(ValidationError):
    """Submitted answer is not a string."""


class NotFoundError(ProgressError):
    """Referenced entity does not exist."""


class UnknownPath(NotFoundError):
    """Path id cannot be resolved, so its challenge count is unknown."""

    def __init__(self, path_id: str):
        self.path_id = path_id
        super().__init__(f"Unknown path: {path_id}")


class ChallengeNotFound(NotFoundError):
    """Path has no challenge stored for the requested day."""

    def __init__(self, path_id: str, day: int):
        self.path_id = path_id
        self.day = day
        super().__init__(f"No challenge for day {day} of path {path_id}")


class UserNotFound(NotFoundError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Unknown user: {user_id}")


class ConflictError(ProgressError):
    """Conditional write lost against a concurrent update.

    The caller must re-read the enrollment and apply the completion again.
    """

    def __init__(self, user_id: str, path_id: str, expected_version: int, actual_version: int):
        self.user_id = user_id
        self.path_id = path_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Enrollment {user_id}/{path_id} is at version {actual_version}, "
            f"expected {expected_version}"
        )
