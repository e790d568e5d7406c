"""Progress store adapter interface."""

from abc import ABC, abstractmethod

from ai_pulse.models.activity import ActivityEvent
from ai_pulse.models.enrollment import Enrollment
from ai_pulse.models.path import Path
from ai_pulse.models.user import UserAccount


class ProgressStore(ABC):
    """Narrow read/write interface the service depends on.

    ``put_enrollment`` is a conditional write: it succeeds only if the stored
    record is still at ``enrollment.version`` (0 when absent) and raises
    ``ConflictError`` otherwise, so two concurrent completions of different
    days cannot silently overwrite each other.
    """

    @abstractmethod
    def get_enrollment(self, user_id: str, path_id: str) -> Enrollment | None: ...

    @abstractmethod
    def put_enrollment(self, enrollment: Enrollment) -> Enrollment:
        """Store the enrollment and return it with its new version."""

    @abstractmethod
    def list_enrollments(self, user_id: str) -> list[Enrollment]: ...

    @abstractmethod
    def append_activity_event(self, event: ActivityEvent) -> ActivityEvent: ...

    @abstractmethod
    def list_activity_events(self, user_id: str, limit: int) -> list[ActivityEvent]:
        """Return at most ``limit`` events, newest first."""

    @abstractmethod
    def get_path(self, path_id: str) -> Path | None: ...

    @abstractmethod
    def list_paths(self) -> list[Path]: ...

    @abstractmethod
    def get_user(self, user_id: str) -> UserAccount | None: ...

    @abstractmethod
    def put_user(self, account: UserAccount) -> None: ...

    @abstractmethod
    def set_current_path(self, user_id: str, path_id: str) -> None:
        """Point the account at ``path_id``, leaving every other field as stored."""
