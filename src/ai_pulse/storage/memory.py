"""In-memory progress store for tests and the development server."""

import threading

from ai_pulse.errors import ConflictError, UserNotFound
from ai_pulse.models.activity import ActivityEvent
from ai_pulse.models.enrollment import Enrollment
from ai_pulse.models.path import Path
from ai_pulse.models.user import UserAccount
from ai_pulse.storage.base import ProgressStore


class InMemoryProgressStore(ProgressStore):
    """Dictionary-backed store; the version check and write share one lock.

    Args:
        paths: Catalog to serve, in display order.
        users: Accounts known to the auth service.
    """

    def __init__(
        self,
        paths: list[Path] | None = None,
        users: list[UserAccount] | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._paths: dict[str, Path] = {p.id: p for p in paths or []}
        self._users: dict[str, UserAccount] = {u.id: u for u in users or []}
        self._enrollments: dict[tuple[str, str], Enrollment] = {}
        self._events: dict[str, list[ActivityEvent]] = {}

    def get_enrollment(self, user_id: str, path_id: str) -> Enrollment | None:
        with self._lock:
            stored = self._enrollments.get((user_id, path_id))
            return stored.model_copy() if stored is not None else None

    def put_enrollment(self, enrollment: Enrollment) -> Enrollment:
        key = (enrollment.user_id, enrollment.path_id)
        with self._lock:
            current = self._enrollments.get(key)
            current_version = current.version if current is not None else 0
            if current_version != enrollment.version:
                raise ConflictError(
                    enrollment.user_id, enrollment.path_id, enrollment.version, current_version
                )
            stored = enrollment.model_copy(update={"version": current_version + 1})
            self._enrollments[key] = stored
            return stored.model_copy()

    def list_enrollments(self, user_id: str) -> list[Enrollment]:
        with self._lock:
            return [
                e.model_copy()
                for (uid, _), e in sorted(self._enrollments.items())
                if uid == user_id
            ]

    def append_activity_event(self, event: ActivityEvent) -> ActivityEvent:
        with self._lock:
            self._events.setdefault(event.user_id, []).append(event)
        return event

    def list_activity_events(self, user_id: str, limit: int) -> list[ActivityEvent]:
        with self._lock:
            events = list(self._events.get(user_id, []))
        events.sort(key=lambda e: e.created_at, reverse=True)
        return events[:limit]

    def get_path(self, path_id: str) -> Path | None:
        return self._paths.get(path_id)

    def list_paths(self) -> list[Path]:
        return list(self._paths.values())

    def get_user(self, user_id: str) -> UserAccount | None:
        with self._lock:
            account = self._users.get(user_id)
            return account.model_copy() if account is not None else None

    def put_user(self, account: UserAccount) -> None:
        with self._lock:
            self._users[account.id] = account.model_copy()

    def set_current_path(self, user_id: str, path_id: str) -> None:
        with self._lock:
            account = self._users.get(user_id)
            if account is None:
                raise UserNotFound(user_id)
            self._users[user_id] = account.model_copy(update={"current_path_id": path_id})
