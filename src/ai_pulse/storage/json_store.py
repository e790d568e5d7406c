"""JSON-file progress store (fcntl.flock + atomic write).

Each user owns one document ``<user_id>.json`` holding the account, the
enrollments keyed by path id, and the activity log. Every read-check-write
runs under an exclusive lock on ``<user_id>.json.lock``.
"""

import fcntl
import json
import os
import re
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path as FsPath

import structlog

from ai_pulse.errors import ConflictError, UserNotFound, ValidationError
from ai_pulse.models.activity import ActivityEvent
from ai_pulse.models.enrollment import Enrollment
from ai_pulse.models.path import Path
from ai_pulse.models.user import UserAccount
from ai_pulse.storage.base import ProgressStore

logger = structlog.get_logger()

_USER_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.@-]*$")


def _empty_document() -> dict:
    return {"account": None, "enrollments": {}, "events": []}


class JsonProgressStore(ProgressStore):
    """Store backed by one JSON file per user.

    Args:
        data_dir: Directory holding the user documents.
        paths: Catalog to serve, in display order.
    """

    def __init__(self, data_dir: FsPath, paths: list[Path] | None = None) -> None:
        self.data_dir = data_dir
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._paths: dict[str, Path] = {p.id: p for p in paths or []}

    def _document_path(self, user_id: str) -> FsPath:
        if not _USER_ID_RE.match(user_id) or ".." in user_id:
            raise ValidationError(f"Invalid user id: {user_id!r}")
        return self.data_dir / f"{user_id}.json"

    @contextmanager
    def _locked(self, user_id: str, exclusive: bool) -> Iterator[FsPath]:
        path = self._document_path(user_id)
        lock_path = path.with_name(path.name + ".lock")
        with open(lock_path, "w") as lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
            try:
                yield path
            finally:
                fcntl.flock(lock_file, fcntl.LOCK_UN)

    @staticmethod
    def _read(path: FsPath) -> dict:
        if not path.exists():
            return _empty_document()
        return json.loads(path.read_text(encoding="utf-8"))

    def _write(self, path: FsPath, document: dict) -> None:
        with tempfile.NamedTemporaryFile(
            "w", dir=self.data_dir, delete=False, suffix=".json", encoding="utf-8"
        ) as tmp:
            json.dump(document, tmp, indent=2)
        os.replace(tmp.name, path)

    def get_enrollment(self, user_id: str, path_id: str) -> Enrollment | None:
        with self._locked(user_id, exclusive=False) as path:
            data = self._read(path)["enrollments"].get(path_id)
        return Enrollment.model_validate(data) if data is not None else None

    def put_enrollment(self, enrollment: Enrollment) -> Enrollment:
        with self._locked(enrollment.user_id, exclusive=True) as path:
            document = self._read(path)
            current = document["enrollments"].get(enrollment.path_id)
            current_version = int(current["version"]) if current is not None else 0
            if current_version != enrollment.version:
                logger.warning(
                    "enrollment_version_conflict",
                    user_id=enrollment.user_id,
                    path_id=enrollment.path_id,
                    expected=enrollment.version,
                    actual=current_version,
                )
                raise ConflictError(
                    enrollment.user_id, enrollment.path_id, enrollment.version, current_version
                )
            stored = enrollment.model_copy(update={"version": current_version + 1})
            document["enrollments"][enrollment.path_id] = stored.model_dump(mode="json")
            self._write(path, document)
        return stored

    def list_enrollments(self, user_id: str) -> list[Enrollment]:
        with self._locked(user_id, exclusive=False) as path:
            enrollments = self._read(path)["enrollments"]
        return [Enrollment.model_validate(enrollments[key]) for key in sorted(enrollments)]

    def append_activity_event(self, event: ActivityEvent) -> ActivityEvent:
        with self._locked(event.user_id, exclusive=True) as path:
            document = self._read(path)
            document["events"].append(event.model_dump(mode="json"))
            self._write(path, document)
        return event

    def list_activity_events(self, user_id: str, limit: int) -> list[ActivityEvent]:
        with self._locked(user_id, exclusive=False) as path:
            raw = self._read(path)["events"]
        events = [ActivityEvent.model_validate(item) for item in raw]
        events.sort(key=lambda e: e.created_at, reverse=True)
        return events[:limit]

    def get_path(self, path_id: str) -> Path | None:
        return self._paths.get(path_id)

    def list_paths(self) -> list[Path]:
        return list(self._paths.values())

    def get_user(self, user_id: str) -> UserAccount | None:
        with self._locked(user_id, exclusive=False) as path:
            data = self._read(path)["account"]
        return UserAccount.model_validate(data) if data is not None else None

    def put_user(self, account: UserAccount) -> None:
        with self._locked(account.id, exclusive=True) as path:
            document = self._read(path)
            document["account"] = account.model_dump(mode="json")
            self._write(path, document)

    def set_current_path(self, user_id: str, path_id: str) -> None:
        with self._locked(user_id, exclusive=True) as path:
            document = self._read(path)
            if document["account"] is None:
                raise UserNotFound(user_id)
            document["account"]["current_path_id"] = path_id
            self._write(path, document)
