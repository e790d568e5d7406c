"""Per-user, per-path enrollment record."""

from pydantic import BaseModel, Field, field_validator

from ai_pulse.models.common import UtcDatetime


class Enrollment(BaseModel):
    """Durable progress record, created lazily on the first correct answer.

    ``version`` is the optimistic-concurrency token: 0 for a record that was
    never persisted, incremented by the store on every successful write.
    """

    user_id: str
    path_id: str
    progress: list[int] = Field(default_factory=list)
    completion_percentage: float = Field(default=0.0, ge=0.0, le=100.0)
    enrolled_at: UtcDatetime
    last_activity_at: UtcDatetime
    completed_at: UtcDatetime | None = None
    version: int = Field(default=0, ge=0)

    @field_validator("progress")
    @classmethod
    def _normalise_progress(cls, value: list[int]) -> list[int]:
        return sorted(set(value))

    @property
    def completed_days(self) -> int:
        return len(self.progress)

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None
