"""Learning path catalog models."""

from pydantic import BaseModel, Field, model_validator


class Challenge(BaseModel):
    """One day's task within a path."""

    day: int = Field(ge=1)
    task: str
    expected_output: str


class Path(BaseModel):
    """Catalog entry: a named curriculum of fixed-size daily challenges.

    ``challenge_count`` defaults to the number of stored challenges. Challenge
    days must be unique but need not be contiguous.
    """

    id: str
    name: str
    description: str | None = None
    difficulty: str | None = None
    tags: list[str] = Field(default_factory=list)
    estimated_hours: float | None = None
    prerequisites: list[str] = Field(default_factory=list)
    challenges: list[Challenge] = Field(default_factory=list)
    challenge_count: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _check_challenges(self) -> "Path":
        days = [c.day for c in self.challenges]
        if len(days) != len(set(days)):
            raise ValueError(f"Duplicate challenge day in path {self.id}")
        if self.challenge_count is None and self.challenges:
            self.challenge_count = len(self.challenges)
        return self

    def challenge_for(self, day: int) -> Challenge | None:
        """Return the challenge stored for ``day``, if any."""
        for challenge in self.challenges:
            if challenge.day == day:
                return challenge
        return None
