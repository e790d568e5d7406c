"""REST API routes for the catalog, challenge submission and dashboard.

The caller's identity arrives in the ``X-User-Id`` header, set by the auth
gateway after session validation.
"""

import functools
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field

from ai_pulse.config import get_settings
from ai_pulse.errors import ConflictError, NotFoundError, ProgressError, ValidationError
from ai_pulse.models.path import Path
from ai_pulse.service import Dashboard, ProgressService, SubmissionResult, create_store

logger = structlog.get_logger()
router = APIRouter(prefix="/api")


class ChallengeView(BaseModel):
    """Challenge as shown to the learner (no expected output)."""

    day: int
    task: str


class PathView(BaseModel):
    id: str
    name: str
    description: str | None = None
    difficulty: str | None = None
    tags: list[str] = Field(default_factory=list)
    estimated_hours: float | None = None
    challenge_count: int | None = None
    challenges: list[ChallengeView] = Field(default_factory=list)

    @classmethod
    def from_path(cls, path: Path) -> "PathView":
        return cls(
            id=path.id,
            name=path.name,
            description=path.description,
            difficulty=path.difficulty,
            tags=path.tags,
            estimated_hours=path.estimated_hours,
            challenge_count=path.challenge_count,
            challenges=[ChallengeView(day=c.day, task=c.task) for c in path.challenges],
        )


class AnswerSubmission(BaseModel):
    answer: str


class ActivityRequest(BaseModel):
    type: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


@functools.lru_cache
def get_service() -> ProgressService:
    """Process-wide service with one long-lived store handle."""
    settings = get_settings()
    return ProgressService(create_store(settings), settings)


def current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id


def to_http_error(exc: ProgressError) -> HTTPException:
    """Map the progress error taxonomy to an HTTP error."""
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=500, detail="Internal server error")


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/paths")
def list_paths(
    user_id: str = Depends(current_user_id),
    service: ProgressService = Depends(get_service),
) -> list[PathView]:
    """List the paths visible to the caller's subscription tier."""
    try:
        return [PathView.from_path(p) for p in service.visible_catalog(user_id)]
    except ProgressError as e:
        raise to_http_error(e)


@router.get("/paths/{path_id}")
def get_path(
    path_id: str,
    user_id: str = Depends(current_user_id),
    service: ProgressService = Depends(get_service),
) -> PathView:
    try:
        return PathView.from_path(service.get_visible_path(user_id, path_id))
    except ProgressError as e:
        raise to_http_error(e)


@router.get("/paths/{path_id}/days/{day}")
def get_challenge(
    path_id: str,
    day: int,
    user_id: str = Depends(current_user_id),
    service: ProgressService = Depends(get_service),
) -> ChallengeView:
    """Return one day's task without its expected output."""
    try:
        challenge = service.get_challenge(user_id, path_id, day)
    except ProgressError as e:
        raise to_http_error(e)
    return ChallengeView(day=challenge.day, task=challenge.task)


@router.post("/paths/{path_id}/days/{day}")
def submit_answer(
    path_id: str,
    day: int,
    submission: AnswerSubmission,
    user_id: str = Depends(current_user_id),
    service: ProgressService = Depends(get_service),
) -> SubmissionResult:
    """Check an answer; correct answers update the caller's enrollment."""
    try:
        return service.submit_answer(user_id, path_id, day, submission.answer)
    except ProgressError as e:
        logger.info("submission_failed", user_id=user_id, path_id=path_id, day=day, error=str(e))
        raise to_http_error(e)


@router.get("/dashboard")
def get_dashboard(
    user_id: str = Depends(current_user_id),
    service: ProgressService = Depends(get_service),
) -> Dashboard:
    try:
        return service.dashboard(user_id)
    except ProgressError as e:
        raise to_http_error(e)


@router.post("/activity", status_code=201)
def post_activity(
    request: ActivityRequest,
    user_id: str = Depends(current_user_id),
    service: ProgressService = Depends(get_service),
) -> dict:
    """Append a tracked interaction to the caller's activity log."""
    try:
        event = service.record_activity(user_id, request.type, request.data)
    except ProgressError as e:
        raise to_http_error(e)
    return {"id": event.id, "created_at": event.created_at.isoformat()}
