"""Shared fixtures: a small catalog, accounts and a fresh store per test."""

import pytest

from ai_pulse.config import Settings
from ai_pulse.models.path import Challenge, Path
from ai_pulse.models.user import SubscriptionTier, UserAccount
from ai_pulse.service import ProgressService
from ai_pulse.storage.memory import InMemoryProgressStore


def make_path(path_id: str, name: str, count: int = 5) -> Path:
    return Path(
        id=path_id,
        name=name,
        difficulty="beginner",
        challenges=[
            Challenge(day=d, task=f"{name} task {d}", expected_output=f"{path_id}-{d}")
            for d in range(1, count + 1)
        ],
    )


@pytest.fixture
def catalog() -> list[Path]:
    return [
        make_path("prompt-engineering", "Prompt Engineering"),
        make_path("ml-basics", "Machine Learning Basics"),
        make_path("neural-networks", "Neural Networks"),
    ]


@pytest.fixture
def users() -> list[UserAccount]:
    return [
        UserAccount(id="free-user", email="free@example.com"),
        UserAccount(
            id="paid-user",
            email="paid@example.com",
            subscription_tier=SubscriptionTier.PAID,
        ),
    ]


@pytest.fixture
def store(catalog, users) -> InMemoryProgressStore:
    return InMemoryProgressStore(catalog, users)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        project_root=tmp_path,
        free_tier_path_ids=["ml-basics"],
        activity_window_days=28,
        max_conflict_retries=3,
    )


@pytest.fixture
def service(store, settings) -> ProgressService:
    return ProgressService(store, settings)
