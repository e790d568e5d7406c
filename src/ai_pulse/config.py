"""Application configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from ai_pulse.engine.resume import ResumePolicy
from ai_pulse.models.path import Path as LearningPath


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path(__file__).resolve().parent.parent.parent


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        """Load settings from YAML file."""
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened = {}
        if 'server' in data:
            flattened['host'] = data['server'].get('host')
            flattened['port'] = data['server'].get('port')
        if 'catalog' in data:
            flattened['free_tier_path_ids'] = data['catalog'].get('free_tier_path_ids')
        if 'activity' in data:
            flattened['activity_window_days'] = data['activity'].get('window_days')
            flattened['activity_fetch_limit'] = data['activity'].get('fetch_limit')
        if 'progress' in data:
            flattened['resume_policy'] = data['progress'].get('resume_policy')
            flattened['max_conflict_retries'] = data['progress'].get('max_conflict_retries')
        if 'storage' in data:
            flattened['storage_backend'] = data['storage'].get('backend')

        # Remove None values
        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Application settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Catalog: path ids visible to free accounts
    free_tier_path_ids: list[str] = Field(default_factory=lambda: ["ml-basics"])

    # Activity calendar
    activity_window_days: int = Field(default=28, ge=1)
    activity_fetch_limit: int = Field(default=500, ge=1)

    # Progress
    resume_policy: ResumePolicy = Field(default=ResumePolicy.HIGHEST_PLUS_ONE)
    max_conflict_retries: int = Field(default=3, ge=0)

    # Storage
    storage_backend: Literal["memory", "json"] = Field(default="memory")

    # Paths
    project_root: Path = Field(default_factory=_find_project_root)

    @property
    def data_dir(self) -> Path:
        d = self.project_root / "data" / "progress"
        d.mkdir(parents=True, exist_ok=True)
        return d

    @property
    def catalog_path(self) -> Path:
        return self.project_root / "config" / "paths.yaml"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()


def load_catalog(catalog_path: Path | None = None) -> list[LearningPath]:
    """Load the learning path catalog from YAML, preserving file order."""
    if catalog_path is None:
        catalog_path = _find_project_root() / "config" / "paths.yaml"
    if not catalog_path.exists():
        raise FileNotFoundError(f"Catalog file not found: {catalog_path}")
    with open(catalog_path, encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    return [LearningPath.model_validate(entry) for entry in data.get('paths', [])]
