"""Centralized configuration: Pydantic BaseSettings with TOML + dotenv sources.

Settings live in config.toml. Environment variables override it using ``__``
as the nested delimiter (e.g. ``GIT__TIMEOUT_SECONDS=60``).

Priority (highest wins): init args > env vars > .env > config.toml

Example config.toml::

    [server]
    port = 8585

    [git]
    timeout_seconds = 120

    [repos.webapp]
    path = "~/src/webapp"
    deployment_branches = ["staging", "qa"]
    main_branch = "main"

Usage::

    from papi.config import get_settings

    s = get_settings()
    repo = s.repository("webapp")
"""

from __future__ import annotations

from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from papi.types import RepositoryDescriptor

# ---------------------------------------------------------------------------
# Sub-models (each maps to a [section] in config.toml)
# ---------------------------------------------------------------------------


class _StrictModel(BaseModel):
    """Base for all config sub-models; reject unknown keys so typos fail loudly."""

    model_config = {"extra": "forbid"}


class ServerConfig(_StrictModel):
    host: str = "127.0.0.1"
    port: int = 8585


class LoggingConfig(_StrictModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.upper()


class GitConfig(_StrictModel):
    # Applies to every git invocation; 0 disables the timeout
    timeout_seconds: float = 300.0

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v < 0:
            raise ValueError("timeout_seconds must be >= 0")
        return v


class RepoConfig(_StrictModel):
    """Config for a single local clone under [repos.<name>]."""

    path: str  # absolute or ~-relative; expanded at use time, not here
    deployment_branches: list[str] = []
    main_branch: str = "main"

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("repository path cannot be empty")
        return v.strip()

    @field_validator("deployment_branches")
    @classmethod
    def dedupe_branches(cls, v: list[str]) -> list[str]:
        seen: list[str] = []
        for branch in v:
            branch = branch.strip()
            if branch and branch not in seen:
                seen.append(branch)
        return seen


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        toml_file="config.toml",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    server: ServerConfig = ServerConfig()
    logging: LoggingConfig = LoggingConfig()
    git: GitConfig = GitConfig()
    repos: dict[str, RepoConfig] = {}  # [repos.<name>]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init > env vars > .env > config.toml > file secrets."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    @property
    def git_timeout(self) -> float | None:
        return self.git.timeout_seconds or None

    def repository(self, name: str) -> RepositoryDescriptor | None:
        """Resolve a configured repo into the descriptor the git engine consumes."""
        cfg = self.repos.get(name)
        if cfg is None:
            return None
        return RepositoryDescriptor(
            name=name,
            local_path=cfg.path,
            deployment_branches=tuple(cfg.deployment_branches),
            main_branch=cfg.main_branch,
        )

    def repositories(self) -> list[RepositoryDescriptor]:
        return [repo for name in sorted(self.repos) if (repo := self.repository(name))]


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings
    _settings = None
