"""Tests for configuration loading.

Settings come from config.toml in the working directory, overridden by
environment variables. Each test runs in its own tmp dir so no real
config.toml or .env leaks in.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from papi import config
from papi.config import GitConfig, LoggingConfig, RepoConfig, Settings, get_settings
from papi.types import RepositoryDescriptor

SAMPLE_TOML = """
[server]
port = 9000

[git]
timeout_seconds = 120

[repos.webapp]
path = "~/src/webapp"
deployment_branches = ["staging", "qa", "staging"]

[repos.api]
path = "/srv/api"
main_branch = "develop"
"""


@pytest.fixture
def in_tmp(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    for var in ("SERVER__PORT", "SERVER__HOST", "GIT__TIMEOUT_SECONDS", "LOGGING__LEVEL"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


class TestSettingsSources:
    def test_defaults_without_config_file(self, in_tmp: Path):
        s = Settings()
        assert s.server.host == "127.0.0.1"
        assert s.server.port == 8585
        assert s.git.timeout_seconds == 300
        assert s.repos == {}

    def test_loads_config_toml(self, in_tmp: Path):
        (in_tmp / "config.toml").write_text(SAMPLE_TOML)
        s = Settings()
        assert s.server.port == 9000
        assert s.git_timeout == 120
        assert set(s.repos) == {"webapp", "api"}
        assert s.repos["api"].main_branch == "develop"

    def test_env_overrides_toml(self, in_tmp: Path, monkeypatch):
        (in_tmp / "config.toml").write_text(SAMPLE_TOML)
        monkeypatch.setenv("GIT__TIMEOUT_SECONDS", "45")
        s = Settings()
        assert s.git.timeout_seconds == 45
        # Other sections from the file survive the override
        assert s.server.port == 9000
        assert "webapp" in s.repos

    def test_unknown_key_in_section_is_rejected(self, in_tmp: Path):
        (in_tmp / "config.toml").write_text("[git]\ntimeout = 5\n")
        with pytest.raises(ValidationError):
            Settings()

    def test_repo_requires_path(self, in_tmp: Path):
        (in_tmp / "config.toml").write_text('[repos.webapp]\nmain_branch = "main"\n')
        with pytest.raises(ValidationError):
            Settings()


class TestSubModels:
    def test_deployment_branches_deduped_in_order(self):
        cfg = RepoConfig(path="/srv/app", deployment_branches=["qa", " staging ", "qa", ""])
        assert cfg.deployment_branches == ["qa", "staging"]

    def test_blank_path_rejected(self):
        with pytest.raises(ValidationError):
            RepoConfig(path="   ")

    def test_negative_timeout_rejected(self):
        with pytest.raises(ValidationError):
            GitConfig(timeout_seconds=-1)

    def test_zero_timeout_disables(self):
        s = Settings.model_construct(git=GitConfig(timeout_seconds=0))
        assert s.git_timeout is None

    def test_log_level_upper_cased(self):
        assert LoggingConfig(level="debug").level == "DEBUG"


class TestRepositoryLookup:
    def _settings(self) -> Settings:
        return Settings.model_construct(
            repos={
                "webapp": RepoConfig(path="~/src/webapp", deployment_branches=["staging"]),
                "api": RepoConfig(path="/srv/api", main_branch="develop"),
            }
        )

    def test_repository_descriptor(self):
        repo = self._settings().repository("webapp")
        assert repo == RepositoryDescriptor(
            name="webapp",
            local_path="~/src/webapp",
            deployment_branches=("staging",),
            main_branch="main",
        )
        assert repo.allows_target("staging")
        assert not repo.allows_target("main")

    def test_unknown_repository(self):
        assert self._settings().repository("nope") is None

    def test_repositories_sorted(self):
        assert [r.name for r in self._settings().repositories()] == ["api", "webapp"]


def test_get_settings_is_cached(in_tmp: Path):
    config.reset_settings()
    first = get_settings()
    assert get_settings() is first
    config.reset_settings()
    assert get_settings() is not first
