"""Shared test fixtures for papi."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Shared helpers (plain functions, importable by test files)
# ---------------------------------------------------------------------------


def make_settings(**overrides):
    """Create a Settings object from pure defaults, without reading config files.

    Usage::

        s = make_settings(repos={"webapp": RepoConfig(path=str(tmp_path))})
        s = make_settings(git=GitConfig(timeout_seconds=5))
    """
    from papi.config import GitConfig, LoggingConfig, ServerConfig, Settings

    defaults = {
        "server": ServerConfig(),
        "logging": LoggingConfig(),
        "git": GitConfig(),
        "repos": {},
    }
    defaults.update(overrides)
    return Settings.model_construct(**defaults)


def git(cwd: Path, *args: str) -> str:
    """Run a git command for test setup, failing loudly. Returns stripped stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


@dataclass
class RepoEnv:
    """A bare ``origin``, an author clone that pushes branches, and the clone papi drives."""

    origin: Path
    author: Path
    project: Path

    def push_branch(
        self,
        branch: str,
        files: dict[str, str],
        *,
        base: str = "main",
        message: str | None = None,
    ) -> str:
        """Commit *files* on top of ``origin/<base>`` and force-push as *branch*."""
        git(self.author, "fetch", "origin")
        git(self.author, "checkout", "-B", branch, f"origin/{base}")
        for rel, content in files.items():
            path = self.author / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        git(self.author, "add", "-A")
        git(self.author, "commit", "-m", message or f"update {branch}")
        git(self.author, "push", "-f", "origin", branch)
        return git(self.author, "rev-parse", "HEAD")

    def remote_sha(self, branch: str) -> str:
        return git(self.origin, "rev-parse", f"refs/heads/{branch}")

    def remote_file(self, branch: str, rel: str) -> str | None:
        result = subprocess.run(
            ["git", "show", f"{branch}:{rel}"],
            cwd=str(self.origin),
            capture_output=True,
            text=True,
        )
        return result.stdout if result.returncode == 0 else None

    def remote_subject(self, branch: str) -> str:
        return git(self.origin, "log", "-1", "--format=%s", branch)

    def current_branch(self) -> str:
        return git(self.project, "rev-parse", "--abbrev-ref", "HEAD")

    def status(self) -> str:
        return git(self.project, "status", "--porcelain")


def _identity(cwd: Path, name: str) -> None:
    git(cwd, "config", "user.email", f"{name.lower()}@example.com")
    git(cwd, "config", "user.name", name)


# ---------------------------------------------------------------------------
# Autouse fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _clean_git_env():
    """Strip git env vars that hooks may leak into the test process.

    Tests that create temporary git repos would otherwise inherit
    GIT_INDEX_FILE / GIT_DIR / GIT_WORK_TREE and operate on the wrong repo.
    """
    import os

    for var in ("GIT_INDEX_FILE", "GIT_DIR", "GIT_WORK_TREE"):
        os.environ.pop(var, None)


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Ensure each test starts with a default Settings singleton (no config.toml, no .env)."""
    monkeypatch.setattr("papi.config._settings", make_settings())


# ---------------------------------------------------------------------------
# Git fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def repo_env(tmp_path: Path) -> RepoEnv:
    """Origin with ``main`` and ``staging``, plus a fresh clone checked out on main."""
    origin = tmp_path / "origin.git"
    origin.mkdir()
    git(origin, "init", "--bare", "--initial-branch=main")

    author = tmp_path / "author"
    git(tmp_path, "clone", str(origin), str(author))
    # Independent of the machine's init.defaultBranch
    git(author, "symbolic-ref", "HEAD", "refs/heads/main")
    _identity(author, "Author")
    (author / "README.md").write_text("initial\n")
    (author / "src").mkdir()
    (author / "src" / "a.ts").write_text("export const a = 1;\n")
    git(author, "add", "-A")
    git(author, "commit", "-m", "initial commit")
    git(author, "push", "origin", "main")
    git(author, "push", "origin", "main:staging")

    project = tmp_path / "project"
    git(tmp_path, "clone", str(origin), str(project))
    _identity(project, "Deployer")

    return RepoEnv(origin=origin, author=author, project=project)
