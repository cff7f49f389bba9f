"""Git process runner, error type, and repository state probes."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from papi.config import get_settings
from papi.logger import logger

# Stable error codes surfaced to callers (and to operators via the HTTP layer)
REPO_PATH_NOT_FOUND = "REPO_PATH_NOT_FOUND"
GIT_NOT_FOUND = "GIT_NOT_FOUND"
GIT_TIMEOUT = "GIT_TIMEOUT"
GIT_ERROR = "GIT_ERROR"
FETCH_FAILED = "FETCH_FAILED"
CHECKOUT_FAILED = "CHECKOUT_FAILED"
RESET_FAILED = "RESET_FAILED"
MERGE_FAILED = "MERGE_FAILED"
COMMIT_FAILED = "COMMIT_FAILED"
PUSH_FAILED = "PUSH_FAILED"


class GitError(Exception):
    """Fatal git failure. Merge conflicts are never raised as this."""

    def __init__(self, code: str, message: str, stderr: str = "") -> None:
        self.code = code
        self.message = message
        self.stderr = stderr
        super().__init__(f"[{code}] {message}")


@dataclass(frozen=True)
class GitResult:
    """Outcome of one git invocation. A nonzero exit is data, not a fault."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_git(*args: str, cwd: Path, timeout: float | None = None) -> GitResult:
    """Run ``git <args>`` in *cwd* and capture trimmed stdout/stderr.

    Never raises on a nonzero exit code. Raises GitError only when git could
    not be run at all (missing executable or timeout).

    Args:
        timeout: Seconds before the process is killed. Defaults to
            ``[git] timeout_seconds`` from settings (0 there disables it).
    """
    if timeout is None:
        timeout = get_settings().git_timeout
    logger.debug("git", args=list(args), cwd=str(cwd))
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise GitError(GIT_NOT_FOUND, "git executable not found on PATH") from exc
    except subprocess.TimeoutExpired as exc:
        raise GitError(
            GIT_TIMEOUT, f"git {' '.join(args)} timed out after {timeout}s"
        ) from exc
    return GitResult(
        returncode=result.returncode,
        stdout=(result.stdout or "").strip(),
        stderr=(result.stderr or "").strip(),
    )


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def expand_repo_path(path: str | Path) -> Path:
    """Expand a leading ``~`` to the invoking user's home directory."""
    return Path(path).expanduser()


def require_repo_path(path: str | Path) -> Path:
    """Expand *path* and check it exists, before any git command runs."""
    expanded = expand_repo_path(path)
    if not expanded.exists():
        raise GitError(REPO_PATH_NOT_FOUND, f"Repository path does not exist: {path}")
    return expanded


# ---------------------------------------------------------------------------
# Repository state probes
# ---------------------------------------------------------------------------


def current_branch(cwd: Path) -> str:
    """Return the checked-out branch. There is no fallback if git can't tell."""
    result = run_git("rev-parse", "--abbrev-ref", "HEAD", cwd=cwd)
    if not result.ok:
        raise GitError(GIT_ERROR, "Failed to get current branch", result.stderr)
    return result.stdout


def committer_identity(cwd: Path) -> str:
    """Return ``user.name``, or 'unknown'. Only used to annotate commits."""
    result = run_git("config", "user.name", cwd=cwd)
    return result.stdout if result.ok and result.stdout else "unknown"


def conflicted_files(cwd: Path) -> list[str]:
    """List unmerged paths in git's order. Empty means no content conflict."""
    result = run_git("diff", "--name-only", "--diff-filter=U", cwd=cwd)
    if not result.stdout:
        return []
    return [line for line in result.stdout.splitlines() if line.strip()]


def head_sha(cwd: Path) -> str:
    """Return the full SHA of HEAD."""
    result = run_git("rev-parse", "HEAD", cwd=cwd)
    if not result.ok:
        raise GitError(GIT_ERROR, "Failed to read HEAD commit", result.stderr)
    return result.stdout
