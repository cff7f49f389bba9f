"""Branch mutation primitives.

Each primitive runs one git command. Failures raise GitError with a stable
code, except where noted: merge_no_ff reports content conflicts as data,
abort_merge and pull_ff_only are best-effort.
"""

from __future__ import annotations

from pathlib import Path

from papi.git_ops.utils import (
    CHECKOUT_FAILED,
    COMMIT_FAILED,
    FETCH_FAILED,
    MERGE_FAILED,
    PUSH_FAILED,
    RESET_FAILED,
    GitError,
    conflicted_files,
    run_git,
)
from papi.logger import logger

# Matched verbatim by downstream tooling
DEPLOY_COMMIT_TEMPLATE = "chore: [{identity}] [papi-deploy]"


def deploy_commit_message(identity: str) -> str:
    return DEPLOY_COMMIT_TEMPLATE.format(identity=identity)


def fetch_origin(cwd: Path) -> None:
    result = run_git("fetch", "origin", cwd=cwd)
    if not result.ok:
        raise GitError(FETCH_FAILED, f"Failed to fetch: {result.stderr}", result.stderr)


def checkout(cwd: Path, branch: str) -> None:
    result = run_git("checkout", branch, cwd=cwd)
    if not result.ok:
        raise GitError(
            CHECKOUT_FAILED,
            f"Failed to checkout branch {branch}: {result.stderr}",
            result.stderr,
        )


def hard_reset_to_remote(cwd: Path, branch: str) -> None:
    """Make the local branch mirror origin exactly, dropping local divergence."""
    result = run_git("reset", "--hard", f"origin/{branch}", cwd=cwd)
    if not result.ok:
        raise GitError(
            RESET_FAILED,
            f"Failed to reset to origin/{branch}: {result.stderr}",
            result.stderr,
        )


def merge_no_ff(cwd: Path, ref: str, *, context: str = "") -> list[str]:
    """Merge ``origin/<ref>`` into the checked-out branch.

    Returns an empty list on a clean merge. On a content conflict returns the
    conflicted paths and leaves the merge in progress (caller aborts it).

    Raises:
        GitError: MERGE_FAILED when git fails with no unmerged paths.
    """
    result = run_git("merge", "--no-ff", "--no-edit", f"origin/{ref}", cwd=cwd)
    if result.ok:
        return []

    conflicts = conflicted_files(cwd)
    if conflicts:
        logger.info("Merge conflict", ref=ref, files=conflicts)
        return conflicts

    where = f" {context}" if context else ""
    raise GitError(MERGE_FAILED, f"Merge failed{where}: {result.stderr}", result.stderr)


def abort_merge(cwd: Path) -> None:
    result = run_git("merge", "--abort", cwd=cwd)
    if not result.ok:
        logger.warning("git merge --abort failed", cwd=str(cwd), stderr=result.stderr)


def commit_allow_empty(cwd: Path, message: str) -> None:
    """Record an audit commit, even when the merge produced no changes."""
    result = run_git("commit", "--allow-empty", "-m", message, cwd=cwd)
    if result.ok:
        return
    # git prints this on stdout or stderr depending on version
    if "nothing to commit" in result.stderr or "nothing to commit" in result.stdout:
        logger.debug("Nothing to commit", cwd=str(cwd))
        return
    raise GitError(COMMIT_FAILED, f"Failed to create commit: {result.stderr}", result.stderr)


def push_origin(cwd: Path, branch: str) -> None:
    result = run_git("push", "origin", branch, cwd=cwd)
    if not result.ok:
        raise GitError(PUSH_FAILED, f"Failed to push: {result.stderr}", result.stderr)


def pull_ff_only(cwd: Path, branch: str) -> bool:
    """Fast-forward *branch* from origin if possible. Never raises on git failure."""
    result = run_git("pull", "origin", branch, "--ff-only", cwd=cwd)
    if not result.ok:
        logger.debug("Fast-forward pull skipped", branch=branch, stderr=result.stderr)
    return result.ok
