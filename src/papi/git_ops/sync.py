"""Sync a feature branch with the shared base branch.

The inverse of a deploy: ``origin/<main_branch>`` is merged into the task's
branch and the task branch is pushed. The task branch is never reset; at
most it is fast-forwarded to pick up commits that only exist on origin.
"""

from __future__ import annotations

from pathlib import Path

from papi.git_ops.branch import (
    abort_merge,
    checkout,
    fetch_origin,
    merge_no_ff,
    pull_ff_only,
    push_origin,
)
from papi.git_ops.locks import repo_lock, restore_branch
from papi.git_ops.utils import head_sha, require_repo_path
from papi.logger import logger
from papi.types import MergeConflict, SyncOutcome, SyncSuccess


def sync_branch(repo_path: str | Path, task_branch: str, main_branch: str) -> SyncOutcome:
    """Merge ``origin/<main_branch>`` into *task_branch* and push *task_branch*.

    Returns SyncSuccess with the task branch HEAD, or MergeConflict (merge
    aborted, nothing pushed).

    Raises:
        GitError: REPO_PATH_NOT_FOUND before touching git, or any fatal git
            failure (fetch, checkout, merge, push).
    """
    repo = require_repo_path(repo_path)
    log = logger.bind(repo=str(repo), branch=task_branch, main=main_branch)

    with repo_lock(repo), restore_branch(repo):
        fetch_origin(repo)
        checkout(repo, task_branch)
        # No tracking branch or a diverged remote is fine; the merge still runs
        pull_ff_only(repo, task_branch)

        conflicts = merge_no_ff(repo, main_branch)
        if conflicts:
            abort_merge(repo)
            log.warning("Sync stopped on merge conflict", files=conflicts)
            return MergeConflict(conflicted_files=conflicts)

        push_origin(repo, task_branch)
        sha = head_sha(repo)

    log.info("Branch synced and pushed", sha=sha)
    return SyncSuccess(task_branch=task_branch, main_branch=main_branch, commit_sha=sha)
