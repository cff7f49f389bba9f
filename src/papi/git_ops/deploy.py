"""Deploy feature branches into a shared integration branch.

The target branch is always rebuilt from origin before merging: fetch,
checkout, ``reset --hard origin/<target>``, then one ``--no-ff`` merge per
source branch, one audit commit, one push. Whatever happens, the branch that
was checked out before the call is checked out again afterwards.
"""

from __future__ import annotations

from pathlib import Path

from papi.git_ops.branch import (
    abort_merge,
    checkout,
    commit_allow_empty,
    deploy_commit_message,
    fetch_origin,
    hard_reset_to_remote,
    merge_no_ff,
    push_origin,
)
from papi.git_ops.locks import repo_lock, restore_branch
from papi.git_ops.utils import committer_identity, head_sha, require_repo_path
from papi.logger import logger
from papi.types import (
    SKIP_EARLIER_CONFLICT,
    SKIP_NO_BRANCH,
    BulkDeployOutcome,
    DeployOutcome,
    DeploySuccess,
    MergeConflict,
    TaskBranchInfo,
    TaskConflict,
    TaskResult,
    TaskSkipped,
    TaskSuccess,
)


def _prepare_target(repo: Path, target_branch: str) -> None:
    fetch_origin(repo)
    checkout(repo, target_branch)
    hard_reset_to_remote(repo, target_branch)


def _commit_and_push(repo: Path, target_branch: str, identity: str) -> str:
    commit_allow_empty(repo, deploy_commit_message(identity))
    push_origin(repo, target_branch)
    return head_sha(repo)


def deploy_branch(repo_path: str | Path, source_branch: str, target_branch: str) -> DeployOutcome:
    """Merge ``origin/<source_branch>`` into *target_branch* and push it.

    Returns DeploySuccess, or MergeConflict (merge aborted, nothing pushed).

    Raises:
        GitError: REPO_PATH_NOT_FOUND before touching git, or any fatal git
            failure (fetch, checkout, reset, merge, commit, push).
    """
    repo = require_repo_path(repo_path)
    log = logger.bind(repo=str(repo), source=source_branch, target=target_branch)

    with repo_lock(repo), restore_branch(repo):
        identity = committer_identity(repo)
        _prepare_target(repo, target_branch)

        conflicts = merge_no_ff(repo, source_branch)
        if conflicts:
            abort_merge(repo)
            log.warning("Deploy stopped on merge conflict", files=conflicts)
            return MergeConflict(conflicted_files=conflicts)

        sha = _commit_and_push(repo, target_branch, identity)

    log.info("Deploy pushed", sha=sha)
    return DeploySuccess(target_branch=target_branch, source_branch=source_branch, commit_sha=sha)


def deploy_bulk(
    repo_path: str | Path,
    tasks: list[TaskBranchInfo],
    target_branch: str,
) -> BulkDeployOutcome:
    """Merge every task's branch into *target_branch* and push them as one commit.

    Tasks without a branch are skipped up front; if none have one, git is
    never invoked. Branches merge in input order. The first conflict aborts
    that merge and every later task is skipped without being attempted. All
    clean merges share a single commit, push, and SHA.

    Raises:
        GitError: On any fatal git failure. The whole batch is abandoned and
            no partial result is returned.
    """
    repo = require_repo_path(repo_path)
    log = logger.bind(repo=str(repo), target=target_branch)

    results: list[TaskResult] = []
    branch_tasks: list[tuple[int, str]] = []
    for task in tasks:
        if task.head_branch:
            branch_tasks.append((task.task_id, task.head_branch))
        else:
            results.append(TaskSkipped(task_id=task.task_id, reason=SKIP_NO_BRANCH))

    if not branch_tasks:
        log.info("Bulk deploy has no branches to merge", skipped=len(results))
        return BulkDeployOutcome(results=results)

    merged: list[int] = []
    halted = False

    with repo_lock(repo), restore_branch(repo):
        identity = committer_identity(repo)
        _prepare_target(repo, target_branch)

        for task_id, branch in branch_tasks:
            if halted:
                results.append(TaskSkipped(task_id=task_id, reason=SKIP_EARLIER_CONFLICT))
                continue

            conflicts = merge_no_ff(repo, branch, context=f"for task {task_id}")
            if conflicts:
                abort_merge(repo)
                results.append(TaskConflict(task_id=task_id, conflicted_files=conflicts))
                halted = True
                log.warning(
                    "Bulk deploy halted on merge conflict",
                    task_id=task_id,
                    branch=branch,
                    files=conflicts,
                )
                continue

            merged.append(task_id)

        if merged:
            sha = _commit_and_push(repo, target_branch, identity)
            results.extend(TaskSuccess(task_id=task_id, commit_sha=sha) for task_id in merged)
            log.info("Bulk deploy pushed", sha=sha, merged=merged)

    outcome = BulkDeployOutcome(results=results)
    summary = outcome.summary
    log.info(
        "Bulk deploy finished",
        success=summary.success,
        conflict=summary.conflict,
        skipped=summary.skipped,
    )
    return outcome
