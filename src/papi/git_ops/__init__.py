"""Git operations: deploy, bulk deploy, sync and their primitives."""

from papi.git_ops.branch import (
    abort_merge,
    checkout,
    commit_allow_empty,
    deploy_commit_message,
    fetch_origin,
    hard_reset_to_remote,
    merge_no_ff,
    pull_ff_only,
    push_origin,
)
from papi.git_ops.deploy import deploy_branch, deploy_bulk
from papi.git_ops.locks import get_repo_lock, repo_lock, restore_branch
from papi.git_ops.sync import sync_branch
from papi.git_ops.utils import (
    GitError,
    GitResult,
    committer_identity,
    conflicted_files,
    current_branch,
    expand_repo_path,
    head_sha,
    require_repo_path,
    run_git,
)

__all__ = [
    "GitError",
    "GitResult",
    "abort_merge",
    "checkout",
    "commit_allow_empty",
    "committer_identity",
    "conflicted_files",
    "current_branch",
    "deploy_branch",
    "deploy_bulk",
    "deploy_commit_message",
    "expand_repo_path",
    "fetch_origin",
    "get_repo_lock",
    "hard_reset_to_remote",
    "head_sha",
    "merge_no_ff",
    "pull_ff_only",
    "push_origin",
    "repo_lock",
    "require_repo_path",
    "restore_branch",
    "run_git",
    "sync_branch",
]
