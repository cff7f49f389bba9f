"""Data models for papi.

Inputs come from the dashboard (or the CLI): a repository descriptor and, for
bulk deploys, one TaskBranchInfo per task. Outcomes are plain tagged
dataclasses; a merge conflict is a result, not an exception.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

SKIP_NO_BRANCH = "no branch"
SKIP_EARLIER_CONFLICT = "stopped due to earlier conflict"


@dataclass(frozen=True)
class RepositoryDescriptor:
    name: str
    local_path: str  # Absolute or ~-relative path to an existing clone
    deployment_branches: tuple[str, ...] = ()
    main_branch: str = "main"

    def allows_target(self, branch: str) -> bool:
        return branch in self.deployment_branches


@dataclass(frozen=True)
class TaskBranchInfo:
    task_id: int
    head_branch: str | None = None  # None → skipped with reason "no branch"


# ---------------------------------------------------------------------------
# Single deploy / sync outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeploySuccess:
    target_branch: str
    source_branch: str
    commit_sha: str
    status: Literal["success"] = field(default="success", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "targetBranch": self.target_branch,
            "sourceBranch": self.source_branch,
            "commitSha": self.commit_sha,
        }


@dataclass(frozen=True)
class SyncSuccess:
    task_branch: str
    main_branch: str
    commit_sha: str
    status: Literal["success"] = field(default="success", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "taskBranch": self.task_branch,
            "mainBranch": self.main_branch,
            "commitSha": self.commit_sha,
        }


@dataclass(frozen=True)
class MergeConflict:
    """Merge stopped on overlapping changes; a human has to resolve them."""

    conflicted_files: list[str]
    status: Literal["conflict"] = field(default="conflict", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "conflictedFiles": list(self.conflicted_files)}


DeployOutcome = DeploySuccess | MergeConflict
SyncOutcome = SyncSuccess | MergeConflict


# ---------------------------------------------------------------------------
# Bulk deploy outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaskSuccess:
    task_id: int
    commit_sha: str
    status: Literal["success"] = field(default="success", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"taskId": self.task_id, "status": self.status, "commitSha": self.commit_sha}


@dataclass(frozen=True)
class TaskConflict:
    task_id: int
    conflicted_files: list[str]
    status: Literal["conflict"] = field(default="conflict", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "taskId": self.task_id,
            "status": self.status,
            "conflictedFiles": list(self.conflicted_files),
        }


@dataclass(frozen=True)
class TaskSkipped:
    task_id: int
    reason: str
    status: Literal["skipped"] = field(default="skipped", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"taskId": self.task_id, "status": self.status, "reason": self.reason}


TaskResult = TaskSuccess | TaskConflict | TaskSkipped


@dataclass(frozen=True)
class BulkSummary:
    success: int = 0
    conflict: int = 0
    skipped: int = 0

    @classmethod
    def from_results(cls, results: list[TaskResult]) -> BulkSummary:
        return cls(
            success=sum(isinstance(r, TaskSuccess) for r in results),
            conflict=sum(isinstance(r, TaskConflict) for r in results),
            skipped=sum(isinstance(r, TaskSkipped) for r in results),
        )

    @property
    def total(self) -> int:
        return self.success + self.conflict + self.skipped

    def to_dict(self) -> dict[str, int]:
        return {"success": self.success, "conflict": self.conflict, "skipped": self.skipped}


@dataclass(frozen=True)
class BulkDeployOutcome:
    results: list[TaskResult]

    @property
    def summary(self) -> BulkSummary:
        # Derived, so the counts can never drift from the result list
        return BulkSummary.from_results(self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary.to_dict(),
        }
