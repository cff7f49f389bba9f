"""Human-readable activity lines for deploy and sync outcomes.

The dashboard stores these against the task; papi only formats and logs them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from papi.logger import logger
from papi.types import (
    BulkDeployOutcome,
    DeployOutcome,
    MergeConflict,
    SyncOutcome,
    TaskConflict,
    TaskSuccess,
)

ActivitySource = Literal["deploy", "sync", "system"]

_SHORT_SHA = 7


@dataclass(frozen=True)
class ActivityEntry:
    task_id: int | None
    message: str
    source: ActivitySource

    def to_dict(self) -> dict[str, object]:
        return {"taskId": self.task_id, "message": self.message, "source": self.source}


def _files(files: list[str]) -> str:
    return ", ".join(files)


def deploy_message(target_branch: str, outcome: DeployOutcome) -> str:
    if isinstance(outcome, MergeConflict):
        return (
            f"Deploy to {target_branch} failed: "
            f"merge conflict in {_files(outcome.conflicted_files)}"
        )
    return f"Deployed to {target_branch} ({outcome.commit_sha[:_SHORT_SHA]})"


def sync_message(main_branch: str, outcome: SyncOutcome) -> str:
    if isinstance(outcome, MergeConflict):
        return (
            f"Sync from {main_branch} failed: "
            f"merge conflict in {_files(outcome.conflicted_files)}"
        )
    return f"Synced from {main_branch} ({outcome.commit_sha[:_SHORT_SHA]})"


def bulk_deploy_entries(target_branch: str, outcome: BulkDeployOutcome) -> list[ActivityEntry]:
    """One entry per merged or conflicted task. Skipped tasks get none."""
    entries: list[ActivityEntry] = []
    for result in outcome.results:
        if isinstance(result, TaskSuccess):
            message = f"Deployed to {target_branch} ({result.commit_sha[:_SHORT_SHA]})"
        elif isinstance(result, TaskConflict):
            message = (
                f"Deploy to {target_branch} failed: "
                f"merge conflict in {_files(result.conflicted_files)}"
            )
        else:
            continue
        entries.append(ActivityEntry(task_id=result.task_id, message=message, source="deploy"))
    return entries


def record(entry: ActivityEntry) -> ActivityEntry:
    """Log an activity entry and hand it back for the caller to persist."""
    logger.info("Activity", task_id=entry.task_id, source=entry.source, message=entry.message)
    return entry
