"""Per-repository serialization and previous-branch restoration.

A local clone is one shared working tree: two deploys against the same path
would race on checkout/reset/merge and could mix unrelated changes into one
commit. Every orchestrator therefore holds ``repo_lock`` for its whole run.
Orchestrators execute in worker threads (``asyncio.to_thread`` from the HTTP
server), so these are thread locks.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from papi.git_ops.branch import checkout
from papi.git_ops.utils import GitError, current_branch
from papi.logger import logger

_registry_lock = threading.Lock()
_repo_locks: dict[str, threading.Lock] = {}


def _canonical(path: Path) -> str:
    return str(path.expanduser().resolve())


def get_repo_lock(path: Path) -> threading.Lock:
    """Return the lock for *path*; aliases of the same directory share one lock."""
    key = _canonical(path)
    with _registry_lock:
        lock = _repo_locks.get(key)
        if lock is None:
            lock = _repo_locks[key] = threading.Lock()
        return lock


@contextmanager
def repo_lock(path: Path) -> Iterator[None]:
    lock = get_repo_lock(path)
    if lock.locked():
        logger.info("Waiting for repository lock", repo=_canonical(path))
    with lock:
        yield


@contextmanager
def restore_branch(path: Path) -> Iterator[str]:
    """Remember the checked-out branch and put it back on every exit path.

    Raises GitError on entry if the current branch can't be read. Failures
    while restoring are logged and swallowed so they never replace the
    operation's own result or exception.
    """
    previous = current_branch(path)
    try:
        yield previous
    finally:
        try:
            checkout(path, previous)
        except (GitError, OSError) as exc:
            logger.warning(
                "Failed to restore previous branch",
                repo=str(path),
                branch=previous,
                error=str(exc),
            )
