"""Tests for per-repository locking and previous-branch restoration."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from papi.git_ops.locks import get_repo_lock, repo_lock, restore_branch
from papi.git_ops.utils import CHECKOUT_FAILED, GIT_ERROR, GitError


class TestGetRepoLock:
    def test_same_path_same_lock(self, tmp_path: Path):
        assert get_repo_lock(tmp_path) is get_repo_lock(tmp_path)

    def test_aliases_share_a_lock(self, tmp_path: Path):
        real = tmp_path / "clone"
        real.mkdir()
        alias = tmp_path / "alias"
        alias.symlink_to(real)

        assert get_repo_lock(alias) is get_repo_lock(real)
        assert get_repo_lock(tmp_path / "clone" / ".." / "clone") is get_repo_lock(real)

    def test_different_paths_different_locks(self, tmp_path: Path):
        (tmp_path / "a").mkdir()
        (tmp_path / "b").mkdir()
        assert get_repo_lock(tmp_path / "a") is not get_repo_lock(tmp_path / "b")


class TestRepoLock:
    def test_serializes_same_repository(self, tmp_path: Path):
        inside = threading.Event()
        release = threading.Event()
        order: list[str] = []

        def first():
            with repo_lock(tmp_path):
                order.append("first-start")
                inside.set()
                release.wait(timeout=5)
                order.append("first-end")

        def second():
            inside.wait(timeout=5)
            with repo_lock(tmp_path):
                order.append("second")

        t1 = threading.Thread(target=first)
        t2 = threading.Thread(target=second)
        t1.start()
        t2.start()
        inside.wait(timeout=5)
        # Give the second thread time to block on the lock
        time.sleep(0.1)
        assert order == ["first-start"]
        release.set()
        t1.join(timeout=5)
        t2.join(timeout=5)

        assert order == ["first-start", "first-end", "second"]

    def test_different_repositories_do_not_block(self, tmp_path: Path):
        (tmp_path / "a").mkdir()
        (tmp_path / "b").mkdir()
        with repo_lock(tmp_path / "a"):
            acquired = get_repo_lock(tmp_path / "b").acquire(blocking=False)
            assert acquired
            get_repo_lock(tmp_path / "b").release()

    def test_released_on_exception(self, tmp_path: Path):
        with pytest.raises(RuntimeError):
            with repo_lock(tmp_path):
                raise RuntimeError("boom")
        assert not get_repo_lock(tmp_path).locked()


class TestRestoreBranch:
    def test_checks_out_previous_on_success(self, tmp_path: Path):
        with (
            patch("papi.git_ops.locks.current_branch", return_value="work"),
            patch("papi.git_ops.locks.checkout") as mock_checkout,
        ):
            with restore_branch(tmp_path) as previous:
                assert previous == "work"
        mock_checkout.assert_called_once_with(tmp_path, "work")

    def test_checks_out_previous_on_error(self, tmp_path: Path):
        with (
            patch("papi.git_ops.locks.current_branch", return_value="work"),
            patch("papi.git_ops.locks.checkout") as mock_checkout,
        ):
            with pytest.raises(GitError):
                with restore_branch(tmp_path):
                    raise GitError("PUSH_FAILED", "Failed to push: rejected")
        mock_checkout.assert_called_once_with(tmp_path, "work")

    def test_restore_failure_is_swallowed(self, tmp_path: Path):
        failure = GitError(CHECKOUT_FAILED, "Failed to checkout branch work: locked")
        with (
            patch("papi.git_ops.locks.current_branch", return_value="work"),
            patch("papi.git_ops.locks.checkout", side_effect=failure),
        ):
            with restore_branch(tmp_path):
                pass

    def test_restore_failure_does_not_mask_inner_error(self, tmp_path: Path):
        failure = GitError(CHECKOUT_FAILED, "Failed to checkout branch work: locked")
        with (
            patch("papi.git_ops.locks.current_branch", return_value="work"),
            patch("papi.git_ops.locks.checkout", side_effect=failure),
        ):
            with pytest.raises(GitError) as exc_info:
                with restore_branch(tmp_path):
                    raise GitError("MERGE_FAILED", "Merge failed: bad ref")
        assert exc_info.value.code == "MERGE_FAILED"

    def test_unreadable_branch_fails_on_entry(self, tmp_path: Path):
        with (
            patch(
                "papi.git_ops.locks.current_branch",
                side_effect=GitError(GIT_ERROR, "Failed to read current branch"),
            ),
            patch("papi.git_ops.locks.checkout") as mock_checkout,
        ):
            with pytest.raises(GitError):
                with restore_branch(tmp_path):
                    pytest.fail("body must not run")
        mock_checkout.assert_not_called()
