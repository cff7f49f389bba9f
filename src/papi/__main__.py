"""Entry point for `python -m papi` / `papi`.

Subcommands:
    papi serve                                  Run the HTTP server
    papi deploy <repo> <source> <target>        Merge one branch into a deployment branch
    papi bulk-deploy <repo> <target> ID=BRANCH  Merge several task branches in one push
    papi sync <repo> <branch>                   Merge the main branch into a task branch

Outcomes are printed to stdout as JSON; activity lines go to stderr.
Exit codes: 0 success, 1 merge conflict, 2 invalid input, 3 git failure.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

EXIT_OK = 0
EXIT_CONFLICT = 1
EXIT_USAGE = 2
EXIT_GIT_ERROR = 3


def _emit(payload: dict[str, Any], activity: list[str]) -> None:
    print(json.dumps(payload, indent=2))
    for line in activity:
        print(line, file=sys.stderr)


def _fail(message: str, code: int = EXIT_USAGE) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return code


def _resolve_repo(name: str):
    from papi.config import get_settings

    return get_settings().repository(name)


def _parse_task_args(values: list[str]):
    """Parse ``<task_id>=<branch>`` pairs; an empty branch means none."""
    from papi.types import TaskBranchInfo

    tasks = []
    for value in values:
        task_id, sep, branch = value.partition("=")
        if not sep:
            raise ValueError(f"expected <task_id>=<branch>, got {value!r}")
        try:
            tasks.append(TaskBranchInfo(task_id=int(task_id), head_branch=branch or None))
        except ValueError as exc:
            raise ValueError(f"task id must be a number, got {task_id!r}") from exc
    return tasks


def _serve(host: str | None, port: int | None) -> int:
    from papi.config import get_settings
    from papi.http_server import start_http_server
    from papi.logger import set_log_level

    s = get_settings()
    set_log_level(s.logging.level)

    async def run() -> None:
        runner = await start_http_server(s, host=host, port=port)
        try:
            await asyncio.Event().wait()
        finally:
            await runner.cleanup()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
    return EXIT_OK


def _deploy(args: argparse.Namespace) -> int:
    from papi.activity import deploy_message
    from papi.git_ops import deploy_branch
    from papi.types import MergeConflict

    repo = _resolve_repo(args.repo)
    if repo is None:
        return _fail(f"repository {args.repo!r} is not configured")
    if not repo.allows_target(args.target):
        allowed = ", ".join(repo.deployment_branches) or "(none)"
        return _fail(f"invalid target branch {args.target!r}. Allowed: {allowed}")

    outcome = deploy_branch(repo.local_path, args.source, args.target)
    _emit(outcome.to_dict(), [deploy_message(args.target, outcome)])
    return EXIT_CONFLICT if isinstance(outcome, MergeConflict) else EXIT_OK


def _bulk_deploy(args: argparse.Namespace) -> int:
    from papi.activity import bulk_deploy_entries
    from papi.git_ops import deploy_bulk

    repo = _resolve_repo(args.repo)
    if repo is None:
        return _fail(f"repository {args.repo!r} is not configured")
    if not repo.allows_target(args.target):
        allowed = ", ".join(repo.deployment_branches) or "(none)"
        return _fail(f"invalid target branch {args.target!r}. Allowed: {allowed}")
    try:
        tasks = _parse_task_args(args.tasks)
    except ValueError as exc:
        return _fail(str(exc))

    outcome = deploy_bulk(repo.local_path, tasks, args.target)
    entries = bulk_deploy_entries(args.target, outcome)
    _emit(outcome.to_dict(), [f"#{e.task_id}: {e.message}" for e in entries])
    return EXIT_CONFLICT if outcome.summary.conflict else EXIT_OK


def _sync(args: argparse.Namespace) -> int:
    from papi.activity import sync_message
    from papi.git_ops import sync_branch
    from papi.types import MergeConflict

    repo = _resolve_repo(args.repo)
    if repo is None:
        return _fail(f"repository {args.repo!r} is not configured")
    main_branch = args.main_branch or repo.main_branch

    outcome = sync_branch(repo.local_path, args.branch, main_branch)
    _emit(outcome.to_dict(), [sync_message(main_branch, outcome)])
    return EXIT_CONFLICT if isinstance(outcome, MergeConflict) else EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="papi",
        description="Deploy and sync task branches in a local git clone",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", default=None, help="Bind address (default: [server] host)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: [server] port)")

    deploy = sub.add_parser("deploy", help="Merge a branch into a deployment branch and push")
    deploy.add_argument("repo", help="Repository name from [repos.<name>]")
    deploy.add_argument("source", help="Feature branch to merge (from origin)")
    deploy.add_argument("target", help="Deployment branch to merge into")

    bulk = sub.add_parser("bulk-deploy", help="Merge several task branches with one push")
    bulk.add_argument("repo", help="Repository name from [repos.<name>]")
    bulk.add_argument("target", help="Deployment branch to merge into")
    bulk.add_argument("tasks", nargs="+", metavar="TASK_ID=BRANCH", help="Tasks in merge order")

    sync = sub.add_parser("sync", help="Merge the main branch into a task branch and push")
    sync.add_argument("repo", help="Repository name from [repos.<name>]")
    sync.add_argument("branch", help="Task branch to update")
    sync.add_argument("--main-branch", default=None, help="Base branch (default: repo's main)")

    return parser


def main(argv: list[str] | None = None) -> int:
    from papi.git_ops import GitError

    args = build_parser().parse_args(argv)

    try:
        match args.command:
            case "serve":
                return _serve(args.host, args.port)
            case "deploy":
                return _deploy(args)
            case "bulk-deploy":
                return _bulk_deploy(args)
            case "sync":
                return _sync(args)
    except GitError as exc:
        return _fail(f"{exc.message} ({exc.code})", EXIT_GIT_ERROR)
    return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
