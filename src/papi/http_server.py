"""Embedded HTTP server exposing deploy, bulk deploy, and sync.

Stateless: the caller names a configured repository and the branches to use;
papi validates everything it can before touching git, runs the git engine in
a worker thread, and answers with the outcome plus the activity lines the
dashboard should store against its tasks.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from papi.activity import ActivityEntry, bulk_deploy_entries, deploy_message, record, sync_message
from papi.config import Settings
from papi.git_ops import GitError, deploy_branch, deploy_bulk, expand_repo_path, sync_branch
from papi.git_ops.utils import REPO_PATH_NOT_FOUND
from papi.logger import logger
from papi.types import MergeConflict, RepositoryDescriptor, TaskBranchInfo

_start_time = time.monotonic()

settings_key: web.AppKey[Settings] = web.AppKey("settings", t=Settings)


class ApiError(Exception):
    """Request rejected before any git side effect."""

    def __init__(
        self,
        status: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.status = status
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


def _error_response(
    status: int, code: str, message: str, details: dict[str, Any] | None = None
) -> web.Response:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return web.json_response({"error": error}, status=status)


@web.middleware
async def _error_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    try:
        return await handler(request)
    except ApiError as exc:
        return _error_response(exc.status, exc.code, exc.message, exc.details)
    except GitError as exc:
        status = 400 if exc.code == REPO_PATH_NOT_FOUND else 500
        logger.error("Git operation failed", path=request.path, code=exc.code, error=exc.message)
        return _error_response(status, exc.code, exc.message)


# ------------------------------------------------------------------
# Request validation
# ------------------------------------------------------------------


async def _json_body(request: web.Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise ApiError(400, "VALIDATION_ERROR", "Request body must be JSON") from exc
    if not isinstance(body, dict):
        raise ApiError(400, "VALIDATION_ERROR", "Request body must be a JSON object")
    return body


def _required_str(body: dict[str, Any], key: str) -> str:
    value = body.get(key)
    if not value or not isinstance(value, str):
        raise ApiError(400, "VALIDATION_ERROR", f"{key} is required")
    return value


def _optional_task_id(body: dict[str, Any]) -> int | None:
    value = body.get("taskId")
    if value is None:
        return None
    if not isinstance(value, int) or isinstance(value, bool):
        raise ApiError(400, "VALIDATION_ERROR", "taskId must be a number")
    return value


def _resolve_repository(request: web.Request, body: dict[str, Any]) -> RepositoryDescriptor:
    name = _required_str(body, "repository")
    repo = request.app[settings_key].repository(name)
    if repo is None:
        raise ApiError(404, "NOT_FOUND", f"Repository {name} not found")
    if not expand_repo_path(repo.local_path).exists():
        raise ApiError(
            400, REPO_PATH_NOT_FOUND, f"Repository path does not exist: {repo.local_path}"
        )
    return repo


def _check_target(repo: RepositoryDescriptor, target_branch: str) -> None:
    if not repo.allows_target(target_branch):
        allowed = ", ".join(repo.deployment_branches)
        raise ApiError(400, "VALIDATION_ERROR", f"Invalid target branch. Allowed: {allowed}")


def _parse_tasks(body: dict[str, Any]) -> list[TaskBranchInfo]:
    raw = body.get("tasks")
    if not isinstance(raw, list) or not raw:
        raise ApiError(400, "VALIDATION_ERROR", "tasks must be a non-empty array")
    tasks: list[TaskBranchInfo] = []
    for item in raw:
        if not isinstance(item, dict):
            raise ApiError(400, "VALIDATION_ERROR", "each task must be an object")
        task_id = item.get("taskId")
        if not isinstance(task_id, int) or isinstance(task_id, bool):
            raise ApiError(400, "VALIDATION_ERROR", "taskId must be a number")
        head_branch = item.get("headBranch")
        if head_branch is not None and not isinstance(head_branch, str):
            raise ApiError(400, "VALIDATION_ERROR", "headBranch must be a string or null")
        tasks.append(TaskBranchInfo(task_id=task_id, head_branch=head_branch or None))
    return tasks


def _conflict_response(files: list[str], activity: ActivityEntry) -> web.Response:
    return web.json_response(
        {
            "error": {
                "code": "MERGE_CONFLICT",
                "message": "Merge conflict detected",
                "details": {"conflictedFiles": files},
            },
            "activity": activity.to_dict(),
        },
        status=409,
    )


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------


async def _handle_health(request: web.Request) -> web.Response:
    settings = request.app[settings_key]
    return web.json_response(
        {
            "status": "ok",
            "uptime_seconds": round(time.monotonic() - _start_time),
            "repositories": len(settings.repos),
        }
    )


async def _handle_repositories(request: web.Request) -> web.Response:
    repos = request.app[settings_key].repositories()
    items = [
        {
            "name": repo.name,
            "localPath": repo.local_path,
            "deploymentBranches": list(repo.deployment_branches),
            "mainBranch": repo.main_branch,
        }
        for repo in repos
    ]
    return web.json_response({"items": items, "total": len(items)})


async def _handle_deploy(request: web.Request) -> web.Response:
    body = await _json_body(request)
    source_branch = _required_str(body, "sourceBranch")
    target_branch = _required_str(body, "targetBranch")
    task_id = _optional_task_id(body)
    repo = _resolve_repository(request, body)
    _check_target(repo, target_branch)

    outcome = await asyncio.to_thread(
        deploy_branch, repo.local_path, source_branch, target_branch
    )
    activity = record(
        ActivityEntry(task_id, deploy_message(target_branch, outcome), source="deploy")
    )
    if isinstance(outcome, MergeConflict):
        return _conflict_response(outcome.conflicted_files, activity)
    return web.json_response({**outcome.to_dict(), "activity": activity.to_dict()})


async def _handle_deploy_bulk(request: web.Request) -> web.Response:
    body = await _json_body(request)
    target_branch = _required_str(body, "targetBranch")
    tasks = _parse_tasks(body)
    repo = _resolve_repository(request, body)
    _check_target(repo, target_branch)

    outcome = await asyncio.to_thread(deploy_bulk, repo.local_path, tasks, target_branch)
    activity = [record(entry) for entry in bulk_deploy_entries(target_branch, outcome)]
    return web.json_response(
        {**outcome.to_dict(), "activity": [entry.to_dict() for entry in activity]}
    )


async def _handle_sync_branch(request: web.Request) -> web.Response:
    body = await _json_body(request)
    task_branch = _required_str(body, "taskBranch")
    task_id = _optional_task_id(body)
    repo = _resolve_repository(request, body)
    main_branch = body.get("mainBranch") or repo.main_branch
    if not isinstance(main_branch, str):
        raise ApiError(400, "VALIDATION_ERROR", "mainBranch must be a string")

    outcome = await asyncio.to_thread(sync_branch, repo.local_path, task_branch, main_branch)
    activity = record(ActivityEntry(task_id, sync_message(main_branch, outcome), source="sync"))
    if isinstance(outcome, MergeConflict):
        return _conflict_response(outcome.conflicted_files, activity)
    return web.json_response({**outcome.to_dict(), "activity": activity.to_dict()})


# ------------------------------------------------------------------
# Server setup
# ------------------------------------------------------------------


def create_app(settings: Settings) -> web.Application:
    app = web.Application(middlewares=[_error_middleware])
    app[settings_key] = settings
    app.router.add_get("/health", _handle_health)
    app.router.add_get("/api/v1/repositories", _handle_repositories)
    app.router.add_post("/api/v1/deploy", _handle_deploy)
    app.router.add_post("/api/v1/deploy/bulk", _handle_deploy_bulk)
    app.router.add_post("/api/v1/sync-branch", _handle_sync_branch)
    return app


async def start_http_server(
    settings: Settings, *, host: str | None = None, port: int | None = None
) -> web.AppRunner:
    """Create, start, and return the HTTP server runner."""
    runner = web.AppRunner(create_app(settings))
    await runner.setup()
    bind_host = host or settings.server.host
    bind_port = port or settings.server.port
    site = web.TCPSite(runner, bind_host, bind_port)
    await site.start()
    logger.info("HTTP server listening", host=bind_host, port=bind_port)
    return runner
