"""HTTP API for task management, built on aiohttp.

Routes translate requests into store operations and engine calls; no
scheduling logic lives here. Every mutation is followed by a full reload.
When ``API_KEY`` is set, ``/api/*`` and ``/mcp`` require a matching
``X-API-Key`` header.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web
from pydantic import ValidationError

from opencron.api.rpc import ApiContext, CreateTaskParams, UnknownToolError, handle_rpc
from opencron.config import settings
from opencron.scheduler.errors import TaskNotFoundError, TaskRunError
from opencron.scheduler.logfiles import read_task_logs
from opencron.scheduler.models import Task, TaskUpdate

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

CONTEXT_KEY = web.AppKey("context", ApiContext)

NO_LOGS_MESSAGE = "No logs found for this task."


# -- Helpers -------------------------------------------------------------------


def _ctx(request: web.Request) -> ApiContext:
    return request.app[CONTEXT_KEY]


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


def _task_id(request: web.Request) -> int:
    try:
        return int(request.match_info["task_id"])
    except ValueError:
        raise web.HTTPBadRequest(
            text=json.dumps({"error": "Invalid ID"}), content_type="application/json"
        ) from None


async def _json_body(request: web.Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None
    if not isinstance(payload, dict):
        raise web.HTTPBadRequest(
            text=json.dumps({"error": "invalid JSON"}), content_type="application/json"
        )
    return payload


@web.middleware
async def _api_key_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Reject unauthenticated calls when an API key is configured."""
    protected = request.path.startswith("/api/") or request.path == "/mcp"
    if protected and settings.api_key:
        if request.headers.get("X-API-Key", "") != settings.api_key:
            logger.warning("API request rejected: invalid key (%s %s)", request.method, request.path)
            return _error("unauthorized", 401)
    return await handler(request)


# -- Routes --------------------------------------------------------------------


async def _health(request: web.Request) -> web.Response:
    """GET /health — basic liveness check."""
    return web.json_response({"status": "ok"})


async def _list_tasks(request: web.Request) -> web.Response:
    tasks = await _ctx(request).store.get_tasks()
    return web.json_response([t.to_dict() for t in tasks])


async def _create_task(request: web.Request) -> web.Response:
    ctx = _ctx(request)
    payload = await _json_body(request)
    try:
        params = CreateTaskParams(**payload)
    except ValidationError as exc:
        return _error(str(exc), 400)

    task = await ctx.store.create_task(Task(**params.model_dump()))
    await ctx.engine.reload()
    return web.json_response(task.to_dict())


async def _update_task(request: web.Request) -> web.Response:
    ctx = _ctx(request)
    task_id = _task_id(request)
    try:
        task = await ctx.store.get_task_by_id(task_id)
    except TaskNotFoundError:
        return _error("Task not found", 404)

    payload = await _json_body(request)
    try:
        update = TaskUpdate(**payload)
    except ValidationError as exc:
        return _error(str(exc), 400)
    if update.is_empty():
        return _error("No fields to update", 400)

    update.apply(task)
    try:
        await ctx.store.update_task(task)
    except TaskNotFoundError:
        return _error("Task not found", 404)
    await ctx.engine.refresh_task(task.id)
    return web.json_response(task.to_dict())


async def _delete_task(request: web.Request) -> web.Response:
    ctx = _ctx(request)
    task_id = _task_id(request)
    if not await ctx.store.delete_task(task_id):
        return _error("Task not found", 404)
    await ctx.engine.reload()
    return web.Response(status=204)


async def _run_task(request: web.Request) -> web.Response:
    """POST /api/tasks/{id}/run — blocks until the command finishes."""
    ctx = _ctx(request)
    task_id = _task_id(request)
    try:
        await ctx.engine.run_task_now(task_id)
    except TaskNotFoundError:
        return _error("Task not found", 404)
    except TaskRunError as exc:
        return _error(str(exc), 500)
    return web.Response(status=204)


async def _task_logs(request: web.Request) -> web.Response:
    ctx = _ctx(request)
    task_id = _task_id(request)
    content = read_task_logs(ctx.logs_dir, task_id)
    if content is None:
        content = NO_LOGS_MESSAGE
    return web.Response(text=content, content_type="text/plain")


async def _mcp(request: web.Request) -> web.Response:
    """POST /mcp — JSON-RPC tool calls."""
    payload = await _json_body(request)
    try:
        response = await handle_rpc(payload, _ctx(request))
    except UnknownToolError as exc:
        return _error(str(exc), 404)
    if response is None:
        return web.Response(status=204)
    return web.json_response(response)


def create_web_app(ctx: ApiContext) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application(middlewares=[_api_key_middleware])
    app[CONTEXT_KEY] = ctx
    app.router.add_get("/health", _health)
    app.router.add_get("/api/tasks", _list_tasks)
    app.router.add_post("/api/tasks", _create_task)
    app.router.add_put("/api/tasks/{task_id}", _update_task)
    app.router.add_patch("/api/tasks/{task_id}", _update_task)
    app.router.add_delete("/api/tasks/{task_id}", _delete_task)
    app.router.add_post("/api/tasks/{task_id}/run", _run_task)
    app.router.add_get("/api/tasks/{task_id}/logs", _task_logs)
    app.router.add_post("/mcp", _mcp)
    return app


class ApiServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(self, ctx: ApiContext, host: str | None = None, port: int | None = None) -> None:
        self.ctx = ctx
        self.host = host or settings.host
        self.port = port or settings.port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        app = create_web_app(self.ctx)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info(
            "API server listening on %s:%d (auth %s)",
            self.host,
            self.port,
            "enabled" if settings.api_key else "disabled",
        )

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("API server stopped")
