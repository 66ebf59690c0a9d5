"""JSON-RPC tool surface — task management for MCP-style clients.

Tools are registered with :data:`tools` via the ``@tools.tool()`` decorator.
Each tool declares a pydantic params model; its JSON schema is advertised as
the tool's ``inputSchema`` and incoming arguments are validated against it.
"""

from __future__ import annotations

import inspect
import json
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError

from opencron.scheduler.errors import OpencronError, TaskNotFoundError
from opencron.scheduler.models import Task, TaskUpdate

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from pathlib import Path

    from opencron.scheduler.engine import SchedulerEngine
    from opencron.scheduler.store import TaskStore

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_INFO = {"name": "opencron", "version": "1.0.0"}
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


@dataclass
class ApiContext:
    """Collaborators shared by the HTTP routes and the RPC tools."""

    engine: SchedulerEngine
    store: TaskStore
    logs_dir: Path


@dataclass
class ToolResult:
    """Result of a tool call, rendered as a single text content block."""

    text: str = ""
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_content(self) -> dict[str, Any]:
        if self.error is not None:
            return {"isError": True, "content": [{"type": "text", "text": self.error}]}
        return {"content": [{"type": "text", "text": self.text}]}


class ToolParams(BaseModel):
    """Base class for tool parameter models."""


class UnknownToolError(OpencronError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")


@dataclass
class ToolDef:
    name: str
    description: str
    handler: Callable[..., Awaitable[ToolResult]]
    params_model: type[ToolParams] | None = None


class ToolRegistry:
    """Catalog of RPC tools."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDef] = {}

    def tool(
        self,
        *,
        name: str,
        description: str,
        params_model: type[ToolParams] | None = None,
    ) -> Callable:
        """Decorator to register an async ``(ctx, **params)`` function as a tool."""

        def decorator(fn: Callable[..., Awaitable[ToolResult]]) -> Callable:
            if not inspect.iscoroutinefunction(fn):
                msg = f"Tool handler '{name}' must be an async function"
                raise TypeError(msg)
            self._tools[name] = ToolDef(
                name=name, description=description, handler=fn, params_model=params_model
            )
            return fn

        return decorator

    def get(self, name: str) -> ToolDef | None:
        return self._tools.get(name)

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools.keys())

    def get_schemas(self) -> list[dict[str, Any]]:
        return [self._tool_schema(t) for t in self._tools.values()]

    async def execute(
        self, name: str, arguments: dict[str, Any], ctx: ApiContext
    ) -> ToolResult:
        """Validate *arguments* and run the tool.

        Raises ``UnknownToolError`` for unregistered names; every other
        failure is reported in the returned ``ToolResult``.
        """
        tool_def = self._tools.get(name)
        if tool_def is None:
            raise UnknownToolError(name)

        logger.info("Tool '%s' called with %s", name, arguments)
        t0 = time.monotonic()
        try:
            if tool_def.params_model is not None:
                params = tool_def.params_model(**arguments)
                kwargs = params.model_dump()
            else:
                kwargs = {}
            result = await tool_def.handler(ctx, **kwargs)
        except ValidationError as exc:
            return ToolResult(error=_validation_message(exc))
        except OpencronError as exc:
            result = ToolResult(error=str(exc))
        except Exception:
            logger.exception("Tool '%s' failed in %.2fs", name, time.monotonic() - t0)
            return ToolResult(error=f"Tool '{name}' failed. Check logs for details.")

        elapsed = time.monotonic() - t0
        if result.success:
            logger.info("Tool '%s' succeeded in %.2fs", name, elapsed)
        else:
            logger.warning("Tool '%s' returned error in %.2fs: %s", name, elapsed, result.error)
        return result

    @staticmethod
    def _tool_schema(tool_def: ToolDef) -> dict[str, Any]:
        if tool_def.params_model is not None:
            input_schema = tool_def.params_model.model_json_schema()
        else:
            input_schema = {"type": "object", "properties": {}}
        return {
            "name": tool_def.name,
            "description": tool_def.description,
            "inputSchema": input_schema,
        }


def _validation_message(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "arguments"
        problems.append(f"{field}: {err['msg']}")
    return "invalid arguments: " + "; ".join(problems)


tools = ToolRegistry()


# -- Params --------------------------------------------------------------------

_SCHEDULE_HELP = "Standard cron expression (e.g. * * * * *)"


class CreateTaskParams(ToolParams):
    name: str = Field(description="Display name for the task")
    schedule: str = Field(description=_SCHEDULE_HELP)
    command: str = Field(description="Shell command to run")
    enabled: bool = Field(default=True, description="Register the task with the scheduler")
    one_shot: bool = Field(default=False, description="Delete the task after its first successful run")


class UpdateTaskParams(ToolParams):
    id: int = Field(description="ID of the task to update")
    name: str | None = None
    schedule: str | None = Field(default=None, description=_SCHEDULE_HELP)
    command: str | None = None
    enabled: bool | None = None
    one_shot: bool | None = None


class TaskIdParams(ToolParams):
    id: int = Field(description="Task ID")


# -- Tools ---------------------------------------------------------------------


@tools.tool(name="list_tasks", description="List all scheduled cron tasks")
async def list_tasks(ctx: ApiContext) -> ToolResult:
    tasks = await ctx.store.get_tasks()
    return ToolResult(text=json.dumps([t.to_dict() for t in tasks]))


@tools.tool(
    name="create_task",
    description="Create a new cron task",
    params_model=CreateTaskParams,
)
async def create_task(ctx: ApiContext, **params: Any) -> ToolResult:
    task = await ctx.store.create_task(Task(**params))
    await ctx.engine.reload()
    return ToolResult(text="Task created: " + json.dumps(task.to_dict()))


@tools.tool(
    name="update_task",
    description="Update a cron task by ID. Supports partial updates, including command changes.",
    params_model=UpdateTaskParams,
)
async def update_task(ctx: ApiContext, id: int, **fields: Any) -> ToolResult:  # noqa: A002
    update = TaskUpdate(**fields)
    if update.is_empty():
        return ToolResult(error="at least one field to update is required")
    task = update.apply(await ctx.store.get_task_by_id(id))
    await ctx.store.update_task(task)
    await ctx.engine.refresh_task(task.id)
    return ToolResult(text="Task updated: " + json.dumps(task.to_dict()))


@tools.tool(name="delete_task", description="Delete a cron task by ID", params_model=TaskIdParams)
async def delete_task(ctx: ApiContext, id: int) -> ToolResult:  # noqa: A002
    if not await ctx.store.delete_task(id):
        raise TaskNotFoundError(id)
    await ctx.engine.reload()
    return ToolResult(text="Task deleted successfully")


@tools.tool(name="run_task", description="Run a task immediately by ID", params_model=TaskIdParams)
async def run_task(ctx: ApiContext, id: int) -> ToolResult:  # noqa: A002
    await ctx.engine.run_task_now(id)
    return ToolResult(text=f"Task {id} executed")


# -- JSON-RPC dispatch ---------------------------------------------------------


async def handle_rpc(request: dict[str, Any], ctx: ApiContext) -> dict[str, Any] | None:
    """Answer one JSON-RPC request.

    Returns the response envelope, or ``None`` for notifications that get no
    body. Raises ``UnknownToolError`` for ``tools/call`` on an unknown tool.
    """
    method = request.get("method")
    params = request.get("params") or {}
    if not isinstance(params, dict):
        return _rpc_error(request, INVALID_PARAMS, "Invalid params")

    if method == "initialize":
        result: dict[str, Any] = {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": SERVER_INFO,
        }
    elif method == "notifications/initialized":
        return None
    elif method == "tools/list":
        result = {"tools": tools.get_schemas()}
    elif method == "tools/call":
        name = params.get("name", "")
        arguments = params.get("arguments") or {}
        if not isinstance(name, str) or not isinstance(arguments, dict):
            return _rpc_error(request, INVALID_PARAMS, "Invalid params")
        result = (await tools.execute(name, arguments, ctx)).to_content()
    else:
        return _rpc_error(request, METHOD_NOT_FOUND, "Method not found")

    return {"jsonrpc": "2.0", "id": request.get("id"), "result": result}


def _rpc_error(request: dict[str, Any], code: int, message: str) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request.get("id"),
        "result": {"error": {"code": code, "message": message}},
    }
