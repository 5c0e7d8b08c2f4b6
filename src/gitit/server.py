"""MCP server entrypoint and tool definitions for the issue tracker."""

from __future__ import annotations

import argparse
import json
import logging
import time
import uuid
from typing import Annotated, Any, Callable

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field, ValidationError

from .engine import IssueTracker
from .errors import ErrorCode, GitItError
from .models import FilterRequest, SetFieldRequest, ShowRequest
from .runtime import configure_logging, get_log_level

logger = logging.getLogger(__name__)

mcp = FastMCP(
    name="gitit",
    instructions=(
        "Track issues as branches of a git repository. One issue is open at a time; "
        "use it_new or it_open to select it, it_set to edit fields, it_save to commit, "
        "and it_close or it_cancel to return to the main branch. it_list, it_show and "
        "it_blame are read-only."
    ),
)

READ_ONLY_TOOL_ANNOTATIONS = ToolAnnotations(
    readOnlyHint=True,
    idempotentHint=True,
    destructiveHint=False,
    openWorldHint=False,
)

WRITE_TOOL_ANNOTATIONS = ToolAnnotations(
    readOnlyHint=False,
    idempotentHint=False,
    destructiveHint=False,
    openWorldHint=False,
)

DESTRUCTIVE_WRITE_TOOL_ANNOTATIONS = ToolAnnotations(
    readOnlyHint=False,
    idempotentHint=False,
    destructiveHint=True,
    openWorldHint=False,
)

DirectoryArg = Annotated[str, Field(description="Path to the issue repository")]


def _build_correlation_id() -> str:
    """Generate short operation correlation IDs for diagnostics."""
    return uuid.uuid4().hex[:12]


def _error_payload_from_exception(exc: Exception) -> dict[str, Any]:
    """Convert internal exceptions into stable MCP error payloads."""
    if isinstance(exc, GitItError):
        return exc.to_payload()
    if isinstance(exc, ValidationError):
        return {
            "status": "error",
            "error_code": ErrorCode.INVALID_INPUT.value,
            "message": "Input validation failed",
            "suggestion": "Check field constraints and request schema.",
            "details": {"errors": exc.errors(include_context=False, include_input=False)},
        }
    logger.exception("Unhandled server exception", exc_info=exc)
    return {
        "status": "error",
        "error_code": ErrorCode.INTERNAL_ERROR.value,
        "message": str(exc),
        "suggestion": "Check server logs and retry the operation.",
        "details": {},
    }


def _log_tool_event(
    *,
    correlation_id: str,
    tool_name: str,
    status: str,
    elapsed_seconds: float,
    details: dict[str, Any] | None = None,
) -> None:
    payload: dict[str, Any] = {
        "event_type": "mcp_tool_call",
        "correlation_id": correlation_id,
        "tool_name": tool_name,
        "status": status,
        "elapsed_ms": round(elapsed_seconds * 1000, 3),
    }
    if details:
        payload["details"] = details
    logger.info("mcp_tool_call %s", json.dumps(payload, ensure_ascii=True, sort_keys=True))


def _run_tool(
    tool_name: str,
    request_payload: dict[str, Any],
    operation: Callable[[], dict[str, Any]],
) -> dict[str, Any]:
    """Execute a tool operation, converting failures into error payloads."""
    correlation_id = _build_correlation_id()
    start = time.perf_counter()
    try:
        response_payload = dict(operation())
    except Exception as exc:  # noqa: BLE001
        error_payload = _error_payload_from_exception(exc)
        error_payload["correlation_id"] = correlation_id
        _log_tool_event(
            correlation_id=correlation_id,
            tool_name=tool_name,
            status="error",
            elapsed_seconds=time.perf_counter() - start,
            details={
                "error_code": error_payload.get("error_code"),
                "directory": request_payload.get("directory"),
            },
        )
        return error_payload

    response_payload["correlation_id"] = correlation_id
    _log_tool_event(
        correlation_id=correlation_id,
        tool_name=tool_name,
        status="ok",
        elapsed_seconds=time.perf_counter() - start,
    )
    return response_payload


@mcp.tool(annotations=WRITE_TOOL_ANNOTATIONS)
def it_init(directory: DirectoryArg) -> dict[str, Any]:
    """Initialize a new issue repository in an empty directory."""
    return _run_tool(
        "it_init",
        {"directory": directory},
        lambda: IssueTracker(directory).initialize().model_dump(mode="json"),
    )


@mcp.tool(annotations=WRITE_TOOL_ANNOTATIONS)
def it_new(directory: DirectoryArg) -> dict[str, Any]:
    """Create the next issue and make it the open issue."""
    return _run_tool(
        "it_new",
        {"directory": directory},
        lambda: IssueTracker(directory).new_issue().model_dump(mode="json"),
    )


@mcp.tool(annotations=WRITE_TOOL_ANNOTATIONS)
def it_open(
    directory: DirectoryArg,
    issue_id: Annotated[str, Field(description="Issue id, e.g. 0001 or 1")],
) -> dict[str, Any]:
    """Open an existing issue (checks out its branch)."""
    return _run_tool(
        "it_open",
        {"directory": directory, "issue_id": issue_id},
        lambda: IssueTracker(directory).open_issue(issue_id).model_dump(mode="json"),
    )


@mcp.tool(annotations=WRITE_TOOL_ANNOTATIONS)
def it_save(directory: DirectoryArg) -> dict[str, Any]:
    """Commit pending changes of the open issue."""
    return _run_tool(
        "it_save",
        {"directory": directory},
        lambda: IssueTracker(directory).save_issue().model_dump(mode="json"),
    )


@mcp.tool(annotations=WRITE_TOOL_ANNOTATIONS)
def it_close(directory: DirectoryArg) -> dict[str, Any]:
    """Save pending changes and return to the main branch."""
    return _run_tool(
        "it_close",
        {"directory": directory},
        lambda: IssueTracker(directory).close_issue().model_dump(mode="json"),
    )


@mcp.tool(annotations=DESTRUCTIVE_WRITE_TOOL_ANNOTATIONS)
def it_cancel(directory: DirectoryArg) -> dict[str, Any]:
    """Discard uncommitted changes and return to the main branch."""
    return _run_tool(
        "it_cancel",
        {"directory": directory},
        lambda: IssueTracker(directory).cancel().model_dump(mode="json"),
    )


@mcp.tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
def it_status(directory: DirectoryArg) -> dict[str, Any]:
    """Show the open issue and whether it has unsaved changes."""
    return _run_tool(
        "it_status",
        {"directory": directory},
        lambda: IssueTracker(directory).get_status().model_dump(mode="json"),
    )


@mcp.tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
def it_list(
    directory: DirectoryArg,
    key: Annotated[str, Field(description="Only issues that have this field")] = "",
    value: Annotated[str, Field(description="Only issues whose field equals this value")] = "",
) -> dict[str, Any]:
    """List issues, optionally filtered by an exact field value."""
    request_payload = {"directory": directory, "key": key, "value": value}

    def _operation() -> dict[str, Any]:
        request = FilterRequest(key=key, value=value)
        return IssueTracker(directory).list_issues(request).model_dump(mode="json")

    return _run_tool("it_list", request_payload, _operation)


@mcp.tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
def it_show(
    directory: DirectoryArg,
    ids: Annotated[
        list[str] | None,
        Field(description="Issue ids to show; empty for the open issue, ['all'] for every issue"),
    ] = None,
) -> dict[str, Any]:
    """Show issue records."""
    request_payload = {"directory": directory, "ids": ids or []}

    def _operation() -> dict[str, Any]:
        request = ShowRequest(ids=ids or [])
        return IssueTracker(directory).show(request).model_dump(mode="json")

    return _run_tool("it_show", request_payload, _operation)


@mcp.tool(annotations=WRITE_TOOL_ANNOTATIONS)
def it_set(
    directory: DirectoryArg,
    key: Annotated[str, Field(min_length=1, description="Existing field name")],
    value: Annotated[str, Field(description="New field value")],
) -> dict[str, Any]:
    """Set an existing field of the open issue (not committed until it_save)."""
    request_payload = {"directory": directory, "key": key, "value": value}

    def _operation() -> dict[str, Any]:
        request = SetFieldRequest(key=key, value=value)
        return IssueTracker(directory).set_field(request).model_dump(mode="json")

    return _run_tool("it_set", request_payload, _operation)


@mcp.tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
def it_blame(
    directory: DirectoryArg,
    issue_id: Annotated[str, Field(description="Issue id; empty for the open issue")] = "",
) -> dict[str, Any]:
    """Show per-line history of an issue record."""
    return _run_tool(
        "it_blame",
        {"directory": directory, "issue_id": issue_id},
        lambda: IssueTracker(directory).blame(issue_id).model_dump(mode="json"),
    )


@mcp.tool(annotations=WRITE_TOOL_ANNOTATIONS)
def it_attach(
    directory: DirectoryArg,
    files: Annotated[list[str], Field(description="Paths relative to the repository root")],
) -> dict[str, Any]:
    """Stage files to be committed with the open issue."""
    return _run_tool(
        "it_attach",
        {"directory": directory, "files": files},
        lambda: IssueTracker(directory).attach(files).model_dump(mode="json"),
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="gitit MCP server (stdio transport)")
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate runtime settings and exit without starting the server.",
    )
    args = parser.parse_args()
    try:
        log_level = get_log_level()
    except ValueError as exc:
        parser.error(str(exc))
    configure_logging(log_level)

    if args.check_config:
        print("Configuration is valid.")
        return
    mcp.run()


if __name__ == "__main__":
    main()
