"""Command line interface for the issue tracker."""

from __future__ import annotations

import argparse
import json
import shlex
import subprocess
import sys
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from .engine import IssueTracker
from .errors import ErrorCode, GitItError
from .models import FilterRequest, SetFieldRequest, ShowRequest
from .runtime import configure_logging, get_log_level, resolve_editor

PROG = "it"


def _error_payload(exc: Exception) -> dict[str, Any]:
    if isinstance(exc, GitItError):
        return exc.to_payload()
    if isinstance(exc, ValidationError):
        errors: Any
        try:
            errors = exc.errors(include_context=False, include_input=False)
        except TypeError:
            errors = exc.errors()
        first = errors[0].get("msg", "invalid value") if errors else "invalid value"
        return {
            "status": "error",
            "error_code": ErrorCode.INVALID_INPUT.value,
            "message": f"Input validation failed: {first}",
            "suggestion": "Check command arguments and constraints.",
            "details": {"errors": errors},
        }
    return {
        "status": "error",
        "error_code": ErrorCode.INTERNAL_ERROR.value,
        "message": str(exc) or exc.__class__.__name__,
        "suggestion": "Retry with GITIT_LOG_LEVEL=DEBUG for diagnostics.",
        "details": {},
    }


def _print_error(payload: dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2), file=sys.stderr)
        return
    print(f"{PROG}: {payload.get('message', 'error')}", file=sys.stderr)


def _issue_line(issue: dict[str, Any]) -> str:
    return (
        f"{issue.get('issue_id', '')} {issue.get('status', ''):<8} "
        f"{issue.get('priority', ''):<8} {issue.get('summary', '')}"
    ).rstrip()


def _status_char(issue: dict[str, Any]) -> str:
    if not issue.get("current"):
        return " "
    return "!" if issue.get("dirty") else "*"


def _render_message(payload: dict[str, Any]) -> None:
    message = payload.get("message", "")
    if message:
        print(message)


def _render_new(payload: dict[str, Any]) -> None:
    print(payload["issue_id"])


def _render_list(payload: dict[str, Any]) -> None:
    for issue in payload.get("issues", []):
        print(f"{_status_char(issue)} {_issue_line(issue)}")


def _render_ids(payload: dict[str, Any]) -> None:
    for issue_id in payload.get("ids", []):
        print(issue_id)


def _render_show(payload: dict[str, Any]) -> None:
    for issue in payload.get("issues", []):
        print(f"{issue['issue_id']}:")
        for line in issue.get("text", "").splitlines():
            print(f"    {line}" if line.strip() else "")


def _render_status(payload: dict[str, Any]) -> None:
    dirty_char = "!" if payload.get("dirty") else " "
    issue = payload.get("issue")
    if issue:
        print(f"{dirty_char} {_issue_line(issue)}")
    else:
        print(f"{dirty_char} {payload.get('message', '')}")


def _render_blame(payload: dict[str, Any]) -> None:
    print(payload.get("text", ""), end="")


def _render_config(payload: dict[str, Any]) -> None:
    if "key" in payload:
        value = payload.get("value")
        print(f"{payload['key']}: {'' if value is None else value}")
        return
    for section in ("config", "effective"):
        values = payload.get(section)
        if not isinstance(values, dict):
            continue
        print(f"{section}:")
        for key, value in values.items():
            print(f"  {key}: {value}")


RENDERERS: dict[str, Callable[[dict[str, Any]], None]] = {
    "new": _render_new,
    "list": _render_list,
    "ids": _render_ids,
    "show": _render_show,
    "status": _render_status,
    "blame": _render_blame,
    "config": _render_config,
}


def _print_payload(action: str, payload: dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2))
        return
    RENDERERS.get(action, _render_message)(payload)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Track issues as branches of a git repository.",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-d", "--directory", default=".", help="Issue repository directory")
    common.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    subparsers = parser.add_subparsers(dest="command")

    def _add(name: str, help_text: str, aliases: list[str] | None = None) -> argparse.ArgumentParser:
        sub = subparsers.add_parser(name, aliases=aliases or [], parents=[common], help=help_text)
        sub.set_defaults(action=name)
        return sub

    _add("help", "Show usage", aliases=["usage"])
    _add("init", "Initialize new issue tracker")
    _add("new", "Create new issue")

    list_cmd = _add("list", "List issues, optionally filtering by key/value")
    list_cmd.add_argument("key", nargs="?", default="", help="Field name")
    list_cmd.add_argument("value", nargs="?", default="", help="Field value")

    ids = _add("ids", "List ids, optionally filtering by key/value", aliases=["id"])
    ids.add_argument("key", nargs="?", default="", help="Field name")
    ids.add_argument("value", nargs="?", default="", help="Field value")

    show = _add("show", "Show issue(s); defaults to the open issue")
    show.add_argument("ids", nargs="*", help="Issue ids, or 'all'")

    open_cmd = _add("open", "Open issue")
    open_cmd.add_argument("issue_id", help="Issue id")

    _add("save", "Save current issue")
    _add("close", "Save any pending changes and close current issue")
    _add("cancel", "Cancel any pending changes and close current issue")

    set_cmd = _add("set", "Set a field of the current issue")
    set_cmd.add_argument("key", help="Field name")
    set_cmd.add_argument("value", help="Field value")

    edit = _add("edit", "Edit issue in $EDITOR")
    edit.add_argument("issue_id", nargs="?", default="", help="Issue id (defaults to open issue)")

    blame = _add("blame", "Show 'git blame' for issue")
    blame.add_argument("issue_id", nargs="?", default="", help="Issue id (defaults to open issue)")

    _add("status", "Show status of current issue", aliases=["state"])

    attach = _add("attach", "Attach file(s) to current issue", aliases=["add"])
    attach.add_argument("files", nargs="+", help="Files to stage with the issue")

    config = _add("config", "Get or set tracker config values")
    config.add_argument("key", nargs="?", help="Config key")
    config.add_argument("value", nargs="?", help="Config value to set")
    config.add_argument("--list", action="store_true", help="List config values")

    return parser


def _run_editor(editor: str, path: str) -> None:
    command = [*shlex.split(editor), path]
    try:
        result = subprocess.run(command)
    except OSError as exc:
        raise GitItError(
            ErrorCode.EDITOR_FAILED,
            f"Unable to start editor '{editor}'",
            "Check the EDITOR or VISUAL environment variable.",
            {"command": command},
        ) from exc
    if result.returncode != 0:
        raise GitItError(
            ErrorCode.EDITOR_FAILED,
            f"Editor exited with status {result.returncode}",
            "Changes, if any, are still in the working copy.",
            {"command": command, "returncode": result.returncode},
        )


def _config_payload(tracker: IssueTracker, args: argparse.Namespace) -> dict[str, Any]:
    if args.key and args.value is not None:
        return {
            "status": "success",
            "message": f"Config key '{args.key}' updated",
            "config": tracker.set_config(args.key, args.value),
        }
    if args.key and not args.list:
        return {
            "status": "success",
            "message": "Config value retrieved",
            "key": args.key,
            "value": tracker.get_config().get(args.key),
        }
    settings = tracker.effective_settings()
    return {
        "status": "success",
        "message": "Config listed",
        "config": tracker.get_config(),
        "effective": {
            "main_branch": settings.main_branch,
            "require_clean_checkout": settings.require_clean_checkout,
            "close_on_save": settings.close_on_save,
        },
    }


def _dispatch(parser: argparse.ArgumentParser, args: argparse.Namespace) -> dict[str, Any]:
    action = args.action
    tracker = IssueTracker(args.directory)

    if action == "help":
        return {"status": "success", "message": parser.format_help().rstrip()}
    if action == "init":
        return tracker.initialize().model_dump(mode="json")
    if action == "new":
        return tracker.new_issue().model_dump(mode="json")
    if action == "list":
        request = FilterRequest(key=args.key, value=args.value)
        return tracker.list_issues(request).model_dump(mode="json")
    if action == "ids":
        ids = tracker.issue_ids(FilterRequest(key=args.key, value=args.value))
        return {"status": "success", "message": "Ids listed", "count": len(ids), "ids": ids}
    if action == "show":
        return tracker.show(ShowRequest(ids=args.ids)).model_dump(mode="json")
    if action == "open":
        return tracker.open_issue(args.issue_id).model_dump(mode="json")
    if action == "save":
        return tracker.save_issue().model_dump(mode="json")
    if action == "close":
        return tracker.close_issue().model_dump(mode="json")
    if action == "cancel":
        return tracker.cancel().model_dump(mode="json")
    if action == "set":
        request = SetFieldRequest(key=args.key, value=args.value)
        return tracker.set_field(request).model_dump(mode="json")
    if action == "edit":
        try:
            editor = resolve_editor(configured=_configured_editor(tracker))
        except ValueError as exc:
            raise GitItError(
                ErrorCode.CONFIG_MISSING,
                str(exc),
                "Export EDITOR (for example `export EDITOR=vi`) or run `it config editor vi`.",
            ) from exc
        response = tracker.prepare_edit(args.issue_id)
        _run_editor(editor, response.path)
        return response.model_dump(mode="json")
    if action == "blame":
        return tracker.blame(args.issue_id).model_dump(mode="json")
    if action == "attach":
        files = [str(Path(item).resolve()) for item in args.files]
        return tracker.attach(files).model_dump(mode="json")
    if action == "config":
        return _config_payload(tracker, args)
    return tracker.get_status().model_dump(mode="json")


def _configured_editor(tracker: IssueTracker) -> str:
    if not tracker.repository.exists():
        return ""
    return str(tracker.get_config().get("editor", "") or "")


def _log_level() -> str:
    try:
        return get_log_level()
    except ValueError as exc:
        raise GitItError(
            ErrorCode.INVALID_INPUT,
            str(exc),
            "Fix the environment variable and retry.",
            {"variable": "GITIT_LOG_LEVEL"},
        ) from exc


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(["status", *(argv or [])])
    as_json = bool(getattr(args, "json", False))

    try:
        configure_logging(_log_level())
        payload = _dispatch(parser, args)
        _print_payload(args.action, payload, as_json=as_json)
        return 0
    except Exception as exc:  # noqa: BLE001
        _print_error(_error_payload(exc), as_json=as_json)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
