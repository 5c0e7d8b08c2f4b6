"""Domain-specific error types for issue tracker operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Supported error codes exposed by the CLI and MCP tools."""

    INVALID_ID = "INVALID_ID"
    ISSUE_NOT_FOUND = "ISSUE_NOT_FOUND"
    REPO_NOT_FOUND = "REPO_NOT_FOUND"
    RECORD_NOT_FOUND = "RECORD_NOT_FOUND"
    REPO_ALREADY_EXISTS = "REPO_ALREADY_EXISTS"
    DIRTY_WORKING_TREE = "DIRTY_WORKING_TREE"
    FIELD_NOT_FOUND = "FIELD_NOT_FOUND"
    NO_OPEN_ISSUE = "NO_OPEN_ISSUE"
    GIT_COMMAND_FAILED = "GIT_COMMAND_FAILED"
    EDITOR_FAILED = "EDITOR_FAILED"
    CONFIG_MISSING = "CONFIG_MISSING"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_INPUT = "INVALID_INPUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass
class GitItError(Exception):
    """Structured exception carrying a stable error contract."""

    code: ErrorCode
    message: str
    suggestion: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    def to_payload(self) -> dict[str, Any]:
        return {
            "status": "error",
            "error_code": self.code.value,
            "message": self.message,
            "suggestion": self.suggestion or "",
            "details": self.details,
        }
