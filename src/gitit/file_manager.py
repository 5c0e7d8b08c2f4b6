"""Low-level file system helpers used by the record store and config."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .errors import ErrorCode, GitItError


class FileManager:
    """Wrapper around common text/YAML file operations."""

    def write_text(self, path: Path, content: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except PermissionError as exc:
            raise GitItError(
                ErrorCode.PERMISSION_DENIED,
                f"Permission denied while writing {path}",
                "Check file permissions and try again.",
                {"path": str(path)},
            ) from exc

    def read_text(self, path: Path) -> str:
        """Read a text file that must exist."""
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise GitItError(
                ErrorCode.RECORD_NOT_FOUND,
                f"File not found: {path}",
                "Check that the issue repository is intact (`it status`).",
                {"path": str(path)},
            ) from exc
        except PermissionError as exc:
            raise GitItError(
                ErrorCode.PERMISSION_DENIED,
                f"Permission denied while reading {path}",
                "Check file permissions and try again.",
                {"path": str(path)},
            ) from exc

    def write_yaml(self, path: Path, payload: dict[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as handle:
                yaml.safe_dump(payload, handle, sort_keys=False, allow_unicode=False)
        except PermissionError as exc:
            raise GitItError(
                ErrorCode.PERMISSION_DENIED,
                f"Permission denied while writing {path}",
                "Check file permissions and try again.",
                {"path": str(path)},
            ) from exc

    def read_yaml(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with path.open("r", encoding="utf-8") as handle:
                loaded = yaml.safe_load(handle)
        except PermissionError as exc:
            raise GitItError(
                ErrorCode.PERMISSION_DENIED,
                f"Permission denied while reading {path}",
                "Check file permissions and try again.",
                {"path": str(path)},
            ) from exc
        except yaml.YAMLError as exc:
            raise GitItError(
                ErrorCode.INVALID_INPUT,
                f"Config file {path} is not valid YAML",
                "Fix or remove the file and retry.",
                {"path": str(path)},
            ) from exc
        if isinstance(loaded, dict):
            return loaded
        return {}
