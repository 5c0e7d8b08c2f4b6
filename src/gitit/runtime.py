"""Runtime configuration helpers."""

from __future__ import annotations

import logging
import os
import re
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .constants import BRANCH_PREFIX, DEFAULT_MAIN_BRANCH

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}
EDITOR_ENV_KEYS = ("EDITOR", "VISUAL")
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
BRANCH_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._/-]*$")
LOG_FORMAT = "%(name)s %(levelname)s %(message)s"


@dataclass(frozen=True)
class TrackerSettings:
    """Lifecycle policy sourced from environment variables and repo config."""

    main_branch: str
    require_clean_checkout: bool
    close_on_save: bool


def get_tracker_settings(
    env: Mapping[str, str] | None = None,
    file_config: Mapping[str, Any] | None = None,
) -> TrackerSettings:
    """Return validated tracker settings.

    Values from the repository config file are defaults; environment
    variables, when set, take precedence.
    """
    source = os.environ if env is None else env
    file_values = file_config or {}

    main_branch = source.get("GITIT_MAIN_BRANCH", "").strip() or DEFAULT_MAIN_BRANCH
    validate_main_branch(main_branch)

    return TrackerSettings(
        main_branch=main_branch,
        require_clean_checkout=_parse_bool_env(
            source=source,
            key="GITIT_REQUIRE_CLEAN",
            default=coerce_bool(file_values.get("require_clean_checkout", True)),
        ),
        close_on_save=_parse_bool_env(
            source=source,
            key="GITIT_CLOSE_ON_SAVE",
            default=coerce_bool(file_values.get("close_on_save", False)),
        ),
    )


def validate_main_branch(name: str) -> None:
    if not BRANCH_NAME_PATTERN.fullmatch(name):
        raise ValueError("GITIT_MAIN_BRANCH must be a valid git branch name.")
    if name.startswith(BRANCH_PREFIX):
        raise ValueError(f"GITIT_MAIN_BRANCH must not start with '{BRANCH_PREFIX}'.")


def resolve_editor(env: Mapping[str, str] | None = None, configured: str = "") -> str:
    """Return the editor command from EDITOR, VISUAL or the repo config."""
    source = os.environ if env is None else env
    for key in EDITOR_ENV_KEYS:
        value = source.get(key, "").strip()
        if value:
            return value
    if configured.strip():
        return configured.strip()
    raise ValueError("EDITOR or VISUAL environment variable must be set.")


def get_log_level(env: Mapping[str, str] | None = None) -> str:
    source = os.environ if env is None else env
    level = source.get("GITIT_LOG_LEVEL", "WARNING").strip().upper() or "WARNING"
    if level not in LOG_LEVELS:
        allowed = ", ".join(sorted(LOG_LEVELS))
        raise ValueError(f"GITIT_LOG_LEVEL must be one of: {allowed}.")
    return level


def configure_logging(level: str) -> None:
    """Send package diagnostics to stderr; stdout is reserved for command output."""
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ValueError(f"Expected a boolean value (true/false), got '{value}'.")


def _parse_bool_env(source: Mapping[str, str], key: str, default: bool) -> bool:
    raw = source.get(key)
    if raw is None or not str(raw).strip():
        return default
    normalized = str(raw).strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ValueError(f"{key} must be a boolean value (true/false).")
