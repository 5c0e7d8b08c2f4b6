"""Sequential issue identifier encoding."""

from __future__ import annotations

import re

from .constants import ID_WIDTH

INVALID_ID_NUM = -1
ID_PATTERN = re.compile(r"^[0-9]+$")


def encode_id(number: int) -> str:
    """Return the zero-padded textual form of a non-negative id number."""
    return f"{number:0{ID_WIDTH}d}"


def decode_id(value: str) -> int:
    """Parse an id string, returning ``INVALID_ID_NUM`` when malformed."""
    if not ID_PATTERN.fullmatch(value or ""):
        return INVALID_ID_NUM
    return int(value)


def is_valid_id(value: str) -> bool:
    return decode_id(value) != INVALID_ID_NUM


def next_id(value: str) -> str:
    """Return the id following ``value``; an invalid id restarts at the first id."""
    return encode_id(max(decode_id(value), 0) + 1)


def format_id(value: str, main_branch: str | None = None) -> str:
    """Canonicalize an id string.

    The main branch name passes through untouched, and so does anything that
    does not decode, so callers can still name it in diagnostics.
    """
    if main_branch and value == main_branch:
        return value
    number = decode_id(value)
    if number == INVALID_ID_NUM:
        return value
    return encode_id(number)
