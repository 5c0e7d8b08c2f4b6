"""Text codec for issue records.

A record is an ordered list of fields. Short fields are written on one line
as ``key: value``. Long fields are written as ``key:`` followed by the text
indented by four spaces::

    summary: Crash on startup
    status: open
    description:
        Steps to reproduce:

        1. run it
"""

from __future__ import annotations

import textwrap
from dataclasses import dataclass, field
from enum import Enum

from .constants import LONG_TEXT_INDENT


class FieldKind(str, Enum):
    SHORT = "short"
    LONG = "long"


@dataclass
class RecordField:
    key: str
    value: str = ""
    kind: FieldKind = FieldKind.SHORT

    @property
    def is_block(self) -> bool:
        """Whether the field serializes as an indented block."""
        return self.kind == FieldKind.LONG or "\n" in self.value


DEFAULT_FIELDS: tuple[tuple[str, FieldKind], ...] = (
    ("summary", FieldKind.SHORT),
    ("type", FieldKind.SHORT),
    ("status", FieldKind.SHORT),
    ("assigned", FieldKind.SHORT),
    ("description", FieldKind.LONG),
)


@dataclass
class Record:
    """Ordered, key-addressable set of record fields."""

    fields: list[RecordField] = field(default_factory=list)

    def find(self, key: str) -> RecordField | None:
        for item in self.fields:
            if item.key == key:
                return item
        return None

    def get(self, key: str) -> str | None:
        item = self.find(key)
        if item is None:
            return None
        return item.value

    def has(self, key: str) -> bool:
        return self.find(key) is not None

    def set(self, key: str, value: str) -> bool:
        """Replace the value of an existing field; never adds a field."""
        item = self.find(key)
        if item is None:
            return False
        item.value = value
        if "\n" in value:
            item.kind = FieldKind.LONG
        return True

    def keys(self) -> list[str]:
        return [item.key for item in self.fields]

    def as_dict(self) -> dict[str, str]:
        values: dict[str, str] = {}
        for item in self.fields:
            values.setdefault(item.key, item.value)
        return values

    def to_text(self) -> str:
        lines: list[str] = []
        for item in self.fields:
            if item.is_block:
                lines.append(f"{item.key}:")
                if not item.value:
                    continue
                for text_line in item.value.split("\n"):
                    lines.append(f"{LONG_TEXT_INDENT}{text_line}" if text_line.strip() else "")
            elif item.value:
                lines.append(f"{item.key}: {item.value}")
            else:
                lines.append(f"{item.key}:")
        return "\n".join(lines) + "\n" if lines else ""


def default_record() -> Record:
    """Return the empty record every new issue starts from."""
    return Record([RecordField(key, "", kind) for key, kind in DEFAULT_FIELDS])


def parse_record(text: str) -> Record:
    """Parse record text.

    Lines at column 0 without a colon, and ``#`` comment lines, are ignored.
    Indented lines belong to the preceding field and turn it into a long field.
    """
    record = Record()
    current: RecordField | None = None
    block: list[str] = []

    def _flush() -> None:
        if current is None or not block:
            return
        while block and not block[-1].strip():
            block.pop()
        if not block:
            return
        body = textwrap.dedent("\n".join(block))
        current.value = f"{current.value}\n{body}" if current.value else body
        current.kind = FieldKind.LONG

    for line in text.splitlines():
        if line[:1] in (" ", "\t"):
            if current is not None:
                block.append(line)
            continue
        if not line.strip():
            if current is not None and block:
                block.append("")
            continue
        if line.startswith("#") or ":" not in line:
            continue

        _flush()
        block = []
        key, _, value = line.partition(":")
        current = RecordField(key.strip(), value.strip())
        record.fields.append(current)

    _flush()
    return record


def read_value(text: str, key: str) -> str | None:
    """Return the value of ``key`` in record text, or ``None`` when absent."""
    return parse_record(text).get(key)
