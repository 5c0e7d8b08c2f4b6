"""Working-copy record file access."""

from __future__ import annotations

import logging
from pathlib import Path

from .constants import ISSUE_FILE_NAME
from .errors import ErrorCode, GitItError
from .file_manager import FileManager
from .record import Record, default_record, parse_record, read_value

logger = logging.getLogger(__name__)


class RecordStore:
    """Read and write the record file checked out in the working directory."""

    def __init__(
        self,
        root: Path,
        file_manager: FileManager | None = None,
        filename: str = ISSUE_FILE_NAME,
    ) -> None:
        self.root = root
        self.filename = filename
        self.file_manager = file_manager or FileManager()

    @property
    def path(self) -> Path:
        return self.root / self.filename

    @staticmethod
    def read_field(record_text: str, key: str) -> str | None:
        return read_value(record_text, key)

    def read_working_text(self) -> str:
        return self.file_manager.read_text(self.path)

    def read_working_record(self) -> Record:
        return parse_record(self.read_working_text())

    def write_record(self, record: Record) -> None:
        self.file_manager.write_text(self.path, record.to_text())

    def write_default_record(self) -> None:
        self.write_record(default_record())

    def write_field(self, key: str, value: str) -> Record:
        """Set an existing field of the working record and rewrite the file."""
        record = self.read_working_record()
        if not record.set(key, value):
            raise GitItError(
                ErrorCode.FIELD_NOT_FOUND,
                f"Field '{key}' does not exist in the issue record",
                f"Use one of: {', '.join(record.keys())}, or add the field with `it edit`.",
                {"key": key, "available_keys": record.keys()},
            )
        self.write_record(record)
        logger.debug("Set field %s in %s", key, self.path)
        return record
