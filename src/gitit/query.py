"""Read-only queries over issue branches.

Records are read from each branch's latest commit with ``git show``; nothing
here checks out a branch or touches the working copy.
"""

from __future__ import annotations

import logging

from .branches import BranchMapper
from .constants import ISSUE_FILE_NAME
from .errors import ErrorCode, GitItError
from .git import Repository
from .ids import decode_id, encode_id, format_id
from .models import IssueSummary
from .record import Record, parse_record

logger = logging.getLogger(__name__)


class IssueQuery:
    """Enumerate issues and answer field queries across branches."""

    def __init__(
        self,
        repository: Repository,
        mapper: BranchMapper,
        filename: str = ISSUE_FILE_NAME,
    ) -> None:
        self.repository = repository
        self.mapper = mapper
        self.filename = filename

    def all_issue_ids(self) -> list[str]:
        """Return every issue id exactly once, ordered by number."""
        ids = {
            self.mapper.to_id(branch)
            for branch in self.repository.branches(self.mapper.prefix)
            if self.mapper.is_issue_branch(branch)
        }
        return sorted(ids, key=decode_id)

    def max_id(self) -> str:
        numbers = [decode_id(issue_id) for issue_id in self.all_issue_ids()]
        return encode_id(max(numbers, default=0))

    def issue_exists(self, issue_id: str) -> bool:
        branch = self.mapper.to_branch(issue_id)
        return bool(branch) and self.repository.branch_exists(branch)

    def require_branch(self, issue_id: str) -> str:
        """Return the branch for an id, failing when it is invalid or missing."""
        branch = self.mapper.to_branch(issue_id)
        if not branch:
            raise GitItError(
                ErrorCode.INVALID_ID,
                f"'{issue_id}' is not a valid issue id",
                "Issue ids are non-negative numbers such as 0001 or 1.",
                {"issue_id": issue_id},
            )
        if not self.issue_exists(issue_id):
            canonical = format_id(issue_id, self.mapper.main_branch)
            raise GitItError(
                ErrorCode.ISSUE_NOT_FOUND,
                f"{canonical} is not a valid issue",
                "List existing issues with `it ids`.",
                {"issue_id": canonical, "branch": branch},
            )
        return branch

    def issue_text(self, issue_id: str) -> str:
        branch = self.require_branch(issue_id)
        return self.repository.show_file(branch, self.filename)

    def record_of(self, issue_id: str) -> Record:
        return parse_record(self.issue_text(issue_id))

    def field_of(self, issue_id: str, key: str) -> str | None:
        return self.record_of(issue_id).get(key)

    def matching(self, key: str = "", value: str = "") -> list[str]:
        """Return ids whose committed record has ``key`` (equal to ``value`` if given)."""
        issue_ids = self.all_issue_ids()
        if not key:
            return issue_ids
        matches = [
            issue_id
            for issue_id in issue_ids
            if record_matches(self.record_of(issue_id), key, value)
        ]
        logger.debug("matching(%r, %r): %d of %d issues", key, value, len(matches), len(issue_ids))
        return matches

    def summaries(
        self,
        issue_ids: list[str],
        current_id: str = "",
        dirty: bool = False,
    ) -> list[IssueSummary]:
        rows: list[IssueSummary] = []
        for issue_id in issue_ids:
            rows.append(
                summarize(
                    issue_id,
                    self.record_of(issue_id),
                    current=issue_id == current_id,
                    dirty=dirty and issue_id == current_id,
                )
            )
        return rows


def record_matches(record: Record, key: str, value: str = "") -> bool:
    if not key:
        return True
    return any(
        item.key == key and (not value or item.value == value)
        for item in record.fields
    )


def summarize(issue_id: str, record: Record, current: bool = False, dirty: bool = False) -> IssueSummary:
    return IssueSummary(
        issue_id=issue_id,
        status=record.get("status") or "",
        priority=record.get("priority") or "",
        summary=record.get("summary") or "",
        current=current,
        dirty=dirty,
    )
