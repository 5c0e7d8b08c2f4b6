"""Mapping between issue identifiers and git branch names."""

from __future__ import annotations

from dataclasses import dataclass

from .constants import BRANCH_PREFIX, DEFAULT_MAIN_BRANCH
from .ids import INVALID_ID_NUM, decode_id, encode_id


@dataclass(frozen=True)
class BranchMapper:
    """Convert issue ids to branch names and back."""

    main_branch: str = DEFAULT_MAIN_BRANCH
    prefix: str = BRANCH_PREFIX

    def to_branch(self, issue_id: str) -> str:
        """Return the branch for an id, or ``""`` when the id does not decode."""
        if issue_id == self.main_branch:
            return issue_id
        number = decode_id(issue_id)
        if number == INVALID_ID_NUM:
            return ""
        return self.prefix + encode_id(number)

    def to_id(self, branch: str) -> str:
        """Return the id for a branch, or ``""`` for a foreign branch."""
        if branch == self.main_branch:
            return branch
        if branch.startswith(self.prefix):
            return branch[len(self.prefix):]
        return ""

    def is_main(self, issue_id: str) -> bool:
        return issue_id == self.main_branch

    def is_issue_branch(self, branch: str) -> bool:
        """Return whether a branch name is an issue branch in canonical form."""
        if not branch.startswith(self.prefix):
            return False
        suffix = branch[len(self.prefix):]
        number = decode_id(suffix)
        return number != INVALID_ID_NUM and encode_id(number) == suffix
