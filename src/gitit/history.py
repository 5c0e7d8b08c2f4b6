"""Line-level history of issue records."""

from __future__ import annotations

from .query import IssueQuery


class HistoryReporter:
    """Report ``git blame`` for the record file on an issue branch."""

    def __init__(self, query: IssueQuery) -> None:
        self.query = query

    def blame(self, issue_id: str = "") -> tuple[str, str]:
        """Return ``(branch, annotated_text)``; an empty id means the main branch."""
        mapper = self.query.mapper
        if not issue_id or mapper.is_main(issue_id):
            branch = mapper.main_branch
        else:
            branch = self.query.require_branch(issue_id)
        text = self.query.repository.blame(branch, self.query.filename)
        return branch, text
