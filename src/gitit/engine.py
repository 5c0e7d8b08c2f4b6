"""Issue lifecycle operations on top of a git repository."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .branches import BranchMapper
from .constants import (
    CONFIG_FILE_NAME,
    INIT_COMMIT_MESSAGE,
    SAVE_COMMIT_MESSAGE,
)
from .errors import ErrorCode, GitItError
from .file_manager import FileManager
from .git import GitRepository, Repository
from .history import HistoryReporter
from .ids import next_id
from .models import (
    AttachResponse,
    BlameResponse,
    CancelResponse,
    EditResponse,
    FilterRequest,
    InitResponse,
    IssueRecord,
    IssueResponse,
    ListResponse,
    SaveResponse,
    SetFieldRequest,
    SetFieldResponse,
    ShowRequest,
    ShowResponse,
    StatusResponse,
)
from .query import IssueQuery, summarize
from .record import parse_record
from .runtime import TrackerSettings, coerce_bool, get_tracker_settings
from .store import RecordStore

logger = logging.getLogger(__name__)

MUTABLE_CONFIG_KEYS = {"require_clean_checkout", "close_on_save", "editor"}
BOOLEAN_CONFIG_KEYS = {"require_clean_checkout", "close_on_save"}


class IssueTracker:
    """Main service implementing the issue lifecycle.

    The checked-out branch decides which issue is open. It is owned by the
    repository and re-read on every call.
    """

    def __init__(
        self,
        directory: str | Path = ".",
        repository: Repository | None = None,
        file_manager: FileManager | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.root = Path(directory).expanduser().resolve()
        self.repository = repository or GitRepository(self.root)
        self.file_manager = file_manager or FileManager()
        self.store = RecordStore(self.root, self.file_manager)
        self._env = env

    @property
    def mapper(self) -> BranchMapper:
        return BranchMapper(main_branch=self._settings().main_branch)

    @property
    def query(self) -> IssueQuery:
        return IssueQuery(self.repository, self.mapper, self.store.filename)

    @property
    def history(self) -> HistoryReporter:
        return HistoryReporter(self.query)

    def initialize(self) -> InitResponse:
        """Create the issue repository and commit the default record on main."""
        if not self.root.is_dir():
            raise GitItError(
                ErrorCode.INVALID_INPUT,
                f"Directory does not exist: {self.root}",
                "Create the directory first or pass an existing one.",
                {"directory": str(self.root)},
            )
        if self.repository.exists():
            raise GitItError(
                ErrorCode.REPO_ALREADY_EXISTS,
                f"A git repository already exists at {self.root}",
                "Run `it init` in an empty directory outside any repository.",
                {"directory": str(self.root)},
            )

        main_branch = self._settings().main_branch
        self.repository.init(main_branch)
        self.store.write_default_record()
        self.repository.add(self.store.filename)
        self.repository.commit(INIT_COMMIT_MESSAGE)
        logger.info("Initialized issue repository in %s", self.root)

        return InitResponse(
            status="success",
            message=f"Issue tracker initialized in {self.root}",
            directory=str(self.root),
            main_branch=main_branch,
            record_file=self.store.filename,
            fields=self.store.read_working_record().keys(),
        )

    def current_issue(self) -> str:
        """Return the open issue id, or ``""`` when no issue branch is checked out."""
        mapper = self.mapper
        branch = self.repository.current_branch()
        if not mapper.is_issue_branch(branch):
            return ""
        return mapper.to_id(branch)

    def is_dirty(self) -> bool:
        return self.repository.is_dirty()

    def new_issue(self) -> IssueResponse:
        """Create the next issue branch from main and check it out."""
        self._require_repo()
        settings = self._settings(with_file_config=True)
        mapper = BranchMapper(main_branch=settings.main_branch)
        previous = self.current_issue()
        issue_id = next_id(self.query.max_id())
        branch = mapper.to_branch(issue_id)
        self._require_clean(settings, action="create issue", target=issue_id)

        self.repository.create_branch(branch, settings.main_branch)
        logger.info("Created issue %s on branch %s", issue_id, branch)
        return IssueResponse(
            status="success",
            message=f"Created issue {issue_id}",
            issue_id=issue_id,
            branch=branch,
            previous_issue=previous,
        )

    def open_issue(self, issue_id: str) -> IssueResponse:
        """Check out an existing issue branch."""
        self._require_repo()
        settings = self._settings(with_file_config=True)
        mapper = BranchMapper(main_branch=settings.main_branch)
        if mapper.is_main(issue_id):
            raise GitItError(
                ErrorCode.INVALID_ID,
                f"'{issue_id}' is the main branch, not an issue",
                "Use `it close` or `it cancel` to return to the main branch.",
                {"issue_id": issue_id},
            )
        branch = self.query.require_branch(issue_id)
        canonical = mapper.to_id(branch)
        previous = self.current_issue()
        if previous == canonical:
            return IssueResponse(
                status="success",
                message=f"Issue {canonical} is already open",
                issue_id=canonical,
                branch=branch,
                previous_issue=previous,
            )

        self._require_clean(settings, action="open issue", target=canonical)
        self.repository.checkout(branch)
        logger.info("Opened issue %s", canonical)
        return IssueResponse(
            status="success",
            message=f"Opened issue {canonical}",
            issue_id=canonical,
            branch=branch,
            previous_issue=previous,
        )

    def save_issue(self) -> SaveResponse:
        """Commit the working record (and staged attachments) on the open issue."""
        self._require_repo()
        settings = self._settings(with_file_config=True)
        issue_id = self._require_open_issue("save")

        # A deleted record must never be committed onto an issue branch.
        self.store.read_working_text()
        self.repository.add(self.store.filename)
        committed = self.repository.has_staged_changes()
        if committed:
            self.repository.commit(SAVE_COMMIT_MESSAGE)
            logger.info("Saved issue %s", issue_id)
        else:
            logger.debug("Issue %s has no changes to save", issue_id)

        closed = False
        if settings.close_on_save:
            self.repository.checkout(settings.main_branch)
            closed = True

        message = f"Saved issue {issue_id}" if committed else f"No changes to save for issue {issue_id}"
        return SaveResponse(
            status="success",
            message=message,
            issue_id=issue_id,
            committed=committed,
            closed=closed,
            current_branch=self.repository.current_branch(),
        )

    def cancel(self) -> CancelResponse:
        """Discard uncommitted changes and return to the main branch."""
        self._require_repo()
        main_branch = self._settings().main_branch
        previous = self.current_issue()
        discarded = self.repository.is_dirty()

        self.repository.reset_hard()
        self.repository.checkout(main_branch)
        if discarded:
            logger.info("Discarded uncommitted changes on %s", previous or main_branch)

        target = f"issue {previous}" if previous else "working copy"
        return CancelResponse(
            status="success",
            message=f"Closed {target}" + (", discarding changes" if discarded else ""),
            previous_issue=previous,
            discarded=discarded,
            current_branch=main_branch,
        )

    def close_issue(self) -> SaveResponse:
        """Save pending changes, then return to the main branch."""
        saved = self.save_issue()
        if not saved.closed:
            self.cancel()
        return saved.model_copy(
            update={
                "message": f"Closed issue {saved.issue_id}",
                "closed": True,
                "current_branch": self._settings().main_branch,
            }
        )

    def attach(self, paths: list[str]) -> AttachResponse:
        """Stage files for the next save of the open issue."""
        if not paths:
            raise GitItError(
                ErrorCode.INVALID_INPUT,
                "No files to attach",
                "Pass one or more file paths.",
            )
        self._require_repo()
        issue_id = self._require_open_issue("attach files to")
        for path in paths:
            self.repository.add(path)
        logger.info("Attached %d file(s) to issue %s", len(paths), issue_id)
        return AttachResponse(
            status="success",
            message=f"Attached {len(paths)} file(s) to issue {issue_id}",
            issue_id=issue_id,
            files=list(paths),
        )

    def set_field(self, request: SetFieldRequest) -> SetFieldResponse:
        """Set an existing field in the open issue's working record."""
        self._require_repo()
        issue_id = self._require_open_issue("set a field on")
        self.store.write_field(request.key, request.value)
        return SetFieldResponse(
            status="success",
            message=f"Set {request.key} on issue {issue_id}",
            issue_id=issue_id,
            key=request.key,
            value=request.value,
        )

    def get_status(self) -> StatusResponse:
        """Return the open issue, its working-copy summary and dirty state."""
        self._require_repo()
        branch = self.repository.current_branch()
        issue_id = self.current_issue()
        dirty = self.repository.is_dirty()
        issue = None
        if issue_id:
            record = self.store.read_working_record()
            issue = summarize(issue_id, record, current=True, dirty=dirty)
            message = f"Issue {issue_id} is open"
        else:
            message = "No issue is open"
        return StatusResponse(
            status="success",
            message=message,
            current_issue=issue_id,
            current_branch=branch,
            dirty=dirty,
            issue=issue,
        )

    def list_issues(self, request: FilterRequest | None = None) -> ListResponse:
        """List issues whose committed record matches a key/value filter."""
        self._require_repo()
        request = request or FilterRequest()
        query = self.query
        issue_ids = query.matching(request.key, request.value)
        current = self.current_issue()
        dirty = bool(current) and self.repository.is_dirty()
        issues = query.summaries(issue_ids, current_id=current, dirty=dirty)
        return ListResponse(
            status="success",
            message="Issues listed",
            key=request.key,
            value=request.value,
            count=len(issues),
            issues=issues,
        )

    def issue_ids(self, request: FilterRequest | None = None) -> list[str]:
        self._require_repo()
        request = request or FilterRequest()
        return self.query.matching(request.key, request.value)

    def show(self, request: ShowRequest | None = None) -> ShowResponse:
        """Return records for the given ids.

        No ids means the open issue, ``all`` means every issue. The open issue
        is read from the working copy so unsaved edits are visible.
        """
        self._require_repo()
        request = request or ShowRequest()
        query = self.query
        mapper = query.mapper
        current = self.current_issue()

        if not request.ids:
            if not current:
                raise self._no_open_issue("show")
            issue_ids = [current]
        elif "all" in request.ids:
            issue_ids = query.all_issue_ids()
        else:
            issue_ids = [mapper.to_id(query.require_branch(issue_id)) for issue_id in request.ids]

        records: list[IssueRecord] = []
        for issue_id in issue_ids:
            working_copy = issue_id == current
            if working_copy:
                text = self.store.read_working_text()
            else:
                text = query.issue_text(issue_id)
            records.append(
                IssueRecord(
                    issue_id=issue_id,
                    fields=parse_record(text).as_dict(),
                    text=text,
                    working_copy=working_copy,
                )
            )
        return ShowResponse(
            status="success",
            message=f"Showing {len(records)} issue(s)",
            count=len(records),
            issues=records,
        )

    def blame(self, issue_id: str = "") -> BlameResponse:
        """Return ``git blame`` of the record; defaults to the open issue."""
        self._require_repo()
        target = issue_id or self.current_issue()
        branch, text = self.history.blame(target)
        return BlameResponse(
            status="success",
            message=f"Blame for {branch}",
            issue_id=self.mapper.to_id(branch),
            branch=branch,
            text=text,
        )

    def prepare_edit(self, issue_id: str = "") -> EditResponse:
        """Make the target issue current and return its record path."""
        self._require_repo()
        current = self.current_issue()
        if not issue_id:
            if not current:
                raise self._no_open_issue("edit")
            target = current
        else:
            target = self.open_issue(issue_id).issue_id
        return EditResponse(
            status="success",
            message=f"Editing issue {target}",
            issue_id=target,
            path=str(self.store.path),
            opened=target != current,
        )

    def get_config(self) -> dict[str, Any]:
        """Return the repository's tracker config file contents."""
        self._require_repo()
        return self._read_config()

    def effective_settings(self) -> TrackerSettings:
        self._require_repo()
        return self._settings(with_file_config=True)

    def set_config(self, key: str, value: Any) -> dict[str, Any]:
        """Set a mutable config key and persist it."""
        self._require_repo()
        if key not in MUTABLE_CONFIG_KEYS:
            raise GitItError(
                ErrorCode.INVALID_INPUT,
                f"Unsupported config key '{key}'",
                f"Use one of: {', '.join(sorted(MUTABLE_CONFIG_KEYS))}",
                {"key": key},
            )
        if key in BOOLEAN_CONFIG_KEYS:
            try:
                value = coerce_bool(value)
            except ValueError as exc:
                raise GitItError(
                    ErrorCode.INVALID_INPUT,
                    f"Config key '{key}' requires a boolean value",
                    "Use true or false.",
                    {"key": key},
                ) from exc
        else:
            value = str(value)

        config = self._read_config()
        config[key] = value
        self.file_manager.write_yaml(self._config_path(), config)
        logger.info("Config %s set to %r", key, value)
        return config

    def _settings(self, with_file_config: bool = False) -> TrackerSettings:
        file_config = self._read_config() if with_file_config else None
        try:
            return get_tracker_settings(self._env, file_config)
        except ValueError as exc:
            raise GitItError(
                ErrorCode.INVALID_INPUT,
                str(exc),
                "Fix the environment variable or `it config` value and retry.",
            ) from exc

    def _config_path(self) -> Path:
        return self.repository.git_dir() / CONFIG_FILE_NAME

    def _read_config(self) -> dict[str, Any]:
        return self.file_manager.read_yaml(self._config_path())

    def _require_repo(self) -> None:
        if not self.repository.exists():
            raise GitItError(
                ErrorCode.REPO_NOT_FOUND,
                "Issue tracker repository not found",
                "Run `it init` to create one, or pass --directory.",
                {"directory": str(self.root)},
            )

    def _require_open_issue(self, action: str) -> str:
        issue_id = self.current_issue()
        if not issue_id:
            raise self._no_open_issue(action)
        return issue_id

    def _no_open_issue(self, action: str) -> GitItError:
        return GitItError(
            ErrorCode.NO_OPEN_ISSUE,
            f"No issue is open to {action}",
            "Open one with `it open <id>` or create one with `it new`.",
            {"current_branch": self.repository.current_branch()},
        )

    def _require_clean(self, settings: TrackerSettings, action: str, target: str) -> None:
        if not settings.require_clean_checkout:
            return
        if not self.repository.is_dirty():
            return
        current = self.current_issue() or settings.main_branch
        raise GitItError(
            ErrorCode.DIRTY_WORKING_TREE,
            f"Cannot {action} {target}: {current} has uncommitted changes",
            "Run `it save` to keep them or `it cancel` to discard them.",
            {"issue_id": target, "current": current},
        )

