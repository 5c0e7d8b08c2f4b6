from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from gitit.engine import IssueTracker
from gitit.errors import ErrorCode, GitItError

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")

GITIT_ENV_KEYS = (
    "GITIT_MAIN_BRANCH",
    "GITIT_REQUIRE_CLEAN",
    "GITIT_CLOSE_ON_SAVE",
    "GITIT_LOG_LEVEL",
    "EDITOR",
    "VISUAL",
)


def _git_failure(message: str) -> GitItError:
    return GitItError(ErrorCode.GIT_COMMAND_FAILED, message)


class FakeRepository:
    """In-memory stand-in for a git repository.

    Branch snapshots live in memory; the checked-out snapshot is written to
    the real directory so the record store can read and write it.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.initialized = False
        self.head = ""
        self.commits: dict[str, dict[str, str]] = {}
        self.index: dict[str, str] = {}
        self.log: list[tuple[str, str]] = []

    def exists(self) -> bool:
        return self.initialized

    def git_dir(self) -> Path:
        return self.root / ".git"

    def init(self, initial_branch: str) -> None:
        self.initialized = True
        self.head = initial_branch

    def current_branch(self) -> str:
        return self.head

    def branches(self, prefix: str = "") -> list[str]:
        return sorted(name for name in self.commits if name.startswith(prefix))

    def branch_exists(self, branch: str) -> bool:
        return branch in self.commits

    def checkout(self, branch: str) -> None:
        if branch not in self.commits:
            raise _git_failure(f"pathspec '{branch}' did not match")
        if branch == self.head:
            return
        if self.is_dirty():
            raise _git_failure("local changes would be overwritten by checkout")
        self.head = branch
        self.index = dict(self.commits[branch])
        self._materialize(self.index)

    def create_branch(self, branch: str, start_point: str) -> None:
        if branch in self.commits:
            raise _git_failure(f"a branch named '{branch}' already exists")
        if start_point not in self.commits:
            raise _git_failure(f"not a valid object name: '{start_point}'")
        self.commits[branch] = dict(self.commits[start_point])
        self.checkout(branch)

    def add(self, *paths: str) -> None:
        for path in paths:
            full = Path(path)
            if not full.is_absolute():
                full = self.root / path
            if not full.exists():
                raise _git_failure(f"pathspec '{path}' did not match any files")
            self.index[str(full.relative_to(self.root))] = full.read_text(encoding="utf-8")

    def commit(self, message: str) -> None:
        if not self.has_staged_changes():
            raise _git_failure("nothing to commit, working tree clean")
        self.commits[self.head] = dict(self.index)
        self.log.append((self.head, message))

    def reset_hard(self) -> None:
        self.index = dict(self.commits.get(self.head, {}))
        self._materialize(self.index)

    def is_dirty(self) -> bool:
        committed = self.commits.get(self.head, {})
        if self.index != committed:
            return True
        return any(self._working(path) != content for path, content in committed.items())

    def has_staged_changes(self) -> bool:
        return self.index != self.commits.get(self.head)

    def show_file(self, rev: str, path: str) -> str:
        snapshot = self.commits.get(rev)
        if snapshot is None or path not in snapshot:
            raise _git_failure(f"path '{path}' does not exist in '{rev}'")
        return snapshot[path]

    def blame(self, rev: str, path: str) -> str:
        text = self.show_file(rev, path)
        return "".join(
            f"{rev} {number:>3}) {line}\n" for number, line in enumerate(text.splitlines(), 1)
        )

    def _working(self, path: str) -> str | None:
        full = self.root / path
        if not full.exists():
            return None
        return full.read_text(encoding="utf-8")

    def _materialize(self, snapshot: dict[str, str]) -> None:
        for path, content in snapshot.items():
            (self.root / path).write_text(content, encoding="utf-8")


@pytest.fixture()
def fake_repo(tmp_path: Path) -> FakeRepository:
    return FakeRepository(tmp_path)


@pytest.fixture()
def tracker(tmp_path: Path, fake_repo: FakeRepository) -> IssueTracker:
    tracker = IssueTracker(tmp_path, repository=fake_repo, env={})
    tracker.initialize()
    return tracker


@pytest.fixture()
def git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate real git invocations from the user's configuration."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    for key in GITIT_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def repo_dir(tmp_path: Path, git_env: None) -> Path:
    directory = tmp_path / "issues"
    directory.mkdir()
    return directory
