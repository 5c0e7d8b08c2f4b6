"""Git command execution for the issue tracker."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Protocol

from .errors import ErrorCode, GitItError

logger = logging.getLogger(__name__)

HEADS_PREFIX = "refs/heads/"


class Repository(Protocol):
    """Capabilities the tracker needs from version control.

    Checkout state belongs to the repository, so implementations must answer
    every query from the repository itself rather than from cached values.
    """

    root: Path

    def exists(self) -> bool: ...

    def git_dir(self) -> Path: ...

    def init(self, initial_branch: str) -> None: ...

    def current_branch(self) -> str: ...

    def branches(self, prefix: str = "") -> list[str]: ...

    def branch_exists(self, branch: str) -> bool: ...

    def checkout(self, branch: str) -> None: ...

    def create_branch(self, branch: str, start_point: str) -> None: ...

    def add(self, *paths: str) -> None: ...

    def commit(self, message: str) -> None: ...

    def reset_hard(self) -> None: ...

    def is_dirty(self) -> bool: ...

    def has_staged_changes(self) -> bool: ...

    def show_file(self, rev: str, path: str) -> str: ...

    def blame(self, rev: str, path: str) -> str: ...


class GitRepository:
    """`Repository` implementation backed by the ``git`` executable."""

    def __init__(self, root: Path, executable: str = "git") -> None:
        self.root = root
        self.executable = executable

    def run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        command = [self.executable, *args]
        logger.debug("git %s (cwd=%s)", " ".join(args), self.root)
        try:
            proc = subprocess.run(
                command,
                cwd=self.root,
                text=True,
                capture_output=True,
            )
        except FileNotFoundError as exc:
            if not self.root.is_dir():
                raise GitItError(
                    ErrorCode.REPO_NOT_FOUND,
                    f"Directory does not exist: {self.root}",
                    "Pass an existing directory.",
                    {"directory": str(self.root)},
                ) from exc
            raise GitItError(
                ErrorCode.CONFIG_MISSING,
                f"'{self.executable}' executable not found",
                "Install git and make sure it is on PATH.",
                {"command": command},
            ) from exc

        if check and proc.returncode != 0:
            raise self._command_error(command, proc)
        return proc

    def _command_error(
        self, command: list[str], proc: subprocess.CompletedProcess[str]
    ) -> GitItError:
        detail = proc.stderr.strip() or proc.stdout.strip() or "command failed"
        logger.debug("%s failed (%s): %s", " ".join(command), proc.returncode, detail)
        return GitItError(
            ErrorCode.GIT_COMMAND_FAILED,
            f"git {command[1]} failed: {detail.splitlines()[0]}",
            "Inspect the repository state with `git status`.",
            {
                "command": command,
                "returncode": proc.returncode,
                "stderr": proc.stderr.strip(),
            },
        )

    def exists(self) -> bool:
        if not self.root.is_dir():
            return False
        return self.run("rev-parse", "--git-dir", check=False).returncode == 0

    def git_dir(self) -> Path:
        output = self.run("rev-parse", "--git-dir").stdout.strip()
        path = Path(output)
        if not path.is_absolute():
            path = self.root / path
        return path

    def init(self, initial_branch: str) -> None:
        self.run("init", f"--initial-branch={initial_branch}")

    def current_branch(self) -> str:
        """Return the checked-out branch, or ``HEAD`` when detached."""
        return self.run("rev-parse", "--abbrev-ref", "HEAD").stdout.strip()

    def branches(self, prefix: str = "") -> list[str]:
        output = self.run(
            "for-each-ref",
            "--format=%(refname)",
            HEADS_PREFIX + prefix,
        ).stdout
        names: list[str] = []
        for line in output.splitlines():
            ref = line.strip()
            if ref.startswith(HEADS_PREFIX):
                names.append(ref[len(HEADS_PREFIX):])
        return names

    def branch_exists(self, branch: str) -> bool:
        if not branch:
            return False
        proc = self.run("show-ref", "--verify", "--quiet", HEADS_PREFIX + branch, check=False)
        return proc.returncode == 0

    def checkout(self, branch: str) -> None:
        self.run("checkout", branch)

    def create_branch(self, branch: str, start_point: str) -> None:
        self.run("checkout", "-b", branch, start_point)

    def add(self, *paths: str) -> None:
        self.run("add", "--", *paths)

    def commit(self, message: str) -> None:
        self.run("commit", "-m", message)

    def reset_hard(self) -> None:
        self.run("reset", "--hard")

    def is_dirty(self) -> bool:
        output = self.run("status", "--porcelain", "--untracked-files=no").stdout
        return bool(output.strip())

    def has_staged_changes(self) -> bool:
        proc = self.run("diff", "--cached", "--quiet", check=False)
        if proc.returncode not in (0, 1):
            raise self._command_error(proc.args, proc)
        return proc.returncode == 1

    def show_file(self, rev: str, path: str) -> str:
        return self.run("show", f"{rev}:{path}").stdout

    def blame(self, rev: str, path: str) -> str:
        return self.run("blame", rev, "--", path).stdout
