"""Version control port and its git implementation."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Protocol

from .commits import LOG_FORMAT, parse_log
from .errors import ExternalToolError, NothingToCommit
from .models import Commit
from .shell import DEFAULT_TIMEOUT, git

_ISSUE_KEY = re.compile(r"([A-Z]+-\d+)", re.IGNORECASE)


def extract_issue_key(branch: str) -> str | None:
    """Issue key from a branch name such as ``jane/PROJ-123-dark-mode``.

    Returns the key upper-cased, or None if the branch carries none.
    """
    match = _ISSUE_KEY.search(branch)
    return match.group(1).upper() if match else None


class VersionControlPort(Protocol):
    """Everything the release flows need from version control."""

    def current_branch(self) -> str: ...

    def changed_files(self, base: str) -> list[str]: ...

    def commits_since(self, base: str) -> list[Commit]: ...

    def tag_exists(self, tag: str) -> bool: ...

    def create_tag(self, tag: str) -> bool: ...

    def commit_all(self, message: str) -> None: ...

    def push(self, remote: str) -> None: ...


class GitVersionControl:
    """VersionControlPort backed by the git CLI.

    Every command runs in ``root`` with the configured timeout.
    """

    def __init__(self, root: Path, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.root = Path(root)
        self.timeout = timeout

    def _git(self, *args: str, check: bool = True) -> str:
        return git(*args, cwd=self.root, check=check, timeout=self.timeout)

    def current_branch(self) -> str:
        """Branch checked out at HEAD, or "unknown" when detached."""
        try:
            return self._git("symbolic-ref", "--short", "HEAD")
        except ExternalToolError:
            return "unknown"

    def merge_base(self, base: str) -> str:
        """Merge base of ``base`` and HEAD; ``base`` itself if git finds none."""
        found = self._git("merge-base", base, "HEAD", check=False)
        return found or base

    def changed_files(self, base: str) -> list[str]:
        """Files changed on this branch since it forked from ``base``."""
        output = self._git("diff", "--name-only", f"{self.merge_base(base)}...HEAD")
        return [line for line in output.splitlines() if line]

    def commits_since(self, base: str) -> list[Commit]:
        """Commits on this branch since it forked from ``base``, newest first."""
        output = self._git("log", f"{self.merge_base(base)}..HEAD", f"--format={LOG_FORMAT}")
        return parse_log(output)

    def tag_exists(self, tag: str) -> bool:
        result = git(
            "rev-parse", "--verify", "--quiet", f"refs/tags/{tag}",
            cwd=self.root, check=False, timeout=self.timeout,
        )
        return bool(result)

    def create_tag(self, tag: str) -> bool:
        """Create an annotated tag at HEAD.

        Returns:
            True if the tag was created, False if it already existed. An
            existing tag is never moved or recreated.
        """
        if self.tag_exists(tag):
            return False
        self._git("tag", "-a", tag, "-m", f"Release {tag}")
        return True

    def commit_all(self, message: str) -> None:
        """Stage every change and commit it.

        Raises:
            NothingToCommit: If the working tree had nothing to commit.
            ExternalToolError: For any other git failure.
        """
        self._git("add", "-A")
        try:
            self._git("commit", "-m", message)
        except ExternalToolError as exc:
            if "nothing to commit" in exc.stderr or "nothing added to commit" in exc.stderr:
                raise NothingToCommit(exc.command, exc.returncode, exc.stderr) from exc
            raise

    def push(self, remote: str = "origin") -> None:
        """Push the current branch and its annotated tags."""
        self._git("push", "--follow-tags", remote, "HEAD")
