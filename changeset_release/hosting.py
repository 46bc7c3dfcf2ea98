"""Hosting port and its GitHub (gh CLI) implementation."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from .errors import AuthUnavailable, ExternalToolError
from .shell import DEFAULT_TIMEOUT, gh


class HostingPort(Protocol):
    """Create hosted releases for pushed tags."""

    def is_authenticated(self) -> bool: ...

    def create_release(self, tag: str, title: str, body: str, prerelease: bool) -> str: ...

    def release_exists(self, tag: str) -> bool: ...


class GitHubHosting:
    """HostingPort backed by the ``gh`` CLI, run inside the repository."""

    def __init__(self, root: Path, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.root = Path(root)
        self.timeout = timeout

    def is_authenticated(self) -> bool:
        try:
            gh("auth", "status", cwd=self.root, timeout=self.timeout)
        except ExternalToolError:
            return False
        return True

    def release_exists(self, tag: str) -> bool:
        try:
            gh("release", "view", tag, cwd=self.root, timeout=self.timeout)
        except ExternalToolError:
            return False
        return True

    def create_release(self, tag: str, title: str, body: str, prerelease: bool = False) -> str:
        """Create a release for an existing tag.

        Returns:
            The release URL printed by gh.

        Raises:
            AuthUnavailable: If gh is not logged in.
            ExternalToolError: If gh fails or times out.
        """
        if not self.is_authenticated():
            raise AuthUnavailable("gh CLI not authenticated. Run: gh auth login")

        args = ["release", "create", tag, "--verify-tag", "--title", title, "--notes", body]
        if prerelease:
            args.append("--prerelease")
        return gh(*args, cwd=self.root, timeout=self.timeout)
