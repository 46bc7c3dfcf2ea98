"""Exception types raised by changeset-release.

Every error derives from ChangesetReleaseError so the CLI can catch the
whole family at one boundary and turn it into an exit code.
"""

from __future__ import annotations


class ChangesetReleaseError(Exception):
    """Base class for all changeset-release errors."""


class ParseError(ChangesetReleaseError):
    """A commit subject or changeset header could not be parsed.

    Always recovered locally (the entry is skipped), never fatal to a run.
    """


class VersionParseError(ChangesetReleaseError):
    """A version string is not a valid major.minor.patch version."""


class InvalidPrereleaseTag(ChangesetReleaseError):
    """A prerelease tag outside the allowed set was requested."""


class InvalidPrereleaseTransition(ChangesetReleaseError):
    """A prerelease transition is not valid from the current state."""


class ConfigError(ChangesetReleaseError):
    """The [tool.changeset-release] table is invalid."""


class ManifestError(ChangesetReleaseError):
    """A package manifest is missing or has no version to update."""


class ExternalToolError(ChangesetReleaseError):
    """An external command (git, gh, uv) failed or timed out.

    Attributes:
        command: The argv that was executed.
        returncode: Exit status, or None when the command timed out.
        stderr: The tool's error output (or stdout if stderr was empty).
    """

    def __init__(
        self,
        command: list[str] | tuple[str, ...],
        returncode: int | None,
        stderr: str = "",
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr.strip()
        if returncode is None:
            reason = "timed out"
        else:
            reason = f"exited with {returncode}"
        message = f"`{' '.join(self.command)}` {reason}"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)


class NothingToCommit(ExternalToolError):
    """git reported "nothing to commit"; treated as a successful no-op."""


class AuthUnavailable(ChangesetReleaseError):
    """The hosting tool is not authenticated."""
