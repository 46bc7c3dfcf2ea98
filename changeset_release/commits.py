"""Conventional commit classification.

Parses a single commit subject into a ConventionalCommit or an
UnparseableCommit. The grammar is ``type(scope)?!?: description``;
anything that does not match exactly is unparseable, never guessed.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import (
    BumpLevel,
    Commit,
    ConventionalCommit,
    UnparseableCommit,
)

# Commit types that carry a user-facing change
USER_FACING_TYPES = frozenset({"feat", "fix", "perf", "refactor"})
# Commit types that never need a changeset
INTERNAL_TYPES = frozenset({"chore", "docs", "test", "ci", "build", "style"})

TYPE_BUMPS: dict[str, BumpLevel] = {
    "feat": BumpLevel.MINOR,
    "fix": BumpLevel.PATCH,
    "perf": BumpLevel.PATCH,
    "refactor": BumpLevel.PATCH,
}

# Record separators used with `git log --format`
LOG_FORMAT = "%H|||%s|||%b<<<END>>>"
_FIELD_SEP = "|||"
_RECORD_SEP = "<<<END>>>"


def _is_type_char(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch == "_")


def classify(subject: str, hash: str = "") -> Commit:
    """Classify a commit subject line.

    The subject is scanned left to right: a bare identifier for the type,
    an optional non-empty ``(scope)``, an optional ``!``, optional
    whitespace, a colon, then a non-empty description.

    Args:
        subject: The commit subject (first line of the message).
        hash: Commit SHA to carry along, if known.

    Returns:
        A ConventionalCommit when the grammar matches, otherwise an
        UnparseableCommit wrapping the raw subject.

    Examples:
        "feat(ui): add button" → type="feat", scope="ui"
        "fix!: drop py38" → type="fix", breaking=True
        "Merge branch 'main'" → UnparseableCommit
    """
    text = subject.strip()
    unparseable = UnparseableCommit(hash=hash, raw=subject)
    n = len(text)

    i = 0
    while i < n and _is_type_char(text[i]):
        i += 1
    if i == 0:
        return unparseable
    commit_type = text[:i]

    scope: str | None = None
    if i < n and text[i] == "(":
        close = text.find(")", i + 1)
        if close == -1 or close == i + 1:
            return unparseable
        scope = text[i + 1 : close]
        i = close + 1

    breaking = False
    if i < n and text[i] == "!":
        breaking = True
        i += 1

    while i < n and text[i].isspace():
        i += 1
    if i >= n or text[i] != ":":
        return unparseable

    description = text[i + 1 :].strip()
    if not description:
        return unparseable

    return ConventionalCommit(
        hash=hash,
        type=commit_type.lower(),
        scope=scope,
        breaking=breaking,
        description=description,
        raw=subject,
    )


def effective_bump(commit: Commit) -> BumpLevel:
    """Bump implied by a single commit.

    The type table is consulted first, then a breaking marker overrides
    the result to MAJOR regardless of type. Unparseable commits never
    bump anything.
    """
    if not isinstance(commit, ConventionalCommit):
        return BumpLevel.NONE
    if commit.breaking:
        return BumpLevel.MAJOR
    return TYPE_BUMPS.get(commit.type, BumpLevel.NONE)


def is_user_facing(commit_type: str) -> bool:
    return commit_type.lower() in USER_FACING_TYPES


def all_internal(commits: Iterable[ConventionalCommit]) -> bool:
    """True when every commit has an internal-only type."""
    return all(c.type in INTERNAL_TYPES for c in commits)


def parse_log(output: str) -> list[Commit]:
    """Parse ``git log --format=LOG_FORMAT`` output into commits.

    Bodies are attached to conventional commits; unparseable subjects are
    kept so summaries can still show them.
    """
    commits: list[Commit] = []
    for entry in output.split(_RECORD_SEP):
        entry = entry.strip()
        if not entry:
            continue
        parts = entry.split(_FIELD_SEP)
        if len(parts) < 2:
            continue
        sha, subject = parts[0].strip(), parts[1].strip()
        body = parts[2].strip() if len(parts) > 2 else ""
        commit = classify(subject, sha)
        if isinstance(commit, ConventionalCommit) and body:
            commit = commit.model_copy(update={"body": body})
        commits.append(commit)
    return commits


def conventional_only(commits: Iterable[Commit]) -> list[ConventionalCommit]:
    return [c for c in commits if isinstance(c, ConventionalCommit)]
