"""Reduce a package's attributed commits to a single bump level."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence

from .commits import effective_bump
from .models import Attribution, BumpLevel, ConventionalCommit, PackageBump, join_all

FALLBACK_REASON = "changes detected"
INTERNAL_REASON = "internal changes only"

# Checked in order; the first matching rule names the reason.
_REASON_RULES: list[tuple[Callable[[ConventionalCommit], bool], str]] = [
    (lambda c: c.breaking, "breaking change detected"),
    (lambda c: c.type == "feat", "feat commit detected"),
    (lambda c: c.type == "fix", "fix commit detected"),
    (lambda c: c.type == "perf", "perf commit detected"),
    (lambda c: c.type == "refactor", "refactor commit detected"),
]


def bump_reason(commits: Sequence[ConventionalCommit]) -> str:
    """Deterministic provenance for an aggregate bump, or "" if none applies."""
    for matches, reason in _REASON_RULES:
        if any(matches(c) for c in commits):
            return reason
    return ""


def aggregate(
    attributions: Mapping[str, Attribution], *, include_internal: bool = False
) -> dict[str, PackageBump]:
    """Compute one bump per package.

    Bump-irrelevant commits (chore, docs, ...) do not take part in the
    reduction but are kept in ``PackageBump.commits`` for the changelog.
    Fallback attributions always bump at least ``patch`` and report
    "changes detected".

    Args:
        attributions: Output of ScopeResolver.attribute().
        include_internal: Keep packages whose commits are all irrelevant,
            with bump NONE, instead of omitting them.

    Returns:
        Map of package name to PackageBump.
    """
    result: dict[str, PackageBump] = {}
    for name, attribution in attributions.items():
        relevant = [
            c for c in attribution.commits if effective_bump(c) != BumpLevel.NONE
        ]
        if not relevant:
            if include_internal:
                result[name] = PackageBump(
                    package=name,
                    bump=BumpLevel.NONE,
                    reason=INTERNAL_REASON,
                    commits=attribution.commits,
                )
            continue

        if attribution.fallback:
            bump = BumpLevel.PATCH
            reason = FALLBACK_REASON
        else:
            bump = join_all(effective_bump(c) for c in relevant)
            reason = bump_reason(relevant)

        result[name] = PackageBump(
            package=name,
            bump=bump,
            reason=reason,
            commits=attribution.commits,
            relevant_commits=relevant,
        )
    return result
