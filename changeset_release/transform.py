"""Commit description to changelog wording.

Turns imperative commit descriptions ("add retry logic") into past-tense
changelog lines ("Added retry logic") and combines several of them into a
single collapsed line or a bullet list.
"""

from __future__ import annotations

import re
import unicodedata
from collections import Counter
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from .models import ConventionalCommit

SummaryFormat = Literal["collapsed", "bullets"]

# Gitmoji shortcodes such as ":sparkles:"
_SHORTCODE = re.compile(r"^:[a-z0-9_+-]+:\s*")
_MARKER_CATEGORIES = {"So", "Sk", "Cs", "Mn", "Cf"}

VERB_MAP: dict[str, str] = {
    "add": "Added",
    "fix": "Fixed",
    "update": "Updated",
    "remove": "Removed",
    "delete": "Deleted",
    "improve": "Improved",
    "refactor": "Refactored",
    "implement": "Implemented",
    "change": "Changed",
    "correct": "Corrected",
    "handle": "Added handling for",
    "support": "Added support for",
    "enable": "Enabled",
    "disable": "Disabled",
    "extract": "Extracted",
    "optimize": "Optimized",
    "simplify": "Simplified",
    "replace": "Replaced",
    "rename": "Renamed",
    "move": "Moved",
    "create": "Created",
    "introduce": "Introduced",
    "integrate": "Integrated",
    "migrate": "Migrated",
    "upgrade": "Upgraded",
    "downgrade": "Downgraded",
    "bump": "Bumped",
    "enhance": "Enhanced",
    "extend": "Extended",
    "clean": "Cleaned",
    "cleanup": "Cleaned up",
    "revert": "Reverted",
    "prevent": "Prevented",
    "allow": "Allowed",
    "ensure": "Ensured",
    "validate": "Validated",
    "normalize": "Normalized",
    "resolve": "Resolved",
    "reduce": "Reduced",
    "increase": "Increased",
    "decrease": "Decreased",
    "set": "Set",
    "use": "Used",
    "make": "Made",
    "get": "Got",
    "show": "Showed",
    "hide": "Hid",
    "expose": "Exposed",
    "configure": "Configured",
    "drop": "Dropped",
    "deprecate": "Deprecated",
    "wrap": "Wrapped",
    "unwrap": "Unwrapped",
}

# Past-tense spellings map to the same wording as their base verb.
_PAST_FORMS = {
    "added": "add",
    "fixed": "fix",
    "updated": "update",
    "removed": "remove",
    "deleted": "delete",
    "improved": "improve",
    "refactored": "refactor",
    "implemented": "implement",
    "changed": "change",
    "corrected": "correct",
    "handled": "handle",
    "supported": "support",
    "enabled": "enable",
    "disabled": "disable",
    "extracted": "extract",
    "optimized": "optimize",
    "simplified": "simplify",
    "replaced": "replace",
    "renamed": "rename",
    "moved": "move",
    "created": "create",
    "introduced": "introduce",
    "integrated": "integrate",
    "migrated": "migrate",
    "upgraded": "upgrade",
    "downgraded": "downgrade",
    "bumped": "bump",
    "enhanced": "enhance",
    "extended": "extend",
    "cleaned": "clean",
    "reverted": "revert",
    "prevented": "prevent",
    "allowed": "allow",
    "ensured": "ensure",
    "validated": "validate",
    "normalized": "normalize",
    "resolved": "resolve",
    "reduced": "reduce",
    "increased": "increase",
    "decreased": "decrease",
    "made": "make",
    "showed": "show",
    "hidden": "hide",
    "exposed": "expose",
    "configured": "configure",
    "dropped": "drop",
    "deprecated": "deprecate",
    "wrapped": "wrap",
    "unwrapped": "unwrap",
}


def strip_markers(text: str) -> str:
    """Remove leading emoji and gitmoji shortcodes from a description.

    Examples:
        "✨ add search" → "add search"
        ":bug: fix crash" → "fix crash"
        "plain text" → "plain text"
    """
    result = text.strip()
    while result:
        shortcode = _SHORTCODE.match(result)
        if shortcode:
            result = result[shortcode.end() :]
            continue
        first = result[0]
        if first.isascii() or unicodedata.category(first) not in _MARKER_CATEGORIES:
            break
        result = result[1:].lstrip()
    return result


def transform_verb(word: str) -> str:
    """Map an imperative verb to its changelog form, else capitalize it."""
    lower = word.lower()
    base = _PAST_FORMS.get(lower, lower)
    if base in VERB_MAP:
        return VERB_MAP[base]
    return word[:1].upper() + word[1:]


def transform_description(description: str) -> str:
    """Turn a commit description into a changelog-friendly sentence."""
    cleaned = strip_markers(description)
    if not cleaned:
        return ""
    words = cleaned.split()
    words[0] = transform_verb(words[0])
    return " ".join(words)


def combine_descriptions(
    descriptions: Iterable[str], fmt: SummaryFormat = "collapsed"
) -> str:
    """Combine descriptions, dropping blanks and duplicates.

    Collapsed output joins entries with "; ", bullets put each on a
    "- " line. A single entry is returned as-is in either format.
    """
    unique = list(dict.fromkeys(d for d in descriptions if d))
    if not unique:
        return ""
    if len(unique) == 1:
        return unique[0]
    if fmt == "bullets":
        return "\n".join(f"- {d}" for d in unique)
    return "; ".join(unique)


def transform_commits(
    commits: Sequence[ConventionalCommit], fmt: SummaryFormat = "collapsed"
) -> str:
    return combine_descriptions(
        (transform_description(c.description) for c in commits), fmt
    )


def are_commits_related(commits: Sequence[ConventionalCommit]) -> bool:
    """Heuristic deciding between a collapsed line and a bullet list.

    Commits count as related when there are at most two of them, when they
    share a scope or a type, or when some significant word (longer than
    four characters) shows up in at least half of the descriptions.
    """
    if len(commits) <= 2:
        return True

    scopes = {c.scope for c in commits if c.scope}
    if len(scopes) == 1:
        return True

    if len({c.type for c in commits}) == 1:
        return True

    counts = Counter(
        word
        for c in commits
        for word in c.description.lower().split()
        if len(word) > 4
    )
    threshold = len(commits) / 2
    return any(count >= threshold for count in counts.values())


def package_summary(
    package: str,
    commits: Sequence[ConventionalCommit],
    fmt: SummaryFormat = "collapsed",
) -> str:
    """Render the changeset body paragraph for one package."""
    return f"**{package}**\n{transform_commits(commits, fmt)}"
