"""Version parsing and bump resolution.

Handles conversion between version strings and semver objects, and
computes a package's next version from its current version, a bump level
and the prerelease state.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import semver

from .errors import VersionParseError
from .models import (
    BumpLevel,
    Changeset,
    PackageInfo,
    PrereleaseState,
    VersionBumpDecision,
)
from .prerelease import PrereleaseStore, advance
from .shell import warn


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a clean major.minor.patch semver.Version.

    Any prerelease (``-beta.1``) or build (``+abc``) suffix is stripped.
    Incomplete versions are padded with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3-rc.0" → "1.2.3"

    Raises:
        VersionParseError: If any component is not a number. There is no
            fallback to 0.0.0.
    """
    base = version_str.strip().split("+", 1)[0].split("-", 1)[0]
    parts = base.split(".")
    if not base or len(parts) > 3 or not all(p.isascii() and p.isdigit() for p in parts):
        raise VersionParseError(f"Invalid version: {version_str!r}")
    # Pad with zeros to ensure we have 3 parts
    while len(parts) < 3:
        parts.append("0")
    return semver.Version(*(int(p) for p in parts))


def apply_bump(version: semver.Version, bump: BumpLevel) -> semver.Version:
    """Increment ``version`` by ``bump``; NONE returns it unchanged."""
    if bump == BumpLevel.MAJOR:
        return version.bump_major()
    if bump == BumpLevel.MINOR:
        return version.bump_minor()
    if bump == BumpLevel.PATCH:
        return version.bump_patch()
    return version


def resolve_version(
    current: str,
    bump: BumpLevel | str,
    state: PrereleaseState | None = None,
    package: str | None = None,
) -> str | None:
    """Compute the next version string.

    Examples:
        resolve_version("1.4.2", "patch") → "1.4.3"
        resolve_version("1.4.2", "major") → "2.0.0"
        resolve_version("1.4.2", "none") → None

    In a prerelease window the base is computed from the version recorded
    at ``enter`` (falling back to ``current``) using the strongest bump
    seen for the package in the window, and suffixed ``-{tag}.{n}`` where
    ``n`` is the package's counter.

    Args:
        current: The package's current version.
        bump: Bump level to apply.
        state: Prerelease state; None or inactive means stable.
        package: Package name, needed to look up prerelease bookkeeping.

    Returns:
        The new version, or None when ``bump`` is NONE and the package
        should not be released.

    Raises:
        VersionParseError: If ``current`` (or the recorded baseline) is
            not a valid version.
    """
    bump = BumpLevel(bump)
    current_base = parse_version(current)
    if bump == BumpLevel.NONE:
        return None

    if state is None or not state.active:
        return str(apply_bump(current_base, bump))

    key = package or ""
    if key in state.initial_versions:
        baseline = parse_version(state.initial_versions[key])
    else:
        baseline = current_base
    window_bump = state.bumps.get(key, BumpLevel.NONE).join(bump)
    counter = state.counters.get(key, 0)
    return str(apply_bump(baseline, window_bump).replace(prerelease=f"{state.tag}.{counter}"))


class VersionResolver:
    """Resolve versions against the persisted prerelease state."""

    def __init__(self, store: PrereleaseStore) -> None:
        self.store = store

    def preview(self, package: str, current: str, bump: BumpLevel | str) -> str | None:
        """Next version without touching the prerelease counters."""
        return resolve_version(current, bump, self.store.read(), package)

    def resolve(self, package: str, current: str, bump: BumpLevel | str) -> str | None:
        """Next version, advancing the package's prerelease counter.

        Reading the counter and advancing it happen in one locked
        transition, so concurrent resolutions never reuse a number.
        """
        result: str | None = None

        def update(state: PrereleaseState) -> PrereleaseState | None:
            nonlocal result
            result = resolve_version(current, bump, state, package)
            if result is None:
                return None
            decision = VersionBumpDecision(
                package=package,
                path="",
                old_version=current,
                new_version=result,
                bump=BumpLevel(bump),
                prerelease=state.active,
            )
            return advance(state, [decision])

        self.store.transition(update)
        return result


def merge_bumps(changesets: Iterable[Changeset]) -> dict[str, tuple[BumpLevel, list[str]]]:
    """Join bumps across changesets.

    Returns:
        Map of package name → (strongest bump, keys of the changesets that
        mention the package), in package name order.
    """
    merged: dict[str, tuple[BumpLevel, list[str]]] = {}
    for changeset in changesets:
        for name, bump in changeset.bumps.items():
            level, keys = merged.get(name, (BumpLevel.NONE, []))
            merged[name] = (level.join(bump), [*keys, changeset.key])
    return dict(sorted(merged.items()))


def plan_releases(
    changesets: Iterable[Changeset],
    packages: Mapping[str, PackageInfo],
    state: PrereleaseState,
) -> list[VersionBumpDecision]:
    """Resolve pending changesets into version decisions without side effects.

    Packages named in a changeset but missing from the workspace are
    skipped with a warning.

    Raises:
        VersionParseError: If a package's current version is invalid.
    """
    decisions: list[VersionBumpDecision] = []
    for name, (bump, keys) in merge_bumps(changesets).items():
        pkg = packages.get(name)
        if pkg is None:
            warn(f"changeset references unknown package {name}; skipping")
            continue
        new_version = resolve_version(pkg.version, bump, state, name)
        if new_version is None:
            continue
        decisions.append(
            VersionBumpDecision(
                package=name,
                path=pkg.path,
                old_version=pkg.version,
                new_version=new_version,
                bump=bump,
                prerelease=state.active,
                changesets=keys,
            )
        )
    return decisions
