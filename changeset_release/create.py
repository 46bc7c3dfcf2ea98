"""Changeset creation: analyze the branch, then write one changeset file.

The analysis reads the current branch, its commits and changed files since
the base branch, attributes commits to packages and suggests a bump, a
summary and a summary format for each. Writing the changeset applies any
overrides given on the command line.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .bumps import aggregate
from .changesets import DEFAULT_KEY, INTERNAL_BODY, ChangesetStore
from .commits import all_internal, conventional_only
from .config import ReleaseConfig
from .models import BumpLevel, PackageInfo
from .scope import ScopeResolver
from .shell import warn
from .transform import SummaryFormat, are_commits_related, package_summary
from .vcs import VersionControlPort, extract_issue_key
from .workspace import discover_packages

_OVERRIDE_BUMPS = {BumpLevel.MAJOR, BumpLevel.MINOR, BumpLevel.PATCH}


class PackageAnalysis(BaseModel):
    """Suggested changeset entry for one package."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    path: str
    scope: str
    current_version: str = Field(alias="currentVersion")
    suggested_bump: BumpLevel = Field(alias="suggestedBump")
    reason: str
    commits: list[str] = Field(default_factory=list)
    summary: str = Field(alias="codeTransform")
    bullet_summary: str = Field(default="", exclude=True)
    suggested_format: SummaryFormat = Field(alias="suggestedFormat")


class ChangesetAnalysis(BaseModel):
    """Everything ``create`` knows before writing; printed by --dry-run."""

    model_config = ConfigDict(populate_by_name=True)

    branch: str
    issue_key: str | None = Field(default=None, alias="issueKey")
    packages: list[PackageAnalysis] = Field(default_factory=list)
    changeset_file: str = Field(alias="changesetFile")
    no_changeset_needed: bool = Field(alias="noChangesetNeeded")

    @property
    def key(self) -> str:
        return Path(self.changeset_file).stem

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


class CreateResult(BaseModel):
    """What ``create_changeset`` did."""

    path: Path | None = None
    content: str = ""
    internal: bool = False
    message: str


def analyze_changes(
    root: Path,
    config: ReleaseConfig,
    vcs: VersionControlPort,
    packages: Mapping[str, PackageInfo] | None = None,
) -> ChangesetAnalysis:
    """Suggest changeset entries for the commits on the current branch.

    Args:
        root: Workspace root.
        config: Release configuration (roots, base branch).
        vcs: Version control access.
        packages: Managed packages; discovered under ``root`` when None.
    """
    if packages is None:
        packages = discover_packages(root, config.roots, quiet=True)

    branch = vcs.current_branch()
    issue_key = extract_issue_key(branch)
    commits = vcs.commits_since(config.base_branch)
    changed_files = vcs.changed_files(config.base_branch)

    resolver = ScopeResolver(packages, config.roots)
    attributions = resolver.attribute(commits, changed_files)
    bumps = aggregate(attributions)

    analysis_packages = []
    for name, bump in bumps.items():
        pkg = packages[name]
        related = are_commits_related(bump.relevant_commits)
        analysis_packages.append(
            PackageAnalysis(
                name=name,
                path=pkg.path,
                scope=attributions[name].scope,
                current_version=pkg.version,
                suggested_bump=bump.bump,
                reason=bump.reason,
                commits=[c.raw for c in bump.commits],
                summary=package_summary(name, bump.relevant_commits, "collapsed"),
                bullet_summary=package_summary(name, bump.relevant_commits, "bullets"),
                suggested_format="collapsed" if related else "bullets",
            )
        )

    key = issue_key or DEFAULT_KEY
    return ChangesetAnalysis(
        branch=branch,
        issue_key=issue_key,
        packages=analysis_packages,
        changeset_file=f"{key}.md",
        no_changeset_needed=all_internal(conventional_only(commits)),
    )


def parse_bump_overrides(spec: str | None) -> dict[str, BumpLevel]:
    """Parse ``"ui:minor,utils:patch"``; malformed parts are ignored."""
    overrides: dict[str, BumpLevel] = {}
    for part in (spec or "").split(","):
        scope, _, bump = part.partition(":")
        scope, bump = scope.strip(), bump.strip().lower()
        if not scope or not bump:
            continue
        try:
            level = BumpLevel(bump)
        except ValueError:
            level = None
        if level not in _OVERRIDE_BUMPS:
            warn(f"ignoring bump override '{part.strip()}'")
            continue
        overrides[scope] = level
    return overrides


def parse_summary_overrides(spec: str | None) -> dict[str, str]:
    """Parse ``"ui:Added dark mode,utils:Fixed rounding"``.

    Only the first colon of each part separates scope from summary, so
    summaries may contain colons but not commas.
    """
    overrides: dict[str, str] = {}
    for part in (spec or "").split(","):
        scope, sep, summary = part.partition(":")
        if sep and scope.strip() and summary.strip():
            overrides[scope.strip()] = summary.strip()
    return overrides


def _lookup(
    overrides: Mapping[str, BumpLevel | str], pkg: PackageAnalysis
) -> BumpLevel | str | None:
    # Overrides may name the directory scope or the package itself.
    if pkg.scope in overrides:
        return overrides[pkg.scope]
    return overrides.get(pkg.name)


def create_changeset(
    analysis: ChangesetAnalysis,
    store: ChangesetStore,
    bump_overrides: Mapping[str, BumpLevel] | None = None,
    summary_overrides: Mapping[str, str] | None = None,
    fmt: SummaryFormat | None = None,
    skip_empty: bool = False,
) -> CreateResult:
    """Write the changeset described by ``analysis``.

    When no package carries a user-facing change an internal-only
    changeset (empty header) is written instead, unless ``skip_empty``.

    Args:
        analysis: Result of analyze_changes().
        store: Destination changeset directory.
        bump_overrides: Bump per scope or package name.
        summary_overrides: Summary text per scope or package name.
        fmt: Summary format; None picks bullets if any package's commits
            look unrelated, else collapsed.
        skip_empty: Write nothing when there are no user-facing changes.
    """
    bump_overrides = bump_overrides or {}
    summary_overrides = summary_overrides or {}

    if analysis.no_changeset_needed or not analysis.packages:
        if skip_empty:
            return CreateResult(message="No user-facing changes. Skipping changeset.")
        store.directory.mkdir(parents=True, exist_ok=True)
        path = store.write(analysis.key, {}, INTERNAL_BODY, analysis.issue_key)
        return CreateResult(
            path=path,
            content=path.read_text(),
            internal=True,
            message=f"Created empty changeset: {path.name}",
        )

    if fmt is None:
        unrelated = any(p.suggested_format == "bullets" for p in analysis.packages)
        fmt = "bullets" if unrelated else "collapsed"

    bumps: dict[str, BumpLevel] = {}
    paragraphs: list[str] = []
    for pkg in analysis.packages:
        bump = _lookup(bump_overrides, pkg) or pkg.suggested_bump
        if bump == BumpLevel.NONE:
            continue
        summary = _lookup(summary_overrides, pkg)
        if summary is not None:
            paragraph = f"**{pkg.name}**\n{summary}"
        elif fmt == "bullets":
            paragraph = pkg.bullet_summary or pkg.summary
        else:
            paragraph = pkg.summary
        bumps[pkg.name] = bump
        paragraphs.append(paragraph)

    if not bumps:
        return CreateResult(message="No packages selected for changeset")

    store.directory.mkdir(parents=True, exist_ok=True)
    path = store.write(analysis.key, bumps, "\n\n".join(paragraphs), analysis.issue_key)
    return CreateResult(
        path=path,
        content=path.read_text(),
        message=f"Created changeset: {path.name}",
    )

