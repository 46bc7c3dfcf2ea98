"""Data models for changeset-release.

These Pydantic models represent the core data structures passed between
the commit analysis, changeset, prerelease and release pipeline stages.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .transform import strip_markers

CANONICAL_COMMIT_MESSAGE = "chore(release): version packages"


class ConventionalCommit(BaseModel):
    """A commit subject that matched ``type(scope)!: description``.

    Attributes:
        hash: Commit SHA, empty when classifying a bare subject.
        type: Lowercased commit type used for classification.
        scope: Parenthesized scope token, if any.
        breaking: True when the subject carried a ``!`` marker.
        description: Everything after the colon, leading markers kept.
        raw: The subject exactly as written, for display.
        body: Commit body, when read from history.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["conventional"] = "conventional"
    hash: str = ""
    type: str
    scope: str | None = None
    breaking: bool = False
    description: str
    raw: str
    body: str | None = None

    @property
    def text(self) -> str:
        """Description without leading emoji/shortcode markers."""
        return strip_markers(self.description)


class UnparseableCommit(BaseModel):
    """A commit subject that does not follow the conventional grammar."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unparseable"] = "unparseable"
    hash: str = ""
    raw: str


Commit = Annotated[
    Union[ConventionalCommit, UnparseableCommit], Field(discriminator="kind")
]


class BumpLevel(str, Enum):
    """Semantic-versioning increment, ordered none < patch < minor < major.

    The levels form a join-semilattice: combining two levels yields the
    stronger one, and NONE is the identity.
    """

    NONE = "none"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, BumpLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, BumpLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, BumpLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, BumpLevel):
            return NotImplemented
        return self.rank >= other.rank

    def join(self, other: BumpLevel) -> BumpLevel:
        """Return the stronger of two levels."""
        return self if self.rank >= other.rank else other


_RANKS = {
    BumpLevel.NONE: 0,
    BumpLevel.PATCH: 1,
    BumpLevel.MINOR: 2,
    BumpLevel.MAJOR: 3,
}


def join_all(levels: Iterable[BumpLevel | str]) -> BumpLevel:
    """Fold any iterable of levels with join, starting from NONE."""
    result = BumpLevel.NONE
    for level in levels:
        result = result.join(BumpLevel(level))
    return result


class PackageInfo(BaseModel):
    """Metadata for a single managed package in the workspace.

    Attributes:
        name: Canonical (PEP 503) project name from [project].name.
        path: Relative path from workspace root to the package directory.
        version: Current version string from pyproject.toml.
    """

    name: str
    path: str
    version: str


class Attribution(BaseModel):
    """Commits attributed to one package by the scope resolver.

    Attributes:
        package: Package name the commits belong to.
        scope: Directory name the package was matched through.
        commits: Conventional commits attributed to the package.
        fallback: True when attribution came from changed file paths rather
            than from commit scopes.
    """

    package: str
    scope: str
    commits: list[ConventionalCommit] = Field(default_factory=list)
    fallback: bool = False


class PackageBump(BaseModel):
    """Aggregated bump for a single package."""

    package: str
    bump: BumpLevel
    reason: str
    commits: list[ConventionalCommit] = Field(default_factory=list)
    relevant_commits: list[ConventionalCommit] = Field(default_factory=list)


class Changeset(BaseModel):
    """A pending version-intent record.

    An empty ``bumps`` mapping is a valid internal-only changeset, which is
    not the same as no changeset existing at all.
    """

    key: str
    bumps: dict[str, BumpLevel] = Field(default_factory=dict)
    body: str = ""

    @property
    def is_internal(self) -> bool:
        return not self.bumps


class PrereleaseState(BaseModel):
    """Persisted prerelease mode, stored as .changeset/pre.json.

    Attributes:
        mode: "pre" while a prerelease window is open, otherwise None.
        tag: Prerelease tag (alpha, beta, ...) while in a window.
        initial_versions: Package versions snapshotted at ``enter`` time.
            Every prerelease version string is computed against these.
        changesets: Keys of changesets consumed during the window.
        counters: Next prerelease number per package.
        bumps: Strongest bump resolved per package during the window.
    """

    model_config = ConfigDict(populate_by_name=True)

    mode: Literal["pre"] | None = None
    tag: str | None = None
    initial_versions: dict[str, str] = Field(
        default_factory=dict, alias="initialVersions"
    )
    changesets: list[str] = Field(default_factory=list)
    counters: dict[str, int] = Field(default_factory=dict)
    bumps: dict[str, BumpLevel] = Field(default_factory=dict)

    @property
    def active(self) -> bool:
        return self.mode == "pre" and self.tag is not None


class VersionBumpDecision(BaseModel):
    """The resolved version change for one package."""

    package: str
    path: str
    old_version: str
    new_version: str
    bump: BumpLevel
    prerelease: bool = False
    changesets: list[str] = Field(default_factory=list)

    @property
    def tag(self) -> str:
        return f"{self.package}@{self.new_version}"


class TagResult(BaseModel):
    """Outcome of tagging one released package.

    ``created`` is False when the tag already existed (a no-op) or when
    tagging failed, in which case ``error`` holds the tool output.
    """

    name: str
    package: str
    version: str
    created: bool
    error: str | None = None


class ReleaseRecord(BaseModel):
    """Per-package hosted release outcome."""

    package: str
    tag: str
    title: str
    body: str
    prerelease: bool = False
    url: str | None = None
    error: str | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.skipped


class StepPolicy(str, Enum):
    """How the pipeline runner reacts to a failing step."""

    FATAL = "fatal"
    BEST_EFFORT = "best-effort"
    PER_PACKAGE = "per-package"


class StepOutcome(BaseModel):
    """What happened when the runner executed one step."""

    step: str
    policy: StepPolicy
    ok: bool
    skipped: bool = False
    error: str | None = None
    package: str | None = None


class PipelineStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    NOTHING_TO_RELEASE = "nothing-to-release"


class PipelineReport(BaseModel):
    """Final report of a release pipeline run."""

    status: PipelineStatus = PipelineStatus.SUCCESS
    released: list[VersionBumpDecision] = Field(default_factory=list)
    tags: list[TagResult] = Field(default_factory=list)
    publish: list[ReleaseRecord] = Field(default_factory=list)
    steps: list[StepOutcome] = Field(default_factory=list)
    halted_at: str | None = None
    # Packages named in changesets but missing from the workspace, with
    # the keys of the changesets naming them. Those bumps stay pending.
    unknown_packages: dict[str, list[str]] = Field(default_factory=dict)

    def outcomes(self, step: str) -> list[StepOutcome]:
        return [o for o in self.steps if o.step == step]

    @property
    def exit_code(self) -> int:
        return 1 if self.status == PipelineStatus.FAILED else 0

    @property
    def failure(self) -> StepOutcome | None:
        """The outcome that halted the run, if any."""
        if self.halted_at is None:
            return None
        return next((o for o in self.outcomes(self.halted_at) if not o.ok), None)

    @property
    def pushed(self) -> bool | None:
        """True if pushed, False if the push failed, None if not attempted."""
        outcomes = self.outcomes("push")
        if not outcomes or outcomes[0].skipped:
            return None
        return outcomes[0].ok

    @property
    def lock_error(self) -> str | None:
        return next((o.error for o in self.outcomes("lock") if not o.ok), None)

    @property
    def tags_created(self) -> list[str]:
        return [t.name for t in self.tags if t.created]

    @property
    def tags_skipped(self) -> list[str]:
        return [t.name for t in self.tags if not t.created and t.error is None]

    @property
    def publish_failures(self) -> list[ReleaseRecord]:
        return [r for r in self.publish if r.error is not None]


class GitHubReleaseInfo(BaseModel):
    tag: str
    title: str
    prerelease: bool


class PackageRelease(BaseModel):
    """One entry of packagesToRelease in the dry-run analysis."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    path: str
    current_version: str = Field(alias="currentVersion")
    new_version: str = Field(alias="newVersion")
    bump: BumpLevel
    changelog_entry: str = Field(alias="changelogEntry")
    tag: str
    github_release: GitHubReleaseInfo = Field(alias="githubRelease")


class ReleaseAnalysis(BaseModel):
    """Read-only description of what a release run would do."""

    model_config = ConfigDict(populate_by_name=True)

    prerelease_mode: str | None = Field(default=None, alias="prereleaseMode")
    pending_changesets: list[str] = Field(
        default_factory=list, alias="pendingChangesets"
    )
    packages_to_release: list[PackageRelease] = Field(
        default_factory=list, alias="packagesToRelease"
    )
    commit_message: str = Field(
        default=CANONICAL_COMMIT_MESSAGE, alias="commitMessage"
    )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)
