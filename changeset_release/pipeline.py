"""Release pipeline: resolve → apply → lock → commit → tag → push → publish.

This module orchestrates a release of every package with pending changesets:
1. Resolve changesets into version decisions (read-only)
2. Apply new versions and changelog entries, consume the changesets
3. Regenerate the lockfile
4. Commit everything with the canonical release message
5. Tag each released package as {package}@{version}
6. Push the commit and tags
7. Create a hosted release per package

How a failing step affects the run is declared once per step in STEPS and
enforced by a single runner. Fatal steps halt the run and mark it failed.
Best-effort failures are recorded in the report and never change the exit
status. Per-package steps attempt every package before deciding.

Nothing outside the process is touched before step 2, so a run that stops
at resolution or is cancelled at confirmation leaves no trace.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date
from pathlib import Path
from typing import Any, NamedTuple

from .changelog import link_issues, render_entry
from .changesets import ChangesetStore
from .config import ReleaseConfig
from .errors import AuthUnavailable, ChangesetReleaseError, NothingToCommit
from .hosting import HostingPort
from .manifest import ManifestPort
from .models import (
    CANONICAL_COMMIT_MESSAGE,
    Changeset,
    GitHubReleaseInfo,
    PackageInfo,
    PackageRelease,
    PipelineReport,
    PipelineStatus,
    PrereleaseState,
    ReleaseAnalysis,
    ReleaseRecord,
    StepOutcome,
    StepPolicy,
    TagResult,
    VersionBumpDecision,
)
from .prerelease import PrereleaseStore
from .shell import info, run, step, warn
from .vcs import VersionControlPort
from .versions import merge_bumps, plan_releases
from .workspace import discover_packages


class Step(NamedTuple):
    """One pipeline step and the policy applied when it fails.

    Attributes:
        name: Step identifier, used in reports and error messages.
        title: Header printed when the step starts.
        policy: FATAL halts the run, BEST_EFFORT only records the failure,
            PER_PACKAGE attempts every package and halts afterwards if any
            of them failed.
        per_package: Run once per released package instead of once.
        parallel: Run the per-package attempts in a thread pool.
        report_field: PipelineReport field receiving per-package results.
    """

    name: str
    title: str
    policy: StepPolicy
    per_package: bool = False
    parallel: bool = False
    report_field: str | None = None


STEPS = (
    Step("resolve", "Resolving versions", StepPolicy.FATAL),
    Step("apply", "Applying versions", StepPolicy.FATAL),
    Step("lock", "Updating lockfile", StepPolicy.BEST_EFFORT),
    Step("commit", "Committing version changes", StepPolicy.FATAL),
    Step("tag", "Creating tags", StepPolicy.PER_PACKAGE, per_package=True, report_field="tags"),
    Step("push", "Pushing to remote", StepPolicy.FATAL),
    Step(
        "publish",
        "Creating GitHub releases",
        StepPolicy.BEST_EFFORT,
        per_package=True,
        parallel=True,
        report_field="publish",
    ),
)

# Errors a step may raise that the runner turns into a recorded outcome.
# Anything else is a bug and propagates.
STEP_ERRORS = (ChangesetReleaseError, OSError)


class _RunState:
    """Mutable data shared by the steps of one run."""

    def __init__(self) -> None:
        self.report = PipelineReport()
        self.changesets: list[Changeset] = []
        self.state = PrereleaseState()
        self.decisions: list[VersionBumpDecision] = []
        self.entries: dict[str, str] = {}
        self.authenticated = True


class ReleasePipeline:
    """Apply pending changesets and publish the resulting releases.

    All collaborators are injected, so the whole pipeline runs against
    in-memory fakes in tests.
    """

    def __init__(
        self,
        root: Path,
        config: ReleaseConfig,
        vcs: VersionControlPort,
        hosting: HostingPort,
        manifests: ManifestPort,
        changesets: ChangesetStore,
        prerelease: PrereleaseStore,
        packages: Mapping[str, PackageInfo] | None = None,
        lock_runner: Callable[[], Any] | None = None,
        today: date | None = None,
    ) -> None:
        self.root = Path(root)
        self.config = config
        self.vcs = vcs
        self.hosting = hosting
        self.manifests = manifests
        self.changesets = changesets
        self.prerelease = prerelease
        self._packages = dict(packages) if packages is not None else None
        self.lock_runner = lock_runner or self._run_lock_command
        self.today = today

        self._handlers: dict[str, Callable[..., Any]] = {
            "resolve": self._resolve,
            "apply": self._apply,
            "lock": self._lock,
            "commit": self._commit,
            "tag": self._tag,
            "push": self._push,
            "publish": self._publish,
        }
        self._on_failure: dict[str, Callable[[VersionBumpDecision, Exception], Any]] = {
            "tag": self._tag_failed,
            "publish": self._publish_failed,
        }
        self._prepare: dict[str, Callable[[_RunState], None]] = {
            "publish": self._check_auth,
        }

    @property
    def packages(self) -> dict[str, PackageInfo]:
        if self._packages is None:
            self._packages = discover_packages(self.root, self.config.roots, quiet=True)
        return self._packages

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def plan(self) -> list[VersionBumpDecision]:
        """Version decisions for the pending changesets, with no side effects."""
        state = _RunState()
        self._resolve(state)
        return state.decisions

    def analyze(self) -> ReleaseAnalysis:
        """Describe what ``run`` would do without doing any of it."""
        state = _RunState()
        self._resolve(state)
        return self._analysis(state)

    def run(
        self,
        push: bool = True,
        publish: bool = True,
        confirm: Callable[[ReleaseAnalysis], bool] | None = None,
    ) -> PipelineReport:
        """Execute the release.

        Args:
            push: Push the release commit and tags to the remote.
            publish: Create hosted releases.
            confirm: Called with the analysis once versions are resolved
                and before anything is written. Returning False cancels the
                run with no side effects.

        Returns:
            The report. Its status is FAILED only when a fatal or per-package
            step failed; ``halted_at`` then names that step.
        """
        state = _RunState()
        report = state.report
        skipped = {"push": not push, "publish": not publish}

        for current in STEPS:
            if skipped.get(current.name):
                report.steps.append(
                    StepOutcome(step=current.name, policy=current.policy, ok=True, skipped=True)
                )
                continue

            if not self._execute(current, state):
                report.status = PipelineStatus.FAILED
                report.halted_at = current.name
                return report

            if current.name == "resolve":
                if not state.decisions:
                    info("No packages to release")
                    report.status = PipelineStatus.NOTHING_TO_RELEASE
                    return report
                if confirm is not None and not confirm(self._analysis(state)):
                    report.status = PipelineStatus.CANCELLED
                    return report

        report.status = PipelineStatus.SUCCESS
        return report

    # ------------------------------------------------------------------
    # Runner
    # ------------------------------------------------------------------

    def _execute(self, current: Step, state: _RunState) -> bool:
        """Run one step under its policy; False means the run must halt."""
        step(current.title)
        prepare = self._prepare.get(current.name)
        if prepare is not None:
            prepare(state)

        if current.per_package:
            results, outcomes = self._fan_out(current, state)
            if current.report_field:
                setattr(state.report, current.report_field, results)
        else:
            outcomes = [self._attempt(current, self._handlers[current.name], state)]
        state.report.steps.extend(outcomes)

        failed = [o for o in outcomes if not o.ok]
        for outcome in failed:
            where = f" ({outcome.package})" if outcome.package else ""
            warn(f"{current.name}{where} failed: {outcome.error}")
        return not failed or current.policy == StepPolicy.BEST_EFFORT

    def _attempt(self, current: Step, handler: Callable[..., Any], *args: Any) -> StepOutcome:
        try:
            handler(*args)
        except STEP_ERRORS as exc:
            return StepOutcome(step=current.name, policy=current.policy, ok=False, error=str(exc))
        return StepOutcome(step=current.name, policy=current.policy, ok=True)

    def _fan_out(self, current: Step, state: _RunState) -> tuple[list[Any], list[StepOutcome]]:
        """Attempt ``current`` for every decision in isolation.

        Results are gathered from the attempts' return values in the
        calling thread, in decision order, whatever order they finish in.
        """
        handler = self._handlers[current.name]
        on_failure = self._on_failure[current.name]

        def attempt(decision: VersionBumpDecision) -> tuple[Any, str | None]:
            try:
                return handler(state, decision), None
            except STEP_ERRORS as exc:
                return on_failure(decision, exc), str(exc)

        decisions = state.decisions
        if current.parallel and len(decisions) > 1:
            workers = min(self.config.publish_workers, len(decisions))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {pool.submit(attempt, d): d.package for d in decisions}
                collected = {futures[f]: f.result() for f in as_completed(futures)}
            attempts = [collected[d.package] for d in decisions]
        else:
            attempts = [attempt(d) for d in decisions]

        results = [result for result, _ in attempts]
        outcomes = [
            StepOutcome(
                step=current.name,
                policy=current.policy,
                ok=error is None,
                error=error,
                package=decision.package,
            )
            for decision, (_, error) in zip(decisions, attempts)
        ]
        return results, outcomes

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _resolve(self, state: _RunState) -> None:
        state.changesets = self.changesets.read_all()
        state.state = self.prerelease.read()
        state.decisions = plan_releases(state.changesets, self.packages, state.state)
        state.report.unknown_packages = {
            name: keys
            for name, (_, keys) in merge_bumps(state.changesets).items()
            if name not in self.packages
        }
        by_key = {c.key: c for c in state.changesets}
        for decision in state.decisions:
            state.entries[decision.package] = render_entry(
                decision.package,
                decision.new_version,
                decision.bump,
                [by_key[key] for key in decision.changesets],
                self.today,
            )
            info(f"{decision.package}: {decision.old_version} → {decision.new_version} ({decision.bump.value})")
        state.report.released = list(state.decisions)

    def _apply(self, state: _RunState) -> None:
        for decision in state.decisions:
            self.manifests.write_version(decision.path, decision.new_version)
            self.manifests.prepend_changelog(
                decision.path, decision.package, state.entries[decision.package]
            )
            info(f"{decision.package} {decision.new_version}")

        keys = [c.key for c in state.changesets]
        if state.state.active:
            self.prerelease.record(state.decisions, keys)
        unknown = state.report.unknown_packages
        for changeset in state.changesets:
            # Bumps for packages outside the workspace stay pending.
            kept = {n: b for n, b in changeset.bumps.items() if n in unknown}
            if kept:
                self.changesets.write(changeset.key, kept, changeset.body)
                info(f"Kept {changeset.key} for unknown package(s): {', '.join(kept)}")
            else:
                self.changesets.delete(changeset.key)
        info(f"Consumed {len(keys)} changeset(s)")

    def _run_lock_command(self) -> None:
        if not self.config.lock_command:
            info("No lock command configured")
            return
        run(*self.config.lock_command, cwd=self.root, timeout=self.config.timeout)

    def _lock(self, state: _RunState) -> None:
        self.lock_runner()

    def _commit(self, state: _RunState) -> None:
        try:
            self.vcs.commit_all(CANONICAL_COMMIT_MESSAGE)
        except NothingToCommit:
            info("Nothing to commit")
            return
        info(CANONICAL_COMMIT_MESSAGE)

    def _tag(self, state: _RunState, decision: VersionBumpDecision) -> TagResult:
        created = self.vcs.create_tag(decision.tag)
        info(f"{decision.tag}{'' if created else ' (already exists, skipped)'}")
        return TagResult(
            name=decision.tag,
            package=decision.package,
            version=decision.new_version,
            created=created,
        )

    def _tag_failed(self, decision: VersionBumpDecision, exc: Exception) -> TagResult:
        return TagResult(
            name=decision.tag,
            package=decision.package,
            version=decision.new_version,
            created=False,
            error=str(exc),
        )

    def _push(self, state: _RunState) -> None:
        self.vcs.push(self.config.remote)
        info(f"Pushed to {self.config.remote}")

    def _check_auth(self, state: _RunState) -> None:
        state.authenticated = self.hosting.is_authenticated()
        if not state.authenticated:
            warn("gh CLI not authenticated. Skipping GitHub releases. Run: gh auth login")

    def _release_record(self, decision: VersionBumpDecision) -> ReleaseRecord:
        title = f"{decision.package} v{decision.new_version}"
        latest = self.manifests.latest_changelog(decision.path)
        if latest is not None and latest.version == decision.new_version and latest.content:
            body = link_issues(latest.content, self.config.issue_url)
        else:
            body = f"Release {title}"
        return ReleaseRecord(
            package=decision.package,
            tag=decision.tag,
            title=title,
            body=body,
            prerelease=decision.prerelease,
        )

    def _publish(self, state: _RunState, decision: VersionBumpDecision) -> ReleaseRecord:
        if not state.authenticated:
            raise AuthUnavailable("gh CLI not authenticated")
        record = self._release_record(decision)
        if self.hosting.release_exists(decision.tag):
            info(f"{decision.tag}: release already exists, skipped")
            return record.model_copy(update={"skipped": True})
        url = self.hosting.create_release(record.tag, record.title, record.body, record.prerelease)
        info(f"{decision.tag}: {url}")
        return record.model_copy(update={"url": url})

    def _publish_failed(self, decision: VersionBumpDecision, exc: Exception) -> ReleaseRecord:
        title = f"{decision.package} v{decision.new_version}"
        return ReleaseRecord(
            package=decision.package,
            tag=decision.tag,
            title=title,
            body=f"Release {title}",
            prerelease=decision.prerelease,
            error=str(exc),
            skipped=isinstance(exc, AuthUnavailable),
        )

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def _analysis(self, state: _RunState) -> ReleaseAnalysis:
        releases = []
        for decision in state.decisions:
            title = f"{decision.package} v{decision.new_version}"
            releases.append(
                PackageRelease(
                    name=decision.package,
                    path=decision.path,
                    current_version=decision.old_version,
                    new_version=decision.new_version,
                    bump=decision.bump,
                    changelog_entry=state.entries.get(decision.package, ""),
                    tag=decision.tag,
                    github_release=GitHubReleaseInfo(
                        tag=decision.tag, title=title, prerelease=decision.prerelease
                    ),
                )
            )
        return ReleaseAnalysis(
            prerelease_mode=state.state.tag if state.state.active else None,
            pending_changesets=self.changesets.list_keys(),
            packages_to_release=releases,
            commit_message=CANONICAL_COMMIT_MESSAGE,
        )
