"""Tests for changeset_release.models."""

from __future__ import annotations

import itertools
import json

import pytest

from changeset_release.models import (
    BumpLevel,
    Changeset,
    PipelineReport,
    PipelineStatus,
    PrereleaseState,
    ReleaseAnalysis,
    ReleaseRecord,
    StepOutcome,
    StepPolicy,
    TagResult,
    VersionBumpDecision,
    join_all,
)

LEVELS = list(BumpLevel)


class TestBumpLevel:
    """Tests for the BumpLevel join-semilattice."""

    def test_ordering(self) -> None:
        assert BumpLevel.NONE < BumpLevel.PATCH < BumpLevel.MINOR < BumpLevel.MAJOR

    @pytest.mark.parametrize("a,b", list(itertools.product(LEVELS, LEVELS)))
    def test_join_commutative(self, a: BumpLevel, b: BumpLevel) -> None:
        assert a.join(b) == b.join(a)

    @pytest.mark.parametrize("a,b,c", list(itertools.product(LEVELS, LEVELS, LEVELS)))
    def test_join_associative(self, a: BumpLevel, b: BumpLevel, c: BumpLevel) -> None:
        assert a.join(b).join(c) == a.join(b.join(c))

    @pytest.mark.parametrize("a", LEVELS)
    def test_join_idempotent_with_none_identity(self, a: BumpLevel) -> None:
        assert a.join(a) == a
        assert a.join(BumpLevel.NONE) == a
        assert BumpLevel.NONE.join(a) == a

    def test_join_all_is_order_independent(self) -> None:
        levels = [BumpLevel.PATCH, BumpLevel.MINOR, BumpLevel.NONE, BumpLevel.PATCH]
        results = {join_all(p) for p in itertools.permutations(levels)}
        assert results == {BumpLevel.MINOR}

    def test_join_all_empty_is_none(self) -> None:
        assert join_all([]) == BumpLevel.NONE

    def test_join_all_accepts_strings(self) -> None:
        assert join_all(["patch", "major"]) == BumpLevel.MAJOR


class TestChangeset:
    def test_empty_bumps_is_internal(self) -> None:
        assert Changeset(key="PROJ-1").is_internal

    def test_bumps_not_internal(self) -> None:
        assert not Changeset(key="PROJ-1", bumps={"ui": BumpLevel.PATCH}).is_internal


class TestPrereleaseState:
    def test_default_is_stable(self) -> None:
        assert not PrereleaseState().active

    def test_reads_camel_case_json(self) -> None:
        state = PrereleaseState.model_validate(
            {"mode": "pre", "tag": "beta", "initialVersions": {"ui": "1.0.0"}, "changesets": []}
        )
        assert state.active
        assert state.initial_versions == {"ui": "1.0.0"}

    def test_dumps_camel_case(self) -> None:
        state = PrereleaseState(mode="pre", tag="rc", initial_versions={"ui": "1.0.0"})
        data = state.model_dump(by_alias=True)
        assert data["initialVersions"] == {"ui": "1.0.0"}


class TestVersionBumpDecision:
    def test_tag_name(self) -> None:
        decision = VersionBumpDecision(
            package="ui",
            path="packages/ui",
            old_version="1.4.2",
            new_version="1.5.0",
            bump=BumpLevel.MINOR,
        )
        assert decision.tag == "ui@1.5.0"


class TestPipelineReport:
    """Tests for derived PipelineReport properties."""

    def test_exit_code_only_fails_on_failed_status(self) -> None:
        assert PipelineReport(status=PipelineStatus.SUCCESS).exit_code == 0
        assert PipelineReport(status=PipelineStatus.CANCELLED).exit_code == 0
        assert PipelineReport(status=PipelineStatus.NOTHING_TO_RELEASE).exit_code == 0
        assert PipelineReport(status=PipelineStatus.FAILED).exit_code == 1

    def test_pushed_from_step_outcomes(self) -> None:
        report = PipelineReport()
        assert report.pushed is None

        report.steps.append(StepOutcome(step="push", policy=StepPolicy.FATAL, ok=True))
        assert report.pushed is True

        skipped = PipelineReport(
            steps=[StepOutcome(step="push", policy=StepPolicy.FATAL, ok=True, skipped=True)]
        )
        assert skipped.pushed is None

    def test_lock_error(self) -> None:
        report = PipelineReport(
            steps=[
                StepOutcome(
                    step="lock", policy=StepPolicy.BEST_EFFORT, ok=False, error="uv: not found"
                )
            ]
        )
        assert report.lock_error == "uv: not found"

    def test_tags_created_and_skipped(self) -> None:
        report = PipelineReport(
            tags=[
                TagResult(name="ui@1.0.0", package="ui", version="1.0.0", created=True),
                TagResult(name="db@2.0.0", package="db", version="2.0.0", created=False),
                TagResult(
                    name="x@1.0.0", package="x", version="1.0.0", created=False, error="boom"
                ),
            ]
        )
        assert report.tags_created == ["ui@1.0.0"]
        assert report.tags_skipped == ["db@2.0.0"]

    def test_publish_failures(self) -> None:
        ok = ReleaseRecord(package="a", tag="a@1.0.0", title="a v1.0.0", body="", url="u")
        failed = ReleaseRecord(
            package="b", tag="b@1.0.0", title="b v1.0.0", body="", error="auth", skipped=True
        )
        report = PipelineReport(publish=[ok, failed])
        assert report.publish_failures == [failed]
        assert ok.ok and not failed.ok


class TestReleaseAnalysis:
    def test_json_uses_camel_case_fields(self) -> None:
        data = json.loads(ReleaseAnalysis(prerelease_mode="beta").to_json())
        assert data == {
            "prereleaseMode": "beta",
            "pendingChangesets": [],
            "packagesToRelease": [],
            "commitMessage": "chore(release): version packages",
        }
