"""Tests for changeset_release.bumps."""

from __future__ import annotations

from changeset_release.bumps import (
    FALLBACK_REASON,
    INTERNAL_REASON,
    aggregate,
    bump_reason,
)
from changeset_release.commits import classify, conventional_only
from changeset_release.models import Attribution, BumpLevel


def _attribution(package: str, *subjects: str, fallback: bool = False) -> Attribution:
    return Attribution(
        package=package,
        scope=package,
        commits=conventional_only(classify(s) for s in subjects),
        fallback=fallback,
    )


class TestAggregate:
    """Tests for aggregate()."""

    def test_feat_dominates_fix(self) -> None:
        result = aggregate({"ui": _attribution("ui", "feat(ui): add x", "fix(ui): correct y")})

        assert result["ui"].bump == BumpLevel.MINOR
        assert result["ui"].reason == "feat commit detected"
        assert len(result["ui"].relevant_commits) == 2

    def test_breaking_is_major(self) -> None:
        result = aggregate({"api": _attribution("api", "fix(api): a", "feat(api)!: change contract")})
        assert result["api"].bump == BumpLevel.MAJOR
        assert result["api"].reason == "breaking change detected"

    def test_internal_commits_kept_but_not_relevant(self) -> None:
        result = aggregate({"ui": _attribution("ui", "fix(ui): a", "docs(ui): b")})

        assert result["ui"].bump == BumpLevel.PATCH
        assert len(result["ui"].commits) == 2
        assert len(result["ui"].relevant_commits) == 1

    def test_all_irrelevant_omitted(self) -> None:
        result = aggregate({"ui": _attribution("ui", "chore(ui): a", "docs(ui): b")})
        assert result == {}

    def test_all_irrelevant_kept_with_include_internal(self) -> None:
        result = aggregate(
            {"ui": _attribution("ui", "chore(ui): a")}, include_internal=True
        )
        assert result["ui"].bump == BumpLevel.NONE
        assert result["ui"].reason == INTERNAL_REASON

    def test_fallback_forces_patch(self) -> None:
        result = aggregate(
            {"utils": _attribution("utils", "feat: add helper", fallback=True)}
        )
        assert result["utils"].bump == BumpLevel.PATCH
        assert result["utils"].reason == FALLBACK_REASON


class TestBumpReason:
    def test_precedence(self) -> None:
        commits = conventional_only(
            classify(s) for s in ["refactor: a", "perf: b", "fix: c"]
        )
        assert bump_reason(commits) == "fix commit detected"

    def test_no_reason(self) -> None:
        assert bump_reason([]) == ""
