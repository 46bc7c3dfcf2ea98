"""Tests for changeset_release.create."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from changeset_release.changesets import ChangesetStore
from changeset_release.config import ReleaseConfig
from changeset_release.create import (
    ChangesetAnalysis,
    PackageAnalysis,
    analyze_changes,
    create_changeset,
    parse_bump_overrides,
    parse_summary_overrides,
)
from changeset_release.models import BumpLevel, PackageInfo
from conftest import FakeVCS


@pytest.fixture
def store(tmp_path: Path) -> ChangesetStore:
    return ChangesetStore(tmp_path / ".changeset")


def analyze(packages: dict[str, PackageInfo], vcs: FakeVCS, tmp_path: Path):
    return analyze_changes(tmp_path, ReleaseConfig(), vcs, packages)


class TestAnalyzeChanges:
    """Tests for analyze_changes()."""

    def test_scoped_commits(self, packages, tmp_path: Path) -> None:
        vcs = FakeVCS(
            branch="jane/PROD-123-dark-mode",
            subjects=["feat(ui): add dark mode", "fix(utils): correct rounding", "chore: tidy"],
        )

        analysis = analyze(packages, vcs, tmp_path)

        assert analysis.branch == "jane/PROD-123-dark-mode"
        assert analysis.issue_key == "PROD-123"
        assert analysis.changeset_file == "PROD-123.md"
        assert not analysis.no_changeset_needed

        ui, utils = analysis.packages
        assert (ui.name, ui.suggested_bump, ui.reason) == ("ui", BumpLevel.MINOR, "feat commit detected")
        assert ui.current_version == "1.4.2"
        assert ui.summary == "**ui**\nAdded dark mode"
        assert (utils.suggested_bump, utils.summary) == (BumpLevel.PATCH, "**utils**\nCorrected rounding")

    def test_file_path_fallback(self, packages, tmp_path: Path) -> None:
        """Unscoped commits reach packages whose files changed."""
        vcs = FakeVCS(
            subjects=["feat: add search", "fix: correct focus", "perf: cache icons"],
            changed=["packages/ui/src/search.py", "README.md"],
        )

        analysis = analyze(packages, vcs, tmp_path)

        assert [p.name for p in analysis.packages] == ["ui"]
        ui = analysis.packages[0]
        assert ui.suggested_bump == BumpLevel.PATCH
        assert ui.reason == "changes detected"
        assert ui.suggested_format == "bullets"
        assert analysis.changeset_file == "changeset.md"

    def test_internal_only(self, packages, tmp_path: Path) -> None:
        vcs = FakeVCS(subjects=["chore(ui): bump deps", "docs: fix typo"])
        analysis = analyze(packages, vcs, tmp_path)
        assert analysis.no_changeset_needed
        assert analysis.packages == []

    def test_json_aliases(self, packages, tmp_path: Path) -> None:
        vcs = FakeVCS(branch="PROD-7", subjects=["feat(ui): add x"])

        data = json.loads(analyze(packages, vcs, tmp_path).to_json())

        assert data["issueKey"] == "PROD-7"
        assert data["noChangesetNeeded"] is False
        pkg = data["packages"][0]
        assert pkg["suggestedBump"] == "minor"
        assert pkg["codeTransform"] == "**ui**\nAdded x"
        assert "bullet_summary" not in pkg


class TestOverrides:
    def test_bump_overrides(self) -> None:
        assert parse_bump_overrides("ui:Minor, utils:bogus,bad,") == {"ui": BumpLevel.MINOR}

    def test_bump_overrides_empty(self) -> None:
        assert parse_bump_overrides(None) == {}

    def test_summary_keeps_later_colons(self) -> None:
        assert parse_summary_overrides("ui:Note: dark mode,utils:") == {"ui": "Note: dark mode"}


class TestCreateChangeset:
    """Tests for create_changeset()."""

    def test_writes_changeset(self, packages, store: ChangesetStore, tmp_path: Path) -> None:
        vcs = FakeVCS(
            branch="jane/PROD-123-dark-mode",
            subjects=["feat(ui): add dark mode", "fix(utils): correct rounding"],
        )

        result = create_changeset(analyze(packages, vcs, tmp_path), store)

        assert result.message == "Created changeset: PROD-123.md"
        assert result.path == store.path_for("PROD-123")
        assert result.content == (
            "---\n"
            "'ui': minor\n"
            "'utils': patch\n"
            "---\n"
            "\n"
            "**ui**\n"
            "Added dark mode\n"
            "\n"
            "**utils**\n"
            "Corrected rounding\n"
            "\n"
            "PROD-123\n"
        )
        assert store.read("PROD-123").bumps == {"ui": BumpLevel.MINOR, "utils": BumpLevel.PATCH}

    def test_overrides(self, packages, store: ChangesetStore, tmp_path: Path) -> None:
        vcs = FakeVCS(subjects=["feat(ui): add dark mode", "fix(utils): correct rounding"])

        result = create_changeset(
            analyze(packages, vcs, tmp_path),
            store,
            bump_overrides={"ui": BumpLevel.MAJOR},
            summary_overrides={"utils": "Fixed rounding of negative numbers"},
        )

        changeset = store.read("changeset")
        assert changeset.bumps == {"ui": BumpLevel.MAJOR, "utils": BumpLevel.PATCH}
        assert "**utils**\nFixed rounding of negative numbers" in result.content

    def test_bullets_format(self, packages, store: ChangesetStore, tmp_path: Path) -> None:
        vcs = FakeVCS(
            subjects=["feat: add search", "fix: correct focus", "perf: cache icons"],
            changed=["packages/ui/src/search.py"],
        )

        result = create_changeset(analyze(packages, vcs, tmp_path), store)

        assert "**ui**\n- Added search\n- Corrected focus\n- Cache icons" in result.content

    def test_forced_collapsed(self, packages, store: ChangesetStore, tmp_path: Path) -> None:
        vcs = FakeVCS(
            subjects=["feat: add search", "fix: correct focus", "perf: cache icons"],
            changed=["packages/ui/src/search.py"],
        )

        result = create_changeset(analyze(packages, vcs, tmp_path), store, fmt="collapsed")

        assert "**ui**\nAdded search; Corrected focus; Cache icons" in result.content

    def test_internal_only_changeset(self, packages, store: ChangesetStore, tmp_path: Path) -> None:
        vcs = FakeVCS(branch="jane/PROD-9-cleanup", subjects=["chore: tidy up"])

        result = create_changeset(analyze(packages, vcs, tmp_path), store)

        assert result.internal
        assert result.message == "Created empty changeset: PROD-9.md"
        assert result.content == "---\n---\n\nInternal changes only\n\nPROD-9\n"
        assert store.read("PROD-9").is_internal

    def test_skip_empty(self, packages, store: ChangesetStore, tmp_path: Path) -> None:
        vcs = FakeVCS(subjects=["docs: explain config"])

        result = create_changeset(analyze(packages, vcs, tmp_path), store, skip_empty=True)

        assert result.path is None
        assert result.message == "No user-facing changes. Skipping changeset."
        assert store.list_keys() == []

    def test_same_key_overwrites(self, packages, store: ChangesetStore, tmp_path: Path) -> None:
        first = FakeVCS(branch="PROD-5", subjects=["fix(ui): correct focus"])
        second = FakeVCS(branch="PROD-5", subjects=["feat(ui): add search"])

        create_changeset(analyze(packages, first, tmp_path), store)
        create_changeset(analyze(packages, second, tmp_path), store)

        assert store.list_keys() == ["PROD-5"]
        assert store.read("PROD-5").bumps == {"ui": BumpLevel.MINOR}

    def test_overrides_by_scope_or_name(self, store: ChangesetStore) -> None:
        """Overrides may name the directory scope or the package."""
        analysis = ChangesetAnalysis(
            branch="main",
            packages=[
                PackageAnalysis(
                    name="web-app",
                    path="apps/web_app",
                    scope="web_app",
                    current_version="1.0.0",
                    suggested_bump=BumpLevel.PATCH,
                    reason="fix commit detected",
                    summary="**web-app**\nFixed login",
                    suggested_format="collapsed",
                )
            ],
            changeset_file="changeset.md",
            no_changeset_needed=False,
        )

        result = create_changeset(
            analysis,
            store,
            bump_overrides={"web-app": BumpLevel.MINOR},
            summary_overrides={"web_app": "Reworked login"},
        )

        assert store.read("changeset").bumps == {"web-app": BumpLevel.MINOR}
        assert "**web-app**\nReworked login" in result.content
