"""Tests for changeset_release.transform."""

from __future__ import annotations

from changeset_release.commits import classify
from changeset_release.transform import (
    are_commits_related,
    combine_descriptions,
    package_summary,
    strip_markers,
    transform_commits,
    transform_description,
    transform_verb,
)


def _commits(*subjects: str):
    return [classify(s) for s in subjects]


class TestStripMarkers:
    def test_emoji(self) -> None:
        assert strip_markers("✨ add search") == "add search"

    def test_emoji_with_variation_selector(self) -> None:
        assert strip_markers("♻️ tidy parser") == "tidy parser"

    def test_gitmoji_shortcode(self) -> None:
        assert strip_markers(":bug: fix crash") == "fix crash"

    def test_plain_text_untouched(self) -> None:
        assert strip_markers("plain text") == "plain text"

    def test_non_ascii_letters_kept(self) -> None:
        assert strip_markers("Über mode") == "Über mode"


class TestTransformVerb:
    def test_mapped_verb(self) -> None:
        assert transform_verb("add") == "Added"
        assert transform_verb("support") == "Added support for"

    def test_past_tense_maps_to_same_wording(self) -> None:
        assert transform_verb("fixed") == "Fixed"

    def test_unknown_word_capitalized(self) -> None:
        assert transform_verb("tweak") == "Tweak"


class TestTransformDescription:
    def test_first_word_transformed(self) -> None:
        assert transform_description("add retry logic") == "Added retry logic"

    def test_markers_removed(self) -> None:
        assert transform_description("🐛 fix crash on start") == "Fixed crash on start"

    def test_empty(self) -> None:
        assert transform_description("✨") == ""


class TestCombineDescriptions:
    def test_single_entry_as_is(self) -> None:
        assert combine_descriptions(["Added x"], "bullets") == "Added x"

    def test_collapsed(self) -> None:
        assert combine_descriptions(["Added x", "Fixed y"]) == "Added x; Fixed y"

    def test_bullets(self) -> None:
        assert combine_descriptions(["Added x", "Fixed y"], "bullets") == "- Added x\n- Fixed y"

    def test_dedupes_and_drops_blanks(self) -> None:
        assert combine_descriptions(["Added x", "", "Added x"]) == "Added x"

    def test_nothing(self) -> None:
        assert combine_descriptions([]) == ""


class TestTransformCommits:
    def test_collapsed_summary(self) -> None:
        commits = _commits("feat(ui): add dark mode", "fix(ui): correct contrast")
        assert transform_commits(commits) == "Added dark mode; Corrected contrast"

    def test_package_summary_heading(self) -> None:
        commits = _commits("feat(ui): add dark mode")
        assert package_summary("ui", commits) == "**ui**\nAdded dark mode"


class TestAreCommitsRelated:
    """Tests for the collapsed-vs-bullets heuristic."""

    def test_two_or_fewer_always_related(self) -> None:
        assert are_commits_related(_commits("feat(a): x", "fix(b): y"))

    def test_shared_scope(self) -> None:
        assert are_commits_related(
            _commits("feat(ui): add a", "fix(ui): fix b", "perf(ui): speed c")
        )

    def test_shared_type(self) -> None:
        assert are_commits_related(
            _commits("fix(a): one", "fix(b): two", "fix(c): three")
        )

    def test_shared_significant_word(self) -> None:
        assert are_commits_related(
            _commits(
                "feat(a): add search filters",
                "fix(b): correct search ranking",
                "perf(c): cache index",
            )
        )

    def test_unrelated(self) -> None:
        assert not are_commits_related(
            _commits(
                "feat(a): add login page",
                "fix(b): correct rounding",
                "perf(c): cache index",
            )
        )
