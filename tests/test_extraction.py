"""Tests for tag-delimited content extraction.

Validates ``find_all_tags`` pairing, ordering, filtering, and the three
structured error kinds raised for malformed tag structure.
"""

from __future__ import annotations

from crossjudge.extraction import (
    MismatchedTagError,
    TagExtractionError,
    UnmatchedClosingTagError,
    UnmatchedOpeningTagError,
    find_all_tags,
    iter_tags,
)
from crossjudge.models import TagMatch
from hypothesis import given, settings, strategies as st
import pytest

_TAG_NAMES = st.text(
    alphabet=st.characters(whitelist_categories=("Ll", "Nd")),
    min_size=1,
    max_size=8,
)
_PLAIN_TEXT = st.text(
    alphabet=st.characters(
        blacklist_categories=("Cs",),  # type: ignore[arg-type]
        blacklist_characters="<>",
    ),
    max_size=30,
)


# ===========================================================================
# Tag scanning
# ===========================================================================


@pytest.mark.unit
class TestIterTags:
    """iter_tags() reports every tag with half-open offsets."""

    def test_opening_and_closing_tags(self) -> None:
        """Both tag kinds are reported in order with correct positions."""
        tags = list(iter_tags("x<a>y</a>"))
        assert tags == [
            TagMatch(is_opening=True, tag_name="a", start=1, end=4),
            TagMatch(is_opening=False, tag_name="a", start=5, end=9),
        ]

    def test_tag_name_cannot_span_lines(self) -> None:
        """A line break inside angle brackets is not a tag."""
        assert list(iter_tags("<a\nb>")) == []

    def test_tag_name_may_contain_spaces_and_symbols(self) -> None:
        """Anything but brackets and line breaks forms a tag name."""
        tags = list(iter_tags("<item 1!>"))
        assert tags[0].tag_name == "item 1!"


# ===========================================================================
# Successful extraction
# ===========================================================================


@pytest.mark.unit
class TestFindAllTags:
    """find_all_tags() returns inner texts ordered by opening position."""

    def test_nested_outer_before_inner(self) -> None:
        """Outer pair comes first because its opening tag starts first."""
        assert find_all_tags("<a>x<b>y</b>z</a>") == ["x<b>y</b>z", "y"]

    def test_sequential_pairs(self) -> None:
        """Sibling pairs appear in document order."""
        text = "<item1>one</item1> and <item2>two</item2>"
        assert find_all_tags(text) == ["one", "two"]

    def test_no_tags_returns_empty(self) -> None:
        """Plain text yields no results."""
        assert find_all_tags("nothing to see") == []

    def test_empty_pair(self) -> None:
        """An empty pair yields an empty string."""
        assert find_all_tags("<a></a>") == [""]

    def test_inner_text_keeps_whitespace(self) -> None:
        """Inner text is returned verbatim."""
        assert find_all_tags("<a>\n  hi\n</a>") == ["\n  hi\n"]

    def test_filter_ignores_rejected_tags(self) -> None:
        """Tags rejected by the filter are treated as plain text."""
        text = "<think>draft <b></think><item1>final</item1>"
        result = find_all_tags(text, lambda t: t.tag_name.startswith("item"))
        assert result == ["final"]

    def test_filter_receives_tag_matches(self) -> None:
        """The filter is called with TagMatch instances."""
        seen: list[TagMatch] = []

        def record(tag: TagMatch) -> bool:
            seen.append(tag)
            return True

        find_all_tags("<a>1</a>", record)
        assert [t.is_opening for t in seen] == [True, False]

    @given(
        names=st.lists(_TAG_NAMES, min_size=1, max_size=5),
        bodies=st.lists(_PLAIN_TEXT, min_size=5, max_size=5),
    )
    @settings(max_examples=50)
    def test_sequential_pairs_round_trip(
        self, names: list[str], bodies: list[str]
    ) -> None:
        """Property: sibling pairs around plain text return that text in order."""
        text = "".join(
            f"<{name}>{body}</{name}>" for name, body in zip(names, bodies, strict=False)
        )
        assert find_all_tags(text) == bodies[: len(names)]


# ===========================================================================
# Malformed input
# ===========================================================================


@pytest.mark.unit
class TestExtractionErrors:
    """Malformed tag structure raises a structured TagExtractionError."""

    def test_mismatch_names_both_tags(self) -> None:
        """<a>1</b> reports both tag names and positions."""
        with pytest.raises(MismatchedTagError) as exc_info:
            find_all_tags("<a>1</b>")
        err = exc_info.value
        assert err.opening.tag_name == "a"
        assert err.closing.tag_name == "b"
        assert err.opening.start == 0
        assert err.closing.start == 4
        assert "'a'" in str(err)
        assert "'b'" in str(err)

    def test_unmatched_closing(self) -> None:
        """A lone closing tag raises UnmatchedClosingTagError."""
        with pytest.raises(UnmatchedClosingTagError) as exc_info:
            find_all_tags("</a>")
        assert exc_info.value.closing.tag_name == "a"

    def test_unmatched_opening(self) -> None:
        """A lone opening tag raises UnmatchedOpeningTagError."""
        with pytest.raises(UnmatchedOpeningTagError) as exc_info:
            find_all_tags("<a>")
        assert [t.tag_name for t in exc_info.value.unclosed] == ["a"]

    def test_unmatched_opening_lists_all_unclosed(self) -> None:
        """Every pending opening tag is listed, outermost first."""
        with pytest.raises(UnmatchedOpeningTagError) as exc_info:
            find_all_tags("<a><b><c>x</c>")
        assert [t.tag_name for t in exc_info.value.unclosed] == ["a", "b"]
        assert "'a' at 0" in str(exc_info.value)

    def test_interleaved_tags_rejected(self) -> None:
        """<a><b></a></b> is rejected as a mismatch."""
        with pytest.raises(MismatchedTagError):
            find_all_tags("<a><b></a></b>")

    def test_errors_are_value_errors(self) -> None:
        """All extraction errors share TagExtractionError and ValueError."""
        with pytest.raises(TagExtractionError):
            find_all_tags("</a>")
        with pytest.raises(ValueError):
            find_all_tags("<a>")

    def test_no_partial_result_on_late_error(self) -> None:
        """A violation after valid pairs still aborts the whole call."""
        with pytest.raises(UnmatchedClosingTagError):
            find_all_tags("<a>ok</a> trailing </b>")
