"""Tag-delimited content extraction.

Locates ``<name>`` / ``</name>`` tags in model output and returns the text
enclosed by each matched pair. Tags are paired with an explicit stack, so
mismatched, unmatched, or interleaved tags abort the whole extraction
instead of producing a partial result.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
import re

from crossjudge.models import TagMatch

# Tag name is any run of characters other than ``>`` and line breaks.
_TAG_PATTERN: re.Pattern[str] = re.compile(r"<(/?)([^\r\n>]+)>")


class TagExtractionError(ValueError):
    """Malformed tag structure."""


class MismatchedTagError(TagExtractionError):
    """A closing tag does not match the most recent unclosed opening tag.

    Attributes:
        opening: The unclosed opening tag on top of the stack.
        closing: The closing tag that was found instead.
    """

    def __init__(self, opening: TagMatch, closing: TagMatch) -> None:
        self.opening = opening
        self.closing = closing
        super().__init__(
            f"Mismatched tags: expected closing tag for '{opening.tag_name}' "
            f"(opened at {opening.start}) but found closing tag "
            f"'{closing.tag_name}' at position {closing.start}"
        )


class UnmatchedClosingTagError(TagExtractionError):
    """A closing tag appears with no opening tag pending."""

    def __init__(self, closing: TagMatch) -> None:
        self.closing = closing
        super().__init__(
            f"Closing tag '{closing.tag_name}' at position {closing.start} "
            "has no matching opening tag"
        )


class UnmatchedOpeningTagError(TagExtractionError):
    """Input ended with opening tags still unclosed.

    Attributes:
        unclosed: Every pending opening tag, outermost first.
    """

    def __init__(self, unclosed: list[TagMatch]) -> None:
        self.unclosed = unclosed
        listing = ", ".join(f"'{t.tag_name}' at {t.start}" for t in unclosed)
        super().__init__(f"Unmatched opening tag(s): {listing}")


def iter_tags(text: str) -> Iterator[TagMatch]:
    """Yield every tag in *text* in order of appearance."""
    for match in _TAG_PATTERN.finditer(text):
        yield TagMatch(
            is_opening=match.group(1) == "",
            tag_name=match.group(2),
            start=match.start(),
            end=match.end(),
        )


def find_all_tags(
    text: str,
    is_valid_tag: Callable[[TagMatch], bool] | None = None,
) -> list[str]:
    """Find and pair all matching tags in *text*.

    Args:
        text: Input containing tags.
        is_valid_tag: Optional filter deciding which tags take part in
            pairing. Tags it rejects are treated as plain text. All tags
            are considered by default.

    Returns:
        The inner text of each tag pair, ordered by the opening tag's
        position (outer pairs before the pairs they enclose).

    Raises:
        MismatchedTagError: A closing tag names a different tag than the
            innermost open one.
        UnmatchedClosingTagError: A closing tag has nothing to close.
        UnmatchedOpeningTagError: Opening tags remain at end of input.
    """
    tags = sorted(
        (t for t in iter_tags(text) if is_valid_tag is None or is_valid_tag(t)),
        key=lambda t: t.start,
    )

    stack: list[TagMatch] = []
    pairs: list[tuple[int, str]] = []

    for tag in tags:
        if tag.is_opening:
            stack.append(tag)
            continue

        if not stack:
            raise UnmatchedClosingTagError(tag)

        opening = stack.pop()
        if opening.tag_name != tag.tag_name:
            raise MismatchedTagError(opening, tag)

        pairs.append((opening.start, text[opening.end : tag.start]))

    if stack:
        raise UnmatchedOpeningTagError(stack)

    pairs.sort(key=lambda p: p[0])
    return [inner for _, inner in pairs]
