"""Ranking parsing and win tallying for judge responses.

Judges end their answer with a line such as ``**ITEM RANKING**: [2, 1, 3]``.
``parse_ranking`` extracts and validates that list; ``tally_wins`` turns
verdicts into per-judge win counts.
"""

from __future__ import annotations

from collections.abc import Iterable
import re

from crossjudge.models import JudgeVerdict

_RANKING_PATTERN: re.Pattern[str] = re.compile(
    r"\**ITEM RANKING\**:\s*\[\s*(\d+(?:\s*,\s*\d+)*)\s*\]",
    re.IGNORECASE,
)


class RankingError(ValueError):
    """Judge output did not contain a usable ranking."""


def parse_ranking(text: str, num_items: int) -> list[int]:
    """Extract a ranking of *num_items* items from judge output.

    Accepts one-based (``[2, 1, 3]``) or zero-based (``[1, 0, 2]``)
    permutations; the first match in *text* is used.

    Args:
        text: Full judge response.
        num_items: Number of items the judge was shown.

    Returns:
        Zero-based item indices, best first.

    Raises:
        RankingError: If no ranking is present, its length differs from
            *num_items*, or it is not a permutation.
    """
    match = _RANKING_PATTERN.search(text)
    if match is None:
        msg = "couldn't find rankings in LLM output"
        raise RankingError(msg)

    ranking = [int(part) for part in re.split(r"\s*,\s*", match.group(1))]

    if len(ranking) != num_items:
        msg = f"rankings wasn't the same length as inputs provided: {ranking}"
        raise RankingError(msg)

    values = set(ranking)
    if values == set(range(num_items)):
        return ranking
    if values == set(range(1, num_items + 1)):
        return [r - 1 for r in ranking]

    msg = f"invalid ranking set: {ranking}"
    raise RankingError(msg)


def tally_wins(verdicts: Iterable[JudgeVerdict]) -> dict[str, dict[str, int]]:
    """Count, per judge, how many batches each generator won.

    Only the top-ranked item of each verdict is counted.
    """
    stats: dict[str, dict[str, int]] = {}
    for verdict in verdicts:
        per_judge = stats.setdefault(verdict.judge, {})
        per_judge[verdict.winner] = per_judge.get(verdict.winner, 0) + 1
    return stats
