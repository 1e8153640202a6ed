"""Round-robin fair-pairing of per-source results into judging batches.

Each batch takes at most one item per source, so a judge always compares
contributions from different generators. Batches that end up with a single
item cannot be compared and are dropped, which means trailing items of an
unevenly depleted source may never be judged.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
import logging
import random
from typing import Any

from crossjudge.models import BatchItem, TaskResult

logger = logging.getLogger(__name__)


class _SourceCursor:
    """Walks one source's items in a private random order."""

    def __init__(self, source: str, items: Sequence[Any], rng: random.Random) -> None:
        self.source = source
        self._items = list(items)
        rng.shuffle(self._items)
        self._pos = 0

    def has_next(self) -> bool:
        """Return True while unconsumed items remain."""
        return self._pos < len(self._items)

    def next(self) -> BatchItem:
        """Consume the next item, tagged with this cursor's source."""
        item = self._items[self._pos]
        self._pos += 1
        return BatchItem(source=self.source, item=item)


def _build_cursors(
    results: Iterable[TaskResult], rng: random.Random
) -> list[_SourceCursor]:
    """Build one shuffled cursor per distinct result key.

    Args:
        results: Scheduler results whose ``value`` is a sequence of items.
        rng: Random source used to shuffle each source's items.

    Returns:
        Cursors in first-seen key order.

    Raises:
        TypeError: If a result's value is not a list-like sequence of items.
    """
    pools: dict[str, list[Any]] = {}
    for result in results:
        if isinstance(result.value, (str, bytes)) or not isinstance(
            result.value, Sequence
        ):
            msg = (
                f"Result {result.key!r} must hold a sequence of items, "
                f"got {type(result.value).__name__}"
            )
            raise TypeError(msg)
        # Results sharing a key are one source.
        pools.setdefault(result.key, []).extend(result.value)
    return [_SourceCursor(source, items, rng) for source, items in pools.items()]


def batched_round_robin(
    results: Iterable[TaskResult],
    max_batch_size: int = 5,
    *,
    rng: random.Random | None = None,
) -> Iterator[list[BatchItem]]:
    """Regroup per-source result lists into cross-source batches.

    Every round samples up to *max_batch_size* sources that still have
    items, in random order, and takes one item from each. Each source's
    items are consumed in an order shuffled once up front. Rounds continue
    until all sources are exhausted; rounds yielding fewer than two items
    are discarded.

    Args:
        results: Scheduler results whose ``value`` is a sequence of items.
        max_batch_size: Upper bound on batch length; must be >= 2.
        rng: Random source, for reproducible batching.

    Returns:
        A single-use iterator of batches.

    Raises:
        ValueError: If *max_batch_size* is below 2. Raised on call, not
            on first iteration.
        TypeError: If a result's value is a string or is not a sequence.
            Also raised on call.
    """
    if max_batch_size <= 1:
        msg = f"max_batch_size must be >= 2, got {max_batch_size}"
        raise ValueError(msg)

    rng = rng if rng is not None else random.Random()
    cursors = _build_cursors(results, rng)
    return _iterate_batches(cursors, max_batch_size, rng)


def _iterate_batches(
    cursors: list[_SourceCursor], max_batch_size: int, rng: random.Random
) -> Iterator[list[BatchItem]]:
    """Yield batches until every cursor is exhausted, skipping singletons.

    Args:
        cursors: Per-source cursors.
        max_batch_size: Upper bound on batch length.
        rng: Random source for choosing which sources join each batch.

    Yields:
        Lists of two or more items, each from a different source.
    """
    while True:
        remaining = [c for c in cursors if c.has_next()]
        if not remaining:
            return

        chosen = rng.sample(remaining, min(max_batch_size, len(remaining)))
        batch = [cursor.next() for cursor in chosen]

        if len(batch) > 1:
            yield batch
        else:
            logger.debug(
                "Discarding single-item batch from %s", batch[0].source
            )
