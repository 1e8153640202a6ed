"""crossjudge: rate-limited multi-provider generation and cross-model judging."""

from crossjudge.batching import batched_round_robin
from crossjudge.extraction import (
    MismatchedTagError,
    TagExtractionError,
    UnmatchedClosingTagError,
    UnmatchedOpeningTagError,
    find_all_tags,
)
from crossjudge.models import BatchItem, Task, TaskResult, TagMatch
from crossjudge.scheduler import (
    SchedulingError,
    execute_concurrent_tasks,
    group_by_provider,
)

__all__ = [
    "BatchItem",
    "MismatchedTagError",
    "SchedulingError",
    "TagExtractionError",
    "TagMatch",
    "Task",
    "TaskResult",
    "UnmatchedClosingTagError",
    "UnmatchedOpeningTagError",
    "batched_round_robin",
    "execute_concurrent_tasks",
    "find_all_tags",
    "group_by_provider",
]
