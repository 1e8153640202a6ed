"""Rate-limited concurrent task scheduler.

Runs many independent remote-call tasks at once while bounding in-flight
work twice: a global ceiling shared by all providers, and a ceiling per
provider. A task that raises is reported and dropped; the others keep
running, and only successful results are returned.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
import logging
from typing import Any, TypeVar

from crossjudge.models import Task, TaskResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

TaskSet = dict[str, list[Task]]
"""Provider name -> tasks served by that provider, in input order."""

FailureHook = Callable[[str, BaseException], None]


class SchedulingError(Exception):
    """The scheduling scope itself failed (not an individual task).

    Attributes:
        diagnostics: Structured context about the failure.
    """

    def __init__(self, message: str, *, diagnostics: dict[str, Any]) -> None:
        super().__init__(message)
        self.diagnostics = diagnostics


class FailedTaskError(Exception):
    """A task body failed after its error was already reported.

    Attributes:
        key: Key of the failed task.
    """

    def __init__(self, key: str) -> None:
        super().__init__(f"task {key!r} failed")
        self.key = key


def _log_failure(key: str, exc: BaseException) -> None:
    """Default failure hook: log the failing task at WARNING.

    Args:
        key: Key of the failed task.
        exc: The exception the task raised.
    """
    logger.warning("Task %s failed: %s", key, exc)


def group_by_provider(
    tasks: Iterable[Task],
    resolve: Callable[[str], str],
) -> TaskSet:
    """Group *tasks* by the provider owning each task's key.

    Args:
        tasks: Tasks to group; order within a provider is preserved.
        resolve: Maps a task key to its provider name.

    Returns:
        Mapping of provider name to that provider's tasks.

    Raises:
        UnknownModelError: If *resolve* does not know a key.
    """
    grouped: TaskSet = {}
    for task in tasks:
        grouped.setdefault(resolve(task.key), []).append(task)
    return grouped


def error_caught(
    key: str, func: Callable[[], Awaitable[T]]
) -> Callable[[], Awaitable[T]]:
    """Wrap a task body so its failure is logged before being re-raised.

    Used for pipeline steps that have already exhausted their retries: the
    original error is logged once here and surfaced to the scheduler as a
    ``FailedTaskError``.
    """

    async def wrapped() -> T:
        try:
            return await func()
        except Exception as exc:
            logger.error(
                "[!!!] pipeline failed, skipping execution for %s - %r", key, exc
            )
            raise FailedTaskError(key) from exc

    return wrapped


def for_each_model(
    keys: Iterable[str],
    block: Callable[[str], Awaitable[T]],
    resolve: Callable[[str], str],
) -> TaskSet:
    """Create one error-wrapped task per model key, grouped by provider.

    Args:
        keys: Model keys; each becomes one task.
        block: Coroutine function called with the model key.
        resolve: Maps a model key to its provider name.
    """
    tasks = [
        Task(key=key, work=error_caught(key, lambda key=key: block(key)))
        for key in keys
    ]
    return group_by_provider(tasks, resolve)


async def execute_concurrent_tasks(
    task_set: TaskSet,
    *,
    global_limit: int = 8,
    per_provider_limit: int = 3,
    on_failure: FailureHook | None = None,
) -> list[TaskResult]:
    """Execute every task in *task_set* concurrently under two ceilings.

    No more than *global_limit* tasks run at once overall and no more than
    *per_provider_limit* run at once for a given provider. A task holds the
    global permit, then its provider's permit, for its whole run; both are
    released on success, failure, and cancellation.

    Args:
        task_set: Provider name -> tasks for that provider.
        global_limit: Ceiling on in-flight tasks across all providers.
        per_provider_limit: Ceiling on in-flight tasks per provider. May
            exceed *global_limit*, in which case the global ceiling rules.
        on_failure: Called with ``(key, error)`` for every failing task.
            Defaults to logging a warning. For a ``FailedTaskError`` the
            hook receives the original error instead, and the default
            hook stays silent since ``error_caught`` already logged it.

    Returns:
        Results of the tasks that completed without raising, in
        completion order.

    Raises:
        ValueError: If either limit is below 1.
        SchedulingError: If the task scope fails structurally, e.g. the
            failure hook raises.
    """
    if global_limit < 1 or per_provider_limit < 1:
        msg = (
            f"Concurrency limits must be >= 1, got global={global_limit}, "
            f"per_provider={per_provider_limit}"
        )
        raise ValueError(msg)

    total = sum(len(tasks) for tasks in task_set.values())
    if total == 0:
        return []

    report = on_failure if on_failure is not None else _log_failure
    global_semaphore = asyncio.Semaphore(global_limit)
    completed: list[TaskResult] = []

    async def run(provider: str, semaphore: asyncio.Semaphore, task: Task) -> None:
        async with global_semaphore, semaphore:
            try:
                value = await task.work()
            except FailedTaskError as exc:
                if on_failure is not None:
                    on_failure(task.key, exc.__cause__ or exc)
                return
            except Exception as exc:
                report(task.key, exc)
                return
        completed.append(TaskResult(provider=provider, key=task.key, value=value))

    logger.debug(
        "Scheduling %d tasks across %d providers (global=%d, per_provider=%d)",
        total,
        len(task_set),
        global_limit,
        per_provider_limit,
    )

    try:
        async with asyncio.TaskGroup() as group:
            for provider, tasks in task_set.items():
                provider_semaphore = asyncio.Semaphore(per_provider_limit)
                for task in tasks:
                    group.create_task(run(provider, provider_semaphore, task))
    except ExceptionGroup as exc:
        msg = f"Task scope failed: {exc.exceptions[0]!r}"
        raise SchedulingError(
            msg,
            diagnostics={
                "total_tasks": total,
                "completed": len(completed),
                "errors": [repr(e) for e in exc.exceptions],
            },
        ) from exc

    logger.info("%d/%d tasks succeeded", len(completed), total)
    return completed
