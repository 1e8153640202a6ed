"""Chat client and retry helper for remote model calls.

``SubprocessChatClient`` reaches each provider through its command-line
tool: the provider's argv template is filled with the model name, the
prompt is written to stdin, and stdout is the completion.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
from typing import TYPE_CHECKING, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from crossjudge.models import ModelSpec
    from crossjudge.providers import ProviderRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STDERR_LIMIT = 500


@runtime_checkable
class ChatClient(Protocol):
    """Anything able to complete a prompt with a given model."""

    async def complete(self, model: ModelSpec, prompt: str) -> str:  # noqa: D102
        ...


class SubprocessChatClient:
    """Chat client spawning one provider CLI process per call.

    Attributes:
        registry: Registry used to look up each model's provider command.
    """

    def __init__(self, registry: ProviderRegistry) -> None:
        self.registry = registry

    def build_command(self, model: ModelSpec) -> list[str]:
        """Fill the provider's argv template for *model*."""
        provider = self.registry.provider(model.provider)
        return [part.replace("{model}", model.model) for part in provider.command]

    async def complete(self, model: ModelSpec, prompt: str) -> str:
        """Send *prompt* to *model* and return its text response.

        Raises:
            RuntimeError: If the subprocess exits with non-zero status.
        """
        cmd = self.build_command(model)
        logger.debug("Invoking %s for model %s", cmd[0], model.key)

        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate(prompt.encode("utf-8"))

        if proc.returncode != 0:
            error_text = stderr.decode("utf-8", errors="replace")
            msg = (
                f"{cmd[0]} failed for {model.key} (exit {proc.returncode}): "
                f"{error_text[:_STDERR_LIMIT]}"
            )
            raise RuntimeError(msg)

        return stdout.decode("utf-8", errors="replace")


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    log: logging.Logger | logging.LoggerAdapter | None = None,
) -> T:
    """Await *func* until it succeeds, backing off exponentially.

    Delays between attempts follow ``initial_delay * 2**i`` (1 s, 2 s,
    4 s, ... with the default delay).

    Args:
        func: Coroutine function to retry; any ``Exception`` triggers a retry.
        max_attempts: Total attempts, including the first.
        initial_delay: Seconds to wait before the second attempt.
        log: Logger receiving one warning per failed attempt.

    Returns:
        The first successful result.

    Raises:
        ValueError: If *max_attempts* is below 1.
        Exception: The last error once all attempts are exhausted.
    """
    if max_attempts < 1:
        msg = f"max_attempts must be >= 1, got {max_attempts}"
        raise ValueError(msg)

    log = log if log is not None else logger
    for attempt in range(max_attempts):
        try:
            return await func()
        except Exception as exc:
            log.warning(
                "Skipping exception %d/%d: %r", attempt + 1, max_attempts, exc
            )
            if attempt == max_attempts - 1:
                raise
            await asyncio.sleep(initial_delay * 2**attempt)

    msg = "retry loop exited without a result"
    raise RuntimeError(msg)
