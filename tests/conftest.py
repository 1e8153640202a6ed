"""Shared fixtures for the crossjudge test suite."""

from __future__ import annotations

from collections.abc import Callable, Iterator
import logging
import os
import re
from typing import Any

from crossjudge.models import (
    ArenaConfig,
    ModelSpec,
    ProviderConfig,
    TaskResult,
)
from crossjudge.prompts import _reset_registry
from crossjudge.providers import ProviderRegistry
import pytest

# ---------------------------------------------------------------------------
# Factory functions (plain functions, importable from conftest)
# ---------------------------------------------------------------------------

MODELS: dict[str, str] = {
    "alpha": "p1",
    "beta": "p1",
    "gamma": "p2",
    "delta": "p2",
    "judge-a": "p1",
    "judge-b": "p2",
}
"""Model key -> provider used by the default test config."""


def make_config(**overrides: Any) -> ArenaConfig:
    """Build a valid ArenaConfig over two providers and six models.

    Args:
        **overrides: Field values to override.

    Returns:
        A fully constructed ArenaConfig instance.
    """
    defaults: dict[str, Any] = {
        "providers": {
            "p1": ProviderConfig(name="p1", command=["tool-one", "{model}"]),
            "p2": ProviderConfig(name="p2", command=["tool-two", "-m", "{model}"]),
        },
        "models": {
            key: ModelSpec(key=key, provider=provider, model=f"{key}-v1")
            for key, provider in MODELS.items()
        },
        "generators": ["alpha", "beta", "gamma", "delta"],
        "judges": ["judge-a", "judge-b"],
        "words": ["anchor", "balloon"],
        "initial_retry_delay": 0.0,
        "seed": 7,
    }
    defaults.update(overrides)
    return ArenaConfig(**defaults)


def make_registry() -> ProviderRegistry:
    """Build a ProviderRegistry from the default test config."""
    return ProviderRegistry.from_config(make_config())


def make_result(key: str, value: Any, provider: str = "p1") -> TaskResult:
    """Build a TaskResult."""
    return TaskResult(provider=provider, key=key, value=value)


def item_response(count: int, prefix: str = "card") -> str:
    """Build a generator response with *count* ``<itemN>`` blocks."""
    return "\n\n".join(
        f"<item{i}>\n{prefix} {i}\n</item{i}>" for i in range(1, count + 1)
    )


def ranking_response(num_items: int, *, one_based: bool = True) -> str:
    """Build a judge response ranking items in presentation order."""
    start = 1 if one_based else 0
    ranking = ", ".join(str(i) for i in range(start, start + num_items))
    return f"Item 1 reads best.\n\n**ITEM RANKING**: [{ranking}]"


class FakeChatClient:
    """Scripted ChatClient: answers generate prompts with items, judge prompts with rankings.

    Attributes:
        calls: ``(model_key, prompt)`` for every completion requested.
        fail_models: Model keys whose calls always raise.
    """

    def __init__(
        self,
        *,
        items_per_generation: int = 5,
        fail_models: set[str] | None = None,
        responder: Callable[[str, str], str] | None = None,
    ) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail_models = fail_models or set()
        self._items = items_per_generation
        self._responder = responder

    async def complete(self, model: ModelSpec, prompt: str) -> str:
        self.calls.append((model.key, prompt))
        if model.key in self.fail_models:
            msg = f"{model.key} is unavailable"
            raise RuntimeError(msg)
        if self._responder is not None:
            return self._responder(model.key, prompt)
        if "ITEM RANKING" in prompt:
            count = len(re.findall(r"<item\d+>", prompt))
            return ranking_response(count)
        return item_response(self._items, prefix=model.key)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def config() -> ArenaConfig:
    """Return the default test ArenaConfig."""
    return make_config()


@pytest.fixture()
def registry() -> ProviderRegistry:
    """Return a ProviderRegistry built from the default test config."""
    return make_registry()


@pytest.fixture()
def fake_client() -> FakeChatClient:
    """Return a FakeChatClient producing five items per generation."""
    return FakeChatClient()


@pytest.fixture(autouse=True)
def _reset_prompt_registry() -> None:
    """Ensure each test starts with a fresh prompt registry singleton."""
    _reset_registry()


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    """Undo handler and level changes made by configure_logging()."""
    logger = logging.getLogger("crossjudge")
    handlers = list(logger.handlers)
    level = logger.level
    yield
    for handler in logger.handlers[:]:
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove CROSSJUDGE_* env vars so tests see default configuration."""
    for name in list(os.environ):
        if name.startswith("CROSSJUDGE_"):
            monkeypatch.delenv(name)
