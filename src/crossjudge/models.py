"""Core data models for crossjudge.

Defines the shared Pydantic models used by the scheduler, the batcher, the
tag extractor, and the arena pipeline, plus ``ArenaConfig`` which carries
every tunable of a run.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ---------------------------------------------------------------------------
# Scheduler models
# ---------------------------------------------------------------------------


class Task(BaseModel):
    """A unit of remote work keyed by the model that performs it.

    Attributes:
        key: Source identifier (a model key) owning the task.
        work: No-argument coroutine function performing the call.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: str
    work: Callable[[], Awaitable[Any]]


class TaskResult(BaseModel):
    """The value produced by a task that completed without raising.

    Attributes:
        provider: Provider owning the task's key.
        key: Source identifier of the originating task.
        value: Whatever the task returned.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    provider: str
    key: str
    value: Any


class BatchItem(BaseModel):
    """One element of a cross-source batch."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    source: str
    item: Any


# ---------------------------------------------------------------------------
# Tag extraction
# ---------------------------------------------------------------------------


class TagMatch(BaseModel):
    """A single ``<name>`` or ``</name>`` tag located in a text.

    Attributes:
        is_opening: ``True`` for ``<name>``, ``False`` for ``</name>``.
        tag_name: Text between the angle brackets, without the slash.
        start: Offset of ``<``.
        end: Offset one past ``>``.
    """

    model_config = ConfigDict(frozen=True)

    is_opening: bool
    tag_name: str
    start: int
    end: int


# ---------------------------------------------------------------------------
# Providers and models
# ---------------------------------------------------------------------------


class ProviderConfig(BaseModel):
    """An external capacity domain and the command used to reach it.

    ``command`` is an argv template; ``{model}`` is replaced with the
    provider-side model name. The prompt is written to the process stdin.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    command: list[str] = Field(
        default_factory=lambda: ["claude", "-p", "--model", "{model}"]
    )

    @field_validator("command")
    @classmethod
    def _command_not_empty(cls, v: list[str]) -> list[str]:
        """Reject an empty argv."""
        if not v:
            msg = "Provider command must not be empty"
            raise ValueError(msg)
        return v


class ModelSpec(BaseModel):
    """A model known to the arena.

    Attributes:
        key: Identifier used throughout the pipeline (e.g. ``"claude-haiku"``).
        provider: Name of the provider serving this model.
        model: Provider-side model name passed to the command template.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    provider: str
    model: str


class PromptKind(StrEnum):
    """Prompt templates shipped with the package."""

    GENERATE = "generate"
    JUDGE = "judge"


class PromptTemplate(BaseModel):
    """A prompt with ``{variable}`` placeholders.

    Attributes:
        kind: Which step the template belongs to.
        template: Template text using ``str.format`` placeholders.
        variables: Placeholder names expected by ``render()``.
    """

    model_config = ConfigDict(frozen=True)

    kind: PromptKind
    template: str
    variables: list[str] = []

    def render(self, **kwargs: Any) -> str:
        """Substitute placeholders with the given values.

        Raises:
            KeyError: If a placeholder has no matching keyword argument.
        """
        return self.template.format(**kwargs)


# ---------------------------------------------------------------------------
# Arena results
# ---------------------------------------------------------------------------


class JudgeVerdict(BaseModel):
    """A judge's ranking of one batch.

    Attributes:
        judge: Key of the judging model.
        sources: Generator key of each item, in the order presented.
        items: The judged item texts, in the order presented.
        ranking: Zero-based item indices, best first.
        thoughts: Raw judge response.
    """

    model_config = ConfigDict(frozen=True)

    judge: str
    sources: list[str]
    items: list[str]
    ranking: list[int]
    thoughts: str = ""

    @property
    def winner(self) -> str:
        """Generator key of the top-ranked item."""
        return self.sources[self.ranking[0]]


class ArenaResult(BaseModel):
    """Everything produced by one arena run.

    Attributes:
        words: Seed words given to every generator.
        generations: Successful generation results (value is a list of items).
        verdicts: Successful judge verdicts.
        stats: judge -> generator -> number of batches won.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    words: list[str]
    generations: list[TaskResult]
    verdicts: list[JudgeVerdict]
    stats: dict[str, dict[str, int]]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ArenaConfig(BaseModel):
    """Arena configuration.

    Defaults: 8 concurrent calls overall, 3 per provider, batches of at most
    5 items, 5 items per generation, 5 seed words, 3 attempts per step
    starting with a 1 s delay.

    Attributes:
        global_limit: Maximum in-flight tasks across all providers.
        per_provider_limit: Maximum in-flight tasks per provider.
        max_batch_size: Largest batch handed to a judge.
        items_per_generation: Items each generator must produce.
        num_words: Seed words drawn when ``words`` is not given.
        words: Fixed seed words; overrides random sampling.
        generators: Model keys producing content.
        judges: Model keys ranking content.
        providers: Provider name -> provider configuration.
        models: Model key -> model specification.
        max_attempts: Attempts per step before the task is dropped.
        initial_retry_delay: Delay before the second attempt, in seconds.
        log_level: Logging level name.
        log_file: Optional log file path.
        log_outputs: Whether step outputs are dumped to the log.
        seed: Optional seed for reproducible sampling and shuffling.
    """

    model_config = ConfigDict(frozen=True)

    global_limit: int = 8
    per_provider_limit: int = 3
    max_batch_size: int = 5
    items_per_generation: int = 5
    num_words: int = 5
    words: list[str] | None = None

    generators: list[str] = []
    judges: list[str] = []
    providers: dict[str, ProviderConfig] = {}
    models: dict[str, ModelSpec] = {}

    max_attempts: int = 3
    initial_retry_delay: float = 1.0

    log_level: str = "INFO"
    log_file: str | None = None
    log_outputs: bool = False
    seed: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _fill_names_from_keys(cls, data: Any) -> Any:
        """Let YAML mappings omit ``name``/``key`` fields repeated from the key."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for field, attr in (("providers", "name"), ("models", "key")):
            entries = data.get(field)
            if isinstance(entries, dict):
                data[field] = {
                    k: {attr: k, **v} if isinstance(v, dict) else v
                    for k, v in entries.items()
                }
        return data

    @field_validator(
        "global_limit",
        "per_provider_limit",
        "items_per_generation",
        "num_words",
        "max_attempts",
    )
    @classmethod
    def _must_be_positive(cls, v: int) -> int:
        """Validate that counts and limits are >= 1."""
        if v < 1:
            msg = "Value must be >= 1"
            raise ValueError(msg)
        return v

    @field_validator("max_batch_size")
    @classmethod
    def _batch_must_allow_pairs(cls, v: int) -> int:
        """A batch must be able to hold at least two items."""
        if v < 2:
            msg = "max_batch_size must be >= 2"
            raise ValueError(msg)
        return v

    @field_validator("initial_retry_delay")
    @classmethod
    def _delay_non_negative(cls, v: float) -> float:
        """Reject negative retry delays."""
        if v < 0:
            msg = "initial_retry_delay must be >= 0"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def _check_model_references(self) -> ArenaConfig:
        """Every generator and judge must name a configured model."""
        unknown = [k for k in [*self.generators, *self.judges] if k not in self.models]
        if unknown:
            msg = f"Unknown model keys: {', '.join(sorted(set(unknown)))}"
            raise ValueError(msg)
        return self
