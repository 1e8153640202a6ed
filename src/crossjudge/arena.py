"""Arena pipeline: generate with every model, then cross-judge the output.

Each generator model writes a set of items from shared seed words. The
successful generations are regrouped into round-robin batches holding at
most one item per generator, and each batch is ranked by the next judge
in a rotating, reshuffled judge order. Win counts show which generator
each judge preferred.

Provides ``run_arena()`` (async) and ``run_arena_sync()`` as entry points.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator, Sequence
import logging
import os
import random
from typing import TYPE_CHECKING, Any

from crossjudge.batching import batched_round_robin
from crossjudge.client import ChatClient, SubprocessChatClient, retry_with_backoff
from crossjudge.extraction import find_all_tags
from crossjudge.logs import StepLogger, configure_logging, format_outputs
from crossjudge.models import (
    ArenaConfig,
    ArenaResult,
    BatchItem,
    JudgeVerdict,
    PromptKind,
    Task,
)
from crossjudge.prompts import PromptRegistry, get_registry
from crossjudge.providers import ProviderRegistry
from crossjudge.scheduler import (
    error_caught,
    execute_concurrent_tasks,
    for_each_model,
    group_by_provider,
)
from crossjudge.scoring import parse_ranking, tally_wins

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

SEED_WORDS: tuple[str, ...] = (
    "anchor", "balloon", "candle", "dragon", "engine", "feather", "glacier",
    "harbor", "island", "jungle", "kettle", "lantern", "meadow", "needle",
    "orchard", "pepper", "quarry", "ribbon", "saddle", "thunder", "umbrella",
    "velvet", "walnut", "yacht", "zipper", "biscuit", "cactus", "dolphin",
    "eclipse", "falcon", "goblin", "hammock", "igloo", "jigsaw", "koala",
    "ladder", "magnet", "noodle", "otter", "pirate", "quilt", "rocket",
    "sandal", "teapot", "unicorn", "volcano", "wizard", "xylophone", "yogurt",
    "zeppelin",
)  # fmt: skip


class ArenaError(Exception):
    """Arena run failure with diagnostic context.

    Attributes:
        diagnostics: Structured information about the failure.
    """

    def __init__(self, message: str, *, diagnostics: dict[str, Any]) -> None:
        super().__init__(message)
        self.diagnostics = diagnostics


# ---------------------------------------------------------------------------
# Environment variable support
# ---------------------------------------------------------------------------

_ENV_FIELD_MAP: dict[str, str] = {
    "CROSSJUDGE_GLOBAL_LIMIT": "global_limit",
    "CROSSJUDGE_PER_PROVIDER_LIMIT": "per_provider_limit",
    "CROSSJUDGE_MAX_BATCH_SIZE": "max_batch_size",
    "CROSSJUDGE_LOG_LEVEL": "log_level",
    "CROSSJUDGE_SEED": "seed",
}
"""Maps environment variable names to ArenaConfig field names."""

_INT_MINIMUMS: dict[str, int] = {
    "global_limit": 1,
    "per_provider_limit": 1,
    "max_batch_size": 2,
    "seed": -(2**63),
}


def apply_env_overrides(config: ArenaConfig) -> ArenaConfig:
    """Apply ``CROSSJUDGE_*`` env var overrides to *config*.

    Environment variables only replace fields still at their default value;
    values set explicitly in the config win. Unparseable or out-of-range
    values are ignored.
    """
    defaults = ArenaConfig()
    overrides: dict[str, Any] = {}

    for env_var, field_name in _ENV_FIELD_MAP.items():
        raw = os.environ.get(env_var)
        if raw is None:
            continue
        if getattr(config, field_name) != getattr(defaults, field_name):
            continue

        parsed = _parse_env_value(field_name, raw)
        if parsed is not None:
            overrides[field_name] = parsed

    if not overrides:
        return config
    return config.model_copy(update=overrides)


def _parse_env_value(field_name: str, raw: str) -> Any:
    """Parse *raw* for *field_name*, returning ``None`` when invalid."""
    if field_name == "log_level":
        return raw

    try:
        value = int(raw)
    except ValueError:
        return None
    if value < _INT_MINIMUMS[field_name]:
        return None
    return value


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


async def run_step(
    name: str,
    step: Callable[[], Awaitable[dict[str, Any]]],
    *,
    log: StepLogger,
    config: ArenaConfig,
) -> dict[str, Any]:
    """Run one named pipeline step with retries and step logging.

    The step returns its named outputs; they are dumped to the log when
    ``config.log_outputs`` is set.
    """
    log.info("Executing step: %s...", name)
    outputs = await retry_with_backoff(
        step,
        max_attempts=config.max_attempts,
        initial_delay=config.initial_retry_delay,
        log=log,
    )
    if config.log_outputs:
        log.info("Outputs:\n%s", format_outputs(outputs))
    return outputs


async def generate_items(
    client: ChatClient,
    registry: ProviderRegistry,
    model: str,
    words: Sequence[str],
    *,
    prompts: PromptRegistry,
    items_per_generation: int,
) -> list[str]:
    """Ask *model* for items built from *words* and extract them.

    Raises:
        TagExtractionError: If the response has malformed ``<itemN>`` tags.
        ValueError: If the number of items differs from *items_per_generation*.
    """
    prompt = prompts.get(PromptKind.GENERATE).render(
        WORDS=", ".join(words), NUM_ITEMS=items_per_generation
    )
    raw = await client.complete(registry.get(model), prompt)

    items = [
        item.strip()
        for item in find_all_tags(raw, lambda tag: tag.tag_name.startswith("item"))
    ]
    if len(items) != items_per_generation:
        msg = f"got {len(items)} results in generation instead of {items_per_generation}"
        raise ValueError(msg)
    return items


def format_items(items: Sequence[str]) -> str:
    """Wrap each item in ``<itemN>`` tags, numbered from 1."""
    return "\n\n".join(
        f"<item{i}>\n{text}\n</item{i}>" for i, text in enumerate(items, start=1)
    )


async def judge_items(
    client: ChatClient,
    registry: ProviderRegistry,
    model: str,
    items: Sequence[str],
    *,
    prompts: PromptRegistry,
) -> tuple[str, list[int]]:
    """Ask *model* to rank *items*.

    Returns:
        The raw judge response and the zero-based ranking, best first.

    Raises:
        RankingError: If the response holds no valid ranking.
    """
    prompt = prompts.get(PromptKind.JUDGE).render(ITEMS=format_items(items))
    thoughts = await client.complete(registry.get(model), prompt)
    return thoughts, parse_ranking(thoughts, len(items))


def judge_rotation(judges: Sequence[str], rng: random.Random) -> Iterator[str]:
    """Cycle through *judges* forever, reshuffling on every pass.

    An empty *judges* yields nothing.
    """
    order = list(judges)
    while order:
        rng.shuffle(order)
        yield from order


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def _pick_words(config: ArenaConfig, rng: random.Random) -> list[str]:
    """Return the configured seed words, or sample *num_words* from SEED_WORDS.

    Args:
        config: Arena configuration.
        rng: Random source for sampling.

    Returns:
        Seed words for every generator prompt.
    """
    if config.words:
        return list(config.words)
    return rng.sample(SEED_WORDS, min(config.num_words, len(SEED_WORDS)))


def _judge_task(
    judge: str,
    batch: list[BatchItem],
    *,
    client: ChatClient,
    registry: ProviderRegistry,
    prompts: PromptRegistry,
    config: ArenaConfig,
) -> Task:
    """Build the task in which *judge* ranks one batch.

    The task's work is wrapped by ``error_caught``, so a judge that still
    fails after retries is logged once and dropped by the scheduler.

    Args:
        judge: Model key of the judge.
        batch: Items to rank, one per source.
        client: Chat client used for the completion.
        registry: Provider registry resolving *judge*.
        prompts: Prompt templates.
        config: Arena configuration (retry and logging settings).

    Returns:
        A Task keyed by the judge whose result is a JudgeVerdict.
    """
    items = [str(entry.item) for entry in batch]
    log = StepLogger(logger, "critic", judge)

    async def step() -> dict[str, Any]:
        thoughts, ranking = await judge_items(
            client, registry, judge, items, prompts=prompts
        )
        return {"thoughts": thoughts, "ranking": ranking}

    async def work() -> JudgeVerdict:
        outputs = await run_step("Criticize content", step, log=log, config=config)
        return JudgeVerdict(
            judge=judge,
            sources=[entry.source for entry in batch],
            items=items,
            ranking=outputs["ranking"],
            thoughts=outputs["thoughts"],
        )

    return Task(key=judge, work=error_caught(judge, work))


async def run_arena(
    config: ArenaConfig,
    *,
    client: ChatClient | None = None,
    rng: random.Random | None = None,
    prompts: PromptRegistry | None = None,
) -> ArenaResult:
    """Execute a full generate-then-judge arena run.

    Args:
        config: Arena configuration.
        client: Chat client; defaults to ``SubprocessChatClient``.
        rng: Random source; defaults to one seeded with ``config.seed``.
        prompts: Prompt registry; defaults to the packaged templates.

    Returns:
        Generations, verdicts, and per-judge win counts.

    Raises:
        ValueError: If no generators or no judges are configured.
        ArenaError: If no generation succeeded.
    """
    config = apply_env_overrides(config)
    configure_logging(config)

    if not config.generators or not config.judges:
        msg = "At least one generator and one judge are required"
        raise ValueError(msg)

    registry = ProviderRegistry.from_config(config)
    rng = rng if rng is not None else random.Random(config.seed)
    client = client if client is not None else SubprocessChatClient(registry)
    prompts = prompts if prompts is not None else get_registry()
    judges = judge_rotation(config.judges, rng)

    words = _pick_words(config, rng)
    logger.info(
        "Arena: %d generators, %d judges, words=%s",
        len(config.generators),
        len(config.judges),
        ", ".join(words),
    )

    async def generate(model: str) -> list[str]:
        log = StepLogger(logger, "cardgen", model)

        async def step() -> dict[str, Any]:
            items = await generate_items(
                client,
                registry,
                model,
                words,
                prompts=prompts,
                items_per_generation=config.items_per_generation,
            )
            return {"output": items}

        outputs = await run_step("Generate content", step, log=log, config=config)
        return outputs["output"]

    generator_order = list(config.generators)
    rng.shuffle(generator_order)
    generations = await execute_concurrent_tasks(
        for_each_model(generator_order, generate, registry.resolve),
        global_limit=config.global_limit,
        per_provider_limit=config.per_provider_limit,
    )
    if not generations:
        msg = "No generator produced usable output"
        raise ArenaError(
            msg, diagnostics={"generators": generator_order, "words": words}
        )

    judge_tasks = [
        _judge_task(
            next(judges),
            batch,
            client=client,
            registry=registry,
            prompts=prompts,
            config=config,
        )
        for batch in batched_round_robin(
            generations, config.max_batch_size, rng=rng
        )
    ]
    logger.info("Judging %d batches", len(judge_tasks))

    judged = await execute_concurrent_tasks(
        group_by_provider(judge_tasks, registry.resolve),
        global_limit=config.global_limit,
        per_provider_limit=config.per_provider_limit,
    )
    verdicts = [result.value for result in judged]

    return ArenaResult(
        words=words,
        generations=generations,
        verdicts=verdicts,
        stats=tally_wins(verdicts),
    )


def run_arena_sync(config: ArenaConfig, **kwargs: Any) -> ArenaResult:
    """Synchronous wrapper for ``run_arena()`` via ``asyncio.run()``."""
    return asyncio.run(run_arena(config, **kwargs))
