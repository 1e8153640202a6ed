"""Logging setup and per-step log helpers.

Every pipeline step logs through a ``StepLogger`` whose messages are
prefixed with ``[pipeline/model]`` so interleaved output from concurrent
tasks stays attributable.
"""

from __future__ import annotations

import logging
from pathlib import Path
import textwrap
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping, MutableMapping

    from crossjudge.models import ArenaConfig

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s %(message)s"

_DISCRIMINATOR_WIDTH = 40


def configure_logging(config: ArenaConfig) -> None:
    """Configure the ``crossjudge`` logger from *config*.

    Adds a console handler and, when ``config.log_file`` is set, a file
    handler. Repeated calls do not duplicate handlers.
    """
    root = logging.getLogger("crossjudge")
    root.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))

    if not any(
        type(h) is logging.StreamHandler for h in root.handlers
    ):
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(_LOG_FORMAT))
        root.addHandler(console)

    if config.log_file is not None:
        resolved = str(Path(config.log_file).resolve())
        has_file = any(
            isinstance(h, logging.FileHandler)
            and getattr(h, "baseFilename", None) == resolved
            for h in root.handlers
        )
        if not has_file:
            file_handler = logging.FileHandler(config.log_file)
            file_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
            root.addHandler(file_handler)


class StepLogger(logging.LoggerAdapter):
    """Logger adapter prefixing messages with a ``[pipeline/model]`` tag."""

    def __init__(self, logger: logging.Logger, pipeline: str, model: str) -> None:
        super().__init__(logger, {"pipeline": pipeline, "model": model})
        self.prefix = f"[{pipeline}/{model}] ".ljust(_DISCRIMINATOR_WIDTH)

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        """Prepend the padded ``[pipeline/model]`` prefix to *msg*."""
        return f"{self.prefix}{msg}", kwargs


def format_outputs(outputs: Mapping[str, Any]) -> str:
    """Render named step outputs as indented ``<name>value</name>`` blocks.

    Multi-line values put the tags on their own lines.
    """
    blocks = []
    for name, value in outputs.items():
        text = str(value)
        if "\n" in text:
            blocks.append(f"<{name}>\n{text}\n</{name}>")
        else:
            blocks.append(f"<{name}>{text}</{name}>")
    return textwrap.indent("\n\n".join(blocks), "    ")
