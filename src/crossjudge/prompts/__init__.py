"""Prompt template registry.

Loads prompt templates from the YAML files in this package directory and
provides keyed access by ``PromptKind``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from crossjudge.models import PromptKind, PromptTemplate

logger = logging.getLogger(__name__)

_PROMPTS_DIR: Path = Path(__file__).parent


class PromptRegistry:
    """Registry of prompt templates keyed by ``PromptKind``.

    Args:
        directory: Directory scanned for ``*.yaml`` templates. Defaults to
            the templates shipped with the package.
    """

    def __init__(self, directory: Path | None = None) -> None:
        self._templates: dict[PromptKind, PromptTemplate] = {}
        for yaml_path in sorted((directory or _PROMPTS_DIR).glob("*.yaml")):
            self._load_yaml(yaml_path)

    def _load_yaml(self, path: Path) -> None:
        """Load one YAML file with ``kind``, ``template`` and ``variables`` keys."""
        with path.open(encoding="utf-8") as fh:
            data: dict[str, Any] = yaml.safe_load(fh)

        try:
            kind = PromptKind(str(data["kind"]))
        except ValueError:
            logger.warning("Skipping unknown prompt kind %r in %s", data["kind"], path.name)
            return

        self._templates[kind] = PromptTemplate(
            kind=kind,
            template=str(data["template"]),
            variables=[str(v) for v in data.get("variables", [])],
        )

    def get(self, kind: PromptKind) -> PromptTemplate:
        """Return the template registered for *kind*.

        Raises:
            KeyError: If no template is registered for *kind*.
        """
        if kind not in self._templates:
            msg = f"No template registered for prompt kind: {kind!r}"
            raise KeyError(msg)
        return self._templates[kind]

    def __len__(self) -> int:
        return len(self._templates)


_singleton_registry: PromptRegistry | None = None


def get_registry() -> PromptRegistry:
    """Return the shared ``PromptRegistry``, creating it on first use."""
    global _singleton_registry  # noqa: PLW0603
    if _singleton_registry is None:
        _singleton_registry = PromptRegistry()
    return _singleton_registry


def _reset_registry() -> None:
    """Reset the singleton registry (for testing only)."""
    global _singleton_registry  # noqa: PLW0603
    _singleton_registry = None
