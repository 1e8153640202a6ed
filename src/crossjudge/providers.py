"""Model-to-provider resolution.

The scheduler groups tasks by provider so that each provider's rate limit
can be enforced independently. ``ProviderRegistry.resolve`` is the lookup
used for that grouping.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from crossjudge.models import ArenaConfig, ModelSpec, ProviderConfig


class UnknownModelError(KeyError):
    """Raised when a model key is not registered."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Unknown model key: {key!r}")

    def __str__(self) -> str:
        return str(self.args[0])


class ProviderRegistry:
    """Registry of models and the providers that serve them.

    Args:
        models: Model key -> model specification.
        providers: Provider name -> provider configuration.

    Raises:
        ValueError: If a model names a provider that is not declared.
    """

    def __init__(
        self,
        models: Mapping[str, ModelSpec],
        providers: Mapping[str, ProviderConfig],
    ) -> None:
        missing = sorted(
            {spec.provider for spec in models.values()} - set(providers)
        )
        if missing:
            msg = f"Models reference undeclared providers: {', '.join(missing)}"
            raise ValueError(msg)
        self._models = dict(models)
        self._providers = dict(providers)

    @classmethod
    def from_config(cls, config: ArenaConfig) -> ProviderRegistry:
        """Build a registry from the ``models``/``providers`` of *config*."""
        return cls(config.models, config.providers)

    def get(self, key: str) -> ModelSpec:
        """Return the specification for model *key*.

        Raises:
            UnknownModelError: If *key* is not registered.
        """
        try:
            return self._models[key]
        except KeyError:
            raise UnknownModelError(key) from None

    def resolve(self, key: str) -> str:
        """Return the provider name serving model *key*.

        Raises:
            UnknownModelError: If *key* is not registered.
        """
        return self.get(key).provider

    def provider(self, name: str) -> ProviderConfig:
        """Return the configuration of provider *name*."""
        return self._providers[name]

    def keys(self) -> list[str]:
        """Return all registered model keys."""
        return list(self._models)

    def __contains__(self, key: object) -> bool:
        return key in self._models

    def __len__(self) -> int:
        return len(self._models)
