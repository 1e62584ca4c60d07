"""User-supplied schema transformers, applied in priority order (highest first)."""

import inspect
import logging
from typing import Protocol

from api_contract_gen.errors import ConfigError
from api_contract_gen.routing.reflection import locate

logger = logging.getLogger(__name__)


class SchemaTransformer(Protocol):
    priority: int

    def transform(self, schema: dict) -> dict: ...


class SchemaTransformerRegistry:
    def __init__(self):
        self._transformers: list[tuple[int, int, SchemaTransformer]] = []

    def register(self, transformer: SchemaTransformer) -> None:
        priority = getattr(transformer, "priority", 0)
        # registration order breaks priority ties
        self._transformers.append((priority, len(self._transformers), transformer))

    def __len__(self) -> int:
        return len(self._transformers)

    def apply(self, schema: dict) -> dict:
        ordered = sorted(self._transformers, key=lambda t: (-t[0], t[1]))
        for _, _, transformer in ordered:
            schema = transformer.transform(schema)
        return schema

    @classmethod
    def from_references(cls, references: list[str]) -> "SchemaTransformerRegistry":
        """Build a registry from dotted class paths ('pkg.module.Class' or 'pkg.module:Class')."""
        registry = cls()
        for reference in references:
            target = locate(reference.replace(":", "."))
            if target is None:
                raise ConfigError(f"Schema transformer not found: '{reference}'")
            transformer = target() if inspect.isclass(target) else target
            if not callable(getattr(transformer, "transform", None)):
                raise ConfigError(f"Schema transformer '{reference}' has no transform() method")
            registry.register(transformer)
            logger.debug("Registered schema transformer %s", reference)
        return registry
