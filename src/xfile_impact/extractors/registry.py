# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Registry of symbol extraction backends.

Backends are registered by name so configuration, cache metadata and worker
processes can all refer to them with a plain string. Worker processes in
particular cannot receive a live extractor (the tree-sitter parser does not
pickle), so they rebuild one from its name.
"""

import logging
from typing import Callable, Dict, List

from .base import SymbolExtractor

logger = logging.getLogger(__name__)

ExtractorFactory = Callable[[], SymbolExtractor]

DEFAULT_EXTRACTOR = "token"


def _create_token_extractor() -> SymbolExtractor:
    from .token_extractor import TokenSymbolExtractor

    return TokenSymbolExtractor()


def _create_tree_extractor() -> SymbolExtractor:
    # Imported on demand: loads the native grammar
    from .tree_extractor import TreeSitterSymbolExtractor

    return TreeSitterSymbolExtractor()


class ExtractorRegistry:
    """Name-to-factory mapping for extraction backends.

    Thread Safety:
    - NOT thread-safe: register all backends during initialization
    """

    def __init__(self) -> None:
        """Initialize registry with the built-in backends."""
        self._factories: Dict[str, ExtractorFactory] = {}
        self.register("token", _create_token_extractor)
        self.register("tree", _create_tree_extractor)

    def register(self, name: str, factory: ExtractorFactory) -> None:
        """Register (or replace) a backend factory.

        Args:
            name: Backend name used in configuration.
            factory: Zero-argument callable returning a SymbolExtractor.
        """
        if not name:
            raise ValueError("Extractor name cannot be empty")
        self._factories[name] = factory
        logger.debug(f"Registered extractor backend '{name}'")

    def create(self, name: str) -> SymbolExtractor:
        """Instantiate the backend registered under ``name``.

        Raises:
            ValueError: If no backend has that name.
        """
        factory = self._factories.get(name)
        if factory is None:
            raise ValueError(
                f"Unknown extractor '{name}'. Available: {', '.join(self.names())}"
            )
        return factory()

    def names(self) -> List[str]:
        return sorted(self._factories)


_registry = ExtractorRegistry()


def create_extractor(name: str = DEFAULT_EXTRACTOR) -> SymbolExtractor:
    """Create an extractor from the default registry."""
    return _registry.create(name)


def available_extractors() -> List[str]:
    return _registry.names()
