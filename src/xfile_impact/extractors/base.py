# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Base interface for symbol extraction backends.

Two interchangeable backends implement this interface:
1. Token-stream backend (TokenSymbolExtractor): fast, regex lexer based
2. Structural backend (TreeSitterSymbolExtractor): tree-sitter PHP grammar

Both backends MUST produce set-equal SymbolFacts for valid input. The test
suite runs a shared corpus through both to keep them in agreement.
"""

import logging
from abc import ABC, abstractmethod

from xfile_impact.models import SymbolFact

logger = logging.getLogger(__name__)


class SymbolExtractor(ABC):
    """Abstract base class for symbol extraction backends.

    Extractors are stateless between calls: every call to extract() starts
    from an empty namespace and class context, so one instance may be reused
    for any number of files.

    Lifecycle:
    1. Extractor is created by name through extractors.registry
    2. The graph builder calls extract() once per changed file
    3. The returned SymbolFact is consumed immediately and discarded
    """

    @abstractmethod
    def extract(self, source: str) -> SymbolFact:
        """Extract symbol facts from PHP source text.

        Args:
            source: Full text of one source file.

        Returns:
            SymbolFact for the file. An empty SymbolFact when the source
            cannot be parsed.

        Design Notes:
        - Extractors MUST NOT raise (files mid-edit are a normal input)
        - Extractors SHOULD log unparseable input at debug level
        """
        pass

    @abstractmethod
    def name(self) -> str:
        """Return backend name used in configuration and cache metadata.

        Returns:
            Backend name (e.g., "token").
        """
        pass

    def safe_extract(self, source: str) -> SymbolFact:
        """Run extract() and collapse any unexpected error to an empty fact.

        Backends already handle malformed input themselves; this guards the
        pipeline against bugs in a backend or its native parser.
        """
        try:
            return self.extract(source)
        except Exception as e:
            logger.warning(f"{self.name()} extractor failed unexpectedly: {e}")
            return SymbolFact.empty()
