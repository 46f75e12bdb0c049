# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Symbol extraction backends for PHP source."""

from .base import SymbolExtractor
from .method_calls import MethodCallExtractor, MethodScan
from .registry import (
    DEFAULT_EXTRACTOR,
    ExtractorRegistry,
    available_extractors,
    create_extractor,
)
from .token_extractor import TokenSymbolExtractor

__all__ = [
    "SymbolExtractor",
    "TokenSymbolExtractor",
    "MethodCallExtractor",
    "MethodScan",
    "ExtractorRegistry",
    "DEFAULT_EXTRACTOR",
    "available_extractors",
    "create_extractor",
]
