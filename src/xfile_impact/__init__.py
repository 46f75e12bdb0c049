# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""xfile-impact: change-impact analysis for PHP projects."""

__version__ = "0.1.0"

from .analyzer import DependencyAnalyzer
from .builder import IncrementalGraphBuilder
from .cache import CacheManager
from .config import Config, ConfigurationError
from .file_registry import FileStateRegistry
from .graph import DependencyGraph
from .method_graph import MethodCallGraph
from .models import (
    BuildStatistics,
    CacheStatistics,
    FileFingerprint,
    LineRange,
    SymbolCategory,
    SymbolFact,
)
from .propagator import ImpactPropagator, propagate
from .strategies import DependencyStrategy, get_strategy

__all__ = [
    "DependencyAnalyzer",
    "IncrementalGraphBuilder",
    "CacheManager",
    "Config",
    "ConfigurationError",
    "FileStateRegistry",
    "DependencyGraph",
    "MethodCallGraph",
    "BuildStatistics",
    "CacheStatistics",
    "FileFingerprint",
    "LineRange",
    "SymbolCategory",
    "SymbolFact",
    "ImpactPropagator",
    "propagate",
    "DependencyStrategy",
    "get_strategy",
]
