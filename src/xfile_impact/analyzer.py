# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""DependencyAnalyzer - service layer over the dependency graph engine.

Owns the configured extractor, strategy, cache, registry and builder for one
project, and exposes the operations collaborators need:
- build the file-level graph (incrementally when a cache exists)
- compute affected files and affected methods
- resolve symbols to declaring files
- report and clear the cache
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Set

from xfile_impact.builder import IncrementalGraphBuilder
from xfile_impact.cache import CacheManager
from xfile_impact.config import Config
from xfile_impact.extractors.base import SymbolExtractor
from xfile_impact.extractors.method_calls import MethodCallExtractor
from xfile_impact.extractors.registry import create_extractor
from xfile_impact.file_registry import FileStateRegistry
from xfile_impact.graph import DependencyGraph
from xfile_impact.method_graph import MethodCallGraph
from xfile_impact.parallel import ExecutorFactory, ParallelExtractor, read_source
from xfile_impact.propagator import ImpactPropagator
from xfile_impact.strategies import get_strategy

logger = logging.getLogger(__name__)


class DependencyAnalyzer:
    """Change-impact analysis for one project.

    Lifecycle:
    1. Construct with a project root and Config
    2. build_dependency_graph() with the current file list
    3. Query get_affected_files() / get_class_to_file_map() any number of times
    4. Optionally build_method_call_graph() and get_affected_methods()
    """

    def __init__(
        self,
        project_root: Path,
        config: Optional[Config] = None,
        extractor: Optional[SymbolExtractor] = None,
        executor_factory: Optional[ExecutorFactory] = None,
    ):
        """Initialize analyzer.

        Args:
            project_root: Project directory; all paths are relative to it.
            config: Configuration (auto-detected in project_root when None).
            extractor: Extraction backend (created from config when None).
            executor_factory: Worker pool factory for parallel extraction.

        Raises:
            ValueError: If the configured strategy or extractor is unknown.
        """
        self.project_root = Path(project_root).resolve()
        self.config = config or Config(project_root=self.project_root)
        self.strategy = get_strategy(self.config.strategy)
        self.extractor = extractor or create_extractor(self.config.extractor)

        cache_dir = Path(self.config.cache_dir)
        if not cache_dir.is_absolute():
            cache_dir = self.project_root / cache_dir
        self.cache: Optional[CacheManager] = (
            CacheManager(cache_dir) if self.config.cache_enabled else None
        )

        parallel_kwargs: Dict[str, Any] = {}
        if executor_factory is not None:
            parallel_kwargs["executor_factory"] = executor_factory
        parallel = ParallelExtractor(
            threshold=self.config.parallel_threshold,
            max_workers=self.config.max_workers or None,
            timeout_seconds=self.config.worker_timeout_seconds,
            **parallel_kwargs,
        )
        self.builder = IncrementalGraphBuilder(
            project_root=self.project_root,
            extractor=self.extractor,
            strategy=self.strategy,
            cache=self.cache,
            registry=FileStateRegistry(self.project_root, self.config.verify_digest),
            parallel=parallel,
            track_methods=self.config.track_methods,
        )
        self.method_extractor = MethodCallExtractor()
        self._method_graph: Optional[MethodCallGraph] = None

    @property
    def graph(self) -> DependencyGraph:
        return self.builder.graph

    def build_dependency_graph(self, files: Iterable[str]) -> DependencyGraph:
        """Build or incrementally update the file-level graph."""
        return self.builder.build(files)

    def get_affected_files(self, changed_files: Iterable[str]) -> Set[str]:
        """Changed files plus every tracked file that transitively depends on them."""
        return ImpactPropagator(self.graph).affected_files(changed_files)

    def build_method_call_graph(self, files: Iterable[str]) -> MethodCallGraph:
        """Build the method call graph for ``files``.

        With method tracking enabled in the configuration, the graph is kept
        by the incremental builder and cached with the file graph. Otherwise
        it is built from scratch on each call.
        """
        file_list = sorted(set(files))
        if self.builder.method_graph is not None:
            self.builder.build(file_list)
            self._method_graph = self.builder.method_graph
            return self._method_graph

        method_graph = MethodCallGraph()
        for path in file_list:
            try:
                source = read_source(self.project_root / path)
            except OSError as e:
                logger.warning(f"Skipping unreadable file {path}: {e}")
                continue
            method_graph.record_file(path, self.method_extractor.extract(source))
        method_graph.rebuild_reverse_index()
        logger.info(f"Method call graph: {len(method_graph.calls)} methods")
        self._method_graph = method_graph
        return method_graph

    @property
    def method_graph(self) -> Optional[MethodCallGraph]:
        return self._method_graph

    def get_affected_methods(self, changed_methods: Iterable[str]) -> Set[str]:
        """Changed methods plus every method that transitively calls them.

        Raises:
            ValueError: If build_method_call_graph() has not been called.
        """
        propagator = ImpactPropagator(self.graph, self._method_graph)
        return propagator.affected_methods(changed_methods)

    def get_class_to_file_map(self) -> Mapping[str, str]:
        """Read-only symbol -> declaring file map."""
        return self.graph.class_to_file_map()

    def get_cache_stats(self) -> Dict[str, Any]:
        """Advisory numbers about the last build and the on-disk cache."""
        stats: Dict[str, Any] = {"cache_enabled": self.cache is not None}
        stats.update(self.builder.last_stats.to_dict())
        if self.cache is not None:
            stats.update(self.cache.statistics().to_dict())
        return stats

    def clear_cache(self) -> bool:
        """Delete the on-disk cache. Returns False when caching is disabled."""
        if self.cache is None:
            return False
        self.builder.clear_cache()
        return True
