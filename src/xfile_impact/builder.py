# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Incremental dependency graph builder.

Build algorithm, given the current candidate file list:
1. Load the cached snapshot. If absent: full build (extract every file, rebuild
   the reverse index, commit fingerprints, save) and stop.
2. Restore the graph maps from the snapshot.
3. Ask the registry which files changed, appeared or disappeared.
4. Nothing changed: pure cache hit, the restored maps are the result.
5. Drop every file that is no longer a candidate.
6. Drop and re-extract only the changed files, splicing results into the
   existing maps.
7. Rebuild the reverse index from scratch (linear).
8. Commit fingerprints and save the snapshot.

Extraction cost is proportional to the size of the edit, not of the project.

Thread Safety:
- NOT thread-safe: one build at a time per builder
"""

import logging
import time
from pathlib import Path
from typing import Iterable, List, Optional, Set

from xfile_impact.cache import CacheManager, GraphSnapshot
from xfile_impact.extractors.base import SymbolExtractor
from xfile_impact.file_registry import FileStateRegistry
from xfile_impact.graph import DependencyGraph
from xfile_impact.method_graph import MethodCallGraph
from xfile_impact.models import BuildStatistics
from xfile_impact.parallel import FileExtraction, ParallelExtractor
from xfile_impact.strategies import DependencyStrategy

logger = logging.getLogger(__name__)


class IncrementalGraphBuilder:
    """Keeps a DependencyGraph in sync with the project's source files.

    The builder owns one DependencyGraph (and, with method tracking, one
    MethodCallGraph) for its whole lifetime. Full builds clear and refill that
    same object; incremental builds mutate it in place.
    """

    def __init__(
        self,
        project_root: Path,
        extractor: SymbolExtractor,
        strategy: DependencyStrategy,
        cache: Optional[CacheManager] = None,
        registry: Optional[FileStateRegistry] = None,
        parallel: Optional[ParallelExtractor] = None,
        track_methods: bool = False,
    ):
        """Initialize builder.

        Args:
            project_root: Root that all file paths are relative to.
            extractor: Symbol extraction backend.
            strategy: Selects which extracted symbols count as dependencies.
            cache: Snapshot persistence. None disables caching (every build
                is a full build).
            registry: Fingerprint registry (created when None).
            parallel: Extraction fan-out (sequential-only default when None).
            track_methods: Also maintain the method call graph.
        """
        self.project_root = Path(project_root)
        self.extractor = extractor
        self.strategy = strategy
        self.cache = cache
        self.registry = registry or FileStateRegistry(self.project_root)
        self.parallel = parallel or ParallelExtractor()
        self.track_methods = track_methods

        self.graph = DependencyGraph()
        self.method_graph: Optional[MethodCallGraph] = (
            MethodCallGraph() if track_methods else None
        )
        self.last_stats = BuildStatistics()

    def build(self, all_files: Iterable[str]) -> DependencyGraph:
        """Bring the graph up to date with ``all_files``.

        Args:
            all_files: Project-relative paths of every file that currently
                exists and should be tracked.

        Returns:
            The builder's DependencyGraph.
        """
        start = time.perf_counter()
        files = sorted(set(all_files))

        snapshot = self._load_snapshot()
        if snapshot is None:
            self._full_build(files)
        else:
            self._incremental_build(files, snapshot)

        self.last_stats.duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Graph build: {self.last_stats.files_parsed} parsed, "
            f"{self.last_stats.files_from_cache} from cache, "
            f"{self.last_stats.files_dropped} dropped "
            f"({self.last_stats.duration_ms:.1f}ms)"
        )
        return self.graph

    def _load_snapshot(self) -> Optional[GraphSnapshot]:
        if self.cache is None:
            return None
        snapshot = self.cache.load_graph(
            self.extractor.name(), self.strategy.name, self.track_methods
        )
        if snapshot is None:
            return None
        if not self.cache.load_registry(self.registry):
            logger.info("File registry cache unusable; doing a full build")
            return None
        return snapshot

    def _full_build(self, files: List[str]) -> None:
        logger.info(f"Full build of {len(files)} files")
        self.graph.clear()
        if self.method_graph is not None:
            self.method_graph.clear()
        self.registry.clear()

        unreadable = self._extract_and_splice(files)

        self._rebuild_reverse_indexes()
        self.registry.commit(f for f in files if f not in unreadable)
        self._save()
        self.last_stats = BuildStatistics(
            files_parsed=len(files) - len(unreadable),
            full_build=True,
        )

    def _incremental_build(self, files: List[str], snapshot: GraphSnapshot) -> None:
        self.graph.restore(**snapshot.graph.snapshot())
        if self.method_graph is not None and snapshot.method_graph is not None:
            self.method_graph.restore(snapshot.method_graph)

        changed = self.registry.changed_since(files)
        if not changed:
            logger.debug("No changed files; using cached graph as-is")
            self.last_stats = BuildStatistics(files_from_cache=len(files), cache_hit=True)
            return

        file_set = set(files)
        stale = (changed | self.graph.tracked_paths()) - file_set
        if self.method_graph is not None:
            stale |= self.method_graph.tracked_paths() - file_set
        for path in sorted(stale):
            logger.debug(f"Dropping deleted file {path}")
            self._drop(path)
        self.registry.forget(stale)

        to_extract = sorted(changed & file_set)
        logger.info(f"Incremental build: {len(to_extract)} changed, {len(stale)} deleted")
        for path in to_extract:
            self._drop(path)
        unreadable = self._extract_and_splice(to_extract)
        self.registry.forget(unreadable)

        self._rebuild_reverse_indexes()
        self.registry.commit(f for f in files if f not in unreadable)
        self._save()
        self.last_stats = BuildStatistics(
            files_parsed=len(to_extract) - len(unreadable),
            files_from_cache=len(files) - len(to_extract),
            files_dropped=len(stale),
        )

    def _extract_and_splice(self, files: List[str]) -> Set[str]:
        """Extract ``files`` and record the results; return unreadable files."""
        results = self.parallel.extract(
            self.project_root, files, self.extractor, self.strategy, self.track_methods
        )
        for extraction in results:
            self._splice(extraction)
        return set(files) - {r.path for r in results}

    def _splice(self, extraction: FileExtraction) -> None:
        path = extraction.path
        self.graph.record_declarations(path, extraction.declared)
        self.graph.record_references(path, extraction.references)
        self.graph.record_includes(path, extraction.includes)
        if self.method_graph is not None and extraction.method_calls is not None:
            self.method_graph.record_file(path, extraction.method_calls)

    def _drop(self, path: str) -> None:
        self.graph.drop_file(path)
        if self.method_graph is not None:
            self.method_graph.drop_file(path)

    def _rebuild_reverse_indexes(self) -> None:
        self.graph.rebuild_reverse_index()
        if self.method_graph is not None:
            self.method_graph.rebuild_reverse_index()

    def _save(self) -> None:
        if self.cache is None:
            return
        self.cache.save(
            self.graph,
            self.registry,
            self.extractor.name(),
            self.strategy.name,
            method_graph=self.method_graph,
        )

    def clear_cache(self) -> None:
        """Forget all fingerprints and delete the on-disk snapshot."""
        self.registry.clear()
        if self.cache is not None:
            self.cache.clear()
