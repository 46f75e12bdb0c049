# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""On-disk persistence for the dependency graph and the file registry.

Two independent JSON artifacts live in the cache directory:
- dependency-graph.json: graph maps (and the method graph, when tracked)
- file-registry.json: per-file fingerprints

Both carry a format version tag. Loading collapses every doubt (missing file,
version mismatch, corrupt JSON, unexpected structure, snapshot built with a
different extractor or strategy) to "no cache", which costs one full rebuild
and never an error.

Concurrent writers against one cache directory are not supported.
"""

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from xfile_impact.file_registry import FileStateRegistry
from xfile_impact.graph import DependencyGraph
from xfile_impact.method_graph import MethodCallGraph
from xfile_impact.models import CacheStatistics

logger = logging.getLogger(__name__)

CACHE_VERSION = "1.1.0"
GRAPH_FILENAME = "dependency-graph.json"
REGISTRY_FILENAME = "file-registry.json"


@dataclass
class GraphSnapshot:
    """Graph state restored from disk, with the settings it was built under."""

    graph: DependencyGraph
    method_graph: Optional[MethodCallGraph]
    extractor: str
    strategy: str
    created_at: float


class CacheManager:
    """Loads and saves versioned graph and registry snapshots."""

    def __init__(self, cache_dir: Path):
        """Initialize cache manager.

        Args:
            cache_dir: Directory holding the two cache artifacts. Created on
                first save.
        """
        self.cache_dir = Path(cache_dir)
        self.graph_path = self.cache_dir / GRAPH_FILENAME
        self.registry_path = self.cache_dir / REGISTRY_FILENAME

    def _read_versioned(self, path: Path) -> Optional[Dict[str, Any]]:
        """Read a JSON artifact, returning None unless it is current and valid."""
        if not path.exists():
            logger.debug(f"No cache file at {path}")
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read cache file {path}: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Unexpected cache structure in {path}, ignoring")
            return None
        if data.get("version") != CACHE_VERSION:
            logger.warning(
                f"Cache version mismatch in {path} "
                f"(found {data.get('version')!r}, expected {CACHE_VERSION!r}), ignoring"
            )
            return None
        return data

    def load_graph(
        self, extractor: str, strategy: str, track_methods: bool = False
    ) -> Optional[GraphSnapshot]:
        """Load the graph snapshot if it matches the current build settings.

        Args:
            extractor: Name of the extractor backend in use.
            strategy: Name of the dependency strategy in use.
            track_methods: Whether the caller needs the method graph.

        Returns:
            GraphSnapshot, or None when the cache is absent or unusable.
        """
        data = self._read_versioned(self.graph_path)
        if data is None:
            return None

        if data.get("extractor") != extractor or data.get("strategy") != strategy:
            logger.info(
                f"Cached graph was built with extractor={data.get('extractor')}, "
                f"strategy={data.get('strategy')}; rebuilding"
            )
            return None
        method_data = data.get("method_graph")
        if track_methods and method_data is None:
            logger.info("Cached graph has no method call data; rebuilding")
            return None

        try:
            graph = DependencyGraph.from_dict(data["graph"])
            method_graph = (
                MethodCallGraph.from_dict(method_data)
                if track_methods and method_data is not None
                else None
            )
            created_at = float(data.get("created_at", 0.0))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Corrupt graph cache, ignoring: {e}")
            return None

        logger.debug(f"Loaded graph snapshot with {len(graph.references)} files")
        return GraphSnapshot(
            graph=graph,
            method_graph=method_graph,
            extractor=extractor,
            strategy=strategy,
            created_at=created_at,
        )

    def load_registry(self, registry: FileStateRegistry) -> bool:
        """Populate ``registry`` from disk.

        Returns:
            True if entries were loaded, False if the cache was unusable (the
            registry is left empty in that case).
        """
        data = self._read_versioned(self.registry_path)
        if data is None:
            registry.clear()
            return False
        try:
            registry.load_entries(data["files"])
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Corrupt file registry cache, ignoring: {e}")
            registry.clear()
            return False
        logger.debug(f"Loaded {len(registry)} fingerprints")
        return True

    def save(
        self,
        graph: DependencyGraph,
        registry: FileStateRegistry,
        extractor: str,
        strategy: str,
        method_graph: Optional[MethodCallGraph] = None,
    ) -> bool:
        """Write both artifacts.

        Returns:
            True on success. Write failures are logged, never raised.
        """
        now = time.time()
        graph_data: Dict[str, Any] = {
            "version": CACHE_VERSION,
            "created_at": now,
            "extractor": extractor,
            "strategy": strategy,
            "graph": graph.to_dict(),
            "method_graph": method_graph.to_dict() if method_graph is not None else None,
        }
        registry_data: Dict[str, Any] = {
            "version": CACHE_VERSION,
            "created_at": now,
            "files": registry.to_dict(),
        }
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self._write_json(self.graph_path, graph_data)
            self._write_json(self.registry_path, registry_data)
        except OSError as e:
            logger.error(f"Failed to save cache to {self.cache_dir}: {e}")
            return False
        logger.debug(f"Saved cache for {len(registry)} files to {self.cache_dir}")
        return True

    def _write_json(self, path: Path, data: Dict[str, Any]) -> None:
        # Readers see either the old artifact or the new one
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        tmp_path.replace(path)

    def exists(self) -> bool:
        return self.graph_path.exists() and self.registry_path.exists()

    def clear(self) -> None:
        """Delete both artifacts."""
        for path in (self.graph_path, self.registry_path):
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error(f"Failed to remove cache file {path}: {e}")
        logger.info(f"Cleared cache in {self.cache_dir}")

    def statistics(self) -> CacheStatistics:
        """Advisory statistics about the artifacts on disk."""
        stats = CacheStatistics(exists=self.exists(), cache_dir=str(self.cache_dir))
        if not stats.exists:
            return stats

        stats.cache_size_bytes = sum(
            p.stat().st_size for p in (self.graph_path, self.registry_path) if p.exists()
        )
        data = self._read_versioned(self.registry_path)
        if data is not None:
            files = data.get("files")
            stats.tracked_files = len(files) if isinstance(files, dict) else 0
            created_at = data.get("created_at")
            if isinstance(created_at, (int, float)):
                stats.cache_timestamp = float(created_at)
                stats.cache_age_seconds = max(0.0, time.time() - created_at)
        return stats
