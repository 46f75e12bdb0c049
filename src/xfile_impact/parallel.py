# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Per-file extraction and the optional multi-process fan-out.

The same extract_file() function runs in the builder's own process and inside
worker processes, so sequential and parallel builds produce identical
per-file results. Workers receive only plain strings (project root, file
paths, backend and strategy names) and rebuild their extractor locally.

Partitioning:
- The file list is split into disjoint contiguous chunks, one per worker
- Chunks never overlap, so workers share no mutable state and need no locks
- Results come back in partition order; a failed or timed-out chunk is
  re-extracted sequentially in the calling process
"""

import logging
import os
import time
from concurrent.futures import Executor, Future, ProcessPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Set

from xfile_impact.extractors.base import SymbolExtractor
from xfile_impact.extractors.method_calls import MethodCallExtractor
from xfile_impact.extractors.registry import create_extractor
from xfile_impact.strategies import DependencyStrategy, get_strategy

logger = logging.getLogger(__name__)

DEFAULT_PARALLEL_THRESHOLD = 100
DEFAULT_WORKER_TIMEOUT_SECONDS = 300
WORKER_JOIN_TIMEOUT_SECONDS = 5

ExecutorFactory = Callable[[int], Executor]


@dataclass(frozen=True)
class FileExtraction:
    """Everything the graph needs from one file."""

    path: str
    declared: FrozenSet[str]
    references: FrozenSet[str]
    includes: FrozenSet[str]
    method_calls: Optional[Dict[str, Set[str]]] = None


def read_source(filepath: Path) -> str:
    """Read a source file as UTF-8, falling back to latin-1.

    Raises:
        OSError: If the file cannot be read.
    """
    data = filepath.read_bytes()
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def resolve_include(project_root: Path, including_path: str, target: str) -> Optional[str]:
    """Resolve a literal include argument to a project-relative POSIX path.

    Relative targets are tried against the including file's directory first,
    then against the project root. Absolute targets must point inside the
    project. Returns None for targets that do not exist or lie outside the
    project.
    """
    root = os.path.normpath(os.path.abspath(project_root))
    if os.path.isabs(target):
        candidates = [target]
    else:
        source_dir = os.path.dirname(os.path.join(root, including_path))
        candidates = [os.path.join(source_dir, target), os.path.join(root, target)]

    for candidate in candidates:
        normalized = os.path.normpath(candidate)
        if not os.path.isfile(normalized):
            continue
        relative = os.path.relpath(normalized, root)
        if relative == os.pardir or relative.startswith(os.pardir + os.sep):
            continue
        return Path(relative).as_posix()
    return None


def extract_file(
    project_root: Path,
    path: str,
    extractor: SymbolExtractor,
    strategy: DependencyStrategy,
    method_extractor: Optional[MethodCallExtractor] = None,
) -> Optional[FileExtraction]:
    """Read and extract one project file.

    Returns:
        FileExtraction, or None when the file cannot be read.
    """
    try:
        source = read_source(Path(project_root) / path)
    except OSError as e:
        logger.warning(f"Skipping unreadable file {path}: {e}")
        return None

    fact = extractor.safe_extract(source)
    includes = set()
    for target in fact.includes:
        resolved = resolve_include(project_root, path, target)
        if resolved is not None:
            includes.add(resolved)

    method_calls = method_extractor.extract(source) if method_extractor is not None else None
    return FileExtraction(
        path=path,
        declared=fact.declared_types,
        references=frozenset(strategy.select(fact)),
        includes=frozenset(includes),
        method_calls=method_calls,
    )


def extract_partition(
    project_root: str,
    files: Sequence[str],
    extractor_name: str,
    strategy_name: str,
    track_methods: bool,
) -> List[FileExtraction]:
    """Worker entry point: extract a disjoint chunk of files.

    Module-level so it pickles for ProcessPoolExecutor.
    """
    extractor = create_extractor(extractor_name)
    strategy = get_strategy(strategy_name)
    method_extractor = MethodCallExtractor() if track_methods else None
    results = []
    for path in files:
        extraction = extract_file(Path(project_root), path, extractor, strategy, method_extractor)
        if extraction is not None:
            results.append(extraction)
    return results


def partition(files: Sequence[str], parts: int) -> List[List[str]]:
    """Split ``files`` into at most ``parts`` contiguous, non-empty chunks."""
    if not files:
        return []
    parts = max(1, min(parts, len(files)))
    size, remainder = divmod(len(files), parts)
    chunks = []
    start = 0
    for index in range(parts):
        end = start + size + (1 if index < remainder else 0)
        chunks.append(list(files[start:end]))
        start = end
    return chunks


def _default_executor_factory(max_workers: int) -> Executor:
    return ProcessPoolExecutor(max_workers=max_workers)


def terminate_workers(executor: Executor) -> int:
    """Terminate the live worker processes of ``executor``.

    A cancelled future does not stop a worker already running it. Executors
    without worker processes are left alone.

    Returns:
        Number of processes terminated.
    """
    processes = getattr(executor, "_processes", None) or {}
    terminated = 0
    for process in list(processes.values()):
        if process.is_alive():
            process.terminate()
            terminated += 1
    for process in list(processes.values()):
        process.join(timeout=WORKER_JOIN_TIMEOUT_SECONDS)
    return terminated


class ParallelExtractor:
    """Fans extraction out across worker processes for large file sets.

    Below ``threshold`` files, or when only one worker is available,
    extraction runs sequentially in the calling process.
    """

    def __init__(
        self,
        threshold: int = DEFAULT_PARALLEL_THRESHOLD,
        max_workers: Optional[int] = None,
        timeout_seconds: float = DEFAULT_WORKER_TIMEOUT_SECONDS,
        executor_factory: ExecutorFactory = _default_executor_factory,
    ):
        """Initialize the fan-out.

        Args:
            threshold: Minimum number of files before workers are used.
            max_workers: Worker count (None or 0: CPU count).
            timeout_seconds: Time budget for collecting all worker results.
            executor_factory: Creates the executor for a given worker count.
        """
        self.threshold = threshold
        self.max_workers = max_workers or os.cpu_count() or 1
        self.timeout_seconds = timeout_seconds
        self.executor_factory = executor_factory
        self.fallback_partitions = 0

    def should_parallelize(self, file_count: int) -> bool:
        return self.max_workers > 1 and file_count >= self.threshold

    def extract(
        self,
        project_root: Path,
        files: Sequence[str],
        extractor: SymbolExtractor,
        strategy: DependencyStrategy,
        track_methods: bool = False,
    ) -> List[FileExtraction]:
        """Extract ``files`` and return results in input order."""
        self.fallback_partitions = 0
        if not self.should_parallelize(len(files)):
            return self._sequential(project_root, files, extractor, strategy, track_methods)

        chunks = partition(files, self.max_workers)
        logger.info(f"Extracting {len(files)} files across {len(chunks)} worker processes")
        try:
            executor = self.executor_factory(len(chunks))
        except (OSError, NotImplementedError, ValueError) as e:
            logger.warning(f"Cannot start worker processes ({e}); extracting sequentially")
            return self._sequential(project_root, files, extractor, strategy, track_methods)

        root = str(project_root)
        results: List[FileExtraction] = []
        timed_out = False
        try:
            futures: List[Future] = [
                executor.submit(
                    extract_partition, root, chunk, extractor.name(), strategy.name, track_methods
                )
                for chunk in chunks
            ]
            deadline = time.monotonic() + self.timeout_seconds
            for index, (chunk, future) in enumerate(zip(chunks, futures)):
                remaining = max(0.0, deadline - time.monotonic())
                try:
                    results.extend(future.result(timeout=remaining))
                except FutureTimeoutError:
                    logger.warning(
                        f"Worker {index} timed out after {self.timeout_seconds}s; "
                        f"extracting its {len(chunk)} files sequentially"
                    )
                    future.cancel()
                    timed_out = True
                    self.fallback_partitions += 1
                    results.extend(
                        self._sequential(project_root, chunk, extractor, strategy, track_methods)
                    )
                except Exception as e:
                    logger.warning(
                        f"Worker {index} failed ({e}); extracting its {len(chunk)} files "
                        f"sequentially"
                    )
                    self.fallback_partitions += 1
                    results.extend(
                        self._sequential(project_root, chunk, extractor, strategy, track_methods)
                    )
        finally:
            if timed_out:
                terminated = terminate_workers(executor)
                if terminated:
                    logger.warning(f"Terminated {terminated} stuck worker processes")
            executor.shutdown(wait=False, cancel_futures=True)
        return results

    def _sequential(
        self,
        project_root: Path,
        files: Sequence[str],
        extractor: SymbolExtractor,
        strategy: DependencyStrategy,
        track_methods: bool,
    ) -> List[FileExtraction]:
        method_extractor = MethodCallExtractor() if track_methods else None
        results = []
        for path in files:
            extraction = extract_file(project_root, path, extractor, strategy, method_extractor)
            if extraction is not None:
                results.append(extraction)
        return results
