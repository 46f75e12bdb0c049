# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Source watcher for watch mode.

Watchdog events for tracked source files are collected into a pending set of
project-relative paths. Nothing is analyzed on the watcher thread: the owner
calls flush() periodically, which hands the accumulated batch to a callback
(the CLI re-runs the incremental build there). Bursts of saves therefore cost
one rebuild, and the registry decides what actually changed.

Thread Safety:
- pending: guarded by a lock (watchdog thread adds, caller thread flushes)
- on_batch: always invoked on the thread that calls flush()
"""

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from xfile_impact.scanner import ProjectScanner

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)

# Callback signature: (changed relative paths) -> None
BatchCallback = Callable[[Set[str]], None]


class SourceWatcher:
    """Collects source file changes under a project root.

    Usage:
        watcher = SourceWatcher(root, scanner, on_batch=rebuild)
        watcher.start()
        while True:
            time.sleep(interval)
            watcher.flush()
    """

    def __init__(self, project_root: Path, scanner: ProjectScanner, on_batch: BatchCallback):
        """Initialize watcher.

        Args:
            project_root: Directory to watch recursively.
            scanner: Supplies ignore rules and source extensions.
            on_batch: Receives each non-empty batch of changed paths.
        """
        self.project_root = Path(project_root).resolve()
        self.scanner = scanner
        self.on_batch = on_batch
        self._pending: Set[str] = set()
        self._lock = threading.Lock()
        self._observer: Optional["BaseObserver"] = None
        self._event_handler = _SourceEventHandler(self)

    def record(self, path: str) -> bool:
        """Queue an absolute path if it is a tracked source file.

        Returns:
            True if the path was queued.
        """
        rel_path = self.scanner.to_relative(path)
        if rel_path is None:
            return False
        if not self.scanner.is_source_file(rel_path) or self.scanner.should_ignore(rel_path):
            return False
        with self._lock:
            self._pending.add(rel_path)
        logger.debug(f"Queued change: {rel_path}")
        return True

    @property
    def pending(self) -> Set[str]:
        with self._lock:
            return set(self._pending)

    def flush(self) -> Set[str]:
        """Hand pending changes to the callback.

        Returns:
            The flushed batch (empty if nothing was pending).
        """
        with self._lock:
            batch = self._pending
            self._pending = set()
        if batch:
            logger.info(f"Processing {len(batch)} changed file(s)")
            self.on_batch(batch)
        return batch

    def start(self) -> None:
        """Start watching file system.

        Raises:
            RuntimeError: If watcher is already running
        """
        if self._observer is not None and self._observer.is_alive():
            raise RuntimeError("SourceWatcher is already running")

        self._observer = Observer()
        self._observer.schedule(  # type: ignore  # watchdog types vary by version
            self._event_handler, str(self.project_root), recursive=True
        )
        self._observer.start()  # type: ignore  # watchdog types vary by version
        logger.info(f"Watching {self.project_root}")

    def stop(self) -> None:
        """Stop watching; blocks until the observer thread exits (with timeout)."""
        if self._observer is not None and self._observer.is_alive():
            self._observer.stop()  # type: ignore  # watchdog types vary by version
            self._observer.join(timeout=5.0)
            logger.info("Watcher stopped")

    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()


class _SourceEventHandler(FileSystemEventHandler):
    """Internal event handler for watchdog; delegates filtering to SourceWatcher."""

    def __init__(self, watcher: SourceWatcher):
        super().__init__()
        self.watcher = watcher

    def _handle_path(self, path: object) -> None:
        # watchdog paths may be bytes or str depending on the platform
        if isinstance(path, bytes):
            path = path.decode()
        self.watcher.record(str(path))

    def _handle_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._handle_path(event.src_path)
        logger.debug(f"Event: {event.event_type} - {event.src_path}")

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """A move changes both the old path (gone) and the new one (appeared)."""
        if event.is_directory:
            return
        self._handle_path(event.src_path)
        self._handle_path(getattr(event, "dest_path", ""))
