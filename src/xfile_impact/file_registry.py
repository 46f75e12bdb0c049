# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""File state registry.

Remembers a fingerprint per tracked file so a build can tell which files
changed since the last committed snapshot without reading their contents.

Change detection uses the fast path (modification time in nanoseconds plus
size). Content digests are computed at commit time for new or moved files and
only compared during detection when ``verify_digest`` is enabled.
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Set

from xfile_impact.models import FileFingerprint

logger = logging.getLogger(__name__)


def compute_digest(filepath: Path) -> str:
    """SHA-256 hex digest of a file's contents."""
    hasher = hashlib.sha256()
    with open(filepath, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


class FileStateRegistry:
    """Fingerprints of tracked files, keyed by project-relative path."""

    def __init__(self, project_root: Path, verify_digest: bool = False):
        """Initialize an empty registry.

        Args:
            project_root: Directory that relative paths are resolved against.
            verify_digest: Also compare digests when mtime and size match.
        """
        self.project_root = Path(project_root)
        self.verify_digest = verify_digest
        self._entries: Dict[str, FileFingerprint] = {}

    def _absolute(self, path: str) -> Path:
        return self.project_root / path

    def fingerprint(self, path: str, with_digest: bool = False) -> Optional[FileFingerprint]:
        """Stat a file.

        Args:
            path: Project-relative path.
            with_digest: Also hash the contents.

        Returns:
            The current fingerprint, or None if the file vanished or cannot be
            read (callers treat None as "changed").
        """
        absolute = self._absolute(path)
        try:
            stat = os.stat(absolute)
            digest = compute_digest(absolute) if with_digest else None
        except OSError as e:
            logger.debug(f"Cannot fingerprint {path}: {e}")
            return None
        return FileFingerprint(
            path=path, mtime_ns=stat.st_mtime_ns, size=stat.st_size, digest=digest
        )

    def is_changed(self, path: str) -> bool:
        """True when ``path`` is unknown or its fingerprint moved."""
        stored = self._entries.get(path)
        if stored is None:
            return True
        current = self.fingerprint(path)
        if current is None or not current.same_stat(stored):
            return True
        if self.verify_digest and stored.digest is not None:
            digested = self.fingerprint(path, with_digest=True)
            return digested is None or digested.digest != stored.digest
        return False

    def changed_since(self, known_files: Iterable[str]) -> Set[str]:
        """Files that changed, appeared or disappeared since the last commit.

        Args:
            known_files: The current candidate file list.

        Returns:
            Candidates whose fingerprint differs from the stored one (including
            never-seen files) plus stored files absent from the candidates.

        Complexity: O(n) with O(1) set membership per file.
        """
        candidates = set(known_files)
        changed = {path for path in candidates if self.is_changed(path)}
        deleted = {path for path in self._entries if path not in candidates}
        if changed or deleted:
            logger.debug(f"Registry diff: {len(changed)} changed/new, {len(deleted)} deleted")
        return changed | deleted

    def commit(self, paths: Iterable[str]) -> None:
        """Store current fingerprints for ``paths``.

        Files whose mtime and size still match their stored fingerprint keep
        their stored digest; everything else is re-hashed. Files that vanished
        are forgotten.
        """
        for path in paths:
            stored = self._entries.get(path)
            current = self.fingerprint(path)
            if current is None:
                self._entries.pop(path, None)
                continue
            if stored is not None and stored.digest is not None and current.same_stat(stored):
                continue
            hashed = self.fingerprint(path, with_digest=True)
            if hashed is None:
                self._entries.pop(path, None)
            else:
                self._entries[path] = hashed

    def forget(self, paths: Iterable[str]) -> None:
        for path in paths:
            self._entries.pop(path, None)

    def get(self, path: str) -> Optional[FileFingerprint]:
        return self._entries.get(path)

    def tracked_files(self) -> Set[str]:
        return set(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def to_dict(self) -> Dict[str, Any]:
        return {path: fp.to_dict() for path, fp in sorted(self._entries.items())}

    def load_entries(self, data: Mapping[str, Any]) -> None:
        """Replace all entries from serialized data.

        Raises:
            KeyError, TypeError, ValueError: On malformed data.
        """
        entries = {path: FileFingerprint.from_dict(path, fp) for path, fp in data.items()}
        self._entries = entries
