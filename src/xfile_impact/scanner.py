# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Project scanner: the current set of trackable source files.

Filtering layers, applied in order:
- ALWAYS_IGNORED_DIRS: dependency, VCS and tool directories at any depth
- ROOT_IGNORED_DIRS: framework runtime directories at the project root
- .gitignore patterns (including ``!`` negation, last match wins)
- User-configured ignore patterns

Pattern matching follows fnmatch semantics against the relative path, the
file name and every parent directory, so ``cache/`` and ``*.generated.php``
behave as they do in git.
"""

import fnmatch
import logging
import os
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

MAX_PATTERN_LENGTH = 1000


class ProjectScanner:
    """Lists source files under a project root, honoring ignore rules."""

    ALWAYS_IGNORED_DIRS = {
        ".git",
        ".hg",
        ".svn",
        "vendor",
        "node_modules",
        ".xfile_impact",
        ".xfile_impact_logs",
        ".idea",
        ".vscode",
    }

    ROOT_IGNORED_DIRS = {"var", "cache"}

    def __init__(
        self,
        project_root: Path,
        ignore_patterns: Optional[Iterable[str]] = None,
        extensions: Optional[Iterable[str]] = None,
        gitignore_path: Optional[Path] = None,
    ):
        """Initialize scanner.

        Args:
            project_root: Directory to scan.
            ignore_patterns: Additional user-configured ignore patterns.
            extensions: Source file suffixes to include (default: .php).
            gitignore_path: .gitignore to honor (default: project_root/.gitignore).
        """
        self.project_root = Path(project_root).resolve()
        self.user_ignore_patterns = list(ignore_patterns or [])
        self.extensions = tuple(extensions or (".php",))
        self.gitignore_path = (
            Path(gitignore_path) if gitignore_path else self.project_root / ".gitignore"
        )
        self._gitignore_patterns: List[Tuple[str, bool]] = self._load_gitignore()

    def _load_gitignore(self) -> List[Tuple[str, bool]]:
        """Load .gitignore as (pattern, negated) pairs, in file order."""
        patterns: List[Tuple[str, bool]] = []

        if not self.gitignore_path.exists():
            logger.debug(f"No .gitignore found at {self.gitignore_path}")
            return patterns

        try:
            with open(self.gitignore_path, encoding="utf-8") as f:
                for line_num, line in enumerate(f, 1):
                    line = line.strip()
                    if not line or line.startswith("#"):
                        continue

                    if len(line) > MAX_PATTERN_LENGTH:
                        logger.warning(
                            f".gitignore line {line_num}: Pattern too long "
                            f"(>{MAX_PATTERN_LENGTH} chars), skipping"
                        )
                        continue

                    negated = line.startswith("!")
                    if negated:
                        line = line[1:]
                    if line:
                        patterns.append((line, negated))

            logger.debug(f"Loaded {len(patterns)} patterns from .gitignore")
        except UnicodeDecodeError as e:
            logger.error(f"Failed to decode .gitignore (encoding error): {e}")
        except OSError as e:
            logger.warning(f"Failed to read .gitignore: {e}")

        return patterns

    @staticmethod
    def matches_pattern(rel_path: str, pattern: str) -> bool:
        """Gitignore-style match of one relative POSIX path.

        - trailing ``/``: matches directories (so every file below them)
        - leading ``/``: anchored at the project root
        - pattern containing ``/``: matched against the relative path
        - otherwise: matched against the name and every parent directory name
        """
        directory_only = pattern.endswith("/")
        pattern = pattern.rstrip("/")
        anchored = pattern.startswith("/")
        pattern = pattern.lstrip("/")
        if not pattern:
            return False

        path = PurePosixPath(rel_path)
        # Candidate subjects: the path itself and each parent directory
        prefixes = [str(parent) for parent in reversed(path.parents) if str(parent) != "."]
        subjects = prefixes if directory_only else prefixes + [rel_path]

        if anchored or "/" in pattern:
            return any(fnmatch.fnmatchcase(subject, pattern) for subject in subjects)
        names = [PurePosixPath(subject).name for subject in subjects]
        return any(fnmatch.fnmatchcase(name, pattern) for name in names)

    def should_ignore(self, rel_path: str) -> bool:
        """Check if a project-relative path should be ignored.

        Args:
            rel_path: Path relative to the project root (either separator).
        """
        rel_path = rel_path.replace("\\", "/")
        parts = rel_path.split("/")

        for part in parts[:-1]:
            if part in self.ALWAYS_IGNORED_DIRS:
                return True
        if len(parts) > 1 and parts[0] in self.ROOT_IGNORED_DIRS:
            return True

        ignored = False
        for pattern, negated in self._gitignore_patterns:
            if self.matches_pattern(rel_path, pattern):
                ignored = not negated
        if ignored:
            return True

        for pattern in self.user_ignore_patterns:
            if fnmatch.fnmatch(rel_path, pattern) or self.matches_pattern(rel_path, pattern):
                return True

        return False

    def is_source_file(self, rel_path: str) -> bool:
        return rel_path.endswith(self.extensions)

    def to_relative(self, path: str) -> Optional[str]:
        """Project-relative POSIX path for an absolute path, or None if outside."""
        try:
            relative = Path(path).resolve().relative_to(self.project_root)
        except ValueError:
            return None
        return relative.as_posix()

    def scan(self) -> List[str]:
        """Sorted project-relative POSIX paths of all trackable source files."""
        files: List[str] = []
        for dirpath, dirnames, filenames in os.walk(self.project_root):
            rel_dir = Path(dirpath).relative_to(self.project_root)
            at_root = rel_dir == Path(".")
            # Prune in place so os.walk never descends into ignored directories
            dirnames[:] = [
                d
                for d in dirnames
                if d not in self.ALWAYS_IGNORED_DIRS
                and not (at_root and d in self.ROOT_IGNORED_DIRS)
            ]
            for filename in filenames:
                if not filename.endswith(self.extensions):
                    continue
                rel_path = (rel_dir / filename).as_posix()
                if not self.should_ignore(rel_path):
                    files.append(rel_path)

        files.sort()
        logger.debug(f"Scanned {len(files)} source files under {self.project_root}")
        return files
