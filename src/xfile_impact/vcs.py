# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Git change detection.

Asks git which files changed (added, copied, modified or renamed; deleted
files have nothing left to test) and for the zero-context unified diff used
for method-level attribution.

Ref selection:
- staged: ``git diff --cached``
- from and to: ``git diff from...to`` (changes on ``to`` since the merge base)
- from only: ``git diff from`` (working tree against ``from``)
- neither: ``git diff HEAD`` (uncommitted changes)
"""

import logging
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

DIFF_FILTER = "--diff-filter=ACMR"


class ChangeDetectionError(Exception):
    """Raised when git cannot report changes."""

    pass


class ChangeDetector:
    """Runs git in a project directory."""

    def __init__(self, project_root: Path, git_executable: str = "git"):
        self.project_root = Path(project_root)
        self.git_executable = git_executable

    @staticmethod
    def _ref_args(from_ref: Optional[str], to_ref: Optional[str], staged: bool) -> List[str]:
        if staged:
            if from_ref is not None or to_ref is not None:
                raise ChangeDetectionError("Cannot combine staged changes with --from/--to")
            return ["--cached"]
        if from_ref is not None and to_ref is not None:
            return [f"{from_ref}...{to_ref}"]
        if from_ref is not None:
            return [from_ref]
        if to_ref is not None:
            raise ChangeDetectionError("--to requires --from")
        return ["HEAD"]

    def _run(self, args: List[str]) -> str:
        command = [self.git_executable, *args]
        logger.debug(f"Running: {' '.join(command)}")
        try:
            result = subprocess.run(
                command,
                cwd=self.project_root,
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError as e:
            raise ChangeDetectionError(f"git executable not found: {e}") from e
        except subprocess.CalledProcessError as e:
            message = (e.stderr or "").strip() or f"exit status {e.returncode}"
            raise ChangeDetectionError(f"git diff failed: {message}") from e
        return result.stdout

    def changed_files(
        self,
        from_ref: Optional[str] = None,
        to_ref: Optional[str] = None,
        staged: bool = False,
        extensions: Optional[Iterable[str]] = None,
    ) -> List[str]:
        """Project-relative paths of changed files.

        Args:
            from_ref: Base ref.
            to_ref: Target ref (requires ``from_ref``).
            staged: Report staged changes only.
            extensions: Keep only these suffixes (None keeps everything).

        Raises:
            ChangeDetectionError: If git fails or the refs are inconsistent.
        """
        args = ["diff", *self._ref_args(from_ref, to_ref, staged), "--name-only", DIFF_FILTER]
        files = [line.strip() for line in self._run(args).splitlines() if line.strip()]
        if extensions is not None:
            suffixes = tuple(extensions)
            files = [f for f in files if f.endswith(suffixes)]
        return files

    def diff_text(
        self, from_ref: Optional[str] = None, to_ref: Optional[str] = None, staged: bool = False
    ) -> str:
        """Zero-context unified diff for the same ref selection as changed_files()."""
        args = ["diff", *self._ref_args(from_ref, to_ref, staged), "-U0", DIFF_FILTER]
        return self._run(args)
