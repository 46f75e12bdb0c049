# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Full-scan triggers.

Some changes (dependency manifests, bootstrap files, global config) can affect
every file without any symbol reference pointing at them. When a changed file
matches one of these patterns, callers skip impact analysis and test
everything.

Pattern forms:
- Delimited regex: ``/expr/flags`` or ``#expr#flags`` (flags from ``imsx``)
- Glob: ``**`` spans directories, ``*`` stays within one path segment, ``?``
  is one character. A leading ``/`` anchors at the project root; otherwise
  the glob may match at any directory level.

A pattern starting with ``/`` that is not a well-formed ``/expr/flags`` regex
is read as a root-anchored glob, so ``/composer.json`` works as expected.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)

BUILT_IN_PATTERNS = ("composer.json", "composer.lock")

_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}


@dataclass(frozen=True)
class FullScanMatch:
    """The changed file and pattern that triggered a full scan."""

    file: str
    pattern: str


def _split_delimited(pattern: str) -> Optional[Tuple[str, str]]:
    """Split ``/expr/flags`` into (expr, flags); None if not well-formed."""
    if len(pattern) < 2 or pattern[0] not in "/#":
        return None
    delimiter = pattern[0]
    end = pattern.rfind(delimiter)
    if end <= 0:
        return None
    flags = pattern[end + 1 :]
    if any(flag not in _REGEX_FLAGS for flag in flags):
        return None
    return pattern[1:end], flags


def compile_delimited(pattern: str) -> Optional[Pattern[str]]:
    """Compile a delimited regex. Returns None when it is malformed or invalid."""
    parts = _split_delimited(pattern)
    if parts is None:
        return None
    expr, flags = parts
    re_flags = 0
    for flag in flags:
        re_flags |= _REGEX_FLAGS[flag]
    try:
        return re.compile(expr, re_flags)
    except re.error as e:
        logger.debug(f"Invalid full-scan regex {pattern!r}: {e}")
        return None


def glob_to_regex(pattern: str) -> str:
    """Translate a full-scan glob to a regular expression."""
    escaped = re.escape(pattern)
    escaped = escaped.replace(r"\*\*", ".*").replace(r"\*", "[^/]*").replace(r"\?", ".")
    if pattern.startswith("/"):
        return "^" + escaped[1:] + "$"
    return "(?:^|/)" + escaped + "$"


def is_regex_pattern(pattern: str) -> bool:
    if pattern.startswith("#"):
        return True
    return pattern.startswith("/") and _split_delimited(pattern) is not None


def matches_pattern(path: str, pattern: str) -> bool:
    """True when ``path`` matches a full-scan pattern."""
    path = path.replace("\\", "/")
    if is_regex_pattern(pattern):
        compiled = compile_delimited(pattern)
        return compiled is not None and compiled.search(path) is not None

    glob = pattern.replace("\\", "/")
    if glob.startswith("/"):
        if path == glob[1:]:
            return True
    elif path == glob or path.endswith("/" + glob):
        return True
    return re.search(glob_to_regex(glob), path) is not None


class FullScanMatcher:
    """Decides whether a set of changed files requires a full scan."""

    def __init__(self, patterns: Optional[Iterable[str]] = None):
        """Initialize matcher.

        Args:
            patterns: Configured patterns. None selects BUILT_IN_PATTERNS;
                an empty list disables full-scan triggers.
        """
        self.patterns: List[str] = (
            list(patterns) if patterns is not None else list(BUILT_IN_PATTERNS)
        )
        self.last_match: Optional[FullScanMatch] = None

    def should_trigger(self, changed_files: Iterable[str], override: Optional[str] = None) -> bool:
        """Check the changed files against the patterns.

        Args:
            changed_files: Every changed path, not only source files.
            override: A single pattern replacing the configured ones.
        """
        self.last_match = None
        patterns = [override] if override else self.patterns
        for path in changed_files:
            for pattern in patterns:
                if matches_pattern(path, pattern):
                    self.last_match = FullScanMatch(file=path, pattern=pattern)
                    logger.info(f"Full scan triggered by {path} (pattern {pattern!r})")
                    return True
        return False
