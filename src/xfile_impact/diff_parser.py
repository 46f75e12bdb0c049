# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Unified diff parsing and changed-line to method attribution.

Only the new side of each hunk matters: ``@@ -a,b +c,d @@`` marks lines
c..c+d-1 of the current file as changed. A missing count means 1. A count of
0 (a pure deletion) marks line c, the line the removed text sat next to, so
deleting lines from a method body still attributes a change to that method.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from xfile_impact.extractors.method_calls import MethodCallExtractor
from xfile_impact.models import LineRange
from xfile_impact.parallel import read_source

logger = logging.getLogger(__name__)

_HUNK_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,(\d+))? @@")
_DIFF_GIT_RE = re.compile(r"^diff --git a/.+ b/(.+)$")

DEV_NULL = "/dev/null"


def _hunk_range(line: str) -> Optional[LineRange]:
    match = _HUNK_RE.match(line)
    if match is None:
        return None
    start = int(match.group(1))
    count = int(match.group(2)) if match.group(2) is not None else 1
    start = max(start, 1)
    return LineRange(start, start + max(count, 1) - 1)


def parse_unified_diff(text: str) -> Dict[str, List[LineRange]]:
    """Collect changed line ranges per file from ``git diff`` output.

    Args:
        text: Unified diff text (``-U0`` keeps ranges tight).

    Returns:
        Project-relative path -> ranges on the new side. Deleted files are
        omitted.
    """
    ranges: Dict[str, List[LineRange]] = {}
    current: Optional[str] = None

    for line in text.splitlines():
        if line.startswith("diff --git "):
            match = _DIFF_GIT_RE.match(line)
            current = match.group(1) if match else None
        elif line.startswith("+++ "):
            target = line[4:].split("\t", 1)[0].strip()
            if target == DEV_NULL:
                current = None
            elif target.startswith("b/"):
                current = target[2:]
            else:
                current = target
        elif line.startswith("@@") and current is not None:
            hunk = _hunk_range(line)
            if hunk is not None:
                ranges.setdefault(current, []).append(hunk)

    logger.debug(f"Parsed diff: {len(ranges)} files with changed lines")
    return ranges


def methods_for_ranges(
    spans: Mapping[str, Tuple[int, int]], ranges: Iterable[LineRange]
) -> Set[str]:
    """Methods whose line span overlaps any of ``ranges``."""
    range_list = list(ranges)
    return {
        method
        for method, (start, end) in spans.items()
        if any(r.overlaps(start, end) for r in range_list)
    }


def changed_methods(
    project_root: Path,
    ranges: Mapping[str, Iterable[LineRange]],
    extensions: Iterable[str] = (".php",),
    extractor: Optional[MethodCallExtractor] = None,
) -> Dict[str, Set[str]]:
    """Map changed line ranges to the methods that contain them.

    Args:
        project_root: Root the diff paths are relative to.
        ranges: Output of parse_unified_diff().
        extensions: Source file extensions to consider.
        extractor: Method scanner (created when None).

    Returns:
        Path -> changed ``Class::method`` names. Files with no changed method
        (or that cannot be read) are omitted.
    """
    extractor = extractor or MethodCallExtractor()
    suffixes = tuple(extensions)
    result: Dict[str, Set[str]] = {}
    for path, file_ranges in ranges.items():
        if not path.endswith(suffixes):
            continue
        try:
            source = read_source(Path(project_root) / path)
        except OSError as e:
            logger.debug(f"Cannot read {path} for method attribution: {e}")
            continue
        methods = methods_for_ranges(extractor.method_spans(source), file_ranges)
        if methods:
            result[path] = methods
    return result
