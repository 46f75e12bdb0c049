# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for change-impact analysis.

This module defines the value types passed between the extraction, storage and
propagation layers:
- SymbolCategory: Names of the dependency categories a SymbolFact carries
- SymbolFact: Flat set of symbol-level facts extracted from one source file
- FileFingerprint: Cheap-to-compare summary of a file's content state
- LineRange: Inclusive range of changed lines reported by a diff
- CacheStatistics: Advisory numbers about the on-disk cache
- BuildStatistics: Advisory numbers about the last graph build

All models serialize to JSON-compatible primitives.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)


class SymbolCategory:
    """Dependency categories carried by a SymbolFact.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    USES = "uses"  # use App\Models\User;
    EXTENDS = "extends"  # class Foo extends Bar
    IMPLEMENTS = "implements"  # class Foo implements Bar
    TRAITS = "traits"  # use SomeTrait; inside a class body
    INSTANTIATIONS = "instantiations"  # new Foo()
    STATIC_CALLS = "static_calls"  # Foo::bar()

    ALL = (USES, EXTENDS, IMPLEMENTS, TRAITS, INSTANTIATIONS, STATIC_CALLS)


def _frozen(values: Optional[Iterable[Any]]) -> FrozenSet[Any]:
    return frozenset(values) if values is not None else frozenset()


@dataclass(frozen=True)
class SymbolFact:
    """Symbol-level facts extracted from one unit of source text.

    Names are resolution-ready strings: fully qualified where the source makes
    that possible, otherwise exactly as written. Import aliases are never
    expanded, so both extraction backends agree on every name.

    Instance calls are (receiver, method) pairs. The receiver is the enclosing
    type's qualified name for ``$this`` calls and the variable as written
    (e.g. ``$repo``) for everything else.
    """

    declared_types: FrozenSet[str] = field(default_factory=frozenset)
    uses: FrozenSet[str] = field(default_factory=frozenset)
    extends: FrozenSet[str] = field(default_factory=frozenset)
    implements: FrozenSet[str] = field(default_factory=frozenset)
    traits: FrozenSet[str] = field(default_factory=frozenset)
    instantiations: FrozenSet[str] = field(default_factory=frozenset)
    static_calls: FrozenSet[str] = field(default_factory=frozenset)
    instance_calls: FrozenSet[Tuple[str, str]] = field(default_factory=frozenset)
    includes: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def build(
        cls,
        declared_types: Optional[Iterable[str]] = None,
        uses: Optional[Iterable[str]] = None,
        extends: Optional[Iterable[str]] = None,
        implements: Optional[Iterable[str]] = None,
        traits: Optional[Iterable[str]] = None,
        instantiations: Optional[Iterable[str]] = None,
        static_calls: Optional[Iterable[str]] = None,
        instance_calls: Optional[Iterable[Tuple[str, str]]] = None,
        includes: Optional[Iterable[str]] = None,
    ) -> "SymbolFact":
        """Create a SymbolFact from any iterables (lists, sets, generators)."""
        return cls(
            declared_types=_frozen(declared_types),
            uses=_frozen(uses),
            extends=_frozen(extends),
            implements=_frozen(implements),
            traits=_frozen(traits),
            instantiations=_frozen(instantiations),
            static_calls=_frozen(static_calls),
            instance_calls=_frozen(instance_calls),
            includes=_frozen(includes),
        )

    @classmethod
    def empty(cls) -> "SymbolFact":
        """Fact returned for unparseable source."""
        return cls()

    def is_empty(self) -> bool:
        return not any(
            (
                self.declared_types,
                self.uses,
                self.extends,
                self.implements,
                self.traits,
                self.instantiations,
                self.static_calls,
                self.instance_calls,
                self.includes,
            )
        )

    def category(self, name: str) -> FrozenSet[str]:
        """Return the names recorded for a SymbolCategory value."""
        if name not in SymbolCategory.ALL:
            raise ValueError(f"Unknown symbol category: {name}")
        result: FrozenSet[str] = getattr(self, name)
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict (sorted lists)."""
        return {
            "declared_types": sorted(self.declared_types),
            "uses": sorted(self.uses),
            "extends": sorted(self.extends),
            "implements": sorted(self.implements),
            "traits": sorted(self.traits),
            "instantiations": sorted(self.instantiations),
            "static_calls": sorted(self.static_calls),
            "instance_calls": [list(pair) for pair in sorted(self.instance_calls)],
            "includes": sorted(self.includes),
        }


@dataclass(frozen=True)
class FileFingerprint:
    """Fingerprint of one tracked file.

    ``mtime_ns`` and ``size`` form the fast comparison key. ``digest`` is a
    SHA-256 hex string, or None when it has not been computed.
    """

    path: str
    mtime_ns: int
    size: int
    digest: Optional[str] = None

    def same_stat(self, other: "FileFingerprint") -> bool:
        """Fast-path equality on modification time and size only."""
        return self.mtime_ns == other.mtime_ns and self.size == other.size

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mtime_ns": self.mtime_ns,
            "size": self.size,
            "digest": self.digest,
        }

    @classmethod
    def from_dict(cls, path: str, data: Dict[str, Any]) -> "FileFingerprint":
        return cls(
            path=path,
            mtime_ns=int(data["mtime_ns"]),
            size=int(data["size"]),
            digest=data.get("digest"),
        )


@dataclass(frozen=True)
class LineRange:
    """Inclusive range of lines on the new side of a diff."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 1 or self.end < self.start:
            raise ValueError(f"Invalid line range: {self.start}-{self.end}")

    def overlaps(self, start: int, end: int) -> bool:
        return self.start <= end and start <= self.end


@dataclass
class CacheStatistics:
    """Advisory statistics about the on-disk cache."""

    exists: bool
    cache_dir: str
    tracked_files: int = 0
    cache_timestamp: Optional[float] = None
    cache_age_seconds: Optional[float] = None
    cache_size_bytes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exists": self.exists,
            "cache_dir": self.cache_dir,
            "tracked_files": self.tracked_files,
            "cache_timestamp": self.cache_timestamp,
            "cache_age_seconds": self.cache_age_seconds,
            "cache_size_bytes": self.cache_size_bytes,
        }


@dataclass
class BuildStatistics:
    """Statistics for the most recent graph build."""

    files_parsed: int = 0
    files_from_cache: int = 0
    files_dropped: int = 0
    full_build: bool = False
    cache_hit: bool = False
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "files_parsed": self.files_parsed,
            "files_from_cache": self.files_from_cache,
            "files_dropped": self.files_dropped,
            "full_build": self.full_build,
            "cache_hit": self.cache_hit,
            "duration_ms": round(self.duration_ms, 2),
        }
