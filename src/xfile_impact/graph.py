# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Dependency graph store.

Holds the file-level dependency maps and keeps them mutually consistent:
- declares: symbol -> declaring file
- declared_by: file -> symbols it owns (exact inverse of declares)
- claims: file -> every symbol it declares, owned or not
- claimants: symbol -> every file declaring it (exact inverse of claims)
- references: file -> symbols it references
- includes: file -> project files it includes by literal path
- dependents: file -> files that depend on it (derived, see rebuild_reverse_index)

declares and declared_by are always mutated together, as are claims and
claimants. Removing a file costs O(symbols declared in that file).

Collision policy: when several files declare the same symbol, the greatest
path among its claimants owns it. Ownership depends only on which files
currently declare the symbol, never on recording order, so incremental and
full builds agree. Dropping the owner hands the symbol to the next claimant.
Collisions are logged and counted.

Thread Safety:
- NOT thread-safe: designed for single-threaded use
"""

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Set

logger = logging.getLogger(__name__)


def _sets_to_lists(mapping: Mapping[str, Set[str]]) -> Dict[str, Any]:
    return {key: sorted(values) for key, values in sorted(mapping.items())}


def _lists_to_sets(data: Mapping[str, Any]) -> Dict[str, Set[str]]:
    return {key: set(values) for key, values in data.items()}


class DependencyGraph:
    """File-level dependency graph with O(k) per-file updates.

    Data Structure:
    - declares / declared_by: paired symbol <-> owning file maps
    - claims / claimants: paired file <-> symbol maps of every declaration
    - references / includes: forward edges per file
    - dependents: reverse edges, rebuilt in one linear pass

    A file is tracked once it has a references entry, even an empty one.
    """

    def __init__(self) -> None:
        """Initialize empty graph."""
        self.declares: Dict[str, str] = {}
        self.declared_by: Dict[str, Set[str]] = {}
        self.claims: Dict[str, Set[str]] = {}
        self.claimants: Dict[str, Set[str]] = {}
        self.references: Dict[str, Set[str]] = {}
        self.includes: Dict[str, Set[str]] = {}
        self.dependents: Dict[str, Set[str]] = {}
        self.collisions: int = 0

    def record_declarations(self, path: str, symbols: Iterable[str]) -> None:
        """Replace the set of symbols declared by ``path``.

        Idempotent: recording the same set twice leaves the graph unchanged.

        Args:
            path: Project-relative file path.
            symbols: Qualified names of the types declared in the file.
        """
        self._forget_declarations(path)

        declared = set(symbols)
        if not declared:
            return
        self.claims[path] = declared
        for symbol in declared:
            claimants = self.claimants.setdefault(symbol, set())
            claimants.add(path)
            if len(claimants) > 1:
                self.collisions += 1
                logger.warning(
                    f"Symbol '{symbol}' declared in {', '.join(sorted(claimants))}; "
                    f"using {max(claimants)}"
                )
            self._assign_owner(symbol)

    def record_references(self, path: str, symbols: Iterable[str]) -> None:
        """Set the symbols referenced by ``path``."""
        self.references[path] = set(symbols)

    def record_includes(self, path: str, targets: Iterable[str]) -> None:
        """Set the project files included by ``path``. Empty sets are not stored."""
        included = set(targets)
        if included:
            self.includes[path] = included
        else:
            self.includes.pop(path, None)

    def drop_file(self, path: str) -> None:
        """Remove every trace of ``path`` from the forward maps.

        Complexity: O(k) where k is the number of symbols ``path`` declares.
        Reverse edges pointing at ``path`` from other files disappear at the
        next rebuild_reverse_index().
        """
        self.references.pop(path, None)
        self.includes.pop(path, None)
        self.dependents.pop(path, None)
        self._forget_declarations(path)

    def _forget_declarations(self, path: str) -> None:
        declared = self.claims.pop(path, None)
        if not declared:
            return
        for symbol in declared:
            claimants = self.claimants.get(symbol)
            if claimants is not None:
                claimants.discard(path)
                if not claimants:
                    del self.claimants[symbol]
            self._assign_owner(symbol)

    def _assign_owner(self, symbol: str) -> None:
        """Give ``symbol`` to its greatest claimant, or forget it when unclaimed."""
        claimants = self.claimants.get(symbol)
        owner = max(claimants) if claimants else None
        previous = self.declares.get(symbol)
        if owner == previous:
            return
        if previous is not None:
            owned = self.declared_by.get(previous)
            if owned is not None:
                owned.discard(symbol)
                if not owned:
                    del self.declared_by[previous]
        if owner is None:
            del self.declares[symbol]
        else:
            self.declares[symbol] = owner
            self.declared_by.setdefault(owner, set()).add(symbol)

    def rebuild_reverse_index(self) -> None:
        """Recompute dependents from references and includes.

        Referenced symbols with no known declarer (external or third-party
        types) and includes of untracked files are skipped.

        Complexity: O(total references + total includes).
        """
        self.dependents.clear()
        for path, symbols in self.references.items():
            for symbol in symbols:
                declarer = self.declares.get(symbol)
                if declarer is None:
                    continue
                self.dependents.setdefault(declarer, set()).add(path)

        for path, targets in self.includes.items():
            for target in targets:
                if target in self.references:
                    self.dependents.setdefault(target, set()).add(path)

        logger.debug(
            f"Rebuilt reverse index: {len(self.dependents)} files with dependents"
        )

    def get_dependents(self, path: str) -> Set[str]:
        """Files that directly depend on ``path``."""
        return set(self.dependents.get(path, ()))

    def get_declarer(self, symbol: str) -> Optional[str]:
        return self.declares.get(symbol)

    def tracked_paths(self) -> Set[str]:
        """Every file with an entry in any forward map."""
        return (
            set(self.references) | set(self.declared_by) | set(self.claims) | set(self.includes)
        )

    def class_to_file_map(self) -> Mapping[str, str]:
        """Read-only live view of symbol -> declaring file."""
        return MappingProxyType(self.declares)

    def restore(
        self,
        declares: Dict[str, str],
        declared_by: Dict[str, Set[str]],
        references: Dict[str, Set[str]],
        includes: Dict[str, Set[str]],
        dependents: Dict[str, Set[str]],
        claims: Optional[Dict[str, Set[str]]] = None,
    ) -> None:
        """Adopt previously built maps as this graph's state.

        The given dicts are used as-is (not copied), so the graph shares them
        with the caller from this point on. Without ``claims`` every file is
        assumed to claim exactly what it owns. claimants is always rebuilt
        from claims.
        """
        if claims is None:
            claims = {path: set(symbols) for path, symbols in declared_by.items()}
        claimants: Dict[str, Set[str]] = {}
        for path, symbols in claims.items():
            for symbol in symbols:
                claimants.setdefault(symbol, set()).add(path)

        self.declares = declares
        self.declared_by = declared_by
        self.claims = claims
        self.claimants = claimants
        self.references = references
        self.includes = includes
        self.dependents = dependents
        self.collisions = 0

    def snapshot(self) -> Dict[str, Any]:
        """The live maps, keyed by restore() argument name (not copies)."""
        return {
            "declares": self.declares,
            "declared_by": self.declared_by,
            "references": self.references,
            "includes": self.includes,
            "dependents": self.dependents,
            "claims": self.claims,
        }

    def clear(self) -> None:
        """Remove all entries in place (used by full rebuilds)."""
        self.declares.clear()
        self.declared_by.clear()
        self.claims.clear()
        self.claimants.clear()
        self.references.clear()
        self.includes.clear()
        self.dependents.clear()
        self.collisions = 0

    def get_statistics(self) -> Dict[str, int]:
        return {
            "tracked_files": len(self.references),
            "symbols": len(self.declares),
            "reference_edges": sum(len(s) for s in self.references.values()),
            "include_edges": sum(len(s) for s in self.includes.values()),
            "collisions": self.collisions,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "declares": dict(sorted(self.declares.items())),
            "declared_by": _sets_to_lists(self.declared_by),
            "claims": _sets_to_lists(self.claims),
            "references": _sets_to_lists(self.references),
            "includes": _sets_to_lists(self.includes),
            "dependents": _sets_to_lists(self.dependents),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DependencyGraph":
        """Deserialize from JSON-compatible dict.

        Raises:
            KeyError, TypeError, ValueError: On malformed data.
        """
        claims = data.get("claims")
        graph = cls()
        graph.restore(
            declares={str(k): str(v) for k, v in data["declares"].items()},
            declared_by=_lists_to_sets(data["declared_by"]),
            references=_lists_to_sets(data["references"]),
            includes=_lists_to_sets(data.get("includes", {})),
            dependents=_lists_to_sets(data.get("dependents", {})),
            claims=_lists_to_sets(claims) if claims is not None else None,
        )
        return graph

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DependencyGraph):
            return NotImplemented
        return (
            self.declares == other.declares
            and self.declared_by == other.declared_by
            and self.claims == other.claims
            and self.references == other.references
            and self.includes == other.includes
            and self.dependents == other.dependents
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"DependencyGraph(files={len(self.references)}, symbols={len(self.declares)})"
        )
