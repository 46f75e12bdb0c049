# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Method-level call graph.

Same shape as the file-level DependencyGraph, one level finer:
- calls: ``Class::method`` -> callees (``Class::method`` or opaque ``$var->method``)
- definitions: file -> the methods it defines, with their callees
- definers: method -> every file defining it (inverse of definitions)
- defined_in / methods_by_file: paired method <-> owning file maps
- called_by: reverse edges, rebuilt from calls

Opaque receiver calls (``$repo->save``) name a method on a value of unknown
type. They are kept in calls for diagnostics but never enter called_by, so
they can neither cause nor receive impact.

A method defined in several files belongs to the greatest of those paths, as
with DependencyGraph declarations.
"""

import logging
from typing import Any, Dict, Iterable, Mapping, Set

logger = logging.getLogger(__name__)


def is_unresolved_call(callee: str) -> bool:
    """True for opaque receiver calls such as ``$repo->save``."""
    return "$" in callee


class MethodCallGraph:
    """Call graph between qualified methods."""

    def __init__(self) -> None:
        self.calls: Dict[str, Set[str]] = {}
        self.called_by: Dict[str, Set[str]] = {}
        self.defined_in: Dict[str, str] = {}
        self.methods_by_file: Dict[str, Set[str]] = {}
        self.definitions: Dict[str, Dict[str, Set[str]]] = {}
        self.definers: Dict[str, Set[str]] = {}

    def record_file(self, path: str, calls: Mapping[str, Iterable[str]]) -> None:
        """Replace the methods (and their calls) contributed by ``path``."""
        self.drop_file(path)
        defined = {method: set(callees) for method, callees in calls.items()}
        if not defined:
            return
        self.definitions[path] = defined
        for method in defined:
            definers = self.definers.setdefault(method, set())
            definers.add(path)
            if len(definers) > 1:
                logger.warning(
                    f"Method '{method}' defined in {', '.join(sorted(definers))}; "
                    f"using {max(definers)}"
                )
            self._assign_owner(method)

    def drop_file(self, path: str) -> None:
        """Remove the methods defined in ``path``. O(methods in that file)."""
        for method in self.definitions.pop(path, {}):
            definers = self.definers.get(method)
            if definers is not None:
                definers.discard(path)
                if not definers:
                    del self.definers[method]
            self._assign_owner(method)

    def _assign_owner(self, method: str) -> None:
        definers = self.definers.get(method)
        owner = max(definers) if definers else None
        previous = self.defined_in.get(method)
        if previous is not None and previous != owner:
            owned = self.methods_by_file.get(previous)
            if owned is not None:
                owned.discard(method)
                if not owned:
                    del self.methods_by_file[previous]
        if owner is None:
            self.defined_in.pop(method, None)
            self.calls.pop(method, None)
            return
        self.defined_in[method] = owner
        self.methods_by_file.setdefault(owner, set()).add(method)
        self.calls[method] = self.definitions[owner][method]

    def rebuild_reverse_index(self) -> None:
        """Recompute called_by, skipping opaque receiver calls."""
        self.called_by.clear()
        for caller, callees in self.calls.items():
            for callee in callees:
                if is_unresolved_call(callee):
                    continue
                self.called_by.setdefault(callee, set()).add(caller)

    def get_callers(self, method: str) -> Set[str]:
        return set(self.called_by.get(method, ()))

    def unresolved_calls(self, method: str) -> Set[str]:
        """Opaque receiver calls made by ``method`` (diagnostics only)."""
        return {c for c in self.calls.get(method, ()) if is_unresolved_call(c)}

    def methods_in(self, path: str) -> Set[str]:
        return set(self.methods_by_file.get(path, ()))

    def tracked_paths(self) -> Set[str]:
        """Files contributing at least one method definition, owned or not."""
        return set(self.definitions)

    def restore(self, other: "MethodCallGraph") -> None:
        """Adopt another graph's maps as this graph's state (shared, not copied)."""
        self.calls = other.calls
        self.called_by = other.called_by
        self.defined_in = other.defined_in
        self.methods_by_file = other.methods_by_file
        self.definitions = other.definitions
        self.definers = {}
        for path, defined in self.definitions.items():
            for method in defined:
                self.definers.setdefault(method, set()).add(path)

    def clear(self) -> None:
        self.calls.clear()
        self.called_by.clear()
        self.defined_in.clear()
        self.methods_by_file.clear()
        self.definitions.clear()
        self.definers.clear()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "definitions": {
                path: {m: sorted(c) for m, c in sorted(defined.items())}
                for path, defined in sorted(self.definitions.items())
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MethodCallGraph":
        """Deserialize; every other map is derived from the per-file definitions."""
        graph = cls()
        for path, defined in data["definitions"].items():
            graph.record_file(path, defined)
        graph.rebuild_reverse_index()
        return graph

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MethodCallGraph):
            return NotImplemented
        return self.definitions == other.definitions and self.calls == other.calls

    __hash__ = None  # type: ignore[assignment]
