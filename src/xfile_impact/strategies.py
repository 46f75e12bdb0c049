# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Dependency-selection strategies.

A strategy decides which SymbolFact categories count as file-level
dependencies. Wider strategies catch more impact at the cost of selecting more
files:
- conservative: imports, inheritance, interfaces, traits, instantiations, static calls
- moderate: imports, inheritance, interfaces, traits
- minimal: imports, inheritance, interfaces
"""

from dataclasses import dataclass
from typing import Dict, List, Set, Tuple

from xfile_impact.models import SymbolCategory, SymbolFact


@dataclass(frozen=True)
class DependencyStrategy:
    """Named selection of SymbolFact categories."""

    name: str
    categories: Tuple[str, ...]

    def select(self, fact: SymbolFact) -> Set[str]:
        """Return the referenced symbols this strategy treats as dependencies."""
        selected: Set[str] = set()
        for category in self.categories:
            selected.update(fact.category(category))
        return selected


CONSERVATIVE = DependencyStrategy("conservative", SymbolCategory.ALL)

MODERATE = DependencyStrategy(
    "moderate",
    (
        SymbolCategory.USES,
        SymbolCategory.EXTENDS,
        SymbolCategory.IMPLEMENTS,
        SymbolCategory.TRAITS,
    ),
)

MINIMAL = DependencyStrategy(
    "minimal",
    (SymbolCategory.USES, SymbolCategory.EXTENDS, SymbolCategory.IMPLEMENTS),
)

_STRATEGIES: Dict[str, DependencyStrategy] = {
    s.name: s for s in (CONSERVATIVE, MODERATE, MINIMAL)
}

DEFAULT_STRATEGY = CONSERVATIVE.name


def get_strategy(name: str) -> DependencyStrategy:
    """Look up a strategy by name.

    Raises:
        ValueError: If the name is not a known strategy.
    """
    try:
        return _STRATEGIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown strategy '{name}'. Use one of: {', '.join(strategy_names())}"
        ) from None


def strategy_names() -> List[str]:
    return list(_STRATEGIES)
