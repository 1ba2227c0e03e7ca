"""Types and data structures for ordering and matching results.

Defines immutable result containers and the ordering strategy enum.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Hashable, List, Optional, Tuple

# Filament identifiers index the flush matrix directly
FilamentID = int

# Matcher node identifiers are opaque; ``None`` marks an empty left slot
MatchNodeID = Optional[Hashable]


class OrderMode(IntEnum):
    """Ordering strategy for a single feed path."""

    EXACT = 1
    FORECAST = 2
    GREEDY = 3


@dataclass(frozen=True)
class OrderResult:
    """Best load order found for one layer.

    Attributes:
        order: Filament ids in load order.
        cost: Purge volume of ``order`` including the transition from the
            previously loaded filament, if any.
        mode: Strategy that produced the order (``None`` for trivial layers).
    """

    order: List[FilamentID]
    cost: float
    mode: Optional[OrderMode] = None


@dataclass(frozen=True)
class MatchResult:
    """Outcome of a bipartite matching run.

    Attributes:
        total_flow: Number of assignments placed.
        matching: Per left node, the matched right node id or ``None``.
        pairs: Every ``(left_index, right_index)`` assignment in edge order.
        total_cost: Sum of edge costs over ``pairs`` (0 for uncosted matchers).
    """

    total_flow: int
    matching: List[MatchNodeID]
    pairs: List[Tuple[int, int]] = field(default_factory=list)
    total_cost: float = 0.0
