"""Bipartite assignment networks shared by the matchers.

A matching problem is expressed as a flow network::

    source -> left[i]            capacity left_capacity[i]
    left[i] -> right[j]          capacity 1, cost edge_cost(i, j)
    right[j] -> sink             capacity right_capacity[j]
    right[j] -> group[g] -> sink when j belongs to a shared-capacity group

Left-to-right edges honour an optional allow-list (left index -> right
indices it may use) or deny-list (left index -> right indices it must not
use). The allow-list wins when both name the same left index.

Node indices, not node ids, are used in every constraint so that duplicate
ids (e.g. several empty nozzles) stay distinct.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from flushplan.algorithms.types import MatchNodeID, MatchResult
from flushplan.graph.flow_network import EdgeID, FlowNetwork, NodeID

LinkLimits = Mapping[int, Sequence[int]]
GroupCapacity = Sequence[Tuple[Iterable[int], int]]


@dataclass
class BipartiteNetwork:
    """A built matching network plus the handles needed to read it back."""

    network: FlowNetwork
    source: NodeID
    sink: NodeID
    # Per left index: (left->right edge handle, right index), insertion order
    links: List[List[Tuple[EdgeID, int]]] = field(default_factory=list)


class BipartiteMatcher:
    """Validated bipartite matching problem; subclasses supply augmentation.

    Args:
        left_nodes: Ids of left-side nodes (``None`` allowed).
        right_nodes: Ids of right-side nodes.
        allow: Left index -> the only right indices it may be matched to.
        deny: Left index -> right indices it must not be matched to.
        left_capacity: Per left node capacity (default 1 each).
        right_capacity: Per right node capacity (default 1 each).
        right_group_capacity: ``(right indices, capacity)`` pairs; the listed
            right nodes share one combined capacity.

    Raises:
        ValueError: On capacity arrays of the wrong length, negative
            capacities, or constraints naming non-existent nodes.
    """

    def __init__(
        self,
        left_nodes: Sequence[MatchNodeID],
        right_nodes: Sequence[MatchNodeID],
        allow: Optional[LinkLimits] = None,
        deny: Optional[LinkLimits] = None,
        left_capacity: Optional[Sequence[int]] = None,
        right_capacity: Optional[Sequence[int]] = None,
        right_group_capacity: Optional[GroupCapacity] = None,
    ) -> None:
        self.left_nodes: List[MatchNodeID] = list(left_nodes)
        self.right_nodes: List[MatchNodeID] = list(right_nodes)
        n_left = len(self.left_nodes)
        n_right = len(self.right_nodes)

        self.left_capacity = _check_capacity(left_capacity, n_left, "left")
        self.right_capacity = _check_capacity(right_capacity, n_right, "right")
        self.allow = _check_limits(allow, n_left, n_right, "allow")
        self.deny = _check_limits(deny, n_left, n_right, "deny")
        self.right_groups = _check_groups(right_group_capacity, n_right)

    def build_network(
        self, edge_cost: Optional[Callable[[int, int], float]] = None
    ) -> BipartiteNetwork:
        """Build a fresh flow network for this problem.

        Args:
            edge_cost: ``(left_index, right_index) -> cost`` for left-to-right
                edges. All costs are 0 when omitted.
        """
        n_left = len(self.left_nodes)
        n_right = len(self.right_nodes)

        network = FlowNetwork()
        left = network.add_nodes(n_left)
        right = network.add_nodes(n_right)
        groups = network.add_nodes(len(self.right_groups))
        source = network.add_node()
        sink = network.add_node()

        right_to: List[NodeID] = [sink] * n_right
        for gid, (members, _) in enumerate(self.right_groups):
            for r_idx in members:
                right_to[r_idx] = groups[gid]

        for idx in range(n_left):
            network.add_edge(source, left[idx], self.left_capacity[idx])
        for idx in range(n_right):
            network.add_edge(right[idx], right_to[idx], self.right_capacity[idx])
        for gid, (_, capacity) in enumerate(self.right_groups):
            network.add_edge(groups[gid], sink, capacity)

        links: List[List[Tuple[EdgeID, int]]] = []
        for i in range(n_left):
            if i in self.allow:
                candidates = list(self.allow[i])
            else:
                denied = set(self.deny.get(i, ()))
                candidates = [j for j in range(n_right) if j not in denied]
            row: List[Tuple[EdgeID, int]] = []
            for j in candidates:
                cost = edge_cost(i, j) if edge_cost is not None else 0
                row.append((network.add_edge(left[i], right[j], 1, cost), j))
            links.append(row)

        return BipartiteNetwork(network=network, source=source, sink=sink, links=links)

    def read_matching(
        self, bipartite: BipartiteNetwork, total_flow: int, total_cost: float = 0.0
    ) -> MatchResult:
        """Collect assignments from left-to-right edges that carry flow.

        ``matching[i]`` is the first right node (in edge order) assigned to
        left node ``i``; left nodes with capacity above one may appear in
        several ``pairs``.
        """
        matching: List[MatchNodeID] = [None] * len(self.left_nodes)
        pairs: List[Tuple[int, int]] = []
        network = bipartite.network
        for i, row in enumerate(bipartite.links):
            for edge_id, j in row:
                if network.edge(edge_id)["flow"] > 0:
                    pairs.append((i, j))
                    if matching[i] is None:
                        matching[i] = self.right_nodes[j]
        return MatchResult(
            total_flow=total_flow,
            matching=matching,
            pairs=pairs,
            total_cost=total_cost,
        )

    def solve_detailed(self) -> MatchResult:
        raise NotImplementedError

    def solve(self) -> List[MatchNodeID]:
        """Match and return, per left node, its right node id or ``None``."""
        return self.solve_detailed().matching


def _check_capacity(
    capacity: Optional[Sequence[int]], size: int, side: str
) -> List[int]:
    if capacity is None or len(capacity) == 0:
        return [1] * size
    if len(capacity) != size:
        raise ValueError(
            f"{side} capacity has {len(capacity)} entries for {size} {side} nodes"
        )
    values = [int(c) for c in capacity]
    if any(c < 0 for c in values):
        raise ValueError(f"{side} capacity must be non-negative: {values}")
    return values


def _check_limits(
    limits: Optional[LinkLimits], n_left: int, n_right: int, name: str
) -> Dict[int, List[int]]:
    checked: Dict[int, List[int]] = {}
    for l_idx, r_list in (limits or {}).items():
        if not 0 <= l_idx < n_left:
            raise ValueError(f"{name} list references unknown left node {l_idx}")
        r_checked = list(r_list)
        for r_idx in r_checked:
            if not 0 <= r_idx < n_right:
                raise ValueError(
                    f"{name} list of left node {l_idx} references unknown right node {r_idx}"
                )
        checked[l_idx] = r_checked
    return checked


def _check_groups(
    groups: Optional[GroupCapacity], n_right: int
) -> List[Tuple[List[int], int]]:
    checked: List[Tuple[List[int], int]] = []
    seen: Set[int] = set()
    for members, capacity in groups or ():
        member_list = sorted(set(members))
        for r_idx in member_list:
            if not 0 <= r_idx < n_right:
                raise ValueError(f"group capacity references unknown right node {r_idx}")
            if r_idx in seen:
                raise ValueError(f"right node {r_idx} belongs to more than one group")
            seen.add(r_idx)
        if capacity < 0:
            raise ValueError(f"group capacity must be non-negative, got {capacity}")
        checked.append((member_list, int(capacity)))
    return checked
