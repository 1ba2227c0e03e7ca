"""Minimum-cost bipartite matching via successive shortest augmenting paths.

Each round finds the cheapest source-to-sink path in the residual network with
a queue-based label-correcting search (SPFA). Residual reverse edges carry
negated costs, which rules out Dijkstra. Labels only improve on a strictly
lower distance, so among equal-cost paths the one discovered first in edge
insertion order wins and results are deterministic.
"""

from __future__ import annotations

import math
from collections import deque
from typing import Dict, Optional, Sequence, Tuple

from flushplan.algorithms.matching import (
    BipartiteMatcher,
    BipartiteNetwork,
    GroupCapacity,
    LinkLimits,
)
from flushplan.algorithms.types import MatchNodeID, MatchResult
from flushplan.graph.flow_network import EdgeID, NodeID
from flushplan.logging import get_logger

logger = get_logger(__name__)

CostMatrix = Sequence[Sequence[float]]


class MinCostBipartiteMatcher(BipartiteMatcher):
    """Maximum matching of minimum total cost.

    The cost of assigning left node ``i`` to right node ``j`` is
    ``cost_matrix[left_nodes[i]][right_nodes[j]]``. A left node whose id is
    ``None`` (for example an empty nozzle) costs 0 against every right node.

    Args:
        cost_matrix: Square or rectangular table indexed by node ids.
        left_nodes: Left-side ids.
        right_nodes: Right-side ids.
        allow, deny, left_capacity, right_capacity, right_group_capacity:
            Constraints with the same meaning as in `BipartiteMatcher`.
    """

    def __init__(
        self,
        cost_matrix: CostMatrix,
        left_nodes: Sequence[MatchNodeID],
        right_nodes: Sequence[MatchNodeID],
        allow: Optional[LinkLimits] = None,
        deny: Optional[LinkLimits] = None,
        left_capacity: Optional[Sequence[int]] = None,
        right_capacity: Optional[Sequence[int]] = None,
        right_group_capacity: Optional[GroupCapacity] = None,
    ) -> None:
        super().__init__(
            left_nodes,
            right_nodes,
            allow=allow,
            deny=deny,
            left_capacity=left_capacity,
            right_capacity=right_capacity,
            right_group_capacity=right_group_capacity,
        )
        self.cost_matrix = cost_matrix

    def pair_cost(self, left_idx: int, right_idx: int) -> float:
        """Cost of assigning left node ``left_idx`` to right node ``right_idx``."""
        left_id = self.left_nodes[left_idx]
        if left_id is None:
            return 0.0
        return float(self.cost_matrix[left_id][self.right_nodes[right_idx]])  # type: ignore[index]

    def solve_detailed(self) -> MatchResult:
        """Run min-cost max-flow and return the full matching result."""
        bipartite = self.build_network(self.pair_cost)
        total_flow, total_cost = augment_min_cost_flow(bipartite)
        logger.debug(
            "Min-cost matching: %d left, %d right, flow %d, cost %s",
            len(self.left_nodes),
            len(self.right_nodes),
            total_flow,
            total_cost,
        )
        return self.read_matching(bipartite, total_flow, total_cost)


def augment_min_cost_flow(bipartite: BipartiteNetwork) -> Tuple[int, float]:
    """Push flow along cheapest augmenting paths until none remain.

    Returns:
        Tuple of (total flow, total cost).
    """
    network = bipartite.network
    source, sink = bipartite.source, bipartite.sink
    total_flow = 0
    total_cost = 0.0

    while True:
        path = _shortest_augmenting_path(bipartite)
        if path is None:
            break
        previous, pushed, distance = path

        node = sink
        while node != source:
            edge_id = previous[node]
            network.push(edge_id, pushed)
            node, _ = network.endpoints(edge_id)
        total_flow += pushed
        total_cost += pushed * distance

    return total_flow, total_cost


def _shortest_augmenting_path(
    bipartite: BipartiteNetwork,
) -> Optional[Tuple[Dict[NodeID, EdgeID], int, float]]:
    """Label-correcting search over residual edges.

    Returns:
        ``(predecessor edge per node, bottleneck, path cost)`` or ``None``
        when the sink is unreachable.
    """
    network = bipartite.network
    source, sink = bipartite.source, bipartite.sink

    dist: Dict[NodeID, float] = {source: 0.0}
    bottleneck: Dict[NodeID, float] = {source: math.inf}
    previous: Dict[NodeID, EdgeID] = {}
    queue = deque([source])
    in_queue = {source}

    while queue:
        node = queue.popleft()
        in_queue.discard(node)
        for edge_id in network.out_edges_of(node):
            residual = network.residual(edge_id)
            if residual <= 0:
                continue
            attr = network.edge(edge_id)
            _, target = network.endpoints(edge_id)
            candidate = dist[node] + attr["cost"]
            if candidate < dist.get(target, math.inf):
                dist[target] = candidate
                previous[target] = edge_id
                bottleneck[target] = min(bottleneck[node], residual)
                if target not in in_queue:
                    queue.append(target)
                    in_queue.add(target)

    if sink not in dist:
        return None
    return previous, int(bottleneck[sink]), dist[sink]
