"""Maximum bipartite matching via breadth-first augmenting paths.

Implements the Edmonds-Karp procedure on the network built by
`flushplan.algorithms.matching`: each round runs a BFS from the source over
edges with residual capacity, stops as soon as the sink is labelled, and
pushes the path bottleneck. Rounds repeat until the sink is unreachable.
"""

from __future__ import annotations

from collections import deque
from typing import Dict, Optional

from flushplan.algorithms.matching import BipartiteMatcher, BipartiteNetwork
from flushplan.algorithms.types import MatchResult
from flushplan.graph.flow_network import EdgeID, FlowNetwork, NodeID
from flushplan.logging import get_logger

logger = get_logger(__name__)


class MaxBipartiteMatcher(BipartiteMatcher):
    """Uncosted left-to-right assignment with capacities and link limits.

    Examples:
        >>> m = MaxBipartiteMatcher(["a", "b"], [0, 1], allow={0: [1]})
        >>> m.solve()
        [1, 0]
    """

    def solve_detailed(self) -> MatchResult:
        """Run max-flow and return the full matching result."""
        bipartite = self.build_network()
        total_flow = augment_max_flow(bipartite)
        logger.debug(
            "Max matching: %d left, %d right, flow %d",
            len(self.left_nodes),
            len(self.right_nodes),
            total_flow,
        )
        return self.read_matching(bipartite, total_flow)


def augment_max_flow(bipartite: BipartiteNetwork) -> int:
    """Saturate the network with BFS augmenting paths; return the flow value."""
    network = bipartite.network
    source, sink = bipartite.source, bipartite.sink
    total_flow = 0

    while True:
        bottleneck: Dict[NodeID, int] = {source: _unbounded(network, source)}
        previous: Dict[NodeID, EdgeID] = {}
        queue = deque([source])

        while queue and sink not in bottleneck:
            node = queue.popleft()
            for edge_id in network.out_edges_of(node):
                _, target = network.endpoints(edge_id)
                if target in bottleneck:
                    continue
                residual = network.residual(edge_id)
                if residual > 0:
                    previous[target] = edge_id
                    bottleneck[target] = min(bottleneck[node], residual)
                    queue.append(target)

        pushed: Optional[int] = bottleneck.get(sink)
        if not pushed:
            break

        node = sink
        while node != source:
            edge_id = previous[node]
            network.push(edge_id, pushed)
            node, _ = network.endpoints(edge_id)
        total_flow += pushed

    return total_flow


def _unbounded(network: FlowNetwork, source: NodeID) -> int:
    # Larger than any flow that can leave the source
    return sum(network.edge(e)["capacity"] for e in network.out_edges_of(source)) + 1
