"""Residual flow network with explicitly paired reverse edges.

`FlowNetwork` extends `networkx.MultiDiGraph` with strict node and edge
management in the manner of a strict multigraph: nodes are never created
implicitly, every edge gets a unique monotonically increasing integer handle,
and misuse raises ``ValueError``.

Each call to ``add_edge`` stores two edges in the arena: the forward edge and
a zero-capacity reverse edge with negated cost. Both carry a ``rev`` attribute
holding the handle of the other, so flow cancellation never depends on the
order in which edges were inserted.
"""

from __future__ import annotations

from typing import Any, Dict, Hashable, List, Tuple

import networkx as nx

NodeID = Hashable
EdgeID = int
AttrDict = Dict[str, Any]
EdgeTuple = Tuple[NodeID, NodeID, EdgeID, AttrDict]


class FlowNetwork(nx.MultiDiGraph):
    """A directed multigraph holding capacities, flows and costs.

    This class enforces:
      - Nodes are added explicitly; ``add_node()`` without an argument
        allocates the next free integer id.
      - Duplicate nodes raise ValueError.
      - Edges may only join existing nodes and always come in
        (forward, reverse) pairs linked through the ``rev`` attribute.
      - Edge handles are integers that are never reused.

    Edge attributes:
        capacity: Maximum flow on the edge (0 for reverse edges).
        flow: Current flow; reverse edges mirror the forward flow negated.
        cost: Per-unit cost (negated on the reverse edge).
        rev: Handle of the paired edge.
        reverse: True for the synthetic reverse half of a pair.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._edges: Dict[EdgeID, EdgeTuple] = {}
        # Outgoing handles per node in insertion order; drives deterministic search
        self._out_edges: Dict[NodeID, List[EdgeID]] = {}
        self._next_edge_id: int = 0
        self._next_node_id: int = 0

    def new_edge_key(self, u: NodeID, v: NodeID, key: Any = None) -> int:  # type: ignore[override]
        """Return a new unique integer edge handle."""
        next_edge_id = self._next_edge_id
        self._next_edge_id += 1
        return next_edge_id

    #
    # Node management
    #
    def add_node(self, node_for_adding: Any = None, **attr: Any) -> NodeID:  # pyright: ignore[reportIncompatibleMethodOverride]
        """Add a node and return its id.

        Args:
            node_for_adding: Explicit node id. When omitted, the next free
                integer id is allocated.
            **attr: Arbitrary node attributes.

        Returns:
            NodeID: The id of the new node.

        Raises:
            ValueError: If the node already exists.
        """
        if node_for_adding is None:
            while self._next_node_id in self:
                self._next_node_id += 1
            node_for_adding = self._next_node_id
            self._next_node_id += 1
        elif node_for_adding in self:
            raise ValueError(f"Node '{node_for_adding}' already exists in this network.")
        super().add_node(node_for_adding, **attr)
        self._out_edges[node_for_adding] = []
        return node_for_adding

    def add_nodes(self, count: int, **attr: Any) -> List[NodeID]:
        """Allocate ``count`` new integer nodes and return their ids in order."""
        return [self.add_node(**attr) for _ in range(count)]

    #
    # Edge management
    #
    def add_edge(  # pyright: ignore[reportIncompatibleMethodOverride]
        self,
        u_for_edge: NodeID,
        v_for_edge: NodeID,
        capacity: int = 1,
        cost: float = 0,
    ) -> EdgeID:
        """Add a forward edge and its paired reverse edge.

        Args:
            u_for_edge: Source node. Must exist.
            v_for_edge: Target node. Must exist.
            capacity: Non-negative capacity of the forward edge.
            cost: Per-unit cost of the forward edge.

        Returns:
            EdgeID: Handle of the forward edge. The reverse edge handle is
            available as ``network.edge(handle)["rev"]``.

        Raises:
            ValueError: If a node is missing or the capacity is negative.
        """
        if u_for_edge not in self:
            raise ValueError(f"Source node '{u_for_edge}' does not exist.")
        if v_for_edge not in self:
            raise ValueError(f"Target node '{v_for_edge}' does not exist.")
        if capacity < 0:
            raise ValueError(f"Edge capacity must be non-negative, got {capacity}.")

        fwd_key = self.new_edge_key(u_for_edge, v_for_edge)
        rev_key = self.new_edge_key(v_for_edge, u_for_edge)

        self._insert_edge(
            u_for_edge, v_for_edge, fwd_key, capacity, cost, rev_key, reverse=False
        )
        self._insert_edge(
            v_for_edge, u_for_edge, rev_key, 0, -cost, fwd_key, reverse=True
        )
        return fwd_key

    def _insert_edge(
        self,
        u: NodeID,
        v: NodeID,
        key: EdgeID,
        capacity: int,
        cost: float,
        rev: EdgeID,
        reverse: bool,
    ) -> None:
        super().add_edge(
            u, v, key=key, capacity=capacity, flow=0, cost=cost, rev=rev, reverse=reverse
        )
        self._edges[key] = (u, v, key, self[u][v][key])  # pyright: ignore[reportArgumentType]
        self._out_edges[u].append(key)

    #
    # Residual access
    #
    def edge(self, key: EdgeID) -> AttrDict:
        """Return the attribute dict of an edge.

        Raises:
            KeyError: If the handle is unknown.
        """
        return self._edges[key][3]

    def endpoints(self, key: EdgeID) -> Tuple[NodeID, NodeID]:
        """Return ``(source, target)`` of an edge."""
        src, dst, _, _ = self._edges[key]
        return src, dst

    def residual(self, key: EdgeID) -> int:
        """Remaining capacity of an edge in the residual network."""
        attr = self._edges[key][3]
        return attr["capacity"] - attr["flow"]

    def push(self, key: EdgeID, amount: int) -> None:
        """Send ``amount`` units along an edge, updating its pair.

        Raises:
            ValueError: If ``amount`` exceeds the residual capacity.
        """
        attr = self._edges[key][3]
        if amount > attr["capacity"] - attr["flow"]:
            raise ValueError(
                f"Cannot push {amount} on edge {key}: residual is "
                f"{attr['capacity'] - attr['flow']}."
            )
        attr["flow"] += amount
        self._edges[attr["rev"]][3]["flow"] -= amount

    def out_edges_of(self, node: NodeID) -> List[EdgeID]:
        """Outgoing edge handles of ``node`` (forward and reverse) in insertion order."""
        return self._out_edges[node]

    def get_edges(self) -> Dict[EdgeID, EdgeTuple]:
        """Retrieve a dictionary of all edges by handle.

        Returns:
            Dict[EdgeID, EdgeTuple]: ``handle -> (src, dst, handle, attrs)``.
        """
        return self._edges

    def forward_edges(self) -> List[EdgeID]:
        """Handles of all forward (non-reverse) edges in insertion order."""
        return [key for key, (_, _, _, attr) in self._edges.items() if not attr["reverse"]]

    def reset_flow(self) -> None:
        """Zero the flow on every edge."""
        for _, _, _, attr in self._edges.values():
            attr["flow"] = 0
