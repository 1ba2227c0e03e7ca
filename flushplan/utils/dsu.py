"""Disjoint-set union (union-find) with union by rank and path compression."""

from __future__ import annotations

from typing import Dict, Generic, Hashable, Iterable, List, TypeVar

T = TypeVar("T", bound=Hashable)


class DisjointSet(Generic[T]):
    """Partition of hashable items into disjoint sets.

    Items are registered lazily by ``find``/``union`` or eagerly by ``add``.

    Examples:
        >>> dsu = DisjointSet([1, 2, 3])
        >>> dsu.union(1, 3)
        True
        >>> dsu.connected(1, 3), dsu.connected(1, 2)
        (True, False)
    """

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._parent: Dict[T, T] = {}
        self._rank: Dict[T, int] = {}
        for item in items:
            self.add(item)

    def __contains__(self, item: object) -> bool:
        return item in self._parent

    def __len__(self) -> int:
        return len(self._parent)

    def add(self, item: T) -> None:
        """Register ``item`` as a singleton set if it is new."""
        if item not in self._parent:
            self._parent[item] = item
            self._rank[item] = 0

    def find(self, item: T) -> T:
        """Return the representative of ``item``'s set."""
        self.add(item)
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        # Path compression
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: T, b: T) -> bool:
        """Merge the sets of ``a`` and ``b``.

        Returns:
            True if two distinct sets were merged, False if already joined.
        """
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return False
        if self._rank[root_a] < self._rank[root_b]:
            root_a, root_b = root_b, root_a
        self._parent[root_b] = root_a
        if self._rank[root_a] == self._rank[root_b]:
            self._rank[root_a] += 1
        return True

    def connected(self, a: T, b: T) -> bool:
        return self.find(a) == self.find(b)

    def groups(self) -> List[List[T]]:
        """All sets, each in registration order, ordered by first member."""
        by_root: Dict[T, List[T]] = {}
        for item in self._parent:
            by_root.setdefault(self.find(item), []).append(item)
        return list(by_root.values())
