"""Load order of the filaments sharing one feed path.

Given the filaments a layer needs, the filament currently loaded and a flush
matrix, find the order that minimizes total purge volume. Three strategies
are available and the caller picks one per layer (see `select_order_mode`):

- ``OrderMode.EXACT``: Held-Karp dynamic programming over subsets, an exact
  shortest Hamiltonian path starting at the loaded filament. O(2^n * n^2)
  time and O(2^n * n) memory, so it is capped at 20 filaments by default.
- ``OrderMode.FORECAST``: exhaustive search over permutations of this layer
  and the next one, keeping the current-layer permutation of the best pair.
  Only viable for very small layers.
- ``OrderMode.GREEDY``: nearest-neighbour fallback for large layers.

All functions are pure. Filaments are processed in ascending id order so that
every tie resolves to the lowest id.
"""

from __future__ import annotations

import math
import sys
from itertools import permutations
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np

from flushplan.algorithms.types import FilamentID, OrderMode, OrderResult
from flushplan.config import (
    EXACT_FILAMENT_HARD_LIMIT,
    SEQUENCING_CONFIG,
    SequencingConfig,
)
from flushplan.model.flush import sequence_cost

FlushTable = Union[np.ndarray, Sequence[Sequence[float]]]


def select_order_mode(
    n_curr: int, n_next: int, config: Optional[SequencingConfig] = None
) -> OrderMode:
    """Strategy for a layer of ``n_curr`` filaments followed by ``n_next``."""
    return (config or SEQUENCING_CONFIG).select_mode(n_curr, n_next)


def solve_order(
    curr: Iterable[FilamentID],
    next_layer: Iterable[FilamentID],
    prev: Optional[FilamentID],
    flush: FlushTable,
    mode: Optional[OrderMode] = None,
) -> OrderResult:
    """Best load order for one layer.

    Args:
        curr: Filaments required now.
        next_layer: Filaments required by the next layer (used by FORECAST).
        prev: Filament loaded before this layer, or ``None``.
        flush: Flush matrix indexed by filament ids.
        mode: Strategy; chosen with the default config when omitted.

    Returns:
        OrderResult: The order and its purge cost, counting the transition
        from ``prev``.

    Raises:
        ValueError: If EXACT is requested above the hard filament limit.

    Examples:
        >>> flush = [[0, 1, 5], [5, 0, 1], [1, 5, 0]]
        >>> solve_order([2, 1, 0], [], 0, flush, OrderMode.EXACT).order
        [0, 1, 2]
    """
    curr_list = sorted(curr)
    next_list = sorted(next_layer)

    if not curr_list:
        return OrderResult(order=[], cost=0.0)
    if len(curr_list) == 1:
        return OrderResult(order=curr_list, cost=sequence_cost(curr_list, prev, flush))

    if mode is None:
        mode = select_order_mode(len(curr_list), len(next_list))

    if mode == OrderMode.FORECAST:
        order = solve_forecast(curr_list, next_list, prev, flush)
    elif mode == OrderMode.EXACT:
        order = solve_exact(curr_list, prev, flush)
    else:
        order = solve_greedy(curr_list, prev, flush)

    return OrderResult(order=order, cost=sequence_cost(order, prev, flush), mode=mode)


def solve_exact(
    curr: Sequence[FilamentID], prev: Optional[FilamentID], flush: FlushTable
) -> List[FilamentID]:
    """Shortest Hamiltonian path over ``curr`` starting after ``prev``.

    The path head is ``prev``; when it is undefined a virtual head with zero
    outgoing cost is used, so the path may start anywhere. A required
    ``prev`` is an ordinary node whose first load costs ``flush[prev][prev]``.

    ``dp[S][j]`` is the cheapest way to load exactly the subset ``S`` of the
    layer ending with ``j``. Subsets are processed by size and, for each end
    node, all subsets of that size are relaxed at once with numpy. Ties keep
    the lowest predecessor and then the lowest final filament.
    """
    matrix = np.asarray(flush, dtype=float)
    ordered = sorted(curr)
    k = len(ordered)
    if k == 0:
        return []
    if k > EXACT_FILAMENT_HARD_LIMIT:
        raise ValueError(
            f"Exact ordering supports at most {EXACT_FILAMENT_HARD_LIMIT} filaments, got {k}"
        )

    idx = np.asarray(ordered, dtype=np.intp)
    step = matrix[np.ix_(idx, idx)]
    start = np.zeros(k) if prev is None else matrix[prev, idx]

    n_masks = 1 << k
    dp = np.full((n_masks, k), math.inf)
    parent = np.full((n_masks, k), -1, dtype=np.int8)
    nodes = np.arange(k)
    dp[1 << nodes, nodes] = start

    masks = np.arange(n_masks)
    popcount = np.zeros(n_masks, dtype=np.int64)
    for bit in range(k):
        popcount += (masks >> bit) & 1

    for size in range(2, k + 1):
        level = masks[popcount == size]
        for j in range(k):
            subsets = level[((level >> j) & 1) == 1]
            candidates = dp[subsets ^ (1 << j)] + step[:, j]
            best = candidates.argmin(axis=1)
            dp[subsets, j] = candidates[np.arange(len(subsets)), best]
            parent[subsets, j] = best

    full = n_masks - 1
    node = int(np.argmin(dp[full]))
    mask = full
    path: List[FilamentID] = []
    while node != -1:
        path.append(ordered[node])
        pred = int(parent[mask, node])
        mask ^= 1 << node
        node = pred
    path.reverse()
    return path


def solve_greedy(
    curr: Sequence[FilamentID], prev: Optional[FilamentID], flush: FlushTable
) -> List[FilamentID]:
    """Nearest-neighbour order.

    Repeatedly loads the cheapest remaining filament from the last one. On
    equal cost a same-filament continuation wins, otherwise the lowest id.
    Without ``prev`` the lowest id is loaded first.
    """
    table = _rows(flush)
    remaining = sorted(curr)
    order: List[FilamentID] = []
    last = prev

    while remaining:
        if last is None:
            pick = remaining[0]
        else:
            pick = remaining[0]
            best = math.inf
            for filament in remaining:
                cost = table[last][filament]
                if cost < best or (cost == best and filament == last):
                    pick, best = filament, cost
        order.append(pick)
        remaining.remove(pick)
        last = pick

    return order


def solve_forecast(
    curr: Sequence[FilamentID],
    next_layer: Sequence[FilamentID],
    prev: Optional[FilamentID],
    flush: FlushTable,
) -> List[FilamentID]:
    """Order chosen by jointly optimizing this layer and the next one.

    Every permutation of ``curr`` is paired with every permutation of
    ``next_layer``; the current permutation of the cheapest pair is returned.
    Equal combined costs prefer fewer filament changes, which keeps
    zero-cost switches in sparse matrices from looking free. Remaining ties
    keep the lexicographically first permutation.
    """
    table = _rows(flush)
    next_perms = list(permutations(sorted(next_layer)))

    best_cost = math.inf
    best_changes = sys.maxsize
    best_seq: Sequence[FilamentID] = ()

    for perm in permutations(sorted(curr)):
        curr_cost = sequence_cost(perm, prev, table)
        if curr_cost > best_cost:
            continue
        last = perm[-1] if perm else prev
        for next_perm in next_perms:
            total = curr_cost + sequence_cost(next_perm, last, table)
            if total > best_cost:
                continue
            changes = count_changes(prev, perm, next_perm)
            if total < best_cost or changes < best_changes:
                best_cost = total
                best_changes = changes
                best_seq = perm

    return list(best_seq)


def count_changes(prev: Optional[FilamentID], *sequences: Sequence[FilamentID]) -> int:
    """Number of adjacent loads that switch to a different filament."""
    changes = 0
    last = prev
    for seq in sequences:
        for filament in seq:
            if last is not None and last != filament:
                changes += 1
            last = filament
    return changes


def _rows(flush: FlushTable) -> Sequence[Sequence[float]]:
    # Plain lists index far faster than numpy scalars in tight loops
    if isinstance(flush, np.ndarray):
        return flush.tolist()
    return flush
