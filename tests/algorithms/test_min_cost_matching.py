from itertools import permutations

import pytest
from pytest import approx

from flushplan.algorithms.min_cost_matching import MinCostBipartiteMatcher


def _brute_force_min_cost(cost, left, right):
    """Cheapest perfect assignment of left ids to right ids (len(left) <= len(right))."""
    best = float("inf")
    for perm in permutations(range(len(right)), len(left)):
        total = sum(
            0.0 if left[i] is None else cost[left[i]][right[j]]
            for i, j in enumerate(perm)
        )
        best = min(best, total)
    return best


class TestMinCostMatching:
    def test_picks_cheapest_assignment(self):
        cost = [
            [0, 9, 1],
            [1, 0, 9],
            [9, 1, 0],
        ]
        # Left 0 holds filament 0, left 1 holds filament 1
        matcher = MinCostBipartiteMatcher(cost, [0, 1], [1, 2])
        result = matcher.solve_detailed()
        assert result.total_flow == 2
        # 0 -> 2 costs 1, 1 -> ... only 1 remains -> cost 0
        assert result.matching == [2, 1]
        assert result.total_cost == approx(1.0)

    def test_keeps_loaded_filament_in_place(self):
        cost = [
            [0, 4, 4],
            [4, 0, 4],
            [4, 4, 0],
        ]
        matcher = MinCostBipartiteMatcher(cost, [2, 0, 1], [0, 1, 2])
        result = matcher.solve_detailed()
        assert result.matching == [2, 0, 1]
        assert result.total_cost == approx(0.0)

    def test_empty_left_node_costs_nothing(self):
        cost = [
            [0, 10],
            [10, 0],
        ]
        matcher = MinCostBipartiteMatcher(cost, [None, 0], [0, 1])
        result = matcher.solve_detailed()
        # Filament 0 stays on slot 1, the empty slot takes filament 1
        assert result.matching == [1, 0]
        assert result.total_cost == approx(0.0)
        assert matcher.pair_cost(0, 1) == 0.0
        assert matcher.pair_cost(1, 1) == 10.0

    def test_maximum_cardinality_before_cost(self):
        """A cheaper but smaller matching never beats a full one."""
        cost = [
            [0, 1],
            [100, 100],
        ]
        matcher = MinCostBipartiteMatcher(cost, [0, 1], [0, 1], allow={1: [0]})
        result = matcher.solve_detailed()
        assert result.total_flow == 2
        assert result.matching == [1, 0]
        assert result.total_cost == approx(101.0)

    def test_equal_costs_resolve_in_edge_order(self):
        cost = [[1, 1, 1]] * 3
        first = MinCostBipartiteMatcher(cost, [0, 0], [0, 1, 2]).solve()
        second = MinCostBipartiteMatcher(cost, [0, 0], [0, 1, 2]).solve()
        assert first == second == [0, 1]

    def test_respects_deny(self):
        cost = [
            [0, 5],
            [5, 0],
        ]
        matcher = MinCostBipartiteMatcher(cost, [0], [0, 1], deny={0: [0]})
        assert matcher.solve() == [1]

    @pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
    def test_matches_brute_force(self, random_flush, seed):
        cost = random_flush(6, seed=seed)
        left = [0, 3, None, 5]
        right = [1, 2, 4, 5, 0]
        result = MinCostBipartiteMatcher(cost, left, right).solve_detailed()
        assert result.total_flow == len(left)
        assert result.total_cost == approx(_brute_force_min_cost(cost, left, right))
        recomputed = sum(
            0.0 if left[i] is None else cost[left[i]][right[j]]
            for i, j in result.pairs
        )
        assert recomputed == approx(result.total_cost)

    def test_validation_is_inherited(self):
        with pytest.raises(ValueError):
            MinCostBipartiteMatcher([[0]], [0], [0], right_capacity=[1, 1])
