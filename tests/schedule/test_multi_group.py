import numpy as np
import pytest
from pytest import approx

from flushplan.results import merged_cost
from flushplan.schedule.multi_group import MultiGroupScheduler, merge_group_sequences

GROUPS = [{0, 1}, {2, 3}]


class TestMergeGroupSequences:
    def test_alternates_starting_group(self):
        sequences = {0: [[0, 1], [1], [0]], 1: [[2, 3], [3], [2]]}
        merged = merge_group_sequences(sequences, GROUPS, {}, 3)
        assert merged == [[0, 1, 2, 3], [3, 1], [0, 2]]

    def test_empty_tail_keeps_last_group(self):
        sequences = {0: [[0], [1]], 1: [[], [2]]}
        merged = merge_group_sequences(sequences, GROUPS, {}, 2)
        # Group 1 printed nothing on layer 0, so group 0 goes first again
        assert merged == [[0], [1, 2]]

    def test_override_is_verbatim_and_sets_last_group(self):
        sequences = {0: [[0, 1], [1], [0]], 1: [[2, 3], [3], [2]]}
        merged = merge_group_sequences(sequences, GROUPS, {1: [1, 3]}, 3)
        assert merged[1] == [1, 3]
        # The override ended on group 1, so group 1 leads the next layer
        assert merged[2] == [2, 0]

    def test_missing_group_counts_as_empty(self):
        assert merge_group_sequences({0: [[0], [1]]}, GROUPS, {}, 2) == [[0], [1]]


class TestMultiGroupScheduler:
    def test_single_group_uniform(self, uniform_flush):
        plan = MultiGroupScheduler([0, 1, 2], [0, 0, 0], uniform_flush).run(
            [[0, 1, 2], [0, 2]]
        )
        assert plan.filament_sequences == [[0, 1, 2], [2, 0]]
        assert plan.total_cost == approx(3.0)
        assert list(plan.groups) == [0]

    def test_two_groups_with_own_matrices(self):
        shared = np.ones((4, 4)) - np.eye(4)
        costly = shared * 10
        plan = MultiGroupScheduler(
            [0, 1, 2, 3], {0: 0, 1: 0, 2: 1, 3: 1}, [shared, costly]
        ).run([[0, 1, 2, 3], [0, 2]])
        assert plan.groups[0].total_cost == approx(merged_cost(plan.groups[0].sequences, shared))
        assert plan.groups[1].total_cost == approx(merged_cost(plan.groups[1].sequences, costly))
        assert plan.total_cost == approx(
            plan.groups[0].total_cost + plan.groups[1].total_cost
        )

    def test_each_layer_is_a_permutation(self, random_flush):
        flush = random_flush(12, seed=8)
        rng = np.random.default_rng(8)
        layers = [
            sorted(rng.choice(12, size=int(rng.integers(0, 9)), replace=False).tolist())
            for _ in range(25)
        ]
        to_group = [f % 2 for f in range(12)]
        plan = MultiGroupScheduler(range(12), to_group, flush).run(layers)
        assert plan.layer_count == len(layers)
        for seq, layer in zip(plan.filament_sequences, layers):
            assert sorted(seq) == layer

    def test_parallel_matches_sequential(self, random_flush):
        flush = random_flush(10, seed=6)
        layers = [[0, 1, 2, 3, 4, 5], [6, 7, 8, 9], [0, 9], [1, 2, 7, 8]]
        to_group = [0, 1, 0, 1, 0, 1, 0, 1, 0, 1]
        sequential = MultiGroupScheduler(range(10), to_group, flush).run(layers)
        parallel = MultiGroupScheduler(range(10), to_group, flush, parallelism=2).run(
            layers
        )
        assert parallel == sequential

    def test_unassigned_filaments_are_dropped(self, uniform_flush):
        plan = MultiGroupScheduler([0, 1, 2], [0, -1, 1], uniform_flush).run([[0, 1, 2]])
        assert sorted(plan.filament_sequences[0]) == [0, 2]

    def test_custom_sequence_overrides_layer(self, random_flush):
        flush = random_flush(4, seed=0)
        plan = MultiGroupScheduler([0, 1, 2, 3], [0, 0, 1, 1], flush).run(
            [[0, 1, 2, 3], [0, 2]],
            get_custom_seq=lambda layer: [3, 2, 1, 0] if layer == 0 else None,
        )
        assert plan.filament_sequences[0] == [3, 2, 1, 0]
        assert plan.groups[0].override_layers == {0}
        assert plan.groups[0].sequences[0] == [1, 0]
        assert plan.groups[1].sequences[0] == [3, 2]
        # Group 0 finished layer 0, so it leads layer 1
        assert plan.filament_sequences[1] == [0, 2]

    def test_custom_sequence_must_cover_layer(self, uniform_flush):
        scheduler = MultiGroupScheduler([0, 1, 2], [0, 0, 1], uniform_flush)
        with pytest.raises(ValueError, match="does not match"):
            scheduler.run([[0, 1, 2]], get_custom_seq=lambda layer: [0, 1])

    def test_start_filaments_per_group(self, cyclic_flush):
        plan = MultiGroupScheduler(
            [0, 1, 2], [0, 0, 0], cyclic_flush, start_filaments={0: 2}
        ).run([[0, 1]])
        assert plan.total_cost == approx(2.0)

    def test_group_list_length_mismatch(self, uniform_flush):
        with pytest.raises(ValueError, match="entries"):
            MultiGroupScheduler([0, 1, 2], [0, 1], uniform_flush)

    def test_missing_matrix_for_group(self, uniform_flush):
        scheduler = MultiGroupScheduler([0, 1, 2], [0, 1, 1], [uniform_flush])
        with pytest.raises(ValueError, match="No flush matrix"):
            scheduler.run([[0, 1, 2]])
