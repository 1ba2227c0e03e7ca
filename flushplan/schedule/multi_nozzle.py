"""Scheduling for extruders that carry several physical nozzles.

Two schedulers live here:

- `MultiNozzleAssignmentScheduler` handles one logical group with K nozzles.
  Per layer it decides which nozzle receives which filament by running
  min-cost matchings in epochs (each epoch fills up to K nozzles), keeping the
  nozzle contents from one layer to the next. The other group is ordered by a
  regular `LayerSequenceOrchestrator` and both are merged per layer.
- `NozzleGroupScheduler` handles hardware where every filament is already
  bound to a nozzle (`NozzleGroupResult`). Each nozzle is ordered
  independently and the fragments are merged round-robin over extruders and,
  within an extruder, over its nozzles.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

import numpy as np

from flushplan.algorithms.min_cost_matching import MinCostBipartiteMatcher
from flushplan.config import SequencingConfig
from flushplan.logging import get_logger
from flushplan.model.flush import as_flush_matrices, check_filaments, matrix_for
from flushplan.model.layers import (
    GROUP_COUNT,
    CustomSequenceFn,
    FilamentToGroup,
    LayerFilaments,
    collect_in_group,
    normalize_layers,
    resolve_overrides,
    split_groups,
)
from flushplan.model.nozzle import NozzleLookup
from flushplan.results import GroupPlan, NozzleMatches, SchedulePlan, Sequences
from flushplan.schedule.multi_group import merge_group_sequences, run_orchestrators
from flushplan.schedule.orchestrator import LayerSequenceOrchestrator

logger = get_logger(__name__)

NozzleState = List[Optional[int]]
Epoch = List[Optional[int]]


@dataclass
class NozzleAssignment:
    """Placement of one layer's filaments onto nozzles.

    Attributes:
        epochs: Assignment rounds; ``epochs[e][slot]`` is the filament loaded
            into nozzle ``slot`` during round ``e`` or ``None``.
        cost: Purge volume of all loads in the layer.
        state: Nozzle contents after the layer.
    """

    epochs: List[Epoch]
    cost: float
    state: NozzleState

    def flatten(self) -> List[int]:
        """Load order implied by the epochs (round by round, slot by slot)."""
        return [f for epoch in self.epochs for f in epoch if f is not None]


def assign_by_matching(
    filaments: Sequence[int], nozzle_state: Sequence[Optional[int]], flush: np.ndarray
) -> NozzleAssignment:
    """Place filaments onto nozzles with successive min-cost matchings.

    Each epoch matches the current nozzle contents (left) against the
    filaments still to place (right), where loading ``f`` into a nozzle that
    holds ``g`` costs ``flush[g][f]`` and an empty nozzle costs nothing.
    Nozzles left unmatched in an epoch keep their content.

    Raises:
        RuntimeError: If an epoch places nothing while filaments remain.
    """
    working: NozzleState = list(nozzle_state)
    pool = sorted(filaments)
    epochs: List[Epoch] = []
    cost = 0.0

    while pool:
        matching = MinCostBipartiteMatcher(flush, working, pool).solve()
        epoch: Epoch = [None] * len(working)
        for slot, matched in enumerate(matching):
            if matched is None:
                continue
            filament = int(matched)
            loaded = working[slot]
            if loaded is not None:
                cost += float(flush[loaded][filament])
            epoch[slot] = filament
            working[slot] = filament

        placed = {f for f in epoch if f is not None}
        if not placed:
            raise RuntimeError(
                f"No nozzle could take any of filaments {pool}; check nozzle count"
            )
        pool = [f for f in pool if f not in placed]
        epochs.append(epoch)

    return NozzleAssignment(epochs=epochs, cost=cost, state=working)


def assign_in_given_order(
    sequence: Sequence[int], nozzle_state: Sequence[Optional[int]], flush: np.ndarray
) -> NozzleAssignment:
    """Place filaments in a fixed load order, each on its cheapest nozzle.

    Ties go to the lowest nozzle index. A new epoch starts whenever the chosen
    nozzle index does not increase, so flattening the epochs reproduces
    ``sequence``.
    """
    state: NozzleState = list(nozzle_state)
    slots: List[int] = []
    cost = 0.0

    for filament in sequence:
        best_slot = -1
        best = math.inf
        for slot, loaded in enumerate(state):
            flush_cost = 0.0 if loaded is None else float(flush[loaded][filament])
            if flush_cost < best:
                best, best_slot = flush_cost, slot
        cost += best
        state[best_slot] = filament
        slots.append(best_slot)

    epochs: List[Epoch] = []
    prev_slot = -1
    for filament, slot in zip(sequence, slots):
        if prev_slot == -1 or slot <= prev_slot:
            epochs.append([None] * len(state))
        epochs[-1][slot] = filament
        prev_slot = slot

    return NozzleAssignment(epochs=epochs, cost=cost, state=state)


class MultiNozzleAssignmentScheduler:
    """Two-group scheduling where one group owns several nozzles.

    Args:
        filament_ids: All filaments of the print.
        filament_to_group: Filament -> group (0/1) mapping or aligned list.
        flush_matrices: One shared matrix or one per group id.
        multi_nozzle_group: Group (0 or 1) that owns the nozzles.
        nozzle_count: Number of nozzles of that group.
        config: Strategy thresholds for the single-nozzle group.

    Raises:
        ValueError: On an invalid group id or nozzle count.
    """

    def __init__(
        self,
        filament_ids: Sequence[int],
        filament_to_group: FilamentToGroup,
        flush_matrices,
        multi_nozzle_group: int,
        nozzle_count: int,
        config: Optional[SequencingConfig] = None,
    ) -> None:
        if not 0 <= multi_nozzle_group < GROUP_COUNT:
            raise ValueError(f"multi_nozzle_group must be 0 or 1, got {multi_nozzle_group}")
        if nozzle_count < 1:
            raise ValueError(f"nozzle_count must be positive, got {nozzle_count}")
        self.filament_ids = [int(f) for f in filament_ids]
        self.groups = split_groups(self.filament_ids, filament_to_group)
        self.flush_matrices = as_flush_matrices(flush_matrices)
        self.multi_nozzle_group = multi_nozzle_group
        self.fixed_group = 1 - multi_nozzle_group
        self.nozzle_count = nozzle_count
        self.config = config

    def run(
        self,
        layer_filaments: LayerFilaments,
        get_custom_seq: Optional[CustomSequenceFn] = None,
    ) -> SchedulePlan:
        """Assign and order every layer.

        Returns:
            SchedulePlan: With ``nozzle_matches`` holding the epochs per layer.
        """
        layers = normalize_layers(layer_filaments)
        overrides = resolve_overrides(layers, get_custom_seq)
        plans: Dict[int, GroupPlan] = {}

        fixed = self.groups[self.fixed_group]
        if fixed:
            orchestrator = LayerSequenceOrchestrator(
                fixed,
                matrix_for(self.flush_matrices, self.fixed_group),
                config=self.config,
                group_id=self.fixed_group,
            )
            plans[self.fixed_group] = orchestrator.run(layers, overrides)

        nozzle_matches: NozzleMatches = []
        multi = self.groups[self.multi_nozzle_group]
        if multi:
            plan, nozzle_matches = self._run_nozzle_group(multi, layers, overrides)
            plans[self.multi_nozzle_group] = plan
        else:
            nozzle_matches = [[] for _ in layers]

        sequences = merge_group_sequences(
            {gid: plan.sequences for gid, plan in plans.items()},
            self.groups,
            overrides,
            len(layers),
        )
        total = sum(plan.total_cost for plan in plans.values())
        logger.info(
            "Scheduled %d layers with %d nozzles on group %d: total flush %.3f",
            len(layers),
            self.nozzle_count,
            self.multi_nozzle_group,
            total,
        )
        return SchedulePlan(
            total_cost=total,
            filament_sequences=sequences,
            groups=dict(sorted(plans.items())),
            nozzle_matches=nozzle_matches,
        )

    def _run_nozzle_group(
        self,
        group: Set[int],
        layers: List[List[int]],
        overrides: Mapping[int, Sequence[int]],
    ) -> Tuple[GroupPlan, NozzleMatches]:
        flush = matrix_for(self.flush_matrices, self.multi_nozzle_group)
        check_filaments(flush, group)
        plan = GroupPlan(group_id=self.multi_nozzle_group)
        matches: NozzleMatches = []
        nozzle_state: NozzleState = [None] * self.nozzle_count

        for layer, required in enumerate(layers):
            if layer in overrides:
                assignment = assign_in_given_order(
                    collect_in_group(group, overrides[layer]), nozzle_state, flush
                )
                plan.override_layers.add(layer)
            else:
                assignment = assign_by_matching(
                    collect_in_group(group, required), nozzle_state, flush
                )
            # Commit only once the whole layer is placed
            nozzle_state = assignment.state

            plan.sequences.append(assignment.flatten())
            plan.layer_costs.append(assignment.cost)
            plan.total_cost += assignment.cost
            matches.append(assignment.epochs)
            logger.debug(
                "Nozzle group layer %d: %d epoch(s), cost %.3f, state %s",
                layer,
                len(assignment.epochs),
                assignment.cost,
                nozzle_state,
            )

        return plan, matches


class NozzleGroupScheduler:
    """Order a print whose filaments are bound to nozzles up front.

    Args:
        filament_ids: All filaments of the print.
        nozzle_group_result: Filament -> nozzle lookup. Filaments without a
            nozzle are not scheduled.
        flush_matrices: One shared matrix or one per extruder id.
        config: Strategy thresholds.
        parallelism: Order nozzles on a thread pool when above 1.
    """

    def __init__(
        self,
        filament_ids: Sequence[int],
        nozzle_group_result: NozzleLookup,
        flush_matrices,
        config: Optional[SequencingConfig] = None,
        parallelism: int = 1,
    ) -> None:
        self.flush_matrices = as_flush_matrices(flush_matrices)
        self.config = config
        self.parallelism = parallelism
        self.nozzle_group_result = nozzle_group_result

        nozzle_filaments: Dict[int, Set[int]] = {}
        extruder_nozzles: Dict[int, Set[int]] = {}
        self.nozzle_extruder: Dict[int, int] = {}
        for filament in filament_ids:
            info = nozzle_group_result.get_nozzle_for_filament(int(filament))
            if info is None:
                continue
            nozzle_filaments.setdefault(info.group_id, set()).add(int(filament))
            extruder_nozzles.setdefault(info.extruder_id, set()).add(info.group_id)
            self.nozzle_extruder.setdefault(info.group_id, info.extruder_id)

        self.nozzle_filaments = dict(sorted(nozzle_filaments.items()))
        self.extruder_nozzles: Dict[int, List[int]] = {
            ext: sorted(nozzles) for ext, nozzles in sorted(extruder_nozzles.items())
        }

    def run(
        self,
        layer_filaments: LayerFilaments,
        get_custom_seq: Optional[CustomSequenceFn] = None,
    ) -> SchedulePlan:
        """Order every nozzle and merge the fragments per layer."""
        layers = normalize_layers(layer_filaments)
        overrides = resolve_overrides(layers, get_custom_seq)

        orchestrators = {
            nozzle_id: LayerSequenceOrchestrator(
                filaments,
                matrix_for(self.flush_matrices, self.nozzle_extruder[nozzle_id]),
                config=self.config,
                group_id=nozzle_id,
            )
            for nozzle_id, filaments in self.nozzle_filaments.items()
        }
        plans = run_orchestrators(orchestrators, layers, overrides, self.parallelism)
        sequences = self._merge(plans, overrides, len(layers))
        total = sum(plan.total_cost for plan in plans.values())
        logger.info(
            "Scheduled %d layers over %d nozzle(s) on %d extruder(s): total flush %.3f",
            len(layers),
            len(plans),
            len(self.extruder_nozzles),
            total,
        )
        return SchedulePlan(total_cost=total, filament_sequences=sequences, groups=plans)

    def _merge(
        self,
        plans: Mapping[int, GroupPlan],
        overrides: Mapping[int, Sequence[int]],
        layer_count: int,
    ) -> Sequences:
        extruders = list(self.extruder_nozzles)
        merged: Sequences = []
        if not extruders:
            return [list(overrides.get(layer, [])) for layer in range(layer_count)]

        last_extruder_pos = 0
        last_nozzle_pos: Dict[int, int] = {ext: 0 for ext in extruders}

        for layer in range(layer_count):
            if layer in overrides:
                custom = list(overrides[layer])
                for filament in custom:
                    info = self.nozzle_group_result.get_nozzle_for_filament(filament)
                    if info is None or info.extruder_id not in self.extruder_nozzles:
                        continue
                    last_extruder_pos = extruders.index(info.extruder_id)
                    last_nozzle_pos[info.extruder_id] = self.extruder_nozzles[
                        info.extruder_id
                    ].index(info.group_id)
                merged.append(custom)
                continue

            out: List[int] = []
            next_extruder_pos = last_extruder_pos
            next_nozzle_pos = dict(last_nozzle_pos)
            for step in range(len(extruders)):
                ext_pos = (last_extruder_pos + step) % len(extruders)
                extruder = extruders[ext_pos]
                nozzles = self.extruder_nozzles[extruder]
                used = False
                for offset in range(len(nozzles)):
                    nozzle_pos = (last_nozzle_pos[extruder] + offset) % len(nozzles)
                    fragment = plans[nozzles[nozzle_pos]].sequences[layer]
                    if not fragment:
                        continue
                    used = True
                    next_nozzle_pos[extruder] = nozzle_pos
                    out.extend(fragment)
                if used:
                    next_extruder_pos = ext_pos
            last_extruder_pos = next_extruder_pos
            last_nozzle_pos = next_nozzle_pos
            merged.append(out)

        return merged
