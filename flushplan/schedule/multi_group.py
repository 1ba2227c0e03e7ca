"""Scheduling for printers with two logical extruder groups.

Each group owns its own feed path and flush matrix, so the groups are ordered
independently and their per-layer orders are merged afterwards. The merge
keeps continuity: a layer starts with the group that finished the previous
layer, so only one extruder switch is needed per layer.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Mapping, Optional, Sequence, Set

from flushplan.config import SequencingConfig
from flushplan.logging import get_logger
from flushplan.model.flush import as_flush_matrices, matrix_for
from flushplan.model.layers import (
    CustomSequenceFn,
    FilamentToGroup,
    LayerFilaments,
    normalize_layers,
    resolve_overrides,
    split_groups,
)
from flushplan.results import GroupPlan, SchedulePlan, Sequences
from flushplan.schedule.orchestrator import LayerSequenceOrchestrator

logger = get_logger(__name__)


def run_orchestrators(
    orchestrators: Mapping[int, LayerSequenceOrchestrator],
    layers: Sequence[Sequence[int]],
    overrides: Mapping[int, Sequence[int]],
    parallelism: int = 1,
) -> Dict[int, GroupPlan]:
    """Run independent orchestrators, optionally on a thread pool.

    Each orchestrator owns its cache, so branches never share mutable state.
    Results are returned in the iteration order of ``orchestrators``.
    """
    if parallelism > 1 and len(orchestrators) > 1:
        workers = min(parallelism, len(orchestrators))
        logger.debug("Running %d groups on %d workers", len(orchestrators), workers)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                gid: executor.submit(orch.run, layers, overrides)
                for gid, orch in orchestrators.items()
            }
            return {gid: future.result() for gid, future in futures.items()}
    return {gid: orch.run(layers, overrides) for gid, orch in orchestrators.items()}


def merge_group_sequences(
    group_sequences: Mapping[int, Sequences],
    groups: Sequence[Set[int]],
    overrides: Mapping[int, Sequence[int]],
    layer_count: int,
) -> Sequences:
    """Interleave two groups' per-layer orders into one order per layer.

    Args:
        group_sequences: Per group id (0 or 1), the group's order per layer.
            Missing groups count as empty.
        groups: Filament membership of group 0 and group 1.
        overrides: Custom sequences by layer; emitted verbatim.
        layer_count: Number of layers.

    Returns:
        Sequences: Global load order per layer.
    """
    merged: Sequences = []
    last_group = 0

    def fragment(gid: int, layer: int) -> List[int]:
        seqs = group_sequences.get(gid)
        if not seqs or layer >= len(seqs):
            return []
        return list(seqs[layer])

    for layer in range(layer_count):
        if layer in overrides:
            out = list(overrides[layer])
            if out:
                last_group = 0 if out[-1] in groups[0] else 1
            merged.append(out)
            continue

        first, second = last_group, 1 - last_group
        out = fragment(first, layer)
        tail = fragment(second, layer)
        if tail:
            out.extend(tail)
            last_group = second
        merged.append(out)

    return merged


class MultiGroupScheduler:
    """Order a print whose filaments are split over two logical extruders.

    Args:
        filament_ids: All filaments of the print.
        filament_to_group: Filament -> group (0/1) mapping or aligned list.
        flush_matrices: One matrix shared by both groups, or one per group id.
        config: Strategy thresholds.
        parallelism: Run the two groups on a thread pool when above 1.
        start_filaments: Optional filament already loaded per group id.
    """

    def __init__(
        self,
        filament_ids: Sequence[int],
        filament_to_group: FilamentToGroup,
        flush_matrices,
        config: Optional[SequencingConfig] = None,
        parallelism: int = 1,
        start_filaments: Optional[Mapping[int, int]] = None,
    ) -> None:
        self.filament_ids = [int(f) for f in filament_ids]
        self.groups = split_groups(self.filament_ids, filament_to_group)
        self.flush_matrices = as_flush_matrices(flush_matrices)
        self.config = config
        self.parallelism = parallelism
        self.start_filaments = dict(start_filaments or {})

    def build_orchestrators(self) -> Dict[int, LayerSequenceOrchestrator]:
        """One fresh orchestrator per non-empty group."""
        return {
            gid: LayerSequenceOrchestrator(
                group,
                matrix_for(self.flush_matrices, gid),
                config=self.config,
                start_filament=self.start_filaments.get(gid),
                group_id=gid,
            )
            for gid, group in enumerate(self.groups)
            if group
        }

    def run(
        self,
        layer_filaments: LayerFilaments,
        get_custom_seq: Optional[CustomSequenceFn] = None,
    ) -> SchedulePlan:
        """Schedule all layers and merge the groups.

        Raises:
            ValueError: On malformed layers or custom sequences.
        """
        layers = normalize_layers(layer_filaments)
        overrides = resolve_overrides(layers, get_custom_seq)

        plans = run_orchestrators(
            self.build_orchestrators(), layers, overrides, self.parallelism
        )
        sequences = merge_group_sequences(
            {gid: plan.sequences for gid, plan in plans.items()},
            self.groups,
            overrides,
            len(layers),
        )
        total = sum(plan.total_cost for plan in plans.values())
        logger.info(
            "Scheduled %d layers over %d group(s): total flush %.3f",
            len(layers),
            len(plans),
            total,
        )
        return SchedulePlan(total_cost=total, filament_sequences=sequences, groups=plans)
