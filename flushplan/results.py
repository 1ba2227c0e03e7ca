"""Result containers for scheduling runs.

`GroupPlan` is produced by one `LayerSequenceOrchestrator` run and
`SchedulePlan` by the top-level schedulers. Both expose ``to_dict()`` for
JSON export; `SchedulePlan` also renders a per-layer ``pandas`` table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

import pandas as pd

from flushplan.model.flush import sequence_cost

Sequences = List[List[int]]
NozzleMatches = List[List[List[Optional[int]]]]


@dataclass
class GroupPlan:
    """Per-layer orders for one group of filaments.

    Attributes:
        group_id: Identifier of the group (logical extruder or nozzle id).
        total_cost: Accumulated purge volume over all layers.
        sequences: Load order per layer, restricted to the group.
        layer_costs: Purge volume per layer.
        override_layers: Layers whose order came from a custom sequence.
        cache_hits: Layers served from the ordering cache.
        cache_misses: Layers that invoked the solver.
    """

    group_id: int
    total_cost: float = 0.0
    sequences: Sequences = field(default_factory=list)
    layer_costs: List[float] = field(default_factory=list)
    override_layers: Set[int] = field(default_factory=set)
    cache_hits: int = 0
    cache_misses: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "group_id": self.group_id,
            "total_cost": self.total_cost,
            "sequences": [list(s) for s in self.sequences],
            "layer_costs": list(self.layer_costs),
            "override_layers": sorted(self.override_layers),
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
        }


@dataclass
class SchedulePlan:
    """Global per-layer load plan for a whole print.

    Attributes:
        total_cost: Sum of all group costs (same unit as the flush matrix).
        filament_sequences: Final load order per layer across all groups.
        groups: Plans of the individually solved groups, by group id.
        nozzle_matches: For multi-nozzle groups, per layer a list of epochs;
            each epoch maps nozzle slot -> filament id or ``None``.
    """

    total_cost: float
    filament_sequences: Sequences
    groups: Dict[int, GroupPlan] = field(default_factory=dict)
    nozzle_matches: Optional[NozzleMatches] = None

    @property
    def layer_count(self) -> int:
        return len(self.filament_sequences)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "total_cost": self.total_cost,
            "filament_sequences": [list(s) for s in self.filament_sequences],
            "groups": {str(gid): plan.to_dict() for gid, plan in self.groups.items()},
        }
        if self.nozzle_matches is not None:
            data["nozzle_matches"] = self.nozzle_matches
        return data

    def to_dataframe(self) -> pd.DataFrame:
        """One row per layer with the merged order and per-group costs."""
        rows: List[Dict[str, Any]] = []
        for layer, seq in enumerate(self.filament_sequences):
            row: Dict[str, Any] = {
                "layer": layer,
                "sequence": " ".join(str(f) for f in seq),
                "filaments": len(seq),
            }
            layer_total = 0.0
            for gid, plan in sorted(self.groups.items()):
                cost = plan.layer_costs[layer] if layer < len(plan.layer_costs) else 0.0
                row[f"cost_group_{gid}"] = cost
                layer_total += cost
            row["cost"] = layer_total
            rows.append(row)
        return pd.DataFrame(rows, columns=_frame_columns(rows)).set_index("layer")


def _frame_columns(rows: List[Dict[str, Any]]) -> List[str]:
    if rows:
        return list(rows[0].keys())
    return ["layer", "sequence", "filaments", "cost"]


def merged_cost(
    sequences: Sequences, flush: Any, start: Optional[int] = None
) -> float:
    """Purge volume of following ``sequences`` back to back on one feed path."""
    total = 0.0
    last = start
    for seq in sequences:
        total += sequence_cost(seq, last, flush)
        if seq:
            last = seq[-1]
    return total
