"""Layer-by-layer load ordering for one group of filaments.

`LayerSequenceOrchestrator` walks the layers of a print in order, carrying
the last loaded filament from one layer into the next. Layers with a custom
sequence are taken as given; all other layers are solved with the strategy
picked by `SequencingConfig` and memoized by their local context, so prints
that repeat the same filament pattern over hundreds of layers solve each
pattern once.
"""

from __future__ import annotations

from typing import (
    Callable,
    Dict,
    Iterable,
    Mapping,
    NamedTuple,
    Optional,
    Sequence,
)

from flushplan.algorithms.order import solve_order
from flushplan.algorithms.types import FilamentID, OrderMode, OrderResult
from flushplan.config import SEQUENCING_CONFIG, SequencingConfig
from flushplan.logging import get_logger
from flushplan.model.flush import (
    FlushMatrixLike,
    as_flush_matrix,
    check_filaments,
    sequence_cost,
)
from flushplan.model.layers import LayerFilaments, collect_in_group, normalize_layers
from flushplan.results import GroupPlan

logger = get_logger(__name__)


class SchedulingCancelled(RuntimeError):
    """Raised when a run is cancelled between two layers."""


class OrderingCacheKey(NamedTuple):
    """Local context that fully determines a layer's solved order.

    Each field is a bit-set with bit ``i`` standing for filament ``i``.
    ``next_mask`` is 0 unless the layer was solved with lookahead.
    """

    prev_mask: int
    curr_mask: int
    next_mask: int


def filament_mask(filaments: Iterable[FilamentID]) -> int:
    """Bit-set of filament ids."""
    mask = 0
    for filament in filaments:
        mask |= 1 << filament
    return mask


class LayerSequenceOrchestrator:
    """Sequential per-layer ordering of one group with memoization.

    Args:
        group_filaments: Filaments owned by this group; other ids in the
            layers are ignored.
        flush: Flush matrix used for this group.
        config: Strategy thresholds (defaults to ``SEQUENCING_CONFIG``).
        start_filament: Filament loaded before the first layer, if known.
        group_id: Identifier reported in the resulting `GroupPlan`.
        should_cancel: Optional callable polled before each layer.

    Raises:
        ValueError: If a group filament is outside the flush matrix.
    """

    def __init__(
        self,
        group_filaments: Iterable[FilamentID],
        flush: FlushMatrixLike,
        config: Optional[SequencingConfig] = None,
        start_filament: Optional[FilamentID] = None,
        group_id: int = 0,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.group = frozenset(int(f) for f in group_filaments)
        self.flush = as_flush_matrix(flush)
        check_filaments(self.flush, self.group)
        if start_filament is not None:
            check_filaments(self.flush, [start_filament])
        self.config = config or SEQUENCING_CONFIG
        self.start_filament = start_filament
        self.group_id = group_id
        self.should_cancel = should_cancel

    def run(
        self,
        layer_filaments: LayerFilaments,
        overrides: Optional[Mapping[int, Sequence[FilamentID]]] = None,
    ) -> GroupPlan:
        """Order every layer of the print for this group.

        Args:
            layer_filaments: Required filaments per layer.
            overrides: Resolved custom sequences by layer index (see
                `flushplan.model.layers.resolve_overrides`).

        Returns:
            GroupPlan: Orders, per-layer and total costs, cache statistics.

        Raises:
            SchedulingCancelled: If ``should_cancel`` returned True.
        """
        layers = normalize_layers(layer_filaments)
        overrides = overrides or {}
        cache: Dict[OrderingCacheKey, OrderResult] = {}
        plan = GroupPlan(group_id=self.group_id)
        last = self.start_filament

        for layer, required in enumerate(layers):
            if self.should_cancel is not None and self.should_cancel():
                raise SchedulingCancelled(
                    f"Group {self.group_id} cancelled before layer {layer}"
                )

            if layer in overrides:
                sequence = collect_in_group(self.group, overrides[layer])
                cost = sequence_cost(sequence, last, self.flush)
                plan.override_layers.add(layer)
            else:
                curr = collect_in_group(self.group, required)
                nxt = (
                    collect_in_group(self.group, layers[layer + 1])
                    if layer + 1 < len(layers)
                    else []
                )
                mode = self.config.select_mode(len(curr), len(nxt))
                key = OrderingCacheKey(
                    prev_mask=0 if last is None else 1 << last,
                    curr_mask=filament_mask(curr),
                    next_mask=filament_mask(nxt)
                    if mode == OrderMode.FORECAST and len(curr) > 1
                    else 0,
                )
                result = cache.get(key) if self.config.use_cache else None
                if result is None:
                    result = solve_order(curr, nxt, last, self.flush, mode)
                    plan.cache_misses += 1
                    if self.config.use_cache:
                        cache[key] = result
                    if mode == OrderMode.GREEDY and len(curr) > 1:
                        logger.debug(
                            "Group %d layer %d: %d filaments exceed the exact limit, "
                            "using greedy order",
                            self.group_id,
                            layer,
                            len(curr),
                        )
                else:
                    plan.cache_hits += 1
                sequence, cost = list(result.order), result.cost

            plan.sequences.append(sequence)
            plan.layer_costs.append(cost)
            plan.total_cost += cost
            if sequence:
                last = sequence[-1]

        logger.debug(
            "Group %d: %d layers, cost %.3f, cache %d hits / %d misses",
            self.group_id,
            len(layers),
            plan.total_cost,
            plan.cache_hits,
            plan.cache_misses,
        )
        return plan
