"""Per-layer filament sets, group membership and custom sequence overrides."""

from __future__ import annotations

from typing import (
    Callable,
    Container,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Union,
)

from flushplan.utils.dsu import DisjointSet

LayerFilaments = Sequence[Iterable[int]]
CustomSequenceFn = Callable[[int], Optional[Sequence[int]]]
FilamentToGroup = Union[Mapping[int, int], Sequence[int]]

# Logical extruder groups handled by the two-group schedulers
GROUP_COUNT = 2


def normalize_layer(filaments: Iterable[int], layer: int = -1) -> List[int]:
    """Return the layer's filaments in ascending id order.

    Raises:
        ValueError: If a filament appears more than once.
    """
    items = [int(f) for f in filaments]
    ordered = sorted(set(items))
    if len(ordered) != len(items):
        where = f" in layer {layer}" if layer >= 0 else ""
        raise ValueError(f"Duplicate filament ids{where}: {items}")
    return ordered


def normalize_layers(layer_filaments: LayerFilaments) -> List[List[int]]:
    """Normalize every layer with `normalize_layer`."""
    return [normalize_layer(lf, idx) for idx, lf in enumerate(layer_filaments)]


def collect_in_group(group: Container[int], filaments: Iterable[int]) -> List[int]:
    """Filaments that belong to ``group``, in input order."""
    return [f for f in filaments if f in group]


def split_groups(
    filament_ids: Sequence[int], filament_to_group: FilamentToGroup
) -> List[Set[int]]:
    """Split filaments into the two logical extruder groups.

    Args:
        filament_ids: All filaments of the print.
        filament_to_group: Either a mapping filament -> group, or a sequence
            aligned with ``filament_ids``. Filaments mapped outside 0..1 are
            left out of both groups.

    Raises:
        ValueError: If a sequence mapping has the wrong length.
        KeyError: If a mapping lacks an entry for a filament.
    """
    groups: List[Set[int]] = [set() for _ in range(GROUP_COUNT)]
    if isinstance(filament_to_group, Mapping):
        assigned = [filament_to_group[f] for f in filament_ids]
    else:
        if len(filament_to_group) != len(filament_ids):
            raise ValueError(
                f"filament_to_group has {len(filament_to_group)} entries for "
                f"{len(filament_ids)} filaments"
            )
        assigned = list(filament_to_group)
    for filament, group in zip(filament_ids, assigned):
        if 0 <= group < GROUP_COUNT:
            groups[group].add(int(filament))
    return groups


def resolve_overrides(
    layer_filaments: Sequence[Sequence[int]],
    get_custom_seq: Optional[CustomSequenceFn],
) -> Dict[int, List[int]]:
    """Collect user-defined load orders for every layer that has one.

    Each returned sequence is filtered to the ids required by its layer. A
    ``None`` or empty sequence means the layer is optimized normally.

    Raises:
        ValueError: If the filtered sequence does not cover the layer exactly.
    """
    overrides: Dict[int, List[int]] = {}
    if get_custom_seq is None:
        return overrides
    for layer, required in enumerate(layer_filaments):
        custom = get_custom_seq(layer)
        if not custom:
            continue
        required_set = set(required)
        filtered = [int(f) for f in custom if f in required_set]
        if len(filtered) != len(required_set) or set(filtered) != required_set:
            raise ValueError(
                f"Custom sequence {list(custom)} for layer {layer} does not match "
                f"its required filaments {sorted(required_set)}"
            )
        overrides[layer] = filtered
    return overrides


def filament_clusters(layer_filaments: LayerFilaments) -> List[List[int]]:
    """Group filaments that are transitively printed on a common layer.

    Two filaments end up in the same cluster when some chain of layers links
    them. Clusters are sorted internally and by their smallest id.
    """
    dsu: DisjointSet[int] = DisjointSet()
    for layer in layer_filaments:
        members = list(layer)
        for filament in members:
            dsu.add(filament)
        for other in members[1:]:
            dsu.union(members[0], other)
    return sorted((sorted(group) for group in dsu.groups()), key=lambda g: g[0])
