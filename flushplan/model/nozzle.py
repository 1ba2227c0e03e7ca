"""Nozzle hardware description consumed by the nozzle-aware schedulers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Protocol, Sequence


@dataclass(frozen=True)
class NozzleInfo:
    """Physical nozzle that a filament is bound to.

    Attributes:
        extruder_id: Logical extruder owning the nozzle.
        group_id: Nozzle (group) id, unique across extruders.
        diameter: Nozzle diameter in mm, informational.
        volume_type: Flow/volume type label, informational.
    """

    extruder_id: int
    group_id: int
    diameter: Optional[float] = None
    volume_type: Optional[str] = None


class NozzleLookup(Protocol):
    """Anything that can tell which nozzle a filament is loaded through."""

    def get_nozzle_for_filament(self, filament_id: int) -> Optional[NozzleInfo]: ...


class NozzleGroupResult:
    """Read-only filament to nozzle assignment.

    Args:
        filament_nozzles: Mapping filament id -> `NozzleInfo`.
    """

    def __init__(self, filament_nozzles: Mapping[int, NozzleInfo]) -> None:
        self._filament_nozzles: Dict[int, NozzleInfo] = dict(filament_nozzles)

    @classmethod
    def from_nozzle_list(
        cls, filament_nozzle_map: Sequence[int], nozzle_list: Sequence[NozzleInfo]
    ) -> "NozzleGroupResult":
        """Build from a per-filament index into ``nozzle_list``.

        ``filament_nozzle_map[f]`` is the position in ``nozzle_list`` of the
        nozzle filament ``f`` uses; negative positions mean "no nozzle".
        """
        mapping: Dict[int, NozzleInfo] = {}
        for filament, nozzle_idx in enumerate(filament_nozzle_map):
            if nozzle_idx < 0:
                continue
            if nozzle_idx >= len(nozzle_list):
                raise ValueError(
                    f"Filament {filament} references unknown nozzle {nozzle_idx}"
                )
            mapping[filament] = nozzle_list[nozzle_idx]
        return cls(mapping)

    def get_nozzle_for_filament(self, filament_id: int) -> Optional[NozzleInfo]:
        return self._filament_nozzles.get(filament_id)

    def get_extruder_id(self, filament_id: int) -> int:
        """Extruder of ``filament_id``, or -1 when it has no nozzle."""
        nozzle = self.get_nozzle_for_filament(filament_id)
        return -1 if nozzle is None else nozzle.extruder_id

    def are_filaments_same_nozzle(self, first: int, second: int) -> bool:
        a = self.get_nozzle_for_filament(first)
        b = self.get_nozzle_for_filament(second)
        return a is not None and b is not None and a.group_id == b.group_id

    def get_extruder_list(self) -> List[int]:
        return sorted({n.extruder_id for n in self._filament_nozzles.values()})

    def get_nozzle_count(self, extruder_id: int = -1) -> int:
        """Distinct nozzles in use, for one extruder or (``-1``) overall."""
        return len(
            {
                n.group_id
                for n in self._filament_nozzles.values()
                if extruder_id == -1 or n.extruder_id == extruder_id
            }
        )
