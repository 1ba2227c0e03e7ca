"""Print-job files: YAML loading, validation, and scheduler dispatch.

A job file describes one print: the filaments, the flush matrices, the
filaments required per layer, and optionally extruder groups, nozzle hardware,
custom sequences, and strategy thresholds. `load_job_yaml` turns it into a
`PrintJob` whose ``run()`` picks the matching scheduler.

Example:

    filaments: [0, 1, 2]
    flush_matrix:
      - [0, 1, 5]
      - [5, 0, 1]
      - [1, 5, 0]
    layers:
      - [0, 1, 2]
      - [0, 2]
    custom_sequences:
      1: [2, 0]
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from importlib import resources
from typing import Any, Dict, List, Mapping, Optional, Set, Union

import jsonschema
import numpy as np
import yaml

from flushplan.config import SequencingConfig
from flushplan.logging import get_logger
from flushplan.model.flush import as_flush_matrices
from flushplan.model.nozzle import NozzleGroupResult, NozzleInfo
from flushplan.results import SchedulePlan
from flushplan.schedule.multi_group import MultiGroupScheduler
from flushplan.schedule.multi_nozzle import (
    MultiNozzleAssignmentScheduler,
    NozzleGroupScheduler,
)
from flushplan.utils.yaml_utils import normalize_yaml_keys

logger = get_logger(__name__)

RECOGNIZED_KEYS = {
    "name",
    "filaments",
    "groups",
    "flush_matrix",
    "flush_matrices",
    "layers",
    "start_filament",
    "custom_sequences",
    "multi_nozzle",
    "nozzles",
    "parallelism",
    "config",
}

# Sections keyed by integer ids; YAML gives int keys, the schema wants strings
_ID_KEYED_SECTIONS = ("groups", "start_filament", "custom_sequences", "nozzles")

Scheduler = Union[
    MultiGroupScheduler, MultiNozzleAssignmentScheduler, NozzleGroupScheduler
]


def load_job_schema() -> Dict[str, Any]:
    """Packaged JSON schema for job files."""
    with (
        resources.files("flushplan.schemas")
        .joinpath("job.json")
        .open("r", encoding="utf-8")
    ) as f:
        return json.load(f)


def load_job_yaml(yaml_str: str) -> PrintJob:
    """Parse, normalize, and validate a job YAML string.

    Raises:
        ValueError: On unknown keys or inconsistent content.
        jsonschema.ValidationError: If the document violates the job schema.
    """
    data = yaml.safe_load(yaml_str)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("The provided YAML must map to a dictionary at top-level.")

    extra = set(data.keys()) - RECOGNIZED_KEYS
    if extra:
        raise ValueError(
            f"Unrecognized top-level key(s) in job: {', '.join(sorted(map(str, extra)))}. "
            f"Allowed keys are {sorted(RECOGNIZED_KEYS)}"
        )

    for section in _ID_KEYED_SECTIONS:
        if isinstance(data.get(section), dict):
            data[section] = normalize_yaml_keys(data[section])

    jsonschema.validate(data, load_job_schema())
    return PrintJob.from_dict(data)


@dataclass
class PrintJob:
    """One print to be scheduled.

    Exactly one scheduler applies, chosen in this order: ``nozzles`` given
    selects `NozzleGroupScheduler`, ``multi_nozzle`` selects
    `MultiNozzleAssignmentScheduler`, anything else runs through
    `MultiGroupScheduler` (all filaments in group 0 when ``groups`` is absent).

    Typical usage example:

        job = load_job_yaml(path.read_text())
        plan = job.run()
    """

    filaments: List[int]
    layers: List[List[int]]
    flush_matrices: Union[np.ndarray, List[np.ndarray]]
    groups: Optional[Dict[int, int]] = None
    start_filaments: Dict[int, int] = field(default_factory=dict)
    custom_sequences: Dict[int, List[int]] = field(default_factory=dict)
    multi_nozzle_group: Optional[int] = None
    nozzle_count: int = 1
    nozzles: Optional[NozzleGroupResult] = None
    parallelism: int = 1
    config: SequencingConfig = field(default_factory=SequencingConfig)
    name: Optional[str] = None

    @classmethod
    def from_yaml(cls, yaml_str: str) -> PrintJob:
        return load_job_yaml(yaml_str)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PrintJob:
        """Build a job from a schema-valid dictionary.

        Raises:
            ValueError: On references to unknown filaments, layers or groups,
                or on conflicting scheduler options.
        """
        filaments = [int(f) for f in data["filaments"]]
        known = set(filaments)
        layers = [[int(f) for f in layer] for layer in data["layers"]]
        for idx, layer in enumerate(layers):
            _check_known(known, layer, f"layer {idx}")

        matrices = as_flush_matrices(
            data["flush_matrix"] if "flush_matrix" in data else data["flush_matrices"]
        )

        groups = _parse_groups(data.get("groups"), filaments)

        custom: Dict[int, List[int]] = {}
        for key, seq in (data.get("custom_sequences") or {}).items():
            layer = int(key)
            if layer >= len(layers):
                raise ValueError(
                    f"Custom sequence for layer {layer} but the job has {len(layers)} layers"
                )
            _check_known(known, seq, f"custom sequence of layer {layer}")
            custom[layer] = [int(f) for f in seq]

        multi_nozzle_group: Optional[int] = None
        nozzle_count = 1
        if "multi_nozzle" in data:
            if groups is None:
                raise ValueError("'multi_nozzle' requires 'groups'")
            multi_nozzle_group = int(data["multi_nozzle"]["group"])
            nozzle_count = int(data["multi_nozzle"]["nozzles"])

        nozzles: Optional[NozzleGroupResult] = None
        if "nozzles" in data:
            if multi_nozzle_group is not None:
                raise ValueError("'nozzles' and 'multi_nozzle' are mutually exclusive")
            mapping: Dict[int, NozzleInfo] = {}
            for key, info in data["nozzles"].items():
                filament = int(key)
                _check_known(known, [filament], "nozzles")
                mapping[filament] = NozzleInfo(**info)
            nozzles = NozzleGroupResult(mapping)

        start_filaments = _parse_start(data.get("start_filament"), groups, known)
        if start_filaments and (nozzles is not None or multi_nozzle_group is not None):
            raise ValueError(
                "'start_filament' is only supported for single and two-group jobs"
            )

        return cls(
            filaments=filaments,
            layers=layers,
            flush_matrices=matrices,
            groups=groups,
            start_filaments=start_filaments,
            custom_sequences=custom,
            multi_nozzle_group=multi_nozzle_group,
            nozzle_count=nozzle_count,
            nozzles=nozzles,
            parallelism=int(data.get("parallelism", 1)),
            config=SequencingConfig(**(data.get("config") or {})),
            name=data.get("name"),
        )

    @property
    def kind(self) -> str:
        """Short label of the scheduler this job dispatches to."""
        if self.nozzles is not None:
            return "nozzle-groups"
        if self.multi_nozzle_group is not None:
            return "multi-nozzle"
        if self.groups is not None:
            return "two-group"
        return "single"

    def get_custom_seq(self, layer: int) -> Optional[List[int]]:
        return self.custom_sequences.get(layer)

    def build_scheduler(self) -> Scheduler:
        if self.nozzles is not None:
            return NozzleGroupScheduler(
                self.filaments,
                self.nozzles,
                self.flush_matrices,
                config=self.config,
                parallelism=self.parallelism,
            )
        filament_to_group = self.groups or {f: 0 for f in self.filaments}
        if self.multi_nozzle_group is not None:
            return MultiNozzleAssignmentScheduler(
                self.filaments,
                filament_to_group,
                self.flush_matrices,
                self.multi_nozzle_group,
                self.nozzle_count,
                config=self.config,
            )
        return MultiGroupScheduler(
            self.filaments,
            filament_to_group,
            self.flush_matrices,
            config=self.config,
            parallelism=self.parallelism,
            start_filaments=self.start_filaments,
        )

    def run(self) -> SchedulePlan:
        """Schedule the print with the scheduler selected by `kind`."""
        logger.info(
            "Running %s job%s: %d filaments, %d layers",
            self.kind,
            f" '{self.name}'" if self.name else "",
            len(self.filaments),
            len(self.layers),
        )
        custom = self.get_custom_seq if self.custom_sequences else None
        return self.build_scheduler().run(self.layers, custom)


def _check_known(known: Set[int], filaments: Any, where: str) -> None:
    unknown = sorted({int(f) for f in filaments} - known)
    if unknown:
        raise ValueError(f"Unknown filament id(s) {unknown} in {where}")


def _parse_groups(raw: Any, filaments: List[int]) -> Optional[Dict[int, int]]:
    if raw is None:
        return None
    if isinstance(raw, list):
        if len(raw) != len(filaments):
            raise ValueError(
                f"'groups' has {len(raw)} entries for {len(filaments)} filaments"
            )
        groups = dict(zip(filaments, (int(g) for g in raw)))
    else:
        groups = {int(k): int(v) for k, v in raw.items()}
        _check_known(set(filaments), groups, "groups")
        missing = sorted(set(filaments) - set(groups))
        if missing:
            raise ValueError(f"Filament(s) {missing} have no group")
    bad = sorted({g for g in groups.values() if g not in (0, 1)})
    if bad:
        raise ValueError(f"Unknown group id(s) {bad}; groups must be 0 or 1")
    return groups


def _parse_start(
    raw: Any, groups: Optional[Dict[int, int]], known: Set[int]
) -> Dict[int, int]:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        start = {int(k): int(v) for k, v in raw.items()}
        bad = sorted(g for g in start if g not in (0, 1))
        if bad:
            raise ValueError(f"Unknown group id(s) {bad} in 'start_filament'")
    else:
        filament = int(raw)
        start = {(groups or {}).get(filament, 0): filament}
    _check_known(known, start.values(), "start_filament")
    return start
