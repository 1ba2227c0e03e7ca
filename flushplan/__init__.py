"""flushplan: filament load ordering for multi-material 3D printing.

Every filament change purges material; how much depends on the pair of
filaments involved (the flush matrix). flushplan picks, layer by layer, the
load order that minimizes the total purge volume, for single feed paths, for
printers with two extruder groups, and for extruders with several nozzles.

Primary API:
    solve_order() - Optimal or heuristic order of one layer
    LayerSequenceOrchestrator - Layer-by-layer ordering of one group
    MultiGroupScheduler - Two extruder groups with per-layer merge
    MultiNozzleAssignmentScheduler - One group with several nozzles
    NozzleGroupScheduler - Filaments pre-bound to nozzles
    load_job_yaml() - Load a YAML print job

Example:
    from flushplan import MultiGroupScheduler

    flush = [[0, 1, 5], [5, 0, 1], [1, 5, 0]]
    plan = MultiGroupScheduler([0, 1, 2], [0, 0, 0], flush).run([[0, 1, 2], [0, 2]])
    plan.filament_sequences  # [[0, 1, 2], [2, 0]]
"""

from __future__ import annotations

from flushplan import logging
from flushplan._version import __version__
from flushplan.algorithms.max_matching import MaxBipartiteMatcher
from flushplan.algorithms.min_cost_matching import MinCostBipartiteMatcher
from flushplan.algorithms.order import solve_order
from flushplan.algorithms.types import MatchResult, OrderMode, OrderResult
from flushplan.config import SEQUENCING_CONFIG, SequencingConfig
from flushplan.graph.flow_network import FlowNetwork
from flushplan.job import PrintJob, load_job_yaml
from flushplan.model.flush import sequence_cost
from flushplan.model.nozzle import NozzleGroupResult, NozzleInfo
from flushplan.results import GroupPlan, SchedulePlan
from flushplan.schedule.multi_group import MultiGroupScheduler
from flushplan.schedule.multi_nozzle import (
    MultiNozzleAssignmentScheduler,
    NozzleGroupScheduler,
)
from flushplan.schedule.orchestrator import (
    LayerSequenceOrchestrator,
    SchedulingCancelled,
)

__all__ = [
    # Version
    "__version__",
    # Ordering
    "solve_order",
    "OrderMode",
    "OrderResult",
    "sequence_cost",
    # Matching
    "FlowNetwork",
    "MaxBipartiteMatcher",
    "MinCostBipartiteMatcher",
    "MatchResult",
    # Scheduling
    "LayerSequenceOrchestrator",
    "MultiGroupScheduler",
    "MultiNozzleAssignmentScheduler",
    "NozzleGroupScheduler",
    "SchedulingCancelled",
    "NozzleGroupResult",
    "NozzleInfo",
    # Results
    "GroupPlan",
    "SchedulePlan",
    # Configuration and jobs
    "SequencingConfig",
    "SEQUENCING_CONFIG",
    "PrintJob",
    "load_job_yaml",
    # Logging
    "logging",
]
