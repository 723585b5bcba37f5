"""
Simulation engine — pipeline runner, outcome aggregation, run fingerprint,
snapshots and tornado sensitivity.
"""

from .fingerprint import canonical_payload, fingerprint
from .runner import SimulationDiagnostics, SimulationRun, run_simulation, simulate
from .sensitivity import SensitivityRecord, TornadoResult, run_tornado
from .snapshot import InMemorySnapshotStore, Snapshot, create_snapshot, validate_snapshot

__all__ = [
    "canonical_payload",
    "fingerprint",
    "SimulationDiagnostics",
    "SimulationRun",
    "run_simulation",
    "simulate",
    "SensitivityRecord",
    "TornadoResult",
    "run_tornado",
    "InMemorySnapshotStore",
    "Snapshot",
    "create_snapshot",
    "validate_snapshot",
]
