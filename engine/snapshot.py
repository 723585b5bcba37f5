"""
Simulation snapshots — the one persisted artefact of a run.

A Snapshot is created once per completed simulation and never edited. It is
keyed by tenant and run fingerprint, so identical inputs from one tenant can
never produce two stored snapshots: InMemorySnapshotStore.create returns the
existing one.

The store here is the reference implementation of the storage collaborator
contract (create / get / list-by-decision / delete / get-latest-by-decision);
the engine itself never persists anything.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from core.config import SNAPSHOT_MAX_RUNS, SNAPSHOT_MIN_RUNS
from core.results import SimulationResult
from inputs.validators import ValidationResult

from .fingerprint import canonical_payload
from .runner import SimulationRun

logger = logging.getLogger(__name__)

RUN_ID_PATTERN = re.compile(r"^run-[a-f0-9]{64}$")
TENANT_ID_PATTERN = re.compile(r"^t-[a-zA-Z0-9_-]+$")
REQUIRED_METRICS = ("optionLabel", "ev", "var95", "cvar95", "economicCapital", "raroc")


@dataclass(frozen=True)
class Snapshot:
    run_id: str
    tenant_id: str
    decision_id: str
    timestamp: int                 # Unix milliseconds
    seed: int
    runs: int
    config: Dict                   # canonical payload that was hashed
    results: Tuple[SimulationResult, ...]
    achieved_spearman: Optional[float] = None
    copula: Optional[Dict] = None
    bayes: Optional[Dict] = None
    horizon_months: Optional[float] = None

    @property
    def metrics_by_option(self) -> Dict[str, Dict]:
        return {r.option_id: r.to_dict() for r in self.results}

    def to_dict(self) -> Dict:
        return {
            "runId": self.run_id,
            "tenantId": self.tenant_id,
            "decisionId": self.decision_id,
            "timestamp": self.timestamp,
            "seed": self.seed,
            "runs": self.runs,
            "config": self.config,
            "achievedSpearman": self.achieved_spearman,
            "copula": self.copula,
            "bayes": self.bayes,
            "horizonMonths": self.horizon_months,
            "metricsByOption": self.metrics_by_option,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "Snapshot":
        metrics = data["metricsByOption"]
        return cls(
            run_id=data["runId"],
            tenant_id=data["tenantId"],
            decision_id=data["decisionId"],
            timestamp=int(data["timestamp"]),
            seed=int(data["seed"]),
            runs=int(data["runs"]),
            config=dict(data.get("config") or {}),
            results=tuple(
                SimulationResult.from_dict(m, option_id=oid) for oid, m in metrics.items()
            ),
            achieved_spearman=data.get("achievedSpearman"),
            copula=data.get("copula"),
            bayes=data.get("bayes"),
            horizon_months=data.get("horizonMonths"),
        )


def create_snapshot(
    run: SimulationRun,
    *,
    tenant_id: str,
    decision_id: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> Snapshot:
    """Freeze a completed run into a Snapshot (timestamp defaults to now)."""
    cfg = run.config
    diag = run.diagnostics
    copula = None
    if diag.copula is not None:
        copula = {
            "k": diag.copula.k,
            "targetSet": True,
            "froErr": diag.copula.fro_err,
            "achievedPreview": diag.copula.achieved[:3, :3].tolist(),
        }
    return Snapshot(
        run_id=run.run_id,
        tenant_id=tenant_id,
        decision_id=decision_id or cfg.decision_id or "",
        timestamp=int(time.time() * 1000) if timestamp is None else int(timestamp),
        seed=int(cfg.seed),
        runs=int(cfg.runs),
        config=canonical_payload(cfg),
        results=run.results,
        achieved_spearman=diag.achieved_spearman,
        copula=copula,
        bayes=diag.bayes.to_dict() if diag.bayes is not None else None,
        horizon_months=float(cfg.horizon_months),
    )


def validate_snapshot(data: Mapping) -> ValidationResult:
    """Check a snapshot dict against the persisted snapshot schema."""
    result = ValidationResult()

    for key in ("runId", "decisionId", "tenantId", "timestamp", "metricsByOption"):
        if not data.get(key):
            result.error(key, "is required")
    for key in ("seed", "runs"):
        if data.get(key) is None:
            result.error(key, "is required")

    run_id = data.get("runId")
    if run_id and not RUN_ID_PATTERN.match(str(run_id)):
        result.error("runId", "must match run-<64 hex chars>")

    tenant_id = data.get("tenantId")
    if tenant_id and not TENANT_ID_PATTERN.match(str(tenant_id)):
        result.error("tenantId", "must start with 't-'")

    seed = data.get("seed")
    if seed is not None and seed < 0:
        result.error("seed", "must be >= 0")

    runs = data.get("runs")
    if runs is not None and not (SNAPSHOT_MIN_RUNS <= runs <= SNAPSHOT_MAX_RUNS):
        result.error("runs", f"must be between {SNAPSHOT_MIN_RUNS} and {SNAPSHOT_MAX_RUNS}")

    spearman = data.get("achievedSpearman")
    if spearman is not None and not (-1.0 <= spearman <= 1.0):
        result.error("achievedSpearman", "must be between -1 and 1")

    bayes = data.get("bayes")
    if bayes:
        for key in ("varKey", "muN", "sigmaN", "applied"):
            if bayes.get(key) is None:
                result.error(f"bayes.{key}", "is required")
        if bayes.get("sigmaN") is not None and bayes["sigmaN"] < 0:
            result.error("bayes.sigmaN", "must be non-negative")

    copula = data.get("copula")
    if copula:
        if copula.get("k") is None or copula["k"] < 2:
            result.error("copula.k", "must be at least 2")
        if copula.get("targetSet") is None:
            result.error("copula.targetSet", "is required")
        if copula.get("froErr") is not None and copula["froErr"] < 0:
            result.error("copula.froErr", "must be non-negative")

    metrics = data.get("metricsByOption")
    if metrics is not None and not isinstance(metrics, Mapping):
        result.error("metricsByOption", "must be an object")
    elif metrics:
        for option_id, m in metrics.items():
            for key in REQUIRED_METRICS:
                if key not in m or (key == "optionLabel" and not m[key]):
                    result.error(f"metricsByOption[{option_id}].{key}", "is required")
            capital = m.get("economicCapital")
            if capital is not None and capital < 0:
                result.error(f"metricsByOption[{option_id}].economicCapital", "must be >= 0")

    return result


class InMemorySnapshotStore:
    """
    Snapshots keyed by (tenantId, runId). Thread-safe; intended for tests and
    single-process use.

    Dedup is per tenant: two tenants submitting the same config each get their
    own snapshot, while a tenant resubmitting gets its stored one back.

    Usage:
        store = InMemorySnapshotStore()
        snap = store.create(create_snapshot(run, tenant_id="t-acme"))
        store.get_latest_by_decision("t-acme", "dec-1")
    """

    def __init__(self):
        self._items: Dict[Tuple[str, str], Snapshot] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._items)

    def create(self, snapshot: Snapshot) -> Snapshot:
        """
        Store ``snapshot`` unless its tenant already holds that runId.

        Returns the stored snapshot (the existing one on a duplicate).
        Raises ConfigValidationError if the snapshot fails schema validation,
        which includes runs outside [SNAPSHOT_MIN_RUNS, SNAPSHOT_MAX_RUNS] even
        though the engine simulates any positive run count.
        """
        validation = validate_snapshot(snapshot.to_dict())
        if not validation.is_valid:
            logger.warning("Rejected snapshot %s:\n%s", snapshot.run_id, validation.summary())
        validation.raise_for_errors()
        key = (snapshot.tenant_id, snapshot.run_id)
        with self._lock:
            existing = self._items.get(key)
            if existing is not None:
                logger.info("Snapshot %s already stored; returning existing", snapshot.run_id[:16])
                return existing
            self._items[key] = snapshot
            return snapshot

    def get(self, tenant_id: str, run_id: str) -> Optional[Snapshot]:
        return self._items.get((tenant_id, run_id))

    def list_by_decision(self, tenant_id: str, decision_id: str) -> List[Snapshot]:
        """The tenant's snapshots for ``decision_id``, newest first."""
        with self._lock:
            found = [
                s for s in self._items.values()
                if s.tenant_id == tenant_id and s.decision_id == decision_id
            ]
        return sorted(found, key=lambda s: s.timestamp, reverse=True)

    def get_latest_by_decision(self, tenant_id: str, decision_id: str) -> Optional[Snapshot]:
        snapshots = self.list_by_decision(tenant_id, decision_id)
        return snapshots[0] if snapshots else None

    def delete(self, tenant_id: str, run_id: str) -> bool:
        with self._lock:
            return self._items.pop((tenant_id, run_id), None) is not None
