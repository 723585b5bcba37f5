"""
Run fingerprint — a deterministic id for a SimulationConfig.

The config is canonicalized before hashing:
  - options and scenario variables are sorted by id
  - the dependence matrix is permuted so its variable ids are sorted
  - mapping keys are sorted by the JSON encoder
  - numbers are written as floats (1 and 1.0 hash the same), seed/runs as ints
so that two logically identical configs get the same runId however they
were built. Any material change yields a different runId.
"""

from __future__ import annotations

import hashlib
import json
from typing import Dict, Optional

import numpy as np

from core.config import DependenceConfig, GameConfig, SimulationConfig
from core.schema import Option, ScenarioVariable

RUN_ID_PREFIX = "run-"


def _num(x) -> Optional[float]:
    return None if x is None else float(x)


def _dist_payload(dist) -> Dict:
    params = {k: float(v) for k, v in vars(dist).items()}
    return {"kind": dist.kind, **params}


def _variable_payload(var: ScenarioVariable) -> Dict:
    return {
        "id": var.id,
        "name": var.name,
        "appliesTo": var.applies_to,
        "dist": _dist_payload(var.dist),
        "weight": float(var.weight),
        "correlationGroup": var.correlation_group,
    }


def _option_payload(opt: Option) -> Dict:
    return {
        "id": opt.id,
        "label": opt.label,
        "cost": float(opt.cost),
        "expectedReturn": float(opt.expected_return),
        "mitigationCost": _num(opt.mitigation_cost),
        "horizonMonths": _num(opt.horizon_months),
    }


def _dependence_payload(dep: Optional[DependenceConfig]) -> Optional[Dict]:
    if dep is None:
        return None
    ids = list(dep.variable_ids)
    order = sorted(range(len(ids)), key=lambda i: ids[i])
    m = dep.as_array()[np.ix_(order, order)]
    return {
        "variableIds": [ids[i] for i in order],
        "matrix": [[float(v) for v in row] for row in m],
        "useNearestPsd": bool(dep.use_nearest_psd),
    }


def _game_payload(game: Optional[GameConfig]) -> Optional[Dict]:
    if game is None:
        return None
    return {
        "pUndercut": float(game.p_undercut),
        "multipliers": {
            move: {
                "retMult": {k: float(v) for k, v in m.ret_mult.items()},
                "costMult": {k: float(v) for k, v in m.cost_mult.items()},
            }
            for move, m in game.multipliers.items()
        },
        "strategies": dict(game.strategies),
    }


def canonical_payload(config: SimulationConfig) -> Dict:
    """The order-independent, JSON-safe view of ``config`` that gets hashed."""
    up, tp, bo = config.utility_params, config.tcor_params, config.bayesian_override
    return {
        "decisionId": config.decision_id,
        "seed": int(config.seed),
        "runs": int(config.runs),
        "horizonMonths": float(config.horizon_months),
        "options": [_option_payload(o) for o in sorted(config.options, key=lambda o: o.id)],
        "scenarioVars": [
            _variable_payload(v) for v in sorted(config.scenario_vars, key=lambda v: v.id)
        ],
        "utilityParams": {
            "mode": up.mode,
            "a": float(up.a),
            "scale": float(up.outcome_scale),
            "useForRecommendation": bool(up.use_for_recommendation),
        },
        "tcorParams": {
            "insuranceRate": float(tp.insurance_rate),
            "contingencyOnCapPercent": float(tp.contingency_on_cap_percent),
        },
        "gameConfig": _game_payload(config.game_config),
        "dependenceConfig": _dependence_payload(config.dependence_config),
        "bayesianOverride": None if bo is None else {
            "targetVariableId": bo.target_variable_id,
            "posteriorMean": float(bo.posterior_mean),
            "posteriorStdev": float(bo.posterior_stdev),
        },
    }


def canonical_json(config: SimulationConfig) -> str:
    return json.dumps(
        canonical_payload(config),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
        allow_nan=False,
    )


def fingerprint(config: SimulationConfig) -> str:
    """``run-`` followed by the sha256 hex digest of the canonical config."""
    digest = hashlib.sha256(canonical_json(config).encode("utf-8")).hexdigest()
    return RUN_ID_PREFIX + digest
