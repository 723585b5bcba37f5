"""
Simulation configuration.

Everything the engine needs is passed in explicitly through SimulationConfig.
Defaults mirror the tenant defaults of the decision application (CARA utility,
1% insurance rate, 15% contingency on capital, 12-month horizon) but are never
resolved from ambient state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Literal, Optional, Sequence, Tuple

import numpy as np

from .schema import Option, ScenarioVariable

UtilityMode = Literal["CARA", "CRRA", "Exponential", "Quadratic", "Power"]
OurStrategy = Literal["Conservative", "Aggressive"]
CompetitorMove = Literal["Match", "Undercut"]

DEFAULT_HORIZON_MONTHS = 12.0

# Run counts a persisted snapshot accepts.
SNAPSHOT_MIN_RUNS = 100
SNAPSHOT_MAX_RUNS = 100000


@dataclass(frozen=True)
class UtilityParams:
    mode: UtilityMode = "CARA"
    a: float = 0.000005            # risk aversion coefficient
    outcome_scale: float = 100000.0
    use_for_recommendation: bool = False  # rank options by CE instead of RAROC


@dataclass(frozen=True)
class TcorParams:
    insurance_rate: float = 0.01             # fraction of option cost
    contingency_on_cap_percent: float = 0.15  # fraction of economic capital


@dataclass(frozen=True)
class DependenceConfig:
    """
    Target Spearman rank-correlation matrix over the listed variables.

    ``variable_ids[i]`` labels row/column i of ``matrix``. With
    ``use_nearest_psd`` a non-PSD target is repaired (and flagged); without it
    a non-PSD target is rejected at validation time.
    """
    variable_ids: Tuple[str, ...]
    matrix: Tuple[Tuple[float, ...], ...]
    use_nearest_psd: bool = True

    @classmethod
    def pairwise(cls, var_a: str, var_b: str, rho: float) -> "DependenceConfig":
        return cls(
            variable_ids=(var_a, var_b),
            matrix=((1.0, float(rho)), (float(rho), 1.0)),
        )

    @classmethod
    def from_array(cls, variable_ids: Sequence[str], matrix, *, use_nearest_psd: bool = True):
        arr = np.asarray(matrix, dtype=float)
        return cls(
            variable_ids=tuple(variable_ids),
            matrix=tuple(tuple(float(v) for v in row) for row in arr),
            use_nearest_psd=use_nearest_psd,
        )

    def as_array(self) -> np.ndarray:
        return np.array(self.matrix, dtype=float)


@dataclass(frozen=True)
class BayesianOverride:
    target_variable_id: str
    posterior_mean: float
    posterior_stdev: float


@dataclass(frozen=True)
class GameMultipliers:
    ret_mult: Dict[str, float]   # keyed by our strategy
    cost_mult: Dict[str, float]


@dataclass(frozen=True)
class GameConfig:
    """
    2×2 competitor interaction: each run the competitor Undercuts with
    probability ``p_undercut`` (else Matches); the option's return and cost
    parts are multiplied by the entry for (move, our strategy).
    """
    p_undercut: float
    multipliers: Dict[str, GameMultipliers]   # keyed by competitor move
    strategies: Dict[str, str] = field(default_factory=dict)  # option id -> our strategy


@dataclass(frozen=True)
class SimulationConfig:
    seed: int
    runs: int
    scenario_vars: Tuple[ScenarioVariable, ...]
    options: Tuple[Option, ...]
    utility_params: UtilityParams = UtilityParams()
    tcor_params: TcorParams = TcorParams()
    horizon_months: float = DEFAULT_HORIZON_MONTHS
    dependence_config: Optional[DependenceConfig] = None
    bayesian_override: Optional[BayesianOverride] = None
    game_config: Optional[GameConfig] = None
    decision_id: Optional[str] = None

    def __post_init__(self):
        # Accept lists from callers; store tuples so the config stays hashable-ish and immutable.
        object.__setattr__(self, "scenario_vars", tuple(self.scenario_vars))
        object.__setattr__(self, "options", tuple(self.options))

    def variable(self, variable_id: str) -> ScenarioVariable:
        for v in self.scenario_vars:
            if v.id == variable_id:
                return v
        raise KeyError(f"Unknown scenario variable '{variable_id}'.")

    def option(self, option_id: str) -> Option:
        for o in self.options:
            if o.id == option_id:
                return o
        raise KeyError(f"Unknown option '{option_id}'.")

    def effective_horizon(self, option: Option) -> float:
        if option.horizon_months is not None:
            return float(option.horizon_months)
        return float(self.horizon_months)

    def evolve(self, **changes) -> "SimulationConfig":
        return replace(self, **changes)
