"""
Simulation runner — orchestrates one full pass of the decision pipeline.

  config
    → validation (fails fast, before any draw)
    → Bayesian override (at most one variable)
    → sampler (one seeded sub-stream per variable)
    → Gaussian copula (only if a dependence target is given)
    → per option: aggregator → risk metrics + utility/CE + TCOR
    → SimulationRun (results in option order + diagnostics + runId)

Per-option work shares nothing mutable, so ``max_workers`` > 1 evaluates
options on a thread pool. Results are bit-identical to the sequential path:
every random draw is keyed by (seed, id), never by scheduling order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from core.config import SimulationConfig
from core.results import SimulationResult, results_to_dataframe
from core.schema import Option, ResultFlag, ScenarioVariable
from distributions.bayesian import BayesApplication, apply_bayesian_override
from distributions.correlation import CopulaDiagnostics
from distributions.sampler import MonteCarloSampler, SampledPaths
from inputs.validators import ensure_valid
from risk.metrics import compute_risk_metrics
from risk.tcor import compute_tcor
from risk.utility import evaluate_utility

from .aggregator import aggregate_option
from .fingerprint import fingerprint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationDiagnostics:
    """Fit diagnostics reported alongside the results."""
    copula: Optional[CopulaDiagnostics] = None
    bayes: Optional[BayesApplication] = None
    flags: Tuple[ResultFlag, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def achieved_spearman(self) -> Optional[float]:
        return self.copula.achieved_pair if self.copula is not None else None

    @property
    def copula_fro_err(self) -> Optional[float]:
        return self.copula.fro_err if self.copula is not None else None

    def to_dict(self) -> Dict:
        return {
            "achievedSpearman": self.achieved_spearman,
            "copulaFroErr": self.copula_fro_err,
            "copula": self.copula.to_dict() if self.copula is not None else None,
            "bayes": self.bayes.to_dict() if self.bayes is not None else None,
            "flags": [f.value for f in self.flags],
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class SimulationRun:
    config: SimulationConfig
    run_id: str
    results: Tuple[SimulationResult, ...]
    diagnostics: SimulationDiagnostics = field(default_factory=SimulationDiagnostics)

    def result(self, option_id: str) -> SimulationResult:
        for r in self.results:
            if r.option_id == option_id:
                return r
        raise KeyError(f"No result for option '{option_id}'.")

    def to_dataframe(self) -> pd.DataFrame:
        return results_to_dataframe(self.results)


def evaluate_option(
    config: SimulationConfig,
    option: Option,
    variables: Sequence[ScenarioVariable],
    paths: SampledPaths,
    *,
    extra_flags: Tuple[ResultFlag, ...] = (),
) -> SimulationResult:
    """Aggregate one option's outcomes and reduce them to its metrics."""
    horizon = config.effective_horizon(option)
    agg = aggregate_option(
        option,
        variables,
        paths,
        horizon_months=horizon,
        seed=config.seed,
        game=config.game_config,
    )
    metrics = compute_risk_metrics(agg.outcomes, label=option.label)
    utility = evaluate_utility(agg.outcomes, config.utility_params, label=option.label)
    tcor = compute_tcor(metrics.ev, metrics.economic_capital, option, config.tcor_params)

    logger.debug(
        "%s: EV=%.4f VaR95=%.4f CVaR95=%.4f capital=%.4f RAROC=%s CE=%s",
        option.label, metrics.ev, metrics.var95, metrics.cvar95,
        metrics.economic_capital, metrics.raroc, utility.certainty_equivalent,
    )
    return SimulationResult(
        option_id=option.id,
        option_label=option.label,
        ev=metrics.ev,
        var95=metrics.var95,
        cvar95=metrics.cvar95,
        economic_capital=metrics.economic_capital,
        raroc=metrics.raroc,
        expected_utility=utility.expected_utility,
        certainty_equivalent=utility.certainty_equivalent,
        tcor=tcor.total,
        tcor_components=tcor,
        horizon_months=agg.horizon_months,
        flags=metrics.flags + utility.flags + tuple(extra_flags),
        outcomes=agg.outcomes,
    )


def run_simulation(
    config: SimulationConfig,
    *,
    max_workers: Optional[int] = None,
) -> SimulationRun:
    """
    Run the full pipeline for every option in ``config``.

    Parameters
    ----------
    config : SimulationConfig
    max_workers : int, optional
        Evaluate options on a thread pool of this size. None or 1 runs
        sequentially; results are identical either way.

    Raises
    ------
    ConfigValidationError
        If the config cannot be simulated. Nothing is sampled in that case.
    """
    validation = ensure_valid(config)
    for message in validation.warnings:
        logger.warning(message)

    run_id = fingerprint(config)
    logger.info(
        "Simulation %s: %d options, %d variables, runs=%d, seed=%d",
        run_id[:16], len(config.options), len(config.scenario_vars), config.runs, config.seed,
    )

    variables, bayes = apply_bayesian_override(config.scenario_vars, config.bayesian_override)
    sampler = MonteCarloSampler(
        variables,
        runs=config.runs,
        seed=config.seed,
        dependence=config.dependence_config,
    )
    paths = sampler.sample()

    run_flags: Tuple[ResultFlag, ...] = ()
    if paths.copula is not None and paths.copula.repaired:
        run_flags = (ResultFlag.CORRELATION_REPAIRED,)

    def _one(option: Option) -> SimulationResult:
        return evaluate_option(config, option, variables, paths, extra_flags=run_flags)

    if max_workers is not None and max_workers > 1 and len(config.options) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results: List[SimulationResult] = list(pool.map(_one, config.options))
    else:
        results = [_one(option) for option in config.options]

    diagnostics = SimulationDiagnostics(
        copula=paths.copula,
        bayes=bayes,
        flags=run_flags,
        warnings=tuple(validation.warnings),
    )
    logger.info("Simulation %s complete", run_id[:16])
    return SimulationRun(
        config=config,
        run_id=run_id,
        results=tuple(results),
        diagnostics=diagnostics,
    )


def simulate(config: SimulationConfig, *, max_workers: Optional[int] = None) -> List[SimulationResult]:
    """Results only, in option order."""
    return list(run_simulation(config, max_workers=max_workers).results)
