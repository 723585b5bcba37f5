"""
One-at-a-time sensitivity ("tornado") analysis.

For each tunable parameter the full pipeline is rerun twice, with the
parameter scaled by (1 + step) and (1 − step). The seed and the number of
runs are held at the baseline's, so every difference comes from the
parameter alone. Changes in the target metric (RAROC or CE) for the target
option are ranked by their largest absolute move.

Parameters swept:
  - option cost, option expected return          (target option only)
  - each scenario variable's weight
  - each scenario variable's location: "Mean" for normal/lognormal, "Bounds"
    for triangular/uniform (skipped when the location is zero)
  - the utility coefficient ``a``                (CE only)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Callable, List, Literal, Optional, Tuple

import pandas as pd

from core.config import SimulationConfig
from core.results import SimulationResult
from risk.decisions import generate_decision_report, recommendation_basis

from .runner import SimulationRun, run_simulation

logger = logging.getLogger(__name__)

Metric = Literal["RAROC", "CE"]
Direction = Literal["plus", "minus"]

DEFAULT_STEP_PERCENT = 10.0
MIN_STEP_PERCENT = 1.0
MAX_STEP_PERCENT = 50.0


@dataclass(frozen=True)
class SensitivityRecord:
    param_name: str
    direction: Direction
    delta: Optional[float]      # None when the metric is undefined either side
    percent: Optional[float]    # delta relative to the baseline, in %
    metric: Metric
    option_label: str
    run_id_base: str


@dataclass(frozen=True)
class Perturbation:
    name: str
    param_type: str
    apply: Callable[[SimulationConfig, float], SimulationConfig] = field(repr=False, compare=False)


@dataclass(frozen=True)
class TornadoBar:
    param_name: str
    param_type: str
    delta_plus: Optional[float]
    delta_minus: Optional[float]
    percent_plus: Optional[float]
    percent_minus: Optional[float]

    @property
    def max_abs_delta(self) -> float:
        return max(abs(self.delta_plus or 0.0), abs(self.delta_minus or 0.0))


@dataclass
class TornadoResult:
    option_id: str
    option_label: str
    metric: Metric
    baseline: Optional[float]
    run_id_base: str
    step_percent: float
    bars: List[TornadoBar]

    def records(self) -> List[SensitivityRecord]:
        out = []
        for bar in self.bars:
            for direction, delta, pct in (
                ("plus", bar.delta_plus, bar.percent_plus),
                ("minus", bar.delta_minus, bar.percent_minus),
            ):
                out.append(SensitivityRecord(
                    param_name=bar.param_name,
                    direction=direction,
                    delta=delta,
                    percent=pct,
                    metric=self.metric,
                    option_label=self.option_label,
                    run_id_base=self.run_id_base,
                ))
        return out

    def to_dataframe(self) -> pd.DataFrame:
        rows = [
            {
                "Parameter": bar.param_name,
                "Type": bar.param_type,
                f"Δ +{self.step_percent:g}%": bar.delta_plus,
                f"Δ −{self.step_percent:g}%": bar.delta_minus,
                "% +": bar.percent_plus,
                "% −": bar.percent_minus,
                "Max |Δ|": bar.max_abs_delta,
            }
            for bar in self.bars
        ]
        return pd.DataFrame(rows)


def _metric_value(result: SimulationResult, metric: Metric) -> Optional[float]:
    return result.raroc if metric == "RAROC" else result.certainty_equivalent


def _replace_option(option_id: str, attr: str):
    def apply(cfg: SimulationConfig, factor: float) -> SimulationConfig:
        opts = []
        for o in cfg.options:
            if o.id == option_id:
                o = replace(o, **{attr: getattr(o, attr) * factor})
            opts.append(o)
        return cfg.evolve(options=tuple(opts))
    return apply


def _replace_variable(variable_id: str, how: str):
    def apply(cfg: SimulationConfig, factor: float) -> SimulationConfig:
        out = []
        for v in cfg.scenario_vars:
            if v.id == variable_id:
                if how == "weight":
                    v = replace(v, weight=v.weight * factor)
                else:
                    v = replace(v, dist=v.dist.scaled_location(factor))
            out.append(v)
        return cfg.evolve(scenario_vars=tuple(out))
    return apply


def _scale_utility_a(cfg: SimulationConfig, factor: float) -> SimulationConfig:
    return cfg.evolve(utility_params=replace(cfg.utility_params, a=cfg.utility_params.a * factor))


def _location_perturbation(v) -> Perturbation:
    # Triangular and uniform scale every bound, which moves the spread too.
    if v.dist.kind in ("triangular", "uniform"):
        return Perturbation(f"Bounds: {v.label}", "bounds", _replace_variable(v.id, "location"))
    return Perturbation(f"Mean: {v.label}", "mean", _replace_variable(v.id, "location"))


def build_perturbations(config: SimulationConfig, option_id: str, metric: Metric) -> List[Perturbation]:
    """The parameters worth sweeping for ``option_id``; zero-valued ones are skipped."""
    option = config.option(option_id)
    out = []
    if option.cost != 0:
        out.append(Perturbation("Option Cost", "cost", _replace_option(option_id, "cost")))
    if option.expected_return != 0:
        out.append(Perturbation(
            "Expected Return", "expectedReturn", _replace_option(option_id, "expected_return")
        ))
    for v in sorted(config.scenario_vars, key=lambda v: v.id):
        if v.weight != 0:
            out.append(Perturbation(f"Weight: {v.label}", "weight", _replace_variable(v.id, "weight")))
        if v.dist.scaled_location(2.0) != v.dist:
            out.append(_location_perturbation(v))
    if metric == "CE" and config.utility_params.a > 0:
        out.append(Perturbation("Utility a", "utility", _scale_utility_a))
    return out


def _percent(delta: Optional[float], baseline: Optional[float]) -> Optional[float]:
    if delta is None or not baseline:
        return None
    return delta / baseline * 100.0


def run_tornado(
    config: SimulationConfig,
    *,
    option_id: Optional[str] = None,
    metric: Optional[Metric] = None,
    step_percent: float = DEFAULT_STEP_PERCENT,
    baseline: Optional[SimulationRun] = None,
    max_workers: Optional[int] = None,
) -> TornadoResult:
    """
    Sweep every tunable parameter ±``step_percent`` and rank the impact.

    Parameters
    ----------
    config : SimulationConfig
        The baseline configuration
    option_id : str, optional
        Option whose metric is tracked; defaults to the recommended option
    metric : "RAROC" or "CE", optional
        Defaults to the recommendation basis of ``config.utility_params``
    step_percent : float
        Relative perturbation in percent, within [1, 50]
    baseline : SimulationRun, optional
        A run of ``config`` already computed by the caller; rerun otherwise
    max_workers : int, optional
        Run perturbations on a thread pool of this size
    """
    if not (MIN_STEP_PERCENT <= step_percent <= MAX_STEP_PERCENT):
        raise ValueError(
            f"step_percent must be within [{MIN_STEP_PERCENT:g}, {MAX_STEP_PERCENT:g}], got {step_percent}"
        )
    if baseline is None:
        baseline = run_simulation(config)
    metric = metric or recommendation_basis(config.utility_params)
    if metric not in ("RAROC", "CE"):
        raise ValueError(f"metric must be 'RAROC' or 'CE', got {metric!r}")
    if option_id is None:
        report = generate_decision_report(baseline.results, replace(
            config.utility_params, use_for_recommendation=(metric == "CE"),
        ))
        option_id = report.recommended_option_id or baseline.results[0].option_id

    base_result = baseline.result(option_id)
    base_value = _metric_value(base_result, metric)
    step = step_percent / 100.0
    perturbations = build_perturbations(config, option_id, metric)
    logger.info(
        "Tornado on %s (%s, ±%g%%): %d parameters, %d runs",
        base_result.option_label, metric, step_percent, len(perturbations), 2 * len(perturbations),
    )

    def _delta(cfg: SimulationConfig) -> Optional[float]:
        value = _metric_value(run_simulation(cfg).result(option_id), metric)
        if value is None or base_value is None:
            return None
        return value - base_value

    def _bar(p: Perturbation) -> TornadoBar:
        d_plus = _delta(p.apply(config, 1.0 + step))
        d_minus = _delta(p.apply(config, 1.0 - step))
        return TornadoBar(
            param_name=p.name,
            param_type=p.param_type,
            delta_plus=d_plus,
            delta_minus=d_minus,
            percent_plus=_percent(d_plus, base_value),
            percent_minus=_percent(d_minus, base_value),
        )

    if max_workers is not None and max_workers > 1 and len(perturbations) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            bars = list(pool.map(_bar, perturbations))
    else:
        bars = [_bar(p) for p in perturbations]

    # Stable sort: ties keep the sweep order.
    bars.sort(key=lambda b: b.max_abs_delta, reverse=True)
    logger.info("Tornado on %s complete", base_result.option_label)
    return TornadoResult(
        option_id=option_id,
        option_label=base_result.option_label,
        metric=metric,
        baseline=base_value,
        run_id_base=baseline.run_id,
        step_percent=step_percent,
        bars=bars,
    )


def sensitivity_records(*args, **kwargs) -> Tuple[SensitivityRecord, ...]:
    """Flat plus/minus records for :func:`run_tornado` arguments."""
    return tuple(run_tornado(*args, **kwargs).records())
