"""
Metrics CSV export.

Column names and order (METRICS_CSV_COLUMNS) are a compatibility contract
with downstream consumers; friendly labels are a presentation concern and
never appear here. Numbers are written pre-formatted:
  money-like values       2 dp
  RAROC, Spearman, Bayes  4 dp
  utility, Frobenius err  6 dp
Missing values are written as empty strings.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

import pandas as pd

from core.config import SimulationConfig
from core.results import SimulationResult
from core.schema import METRICS_CSV_COLUMNS

from .decisions import recommendation_basis

logger = logging.getLogger(__name__)


def _fmt(value: Optional[float], digits: int = 2) -> str:
    if value is None:
        return ""
    return f"{value:.{digits}f}"


def metrics_to_dataframe(
    results: Sequence[SimulationResult],
    config: SimulationConfig,
    *,
    run_id: str = "",
    achieved_spearman: Optional[float] = None,
    copula_fro_err: Optional[float] = None,
    bayes=None,
    timestamp: Optional[str] = None,
) -> pd.DataFrame:
    """
    Build the metrics table, one row per option, columns in METRICS_CSV_COLUMNS order.

    Parameters
    ----------
    results : sequence of SimulationResult
    config : SimulationConfig
        Source of option cost/return/mitigation, seed, runs and horizon
    bayes : BayesApplication, optional
        Posterior override record; "off" is written when absent
    timestamp : str, optional
        ISO-8601 string; defaults to the current UTC time
    """
    if timestamp is None:
        timestamp = datetime.now(timezone.utc).isoformat()
    basis = recommendation_basis(config.utility_params)
    options = {o.id: o for o in config.options}

    rows = []
    for r in results:
        opt = options.get(r.option_id)
        comps = r.tcor_components
        rows.append({
            "Option": r.option_label,
            "Cost": _fmt(opt.cost) if opt else "",
            "ExpectedReturn": _fmt(opt.expected_return) if opt else "",
            "MitigationCost": _fmt(opt.mitigation_cost) if opt else "",
            "EV": _fmt(r.ev),
            "VaR95": _fmt(r.var95),
            "CVaR95": _fmt(r.cvar95),
            "EconCapital": _fmt(r.economic_capital),
            "RAROC": _fmt(r.raroc, 4),
            "Utility": _fmt(r.expected_utility, 6),
            "CE": _fmt(r.certainty_equivalent),
            "TCOR": _fmt(r.tcor),
            "TCOR_ExpectedLoss": _fmt(comps.expected_loss),
            "TCOR_Insurance": _fmt(comps.insurance),
            "TCOR_Contingency": _fmt(comps.contingency),
            "TCOR_Mitigation": _fmt(comps.mitigation),
            "Basis": basis,
            "AchievedSpearman": _fmt(achieved_spearman, 4),
            "BayesApplied": bayes.var_key if bayes is not None else "off",
            "BayesMuN": _fmt(bayes.mu_n, 4) if bayes is not None else "",
            "BayesSigmaN": _fmt(bayes.sigma_n, 4) if bayes is not None else "",
            "HorizonMonths": f"{config.horizon_months:g}",
            "OptionTimeWindowMonths": f"{r.horizon_months:g}",
            "CopulaFroErr": _fmt(copula_fro_err, 6),
            "Seed": str(config.seed),
            "Runs": str(config.runs),
            "RunId": run_id or "",
            "Timestamp": timestamp,
        })
    return pd.DataFrame(rows, columns=list(METRICS_CSV_COLUMNS))


def run_to_dataframe(run, *, timestamp: Optional[str] = None) -> pd.DataFrame:
    """Metrics table for a SimulationRun, diagnostics included."""
    diag = run.diagnostics
    return metrics_to_dataframe(
        run.results,
        run.config,
        run_id=run.run_id,
        achieved_spearman=diag.achieved_spearman,
        copula_fro_err=diag.copula_fro_err,
        bayes=diag.bayes,
        timestamp=timestamp,
    )


def write_metrics_csv(run, path, *, timestamp: Optional[str] = None) -> pd.DataFrame:
    frame = run_to_dataframe(run, timestamp=timestamp)
    frame.to_csv(path, index=False)
    logger.info("Wrote %d option rows to %s", len(frame), path)
    return frame
