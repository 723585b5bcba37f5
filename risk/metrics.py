"""
Risk metrics for one outcome distribution.

Given the ``runs`` simulated outcomes of an option:
  EV        = mean
  VaR95     = 5th percentile (linear interpolation between order statistics)
  CVaR95    = mean of outcomes at or below VaR95 (expected shortfall)
  Capital   = max(EV − VaR95, 0)   — flagged CAPITAL_CLAMPED when EV < VaR95
  RAROC     = EV / Capital          — None + RAROC_UNDEFINED when Capital is 0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from core.schema import ResultFlag

logger = logging.getLogger(__name__)

VAR_PERCENTILE = 5.0

# Capital below this fraction of |EV| is rounding noise from a constant outcome.
_CAPITAL_RTOL = 1e-12


@dataclass(frozen=True)
class RiskMetrics:
    ev: float
    var95: float
    cvar95: float
    economic_capital: float
    raroc: Optional[float]
    flags: Tuple[ResultFlag, ...] = ()


def value_at_risk(outcomes: np.ndarray, percentile: float = VAR_PERCENTILE) -> float:
    return float(np.percentile(outcomes, percentile, method="linear"))


def conditional_value_at_risk(outcomes: np.ndarray, var: float) -> float:
    tail = outcomes[outcomes <= var]
    if tail.size == 0:
        return float(var)
    return float(tail.mean())


def compute_risk_metrics(outcomes: np.ndarray, *, label: str = "") -> RiskMetrics:
    """
    Reduce an outcome array to EV, VaR95, CVaR95, economic capital and RAROC.

    Parameters
    ----------
    outcomes : np.ndarray
        Simulated outcomes (already horizon-scaled), one per run
    label : str
        Option label used in log messages only
    """
    x = np.asarray(outcomes, dtype=float)
    if x.size == 0:
        raise ValueError("No outcomes to compute risk metrics from.")

    ev = float(np.mean(x))
    var95 = value_at_risk(x)
    cvar95 = conditional_value_at_risk(x, var95)

    flags = []
    raw_capital = ev - var95
    if abs(raw_capital) <= _CAPITAL_RTOL * max(1.0, abs(ev)):
        capital = 0.0
    elif raw_capital < 0:
        capital = 0.0
        flags.append(ResultFlag.CAPITAL_CLAMPED)
        logger.warning("%s: VaR95 above EV; economic capital clamped to 0.", label or "option")
    else:
        capital = raw_capital

    if capital == 0.0:
        raroc = None
        flags.append(ResultFlag.RAROC_UNDEFINED)
        logger.warning("%s: economic capital is 0; RAROC undefined.", label or "option")
    else:
        raroc = ev / capital

    return RiskMetrics(
        ev=ev,
        var95=var95,
        cvar95=cvar95,
        economic_capital=capital,
        raroc=raroc,
        flags=tuple(flags),
    )


def raroc_band(raroc: Optional[float]) -> str:
    """Traffic-light band: red < 5%, amber < 10%, green otherwise."""
    if raroc is None:
        return "undefined"
    if raroc < 0.05:
        return "red"
    if raroc < 0.10:
        return "amber"
    return "green"
