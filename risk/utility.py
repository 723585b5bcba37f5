"""
Utility functions and certainty equivalents.

Five modes, one class each. Outcomes are averaged in utility space to get the
expected utility, which is then mapped back through the closed-form inverse:

  CARA         U(x) = 1 − exp(−a·x/s)          CE = −(s/a)·ln(1 − EU)
  Exponential  U(x) = −exp(−a·x/s)             CE = −(s/a)·ln(−EU)
  Quadratic    U(x) = y − (a/2)·y²,  y = x/s   CE = s·(1 − √(1 − 2a·EU)) / a
  CRRA         U(x) = x^(1−a) / (1−a)          CE = ((1−a)·EU)^(1/(1−a))
  Power        U(x) = x^(1−a)                  CE = EU^(1/(1−a))

s is the outcome scale. CRRA and Power work on raw outcomes and need x > 0;
at a = 1 both become ln x. At a = 0 every mode is risk-neutral (CE = EV).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type

import numpy as np

from core.config import UtilityParams
from core.schema import ResultFlag

logger = logging.getLogger(__name__)

# a below this is treated as risk-neutral.
_A_EPS = 1e-12


class UtilityDomainError(ValueError):
    """Outcomes fall outside the region where the utility is defined."""


class UtilityFunction:
    """Interface for a utility mode; subclasses implement u() and inverse()."""

    mode = ""

    def __init__(self, a: float, outcome_scale: float = 1.0):
        self.a = float(a)
        self.outcome_scale = float(outcome_scale)

    @property
    def risk_neutral(self) -> bool:
        return self.a < _A_EPS

    def check_domain(self, x: np.ndarray) -> None:
        pass

    def u(self, x: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def inverse(self, eu: float) -> float:
        raise NotImplementedError

    def expected_utility(self, x: np.ndarray) -> float:
        self.check_domain(x)
        return float(np.mean(self.u(x)))

    def certainty_equivalent(self, x: np.ndarray) -> Tuple[float, float]:
        eu = self.expected_utility(x)
        return eu, float(self.inverse(eu))


class CARAUtility(UtilityFunction):
    mode = "CARA"

    def u(self, x):
        y = x / self.outcome_scale
        if self.risk_neutral:
            return y
        return -np.expm1(-self.a * y)

    def inverse(self, eu):
        if self.risk_neutral:
            return eu * self.outcome_scale
        return -self.outcome_scale / self.a * np.log1p(-eu)


class ExponentialUtility(UtilityFunction):
    mode = "Exponential"

    def u(self, x):
        y = x / self.outcome_scale
        if self.risk_neutral:
            return y
        return -np.exp(-self.a * y)

    def inverse(self, eu):
        if self.risk_neutral:
            return eu * self.outcome_scale
        return -self.outcome_scale / self.a * np.log(-eu)


class QuadraticUtility(UtilityFunction):
    mode = "Quadratic"

    def u(self, x):
        y = x / self.outcome_scale
        return y - 0.5 * self.a * y * y

    def inverse(self, eu):
        if self.risk_neutral:
            return eu * self.outcome_scale
        disc = max(1.0 - 2.0 * self.a * eu, 0.0)
        # Written as 2·EU / (1 + √disc) to avoid cancellation when a·EU is tiny.
        return self.outcome_scale * 2.0 * eu / (1.0 + np.sqrt(disc))


class CRRAUtility(UtilityFunction):
    mode = "CRRA"

    def check_domain(self, x):
        if np.any(x <= 0):
            raise UtilityDomainError(
                f"CRRA utility needs positive outcomes; {int(np.sum(x <= 0))} of {x.size} are <= 0"
            )

    def u(self, x):
        if abs(self.a - 1.0) < _A_EPS:
            return np.log(x)
        g = 1.0 - self.a
        return np.power(x, g) / g

    def inverse(self, eu):
        if abs(self.a - 1.0) < _A_EPS:
            return np.exp(eu)
        g = 1.0 - self.a
        return np.power(g * eu, 1.0 / g)


class PowerUtility(UtilityFunction):
    mode = "Power"

    def check_domain(self, x):
        if np.any(x <= 0):
            raise UtilityDomainError(
                f"Power utility needs positive outcomes; {int(np.sum(x <= 0))} of {x.size} are <= 0"
            )

    def u(self, x):
        if abs(self.a - 1.0) < _A_EPS:
            return np.log(x)
        return np.power(x, 1.0 - self.a)

    def inverse(self, eu):
        if abs(self.a - 1.0) < _A_EPS:
            return np.exp(eu)
        return np.power(eu, 1.0 / (1.0 - self.a))


UTILITY_CLASSES: Dict[str, Type[UtilityFunction]] = {
    "CARA": CARAUtility,
    "CRRA": CRRAUtility,
    "Exponential": ExponentialUtility,
    "Quadratic": QuadraticUtility,
    "Power": PowerUtility,
}


def make_utility(params: UtilityParams) -> UtilityFunction:
    try:
        cls = UTILITY_CLASSES[params.mode]
    except KeyError:
        raise KeyError(
            f"Unknown utility mode '{params.mode}'. Available: {list(UTILITY_CLASSES)}"
        ) from None
    return cls(a=params.a, outcome_scale=params.outcome_scale)


@dataclass(frozen=True)
class UtilityResult:
    mode: str
    expected_utility: Optional[float]
    certainty_equivalent: Optional[float]
    flags: Tuple[ResultFlag, ...] = ()


def evaluate_utility(outcomes: np.ndarray, params: UtilityParams, *, label: str = "") -> UtilityResult:
    """
    Expected utility and certainty equivalent of ``outcomes``.

    Outcomes outside the utility's domain (or an overflow in exp/pow) give
    ``None`` for both values and the UTILITY_DOMAIN flag; the rest of the
    option's metrics are still usable.
    """
    fn = make_utility(params)
    x = np.asarray(outcomes, dtype=float)
    try:
        with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
            eu, ce = fn.certainty_equivalent(x)
    except UtilityDomainError as exc:
        logger.warning("%s: %s", label or "option", exc)
        return UtilityResult(fn.mode, None, None, (ResultFlag.UTILITY_DOMAIN,))

    if not (np.isfinite(eu) and np.isfinite(ce)):
        logger.warning(
            "%s: %s utility is not finite for these outcomes (a=%g, scale=%g)",
            label or "option", fn.mode, fn.a, fn.outcome_scale,
        )
        return UtilityResult(fn.mode, None, None, (ResultFlag.UTILITY_DOMAIN,))

    return UtilityResult(fn.mode, eu, ce)
