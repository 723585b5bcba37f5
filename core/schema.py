"""
Scenario inputs — distribution variants, scenario variables and decision options.

Each distribution kind is its own frozen dataclass carrying only the
parameters it needs:

  NormalDist(mean, stdev)
  LognormalDist(mean, stdev)        — declared moments of the lognormal itself
  TriangularDist(min, mode, max)
  UniformDist(lo, hi)

Every variant knows how to draw from a numpy Generator, map values to
probabilities (cdf) and back (ppf), report its first two moments and
rebuild itself from a target mean/stdev (used by the Bayesian override).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Literal, Optional, Tuple, Union

import numpy as np
from scipy import stats

AppliesTo = Literal["return", "cost"]

# Keeps copula inputs away from 0/1 so norm.ppf stays finite.
_U_EPS = 1e-12


@dataclass(frozen=True)
class NormalDist:
    mean: float = 0.0
    stdev: float = 1.0

    kind = "normal"

    def check(self) -> List[Tuple[str, str]]:
        issues = []
        if not np.isfinite(self.mean):
            issues.append(("mean", "must be finite"))
        if not np.isfinite(self.stdev) or self.stdev < 0:
            issues.append(("stdev", f"must be a finite value >= 0, got {self.stdev}"))
        return issues

    def sample(self, rng: np.random.Generator, n: int) -> np.ndarray:
        return self.mean + self.stdev * rng.standard_normal(n)

    def cdf(self, x: np.ndarray) -> np.ndarray:
        if self.stdev == 0:
            return np.full(len(x), 0.5)
        return stats.norm.cdf((x - self.mean) / self.stdev)

    def ppf(self, u: np.ndarray) -> np.ndarray:
        return self.mean + self.stdev * stats.norm.ppf(u)

    def moments(self) -> Tuple[float, float]:
        return float(self.mean), float(self.stdev)

    def with_moments(self, mean: float, stdev: float) -> "NormalDist":
        return NormalDist(mean=float(mean), stdev=float(stdev))

    def scaled_location(self, factor: float) -> "NormalDist":
        return replace(self, mean=self.mean * factor)

    def summary(self) -> str:
        return f"N(μ={self.mean:g}, σ={self.stdev:g})"


@dataclass(frozen=True)
class LognormalDist:
    """
    Lognormal declared by its own mean/stdev.

    Converted to the underlying normal (mu, sigma) by method of moments:
        sigma² = ln(1 + stdev² / mean²)
        mu     = ln(mean) − sigma² / 2
    """
    mean: float = 1.0
    stdev: float = 0.5

    kind = "lognormal"

    def check(self) -> List[Tuple[str, str]]:
        issues = []
        if not np.isfinite(self.mean) or self.mean <= 0:
            issues.append(("mean", f"lognormal mean must be > 0, got {self.mean}"))
        if not np.isfinite(self.stdev) or self.stdev < 0:
            issues.append(("stdev", f"must be a finite value >= 0, got {self.stdev}"))
        return issues

    @property
    def log_params(self) -> Tuple[float, float]:
        sigma = np.sqrt(np.log1p(self.stdev ** 2 / self.mean ** 2))
        mu = np.log(self.mean) - 0.5 * sigma ** 2
        return float(mu), float(sigma)

    def sample(self, rng: np.random.Generator, n: int) -> np.ndarray:
        mu, sigma = self.log_params
        return np.exp(mu + sigma * rng.standard_normal(n))

    def cdf(self, x: np.ndarray) -> np.ndarray:
        mu, sigma = self.log_params
        if sigma == 0:
            return np.full(len(x), 0.5)
        with np.errstate(divide="ignore"):
            return stats.norm.cdf((np.log(x) - mu) / sigma)

    def ppf(self, u: np.ndarray) -> np.ndarray:
        mu, sigma = self.log_params
        return np.exp(mu + sigma * stats.norm.ppf(u))

    def moments(self) -> Tuple[float, float]:
        return float(self.mean), float(self.stdev)

    def with_moments(self, mean: float, stdev: float) -> "LognormalDist":
        return LognormalDist(mean=float(mean), stdev=float(stdev))

    def scaled_location(self, factor: float) -> "LognormalDist":
        return replace(self, mean=self.mean * factor)

    def summary(self) -> str:
        return f"LogN(m={self.mean:g}, s={self.stdev:g})"


@dataclass(frozen=True)
class TriangularDist:
    min: float = -1.0
    mode: float = 0.0
    max: float = 1.0

    kind = "triangular"

    def check(self) -> List[Tuple[str, str]]:
        if not all(np.isfinite(v) for v in (self.min, self.mode, self.max)):
            return [("min", "min/mode/max must be finite")]
        if not (self.min <= self.mode <= self.max):
            return [("mode", f"requires min <= mode <= max, got "
                             f"({self.min}, {self.mode}, {self.max})")]
        return []

    def sample(self, rng: np.random.Generator, n: int) -> np.ndarray:
        return self.ppf(rng.random(n))

    def cdf(self, x: np.ndarray) -> np.ndarray:
        a, c, b = self.min, self.mode, self.max
        width = b - a
        if width == 0:
            return np.full(len(x), 0.5)
        x = np.clip(x, a, b)
        out = np.empty(len(x), dtype=float)
        left = x <= c
        if c > a:
            out[left] = (x[left] - a) ** 2 / (width * (c - a))
        else:
            out[left] = 0.0
        if b > c:
            out[~left] = 1.0 - (b - x[~left]) ** 2 / (width * (b - c))
        else:
            out[~left] = 1.0
        return out

    def ppf(self, u: np.ndarray) -> np.ndarray:
        """Inverse CDF; u is split at fc = (mode − min) / (max − min)."""
        a, c, b = self.min, self.mode, self.max
        width = b - a
        if width == 0:
            return np.full(len(u), float(a))
        fc = (c - a) / width
        return np.where(
            u < fc,
            a + np.sqrt(u * width * (c - a)),
            b - np.sqrt((1.0 - u) * width * (b - c)),
        )

    def moments(self) -> Tuple[float, float]:
        a, c, b = self.min, self.mode, self.max
        mean = (a + b + c) / 3.0
        var = (a * a + b * b + c * c - a * b - a * c - b * c) / 18.0
        return float(mean), float(np.sqrt(max(var, 0.0)))

    def with_moments(self, mean: float, stdev: float) -> "TriangularDist":
        # Affine refit keeps the skew; a degenerate prior becomes symmetric.
        old_mean, old_std = self.moments()
        if old_std > 0:
            k = stdev / old_std
            return TriangularDist(
                min=mean + (self.min - old_mean) * k,
                mode=mean + (self.mode - old_mean) * k,
                max=mean + (self.max - old_mean) * k,
            )
        half_width = stdev * np.sqrt(6.0)
        return TriangularDist(min=mean - half_width, mode=mean, max=mean + half_width)

    def scaled_location(self, factor: float) -> "TriangularDist":
        lo, mid, hi = sorted((self.min * factor, self.mode * factor, self.max * factor))
        return TriangularDist(min=lo, mode=mid, max=hi)

    def summary(self) -> str:
        return f"Tri({self.min:g}, {self.mode:g}, {self.max:g})"


@dataclass(frozen=True)
class UniformDist:
    lo: float = 0.0
    hi: float = 1.0

    kind = "uniform"

    def check(self) -> List[Tuple[str, str]]:
        if not (np.isfinite(self.lo) and np.isfinite(self.hi)):
            return [("lo", "lo/hi must be finite")]
        if self.hi < self.lo:
            return [("hi", f"requires lo <= hi, got ({self.lo}, {self.hi})")]
        return []

    def sample(self, rng: np.random.Generator, n: int) -> np.ndarray:
        return self.lo + (self.hi - self.lo) * rng.random(n)

    def cdf(self, x: np.ndarray) -> np.ndarray:
        if self.hi == self.lo:
            return np.full(len(x), 0.5)
        return np.clip((x - self.lo) / (self.hi - self.lo), 0.0, 1.0)

    def ppf(self, u: np.ndarray) -> np.ndarray:
        return self.lo + (self.hi - self.lo) * u

    def moments(self) -> Tuple[float, float]:
        return (self.lo + self.hi) / 2.0, (self.hi - self.lo) / np.sqrt(12.0)

    def with_moments(self, mean: float, stdev: float) -> "UniformDist":
        half_width = stdev * np.sqrt(3.0)
        return UniformDist(lo=mean - half_width, hi=mean + half_width)

    def scaled_location(self, factor: float) -> "UniformDist":
        lo, hi = sorted((self.lo * factor, self.hi * factor))
        return UniformDist(lo=lo, hi=hi)

    def summary(self) -> str:
        return f"U({self.lo:g}, {self.hi:g})"


Distribution = Union[NormalDist, LognormalDist, TriangularDist, UniformDist]

DISTRIBUTION_KINDS = {
    "normal": NormalDist,
    "lognormal": LognormalDist,
    "triangular": TriangularDist,
    "uniform": UniformDist,
}


def clip_unit(u: np.ndarray) -> np.ndarray:
    return np.clip(u, _U_EPS, 1.0 - _U_EPS)


@dataclass(frozen=True)
class ScenarioVariable:
    """
    One uncertain driver. Its weighted draw is added to (``applies_to="return"``)
    or subtracted from (``applies_to="cost"``) every option's outcome.
    """
    id: str
    applies_to: AppliesTo
    dist: Distribution
    weight: float = 1.0
    name: Optional[str] = None
    correlation_group: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or self.id


@dataclass(frozen=True)
class Option:
    """A decision option. Owned by the caller; never mutated by the engine."""
    id: str
    label: str
    cost: float = 0.0
    expected_return: float = 0.0
    mitigation_cost: Optional[float] = None
    horizon_months: Optional[float] = None


# Technical CSV columns; the order is a compatibility contract with downstream consumers.
METRICS_CSV_COLUMNS: Tuple[str, ...] = (
    "Option",
    "Cost",
    "ExpectedReturn",
    "MitigationCost",
    "EV",
    "VaR95",
    "CVaR95",
    "EconCapital",
    "RAROC",
    "Utility",
    "CE",
    "TCOR",
    "TCOR_ExpectedLoss",
    "TCOR_Insurance",
    "TCOR_Contingency",
    "TCOR_Mitigation",
    "Basis",
    "AchievedSpearman",
    "BayesApplied",
    "BayesMuN",
    "BayesSigmaN",
    "HorizonMonths",
    "OptionTimeWindowMonths",
    "CopulaFroErr",
    "Seed",
    "Runs",
    "RunId",
    "Timestamp",
)


class ResultFlag(str, Enum):
    """Degeneracies reported alongside metrics instead of raising."""
    RAROC_UNDEFINED = "RAROC_UNDEFINED"
    CAPITAL_CLAMPED = "CAPITAL_CLAMPED"
    UTILITY_DOMAIN = "UTILITY_DOMAIN"
    CORRELATION_REPAIRED = "CORRELATION_REPAIRED"
