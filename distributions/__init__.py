"""
Distributions package — override, sample, and correlate scenario variable draws.

  1. bayesian.py     — swap one variable's prior for a supplied posterior
  2. sampler.py      — draw ``runs`` samples per variable from seeded sub-streams
  3. correlation.py  — Gaussian copula: induce and measure rank correlation
  4. benchmarks.py   — starter variables and named presets
"""

from .bayesian import BayesApplication, apply_bayesian_override
from .benchmarks import get_default_scenario_vars, get_named_preset
from .correlation import CopulaDiagnostics, apply_gaussian_copula, nearest_psd_correlation
from .sampler import MonteCarloSampler, SampledPaths

__all__ = [
    "BayesApplication",
    "apply_bayesian_override",
    "get_default_scenario_vars",
    "get_named_preset",
    "CopulaDiagnostics",
    "apply_gaussian_copula",
    "nearest_psd_correlation",
    "MonteCarloSampler",
    "SampledPaths",
]
