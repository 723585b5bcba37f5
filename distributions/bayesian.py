"""
Bayesian posterior override — swap one variable's prior for a supplied posterior.

Applied once, upstream of the sampler. The variable keeps its id, weight and
``applies_to``; only its distribution parameters change:
  - normal / lognormal: posterior mean and stdev are substituted directly
    (both are declared by their own first two moments)
  - triangular: affine refit that keeps the prior's skew and matches the
    posterior mean/stdev exactly
  - uniform: centered on the posterior mean with half-width sqrt(3)·stdev
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple

from core.config import BayesianOverride
from core.schema import ScenarioVariable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BayesApplication:
    """What the override did — exported with results (BayesApplied/MuN/SigmaN)."""
    var_key: str
    mu_n: float
    sigma_n: float
    applied: bool
    prior_summary: Optional[str] = None
    posterior_summary: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "varKey": self.var_key,
            "muN": self.mu_n,
            "sigmaN": self.sigma_n,
            "applied": self.applied,
        }


def apply_posterior(variable: ScenarioVariable, override: BayesianOverride) -> ScenarioVariable:
    """Return ``variable`` with its distribution refit to the posterior moments."""
    posterior = variable.dist.with_moments(override.posterior_mean, override.posterior_stdev)
    return replace(variable, dist=posterior)


def apply_bayesian_override(
    variables: Tuple[ScenarioVariable, ...],
    override: Optional[BayesianOverride],
) -> Tuple[Tuple[ScenarioVariable, ...], Optional[BayesApplication]]:
    """
    Apply ``override`` to the matching variable, if any.

    Returns the (possibly) rewritten variables and a record of the application,
    or ``(variables, None)`` when no override is configured.
    """
    if override is None:
        return variables, None

    out = []
    record = BayesApplication(
        var_key=override.target_variable_id,
        mu_n=float(override.posterior_mean),
        sigma_n=float(override.posterior_stdev),
        applied=False,
    )
    for var in variables:
        if var.id == override.target_variable_id:
            updated = apply_posterior(var, override)
            record = replace(
                record,
                applied=True,
                prior_summary=var.dist.summary(),
                posterior_summary=updated.dist.summary(),
            )
            logger.info(
                "Bayesian override on '%s': %s -> %s",
                var.id, record.prior_summary, record.posterior_summary,
            )
            out.append(updated)
        else:
            out.append(var)
    return tuple(out), record
