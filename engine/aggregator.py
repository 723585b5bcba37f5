"""
Scenario aggregator — turns sampled variable draws into one outcome per run.

For option o and run t:
    return_part[t] = o.expected_return + Σ w_i · x_i[t]   (variables on "return")
    cost_part[t]   = o.cost            + Σ w_j · x_j[t]   (variables on "cost")
    outcome[t]     = (return_part[t] · rm[t] − cost_part[t] · cm[t]) · h

rm/cm are the competitor-game multipliers (1 without a game), h is the
option's horizon in months divided by 12. Options share no state, so they can
be aggregated in any order or in parallel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from core.config import GameConfig
from core.schema import Option, ScenarioVariable
from core.utils import substream
from distributions.sampler import SampledPaths


@dataclass(frozen=True, eq=False)
class OptionOutcomes:
    option_id: str
    outcomes: np.ndarray
    horizon_months: float
    undercut: Optional[np.ndarray] = field(default=None, repr=False)

    @property
    def horizon_factor(self) -> float:
        return self.horizon_months / 12.0

    @property
    def undercut_share(self) -> Optional[float]:
        if self.undercut is None:
            return None
        return float(np.mean(self.undercut))


def weighted_sum(
    variables: Sequence[ScenarioVariable],
    paths: SampledPaths,
    applies_to: str,
) -> np.ndarray:
    total = np.zeros(paths.n_paths, dtype=float)
    # Sorted by id so the float summation order is independent of list order.
    for var in sorted(variables, key=lambda v: v.id):
        if var.applies_to == applies_to:
            total += var.weight * paths[var.id]
    return total


def game_multipliers(
    option: Option,
    game: Optional[GameConfig],
    runs: int,
    seed: int,
):
    """
    Per-run (return, cost) multipliers and the undercut mask for ``option``.

    Options without an assigned strategy are unaffected (multipliers of 1).
    """
    if game is None or option.id not in game.strategies:
        return 1.0, 1.0, None
    strategy = game.strategies[option.id]
    rng = substream(seed, "game", option.id)
    undercut = rng.random(runs) < game.p_undercut
    match, cut = game.multipliers["Match"], game.multipliers["Undercut"]
    ret_mult = np.where(undercut, cut.ret_mult[strategy], match.ret_mult[strategy])
    cost_mult = np.where(undercut, cut.cost_mult[strategy], match.cost_mult[strategy])
    return ret_mult, cost_mult, undercut


def aggregate_option(
    option: Option,
    variables: Sequence[ScenarioVariable],
    paths: SampledPaths,
    *,
    horizon_months: float,
    seed: int,
    game: Optional[GameConfig] = None,
) -> OptionOutcomes:
    """
    Outcome array of length ``paths.n_paths`` for one option.

    Parameters
    ----------
    option : Option
    variables : scenario variables (post Bayesian override)
    paths : SampledPaths
        Draws for every variable (post copula)
    horizon_months : float
        Effective horizon for this option; outcomes are scaled by months / 12
    seed : int
        Simulation seed, used only for competitor-move draws
    game : GameConfig, optional
    """
    return_part = option.expected_return + weighted_sum(variables, paths, "return")
    cost_part = option.cost + weighted_sum(variables, paths, "cost")

    ret_mult, cost_mult, undercut = game_multipliers(option, game, paths.n_paths, seed)
    h = horizon_months / 12.0
    outcomes = (return_part * ret_mult - cost_part * cost_mult) * h

    return OptionOutcomes(
        option_id=option.id,
        outcomes=outcomes,
        horizon_months=float(horizon_months),
        undercut=undercut,
    )
