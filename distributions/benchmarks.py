"""
Starter scenario variables and named presets.

Day 1 a decision has no calibrated drivers; these give the option authoring
layer something sensible to start from. They are plain values handed to the
caller, never read implicitly by the engine.
"""

from __future__ import annotations

from typing import Dict, Tuple

from core.schema import NormalDist, ScenarioVariable, TriangularDist, UniformDist

DEFAULT_SCENARIO_VARS: Tuple[ScenarioVariable, ...] = (
    ScenarioVariable(
        id="var-1",
        name="Demand",
        applies_to="return",
        dist=TriangularDist(min=-0.2, mode=0.0, max=0.4),
        weight=1.0,
    ),
    ScenarioVariable(
        id="var-2",
        name="CostInflation",
        applies_to="cost",
        dist=NormalDist(mean=0.05, stdev=0.03),
        weight=1.0,
    ),
)

# ----- Named preset sets (for quick what-if runs) -----
NAMED_PRESETS: Dict[str, Tuple[ScenarioVariable, ...]] = {
    "default": DEFAULT_SCENARIO_VARS,
    "demand_shock": (
        ScenarioVariable(
            id="demand",
            name="Demand",
            applies_to="return",
            dist=TriangularDist(min=-0.5, mode=-0.1, max=0.2),
        ),
        ScenarioVariable(
            id="cost-inflation",
            name="CostInflation",
            applies_to="cost",
            dist=NormalDist(mean=0.08, stdev=0.04),
        ),
    ),
    "supply_disruption": (
        ScenarioVariable(
            id="lead-time-penalty",
            name="LeadTimePenalty",
            applies_to="cost",
            dist=UniformDist(lo=0.0, hi=0.15),
        ),
        ScenarioVariable(
            id="cost-inflation",
            name="CostInflation",
            applies_to="cost",
            dist=NormalDist(mean=0.06, stdev=0.03),
        ),
    ),
}


def get_default_scenario_vars() -> Tuple[ScenarioVariable, ...]:
    """Return the starter scenario variables (Demand, CostInflation)."""
    return DEFAULT_SCENARIO_VARS


def get_named_preset(name: str) -> Tuple[ScenarioVariable, ...]:
    """
    Return a named preset of scenario variables.

    Parameters
    ----------
    name : str
        One of: "default", "demand_shock", "supply_disruption"
    """
    if name not in NAMED_PRESETS:
        raise KeyError(
            f"Unknown preset '{name}'. "
            f"Available: {list(NAMED_PRESETS.keys())}"
        )
    return NAMED_PRESETS[name]


def describe_variables(variables) -> Dict[str, str]:
    """Parameter summary per variable, e.g. {"Demand": "Tri(-0.2, 0, 0.4)"}."""
    return {var.label: var.dist.summary() for var in variables}
