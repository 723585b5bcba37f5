import pytest

from core.config import SimulationConfig, UtilityParams
from core.schema import NormalDist, Option, ScenarioVariable, TriangularDist, UniformDist


@pytest.fixture
def demand_var():
    return ScenarioVariable(id="demand", applies_to="return", dist=NormalDist(mean=100, stdev=20))


@pytest.fixture
def overrun_var():
    return ScenarioVariable(id="overrun", applies_to="cost", dist=UniformDist(lo=5, hi=15))


@pytest.fixture
def two_options():
    return (
        Option(id="opt-a", label="Expand", cost=50.0, expected_return=60.0, mitigation_cost=4.0),
        Option(id="opt-b", label="Hold", cost=20.0, expected_return=25.0),
    )


@pytest.fixture
def reference_config(demand_var, overrun_var, two_options):
    """Two options, normal(100, 20) return driver, uniform(5, 15) cost driver."""
    return SimulationConfig(
        seed=42,
        runs=10_000,
        scenario_vars=(demand_var, overrun_var),
        options=two_options,
        decision_id="dec-1",
    )


@pytest.fixture
def small_config(demand_var, overrun_var, two_options):
    return SimulationConfig(
        seed=7,
        runs=2_000,
        scenario_vars=(
            demand_var,
            overrun_var,
            ScenarioVariable(
                id="share",
                name="MarketShare",
                applies_to="return",
                dist=TriangularDist(min=-10, mode=0, max=30),
                weight=0.5,
            ),
        ),
        options=two_options,
        utility_params=UtilityParams(mode="CARA", a=0.5, outcome_scale=100.0),
        decision_id="dec-2",
    )
