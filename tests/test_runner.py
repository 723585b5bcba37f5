"""
End-to-end tests for the simulation pipeline.

Tests cover:
- Reference two-option scenario
- Bit-identical results across repeats and sequential vs parallel
- RAROC identity, risk ordering and TCOR decomposition on every result
- Horizon scaling, game multipliers, Bayesian override and copula diagnostics
- Validation failing before any sampling
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from core.config import (
    BayesianOverride,
    DependenceConfig,
    GameConfig,
    GameMultipliers,
    UtilityParams,
)
from core.errors import ConfigValidationError
from core.schema import Option, ResultFlag
from engine.runner import run_simulation, simulate


def _assert_runs_identical(a, b):
    assert a.run_id == b.run_id
    assert a.results == b.results
    for ra, rb in zip(a.results, b.results):
        assert_array_equal(ra.outcomes, rb.outcomes)


class TestReferenceScenario:

    def test_ev_near_closed_form(self, reference_config):
        run = run_simulation(reference_config)
        for option, result in zip(reference_config.options, run.results):
            expected = option.expected_return - option.cost + 100 - 10
            assert result.option_id == option.id
            assert_allclose(result.ev, expected, rtol=0.02)

    def test_repeat_is_bit_identical(self, reference_config):
        _assert_runs_identical(run_simulation(reference_config), run_simulation(reference_config))

    def test_parallel_matches_sequential(self, reference_config):
        _assert_runs_identical(
            run_simulation(reference_config),
            run_simulation(reference_config, max_workers=4),
        )

    def test_simulate_returns_results_only(self, reference_config):
        results = simulate(reference_config)
        assert [r.option_label for r in results] == ["Expand", "Hold"]

    def test_option_order_does_not_change_metrics(self, reference_config):
        flipped = reference_config.evolve(options=reference_config.options[::-1])
        a = run_simulation(reference_config)
        b = run_simulation(flipped)
        assert a.run_id == b.run_id
        assert a.result("opt-a") == b.result("opt-a")
        assert a.result("opt-b") == b.result("opt-b")


class TestResultInvariants:

    def test_identities_hold(self, small_config):
        run = run_simulation(small_config)
        for r in run.results:
            if r.raroc is None:
                assert r.economic_capital == 0.0
            else:
                assert r.raroc == pytest.approx(r.ev / r.economic_capital)
            assert r.cvar95 <= r.var95
            c = r.tcor_components
            assert r.tcor == c.expected_loss + c.insurance + c.contingency + c.mitigation
            assert r.certainty_equivalent <= r.ev

    def test_mitigation_and_insurance_flow_into_tcor(self, reference_config):
        r = run_simulation(reference_config).result("opt-a")
        assert r.tcor_components.mitigation == 4.0
        assert r.tcor_components.insurance == pytest.approx(50.0 * 0.01)
        assert r.tcor_components.contingency == pytest.approx(r.economic_capital * 0.15)

    def test_crra_with_losses_flags_domain(self, reference_config):
        cfg = reference_config.evolve(utility_params=UtilityParams(mode="CRRA", a=0.5))
        cfg = cfg.evolve(options=(Option(id="loss", label="Loss", cost=500.0),))
        r = run_simulation(cfg).results[0]
        assert r.certainty_equivalent is None
        assert ResultFlag.UTILITY_DOMAIN in r.flags
        assert r.ev < 0


class TestHorizonAndGame:

    def test_option_horizon_scales_outcomes(self, reference_config):
        base = run_simulation(reference_config).result("opt-b")
        opts = (reference_config.options[0], Option(id="opt-b", label="Hold", cost=20.0,
                                                     expected_return=25.0, horizon_months=6))
        half = run_simulation(reference_config.evolve(options=opts)).result("opt-b")
        assert half.horizon_months == 6.0
        assert_allclose(half.outcomes, base.outcomes * 0.5)
        assert_allclose(half.ev, base.ev * 0.5)

    def test_horizon_scales_capital_linearly(self, reference_config):
        full = run_simulation(reference_config).result("opt-a")
        quarter = run_simulation(reference_config.evolve(horizon_months=3.0)).result("opt-a")
        assert_allclose(quarter.economic_capital, full.economic_capital * 0.25)
        assert_allclose(quarter.raroc, full.raroc)

    def test_game_multipliers_apply_to_assigned_options(self, reference_config):
        game = GameConfig(
            p_undercut=0.5,
            multipliers={
                "Match": GameMultipliers(ret_mult={"Conservative": 1.0, "Aggressive": 1.1},
                                         cost_mult={"Conservative": 1.0, "Aggressive": 1.05}),
                "Undercut": GameMultipliers(ret_mult={"Conservative": 0.8, "Aggressive": 0.9},
                                            cost_mult={"Conservative": 1.0, "Aggressive": 1.0}),
            },
            strategies={"opt-a": "Conservative"},
        )
        base = run_simulation(reference_config)
        played = run_simulation(reference_config.evolve(game_config=game))
        assert played.result("opt-b") == base.result("opt-b")
        # Return part (60 + demand) shrinks by 20% on about half the runs.
        expected = base.result("opt-a").ev - 0.5 * 0.2 * (60 + 100)
        assert_allclose(played.result("opt-a").ev, expected, rtol=0.03)
        assert played.run_id != base.run_id


class TestOverridesAndDependence:

    def test_bayesian_override_recorded(self, reference_config):
        cfg = reference_config.evolve(bayesian_override=BayesianOverride("demand", 80.0, 10.0))
        run = run_simulation(cfg)
        assert run.diagnostics.bayes.applied
        assert run.diagnostics.bayes.var_key == "demand"
        assert_allclose(run.result("opt-b").ev, 25 - 20 + 80 - 10, rtol=0.02)

    def test_copula_diagnostics_reported(self, reference_config):
        cfg = reference_config.evolve(dependence_config=DependenceConfig.pairwise("demand", "overrun", 0.6))
        run = run_simulation(cfg)
        assert abs(run.diagnostics.achieved_spearman - 0.6) <= 0.05
        assert run.diagnostics.copula_fro_err >= 0
        assert run.diagnostics.to_dict()["achievedSpearman"] == run.diagnostics.achieved_spearman
        assert all(ResultFlag.CORRELATION_REPAIRED not in r.flags for r in run.results)

    def test_repair_flag_on_every_result(self, small_config):
        bad = DependenceConfig.from_array(
            ["demand", "overrun", "share"],
            [[1.0, 0.9, -0.9], [0.9, 1.0, 0.9], [-0.9, 0.9, 1.0]],
        )
        run = run_simulation(small_config.evolve(dependence_config=bad))
        assert ResultFlag.CORRELATION_REPAIRED in run.diagnostics.flags
        assert all(ResultFlag.CORRELATION_REPAIRED in r.flags for r in run.results)

    def test_strict_psd_rejects_bad_target(self, small_config):
        bad = DependenceConfig.from_array(
            ["demand", "overrun", "share"],
            [[1.0, 0.9, -0.9], [0.9, 1.0, 0.9], [-0.9, 0.9, 1.0]],
            use_nearest_psd=False,
        )
        with pytest.raises(ConfigValidationError, match="positive semi-definite"):
            run_simulation(small_config.evolve(dependence_config=bad))


class TestFailFast:

    def test_bad_runs(self, reference_config):
        with pytest.raises(ConfigValidationError) as exc:
            run_simulation(reference_config.evolve(runs=0))
        assert "runs" in exc.value.fields

    def test_results_frame(self, small_config):
        frame = run_simulation(small_config).to_dataframe()
        assert list(frame["option_id"]) == ["opt-a", "opt-b"]
        assert np.isfinite(frame["ev"]).all()
