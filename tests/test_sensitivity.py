import pytest

from core.schema import NormalDist, ScenarioVariable
from engine.runner import run_simulation
from engine.sensitivity import build_perturbations, run_tornado, sensitivity_records


class TestTornado:

    def test_bars_ranked_by_max_abs_delta(self, small_config):
        tornado = run_tornado(small_config)
        moves = [bar.max_abs_delta for bar in tornado.bars]
        assert moves == sorted(moves, reverse=True)
        assert tornado.metric == "RAROC"

    def test_defaults_to_recommended_option(self, small_config):
        tornado = run_tornado(small_config)
        # Same driver spread, higher net return
        assert tornado.option_id == "opt-a"
        assert tornado.option_label == "Expand"

    def test_run_id_base_is_baseline_run(self, small_config):
        baseline = run_simulation(small_config)
        tornado = run_tornado(small_config, baseline=baseline)
        assert tornado.run_id_base == baseline.run_id
        assert {r.run_id_base for r in tornado.records()} == {baseline.run_id}

    def test_cost_and_return_move_in_opposite_directions(self, small_config):
        bars = {b.param_name: b for b in run_tornado(small_config, option_id="opt-b").bars}
        cost, ret = bars["Option Cost"], bars["Expected Return"]
        assert cost.delta_plus < 0 < cost.delta_minus
        assert ret.delta_minus < 0 < ret.delta_plus

    def test_records_come_in_pairs(self, small_config):
        tornado = run_tornado(small_config, step_percent=20)
        records = tornado.records()
        assert len(records) == 2 * len(tornado.bars)
        assert [r.direction for r in records[:2]] == ["plus", "minus"]
        assert all(r.option_label == "Expand" for r in records)

    def test_percent_is_relative_to_baseline(self, small_config):
        tornado = run_tornado(small_config)
        for bar in tornado.bars:
            if bar.delta_plus is not None:
                assert bar.percent_plus == pytest.approx(bar.delta_plus / tornado.baseline * 100)

    def test_ce_metric_sweeps_utility_coefficient(self, small_config):
        tornado = run_tornado(small_config, metric="CE")
        assert "Utility a" in [b.param_name for b in tornado.bars]
        assert "Utility a" not in [p.name for p in build_perturbations(small_config, "opt-a", "RAROC")]

    def test_perturbation_names(self, small_config):
        names = [p.name for p in build_perturbations(small_config, "opt-b", "RAROC")]
        assert names == [
            "Option Cost", "Expected Return",
            "Weight: demand", "Mean: demand",
            "Weight: overrun", "Bounds: overrun",
            "Weight: MarketShare", "Bounds: MarketShare",
        ]

    def test_zero_location_not_swept(self, small_config):
        centred = ScenarioVariable(id="noise", applies_to="return", dist=NormalDist(mean=0.0, stdev=5.0))
        cfg = small_config.evolve(scenario_vars=small_config.scenario_vars + (centred,))
        names = [p.name for p in build_perturbations(cfg, "opt-a", "RAROC")]
        assert "Weight: noise" in names
        assert "Mean: noise" not in names

    @pytest.mark.parametrize("step", [0.5, 51, -10])
    def test_step_out_of_range(self, small_config, step):
        with pytest.raises(ValueError, match="step_percent"):
            run_tornado(small_config, step_percent=step)

    def test_unknown_option(self, small_config):
        with pytest.raises(KeyError):
            run_tornado(small_config, option_id="nope")

    def test_parallel_matches_sequential(self, small_config):
        seq = run_tornado(small_config)
        par = run_tornado(small_config, max_workers=4)
        assert par.bars == seq.bars

    def test_flat_records_and_frame(self, small_config):
        records = sensitivity_records(small_config, step_percent=5)
        assert all(r.metric == "RAROC" for r in records)
        frame = run_tornado(small_config, step_percent=5).to_dataframe()
        assert list(frame.columns) == ["Parameter", "Type", "Δ +5%", "Δ −5%", "% +", "% −", "Max |Δ|"]
