import json

import pytest

from core.errors import ConfigValidationError
from core.schema import TriangularDist
from inputs.loader import load_config, parse_config


@pytest.fixture
def payload():
    return {
        "seed": 42,
        "runs": 5000,
        "decisionId": "dec-9",
        "horizonMonths": 12,
        "scenarioVars": [
            {"id": "demand", "name": "Demand", "appliesTo": "return",
             "dist": "triangular", "params": {"min": -20, "mode": 0, "max": 40}},
            {"id": "inflation", "appliesTo": "cost", "dist": "normal",
             "params": {"mean": 5, "stdev": 3}, "weight": 2},
        ],
        "options": [
            {"id": "a", "label": "Option A", "cost": 50, "expectedReturn": 60, "mitigationCost": 2},
            {"id": "b", "label": "Option B", "cost": 10, "horizonMonths": 6},
        ],
        "utilityParams": {"mode": "CRRA", "a": 0.5, "scale": 1000, "useForRecommendation": True},
        "tcorParams": {"insuranceRate": 0.02},
        "dependenceConfig": {"varAId": "demand", "varBId": "inflation", "targetRho": 0.4},
    }


class TestParseConfig:

    def test_camel_case_payload(self, payload):
        cfg = parse_config(payload)
        assert cfg.decision_id == "dec-9"
        assert cfg.scenario_vars[0].dist == TriangularDist(min=-20, mode=0, max=40)
        assert cfg.scenario_vars[0].label == "Demand"
        assert cfg.scenario_vars[1].weight == 2.0
        assert cfg.options[0].mitigation_cost == 2.0
        assert cfg.options[1].horizon_months == 6.0
        assert cfg.utility_params.outcome_scale == 1000.0
        assert cfg.utility_params.use_for_recommendation
        assert cfg.tcor_params.insurance_rate == 0.02
        assert cfg.tcor_params.contingency_on_cap_percent == 0.15
        assert cfg.dependence_config.variable_ids == ("demand", "inflation")
        assert cfg.dependence_config.matrix == ((1.0, 0.4), (0.4, 1.0))

    def test_matrix_form(self, payload):
        payload["dependenceConfig"] = {
            "variableIds": ["demand", "inflation"],
            "matrix": [[1, -0.2], [-0.2, 1]],
            "useNearestPsd": False,
        }
        dep = parse_config(payload).dependence_config
        assert dep.matrix == ((1.0, -0.2), (-0.2, 1.0))
        assert not dep.use_nearest_psd

    def test_both_dependence_forms_rejected(self, payload):
        payload["dependenceConfig"]["variableIds"] = ["demand", "inflation"]
        payload["dependenceConfig"]["matrix"] = [[1, 0], [0, 1]]
        with pytest.raises(ConfigValidationError) as exc:
            parse_config(payload)
        assert exc.value.fields == ["dependenceConfig"]

    def test_wrong_distribution_params(self, payload):
        payload["scenarioVars"][1]["params"] = {"mu": 5, "sigma": 3}
        with pytest.raises(ConfigValidationError) as exc:
            parse_config(payload)
        assert exc.value.fields == ["scenarioVars[1]"]
        assert "normal needs params" in str(exc.value)

    def test_shape_errors_use_payload_paths(self, payload):
        payload["options"][1]["cost"] = "lots"
        payload["scenarioVars"][0]["appliesTo"] = "revenue"
        with pytest.raises(ConfigValidationError) as exc:
            parse_config(payload)
        assert sorted(exc.value.fields) == ["options[1].cost", "scenarioVars[0].appliesTo"]

    def test_unknown_keys_rejected(self, payload):
        payload["optimizer"] = "fast"
        with pytest.raises(ConfigValidationError, match="optimizer"):
            parse_config(payload)

    def test_semantic_validation_runs(self, payload):
        payload["runs"] = 0
        with pytest.raises(ConfigValidationError) as exc:
            parse_config(payload)
        assert exc.value.fields == ["runs"]
        assert parse_config(payload, validate=False).runs == 0

    def test_game_config(self, payload):
        payload["gameConfig"] = {
            "pUndercut": 0.3,
            "multipliers": {
                "Match": {"retMult": {"Conservative": 1, "Aggressive": 1.1},
                          "costMult": {"Conservative": 1, "Aggressive": 1.05}},
                "Undercut": {"retMult": {"Conservative": 0.9, "Aggressive": 0.8},
                             "costMult": {"Conservative": 1, "Aggressive": 1}},
            },
            "strategies": {"a": "Aggressive"},
        }
        game = parse_config(payload).game_config
        assert game.p_undercut == 0.3
        assert game.multipliers["Undercut"].ret_mult["Aggressive"] == 0.8
        assert game.strategies == {"a": "Aggressive"}


class TestLoadConfig:

    def test_from_file_and_string(self, payload, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        from_path = load_config(path)
        assert from_path == load_config(str(path))
        assert from_path == load_config(json.dumps(payload))
        assert from_path == load_config(payload)

    def test_bad_json(self):
        with pytest.raises(ConfigValidationError) as exc:
            load_config("{not json")
        assert exc.value.fields == ["payload"]

    def test_top_level_must_be_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="JSON object"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.json")
