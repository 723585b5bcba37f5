"""
Load a SimulationConfig from a JSON payload (file, string or mapping).

The payload uses the camelCase names of the calling application:

    {
      "seed": 42, "runs": 10000, "decisionId": "dec-1", "horizonMonths": 12,
      "scenarioVars": [
        {"id": "demand", "name": "Demand", "appliesTo": "return",
         "dist": "normal", "params": {"mean": 100, "stdev": 20}, "weight": 1}
      ],
      "options": [{"id": "a", "label": "Option A", "cost": 50, "expectedReturn": 60}],
      "utilityParams": {"mode": "CARA", "a": 0.000005, "scale": 100000},
      "tcorParams": {"insuranceRate": 0.01, "contingencyOnCapPercent": 0.15},
      "dependenceConfig": {"varAId": "demand", "varBId": "cost", "targetRho": 0.5},
      "bayesianOverride": {"targetVariableId": "demand", "posteriorMean": 95, "posteriorStdev": 10}
    }

Shape errors from pydantic are re-raised as ConfigValidationError so callers
handle one error type for every bad input.
"""

from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from core.config import (
    BayesianOverride,
    DependenceConfig,
    GameConfig,
    GameMultipliers,
    SimulationConfig,
    TcorParams,
    UtilityParams,
)
from core.errors import ConfigValidationError, FieldError
from core.schema import DISTRIBUTION_KINDS, Option, ScenarioVariable

from .validators import ensure_valid


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class ScenarioVariablePayload(_Payload):
    id: str = Field(min_length=1)
    name: Optional[str] = None
    applies_to: Literal["return", "cost"] = Field(alias="appliesTo")
    dist: Literal["normal", "lognormal", "triangular", "uniform"]
    params: Dict[str, float]
    weight: float = 1.0
    correlation_group: Optional[str] = Field(default=None, alias="correlationGroup")

    @model_validator(mode="after")
    def _check_param_names(self):
        expected = {f.name for f in dataclasses.fields(DISTRIBUTION_KINDS[self.dist])}
        given = set(self.params)
        if given != expected:
            raise ValueError(
                f"{self.dist} needs params {sorted(expected)}, got {sorted(given)}"
            )
        return self

    def to_domain(self) -> ScenarioVariable:
        return ScenarioVariable(
            id=self.id,
            name=self.name,
            applies_to=self.applies_to,
            dist=DISTRIBUTION_KINDS[self.dist](**self.params),
            weight=self.weight,
            correlation_group=self.correlation_group,
        )


class OptionPayload(_Payload):
    id: str = Field(min_length=1)
    label: str
    cost: float = 0.0
    expected_return: float = Field(default=0.0, alias="expectedReturn")
    mitigation_cost: Optional[float] = Field(default=None, alias="mitigationCost")
    horizon_months: Optional[float] = Field(default=None, alias="horizonMonths")

    def to_domain(self) -> Option:
        return Option(
            id=self.id,
            label=self.label,
            cost=self.cost,
            expected_return=self.expected_return,
            mitigation_cost=self.mitigation_cost,
            horizon_months=self.horizon_months,
        )


class UtilityParamsPayload(_Payload):
    mode: Literal["CARA", "CRRA", "Exponential", "Quadratic", "Power"] = "CARA"
    a: float = 0.000005
    scale: float = 100000.0
    use_for_recommendation: bool = Field(default=False, alias="useForRecommendation")

    def to_domain(self) -> UtilityParams:
        return UtilityParams(
            mode=self.mode,
            a=self.a,
            outcome_scale=self.scale,
            use_for_recommendation=self.use_for_recommendation,
        )


class TcorParamsPayload(_Payload):
    insurance_rate: float = Field(default=0.01, alias="insuranceRate")
    contingency_on_cap_percent: float = Field(default=0.15, alias="contingencyOnCapPercent")

    def to_domain(self) -> TcorParams:
        return TcorParams(
            insurance_rate=self.insurance_rate,
            contingency_on_cap_percent=self.contingency_on_cap_percent,
        )


class DependencePayload(_Payload):
    """Either a pair (varAId, varBId, targetRho) or a full matrix (variableIds, matrix)."""
    var_a_id: Optional[str] = Field(default=None, alias="varAId")
    var_b_id: Optional[str] = Field(default=None, alias="varBId")
    target_rho: Optional[float] = Field(default=None, alias="targetRho")
    variable_ids: Optional[List[str]] = Field(default=None, alias="variableIds")
    matrix: Optional[List[List[float]]] = None
    use_nearest_psd: bool = Field(default=True, alias="useNearestPsd")

    @model_validator(mode="after")
    def _one_form(self):
        pair = (self.var_a_id, self.var_b_id, self.target_rho)
        full = (self.variable_ids, self.matrix)
        has_pair = all(v is not None for v in pair)
        has_full = all(v is not None for v in full)
        if has_pair == has_full:
            raise ValueError(
                "give either varAId/varBId/targetRho or variableIds/matrix"
            )
        return self

    def to_domain(self) -> DependenceConfig:
        if self.matrix is None:
            dep = DependenceConfig.pairwise(self.var_a_id, self.var_b_id, self.target_rho)
            return dataclasses.replace(dep, use_nearest_psd=self.use_nearest_psd)
        return DependenceConfig.from_array(
            self.variable_ids, self.matrix, use_nearest_psd=self.use_nearest_psd
        )


class BayesianOverridePayload(_Payload):
    target_variable_id: str = Field(alias="targetVariableId")
    posterior_mean: float = Field(alias="posteriorMean")
    posterior_stdev: float = Field(alias="posteriorStdev")

    def to_domain(self) -> BayesianOverride:
        return BayesianOverride(
            target_variable_id=self.target_variable_id,
            posterior_mean=self.posterior_mean,
            posterior_stdev=self.posterior_stdev,
        )


class GameMultipliersPayload(_Payload):
    ret_mult: Dict[str, float] = Field(alias="retMult")
    cost_mult: Dict[str, float] = Field(alias="costMult")


class GameConfigPayload(_Payload):
    p_undercut: float = Field(alias="pUndercut")
    multipliers: Dict[str, GameMultipliersPayload]
    strategies: Dict[str, str] = Field(default_factory=dict)

    def to_domain(self) -> GameConfig:
        return GameConfig(
            p_undercut=self.p_undercut,
            multipliers={
                move: GameMultipliers(ret_mult=dict(m.ret_mult), cost_mult=dict(m.cost_mult))
                for move, m in self.multipliers.items()
            },
            strategies=dict(self.strategies),
        )


class SimulationConfigPayload(_Payload):
    seed: int
    runs: int
    scenario_vars: List[ScenarioVariablePayload] = Field(alias="scenarioVars")
    options: List[OptionPayload]
    utility_params: UtilityParamsPayload = Field(
        default_factory=UtilityParamsPayload, alias="utilityParams"
    )
    tcor_params: TcorParamsPayload = Field(default_factory=TcorParamsPayload, alias="tcorParams")
    horizon_months: float = Field(default=12.0, alias="horizonMonths")
    dependence_config: Optional[DependencePayload] = Field(default=None, alias="dependenceConfig")
    bayesian_override: Optional[BayesianOverridePayload] = Field(
        default=None, alias="bayesianOverride"
    )
    game_config: Optional[GameConfigPayload] = Field(default=None, alias="gameConfig")
    decision_id: Optional[str] = Field(default=None, alias="decisionId")

    def to_domain(self) -> SimulationConfig:
        return SimulationConfig(
            seed=self.seed,
            runs=self.runs,
            scenario_vars=tuple(v.to_domain() for v in self.scenario_vars),
            options=tuple(o.to_domain() for o in self.options),
            utility_params=self.utility_params.to_domain(),
            tcor_params=self.tcor_params.to_domain(),
            horizon_months=self.horizon_months,
            dependence_config=self.dependence_config.to_domain() if self.dependence_config else None,
            bayesian_override=self.bayesian_override.to_domain() if self.bayesian_override else None,
            game_config=self.game_config.to_domain() if self.game_config else None,
            decision_id=self.decision_id,
        )


def _loc_to_path(loc) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path or "payload"


def translate_validation_error(exc: ValidationError) -> ConfigValidationError:
    return ConfigValidationError([
        FieldError(_loc_to_path(err["loc"]), err["msg"]) for err in exc.errors()
    ])


def parse_config(data: Mapping[str, Any], *, validate: bool = True) -> SimulationConfig:
    """
    Build a SimulationConfig from a payload mapping.

    With ``validate`` the semantic checks (distribution parameters, ids,
    matrix shape, ...) run too, so a returned config is ready to simulate.
    """
    try:
        payload = SimulationConfigPayload.model_validate(data)
    except ValidationError as exc:
        raise translate_validation_error(exc) from exc
    config = payload.to_domain()
    if validate:
        ensure_valid(config)
    return config


def load_config(source: Union[str, Path, Mapping[str, Any]], *, validate: bool = True) -> SimulationConfig:
    """
    Load a config from a mapping, a JSON string, or a path to a JSON file.

    Raises
    ------
    ConfigValidationError
        Malformed JSON, wrong shape, or (with ``validate``) unsimulatable values
    """
    if isinstance(source, Mapping):
        return parse_config(source, validate=validate)
    if isinstance(source, Path) or not str(source).lstrip().startswith("{"):
        text = Path(source).read_text(encoding="utf-8")
    else:
        text = str(source)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigValidationError([FieldError("payload", f"invalid JSON: {exc}")]) from exc
    if not isinstance(data, Mapping):
        raise ConfigValidationError([FieldError("payload", "top level must be a JSON object")])
    return parse_config(data, validate=validate)
