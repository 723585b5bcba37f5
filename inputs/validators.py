"""
Config validation — catches bad inputs before a single draw is made.

Catches problems early:
- Malformed distribution parameters (negative stdev, mode outside [min, max], ...)
- Non-positive runs, negative seeds
- Dangling references (override/dependence/game pointing at unknown ids)
- Target correlation matrices that are not square, symmetric or unit-diagonal
- Utility/TCOR parameters outside their domain
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

import numpy as np

from core.config import SNAPSHOT_MAX_RUNS, SNAPSHOT_MIN_RUNS, SimulationConfig
from core.errors import ConfigValidationError, FieldError
from distributions.correlation import is_positive_semidefinite, spearman_to_pearson

UTILITY_MODES = ("CARA", "CRRA", "Exponential", "Quadratic", "Power")
COMPETITOR_MOVES = ("Match", "Undercut")
OUR_STRATEGIES = ("Conservative", "Aggressive")


@dataclass
class ValidationResult:
    """Collects all validation warnings/errors for a config."""
    errors: List[FieldError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def error(self, field_path: str, message: str) -> None:
        self.errors.append(FieldError(field_path, message))

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ConfigValidationError(self.errors)

    def summary(self) -> str:
        lines = []
        if self.errors:
            lines.append(f"ERRORS ({len(self.errors)}):")
            for e in self.errors:
                lines.append(f"  ✗ {e}")
        if self.warnings:
            lines.append(f"WARNINGS ({len(self.warnings)}):")
            for w in self.warnings:
                lines.append(f"  ⚠ {w}")
        if not lines:
            lines.append("✓ All checks passed.")
        return "\n".join(lines)


def _finite(x) -> bool:
    try:
        return bool(np.isfinite(float(x)))
    except (TypeError, ValueError):
        return False


def validate_config(config: SimulationConfig) -> ValidationResult:
    """
    Run all validation checks on a SimulationConfig.
    Returns a ValidationResult with errors (blocking) and warnings (informational).
    """
    result = ValidationResult()

    # --- Run controls ---
    if isinstance(config.seed, bool) or not isinstance(config.seed, (int, np.integer)):
        result.error("seed", f"must be an integer, got {config.seed!r}")
    elif config.seed < 0:
        result.error("seed", f"must be >= 0, got {config.seed}")

    if isinstance(config.runs, bool) or not isinstance(config.runs, (int, np.integer)):
        result.error("runs", f"must be a positive integer, got {config.runs!r}")
    elif config.runs <= 0:
        result.error("runs", f"must be a positive integer, got {config.runs}")
    else:
        if config.runs < SNAPSHOT_MIN_RUNS:
            result.warnings.append(
                f"runs={config.runs} is small; tail metrics (VaR95/CVaR95) will be unstable."
            )
        if not (SNAPSHOT_MIN_RUNS <= config.runs <= SNAPSHOT_MAX_RUNS):
            result.warnings.append(
                f"runs={config.runs} is outside [{SNAPSHOT_MIN_RUNS}, {SNAPSHOT_MAX_RUNS}]; "
                "the run can be simulated but not stored as a snapshot."
            )

    if not _finite(config.horizon_months) or config.horizon_months <= 0:
        result.error("horizon_months", f"must be > 0, got {config.horizon_months}")

    # --- Options ---
    if not config.options:
        result.error("options", "at least one option is required")
    option_ids = [o.id for o in config.options]
    if len(set(option_ids)) != len(option_ids):
        result.error("options", "option ids must be unique")
    for i, opt in enumerate(config.options):
        where = f"options[{i}]"
        for name in ("cost", "expected_return"):
            if not _finite(getattr(opt, name)):
                result.error(f"{where}.{name}", "must be finite")
        if opt.mitigation_cost is not None and (
            not _finite(opt.mitigation_cost) or opt.mitigation_cost < 0
        ):
            result.error(f"{where}.mitigation_cost", "must be a finite value >= 0")
        if opt.horizon_months is not None and (
            not _finite(opt.horizon_months) or opt.horizon_months <= 0
        ):
            result.error(f"{where}.horizon_months", "must be > 0")

    # --- Scenario variables ---
    var_ids = [v.id for v in config.scenario_vars]
    if len(set(var_ids)) != len(var_ids):
        result.error("scenario_vars", "variable ids must be unique")
    for i, var in enumerate(config.scenario_vars):
        where = f"scenario_vars[{i}]"
        if var.applies_to not in ("return", "cost"):
            result.error(f"{where}.applies_to", f"must be 'return' or 'cost', got {var.applies_to!r}")
        if not _finite(var.weight):
            result.error(f"{where}.weight", "must be finite")
        check = getattr(var.dist, "check", None)
        if check is None:
            result.error(f"{where}.dist", f"unsupported distribution {type(var.dist).__name__}")
            continue
        for param, message in check():
            result.error(f"{where}.dist.{param}", message)

    # --- Bayesian override ---
    bo = config.bayesian_override
    if bo is not None:
        if bo.target_variable_id not in var_ids:
            result.error(
                "bayesian_override.target_variable_id",
                f"unknown variable '{bo.target_variable_id}'",
            )
        if not _finite(bo.posterior_mean):
            result.error("bayesian_override.posterior_mean", "must be finite")
        if not _finite(bo.posterior_stdev) or bo.posterior_stdev < 0:
            result.error("bayesian_override.posterior_stdev", "must be a finite value >= 0")
        elif bo.target_variable_id in var_ids:
            target = config.variable(bo.target_variable_id)
            if target.dist.kind == "lognormal" and bo.posterior_mean <= 0:
                result.error(
                    "bayesian_override.posterior_mean",
                    "lognormal posterior mean must be > 0",
                )

    # --- Dependence ---
    dep = config.dependence_config
    if dep is not None:
        _validate_dependence(dep, var_ids, result)

    # --- Utility ---
    up = config.utility_params
    if up.mode not in UTILITY_MODES:
        result.error("utility_params.mode", f"must be one of {UTILITY_MODES}, got {up.mode!r}")
    if not _finite(up.a) or up.a < 0:
        result.error("utility_params.a", f"must be a finite value >= 0, got {up.a}")
    if not _finite(up.outcome_scale) or up.outcome_scale <= 0:
        result.error("utility_params.outcome_scale", f"must be > 0, got {up.outcome_scale}")
    if up.mode == "Power" and _finite(up.a) and up.a > 1:
        result.warnings.append(
            "Power utility with a > 1 is decreasing in the outcome; CE ranking will be inverted."
        )

    # --- TCOR ---
    tp = config.tcor_params
    for name in ("insurance_rate", "contingency_on_cap_percent"):
        value = getattr(tp, name)
        if not _finite(value) or value < 0:
            result.error(f"tcor_params.{name}", f"must be a finite value >= 0, got {value}")

    # --- Game interaction ---
    game = config.game_config
    if game is not None:
        if not _finite(game.p_undercut) or not (0.0 <= game.p_undercut <= 1.0):
            result.error("game_config.p_undercut", "must be within [0, 1]")
        for move in COMPETITOR_MOVES:
            mult = game.multipliers.get(move)
            if mult is None:
                result.error(f"game_config.multipliers.{move}", "missing")
                continue
            for strategy in OUR_STRATEGIES:
                for table in ("ret_mult", "cost_mult"):
                    value = getattr(mult, table).get(strategy)
                    if value is None or not _finite(value):
                        result.error(
                            f"game_config.multipliers.{move}.{table}.{strategy}",
                            "must be a finite number",
                        )
        for option_id, strategy in game.strategies.items():
            if option_id not in option_ids:
                result.error(f"game_config.strategies.{option_id}", "unknown option")
            if strategy not in OUR_STRATEGIES:
                result.error(
                    f"game_config.strategies.{option_id}",
                    f"must be one of {OUR_STRATEGIES}, got {strategy!r}",
                )

    return result


def _validate_dependence(dep, var_ids: List[str], result: ValidationResult) -> None:
    n_before = len(result.errors)
    ids = list(dep.variable_ids)
    if len(ids) < 2:
        result.error("dependence_config.variable_ids", "needs at least two variables")
    if len(set(ids)) != len(ids):
        result.error("dependence_config.variable_ids", "variable ids must be unique")
    for vid in ids:
        if vid not in var_ids:
            result.error("dependence_config.variable_ids", f"unknown variable '{vid}'")

    try:
        m = dep.as_array()
    except (TypeError, ValueError):
        result.error("dependence_config.matrix", "must be a numeric k×k matrix")
        return
    k = len(ids)
    if m.shape != (k, k):
        result.error("dependence_config.matrix", f"must be {k}×{k}, got shape {m.shape}")
        return
    if not np.all(np.isfinite(m)):
        result.error("dependence_config.matrix", "entries must be finite")
        return
    if not np.allclose(m, m.T, atol=1e-6):
        result.error("dependence_config.matrix", "must be symmetric")
    if not np.allclose(np.diag(m), 1.0):
        result.error("dependence_config.matrix", "diagonal must be 1")
    if np.any(np.abs(m) > 1.0):
        result.error("dependence_config.matrix", "entries must lie within [-1, 1]")
    if (
        len(result.errors) == n_before
        and not dep.use_nearest_psd
        and not is_positive_semidefinite(spearman_to_pearson(m))
    ):
        result.error(
            "dependence_config.matrix",
            "target is not positive semi-definite and use_nearest_psd is off",
        )


def ensure_valid(config: SimulationConfig) -> ValidationResult:
    """Validate and raise ConfigValidationError on any blocking error."""
    result = validate_config(config)
    result.raise_for_errors()
    return result
