"""
Unit tests for risk metrics, utility/CE and TCOR.

Tests cover:
- EV / VaR95 / CVaR95 on known arrays
- Capital clamp and RAROC sentinel
- Closed-form CE inverses for every utility mode
- Jensen consistency (CE <= EV for concave utilities)
- Utility domain violations reported as flags
- Exact TCOR decomposition
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from core.config import TcorParams, UtilityParams
from core.schema import Option, ResultFlag
from risk.metrics import compute_risk_metrics, raroc_band
from risk.tcor import compute_tcor
from risk.utility import UTILITY_CLASSES, evaluate_utility, make_utility


class TestRiskMetrics:

    def test_known_array(self):
        x = np.arange(1.0, 101.0)  # 1..100
        m = compute_risk_metrics(x)
        assert m.ev == pytest.approx(50.5)
        assert m.var95 == pytest.approx(np.percentile(x, 5))
        assert m.var95 == pytest.approx(5.95)
        assert m.cvar95 == pytest.approx(np.mean([1, 2, 3, 4, 5]))
        assert m.economic_capital == pytest.approx(50.5 - 5.95)
        assert m.raroc == pytest.approx(m.ev / m.economic_capital)
        assert m.flags == ()

    def test_cvar_not_above_var(self):
        x = np.random.default_rng(1).normal(-5, 30, size=5_000)
        m = compute_risk_metrics(x)
        assert m.cvar95 <= m.var95

    def test_constant_outcome_raroc_undefined(self):
        m = compute_risk_metrics(np.full(1_000, 0.1))
        assert m.economic_capital == 0.0
        assert m.raroc is None
        assert ResultFlag.RAROC_UNDEFINED in m.flags
        assert ResultFlag.CAPITAL_CLAMPED not in m.flags

    def test_var_above_ev_clamps_capital(self):
        # 96 runs at 10, 4 runs at -1000: VaR95 = 10 > EV
        x = np.array([10.0] * 96 + [-1000.0] * 4)
        m = compute_risk_metrics(x)
        assert m.var95 > m.ev
        assert m.economic_capital == 0.0
        assert m.raroc is None
        assert m.flags == (ResultFlag.CAPITAL_CLAMPED, ResultFlag.RAROC_UNDEFINED)

    def test_empty_outcomes_raise(self):
        with pytest.raises(ValueError, match="No outcomes"):
            compute_risk_metrics(np.array([]))

    @pytest.mark.parametrize("raroc,band", [
        (None, "undefined"), (-0.2, "red"), (0.049, "red"), (0.05, "amber"), (0.099, "amber"), (0.1, "green"),
    ])
    def test_raroc_band(self, raroc, band):
        assert raroc_band(raroc) == band


class TestUtility:

    @pytest.mark.parametrize("mode,a", [
        ("CARA", 0.8), ("Exponential", 0.8), ("Quadratic", 0.1), ("CRRA", 0.5), ("CRRA", 1.0),
        ("CRRA", 2.0), ("Power", 0.5), ("Power", 1.0),
    ])
    def test_inverse_recovers_outcome(self, mode, a):
        fn = make_utility(UtilityParams(mode=mode, a=a, outcome_scale=2.0))
        for x in (0.5, 1.0, 3.0):
            assert_allclose(fn.inverse(float(fn.u(np.array([x]))[0])), x, rtol=1e-10)

    @pytest.mark.parametrize("mode,a", [
        ("CARA", 0.5), ("Exponential", 0.5), ("Quadratic", 0.05), ("CRRA", 0.5), ("Power", 0.5),
    ])
    def test_jensen_ce_below_ev(self, mode, a):
        x = np.random.default_rng(4).uniform(1.0, 9.0, size=10_000)
        result = evaluate_utility(x, UtilityParams(mode=mode, a=a, outcome_scale=1.0))
        assert result.certainty_equivalent <= x.mean()
        assert result.flags == ()

    @pytest.mark.parametrize("mode", list(UTILITY_CLASSES))
    def test_risk_neutral_ce_equals_ev(self, mode):
        x = np.random.default_rng(5).uniform(1.0, 9.0, size=1_000)
        result = evaluate_utility(x, UtilityParams(mode=mode, a=0.0, outcome_scale=3.0))
        assert_allclose(result.certainty_equivalent, x.mean(), rtol=1e-9)

    def test_tenant_default_cara_is_near_linear(self):
        x = np.random.default_rng(6).normal(100, 20, size=10_000)
        result = evaluate_utility(x, UtilityParams())
        assert result.certainty_equivalent <= x.mean()
        assert_allclose(result.certainty_equivalent, x.mean(), rtol=1e-6)

    @pytest.mark.parametrize("mode", ["CRRA", "Power"])
    def test_non_positive_outcomes_flagged(self, mode):
        x = np.array([-1.0, 2.0, 3.0])
        result = evaluate_utility(x, UtilityParams(mode=mode, a=0.5))
        assert result.expected_utility is None
        assert result.certainty_equivalent is None
        assert result.flags == (ResultFlag.UTILITY_DOMAIN,)

    def test_overflow_flagged_not_nan(self):
        x = np.array([-1e6, 1.0])
        result = evaluate_utility(x, UtilityParams(mode="Exponential", a=10.0, outcome_scale=1.0))
        assert result.certainty_equivalent is None
        assert ResultFlag.UTILITY_DOMAIN in result.flags

    def test_unknown_mode(self):
        with pytest.raises(KeyError, match="Unknown utility mode"):
            make_utility(UtilityParams(mode="Linear"))


class TestTcor:

    def test_components_and_total(self):
        option = Option(id="o", label="O", cost=200.0, mitigation_cost=7.5)
        t = compute_tcor(-12.0, 40.0, option, TcorParams(insurance_rate=0.01, contingency_on_cap_percent=0.15))
        assert t.expected_loss == 12.0
        assert t.insurance == pytest.approx(2.0)
        assert t.contingency == pytest.approx(6.0)
        assert t.mitigation == 7.5
        assert t.total == t.expected_loss + t.insurance + t.contingency + t.mitigation

    def test_positive_ev_has_no_expected_loss(self):
        t = compute_tcor(5.0, 0.0, Option(id="o", label="O"), TcorParams())
        assert t.expected_loss == 0.0
        assert t.mitigation == 0.0
        assert t.total == 0.0
