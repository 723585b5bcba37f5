"""Total cost of risk: expected loss + insurance + contingency + mitigation."""

from __future__ import annotations

from core.config import TcorParams
from core.results import TcorBreakdown
from core.schema import Option


def compute_tcor(
    ev: float,
    economic_capital: float,
    option: Option,
    params: TcorParams,
) -> TcorBreakdown:
    """
    Parameters
    ----------
    ev : float
        Expected outcome; only its negative part counts as expected loss
    economic_capital : float
        Non-negative capital from the risk metrics
    option : Option
        Supplies the cost (insurance base) and mitigation cost
    params : TcorParams
        Insurance rate on cost and contingency share of capital
    """
    expected_loss = max(-float(ev), 0.0)
    insurance = float(option.cost) * params.insurance_rate
    contingency = float(economic_capital) * params.contingency_on_cap_percent
    mitigation = float(option.mitigation_cost or 0.0)
    return TcorBreakdown(
        expected_loss=expected_loss,
        insurance=insurance,
        contingency=contingency,
        mitigation=mitigation,
        total=expected_loss + insurance + contingency + mitigation,
    )
