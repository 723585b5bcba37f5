"""
Risk outputs — metrics, utility/CE, total cost of risk, recommendation and export.
"""

from .metrics import RiskMetrics, compute_risk_metrics, raroc_band
from .utility import UtilityResult, evaluate_utility, make_utility
from .tcor import compute_tcor
from .decisions import generate_decision_report
from .export import metrics_to_dataframe, run_to_dataframe, write_metrics_csv

__all__ = [
    "RiskMetrics",
    "compute_risk_metrics",
    "raroc_band",
    "UtilityResult",
    "evaluate_utility",
    "make_utility",
    "compute_tcor",
    "generate_decision_report",
    "metrics_to_dataframe",
    "run_to_dataframe",
    "write_metrics_csv",
]
