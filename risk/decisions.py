"""
Decision support — rank options and turn metrics into flags a board can act on.

  Q1: "Which option wins?"          → rank by RAROC (or CE when the tenant prefers utility)
  Q2: "Is the return worth the risk?" → RAROC traffic-light band
  Q3: "What can go badly wrong?"    → negative EV, loss-making tail, degenerate metrics
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import pandas as pd

from core.config import UtilityParams
from core.results import SimulationResult
from core.schema import ResultFlag

from .metrics import raroc_band


@dataclass
class OptionAssessment:
    option_id: str
    option_label: str
    rank: int
    score: Optional[float]
    band: str
    flags: List[str] = field(default_factory=list)


@dataclass
class DecisionReport:
    """Structured recommendation output."""
    basis: str                       # "RAROC" or "CE"
    recommended_option_id: Optional[str]
    recommended_label: Optional[str]
    assessments: List[OptionAssessment]

    def to_dataframe(self) -> pd.DataFrame:
        rows = []
        for a in self.assessments:
            rows.append({
                "Rank": a.rank,
                "Option": a.option_label,
                self.basis: "N/A" if a.score is None else (
                    f"{a.score:.2%}" if self.basis == "RAROC" else f"{a.score:,.2f}"
                ),
                "Band": a.band,
                "Flags": " | ".join(a.flags),
            })
        return pd.DataFrame(rows)


def recommendation_basis(utility_params: UtilityParams) -> str:
    return "CE" if utility_params.use_for_recommendation else "RAROC"


def _option_flags(r: SimulationResult) -> List[str]:
    flags = []
    if r.ev < 0:
        flags.append("NEGATIVE_EV: expected outcome is a loss")
    if r.var95 < 0:
        flags.append(f"LOSS_TAIL: 1-in-20 outcome loses {-r.var95:,.2f}")
    if r.has_flag(ResultFlag.CAPITAL_CLAMPED):
        flags.append("CAPITAL_CLAMPED: VaR95 above EV, capital set to 0")
    if r.has_flag(ResultFlag.RAROC_UNDEFINED):
        flags.append("RAROC_UNDEFINED: zero economic capital")
    if r.has_flag(ResultFlag.UTILITY_DOMAIN):
        flags.append("UTILITY_DOMAIN: outcomes outside the utility's domain, CE unavailable")
    return flags


def generate_decision_report(
    results: Sequence[SimulationResult],
    utility_params: UtilityParams,
) -> DecisionReport:
    """
    Rank options by the configured basis; undefined scores rank last and
    ties keep the order the options were supplied in.
    """
    if not results:
        raise ValueError("No results to generate report from.")

    basis = recommendation_basis(utility_params)

    def score(r: SimulationResult) -> Optional[float]:
        return r.certainty_equivalent if basis == "CE" else r.raroc

    ordered = sorted(
        results,
        key=lambda r: (score(r) is None, -(score(r) or 0.0)),
    )
    assessments = [
        OptionAssessment(
            option_id=r.option_id,
            option_label=r.option_label,
            rank=i + 1,
            score=score(r),
            band=raroc_band(r.raroc),
            flags=_option_flags(r),
        )
        for i, r in enumerate(ordered)
    ]
    best = assessments[0] if assessments[0].score is not None else None
    return DecisionReport(
        basis=basis,
        recommended_option_id=best.option_id if best else None,
        recommended_label=best.option_label if best else None,
        assessments=assessments,
    )
