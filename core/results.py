"""
Per-option simulation output.

A SimulationResult is derived, never edited: it is always recomputed from a
SimulationConfig. Degeneracies travel as ResultFlag values instead of NaN.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from .schema import ResultFlag


@dataclass(frozen=True)
class TcorBreakdown:
    expected_loss: float
    insurance: float
    contingency: float
    mitigation: float
    total: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "expectedLoss": self.expected_loss,
            "insurance": self.insurance,
            "contingency": self.contingency,
            "mitigation": self.mitigation,
        }


@dataclass(frozen=True)
class SimulationResult:
    """Risk/return metrics for one option."""
    option_id: str
    option_label: str
    ev: float
    var95: float
    cvar95: float
    economic_capital: float
    raroc: Optional[float]                 # None when economic capital is zero
    expected_utility: Optional[float]      # None when outcomes leave the utility domain
    certainty_equivalent: Optional[float]
    tcor: float
    tcor_components: TcorBreakdown
    horizon_months: float
    flags: Tuple[ResultFlag, ...] = ()
    outcomes: np.ndarray = field(default_factory=lambda: np.empty(0), repr=False, compare=False)

    def has_flag(self, flag: ResultFlag) -> bool:
        return flag in self.flags

    def to_dict(self) -> Dict:
        """JSON-safe camelCase mapping (outcome draws are not included)."""
        return {
            "optionId": self.option_id,
            "optionLabel": self.option_label,
            "ev": self.ev,
            "var95": self.var95,
            "cvar95": self.cvar95,
            "economicCapital": self.economic_capital,
            "raroc": self.raroc,
            "expectedUtility": self.expected_utility,
            "ce": self.certainty_equivalent,
            "tcor": self.tcor,
            "tcorComponents": self.tcor_components.to_dict(),
            "horizonMonths": self.horizon_months,
            "flags": [f.value for f in self.flags],
        }

    @classmethod
    def from_dict(cls, data: Dict, option_id: Optional[str] = None) -> "SimulationResult":
        comps = data.get("tcorComponents") or {}
        breakdown = TcorBreakdown(
            expected_loss=float(comps.get("expectedLoss", 0.0)),
            insurance=float(comps.get("insurance", 0.0)),
            contingency=float(comps.get("contingency", 0.0)),
            mitigation=float(comps.get("mitigation", 0.0)),
            total=float(data.get("tcor", 0.0)),
        )
        return cls(
            option_id=data.get("optionId", option_id),
            option_label=data["optionLabel"],
            ev=float(data["ev"]),
            var95=float(data["var95"]),
            cvar95=float(data["cvar95"]),
            economic_capital=float(data["economicCapital"]),
            raroc=data.get("raroc"),
            expected_utility=data.get("expectedUtility"),
            certainty_equivalent=data.get("ce"),
            tcor=breakdown.total,
            tcor_components=breakdown,
            horizon_months=float(data.get("horizonMonths", 12.0)),
            flags=tuple(ResultFlag(f) for f in data.get("flags", ())),
        )


def results_to_dataframe(results) -> pd.DataFrame:
    """One row per option, metric columns in snake_case."""
    rows = []
    for r in results:
        rows.append({
            "option_id": r.option_id,
            "option": r.option_label,
            "ev": r.ev,
            "var95": r.var95,
            "cvar95": r.cvar95,
            "economic_capital": r.economic_capital,
            "raroc": r.raroc,
            "expected_utility": r.expected_utility,
            "ce": r.certainty_equivalent,
            "tcor": r.tcor,
            "horizon_months": r.horizon_months,
            "flags": ",".join(f.value for f in r.flags),
        })
    return pd.DataFrame(rows)
