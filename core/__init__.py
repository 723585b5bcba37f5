"""
Core package — scenario schema, simulation configuration, result types and
shared numeric helpers. No business logic lives here.
"""

from .schema import (
    METRICS_CSV_COLUMNS,
    LognormalDist,
    NormalDist,
    Option,
    ResultFlag,
    ScenarioVariable,
    TriangularDist,
    UniformDist,
)
from .config import (
    BayesianOverride,
    DependenceConfig,
    GameConfig,
    GameMultipliers,
    SimulationConfig,
    TcorParams,
    UtilityParams,
)
from .errors import ConfigValidationError, FieldError
from .results import SimulationResult, TcorBreakdown
from .utils import frobenius_distance, spearman_matrix, substream

__all__ = [
    "METRICS_CSV_COLUMNS",
    "LognormalDist",
    "NormalDist",
    "Option",
    "ResultFlag",
    "ScenarioVariable",
    "TriangularDist",
    "UniformDist",
    "BayesianOverride",
    "DependenceConfig",
    "GameConfig",
    "GameMultipliers",
    "SimulationConfig",
    "TcorParams",
    "UtilityParams",
    "ConfigValidationError",
    "FieldError",
    "SimulationResult",
    "TcorBreakdown",
    "frobenius_distance",
    "spearman_matrix",
    "substream",
]
