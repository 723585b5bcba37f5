"""
Inputs — config payload loading and validation.
"""

from core.errors import ConfigValidationError, FieldError

from .validators import ValidationResult, ensure_valid, validate_config
from .loader import load_config, parse_config

__all__ = [
    "ConfigValidationError",
    "FieldError",
    "ValidationResult",
    "ensure_valid",
    "validate_config",
    "load_config",
    "parse_config",
]
