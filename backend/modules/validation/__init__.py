"""
modules/validation package: request guards before any optimisation work.
"""
from modules.validation.request_validator import (
    ValidationResult,
    validate_session_id,
    validate_options,
    validate_spots,
    validate_request,
    require_valid,
    point_from_dict,
)

__all__ = [
    "ValidationResult",
    "validate_session_id",
    "validate_options",
    "validate_spots",
    "validate_request",
    "require_valid",
    "point_from_dict",
]
