"""Survey work assignments and normative cost estimates."""
from __future__ import annotations

from .api import (
    calculate_estimate,
    generate_assignment,
    get_coefficients,
    get_table,
    is_table_available,
    price_assignment,
)
from .errors import (
    CoefficientSetNotFoundError,
    PriceNotFoundError,
    RuleEvaluationError,
    SurveyEstimateError,
    TableIntegrityError,
    TableNotFoundError,
    ValidationError,
)
from .norms import NormRegistry, RegistryHandle
from .project import ProjectDescription

__version__ = "0.1.0"

__all__ = [
    "CoefficientSetNotFoundError",
    "NormRegistry",
    "PriceNotFoundError",
    "ProjectDescription",
    "RegistryHandle",
    "RuleEvaluationError",
    "SurveyEstimateError",
    "TableIntegrityError",
    "TableNotFoundError",
    "ValidationError",
    "calculate_estimate",
    "generate_assignment",
    "get_coefficients",
    "get_table",
    "is_table_available",
    "price_assignment",
]
