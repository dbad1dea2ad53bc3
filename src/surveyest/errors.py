"""Exception taxonomy shared by the registry, pricing and rule engines."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class SurveyEstimateError(Exception):
    """Base class for every error raised by :mod:`surveyest`."""


class ValidationError(SurveyEstimateError):
    """Missing or out-of-range input, raised before any evaluation starts."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class TableNotFoundError(SurveyEstimateError):
    def __init__(self, section: str, code: str, version: str, reason: str = "") -> None:
        message = f"Price table {code} (section {section}) is not available for norm version {version}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.section = section
        self.code = code
        self.version = version


class CoefficientSetNotFoundError(SurveyEstimateError):
    def __init__(self, section: str, version: str, reason: str = "") -> None:
        message = f"Coefficient set for section {section} is not available for norm version {version}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.section = section
        self.version = version


class TableIntegrityError(SurveyEstimateError):
    """A reference table violates its criteria schema (e.g. duplicate criteria rows)."""

    def __init__(self, key: tuple, details: str) -> None:
        super().__init__(f"Reference data {'/'.join(key)} failed integrity checks: {details}")
        self.key = key
        self.details = details


class PriceNotFoundError(SurveyEstimateError):
    """No single table row matched the requested criteria."""

    def __init__(self, criteria: Mapping[str, Any], table_code: str = "", reason: str = "no matching row") -> None:
        self.criteria: Dict[str, Any] = dict(criteria)
        self.table_code = table_code
        self.reason = reason
        where = f" in table {table_code}" if table_code else ""
        super().__init__(f"Price not found{where} ({reason}) for criteria {self.criteria}")


class RuleEvaluationError(SurveyEstimateError):
    """Unexpected failure while evaluating an instruction block."""

    def __init__(self, block_id: str, input_snapshot: Mapping[str, Any], cause: BaseException | None = None) -> None:
        self.block_id = block_id
        self.input_snapshot: Dict[str, Any] = dict(input_snapshot)
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Instruction block {block_id} failed{detail}")


__all__ = [
    "SurveyEstimateError",
    "ValidationError",
    "TableNotFoundError",
    "CoefficientSetNotFoundError",
    "TableIntegrityError",
    "PriceNotFoundError",
    "RuleEvaluationError",
]
