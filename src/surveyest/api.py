from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Union

from .assignment import aggregate
from .calculators import CALCULATORS, Clock, base_amount, condition_factors, timestamp
from .errors import ValidationError
from .models import (
    CalculationMetadata,
    CalculationResult,
    CoefficientSet,
    EstimateLineItem,
    PriceTable,
    PricingConditions,
    TechnicalAssignment,
)
from .norms.registry import NormRegistry, RegistryHandle
from .pricing import BASE_FACTOR, build_result, compose_coefficients, find_row, make_line_item
from .project import ProjectDescription
from .rules.catalog import DEFAULT_RULE_SET, get_rule_set
from .rules.engine import EngineOptions, RuleEngine, validate_input

LOGGER = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def default_registry() -> NormRegistry:
    """Registry over the packaged data, shared by calls that do not pass one."""

    return NormRegistry()


def _handle(version: Optional[str], registry: Optional[NormRegistry]) -> RegistryHandle:
    return (registry or default_registry()).handle(version)


def generate_assignment(
    project: Union[ProjectDescription, Mapping[str, Any]],
    rule_set_version: Optional[str] = None,
    options: Optional[EngineOptions] = None,
) -> TechnicalAssignment:
    """Evaluate the rule set against ``project`` and aggregate the resulting works.

    Raises
    ------
    ValidationError
        The project description is incomplete or malformed.
    RuleEvaluationError
        A block condition or work generator failed.
    """

    version = rule_set_version or DEFAULT_RULE_SET
    engine = RuleEngine(get_rule_set(version), options)
    description = validate_input(project)
    result = engine.evaluate(description)
    warnings = list(result.warnings) + list(result.conflicts)
    return aggregate(
        result.work_items,
        project_name=description.project_name,
        warnings=warnings,
        recommendations=result.recommendations,
        applied_blocks=result.applied_blocks,
        rule_set_version=version,
        conditions=project_conditions(description),
    )


def calculate_estimate(
    work: object,
    version: Optional[str] = None,
    registry: Optional[NormRegistry] = None,
    clock: Optional[Clock] = None,
) -> CalculationResult:
    """Price one work descriptor against a single resolved norm version."""

    calculator = CALCULATORS.get(type(work))
    if calculator is None:
        raise ValidationError(f"Unsupported work descriptor: {type(work).__name__}", "work")
    handle = _handle(version, registry)
    result = calculator(work, handle, clock)
    LOGGER.debug("Estimated %s: total %.2f (norm version %s)", type(work).__name__, result.total_cost, handle.version)
    return result


def project_conditions(project: ProjectDescription) -> PricingConditions:
    return PricingConditions(
        season=project.season,
        seismicity=project.seismicity,
        special_soils=project.special_soils,
        hazards=project.hazards,
        aggressive_groundwater=project.groundwater_aggressive,
    )


def _merge_factors(applied: Dict[str, float], per_factor: Mapping[str, float], work_id: str) -> None:
    for name, value in per_factor.items():
        if name not in applied or applied[name] == value:
            applied[name] = value
        else:
            applied[f"{name}[{work_id}]"] = value


def price_assignment(
    assignment: TechnicalAssignment,
    version: Optional[str] = None,
    registry: Optional[NormRegistry] = None,
    clock: Optional[Clock] = None,
    conditions: Optional[PricingConditions] = None,
) -> CalculationResult:
    """
    Price the selected works of ``assignment`` that carry a price reference.

    Each priced work contributes one line; its quantity is the reference
    quantity when given, otherwise the work quantity.  The line coefficient
    combines the project conditions (``conditions``, or those recorded on the
    assignment) resolved against the section's coefficient set with the
    reference's own factors.  Works without a reference are skipped and logged.

    The result's ``coefficients`` lists every factor applied to some line.  A
    factor applied with different values on different lines is listed again
    under ``name[work_id]`` for each line that differs from the first.
    """

    handle = _handle(version, registry)
    conditions = conditions or assignment.conditions
    section_factors: Dict[str, Dict[str, float]] = {}
    applied: Dict[str, float] = {BASE_FACTOR: 1.0}
    items: List[EstimateLineItem] = []
    for work in assignment.works:
        if not work.is_selected:
            continue
        ref = work.price_ref
        if ref is None:
            LOGGER.info("No price reference for %s (%s); not priced", work.work_id, work.name)
            continue
        if ref.section not in section_factors:
            section_factors[ref.section] = (
                {}
                if conditions.is_neutral
                else condition_factors(ref.section, handle.get_coefficients(ref.section), conditions)
            )
        row = find_row(handle.get_table(ref.section, ref.table_code), ref.criteria)
        breakdown = compose_coefficients({BASE_FACTOR: 1.0, **section_factors[ref.section], **ref.factors})
        quantity = ref.quantity if ref.quantity is not None else work.quantity
        items.append(make_line_item(row, quantity, breakdown.total))
        _merge_factors(applied, breakdown.per_factor, work.work_id)
    metadata = CalculationMetadata(",".join(sorted(section_factors)), handle.version, "assignment", timestamp(clock))
    base = base_amount(items) if items else 0.0
    return build_result(base, items, applied, metadata)


def get_table(section: str, code: str, version: Optional[str] = None) -> PriceTable:
    return default_registry().get_table(section, code, version)


def get_coefficients(section: str, version: Optional[str] = None) -> CoefficientSet:
    return default_registry().get_coefficients(section, version)


def is_table_available(section: str, code: str, version: Optional[str] = None) -> bool:
    return default_registry().is_table_available(section, code, version)


__all__ = [
    "calculate_estimate",
    "default_registry",
    "generate_assignment",
    "get_coefficients",
    "get_table",
    "is_table_available",
    "price_assignment",
    "project_conditions",
]
