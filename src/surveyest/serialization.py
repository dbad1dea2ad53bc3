"""camelCase wire documents for estimates and technical assignments."""
from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, Dict, Mapping

from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from .calculators import (
    DeformationMonitoringWork,
    DepthSoundingWork,
    DrillingWork,
    FieldTestWork,
    GeodeticConditions,
    HydroConditions,
    InspectionWork,
    LabTest,
    LaboratoryWork,
    LayoutWork,
    MeteoObservationWork,
    SiteConditions,
    TableWork,
    TopographicSurveyWork,
    WaterSample,
    WaterSamplingWork,
)
from .errors import ValidationError
from .models import (
    AppliedBlock,
    AssignmentStatistics,
    CalculationMetadata,
    CalculationResult,
    EstimateLineItem,
    PriceReference,
    PricingConditions,
    TechnicalAssignment,
    WorkItem,
)
from .project import SCHEMA_DIR, snake_case

RESULT_SCHEMA_PATH = SCHEMA_DIR / "calculation_result.schema.json"


@lru_cache(maxsize=None)
def _result_validator() -> Draft7Validator:
    with RESULT_SCHEMA_PATH.open("r", encoding="utf-8") as handle:
        return Draft7Validator(json.load(handle))


def validate_result_dict(payload: Mapping[str, Any]) -> None:
    error = best_match(_result_validator().iter_errors(dict(payload)))
    if error is not None:
        path = ".".join(str(part) for part in error.absolute_path) or None
        raise ValidationError(f"Invalid calculation result ({path or 'document'}): {error.message}", path)


# -- calculation results ------------------------------------------------------


def result_to_dict(result: CalculationResult) -> Dict[str, Any]:
    return {
        "basePrice": result.base_price,
        "items": [
            {
                "code": item.code,
                "workType": item.work_type,
                "unit": item.unit,
                "quantity": item.quantity,
                "unitPrice": item.unit_price,
                "coefficient": item.coefficient,
                "cost": item.cost,
            }
            for item in result.items
        ],
        "coefficients": dict(result.coefficients),
        "totalCost": result.total_cost,
        "metadata": {
            "section": result.metadata.section,
            "normVersion": result.metadata.norm_version,
            "module": result.metadata.module,
            "calculatedAt": result.metadata.calculated_at,
        },
    }


def result_from_dict(payload: Mapping[str, Any]) -> CalculationResult:
    """Validate ``payload`` against the result schema and rebuild the result."""

    validate_result_dict(payload)
    meta = payload["metadata"]
    return CalculationResult(
        base_price=float(payload["basePrice"]),
        items=tuple(
            EstimateLineItem(
                code=item["code"],
                work_type=item["workType"],
                unit=item["unit"],
                quantity=float(item["quantity"]),
                unit_price=float(item["unitPrice"]),
                coefficient=float(item["coefficient"]),
                cost=float(item["cost"]),
            )
            for item in payload["items"]
        ),
        coefficients={str(key): float(value) for key, value in payload["coefficients"].items()},
        total_cost=float(payload["totalCost"]),
        metadata=CalculationMetadata(
            section=meta["section"],
            norm_version=meta["normVersion"],
            module=meta["module"],
            calculated_at=meta["calculatedAt"],
        ),
    )


def result_to_json(result: CalculationResult, indent: int | None = 2) -> str:
    payload = result_to_dict(result)
    validate_result_dict(payload)
    return json.dumps(payload, ensure_ascii=False, indent=indent)


def result_from_json(text: str) -> CalculationResult:
    return result_from_dict(json.loads(text))


# -- technical assignments --------------------------------------------------


def work_to_dict(work: WorkItem) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "workId": work.work_id,
        "name": work.name,
        "quantity": work.quantity,
        "unit": work.unit,
        "category": work.category,
        "module": work.module,
        "normativeBase": work.normative_base,
        "description": work.description,
        "priorityLevel": work.priority_level,
        "tags": list(work.tags),
        "selected": work.selected,
    }
    if work.price_ref is not None:
        ref = work.price_ref
        payload["priceRef"] = {
            "section": ref.section,
            "tableCode": ref.table_code,
            "criteria": dict(ref.criteria),
            "quantity": ref.quantity,
            "factors": dict(ref.factors),
        }
    return payload


def work_from_dict(payload: Mapping[str, Any]) -> WorkItem:
    ref = payload.get("priceRef")
    price_ref = None
    if ref:
        price_ref = PriceReference(
            section=str(ref["section"]),
            table_code=str(ref["tableCode"]),
            criteria=dict(ref.get("criteria") or {}),
            quantity=ref.get("quantity"),
            factors={str(key): float(value) for key, value in (ref.get("factors") or {}).items()},
        )
    return WorkItem(
        work_id=payload["workId"],
        name=payload["name"],
        quantity=payload["quantity"],
        unit=payload["unit"],
        category=payload["category"],
        module=payload["module"],
        normative_base=payload.get("normativeBase", ""),
        description=payload.get("description", ""),
        priority_level=payload.get("priorityLevel", ""),
        tags=tuple(payload.get("tags") or ()),
        price_ref=price_ref,
        selected=payload.get("selected"),
    )


def assignment_to_dict(assignment: TechnicalAssignment) -> Dict[str, Any]:
    stats = assignment.statistics
    return {
        "projectName": assignment.project_name,
        "ruleSetVersion": assignment.rule_set_version,
        "works": [work_to_dict(work) for work in assignment.works],
        "byCategory": {key: list(ids) for key, ids in assignment.by_category.items()},
        "byModule": {key: list(ids) for key, ids in assignment.by_module.items()},
        "statistics": {
            "total": stats.total,
            "selected": stats.selected,
            "mandatory": stats.mandatory,
            "recommended": stats.recommended,
            "optional": stats.optional,
            "completeness": stats.completeness,
            "byModule": dict(stats.by_module),
            "volumeTotals": dict(stats.volume_totals),
        },
        "warnings": list(assignment.warnings),
        "recommendations": list(assignment.recommendations),
        "appliedBlocks": [
            {
                "blockId": block.block_id,
                "variantId": block.variant_id,
                "normative": block.normative,
                "alternatives": block.alternatives,
            }
            for block in assignment.applied_blocks
        ],
        "conditions": {
            "season": assignment.conditions.season,
            "seismicity": assignment.conditions.seismicity,
            "specialSoils": list(assignment.conditions.special_soils),
            "hazards": list(assignment.conditions.hazards),
            "aggressiveGroundwater": assignment.conditions.aggressive_groundwater,
        },
    }


def _conditions(payload: Mapping[str, Any] | None) -> PricingConditions:
    data = payload or {}
    return PricingConditions(
        season=data.get("season"),
        seismicity=data.get("seismicity"),
        special_soils=tuple(data.get("specialSoils") or ()),
        hazards=tuple(data.get("hazards") or ()),
        aggressive_groundwater=bool(data.get("aggressiveGroundwater", False)),
    )


def assignment_from_dict(payload: Mapping[str, Any]) -> TechnicalAssignment:
    stats = payload["statistics"]
    return TechnicalAssignment(
        project_name=payload["projectName"],
        works=tuple(work_from_dict(work) for work in payload["works"]),
        by_category={key: tuple(ids) for key, ids in payload["byCategory"].items()},
        by_module={key: tuple(ids) for key, ids in payload["byModule"].items()},
        statistics=AssignmentStatistics(
            total=stats["total"],
            selected=stats["selected"],
            mandatory=stats["mandatory"],
            recommended=stats["recommended"],
            optional=stats["optional"],
            completeness=stats["completeness"],
            by_module=dict(stats.get("byModule") or {}),
            volume_totals=dict(stats.get("volumeTotals") or {}),
        ),
        warnings=tuple(payload.get("warnings") or ()),
        recommendations=tuple(payload.get("recommendations") or ()),
        applied_blocks=tuple(
            AppliedBlock(
                block_id=block["blockId"],
                variant_id=block["variantId"],
                normative=block.get("normative", ""),
                alternatives=block.get("alternatives", 0),
            )
            for block in payload.get("appliedBlocks") or ()
        ),
        rule_set_version=payload.get("ruleSetVersion", ""),
        conditions=_conditions(payload.get("conditions")),
    )


def assignment_to_json(assignment: TechnicalAssignment, indent: int | None = 2) -> str:
    return json.dumps(assignment_to_dict(assignment), ensure_ascii=False, indent=indent)


# -- work descriptors -------------------------------------------------------


def _snake_keys(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {snake_case(str(key)): value for key, value in payload.items()}


def _site(payload: Mapping[str, Any] | None) -> SiteConditions:
    data = _snake_keys(payload or {})
    data["special"] = frozenset(data.get("special") or ())
    return SiteConditions(**data)


def _geodetic(payload: Mapping[str, Any] | None) -> GeodeticConditions:
    return GeodeticConditions(**_snake_keys(payload or {}))


def _hydro(payload: Mapping[str, Any] | None) -> HydroConditions:
    return HydroConditions(**_snake_keys(payload or {}))


_GEODETIC_DESCRIPTORS = {
    "topographic_survey": TopographicSurveyWork,
    "layout": LayoutWork,
    "deformation_monitoring": DeformationMonitoringWork,
}

_HYDRO_DESCRIPTORS = {
    "depth_sounding": DepthSoundingWork,
    "water_sampling": WaterSamplingWork,
    "meteo_observation": MeteoObservationWork,
}


def descriptor_from_dict(payload: Mapping[str, Any]) -> object:
    """
    Build a work descriptor from a ``{"type": ..., ...}`` document.

    ``type`` is one of ``inspection``, ``drilling``, ``field_test``,
    ``laboratory``, ``topographic_survey``, ``layout``,
    ``deformation_monitoring``, ``depth_sounding``, ``water_sampling``,
    ``meteo_observation`` or ``table``; the remaining keys (camelCase or
    snake_case) are the descriptor's fields.  Nested ``conditions`` and
    ``site`` objects become the matching conditions records.
    """

    data = _snake_keys(payload)
    kind = data.pop("type", None)
    try:
        if kind == "inspection":
            data["conditions"] = frozenset(data.get("conditions") or ())
            return InspectionWork(**data)
        if kind == "drilling":
            data["site"] = _site(data.get("site"))
            return DrillingWork(**data)
        if kind == "field_test":
            data["site"] = _site(data.get("site"))
            return FieldTestWork(**data)
        if kind == "laboratory":
            data["tests"] = tuple(LabTest(**_snake_keys(test)) for test in data.get("tests") or ())
            return LaboratoryWork(**data)
        if kind in _GEODETIC_DESCRIPTORS:
            data["conditions"] = _geodetic(data.get("conditions"))
            return _GEODETIC_DESCRIPTORS[kind](**data)
        if kind in _HYDRO_DESCRIPTORS:
            data["conditions"] = _hydro(data.get("conditions"))
            if kind == "water_sampling":
                data["samples"] = tuple(WaterSample(**_snake_keys(sample)) for sample in data.get("samples") or ())
            return _HYDRO_DESCRIPTORS[kind](**data)
        if kind == "table":
            return TableWork(**data)
    except TypeError as exc:
        raise ValidationError(f"Invalid {kind} work descriptor: {exc}", "work") from exc
    raise ValidationError(f"Unknown work descriptor type: {kind!r}", "type")


__all__ = [
    "RESULT_SCHEMA_PATH",
    "assignment_from_dict",
    "assignment_to_dict",
    "assignment_to_json",
    "descriptor_from_dict",
    "result_from_dict",
    "result_from_json",
    "result_to_dict",
    "result_to_json",
    "validate_result_dict",
    "work_from_dict",
    "work_to_dict",
]
