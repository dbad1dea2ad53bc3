"""Criteria schemas for the normative table families.

Every price table belongs to a family that fixes which CSV columns classify
its rows.  Lookups may only use these fields and each table must carry at
most one row per full criteria tuple.  Table cells are read as text, so
lookup values are normalised to the same form before matching.
"""
from __future__ import annotations

import numbers
from typing import Dict, Mapping, Tuple

TABLE_FAMILIES: Dict[str, Tuple[str, ...]] = {
    "inspection": ("building_category", "floors", "work_complexity", "height_category"),
    "soil": ("soil_category",),
    "laboratory": ("test_type",),
    "geodetic": ("complexity_category",),
    "hydrographic": ("complexity_category",),
    "water_sample": ("sample_type",),
    "meteo": ("observation_type",),
}

REQUIRED_COLUMNS: Tuple[str, ...] = ("code", "work_type", "unit", "price_per_unit")


def criteria_fields(family: str) -> Tuple[str, ...]:
    try:
        return TABLE_FAMILIES[family]
    except KeyError:
        raise KeyError(f"Unknown table family: {family}") from None


def unknown_fields(family: str, criteria: Mapping[str, object]) -> Tuple[str, ...]:
    """Return criteria keys that are not classification fields of ``family``."""

    allowed = set(criteria_fields(family))
    return tuple(key for key in criteria if key not in allowed)


def criterion_text(value: object) -> str:
    """
    Render a lookup value the way it appears in a table cell.

    Whole numbers lose their fractional part (``7.0`` and ``7`` both become
    ``"7"``), booleans become ``"true"``/``"false"`` and strings are stripped.
    """

    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, numbers.Integral):
        return str(int(value))
    if isinstance(value, numbers.Real):
        number = float(value)
        return str(int(number)) if number.is_integer() else repr(number)
    return str(value).strip()


def normalize_criteria(criteria: Mapping[str, object]) -> Dict[str, str]:
    return {str(key): criterion_text(value) for key, value in criteria.items()}


__all__ = [
    "TABLE_FAMILIES",
    "REQUIRED_COLUMNS",
    "criteria_fields",
    "criterion_text",
    "normalize_criteria",
    "unknown_fields",
]
