"""Project description consumed by the rule engine."""
from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, fields
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from .errors import ValidationError

SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"
PROJECT_SCHEMA_PATH = SCHEMA_DIR / "project.schema.json"

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")
_LIST_FIELDS = ("special_soils", "hazards", "geophysics_methods")


@dataclass(frozen=True)
class ProjectDescription:
    project_name: str
    object_type: str
    object_subtype: Optional[str] = None
    project_location: Optional[str] = None
    design_stage: Optional[str] = None
    construction_phase: Optional[str] = None
    geotechnical_category: Optional[str] = None
    complexity_category: Optional[str] = None
    responsibility_level: Optional[str] = None
    area_ha: Optional[float] = None
    building_area: Optional[float] = None
    building_volume: Optional[float] = None
    floors: Optional[int] = None
    building_category: Optional[str] = None
    height_category: Optional[str] = None
    soil_category: Optional[str] = None
    lithologic_layers: Optional[int] = None
    foundation_type: Optional[str] = None
    foundation_depth: Optional[float] = None
    pile_length: Optional[float] = None
    linear_length: Optional[float] = None
    road_category: Optional[str] = None
    seismicity: Optional[int] = None
    special_soils: Tuple[str, ...] = ()
    hazards: Tuple[str, ...] = ()
    groundwater_depth: Optional[float] = None
    groundwater_aggressive: bool = False
    geophysics_methods: Tuple[str, ...] = ()
    season: Optional[str] = None
    existing_data: bool = False
    structural_deformations: bool = False
    emergency_situation: bool = False

    def __post_init__(self) -> None:
        for name in _LIST_FIELDS:
            object.__setattr__(self, name, tuple(getattr(self, name) or ()))

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ProjectDescription":
        """Build and validate a description from camelCase or snake_case keys."""

        data = {snake_case(str(key)): value for key, value in raw.items()}
        data = {key: value for key, value in data.items() if value is not None}
        validate_project_dict(data)
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for name in _LIST_FIELDS:
            data[name] = list(data[name])
        return {key: value for key, value in data.items() if value is not None and value != []}

    def validate(self) -> "ProjectDescription":
        validate_project_dict(self.to_dict())
        return self

    @property
    def is_areal(self) -> bool:
        return self.object_type == "areal"

    @property
    def is_linear(self) -> bool:
        return self.object_type == "linear"


def snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


@lru_cache(maxsize=None)
def _project_validator() -> Draft7Validator:
    with PROJECT_SCHEMA_PATH.open("r", encoding="utf-8") as handle:
        schema = json.load(handle)
    return Draft7Validator(schema)


def validate_project_dict(data: Mapping[str, Any]) -> None:
    """Raise :class:`ValidationError` naming the first offending field."""

    error = best_match(_project_validator().iter_errors(dict(data)))
    if error is None:
        return
    if error.validator == "required":
        missing = [name for name in error.validator_value if name not in data]
        field = missing[0] if missing else None
        raise ValidationError(f"Missing required field: {field}", field)
    field = ".".join(str(part) for part in error.absolute_path) or None
    raise ValidationError(f"Invalid project description ({field or 'document'}): {error.message}", field)


__all__ = ["ProjectDescription", "validate_project_dict", "snake_case", "PROJECT_SCHEMA_PATH"]
