"""
Work descriptors and their estimate calculations.

Each descriptor validates itself on construction, selects its price table,
collects the situational factors whose triggering condition holds, and prices
one or more lines through :mod:`surveyest.pricing`.  Reference data always
comes from a :class:`~surveyest.norms.registry.RegistryHandle`, so one call
sees exactly one norm version.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from .errors import ValidationError
from .models import CalculationMetadata, CalculationResult, CoefficientSet, PricingConditions
from .norms.registry import RegistryHandle
from .pricing import BASE_FACTOR, build_result, compose_coefficients, find_row, make_line_item, price_line

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]

INSPECTION_SECTION = "4"
GEOLOGICAL_SECTION = "2"
GEODETIC_SECTION = "1"
HYDROGRAPHIC_SECTION = "3"

COMPLEXITY_CATEGORIES = ("I", "II", "III", "IV")

TOPOGRAPHIC_TABLES: Dict[str, str] = {
    "1:500": "1601-0101",
    "1:1000": "1601-0102",
    "1:2000": "1601-0103",
    "1:5000": "1601-0104",
}

LAYOUT_TABLES: Dict[str, str] = {
    "construction_grid": "1601-0201",
    "building_axes": "1601-0202",
}

DEFORMATION_TABLE = "1601-0301"

GEODETIC_BANDS: Tuple[str, ...] = (
    "season",
    "terrain",
    "vegetation",
    "development",
    "utilities",
    "accuracy",
    "urgency",
    "remoteness",
)

SOUNDING_TABLES: Dict[str, str] = {
    "echo_sounder": "1603-0101",
    "manual": "1603-0102",
}

WATER_SAMPLE_TABLE = "1603-0301"
WATER_SAMPLE_TYPES = ("surface", "depth", "bottom_sediment", "suspended_sediment")

METEO_TABLE = "1603-0401"
METEO_OBSERVATION_TYPES = ("auto_station", "wave_measurement", "ice_conditions", "visual")

HYDROGRAPHIC_BANDS: Tuple[str, ...] = (
    "season",
    "ice",
    "weather",
    "water_depth",
    "remoteness",
    "navigation",
    "urgency",
    "accuracy",
)

BUILDING_CATEGORIES = ("I", "II", "III")
SOIL_CATEGORIES = ("I", "II", "III", "IV", "V", "VI")

_INSPECTION_TABLES: Dict[Tuple[str, bool], str] = {
    ("I", False): "1604-0301-01",
    ("II", False): "1604-0302-01",
    ("III", False): "1604-0303-01",
    ("I", True): "1604-0304-01",
    ("II", True): "1604-0305-01",
    ("III", True): "1604-0306-01",
}

# Evaluation order of the boolean conditions; seismicity is banded and slots in
# after the earthquake flag.
INSPECTION_FLAGS: Tuple[str, ...] = (
    "difficult_soils",
    "hazardous_equipment",
    "winter_conditions",
    "after_earthquake",
    "hot_workshops",
    "heritage_monument",
    "reinforcement_required",
    "underground_part",
)

DRILLING_TABLES: Dict[str, str] = {
    "manual": "1602-0201",
    "light": "1602-0202",
    "heavy": "1602-0203",
    "pit": "1602-0301",
}

FIELD_TEST_TABLES: Dict[str, str] = {
    "cpt": "1602-0401",
    "dynamic": "1602-0402",
}

SPECIAL_CONDITIONS: Tuple[str, ...] = ("permafrost", "karst", "landslide", "contaminated", "aggressive")

LAB_TEST_TABLES: Dict[str, str] = {
    **{
        key: "1602-0701"
        for key in (
            "moisture",
            "density",
            "particle_density",
            "grain_size_sieve",
            "grain_size_hydrometer",
            "plasticity_index",
            "liquid_limit",
            "plastic_limit",
            "void_ratio",
            "saturation_degree",
        )
    },
    **{
        key: "1602-0703"
        for key in (
            "ph",
            "soluble_salts",
            "organic_content",
            "water_aggressiveness",
            "sulfates",
            "chlorides",
            "corrosion_activity",
        )
    },
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def timestamp(clock: Optional[Clock]) -> str:
    return (clock or utc_now)().isoformat()


def _require_positive(value: float, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValidationError(f"{name} must be a positive number, got {value!r}", name)


def _require_choice(value: Optional[str], choices, name: str, optional: bool = False) -> None:
    if value is None and optional:
        return
    if value not in choices:
        raise ValidationError(f"{name} must be one of {list(choices)}, got {value!r}", name)


def _require_flags(values: FrozenSet[str], allowed: Tuple[str, ...], name: str) -> None:
    unknown = sorted(set(values) - set(allowed))
    if unknown:
        raise ValidationError(f"Unknown {name}: {unknown}", name)


def _add_band(factors: Dict[str, float], coefficients: CoefficientSet, name: str, key: object) -> None:
    if key is None:
        return
    value = coefficients.band(name, key)
    if value is None:
        LOGGER.warning("No %s coefficient for %r in section %s; factor omitted", name, key, coefficients.section)
        return
    if value != 1.0:
        factors[name] = value


def _add_threshold(factors: Dict[str, float], coefficients: CoefficientSet, name: str, value: float) -> None:
    factor = coefficients.threshold(name, value)
    if factor is not None and factor != 1.0:
        factors[name] = factor


def _add_flag(factors: Dict[str, float], coefficients: CoefficientSet, name: str) -> None:
    value = coefficients.flag(name)
    if value is None:
        LOGGER.warning("No %s coefficient in section %s; factor omitted", name, coefficients.section)
        return
    factors[name] = value


# -- section 4: building inspection ---------------------------------------


def inspection_table_code(building_category: str, multi_storey: bool) -> str:
    return _INSPECTION_TABLES[(building_category, bool(multi_storey))]


@dataclass(frozen=True)
class InspectionWork:
    """Inspection of the load-bearing structures of an industrial building."""

    building_category: str
    work_complexity: str
    height_category: str
    volume: float
    floors: int = 1
    structure_spacing: Optional[str] = None
    conditions: FrozenSet[str] = frozenset()
    seismicity: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "conditions", frozenset(self.conditions))
        _require_choice(self.building_category, BUILDING_CATEGORIES, "building_category")
        _require_choice(self.work_complexity, BUILDING_CATEGORIES, "work_complexity")
        _require_positive(self.volume, "volume")
        if isinstance(self.floors, bool) or not isinstance(self.floors, int) or self.floors < 1:
            raise ValidationError(f"floors must be a positive integer, got {self.floors!r}", "floors")
        if not self.height_category:
            raise ValidationError("height_category is required", "height_category")
        _require_flags(self.conditions, INSPECTION_FLAGS, "inspection conditions")

    @property
    def multi_storey(self) -> bool:
        return self.floors > 1

    @property
    def table_code(self) -> str:
        return inspection_table_code(self.building_category, self.multi_storey)

    @property
    def quantity(self) -> float:
        return float(Decimal(repr(float(self.volume))) / 100)

    def criteria(self) -> Dict[str, str]:
        return {
            "building_category": self.building_category,
            "floors": "multi" if self.multi_storey else "single",
            "work_complexity": self.work_complexity,
            "height_category": self.height_category,
        }


def inspection_factors(work: InspectionWork, coefficients: CoefficientSet) -> Dict[str, float]:
    factors: Dict[str, float] = {BASE_FACTOR: 1.0}
    _add_threshold(factors, coefficients, "small_volume", work.volume)
    _add_band(factors, coefficients, "structure_spacing", work.structure_spacing)
    for name in INSPECTION_FLAGS:
        if name in work.conditions:
            _add_flag(factors, coefficients, name)
        if name == "after_earthquake":
            _add_band(factors, coefficients, "seismicity", work.seismicity)
    return factors


def calculate_inspection(work: InspectionWork, handle: RegistryHandle, clock: Optional[Clock] = None) -> CalculationResult:
    table = handle.get_table(INSPECTION_SECTION, work.table_code)
    row = find_row(table, work.criteria())
    breakdown = compose_coefficients(inspection_factors(work, handle.get_coefficients(INSPECTION_SECTION)))
    item = make_line_item(row, work.quantity, breakdown.total)
    LOGGER.debug("Inspection %s: %s x %s x %s = %s", row.code, row.price_per_unit, item.quantity, breakdown.total, item.cost)
    metadata = CalculationMetadata(INSPECTION_SECTION, handle.version, "inspection", timestamp(clock))
    return build_result(row.price_per_unit, [item], breakdown, metadata)


# -- section 2: geological works -------------------------------------------


@dataclass(frozen=True)
class SiteConditions:
    """Situational conditions shared by the geological descriptors."""

    season: Optional[str] = None
    water_saturation: Optional[str] = None
    development: Optional[str] = None
    remoteness: Optional[str] = None
    urgency: Optional[str] = None
    complexity: Optional[str] = None
    special: FrozenSet[str] = frozenset()
    seismicity: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "special", frozenset(self.special))
        _require_flags(self.special, SPECIAL_CONDITIONS, "special conditions")


@dataclass(frozen=True)
class DrillingWork:
    """Boreholes (``wells`` x ``depth`` m) or pits (``pits`` x ``pit_volume`` m3)."""

    method: str
    soil_category: str
    wells: int = 0
    depth: float = 0.0
    pits: int = 0
    pit_volume: float = 0.0
    site: SiteConditions = field(default_factory=SiteConditions)

    def __post_init__(self) -> None:
        _require_choice(self.method, DRILLING_TABLES, "method")
        _require_choice(self.soil_category, SOIL_CATEGORIES, "soil_category")
        if self.quantity <= 0:
            raise ValidationError(f"Drilling quantity must be positive, got {self.quantity}", "quantity")

    @property
    def is_pit(self) -> bool:
        return self.method == "pit"

    @property
    def table_code(self) -> str:
        return DRILLING_TABLES[self.method]

    @property
    def quantity(self) -> float:
        if self.is_pit:
            return float(Decimal(repr(float(self.pits))) * Decimal(repr(float(self.pit_volume))))
        return float(Decimal(repr(float(self.wells))) * Decimal(repr(float(self.depth))))


def _site_factors(factors: Dict[str, float], coefficients: CoefficientSet, site: SiteConditions) -> None:
    _add_band(factors, coefficients, "water_saturation", site.water_saturation)
    _add_band(factors, coefficients, "development", site.development)
    _add_band(factors, coefficients, "remoteness", site.remoteness)
    _add_band(factors, coefficients, "urgency", site.urgency)
    _add_band(factors, coefficients, "complexity", site.complexity)
    for name in ("permafrost", "karst", "landslide"):
        if name in site.special:
            _add_flag(factors, coefficients, name)
    if site.seismicity:
        _add_band(factors, coefficients, "seismicity", site.seismicity)
    for name in ("contaminated", "aggressive"):
        if name in site.special:
            _add_flag(factors, coefficients, name)


def drilling_factors(work: DrillingWork, coefficients: CoefficientSet) -> Dict[str, float]:
    factors: Dict[str, float] = {BASE_FACTOR: 1.0}
    if not work.is_pit:
        _add_threshold(factors, coefficients, "drilling_volume", work.quantity)
    _add_band(factors, coefficients, "season", work.site.season)
    if not work.is_pit and work.depth:
        _add_threshold(factors, coefficients, "depth", work.depth)
    _site_factors(factors, coefficients, work.site)
    return factors


def calculate_drilling(work: DrillingWork, handle: RegistryHandle, clock: Optional[Clock] = None) -> CalculationResult:
    table = handle.get_table(GEOLOGICAL_SECTION, work.table_code)
    row = find_row(table, {"soil_category": work.soil_category})
    breakdown = compose_coefficients(drilling_factors(work, handle.get_coefficients(GEOLOGICAL_SECTION)))
    item = make_line_item(row, work.quantity, breakdown.total)
    metadata = CalculationMetadata(GEOLOGICAL_SECTION, handle.version, "geological", timestamp(clock))
    return build_result(row.price_per_unit, [item], breakdown, metadata)


@dataclass(frozen=True)
class FieldTestWork:
    """Static (CPT) or dynamic probing, priced per metre of sounding."""

    method: str
    soil_category: str
    points: int
    depth: float
    site: SiteConditions = field(default_factory=SiteConditions)

    def __post_init__(self) -> None:
        _require_choice(self.method, FIELD_TEST_TABLES, "method")
        _require_choice(self.soil_category, SOIL_CATEGORIES, "soil_category")
        _require_positive(self.points, "points")
        _require_positive(self.depth, "depth")

    @property
    def table_code(self) -> str:
        return FIELD_TEST_TABLES[self.method]

    @property
    def quantity(self) -> float:
        return float(Decimal(repr(float(self.points))) * Decimal(repr(float(self.depth))))


def calculate_field_test(work: FieldTestWork, handle: RegistryHandle, clock: Optional[Clock] = None) -> CalculationResult:
    table = handle.get_table(GEOLOGICAL_SECTION, work.table_code)
    row = find_row(table, {"soil_category": work.soil_category})
    coefficients = handle.get_coefficients(GEOLOGICAL_SECTION)
    factors: Dict[str, float] = {BASE_FACTOR: 1.0}
    _add_band(factors, coefficients, "season", work.site.season)
    _add_band(factors, coefficients, "development", work.site.development)
    _add_band(factors, coefficients, "urgency", work.site.urgency)
    breakdown = compose_coefficients(factors)
    item = make_line_item(row, work.quantity, breakdown.total)
    metadata = CalculationMetadata(GEOLOGICAL_SECTION, handle.version, "geological", timestamp(clock))
    return build_result(row.price_per_unit, [item], breakdown, metadata)


@dataclass(frozen=True)
class LabTest:
    test_type: str
    samples: int

    def __post_init__(self) -> None:
        _require_choice(self.test_type, LAB_TEST_TABLES, "test_type")
        _require_positive(self.samples, "samples")


@dataclass(frozen=True)
class LaboratoryWork:
    """A batch of laboratory tests; the volume discount uses the total sample count."""

    tests: Tuple[LabTest, ...]
    urgency: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "tests", tuple(self.tests))
        if not self.tests:
            raise ValidationError("At least one laboratory test is required", "tests")

    @property
    def total_samples(self) -> int:
        return sum(test.samples for test in self.tests)


def calculate_laboratory(work: LaboratoryWork, handle: RegistryHandle, clock: Optional[Clock] = None) -> CalculationResult:
    coefficients = handle.get_coefficients(GEOLOGICAL_SECTION)
    factors: Dict[str, float] = {BASE_FACTOR: 1.0}
    _add_threshold(factors, coefficients, "laboratory_volume", work.total_samples)
    _add_band(factors, coefficients, "urgency", work.urgency)
    breakdown = compose_coefficients(factors)

    items = []
    for test in work.tests:
        table = handle.get_table(GEOLOGICAL_SECTION, LAB_TEST_TABLES[test.test_type])
        row = find_row(table, {"test_type": test.test_type})
        items.append(make_line_item(row, test.samples, breakdown.total))
    metadata = CalculationMetadata(GEOLOGICAL_SECTION, handle.version, "geological", timestamp(clock))
    return build_result(base_amount(items), items, breakdown, metadata)


# -- section 1: geodetic surveys --------------------------------------------


@dataclass(frozen=True)
class GeodeticConditions:
    """Site conditions of the geodetic section; unset fields apply no factor."""

    season: Optional[str] = None
    terrain: Optional[str] = None
    vegetation: Optional[str] = None
    development: Optional[str] = None
    utilities: Optional[str] = None
    accuracy: Optional[str] = None
    urgency: Optional[str] = None
    remoteness: Optional[str] = None
    seismicity: Optional[int] = None


def _geodetic_factors(factors: Dict[str, float], coefficients: CoefficientSet, conditions: GeodeticConditions) -> None:
    for name in GEODETIC_BANDS:
        _add_band(factors, coefficients, name, getattr(conditions, name))
    if conditions.seismicity:
        _add_band(factors, coefficients, "seismicity", conditions.seismicity)


def _geodetic_result(
    row, quantity: float, factors: Dict[str, float], handle: RegistryHandle, clock: Optional[Clock]
) -> CalculationResult:
    breakdown = compose_coefficients(factors)
    item = make_line_item(row, quantity, breakdown.total)
    metadata = CalculationMetadata(GEODETIC_SECTION, handle.version, "geodetic", timestamp(clock))
    return build_result(row.price_per_unit, [item], breakdown, metadata)


@dataclass(frozen=True)
class TopographicSurveyWork:
    """Topographic survey of ``area`` hectares at one of the standard scales."""

    scale: str
    category: str
    area: float
    conditions: GeodeticConditions = field(default_factory=GeodeticConditions)

    def __post_init__(self) -> None:
        _require_choice(self.scale, TOPOGRAPHIC_TABLES, "scale")
        _require_choice(self.category, COMPLEXITY_CATEGORIES, "category")
        _require_positive(self.area, "area")

    @property
    def table_code(self) -> str:
        return TOPOGRAPHIC_TABLES[self.scale]


def calculate_topographic_survey(
    work: TopographicSurveyWork, handle: RegistryHandle, clock: Optional[Clock] = None
) -> CalculationResult:
    table = handle.get_table(GEODETIC_SECTION, work.table_code)
    row = find_row(table, {"complexity_category": work.category})
    coefficients = handle.get_coefficients(GEODETIC_SECTION)
    factors: Dict[str, float] = {BASE_FACTOR: 1.0}
    _add_threshold(factors, coefficients, "survey_area", work.area)
    _geodetic_factors(factors, coefficients, work.conditions)
    return _geodetic_result(row, work.area, factors, handle, clock)


@dataclass(frozen=True)
class LayoutWork:
    """Setting out a construction grid (per point) or main building axes (per building)."""

    work_type: str
    category: str
    quantity: float
    conditions: GeodeticConditions = field(default_factory=GeodeticConditions)

    def __post_init__(self) -> None:
        _require_choice(self.work_type, LAYOUT_TABLES, "work_type")
        _require_choice(self.category, COMPLEXITY_CATEGORIES, "category")
        _require_positive(self.quantity, "quantity")

    @property
    def table_code(self) -> str:
        return LAYOUT_TABLES[self.work_type]


def calculate_layout(work: LayoutWork, handle: RegistryHandle, clock: Optional[Clock] = None) -> CalculationResult:
    table = handle.get_table(GEODETIC_SECTION, work.table_code)
    row = find_row(table, {"complexity_category": work.category})
    factors: Dict[str, float] = {BASE_FACTOR: 1.0}
    _geodetic_factors(factors, handle.get_coefficients(GEODETIC_SECTION), work.conditions)
    return _geodetic_result(row, work.quantity, factors, handle, clock)


@dataclass(frozen=True)
class DeformationMonitoringWork:
    """Settlement and deformation observations over ``marks`` for ``cycles`` cycles."""

    category: str
    marks: int
    cycles: int = 1
    building_height: Optional[float] = None
    access: Optional[str] = None
    conditions: GeodeticConditions = field(default_factory=GeodeticConditions)

    def __post_init__(self) -> None:
        _require_choice(self.category, COMPLEXITY_CATEGORIES, "category")
        _require_positive(self.marks, "marks")
        _require_positive(self.cycles, "cycles")
        if self.building_height is not None:
            _require_positive(self.building_height, "building_height")

    @property
    def quantity(self) -> float:
        return float(Decimal(repr(float(self.marks))) * Decimal(repr(float(self.cycles))))


def calculate_deformation_monitoring(
    work: DeformationMonitoringWork, handle: RegistryHandle, clock: Optional[Clock] = None
) -> CalculationResult:
    table = handle.get_table(GEODETIC_SECTION, DEFORMATION_TABLE)
    row = find_row(table, {"complexity_category": work.category})
    coefficients = handle.get_coefficients(GEODETIC_SECTION)
    factors: Dict[str, float] = {BASE_FACTOR: 1.0}
    if work.building_height is not None:
        _add_threshold(factors, coefficients, "building_height", work.building_height)
    _add_band(factors, coefficients, "access", work.access)
    _geodetic_factors(factors, coefficients, work.conditions)
    return _geodetic_result(row, work.quantity, factors, handle, clock)


# -- section 3: hydrographic works ------------------------------------------


@dataclass(frozen=True)
class HydroConditions:
    season: Optional[str] = None
    ice: Optional[str] = None
    weather: Optional[str] = None
    water_depth: Optional[str] = None
    remoteness: Optional[str] = None
    navigation: Optional[str] = None
    urgency: Optional[str] = None
    accuracy: Optional[str] = None


def _hydro_factors(factors: Dict[str, float], coefficients: CoefficientSet, conditions: HydroConditions) -> None:
    for name in HYDROGRAPHIC_BANDS:
        _add_band(factors, coefficients, name, getattr(conditions, name))


def _hydro_metadata(handle: RegistryHandle, clock: Optional[Clock]) -> CalculationMetadata:
    return CalculationMetadata(HYDROGRAPHIC_SECTION, handle.version, "hydrographic", timestamp(clock))


@dataclass(frozen=True)
class DepthSoundingWork:
    """Depth sounding along ``distance`` km of profiles."""

    method: str
    category: str
    distance: float
    conditions: HydroConditions = field(default_factory=HydroConditions)

    def __post_init__(self) -> None:
        _require_choice(self.method, SOUNDING_TABLES, "method")
        _require_choice(self.category, COMPLEXITY_CATEGORIES, "category")
        _require_positive(self.distance, "distance")

    @property
    def table_code(self) -> str:
        return SOUNDING_TABLES[self.method]


def calculate_depth_sounding(work: DepthSoundingWork, handle: RegistryHandle, clock: Optional[Clock] = None) -> CalculationResult:
    table = handle.get_table(HYDROGRAPHIC_SECTION, work.table_code)
    row = find_row(table, {"complexity_category": work.category})
    coefficients = handle.get_coefficients(HYDROGRAPHIC_SECTION)
    factors: Dict[str, float] = {BASE_FACTOR: 1.0}
    _add_threshold(factors, coefficients, "sounding_distance", work.distance)
    _hydro_factors(factors, coefficients, work.conditions)
    breakdown = compose_coefficients(factors)
    item = make_line_item(row, work.distance, breakdown.total)
    return build_result(row.price_per_unit, [item], breakdown, _hydro_metadata(handle, clock))


@dataclass(frozen=True)
class WaterSample:
    sample_type: str
    samples: int

    def __post_init__(self) -> None:
        _require_choice(self.sample_type, WATER_SAMPLE_TYPES, "sample_type")
        _require_positive(self.samples, "samples")


@dataclass(frozen=True)
class WaterSamplingWork:
    """Water and sediment sampling, one line per sample type."""

    samples: Tuple[WaterSample, ...]
    conditions: HydroConditions = field(default_factory=HydroConditions)

    def __post_init__(self) -> None:
        object.__setattr__(self, "samples", tuple(self.samples))
        if not self.samples:
            raise ValidationError("At least one water sample is required", "samples")


def calculate_water_sampling(work: WaterSamplingWork, handle: RegistryHandle, clock: Optional[Clock] = None) -> CalculationResult:
    table = handle.get_table(HYDROGRAPHIC_SECTION, WATER_SAMPLE_TABLE)
    factors: Dict[str, float] = {BASE_FACTOR: 1.0}
    _hydro_factors(factors, handle.get_coefficients(HYDROGRAPHIC_SECTION), work.conditions)
    breakdown = compose_coefficients(factors)
    items = [
        make_line_item(find_row(table, {"sample_type": sample.sample_type}), sample.samples, breakdown.total)
        for sample in work.samples
    ]
    return build_result(base_amount(items), items, breakdown, _hydro_metadata(handle, clock))


@dataclass(frozen=True)
class MeteoObservationWork:
    """Meteorological, wave or ice observations; ``duration`` is in the row's unit (month or day)."""

    observation_type: str
    duration: float
    conditions: HydroConditions = field(default_factory=HydroConditions)

    def __post_init__(self) -> None:
        _require_choice(self.observation_type, METEO_OBSERVATION_TYPES, "observation_type")
        _require_positive(self.duration, "duration")


def calculate_meteo_observation(
    work: MeteoObservationWork, handle: RegistryHandle, clock: Optional[Clock] = None
) -> CalculationResult:
    table = handle.get_table(HYDROGRAPHIC_SECTION, METEO_TABLE)
    row = find_row(table, {"observation_type": work.observation_type})
    factors: Dict[str, float] = {BASE_FACTOR: 1.0}
    _hydro_factors(factors, handle.get_coefficients(HYDROGRAPHIC_SECTION), work.conditions)
    breakdown = compose_coefficients(factors)
    item = make_line_item(row, work.duration, breakdown.total)
    return build_result(row.price_per_unit, [item], breakdown, _hydro_metadata(handle, clock))


# -- project-wide conditions -------------------------------------------------


def condition_factors(section: str, coefficients: CoefficientSet, conditions: PricingConditions) -> Dict[str, float]:
    """
    Factors that project conditions add to any work priced from ``section``.

    Inspection tables use the winter and difficult-soil flags; the other
    sections use their season band.  Seismicity applies wherever the section
    defines a value for the intensity.  Special soils, hazards and aggressive
    groundwater map onto the geological special-condition flags.
    """

    factors: Dict[str, float] = {}
    if section == INSPECTION_SECTION:
        if conditions.season == "winter":
            _add_flag(factors, coefficients, "winter_conditions")
        if conditions.special_soils:
            _add_flag(factors, coefficients, "difficult_soils")
    else:
        _add_band(factors, coefficients, "season", conditions.season)
    if conditions.seismicity and coefficients.band("seismicity", conditions.seismicity) is not None:
        _add_band(factors, coefficients, "seismicity", conditions.seismicity)
    if section == GEOLOGICAL_SECTION:
        labels = set(conditions.special_soils) | set(conditions.hazards)
        if conditions.aggressive_groundwater:
            labels.add("aggressive")
        for name in SPECIAL_CONDITIONS:
            if name in labels:
                _add_flag(factors, coefficients, name)
    return factors


# -- generic ------------------------------------------------------------------


@dataclass(frozen=True)
class TableWork:
    """Any registered table row priced with an explicit set of factors."""

    section: str
    table_code: str
    criteria: Dict[str, str]
    quantity: float
    factors: Dict[str, float] = field(default_factory=dict)
    module: str = ""

    def __post_init__(self) -> None:
        _require_positive(self.quantity, "quantity")
        if not self.criteria:
            raise ValidationError("criteria must not be empty", "criteria")


def calculate_table_work(work: TableWork, handle: RegistryHandle, clock: Optional[Clock] = None) -> CalculationResult:
    table = handle.get_table(work.section, work.table_code)
    row = find_row(table, work.criteria)
    breakdown = compose_coefficients({BASE_FACTOR: 1.0, **work.factors})
    item = make_line_item(row, work.quantity, breakdown.total)
    metadata = CalculationMetadata(work.section, handle.version, work.module or table.family, timestamp(clock))
    return build_result(row.price_per_unit, [item], breakdown, metadata)


def base_amount(items) -> float:
    """Uncoefficiented cost of several lines, reported as the base of multi-line estimates."""

    if len(items) == 1:
        return items[0].unit_price
    amounts: List[float] = [price_line(item.unit_price, item.quantity, 1.0) for item in items]
    return float(sum(Decimal(repr(amount)) for amount in amounts))


CALCULATORS: Dict[type, Callable[..., CalculationResult]] = {
    InspectionWork: calculate_inspection,
    DrillingWork: calculate_drilling,
    FieldTestWork: calculate_field_test,
    LaboratoryWork: calculate_laboratory,
    TopographicSurveyWork: calculate_topographic_survey,
    LayoutWork: calculate_layout,
    DeformationMonitoringWork: calculate_deformation_monitoring,
    DepthSoundingWork: calculate_depth_sounding,
    WaterSamplingWork: calculate_water_sampling,
    MeteoObservationWork: calculate_meteo_observation,
    TableWork: calculate_table_work,
}


__all__ = [
    "CALCULATORS",
    "Clock",
    "DeformationMonitoringWork",
    "DepthSoundingWork",
    "DrillingWork",
    "FieldTestWork",
    "GeodeticConditions",
    "HydroConditions",
    "InspectionWork",
    "LabTest",
    "LaboratoryWork",
    "LayoutWork",
    "MeteoObservationWork",
    "SiteConditions",
    "TableWork",
    "TopographicSurveyWork",
    "WaterSample",
    "WaterSamplingWork",
    "base_amount",
    "calculate_deformation_monitoring",
    "calculate_depth_sounding",
    "calculate_drilling",
    "calculate_field_test",
    "calculate_inspection",
    "calculate_laboratory",
    "calculate_layout",
    "calculate_meteo_observation",
    "calculate_table_work",
    "calculate_topographic_survey",
    "calculate_water_sampling",
    "condition_factors",
    "drilling_factors",
    "inspection_table_code",
    "inspection_factors",
    "timestamp",
    "utc_now",
]
