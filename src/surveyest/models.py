from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .errors import ValidationError

WORK_CATEGORIES: Tuple[str, ...] = ("mandatory", "recommended", "optional")
WORK_MODULES: Tuple[str, ...] = ("geological", "geodetic", "hydrographic", "inspection")


@dataclass(frozen=True)
class PriceTableRow:
    """One priced row of a normative table."""

    code: str
    work_type: str
    unit: str
    price_per_unit: float
    criteria: Dict[str, str] = field(default_factory=dict)
    description: str = ""

    def matches(self, criteria: Dict[str, object]) -> bool:
        return all(self.criteria.get(key) == value for key, value in criteria.items())


@dataclass(frozen=True)
class PriceTable:
    section: str
    code: str
    version: str
    family: str
    criteria_fields: Tuple[str, ...]
    rows: Tuple[PriceTableRow, ...]

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class ThresholdScale:
    """Stepwise factor keyed by a quantity (volume, depth, sample count)."""

    steps: Tuple[Tuple[float, float], ...]
    default: float = 1.0
    inclusive: bool = False
    applies_up_to: Optional[float] = None

    def lookup(self, value: float) -> Optional[float]:
        if self.applies_up_to is not None and value > self.applies_up_to:
            return None
        for bound, factor in self.steps:
            if (value <= bound) if self.inclusive else (value < bound):
                return factor
        return self.default


@dataclass(frozen=True)
class CoefficientSet:
    """Situational multipliers of one normative section."""

    section: str
    version: str
    flags: Dict[str, float] = field(default_factory=dict)
    bands: Dict[str, Dict[str, float]] = field(default_factory=dict)
    thresholds: Dict[str, ThresholdScale] = field(default_factory=dict)
    title: str = ""

    def flag(self, name: str) -> Optional[float]:
        return self.flags.get(name)

    def band(self, name: str, key: object) -> Optional[float]:
        return self.bands.get(name, {}).get(str(key))

    def threshold(self, name: str, value: float) -> Optional[float]:
        scale = self.thresholds.get(name)
        if scale is None:
            return None
        return scale.lookup(value)


@dataclass(frozen=True)
class PriceReference:
    """Pointer from a work item to the table row that prices it."""

    section: str
    table_code: str
    criteria: Dict[str, str] = field(default_factory=dict)
    quantity: Optional[float] = None
    factors: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class WorkItem:
    """A single required unit of survey work, identified by ``work_id``."""

    work_id: str
    name: str
    quantity: float
    unit: str
    category: str
    module: str
    normative_base: str = ""
    description: str = ""
    priority_level: str = ""
    tags: Tuple[str, ...] = ()
    price_ref: Optional[PriceReference] = None
    selected: Optional[bool] = None

    def __post_init__(self) -> None:
        if self.category not in WORK_CATEGORIES:
            raise ValidationError(f"Unknown work category {self.category!r} for {self.work_id}", "category")
        if self.module not in WORK_MODULES:
            raise ValidationError(f"Unknown survey module {self.module!r} for {self.work_id}", "module")

    @property
    def is_selected(self) -> bool:
        if self.selected is None:
            return self.category == "mandatory"
        return self.selected


@dataclass(frozen=True)
class EstimateLineItem:
    code: str
    work_type: str
    unit: str
    quantity: float
    unit_price: float
    coefficient: float
    cost: float


@dataclass(frozen=True)
class CalculationMetadata:
    section: str
    norm_version: str
    module: str
    calculated_at: str


@dataclass(frozen=True)
class CalculationResult:
    """Priced estimate: line items, coefficient breakdown and authoritative total."""

    base_price: float
    items: Tuple[EstimateLineItem, ...]
    coefficients: Dict[str, float]
    total_cost: float
    metadata: CalculationMetadata


@dataclass(frozen=True)
class AppliedBlock:
    block_id: str
    variant_id: str
    normative: str = ""
    alternatives: int = 0


@dataclass(frozen=True)
class AssignmentStatistics:
    total: int
    selected: int
    mandatory: int
    recommended: int
    optional: int
    completeness: int
    by_module: Dict[str, int] = field(default_factory=dict)
    volume_totals: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class PricingConditions:
    """Project conditions that raise the price of every priced work."""

    season: Optional[str] = None
    seismicity: Optional[int] = None
    special_soils: Tuple[str, ...] = ()
    hazards: Tuple[str, ...] = ()
    aggressive_groundwater: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "special_soils", tuple(self.special_soils))
        object.__setattr__(self, "hazards", tuple(self.hazards))

    @property
    def is_neutral(self) -> bool:
        return not (self.season or self.seismicity or self.special_soils or self.hazards or self.aggressive_groundwater)


@dataclass(frozen=True)
class TechnicalAssignment:
    """Deduplicated, grouped set of required works for one project."""

    project_name: str
    works: Tuple[WorkItem, ...]
    by_category: Dict[str, Tuple[str, ...]]
    by_module: Dict[str, Tuple[str, ...]]
    statistics: AssignmentStatistics
    warnings: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()
    applied_blocks: Tuple[AppliedBlock, ...] = ()
    rule_set_version: str = ""
    conditions: PricingConditions = field(default_factory=PricingConditions)

    def get(self, work_id: str) -> Optional[WorkItem]:
        for work in self.works:
            if work.work_id == work_id:
                return work
        return None


__all__ = [
    "WORK_CATEGORIES",
    "WORK_MODULES",
    "PriceTableRow",
    "PriceTable",
    "ThresholdScale",
    "CoefficientSet",
    "PriceReference",
    "WorkItem",
    "EstimateLineItem",
    "CalculationMetadata",
    "CalculationResult",
    "AppliedBlock",
    "AssignmentStatistics",
    "PricingConditions",
    "TechnicalAssignment",
]
