"""Unit price lookup, coefficient composition and cost rounding.

All arithmetic goes through :class:`decimal.Decimal` built from the shortest
``repr`` of each float, so products are exact and independent of the order in
which factors are supplied.  Costs are rounded half-up to whole cents.
"""
from __future__ import annotations

import logging
import math
import numbers
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Dict, Mapping, Optional, Sequence, Union

from .errors import PriceNotFoundError, ValidationError
from .models import CalculationMetadata, CalculationResult, EstimateLineItem, PriceTable, PriceTableRow
from .norms.criteria import normalize_criteria, unknown_fields

LOGGER = logging.getLogger(__name__)

BASE_FACTOR = "base"
LOOKUP_FOUND = "found"
LOOKUP_NOT_FOUND = "not_found"
LOOKUP_INVALID = "invalid"

_CENT = Decimal("0.01")
_PRECISION = 60


@dataclass(frozen=True)
class LookupResult:
    """Outcome of matching criteria against a table; "not found" is not an error here."""

    status: str
    criteria: Dict[str, object]
    row: Optional[PriceTableRow] = None
    reason: str = ""

    @property
    def found(self) -> bool:
        return self.status == LOOKUP_FOUND


@dataclass(frozen=True)
class CoefficientBreakdown:
    total: float
    per_factor: Dict[str, float] = field(default_factory=dict)


def _decimal(value: object, name: str = "value") -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (numbers.Real, Decimal)):
        raise ValidationError(f"{name} must be a number, got {value!r}", name)
    if isinstance(value, Decimal):
        return value
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be finite, got {value!r}", name)
    if isinstance(value, numbers.Integral):
        return Decimal(int(value))
    return Decimal(repr(float(value)))


def lookup_row(table: PriceTable, criteria: Mapping[str, object]) -> LookupResult:
    wanted = normalize_criteria(criteria)
    unknown = unknown_fields(table.family, wanted)
    if unknown:
        return LookupResult(LOOKUP_INVALID, wanted, reason=f"unknown criteria fields {list(unknown)}")
    matches = [row for row in table.rows if row.matches(wanted)]
    if not matches:
        return LookupResult(LOOKUP_NOT_FOUND, wanted, reason="no matching row")
    if len(matches) > 1:
        codes = [row.code for row in matches]
        return LookupResult(LOOKUP_INVALID, wanted, reason=f"criteria match several rows {codes}")
    return LookupResult(LOOKUP_FOUND, wanted, row=matches[0])


def find_row(table: PriceTable, criteria: Mapping[str, object]) -> PriceTableRow:
    result = lookup_row(table, criteria)
    if result.row is None:
        raise PriceNotFoundError(result.criteria, table.code, result.reason)
    return result.row


def find_unit_price(table: PriceTable, criteria: Mapping[str, object]) -> float:
    """
    Return the unit price of the single row matching ``criteria``.

    Raises
    ------
    PriceNotFoundError
        When no row matches, when several rows match, or when a key is not a
        classification field of the table.  The exception carries the exact
        criteria mapping.
    """

    return find_row(table, criteria).price_per_unit


def compose_coefficients(factors: Mapping[str, float]) -> CoefficientBreakdown:
    """Multiply situational factors; ``base`` is recorded as 1.0 and never multiplied."""

    per_factor: Dict[str, float] = {}
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        total = Decimal(1)
        for name, value in factors.items():
            if name == BASE_FACTOR:
                per_factor[name] = 1.0
                continue
            number = _decimal(value, name)
            if number <= 0:
                raise ValidationError(f"Coefficient {name} must be positive, got {value!r}", name)
            per_factor[name] = float(value)
            total *= number
    return CoefficientBreakdown(total=float(total), per_factor=per_factor)


def price_line(unit_price: float, quantity: float, coefficient: float) -> float:
    price = _decimal(unit_price, "unit_price")
    amount = _decimal(quantity, "quantity")
    factor = _decimal(coefficient, "coefficient")
    if price < 0 or amount < 0 or factor <= 0:
        raise ValidationError(
            f"Cannot price line: unit_price={unit_price!r}, quantity={quantity!r}, coefficient={coefficient!r}"
        )
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        cost = (price * amount * factor).quantize(_CENT, rounding=ROUND_HALF_UP)
    return float(cost)


def make_line_item(row: PriceTableRow, quantity: float, coefficient: float) -> EstimateLineItem:
    return EstimateLineItem(
        code=row.code,
        work_type=row.work_type,
        unit=row.unit,
        quantity=float(quantity),
        unit_price=row.price_per_unit,
        coefficient=float(coefficient),
        cost=price_line(row.price_per_unit, quantity, coefficient),
    )


def build_result(
    base_price: float,
    line_items: Sequence[EstimateLineItem],
    coefficients: Union[CoefficientBreakdown, Mapping[str, float]],
    metadata: CalculationMetadata,
) -> CalculationResult:
    """Assemble a :class:`CalculationResult`; the total is the sum of line costs."""

    breakdown = coefficients.per_factor if isinstance(coefficients, CoefficientBreakdown) else coefficients
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        total = sum((_decimal(item.cost, "cost") for item in line_items), Decimal(0))
    return CalculationResult(
        base_price=float(base_price),
        items=tuple(line_items),
        coefficients=dict(breakdown),
        total_cost=float(total.quantize(_CENT, rounding=ROUND_HALF_UP)),
        metadata=metadata,
    )


__all__ = [
    "BASE_FACTOR",
    "LOOKUP_FOUND",
    "LOOKUP_NOT_FOUND",
    "LOOKUP_INVALID",
    "LookupResult",
    "CoefficientBreakdown",
    "lookup_row",
    "find_row",
    "find_unit_price",
    "compose_coefficients",
    "price_line",
    "make_line_item",
    "build_result",
]
