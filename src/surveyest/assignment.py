"""Deduplication, grouping and statistics for the works of a technical assignment."""
from __future__ import annotations

import logging
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .models import (
    WORK_CATEGORIES,
    AppliedBlock,
    AssignmentStatistics,
    PricingConditions,
    TechnicalAssignment,
    WorkItem,
)

LOGGER = logging.getLogger(__name__)


def deduplicate(work_items: Iterable[WorkItem]) -> Tuple[List[WorkItem], int]:
    """Keep the first occurrence of every ``work_id``; later ones are dropped, not merged."""

    seen = set()
    kept: List[WorkItem] = []
    dropped = 0
    for work in work_items:
        if work.work_id in seen:
            dropped += 1
            LOGGER.debug("Dropping duplicate work %s (%s)", work.work_id, work.normative_base or "no reference")
            continue
        seen.add(work.work_id)
        kept.append(work)
    return kept, dropped


def _group(works: Sequence[WorkItem], attribute: str, order: Sequence[str] = ()) -> Dict[str, Tuple[str, ...]]:
    groups: Dict[str, List[str]] = {key: [] for key in order}
    for work in works:
        groups.setdefault(getattr(work, attribute), []).append(work.work_id)
    return {key: tuple(ids) for key, ids in groups.items()}


def _completeness(selected: int, total: int) -> int:
    if total == 0:
        return 0
    ratio = Decimal(selected) * 100 / Decimal(total)
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def compute_statistics(works: Sequence[WorkItem]) -> AssignmentStatistics:
    """
    Count works per category and module and sum their volumes per unit.

    Notes
    -----
    ``completeness`` is the share of selected works in percent, rounded half-up
    to an integer; an empty assignment reports 0.
    """

    works = list(works)
    frame = pd.DataFrame(
        [
            {
                "work_id": work.work_id,
                "category": work.category,
                "module": work.module,
                "unit": work.unit,
                "quantity": float(work.quantity),
                "selected": work.is_selected,
            }
            for work in works
        ],
        columns=["work_id", "category", "module", "unit", "quantity", "selected"],
    )
    by_category = frame["category"].value_counts().to_dict()
    by_module = {str(key): int(value) for key, value in frame["module"].value_counts().sort_index().items()}
    volume_totals = {
        str(unit): float(total) for unit, total in frame.groupby("unit", sort=True)["quantity"].sum().items()
    }
    total = len(works)
    selected = int(frame["selected"].sum()) if total else 0
    return AssignmentStatistics(
        total=total,
        selected=selected,
        mandatory=int(by_category.get("mandatory", 0)),
        recommended=int(by_category.get("recommended", 0)),
        optional=int(by_category.get("optional", 0)),
        completeness=_completeness(selected, total),
        by_module=by_module,
        volume_totals=volume_totals,
    )


def aggregate(
    work_items: Iterable[WorkItem],
    project_name: str = "",
    warnings: Sequence[str] = (),
    recommendations: Sequence[str] = (),
    applied_blocks: Sequence[AppliedBlock] = (),
    rule_set_version: str = "",
    conditions: Optional[PricingConditions] = None,
) -> TechnicalAssignment:
    """
    Build a :class:`TechnicalAssignment` from possibly duplicated work items.

    Aggregating the works of an existing assignment again yields the same
    assignment.
    """

    works, dropped = deduplicate(work_items)
    if dropped:
        LOGGER.info("Dropped %d duplicate work item(s) for %s", dropped, project_name or "project")
    return TechnicalAssignment(
        project_name=project_name,
        works=tuple(works),
        by_category=_group(works, "category", WORK_CATEGORIES),
        by_module=_group(works, "module"),
        statistics=compute_statistics(works),
        warnings=tuple(warnings),
        recommendations=tuple(recommendations),
        applied_blocks=tuple(applied_blocks),
        rule_set_version=rule_set_version,
        conditions=conditions or PricingConditions(),
    )


def select_works(assignment: TechnicalAssignment, work_ids: Iterable[str], selected: bool = True) -> TechnicalAssignment:
    """Return a copy of ``assignment`` with the selection flag of ``work_ids`` set."""

    wanted = set(work_ids)
    unknown = sorted(wanted - {work.work_id for work in assignment.works})
    if unknown:
        LOGGER.warning("Ignoring unknown work ids: %s", ", ".join(unknown))
    works = tuple(
        replace(work, selected=selected) if work.work_id in wanted else work for work in assignment.works
    )
    return replace(assignment, works=works, statistics=compute_statistics(works))


__all__ = ["aggregate", "compute_statistics", "deduplicate", "select_works"]
