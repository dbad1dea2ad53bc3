import numpy as np
import pandas as pd

from .models import CalculationResult, TechnicalAssignment


def items_frame(result: CalculationResult) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "CODE": item.code,
                "WORK_TYPE": item.work_type,
                "UNIT": item.unit,
                "QUANTITY": item.quantity,
                "UNIT_PRICE": item.unit_price,
                "COEFFICIENT": item.coefficient,
                "COST": item.cost,
            }
            for item in result.items
        ],
        columns=["CODE", "WORK_TYPE", "UNIT", "QUANTITY", "UNIT_PRICE", "COEFFICIENT", "COST"],
    )


def make_summary_text(result: CalculationResult) -> str:
    items_df = items_frame(result)
    total = items_df["COST"].sum()
    if np.isclose(total, 0.0):
        items_df["SHARE_PCT"] = np.nan
    else:
        items_df["SHARE_PCT"] = (items_df["COST"] / total * 100).round(1)
    top = items_df.sort_values("COST", ascending=False).head(5)[
        ["CODE", "WORK_TYPE", "QUANTITY", "UNIT_PRICE", "COST", "SHARE_PCT"]
    ]
    factors = ", ".join(f"{name}={value:g}" for name, value in result.coefficients.items()) or "none"
    return (
        f"Estimate total: {result.total_cost:,.2f} ({len(items_df)} line(s), base {result.base_price:,.2f}).\n"
        f"Top cost drivers:\n{top.to_string(index=False) if not top.empty else '(no priced lines)'}\n"
        f"Coefficients: {factors}.\n"
        f"Norm version {result.metadata.norm_version}, section {result.metadata.section or '-'}.\n"
    )


def make_assignment_summary(assignment: TechnicalAssignment) -> str:
    works_df = pd.DataFrame(
        [{"CATEGORY": work.category, "MODULE": work.module} for work in assignment.works],
        columns=["CATEGORY", "MODULE"],
    )
    counts = works_df.groupby(["CATEGORY", "MODULE"]).size().rename("WORKS").reset_index()
    stats = assignment.statistics
    return (
        f"Technical assignment for {assignment.project_name}: {stats.total} work(s), "
        f"{stats.selected} selected ({stats.completeness}%).\n"
        f"{counts.to_string(index=False) if not counts.empty else '(no works)'}\n"
        f"Warnings: {len(assignment.warnings)}, recommendations: {len(assignment.recommendations)}.\n"
    )
