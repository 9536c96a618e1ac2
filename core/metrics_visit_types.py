from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import altair as alt
import pandas as pd

from core.charts import NEUTRAL_GRAY, fixed_color_scale, to_vega_spec
from core.filters import ReportFilters

VISIT_TYPE_COLORS = {
    "On-Site Retailer": "#3B82F6",
    "On-Site Corporate": "#10B981",
    "Virtual": "#8B5CF6",
    "Onsite Zone": "#F59E0B",
    "PTO": "#EF4444",
    "Home": "#6B7280",
    "Office": "#84CC16",
    "Special Projects": "#EC4899",
    "Training/T3": "#F97316",
    "Canceled": "#DC2626",
}


def visit_type_color(visit_type: str) -> str:
    return VISIT_TYPE_COLORS.get(visit_type, NEUTRAL_GRAY)


def compute_visit_type_distribution(filtered: pd.DataFrame) -> List[Dict[str, Any]]:
    """Approved visits per type, in first-seen order, with their display colors."""
    if filtered.empty:
        return []
    approved = filtered[filtered["is_approved"]]
    counts = approved["visit_type"].value_counts(sort=False)
    return [
        {"name": str(visit_type), "value": int(count), "color": visit_type_color(str(visit_type))}
        for visit_type, count in counts.items()
    ]


def compute_visit_types(filters: ReportFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered_visits", pd.DataFrame())
    distribution = compute_visit_type_distribution(filtered)
    if not distribution:
        return {"filters": asdict(filters), "distribution": [], "charts": {}}

    dist_df = pd.DataFrame(distribution)
    colors = {row["name"]: row["color"] for row in distribution}
    pie = (
        alt.Chart(dist_df)
        .mark_arc(innerRadius=40)
        .encode(
            theta=alt.Theta("value:Q"),
            color=alt.Color("name:N", title="Visit Type", scale=fixed_color_scale(colors)),
            tooltip=[
                alt.Tooltip("name:N", title="Visit Type"),
                alt.Tooltip("value:Q", title="Approved Visits", format="d"),
            ],
        )
    )
    return {
        "filters": asdict(filters),
        "distribution": distribution,
        "charts": {"visit_type_distribution": to_vega_spec(pie)},
    }
