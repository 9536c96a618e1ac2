from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

from core.charts import to_vega_spec
from core.data import VisitsInput, scope_to_user, visits_to_frame
from core.filters import ReportFilters, UserContext
from core.visits import SCHEDULED_VISIT_TYPES

# Approved-visit breakdown columns shown in the performance table.
BREAKDOWN_TYPES = {
    "on_site_retailer": "On-Site Retailer",
    "on_site_corporate": "On-Site Corporate",
    "virtual": "Virtual",
    "onsite_zone": "Onsite Zone",
    "training": "Training/T3",
    "special_projects": "Special Projects",
}

METRIC_COLUMNS = [
    "name",
    "region",
    "target",
    "total_visits",
    "scheduled_visits",
    "approved_visits",
    "percentage",
    *BREAKDOWN_TYPES.keys(),
    "pending_approval",
]


def goal_percentage(approved: int, target: object) -> Optional[int]:
    """round(approved / target * 100); ``None`` when there is no usable target."""
    try:
        target_value = float(target)
    except (TypeError, ValueError):
        return None
    if pd.isna(target_value) or target_value <= 0:
        return None
    return int(round(approved / target_value * 100))


def performance_tier(percentage: Optional[int]) -> str:
    if percentage is None:
        return "no_target"
    if percentage >= 100:
        return "on_target"
    if percentage >= 75:
        return "near_target"
    return "below_target"


def calculate_performance_metrics(visits: VisitsInput, roster: pd.DataFrame, user: UserContext) -> List[Dict[str, Any]]:
    """Per-rep metrics over the role-scoped, unfiltered visit collection."""
    df = scope_to_user(visits_to_frame(visits), user)
    rows: List[Dict[str, Any]] = []
    if roster is None or roster.empty:
        return rows

    for rep in roster.itertuples(index=False):
        rep_visits = df[df["dpc"] == rep.name]
        approved = rep_visits[rep_visits["is_approved"]]
        approved_types = approved["visit_type"].value_counts()
        approved_count = int(len(approved))
        row: Dict[str, Any] = {
            "name": rep.name,
            "region": rep.region,
            "target": int(rep.target),
            "total_visits": int(len(rep_visits)),
            "scheduled_visits": int(rep_visits["visit_type"].isin(SCHEDULED_VISIT_TYPES).sum()),
            "approved_visits": approved_count,
            "percentage": goal_percentage(approved_count, rep.target),
        }
        for key, visit_type in BREAKDOWN_TYPES.items():
            row[key] = int(approved_types.get(visit_type, 0))
        row["pending_approval"] = int(len(rep_visits)) - approved_count
        row["tier"] = performance_tier(row["percentage"])
        rows.append(row)
    return rows


def performance_frame(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame(columns=METRIC_COLUMNS + ["tier"])
    return pd.DataFrame(rows)


def average_percentage(rows: List[Dict[str, Any]]) -> Optional[int]:
    values = [r["percentage"] for r in rows if r.get("percentage") is not None]
    if not values:
        return None
    return int(round(sum(values) / len(values)))


def compute_performance(filters: ReportFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    scoped: pd.DataFrame = ctx.get("scoped_visits", pd.DataFrame())
    roster: pd.DataFrame = ctx.get("roster", pd.DataFrame())
    user: UserContext = ctx["user"]

    rows = calculate_performance_metrics(scoped, roster, user)
    if not rows:
        return {"filters": asdict(filters), "rows": [], "average_percentage": None, "charts": {}}

    chart_df = performance_frame(rows)[["name", "approved_visits", "target"]].melt(
        id_vars="name", var_name="measure", value_name="visits"
    )
    hover = alt.selection_point(fields=["name"], on="mouseover", empty="all")
    bars = (
        alt.Chart(chart_df)
        .mark_bar()
        .encode(
            x=alt.X("name:N", title="DPC", axis=alt.Axis(grid=False)),
            xOffset="measure:N",
            y=alt.Y("visits:Q", title="Visits", axis=alt.Axis(format="d", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color(
                "measure:N",
                title=None,
                scale=alt.Scale(domain=["approved_visits", "target"], range=["#3B82F6", "#E5E7EB"]),
            ),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.5)),
            tooltip=[
                alt.Tooltip("name:N", title="DPC"),
                alt.Tooltip("measure:N", title="Measure"),
                alt.Tooltip("visits:Q", title="Visits", format="d"),
            ],
        )
        .add_params(hover)
    )
    return {
        "filters": asdict(filters),
        "rows": rows,
        "average_percentage": average_percentage(rows),
        "charts": {"performance_vs_target": to_vega_spec(bars)},
    }
