from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Any, Dict, List, Optional

import pandas as pd

from core.config import settings
from core.data import VisitsInput, filter_date_range, frame_to_records, scope_to_user, visits_to_frame
from core.filters import ReportFilters, UserContext
from core.metrics_performance import average_percentage, goal_percentage
from core.visits import SCHEDULED_VISIT_TYPES, is_overdue, visit_label


def compute_report_summary(filtered: pd.DataFrame, performance_rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    approved = int(filtered["is_approved"].sum()) if not filtered.empty else 0
    return {
        "total_visits": int(len(filtered)),
        "approved_visits": approved,
        "pending_visits": int(len(filtered)) - approved,
        "average_goal_percentage": average_percentage(performance_rows),
    }


def compute_recent_visits(
    filtered: pd.DataFrame,
    user: UserContext,
    *,
    today: Optional[date] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Detail rows for the lead's recent-visit table; reps get none."""
    if not user.is_lead or filtered.empty:
        return []
    today = today or date.today()
    limit = settings.RECENT_VISITS_LIMIT if limit is None else limit
    rows = frame_to_records(filtered.head(limit))
    for row in rows:
        approved = bool(row["is_approved"])
        row["location"] = visit_label(row)
        row["status"] = "Report Received" if approved else "Pending Report"
        row["overdue"] = (not approved) and is_overdue(row, today)
    return rows


def compute_monthly_summary(
    visits: VisitsInput,
    user: UserContext,
    *,
    today: Optional[date] = None,
    required_visits: Optional[int] = None,
) -> Dict[str, Any]:
    """Current-month header stats for the signed-in user's scope."""
    today = today or date.today()
    required = settings.REQUIRED_MONTHLY_VISITS if required_visits is None else required_visits
    df = filter_date_range(scope_to_user(visits_to_frame(visits), user), "thisMonth", today)

    completed = int(df["is_approved"].sum()) if not df.empty else 0
    scheduled = int(df["visit_type"].isin(SCHEDULED_VISIT_TYPES).sum()) if not df.empty else 0
    return {
        "title": "My Monthly Summary" if user.is_dpc else "Monthly Summary",
        "month": today.strftime("%Y-%m"),
        "scheduled_visits": scheduled,
        "completed_visits": completed,
        "completion_percentage": goal_percentage(completed, required),
        "pending_visits": int(len(df)) - completed,
        "visits_left": max(required - completed, 0),
        "required_visits": required,
    }


def compute_overview(filters: ReportFilters, ctx: Dict[str, Any], performance_rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered_visits", pd.DataFrame())
    user: UserContext = ctx["user"]
    return {
        "filters": asdict(filters),
        "kpis": compute_report_summary(filtered, performance_rows),
        "recent_visits": compute_recent_visits(filtered, user, today=ctx.get("today")),
    }
