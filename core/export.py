"""CSV export of the reporting view.

The document has two titled sections, ``=== DPC SUMMARY ===`` and
``=== DETAILED VISITS ===``, each a header row followed by data rows.

By default values are joined with bare commas, matching the format the field
team already imports. A name or note containing a comma will shift columns in
that layout; pass ``quote=True`` to get quoted CSV instead.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

import pandas as pd

SUMMARY_TITLE = "=== DPC SUMMARY ==="
DETAIL_TITLE = "=== DETAILED VISITS ==="

SUMMARY_COLUMNS = {
    "name": "DPC",
    "region": "Region",
    "scheduled_visits": "Visits Scheduled",
    "approved_visits": "Visits Completed",
    "percentage": "Visit % Achieved",
    "on_site_retailer": "On-Site Retailer",
    "on_site_corporate": "On-Site Corporate",
    "virtual": "Virtual",
    "onsite_zone": "Onsite Zone",
    "training": "Training/T3",
    "special_projects": "Special Projects",
    "pending_approval": "Pending Approval",
}

DETAIL_COLUMNS = {
    "dpc": "DPC",
    "created_by": "Created By",
    "date": "Date",
    "visit_type": "Visit Type",
    "retailer_name": "Retailer Name",
    "city": "City",
    "state": "State",
    "report_received": "Report Received",
    "received_date": "Received Date",
    "transportation": "Notes",
}


def export_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"DPC_Activity_Report_{today.isoformat()}.csv"


def _format_percentage(value: object) -> str:
    if value is None or pd.isna(value):
        return "N/A"
    return f"{int(value)}%"


def summary_table(performance_rows: List[Dict[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame(performance_rows, columns=list(SUMMARY_COLUMNS.keys()))
    df["percentage"] = df["percentage"].apply(_format_percentage)
    return df.rename(columns=SUMMARY_COLUMNS)


def detail_table(filtered: pd.DataFrame) -> pd.DataFrame:
    df = filtered.copy()
    if df.empty:
        return pd.DataFrame(columns=list(DETAIL_COLUMNS.values()))
    df["report_received"] = df["is_approved"].map({True: "Yes", False: "No"})
    return df[list(DETAIL_COLUMNS.keys())].fillna("").rename(columns=DETAIL_COLUMNS)


def _section(title: str, table: pd.DataFrame, *, quote: bool) -> List[str]:
    if quote:
        body = table.to_csv(index=False, lineterminator="\n").rstrip("\n")
        return [title, *body.split("\n")]
    lines = [title, ",".join(str(c) for c in table.columns)]
    for row in table.itertuples(index=False):
        lines.append(",".join("" if v is None else str(v) for v in row))
    return lines


def build_export_csv(performance_rows: List[Dict[str, Any]], filtered: pd.DataFrame, *, quote: bool = False) -> str:
    lines = _section(SUMMARY_TITLE, summary_table(performance_rows), quote=quote)
    lines.append("")
    lines.extend(_section(DETAIL_TITLE, detail_table(filtered), quote=quote))
    return "\n".join(lines)
