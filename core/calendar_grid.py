"""Month and week calendar grids for the visit calendar.

Weeks start on Sunday. Month grids begin with ``None`` placeholders so the
first day lands in its weekday column; there is no trailing padding.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence

from core.data import VisitsInput, frame_to_records, scope_to_user, visits_to_frame
from core.filters import UserContext
from core.visits import WEEKEND_ERROR, is_approved, is_weekend, sunday_weekday, visit_label

View = Literal["month", "week"]

WEEKDAY_HEADERS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
VISIBLE_VISITS = {"month": 2, "week": 3}


@dataclass(frozen=True)
class CalendarCell:
    day: int
    month: int
    year: int
    date: date

    @property
    def weekday(self) -> int:
        return sunday_weekday(self.date)

    @property
    def is_weekend(self) -> bool:
        return is_weekend(self.date)

    @property
    def iso(self) -> str:
        return self.date.isoformat()


@dataclass(frozen=True)
class DayClickResult:
    accepted: bool
    date: str
    message: str = ""


@dataclass
class CalendarGrid:
    view: View
    reference: date
    start: date
    cells: List[Optional[CalendarCell]] = field(default_factory=list)

    @property
    def leading_placeholders(self) -> int:
        return sum(1 for c in self.cells if c is None)


def _cell(d: date) -> CalendarCell:
    return CalendarCell(day=d.day, month=d.month, year=d.year, date=d)


def week_start(reference: date) -> date:
    return reference - timedelta(days=sunday_weekday(reference))


def build_calendar_grid(reference: date, view: View = "month") -> CalendarGrid:
    if view == "week":
        start = week_start(reference)
        cells: List[Optional[CalendarCell]] = [_cell(start + timedelta(days=i)) for i in range(7)]
        return CalendarGrid(view="week", reference=reference, start=start, cells=cells)

    first = reference.replace(day=1)
    days_in_month = calendar.monthrange(first.year, first.month)[1]
    cells = [None] * sunday_weekday(first)
    cells.extend(_cell(first.replace(day=day)) for day in range(1, days_in_month + 1))
    return CalendarGrid(view="month", reference=reference, start=first, cells=cells)


def visits_for_cell(cell: Optional[CalendarCell], visits: VisitsInput, user: UserContext) -> List[Dict[str, Any]]:
    if cell is None:
        return []
    df = scope_to_user(visits_to_frame(visits), user)
    if df.empty:
        return []
    return frame_to_records(df[df["visit_date"].apply(lambda d: d == cell.date).astype(bool)])


def handle_day_click(cell: Optional[CalendarCell], on_create: Callable[[str], Any]) -> Optional[DayClickResult]:
    """Open the create-visit flow for a weekday; weekends are rejected with a message."""
    if cell is None:
        return None
    if cell.is_weekend:
        return DayClickResult(accepted=False, date=cell.iso, message=WEEKEND_ERROR)
    on_create(cell.iso)
    return DayClickResult(accepted=True, date=cell.iso)


def navigate(reference: date, view: View, direction: int) -> date:
    if view == "week":
        return reference + timedelta(days=7 * direction)
    month_index = reference.year * 12 + (reference.month - 1) + direction
    year, month = divmod(month_index, 12)
    month += 1
    day = min(reference.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def calendar_title(reference: date, view: View) -> str:
    if view == "week":
        start = week_start(reference)
        return f"Week of {start.strftime('%b')} {start.day}, {start.year}"
    return reference.strftime("%B %Y")


def compute_calendar(
    visits: VisitsInput,
    user: UserContext,
    *,
    reference: Optional[date] = None,
    view: View = "month",
    today: Optional[date] = None,
) -> Dict[str, Any]:
    today = today or date.today()
    reference = reference or today
    grid = build_calendar_grid(reference, view)
    scoped = scope_to_user(visits_to_frame(visits), user)
    by_date: Dict[date, List[Dict[str, Any]]] = {}
    for record, visit_date in zip(frame_to_records(scoped), scoped["visit_date"].tolist()):
        if visit_date is not None:
            by_date.setdefault(visit_date, []).append(record)

    limit = VISIBLE_VISITS[grid.view]
    cells: List[Optional[Dict[str, Any]]] = []
    for cell in grid.cells:
        if cell is None:
            cells.append(None)
            continue
        day_visits: Sequence[Dict[str, Any]] = by_date.get(cell.date, [])
        cells.append(
            {
                "day": cell.day,
                "month": cell.month,
                "year": cell.year,
                "date": cell.iso,
                "weekday": cell.weekday,
                "is_weekend": cell.is_weekend,
                "is_today": cell.date == today,
                "visits": [
                    {
                        "id": v["id"],
                        "label": visit_label(v),
                        "visit_type": v["visit_type"],
                        "status": "approved" if is_approved(v) else "pending",
                    }
                    for v in day_visits[:limit]
                ],
                "more": max(len(day_visits) - limit, 0),
            }
        )
    return {
        "view": grid.view,
        "reference": reference.isoformat(),
        "title": calendar_title(reference, grid.view),
        "weekdays": WEEKDAY_HEADERS,
        "cells": cells,
    }
