import calendar
from datetime import date

import pytest

from core.calendar_grid import (
    build_calendar_grid,
    calendar_title,
    compute_calendar,
    handle_day_click,
    navigate,
    visits_for_cell,
)
from core.visits import WEEKEND_ERROR, sunday_weekday


@pytest.mark.parametrize(
    "reference",
    [date(2025, 6, 19), date(2025, 7, 4), date(2024, 2, 10), date(2025, 3, 31), date(2026, 11, 1)],
)
def test_month_grid_layout(reference):
    grid = build_calendar_grid(reference, "month")
    first_weekday = sunday_weekday(reference.replace(day=1))
    days_in_month = calendar.monthrange(reference.year, reference.month)[1]

    assert grid.leading_placeholders == first_weekday
    assert len(grid.cells) == first_weekday + days_in_month
    assert all(c is None for c in grid.cells[:first_weekday])
    real_cells = grid.cells[first_weekday:]
    for n, cell in enumerate(real_cells, start=1):
        assert cell.day == n
        assert cell.weekday == (first_weekday + n - 1) % 7


def test_month_grid_june_2025_has_no_padding():
    grid = build_calendar_grid(date(2025, 6, 19), "month")
    assert grid.leading_placeholders == 0
    assert len(grid.cells) == 30


@pytest.mark.parametrize("reference", [date(2025, 6, 18), date(2025, 6, 15), date(2025, 6, 21), date(2025, 1, 1)])
def test_week_grid_runs_sunday_to_saturday(reference):
    grid = build_calendar_grid(reference, "week")
    assert len(grid.cells) == 7
    assert grid.cells[0].weekday == 0
    assert grid.cells[-1].weekday == 6
    assert reference in [c.date for c in grid.cells]


def test_week_grid_crosses_year_boundary():
    grid = build_calendar_grid(date(2025, 1, 1), "week")
    assert grid.cells[0].date == date(2024, 12, 29)
    assert grid.cells[-1].date == date(2025, 1, 4)


def test_weekend_click_is_rejected_without_callback():
    grid = build_calendar_grid(date(2025, 6, 19), "month")
    calls = []
    saturday = grid.cells[6]
    sunday = grid.cells[0]
    for cell in (saturday, sunday):
        result = handle_day_click(cell, calls.append)
        assert not result.accepted
        assert result.message == WEEKEND_ERROR
    assert calls == []


def test_weekday_click_opens_create_flow():
    grid = build_calendar_grid(date(2025, 6, 19), "month")
    calls = []
    result = handle_day_click(grid.cells[15], calls.append)
    assert result.accepted
    assert calls == ["2025-06-16"]


def test_placeholder_click_is_ignored():
    grid = build_calendar_grid(date(2025, 7, 4), "month")
    calls = []
    assert handle_day_click(grid.cells[0], calls.append) is None
    assert calls == []


def test_visits_for_cell_scopes_reps(june_visits, rep, lead):
    grid = build_calendar_grid(date(2025, 6, 10), "month")
    june_10 = grid.cells[9]
    assert visits_for_cell(june_10, june_visits, rep) == []
    lead_visits = visits_for_cell(june_10, june_visits, lead)
    assert [v["dpc"] for v in lead_visits] == ["Gillman, T"]


def test_navigate_months_and_weeks():
    assert navigate(date(2025, 1, 31), "month", 1) == date(2025, 2, 28)
    assert navigate(date(2025, 1, 15), "month", -1) == date(2024, 12, 15)
    assert navigate(date(2025, 6, 19), "week", 1) == date(2025, 6, 26)
    assert navigate(date(2025, 6, 19), "week", -1) == date(2025, 6, 12)


def test_calendar_titles():
    assert calendar_title(date(2025, 6, 19), "month") == "June 2025"
    assert calendar_title(date(2025, 6, 19), "week") == "Week of Jun 15, 2025"


def test_compute_calendar_chips_and_overflow(make_visit, lead, today):
    visits = [make_visit(visit_date="2025-06-16", retailer_name=f"Store {i}") for i in range(4)]
    visits.append(make_visit(visit_date="2025-06-16", visit_type="PTO", received="2025-06-16"))

    month = compute_calendar(visits, lead, reference=today, view="month", today=today)
    cell = month["cells"][15]
    assert cell["date"] == "2025-06-16"
    assert len(cell["visits"]) == 2
    assert cell["more"] == 3
    assert cell["visits"][0]["label"] == "Store 0"
    assert month["cells"][18]["is_today"]
    assert month["cells"][14]["is_weekend"]

    week = compute_calendar(visits, lead, reference=today, view="week", today=today)
    monday = week["cells"][1]
    assert len(monday["visits"]) == 3
    assert monday["more"] == 2
    assert week["title"] == "Week of Jun 15, 2025"
