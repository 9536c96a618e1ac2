from datetime import date

import pytest

from core.app_state import (
    after_save,
    close_form,
    dismiss_toast,
    go_to_today,
    initial_state,
    navigate_calendar,
    open_new_visit,
    open_visit,
    set_calendar_view,
    set_report_filters,
    set_view,
)
from core.visit_form import FormResult


def test_transitions_return_new_state(rep, today):
    state = initial_state(rep, today)
    reports = set_view(state, "reports")
    assert reports.current_view == "reports"
    assert state.current_view == "calendar"
    with pytest.raises(ValueError):
        set_view(state, "settings")


def test_calendar_navigation(rep, today):
    state = initial_state(rep, today)
    assert navigate_calendar(state, 1).selected_date == date(2025, 7, 19)
    week = set_calendar_view(state, "week")
    assert navigate_calendar(week, -1).selected_date == date(2025, 6, 12)
    assert go_to_today(navigate_calendar(state, 3), today).selected_date == today


def test_report_filters_are_normalized(lead, today):
    state = set_report_filters(initial_state(lead, today), dpc="Manno, D", date_range="bogus")
    assert state.report_filters.dpc == "Manno, D"
    assert state.report_filters.date_range == "thisMonth"


def test_form_and_toasts(rep, today):
    state = open_new_visit(initial_state(rep, today), "2025-06-16")
    assert state.form.pre_selected_date == "2025-06-16"
    assert open_visit(state, 5).form.visit_id == 5

    saved = after_save(state, FormResult(ok=True, action="added"))
    assert saved.form is None
    assert saved.toasts[-1].message == "Visit added!"

    blocked = after_save(state, FormResult(ok=False, error="Visits cannot be scheduled on weekends (Saturday or Sunday)"))
    assert blocked.form is not None
    assert blocked.toasts[-1].type == "error"

    deleted = after_save(state, deleted_id=5)
    assert deleted.toasts[-1].message == "Visit deleted."
    assert dismiss_toast(deleted).toasts == ()
    assert close_form(state).form is None
