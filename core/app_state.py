"""Dashboard UI state as one immutable value with pure transitions."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import date
from typing import Optional, Tuple

from core.calendar_grid import View, navigate
from core.filters import ReportFilters, UserContext, normalize_filters
from core.visit_form import FormResult

VIEWS = ("calendar", "reports")
TOAST_TYPES = ("info", "success", "error")


@dataclass(frozen=True)
class Toast:
    message: str
    type: str = "info"


@dataclass(frozen=True)
class FormSlot:
    """Which visit form is open: a new visit (optionally for a date) or an existing id."""

    visit_id: Optional[int] = None
    pre_selected_date: Optional[str] = None


@dataclass(frozen=True)
class AppState:
    user: UserContext
    selected_date: date
    current_view: str = "calendar"
    calendar_view: View = "month"
    report_filters: ReportFilters = field(default_factory=ReportFilters)
    form: Optional[FormSlot] = None
    toasts: Tuple[Toast, ...] = ()


def initial_state(user: UserContext, today: Optional[date] = None) -> AppState:
    return AppState(user=user, selected_date=today or date.today())


def set_view(state: AppState, view: str) -> AppState:
    if view not in VIEWS:
        raise ValueError(f"Unknown view: {view}")
    return replace(state, current_view=view)


def set_calendar_view(state: AppState, view: View) -> AppState:
    if view not in ("month", "week"):
        raise ValueError(f"Unknown calendar view: {view}")
    return replace(state, calendar_view=view)


def select_date(state: AppState, selected: date) -> AppState:
    return replace(state, selected_date=selected)


def navigate_calendar(state: AppState, direction: int) -> AppState:
    return replace(state, selected_date=navigate(state.selected_date, state.calendar_view, direction))


def go_to_today(state: AppState, today: Optional[date] = None) -> AppState:
    return replace(state, selected_date=today or date.today())


def set_report_filters(state: AppState, **changes: str) -> AppState:
    raw = {**asdict(state.report_filters), **changes}
    return replace(state, report_filters=normalize_filters(raw))


def open_new_visit(state: AppState, pre_selected_date: Optional[str] = None) -> AppState:
    return replace(state, form=FormSlot(pre_selected_date=pre_selected_date))


def open_visit(state: AppState, visit_id: int) -> AppState:
    return replace(state, form=FormSlot(visit_id=visit_id))


def close_form(state: AppState) -> AppState:
    return replace(state, form=None)


def push_toast(state: AppState, message: str, type: str = "info") -> AppState:
    if type not in TOAST_TYPES:
        type = "info"
    return replace(state, toasts=state.toasts + (Toast(message, type),))


def dismiss_toast(state: AppState, index: int = 0) -> AppState:
    toasts = tuple(t for i, t in enumerate(state.toasts) if i != index)
    return replace(state, toasts=toasts)


def after_save(state: AppState, result: Optional[FormResult] = None, deleted_id: Optional[int] = None) -> AppState:
    """Close the form and queue the outcome toast once the store has been written."""
    if deleted_id is not None:
        return close_form(push_toast(state, "Visit deleted.", "success"))
    if result is None:
        return close_form(state)
    if not result.ok:
        return push_toast(state, result.error, "error")
    message = "Visit updated!" if result.action == "updated" else "Visit added!"
    return close_form(push_toast(state, message, "success"))
