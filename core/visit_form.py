"""Create/edit controller for a single visit.

The form works on a detached copy of the record. Every field change goes
through ``derive_visit_fields`` so the working copy is always consistent:
``approved`` mirrors ``received_date``, the state code is at most two
characters, and retailer fields are blank for visit types that do not visit a
retailer.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd

from core.filters import UserContext
from core.visits import (
    RETAILER_FIELDS,
    Visit,
    VisitValidationError,
    check_visit,
    new_visit_id,
    parse_local_date,
    requires_retailer,
    validate_visit_date,
    visit_label,
)

EDITABLE_FIELDS = {
    "date",
    "retailer_code",
    "retailer_name",
    "city",
    "state",
    "visit_type",
    "transportation",
    "approved",
    "approval_date",
    "received_date",
}
COMPLETION_FIELDS = {"approved", "approval_date", "received_date"}
STATE_CODE_LENGTH = 2

RetailerLike = Union[Mapping[str, Any], pd.Series]


def derive_visit_fields(visit: Visit, changes: Optional[Mapping[str, Any]] = None, *, today: Optional[date] = None) -> Visit:
    changes = dict(changes or {})
    data = visit.to_dict()
    data.update(changes)

    received = str(data.get("received_date") or "").strip()
    if "approved" in changes and "received_date" not in changes:
        if changes["approved"] and not received:
            received = (today or date.today()).isoformat()
        elif not changes["approved"]:
            received = ""
    data["received_date"] = received
    data["approved"] = bool(received)

    data["state"] = str(data.get("state") or "")[:STATE_CODE_LENGTH]
    if not requires_retailer(data.get("visit_type", "")):
        for name in RETAILER_FIELDS:
            data[name] = ""
    return Visit.from_dict(data)


def search_retailers(retailers: pd.DataFrame, term: str) -> pd.DataFrame:
    """Case-insensitive match on name, code, or "city, state", sorted by name."""
    if retailers.empty:
        return retailers
    df = retailers.sort_values("name", key=lambda s: s.str.lower())
    q = (term or "").strip().lower()
    if not q:
        return df.reset_index(drop=True)
    city_state = (df["city"].astype(str) + ", " + df["state"].astype(str)).str.lower()
    mask = (
        df["name"].astype(str).str.lower().str.contains(q, regex=False, na=False)
        | df["code"].astype(str).str.lower().str.contains(q, regex=False, na=False)
        | city_state.str.contains(q, regex=False, na=False)
    )
    return df[mask].reset_index(drop=True)


def _display_date(value: str) -> str:
    try:
        d = parse_local_date(value)
    except ValueError:
        return value
    return f"{d.month}/{d.day}/{d.year}"


@dataclass(frozen=True)
class FormResult:
    ok: bool
    visit: Optional[Visit] = None
    action: str = ""
    error: str = ""


@dataclass(frozen=True)
class DeleteConfirmation:
    visit_id: int
    summary: Dict[str, str]
    message: str


@dataclass
class VisitForm:
    user: UserContext
    data: Visit
    original: Optional[Visit] = None
    date_error: str = ""
    search_term: str = ""
    status: str = "open"
    today: Optional[date] = None
    _pending_delete: Optional[DeleteConfirmation] = field(default=None, repr=False)

    @classmethod
    def new(cls, user: UserContext, pre_selected_date: Optional[str] = None, *, today: Optional[date] = None) -> "VisitForm":
        visit = Visit(
            id=new_visit_id(),
            dpc=user.name,
            region=user.region,
            created_by=user.name,
            date=pre_selected_date or (today or date.today()).isoformat(),
        )
        form = cls(user=user, data=visit, today=today)
        form.date_error = validate_visit_date(visit.date).error
        return form

    @classmethod
    def edit(cls, visit: Visit, user: UserContext, *, today: Optional[date] = None) -> "VisitForm":
        form = cls(user=user, data=replace(visit), original=visit, today=today)
        form.date_error = validate_visit_date(visit.date).error
        return form

    @property
    def state(self) -> str:
        return "editing" if self.original is not None else "new"

    @property
    def title(self) -> str:
        return "Edit Visit" if self.original is not None else "Add New Visit"

    @property
    def show_retailer_fields(self) -> bool:
        return requires_retailer(self.data.visit_type)

    @property
    def can_save(self) -> bool:
        return not self.date_error

    def update(self, **changes: Any) -> Visit:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable: {sorted(unknown)}")
        if COMPLETION_FIELDS & set(changes) and not self.user.is_lead:
            raise PermissionError("Only a lead can record a received report")
        self.data = derive_visit_fields(self.data, changes, today=self.today)
        if "date" in changes:
            self.date_error = validate_visit_date(self.data.date).error
        return self.data

    def set_date(self, value: str) -> Visit:
        return self.update(date=value)

    def set_visit_type(self, value: str) -> Visit:
        return self.update(visit_type=value)

    def set_received(self, value: Union[bool, str]) -> Visit:
        if isinstance(value, bool):
            return self.update(approved=value)
        return self.update(received_date=value)

    def retailer_matches(self, retailers: pd.DataFrame) -> pd.DataFrame:
        return search_retailers(retailers, self.search_term)

    def select_retailer(self, retailer: Optional[RetailerLike]) -> Visit:
        if retailer is None:
            return self.update(retailer_code="", retailer_name="", city="", state="")
        return self.update(
            retailer_code=str(retailer.get("code", "")),
            retailer_name=str(retailer.get("name", "")),
            city=str(retailer.get("city", "")),
            state=str(retailer.get("state", "")),
        )

    def selected_retailer(self, retailers: pd.DataFrame) -> Optional[Dict[str, Any]]:
        if not self.data.retailer_code or retailers.empty:
            return None
        match = retailers[retailers["code"] == self.data.retailer_code]
        return None if match.empty else match.iloc[0].to_dict()

    def submit(self) -> FormResult:
        self.date_error = validate_visit_date(self.data.date).error
        if self.date_error:
            return FormResult(ok=False, error=self.date_error)

        if self.original is not None:
            record = replace(self.data, id=self.original.id, created_by=self.original.created_by)
            action = "updated"
        else:
            record = replace(
                self.data,
                id=new_visit_id(),
                dpc=self.user.name,
                region=self.user.region,
                created_by=self.user.name,
            )
            action = "added"
        try:
            check_visit(record)
        except VisitValidationError as exc:
            return FormResult(ok=False, error=str(exc))
        self.status = "saved"
        return FormResult(ok=True, visit=record, action=action)

    def request_delete(self) -> DeleteConfirmation:
        if self.original is None:
            raise ValueError("Only a saved visit can be deleted")
        if not self.user.is_lead:
            raise PermissionError("Only a lead can delete visits")
        visit = self.original
        summary = {
            "dpc": visit.dpc,
            "date": _display_date(visit.date),
            "location": visit_label(visit),
            "type": visit.visit_type,
        }
        message = "\n".join(
            [
                "WARNING: You are about to permanently delete this visit:",
                "",
                f"DPC: {summary['dpc']}",
                f"Date: {summary['date']}",
                f"Location: {summary['location']}",
                f"Type: {summary['type']}",
                "",
                "This action CANNOT be undone. Are you sure you want to proceed?",
            ]
        )
        self._pending_delete = DeleteConfirmation(visit_id=visit.id, summary=summary, message=message)
        return self._pending_delete

    def confirm_delete(self, confirmed: bool) -> Optional[int]:
        pending = self._pending_delete
        self._pending_delete = None
        if pending is None or not confirmed:
            return None
        self.status = "deleted"
        return pending.visit_id

    def cancel(self) -> None:
        self._pending_delete = None
        self.status = "cancelled"

    def retailer_options(self, retailers: pd.DataFrame) -> List[Dict[str, Any]]:
        return self.retailer_matches(retailers).to_dict(orient="records")
