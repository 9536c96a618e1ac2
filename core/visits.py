from __future__ import annotations

import time
from dataclasses import asdict, dataclass, fields
from datetime import date, timedelta
from typing import Any, Dict, Mapping, NamedTuple, Optional, Union

import pandas as pd

VISIT_TYPES = [
    "On-Site Retailer",
    "On-Site Corporate",
    "Virtual",
    "Onsite Zone",
    "PTO",
    "Home",
    "Office",
    "Special Projects",
    "Training/T3",
    "Canceled",
]
DEFAULT_VISIT_TYPE = "On-Site Retailer"

# Types counted toward the monthly scheduling quota.
SCHEDULED_VISIT_TYPES = ["On-Site Retailer", "On-Site Corporate", "Virtual", "Onsite Zone"]
NON_RETAILER_VISIT_TYPES = ["Home", "Office", "PTO", "Special Projects", "Training/T3"]
RETAILER_FIELDS = ("retailer_code", "retailer_name", "city", "state")

WEEKEND_ERROR = "Visits cannot be scheduled on weekends (Saturday or Sunday)"
OVERDUE_GRACE_BUSINESS_DAYS = 2

ROLE_LEAD = "lead"
ROLE_DPC = "dpc"

# Stored documents written by the browser client used camelCase keys.
_CAMEL_ALIASES = {
    "createdBy": "created_by",
    "retailerCode": "retailer_code",
    "retailerName": "retailer_name",
    "visitType": "visit_type",
    "approvalDate": "approval_date",
    "receivedDate": "received_date",
}


class VisitValidationError(ValueError):
    """A visit record breaks a scheduling or field rule."""


class VisitNotFoundError(LookupError):
    pass


@dataclass
class Visit:
    id: int
    dpc: str
    region: str
    created_by: str
    date: str
    retailer_code: str = ""
    retailer_name: str = ""
    city: str = ""
    state: str = ""
    visit_type: str = DEFAULT_VISIT_TYPE
    approved: bool = False
    approval_date: str = ""
    received_date: str = ""
    transportation: str = ""

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Visit":
        known = {f.name for f in fields(cls)}
        data: Dict[str, Any] = {}
        for key, value in raw.items():
            key = _CAMEL_ALIASES.get(key, key)
            if key in known:
                data[key] = value
        for name in ("dpc", "region", "created_by", "date", *RETAILER_FIELDS, "approval_date", "received_date", "transportation"):
            data[name] = _as_text(data.get(name))
        data["id"] = int(data.get("id") or new_visit_id())
        data["visit_type"] = _as_text(data.get("visit_type")) or DEFAULT_VISIT_TYPE
        data["approved"] = bool(data.get("approved", False))
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DateValidation(NamedTuple):
    is_valid: bool
    error: str = ""


VisitLike = Union[Visit, Mapping[str, Any], pd.Series]


def _as_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    return str(value)


def _field(visit: VisitLike, name: str) -> Any:
    if isinstance(visit, Visit):
        return getattr(visit, name)
    return visit.get(name)


def new_visit_id() -> int:
    return int(time.time() * 1000)


def parse_local_date(value: str) -> date:
    """Parse ``YYYY-MM-DD`` into a calendar date without any timezone shift."""
    parts = str(value).strip().split("-")
    if len(parts) != 3:
        raise ValueError(f"Invalid visit date: {value!r}")
    year, month, day = (int(p) for p in parts)
    return date(year, month, day)


def sunday_weekday(d: date) -> int:
    """Weekday index in a Sunday-first week (Sunday=0 .. Saturday=6)."""
    return (d.weekday() + 1) % 7


def is_weekend(d: date) -> bool:
    return d.weekday() >= 5


def is_approved(visit: VisitLike) -> bool:
    return bool(_as_text(_field(visit, "received_date")).strip())


def is_overdue(visit: VisitLike, today: Optional[date] = None) -> bool:
    """Pending visits get a grace period of two business days after the visit date."""
    if is_approved(visit):
        return False
    today = today or date.today()
    try:
        cursor = parse_local_date(_field(visit, "date")) + timedelta(days=1)
    except ValueError:
        return False
    business_days = 0
    while cursor <= today:
        if not is_weekend(cursor):
            business_days += 1
        cursor += timedelta(days=1)
    return business_days >= OVERDUE_GRACE_BUSINESS_DAYS


def validate_visit_date(value: Optional[str]) -> DateValidation:
    if not value or not str(value).strip():
        return DateValidation(True)
    try:
        parsed = parse_local_date(value)
    except ValueError:
        return DateValidation(False, "Visit date must use the YYYY-MM-DD format")
    if is_weekend(parsed):
        return DateValidation(False, WEEKEND_ERROR)
    return DateValidation(True)


def requires_retailer(visit_type: str) -> bool:
    return visit_type not in NON_RETAILER_VISIT_TYPES


def is_scheduled_type(visit_type: str) -> bool:
    return visit_type in SCHEDULED_VISIT_TYPES


def visit_label(visit: VisitLike) -> str:
    visit_type = _as_text(_field(visit, "visit_type"))
    if not requires_retailer(visit_type):
        return visit_type
    return _as_text(_field(visit, "retailer_name")) or visit_type


def check_visit(visit: Visit) -> Visit:
    """Raise ``VisitValidationError`` when a record cannot be saved."""
    if visit.visit_type not in VISIT_TYPES:
        raise VisitValidationError(f"Unknown visit type: {visit.visit_type}")
    validation = validate_visit_date(visit.date)
    if not validation.is_valid:
        raise VisitValidationError(validation.error)
    if not visit.date.strip():
        raise VisitValidationError("Visit date is required")
    return visit
