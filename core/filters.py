from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.visits import ROLE_DPC, ROLE_LEAD

DATE_RANGES = ("thisMonth", "lastMonth", "last3Months", "all")
APPROVAL_STATUSES = ("all", "approved", "pending")
ALL = "all"


@dataclass(frozen=True)
class UserContext:
    role: str = ROLE_DPC
    name: str = ""
    region: str = ""

    @property
    def is_lead(self) -> bool:
        return self.role == ROLE_LEAD

    @property
    def is_dpc(self) -> bool:
        return self.role == ROLE_DPC


@dataclass(frozen=True)
class ReportFilters:
    date_range: str = "thisMonth"
    dpc: str = ALL
    region: str = ALL
    visit_type: str = ALL
    approval_status: str = ALL


def _as_choice(value: object, choices, default: str) -> str:
    s = str(value).strip() if value is not None else ""
    return s if s in choices else default


def _as_selector(value: object) -> str:
    s = str(value).strip() if value is not None else ""
    return s or ALL


def normalize_filters(raw: Optional[dict]) -> ReportFilters:
    raw = raw or {}
    return ReportFilters(
        date_range=_as_choice(raw.get("date_range"), DATE_RANGES, "thisMonth"),
        dpc=_as_selector(raw.get("dpc")),
        region=_as_selector(raw.get("region")),
        visit_type=_as_selector(raw.get("visit_type")),
        approval_status=_as_choice(raw.get("approval_status"), APPROVAL_STATUSES, ALL),
    )


def normalize_user(raw: Optional[dict]) -> UserContext:
    raw = raw or {}
    role = _as_choice(raw.get("role"), (ROLE_LEAD, ROLE_DPC), ROLE_DPC)
    return UserContext(
        role=role,
        name=str(raw.get("name") or "").strip(),
        region=str(raw.get("region") or "").strip(),
    )
