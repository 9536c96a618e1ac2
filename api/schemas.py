from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class ReportFiltersModel(BaseModel):
    date_range: Literal["thisMonth", "lastMonth", "last3Months", "all"] = "thisMonth"
    dpc: str = "all"
    region: str = "all"
    visit_type: str = "all"
    approval_status: Literal["all", "approved", "pending"] = "all"


class VisitIn(BaseModel):
    date: Optional[str] = None
    visit_type: Optional[str] = None
    retailer_code: Optional[str] = None
    retailer_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    transportation: Optional[str] = None
    received_date: Optional[str] = None
    approval_date: Optional[str] = None
    approved: Optional[bool] = None


class VisitOut(BaseModel):
    id: int
    dpc: str
    region: str
    created_by: str
    date: str
    retailer_code: str = ""
    retailer_name: str = ""
    city: str = ""
    state: str = ""
    visit_type: str
    approved: bool = False
    approval_date: str = ""
    received_date: str = ""
    transportation: str = ""
    is_approved: bool = False


class RetailerOut(BaseModel):
    code: str
    name: str
    city: str
    state: str


class RosterEntry(BaseModel):
    name: str
    region: str
    target: int


class RetailersResponse(BaseModel):
    retailers: List[RetailerOut]


class RosterResponse(BaseModel):
    roster: List[RosterEntry]


class DeleteResponse(BaseModel):
    deleted: int
    message: str = "Visit deleted."
    summary: dict = Field(default_factory=dict)
