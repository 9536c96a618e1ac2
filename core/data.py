from __future__ import annotations

import json
import logging
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from core.config import settings
from core.filters import ALL, ReportFilters, UserContext, normalize_filters
from core.visits import Visit, is_approved, parse_local_date

logger = logging.getLogger(__name__)

DATA_DIR = Path(settings.DATA_DIR)
RETAILERS_PATH = DATA_DIR / "retailers.csv"
ROSTER_PATH = DATA_DIR / "roster.csv"
SEED_VISITS_PATH = DATA_DIR / "seed_visits.json"

VISIT_COLUMNS = [
    "id",
    "dpc",
    "region",
    "created_by",
    "date",
    "retailer_code",
    "retailer_name",
    "city",
    "state",
    "visit_type",
    "approved",
    "approval_date",
    "received_date",
    "transportation",
]
TEXT_COLUMNS = [c for c in VISIT_COLUMNS if c not in {"id", "approved"}]

RETAILER_COLUMNS = {
    "code": "code",
    "retailer code": "code",
    "retailer_code": "code",
    "name": "name",
    "retailer name": "name",
    "retailer_name": "name",
    "city": "city",
    "state": "state",
}
ROSTER_COLUMNS = {
    "name": "name",
    "dpc": "name",
    "region": "region",
    "target": "target",
    "monthly target": "target",
    "monthly_target": "target",
}

VisitsInput = Union[pd.DataFrame, Sequence[Visit]]


def file_signature(path: Path) -> Tuple[str, float]:
    return (str(path), path.stat().st_mtime if path.exists() else 0.0)


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].astype("string").str.strip()
            series = series.replace({"nan": pd.NA, "None": pd.NA})
            df[col] = series.fillna("").astype(str)
    return df


def _read_reference_csv(path: Path, rename_map: Dict[str, str], required: List[str]) -> pd.DataFrame:
    if not path.exists():
        logger.warning("Reference file %s not found", path)
        return pd.DataFrame(columns=required)
    df = pd.read_csv(path, dtype=str, encoding="utf-8-sig")
    df.columns = [str(c).strip().lower() for c in df.columns]
    df = df.rename(columns=rename_map)
    missing = [c for c in required if c not in df.columns]
    if missing:
        logger.warning("Reference file %s is missing columns %s", path, missing)
        return pd.DataFrame(columns=required)
    return coerce_str_safe(df[required].copy(), required)


@lru_cache(maxsize=4)
def _load_retailers_cached(sig: Tuple[str, float]) -> pd.DataFrame:
    df = _read_reference_csv(Path(sig[0]), RETAILER_COLUMNS, ["code", "name", "city", "state"])
    df = df[df["code"] != ""]
    return df.drop_duplicates(subset=["code"]).sort_values("name", key=lambda s: s.str.lower()).reset_index(drop=True)


@lru_cache(maxsize=4)
def _load_roster_cached(sig: Tuple[str, float]) -> pd.DataFrame:
    df = _read_reference_csv(Path(sig[0]), ROSTER_COLUMNS, ["name", "region", "target"])
    df = df[df["name"] != ""].drop_duplicates(subset=["name"])
    df["target"] = pd.to_numeric(df["target"], errors="coerce").fillna(0).astype(int)
    return df.reset_index(drop=True)


def load_retailers(path: Optional[Path] = None) -> pd.DataFrame:
    return _load_retailers_cached(file_signature(path or RETAILERS_PATH)).copy()


def load_roster(path: Optional[Path] = None) -> pd.DataFrame:
    return _load_roster_cached(file_signature(path or ROSTER_PATH)).copy()


def load_seed_visits(path: Optional[Path] = None) -> List[Visit]:
    path = path or SEED_VISITS_PATH
    if not path.exists():
        return []
    with path.open(encoding="utf-8") as fh:
        return [Visit.from_dict(item) for item in json.load(fh)]


def _safe_local_date(value: object) -> Optional[date]:
    try:
        return parse_local_date(str(value))
    except ValueError:
        return None


def visits_to_frame(visits: VisitsInput) -> pd.DataFrame:
    """Visits as a DataFrame with a parsed ``visit_date`` and derived ``is_approved``."""
    if isinstance(visits, pd.DataFrame):
        df = visits.copy()
    else:
        df = pd.DataFrame([v.to_dict() for v in visits], columns=VISIT_COLUMNS)
    for col in TEXT_COLUMNS:
        if col not in df.columns:
            df[col] = ""
    if "approved" not in df.columns:
        df["approved"] = False
    df["approved"] = df["approved"].fillna(False).astype(bool)
    df = coerce_str_safe(df, TEXT_COLUMNS)
    df["visit_date"] = df["date"].apply(_safe_local_date)
    df["is_approved"] = df.apply(is_approved, axis=1) if not df.empty else pd.Series(dtype=bool)
    return df


def scope_to_user(df: pd.DataFrame, user: UserContext) -> pd.DataFrame:
    """Reps only ever see their own visits."""
    if user.is_dpc:
        return df[df["dpc"] == user.name]
    return df


def _previous_month(today: date) -> Tuple[int, int]:
    if today.month == 1:
        return today.year - 1, 12
    return today.year, today.month - 1


def _in_month(df: pd.DataFrame, year: int, month: int) -> pd.Series:
    return df["visit_date"].apply(lambda d: d is not None and d.year == year and d.month == month).astype(bool)


def filter_date_range(df: pd.DataFrame, date_range: str, today: date) -> pd.DataFrame:
    if df.empty or date_range == ALL:
        return df
    if date_range == "thisMonth":
        return df[_in_month(df, today.year, today.month)]
    if date_range == "lastMonth":
        year, month = _previous_month(today)
        return df[_in_month(df, year, month)]
    if date_range == "last3Months":
        cutoff = (pd.Timestamp(today) - pd.DateOffset(months=3)).date()
        return df[df["visit_date"].apply(lambda d: d is not None and d >= cutoff).astype(bool)]
    return df


def get_filtered_visits(
    visits: VisitsInput,
    filters: ReportFilters | dict,
    user: UserContext,
    today: Optional[date] = None,
) -> pd.DataFrame:
    today = today or date.today()
    filt = filters if isinstance(filters, ReportFilters) else normalize_filters(filters)
    df = visits_to_frame(visits)

    df = scope_to_user(df, user)
    df = filter_date_range(df, filt.date_range, today)
    if filt.dpc != ALL:
        df = df[df["dpc"] == filt.dpc]
    if filt.region != ALL:
        df = df[df["region"] == filt.region]
    if filt.visit_type != ALL:
        df = df[df["visit_type"] == filt.visit_type]
    if filt.approval_status == "approved":
        df = df[df["is_approved"]]
    elif filt.approval_status == "pending":
        df = df[~df["is_approved"]]
    return df.reset_index(drop=True)


def frame_to_records(df: pd.DataFrame) -> List[Dict[str, object]]:
    if df.empty:
        return []
    out = df.drop(columns=["visit_date"], errors="ignore").copy()
    out["id"] = out["id"].astype(int)
    out["approved"] = out["approved"].astype(bool)
    out["is_approved"] = out["is_approved"].astype(bool)
    return out.to_dict(orient="records")


# ---------------- Public API ----------------
def load_dashboard_data(visits: Sequence[Visit]) -> Dict[str, object]:
    roster = load_roster()
    retailers = load_retailers()
    regions = sorted(roster["region"].dropna().unique().tolist()) if not roster.empty else []
    return {
        "visits": list(visits),
        "roster": roster,
        "retailers": retailers,
        "regions": regions,
    }


def prepare_context(
    filters: dict | ReportFilters,
    data_ctx: Dict[str, object],
    user: UserContext,
    *,
    today: Optional[date] = None,
) -> Dict[str, object]:
    today = today or date.today()
    filt = filters if isinstance(filters, ReportFilters) else normalize_filters(filters)
    visits = data_ctx.get("visits", [])
    all_visits = visits_to_frame(visits)
    scoped_visits = scope_to_user(all_visits, user).reset_index(drop=True)
    filtered_visits = get_filtered_visits(all_visits, filt, user, today)
    return {
        "filters": filt,
        "user": user,
        "today": today,
        "scoped_visits": scoped_visits,
        "filtered_visits": filtered_visits,
        "roster": data_ctx.get("roster", pd.DataFrame(columns=["name", "region", "target"])),
        "regions": data_ctx.get("regions", []),
    }
