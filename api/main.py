from __future__ import annotations

import logging
import math
from datetime import date
from functools import lru_cache
from typing import Literal, Optional

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import DeleteResponse, ReportFiltersModel, RetailersResponse, RosterResponse, VisitIn, VisitOut
from core.calendar_grid import compute_calendar
from core.config import settings
from core.data import (
    frame_to_records,
    load_dashboard_data,
    load_retailers,
    load_roster,
    load_seed_visits,
    prepare_context,
    scope_to_user,
    visits_to_frame,
)
from core.export import build_export_csv, export_filename
from core.filters import ReportFilters, UserContext, normalize_filters, normalize_user
from core.metrics_overview import compute_monthly_summary, compute_overview
from core.metrics_performance import compute_performance
from core.metrics_visit_types import compute_visit_types
from core.store import JsonFileBlobStore, VisitStore
from core.visit_form import VisitForm, search_retailers
from core.visits import VisitNotFoundError, parse_local_date

app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_store() -> VisitStore:
    store = VisitStore(JsonFileBlobStore(settings.STORAGE_DIR), settings.STORAGE_KEY, seed=load_seed_visits())
    store.load()
    return store


def current_user(
    role: str = Query(default="dpc"),
    name: str = Query(default=""),
    region: str = Query(default=""),
) -> UserContext:
    return normalize_user({"role": role, "name": name, "region": region})


def _filters_from_model(model: ReportFiltersModel) -> ReportFilters:
    return normalize_filters(model.model_dump())


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
                date: lambda d: d.isoformat(),
            },
        ),
    )


def _error(status_code: int, exc: Exception, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__, **extra})


def _visit_out(visit) -> dict:
    record = frame_to_records(visits_to_frame([visit]))[0]
    return VisitOut(**record).model_dump()


def _visible_visit(store: VisitStore, visit_id: int, user: UserContext):
    visit = store.get(visit_id)
    if user.is_dpc and visit.dpc != user.name:
        raise VisitNotFoundError(f"Visit {visit_id} not found")
    return visit


def _apply_changes(form: VisitForm, payload: VisitIn) -> None:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "approved" in changes and "received_date" in changes:
        changes.pop("approved")
    form.update(**changes)


@app.get("/health")
def health():
    return {"status": "healthy", "service": settings.APP_NAME}


@app.get("/meta/roster", response_model=RosterResponse)
def meta_roster():
    try:
        roster = load_roster()
        return _json({"roster": roster.to_dict(orient="records")})
    except Exception as exc:
        logger.exception("meta_roster failed")
        return _error(500, exc)


@app.get("/meta/regions")
def meta_regions():
    try:
        roster = load_roster()
        regions = sorted(roster["region"].dropna().unique().tolist()) if not roster.empty else []
        return _json({"regions": regions})
    except Exception as exc:
        logger.exception("meta_regions failed")
        return _error(500, exc)


@app.get("/meta/retailers", response_model=RetailersResponse)
def meta_retailers(q: str = Query(default="")):
    try:
        matches = search_retailers(load_retailers(), q)
        return _json({"retailers": matches.to_dict(orient="records")})
    except Exception as exc:
        logger.exception("meta_retailers failed")
        return _error(500, exc)


@app.get("/visits")
def list_visits(user: UserContext = Depends(current_user), store: VisitStore = Depends(get_store)):
    try:
        df = scope_to_user(visits_to_frame(store.all()), user)
        return _json({"visits": frame_to_records(df)})
    except Exception as exc:
        logger.exception("list_visits failed")
        return _error(500, exc)


@app.get("/visits/{visit_id}")
def get_visit(visit_id: int, user: UserContext = Depends(current_user), store: VisitStore = Depends(get_store)):
    try:
        return _json(_visit_out(_visible_visit(store, visit_id, user)))
    except VisitNotFoundError as exc:
        return _error(404, exc)
    except Exception as exc:
        logger.exception("get_visit failed")
        return _error(500, exc)


@app.post("/visits")
def create_visit(payload: VisitIn, user: UserContext = Depends(current_user), store: VisitStore = Depends(get_store)):
    try:
        form = VisitForm.new(user, payload.date)
        _apply_changes(form, payload)
        result = form.submit()
        if not result.ok:
            return JSONResponse(status_code=422, content={"error": result.error, "type": "VisitValidationError"})
        visit = store.add(result.visit)
        logger.info("Visit %s added by %s", visit.id, user.name)
        return _json(_visit_out(visit), status_code=201)
    except PermissionError as exc:
        return _error(403, exc)
    except ValueError as exc:
        return _error(422, exc)
    except Exception as exc:
        logger.exception("create_visit failed")
        return _error(500, exc)


@app.put("/visits/{visit_id}")
def update_visit(
    visit_id: int,
    payload: VisitIn,
    user: UserContext = Depends(current_user),
    store: VisitStore = Depends(get_store),
):
    try:
        form = VisitForm.edit(_visible_visit(store, visit_id, user), user)
        _apply_changes(form, payload)
        result = form.submit()
        if not result.ok:
            return JSONResponse(status_code=422, content={"error": result.error, "type": "VisitValidationError"})
        store.update(result.visit)
        logger.info("Visit %s updated by %s", visit_id, user.name)
        return _json(_visit_out(result.visit))
    except VisitNotFoundError as exc:
        return _error(404, exc)
    except PermissionError as exc:
        return _error(403, exc)
    except ValueError as exc:
        return _error(422, exc)
    except Exception as exc:
        logger.exception("update_visit failed")
        return _error(500, exc)


@app.delete("/visits/{visit_id}")
def delete_visit(
    visit_id: int,
    confirm: bool = Query(default=False),
    user: UserContext = Depends(current_user),
    store: VisitStore = Depends(get_store),
):
    try:
        form = VisitForm.edit(_visible_visit(store, visit_id, user), user)
        confirmation = form.request_delete()
        deleted_id = form.confirm_delete(confirm)
        if deleted_id is None:
            return JSONResponse(
                status_code=400,
                content={
                    "error": "Deletion requires confirm=true",
                    "confirmation": confirmation.message,
                    "summary": confirmation.summary,
                },
            )
        store.delete(deleted_id)
        logger.info("Visit %s deleted by %s", deleted_id, user.name)
        return _json(DeleteResponse(deleted=deleted_id, summary=confirmation.summary).model_dump())
    except VisitNotFoundError as exc:
        return _error(404, exc)
    except PermissionError as exc:
        return _error(403, exc)
    except Exception as exc:
        logger.exception("delete_visit failed")
        return _error(500, exc)


@app.get("/calendar")
def calendar(
    reference: Optional[str] = Query(default=None),
    view: Literal["month", "week"] = Query(default="month"),
    user: UserContext = Depends(current_user),
    store: VisitStore = Depends(get_store),
):
    try:
        ref = parse_local_date(reference) if reference else None
    except ValueError as exc:
        return _error(422, exc)
    try:
        return _json(compute_calendar(store.all(), user, reference=ref, view=view))
    except Exception as exc:
        logger.exception("calendar failed")
        return _error(500, exc)


@app.post("/reports")
def reports(filters: ReportFiltersModel, user: UserContext = Depends(current_user), store: VisitStore = Depends(get_store)):
    try:
        f = _filters_from_model(filters)
        ctx = prepare_context(f, load_dashboard_data(store.all()), user)
        performance = compute_performance(f, ctx)
        return _json(
            {
                "filters": performance["filters"],
                "performance": performance,
                "visit_types": compute_visit_types(f, ctx),
                "overview": compute_overview(f, ctx, performance["rows"]),
                "regions": ctx["regions"],
            }
        )
    except Exception as exc:
        logger.exception("reports failed")
        return _error(500, exc)


@app.post("/reports/export")
def export_report(
    filters: ReportFiltersModel,
    quote: bool = Query(default=False),
    user: UserContext = Depends(current_user),
    store: VisitStore = Depends(get_store),
):
    try:
        f = _filters_from_model(filters)
        ctx = prepare_context(f, load_dashboard_data(store.all()), user)
        performance = compute_performance(f, ctx)
        csv_text = build_export_csv(performance["rows"], ctx["filtered_visits"], quote=quote)
        filename = export_filename(ctx["today"])
    except Exception as exc:
        logger.exception("export_report failed")
        return _error(500, exc)
    logger.info("Export %s generated for %s", filename, user.name or user.role)
    return Response(
        content=csv_text.encode("utf-8"),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@app.get("/summary/monthly")
def monthly_summary(user: UserContext = Depends(current_user), store: VisitStore = Depends(get_store)):
    try:
        return _json(compute_monthly_summary(store.all(), user))
    except Exception as exc:
        logger.exception("monthly_summary failed")
        return _error(500, exc)


def run() -> None:
    import uvicorn

    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("api.main:app", host=settings.SERVICE_HOST, port=settings.SERVICE_PORT)


if __name__ == "__main__":
    run()
