from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response, status

from ..core.ledger_types import ALL_STATIONS, ALL_TYPES, ALL_UNITS
from ..deps.auth import AuthContext, require_api_or_jwt
from ..deps.ledger import Ledger, get_ledger
from ..schemas.inventory import (
    DerivePreviewRequest,
    FilterOptions,
    ImportResultOut,
    ImportWarningOut,
    InlineEditRequest,
    InventoryRecord,
    RecordPage,
    RecordTotals,
    RecordUpdate,
    ValidationRequest,
)
from ..services.coordinator import EditResult
from ..services.csv_export import export_csv, export_filename
from ..services.csv_import import import_csv
from ..services.derivation import apply_smart_defaults
from ..services.listing import (
    ViewState,
    build_view,
    filter_records,
    station_options,
    type_child_options,
    type_parent_options,
    unit_options,
)
from ..services.summary import summarize

router = APIRouter(prefix="/api/v1/records", tags=["records"])


def _view_from_query(
    unit: str = Query(default=ALL_UNITS),
    station: str = Query(default=ALL_STATIONS),
    type_parent: str = Query(default=ALL_TYPES),
    type_child: str = Query(default=ALL_TYPES),
    q: str = Query(default=""),
    page: int = Query(default=1),
) -> ViewState:
    view = ViewState().with_filters(
        unit=unit,
        station=station,
        type_parent=type_parent,
        type_child=type_child,
        search=q,
    )
    return view.with_page(page)


def _settled(result: EditResult) -> InventoryRecord:
    """Return the record an edit left behind, or raise the failure as a 502."""

    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"code": "persistence_failure", "message": result.error, "operation": result.operation},
        )
    record = result.record
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found")
    return record


@router.get("", response_model=RecordPage)
async def api_list_records(
    view: ViewState = Depends(_view_from_query),
    auth: AuthContext = Depends(require_api_or_jwt),
    ledger: Ledger = Depends(get_ledger),
):
    cache = await ledger.loaded_cache()
    records = cache.state.records
    page = build_view(records, view, ledger.page_size)
    return RecordPage(
        items=list(page.items),
        page=page.page,
        page_size=page.page_size,
        total_pages=page.total_pages,
        total_rows=page.total_rows,
        totals=RecordTotals(**summarize(page.rows)),
        options=FilterOptions(
            units=unit_options(records),
            stations=station_options(records, view.unit),
            type_parents=type_parent_options(),
            type_children=type_child_options(records, view.type_parent),
        ),
        can_validate=await ledger.gate.identity_can_validate(auth.user_id),
    )


@router.get("/export", dependencies=[Depends(require_api_or_jwt)])
async def api_export_records(
    view: ViewState = Depends(_view_from_query),
    ledger: Ledger = Depends(get_ledger),
):
    cache = await ledger.loaded_cache()
    body = export_csv(filter_records(cache.state.records, view))
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@router.post(
    "/import",
    response_model=ImportResultOut,
    status_code=201,
    dependencies=[Depends(require_api_or_jwt)],
)
async def api_import_records(
    request: Request,
    unit: str = Query(default=""),
    station: str = Query(default=""),
    x_department: str | None = Header(default=None, alias="X-Department"),
    ledger: Ledger = Depends(get_ledger),
):
    raw = await request.body()
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CSV body must be UTF-8") from exc
    cache = await ledger.loaded_cache()
    result = await import_csv(
        text,
        ledger.store,
        cache,
        unit=unit.strip(),
        station=station.strip(),
        department=(x_department or "").strip() or None,
    )
    return ImportResultOut(
        inserted=len(result.inserted),
        items=list(result.inserted),
        warnings=[ImportWarningOut(row=w.row, column=w.column, value=w.value) for w in result.warnings],
    )


@router.post("/reload", dependencies=[Depends(require_api_or_jwt)])
async def api_reload_records(ledger: Ledger = Depends(get_ledger)):
    cache = await ledger.reload()
    return {"total_rows": len(cache.state)}


@router.post("/derive", dependencies=[Depends(require_api_or_jwt)])
async def api_derive_preview(payload: DerivePreviewRequest):
    return apply_smart_defaults(payload.form, payload.field, payload.value)


@router.patch("/{record_id}", response_model=InventoryRecord, dependencies=[Depends(require_api_or_jwt)])
async def api_edit_field(record_id: str, payload: InlineEditRequest, ledger: Ledger = Depends(get_ledger)):
    cache = await ledger.loaded_cache()
    result = await ledger.coordinator.edit_field(cache, record_id, payload.field, payload.value)
    return _settled(result)


@router.put("/{record_id}", response_model=InventoryRecord, dependencies=[Depends(require_api_or_jwt)])
async def api_update_record(record_id: str, payload: RecordUpdate, ledger: Ledger = Depends(get_ledger)):
    cache = await ledger.loaded_cache()
    result = await ledger.coordinator.edit_fields(cache, record_id, payload.changes())
    return _settled(result)


@router.post(
    "/{record_id}/validation",
    response_model=InventoryRecord,
    dependencies=[Depends(require_api_or_jwt)],
)
async def api_toggle_validation(record_id: str, payload: ValidationRequest, ledger: Ledger = Depends(get_ledger)):
    cache = await ledger.loaded_cache()
    outcome = await ledger.gate.validate(cache, record_id, payload.department)
    if not outcome.decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": outcome.decision.reason,
                "message": outcome.decision.message,
                "department": outcome.decision.department,
            },
        )
    return _settled(outcome.result)


@router.delete("/{record_id}", dependencies=[Depends(require_api_or_jwt)])
async def api_delete_record(record_id: str, ledger: Ledger = Depends(get_ledger)):
    cache = await ledger.loaded_cache()
    result = await ledger.coordinator.delete(cache, record_id)
    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"code": "persistence_failure", "message": result.error, "operation": result.operation},
        )
    return {"status": "deleted"}
