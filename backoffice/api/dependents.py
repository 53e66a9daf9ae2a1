from typing import Optional, Type

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..auth import get_current_identity, require_writer
from ..db import open_session
from ..dependents import (
    MAINTENANCE_HISTORY,
    POWER_METER,
    RENT_HISTORY,
    WATER_HISTORY,
    DependentKind,
    create_dependent,
    delete_dependent,
    get_active_dependent,
    list_dependents,
    revise_dependent,
)
from ..schemas import (
    HistoryCreate,
    HistoryUpdate,
    PowerMeterCreate,
    PowerMeterUpdate,
    StatusFilter,
)


def build_router(
    kind: DependentKind,
    prefix: str,
    key: str,
    create_schema: Type[BaseModel],
    update_schema: Type[BaseModel],
) -> APIRouter:
    """CRUD routes for one dependent kind; responses nest the record under ``key``."""
    router = APIRouter(prefix=prefix, tags=[kind.name])

    @router.post("/", dependencies=[Depends(require_writer)])
    def api_create(payload: create_schema):
        with open_session() as session:
            with session.begin():
                fields = payload.model_dump(exclude={"tenant_id", "start_date"})
                record, tenant, baseline = create_dependent(
                    session, kind, payload.tenant_id, fields, payload.start_date
                )
            body = {key: record, "tenant": tenant}
            if baseline is not None:
                body["initial_monthly_reading"] = baseline
            return body

    @router.get("/", dependencies=[Depends(get_current_identity)])
    def api_list(status: StatusFilter = StatusFilter.active, tenant_id: Optional[str] = None):
        with open_session() as session:
            wanted = None if status == StatusFilter.all else status.value
            return list_dependents(session, kind, wanted, tenant_id)

    @router.get("/{record_id}", dependencies=[Depends(get_current_identity)])
    def api_get(record_id: int):
        with open_session() as session:
            return get_active_dependent(session, kind, record_id)

    @router.put("/{record_id}", dependencies=[Depends(require_writer)])
    def api_update(record_id: int, payload: update_schema):
        with open_session() as session:
            with session.begin():
                revision = revise_dependent(
                    session, kind, record_id, payload.changes(), payload.in_place
                )
            body = {"type": revision.type, key: revision.record}
            if revision.reading is not None:
                body["monthly_reading"] = revision.reading
            return body

    @router.delete("/{record_id}", dependencies=[Depends(require_writer)])
    def api_delete(record_id: int):
        with open_session() as session:
            with session.begin():
                record, tenant = delete_dependent(session, kind, record_id)
            return {"success": True, key: record, "tenant": tenant}

    return router


power_meters = build_router(POWER_METER, "/api/v1/power-meters", "meter", PowerMeterCreate, PowerMeterUpdate)
rent_history = build_router(RENT_HISTORY, "/api/v1/rent-history", "rent_history", HistoryCreate, HistoryUpdate)
water_history = build_router(WATER_HISTORY, "/api/v1/water-history", "water_history", HistoryCreate, HistoryUpdate)
maintenance_history = build_router(
    MAINTENANCE_HISTORY,
    "/api/v1/maintenance-history",
    "maintenance_history",
    HistoryCreate,
    HistoryUpdate,
)
