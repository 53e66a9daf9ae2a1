from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth import get_current_identity, require_writer
from ..db import open_session
from ..schemas import StatusFilter, TenantCreate, TenantUpdate
from ..tenancy import (
    create_tenant,
    get_active_tenant,
    list_tenants,
    revise_tenant,
    search_tenants,
    soft_delete_tenant,
    tenant_versions,
)

router = APIRouter(prefix="/api/v1/tenants", tags=["tenants"])


@router.post("/", dependencies=[Depends(require_writer)])
def api_create_tenant(payload: TenantCreate):
    with open_session() as session:
        with session.begin():
            fields = payload.model_dump(exclude={"start_date"})
            tenant = create_tenant(session, fields, payload.start_date)
        return tenant


@router.get("/", dependencies=[Depends(get_current_identity)])
def api_list_tenants(status: StatusFilter = StatusFilter.active):
    with open_session() as session:
        return list_tenants(session, None if status == StatusFilter.all else status.value)


@router.get("/search/{query}", dependencies=[Depends(get_current_identity)])
def api_search_tenants(query: str):
    with open_session() as session:
        return search_tenants(session, query)


@router.get("/{tenant_id}", dependencies=[Depends(get_current_identity)])
def api_get_tenant(tenant_id: str):
    with open_session() as session:
        return get_active_tenant(session, tenant_id)


@router.get("/{tenant_id}/versions", dependencies=[Depends(get_current_identity)])
def api_tenant_versions(tenant_id: str):
    with open_session() as session:
        return tenant_versions(session, tenant_id)


@router.put("/{tenant_id}", dependencies=[Depends(require_writer)])
def api_update_tenant(tenant_id: str, payload: TenantUpdate):
    with open_session() as session:
        with session.begin():
            revision = revise_tenant(session, tenant_id, payload.changes(), payload.in_place)
        return {"type": revision.type, "tenant": revision.record}


@router.delete("/{tenant_id}", dependencies=[Depends(require_writer)])
def api_delete_tenant(tenant_id: str):
    with open_session() as session:
        with session.begin():
            tenant = soft_delete_tenant(session, tenant_id)
        return {"success": True, "tenant": tenant}
