from typing import Optional

from fastapi import APIRouter, Depends

from ..auth import get_current_identity, require_writer
from ..db import open_session
from ..readings import create_reading, delete_reading, get_reading, list_readings, update_reading
from ..schemas import ReadingCreate, ReadingUpdate

router = APIRouter(prefix="/api/v1/monthly-readings", tags=["monthly readings"])


@router.post("/", dependencies=[Depends(require_writer)])
def api_create_reading(payload: ReadingCreate):
    with open_session() as session:
        with session.begin():
            reading = create_reading(
                session,
                payload.tenant_id,
                payload.meter_id,
                payload.month,
                payload.current_reading,
                payload.rate_per_unit,
            )
        return reading


@router.get("/", dependencies=[Depends(get_current_identity)])
def api_list_readings(
    tenant_id: Optional[str] = None,
    meter_id: Optional[int] = None,
    start_month: Optional[str] = None,
    end_month: Optional[str] = None,
):
    with open_session() as session:
        return list_readings(session, tenant_id, meter_id, start_month, end_month)


@router.get("/{reading_id}", dependencies=[Depends(get_current_identity)])
def api_get_reading(reading_id: int):
    with open_session() as session:
        return get_reading(session, reading_id)


@router.put("/{reading_id}", dependencies=[Depends(require_writer)])
def api_update_reading(reading_id: int, payload: ReadingUpdate):
    with open_session() as session:
        with session.begin():
            reading = update_reading(session, reading_id, payload.model_dump(exclude_unset=True))
        return {"type": "inPlace", "monthly_reading": reading}


@router.delete("/{reading_id}", dependencies=[Depends(require_writer)])
def api_delete_reading(reading_id: int):
    with open_session() as session:
        with session.begin():
            delete_reading(session, reading_id)
        return {"success": True}
