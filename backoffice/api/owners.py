from typing import List

from fastapi import APIRouter, Depends
from sqlmodel import select

from ..auth import get_current_identity, require_role, require_writer
from ..db import open_session, store_step
from ..errors import NotFound
from ..models import Owner
from ..schemas import OwnerCreate, OwnerUpdate

router = APIRouter(prefix="/api/v1/owners", tags=["owners"])


def _get_owner(session, owner_id: int) -> Owner:
    owner = session.get(Owner, owner_id)
    if not owner:
        raise NotFound("Owner not found")
    return owner


@router.post("/", dependencies=[Depends(require_role("orgadmin"))])
def api_create_owner(payload: OwnerCreate):
    with open_session() as session:
        with session.begin():
            owner = Owner(**payload.model_dump())
            with store_step("insert owner"):
                session.add(owner)
                session.flush()
        return owner


@router.get("/", response_model=List[Owner], dependencies=[Depends(get_current_identity)])
def api_list_owners():
    with open_session() as session:
        return session.exec(select(Owner).order_by(Owner.owner_id)).all()


@router.get("/{owner_id}", dependencies=[Depends(get_current_identity)])
def api_get_owner(owner_id: int):
    with open_session() as session:
        return _get_owner(session, owner_id)


@router.put("/{owner_id}", dependencies=[Depends(require_writer)])
def api_update_owner(owner_id: int, payload: OwnerUpdate):
    with open_session() as session:
        with session.begin():
            owner = _get_owner(session, owner_id)
            for key, value in payload.model_dump(exclude_unset=True).items():
                setattr(owner, key, value)
            with store_step("update owner"):
                session.add(owner)
                session.flush()
        return owner


@router.delete("/{owner_id}", dependencies=[Depends(require_role("orgadmin"))])
def api_delete_owner(owner_id: int):
    # hard delete; tenants still pointing at the owner make this a Conflict
    with open_session() as session:
        with session.begin():
            owner = _get_owner(session, owner_id)
            with store_step("delete owner"):
                session.delete(owner)
                session.flush()
        return {"success": True}
