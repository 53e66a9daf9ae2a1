"""
Tenant version lifecycle.

A tenant is a chain of rows sharing ``tenant_id``. Exactly one of them (the
highest ``tenant_version``) is active; every versioned change retires it with
an end_date and inserts its successor. Callers own the transaction: every
function here only flushes, so a request either commits the whole sequence
or nothing.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, NamedTuple, Optional

from sqlalchemy import update
from sqlmodel import Session, select

from .dates import month_start_date
from .db import insert_row, store_step
from .errors import Conflict, ConsistencyFault, NotFound, ValidationError
from .models import ACTIVE, INACTIVE, Tenant, derive_from

logger = logging.getLogger(__name__)

IN_PLACE = "inPlace"
VERSIONED = "versioned"

# caller-editable tenant columns; counters, flags and version fields are engine-owned
TENANT_FIELDS = ("name", "mobile", "email", "unit_no", "remark", "owner_id")


class Revision(NamedTuple):
    type: str
    record: Any
    reading: Any = None


@dataclass(frozen=True)
class TenantCounterDelta:
    """A change to one derived tenant column, applied when bumping the version.

    Counters move by ``step`` and never drop below zero; flags are set to
    ``flag``.
    """

    field: str
    step: int = 0
    flag: Optional[bool] = None

    @classmethod
    def meter_count(cls, step: int) -> "TenantCounterDelta":
        return cls("power_meter_count", step=step)

    @classmethod
    def rent_count(cls, step: int) -> "TenantCounterDelta":
        return cls("rent_portion_count", step=step)

    @classmethod
    def water(cls, required: bool) -> "TenantCounterDelta":
        return cls("water_required", flag=required)

    @classmethod
    def maintenance(cls, required: bool) -> "TenantCounterDelta":
        return cls("maintenance_required", flag=required)

    def applied_to(self, tenant: Tenant) -> Dict[str, Any]:
        if self.flag is not None:
            return {self.field: self.flag}
        current = getattr(tenant, self.field) or 0
        return {self.field: max(current + self.step, 0)}

    def __str__(self) -> str:
        if self.flag is not None:
            return f"{self.field}={self.flag}"
        return f"{self.field}{self.step:+d}"


def tenant_overlay(fields: Dict[str, Any]) -> Dict[str, Any]:
    if "name" in fields and fields["name"] is None:
        raise ValidationError("Tenant name cannot be empty")
    return {k: v for k, v in fields.items() if k in TENANT_FIELDS}


def get_active_tenant(session: Session, tenant_id: str, lock: bool = False) -> Tenant:
    """Return the active version of ``tenant_id``.

    With ``lock`` the row is selected FOR UPDATE so concurrent writers queue
    behind this transaction (no-op on SQLite, which locks the database).
    More than one active row is a consistency fault, never a silent pick.
    """
    stmt = (
        select(Tenant)
        .where(Tenant.tenant_id == tenant_id, Tenant.status == ACTIVE)
        .order_by(Tenant.tenant_version.desc())
    )
    if lock:
        stmt = stmt.with_for_update()
    rows = session.exec(stmt).all()
    if not rows:
        raise NotFound("Active tenant not found")
    if len(rows) > 1:
        logger.error("tenant %s has %d active versions", tenant_id, len(rows))
        raise ConsistencyFault(
            f"Tenant {tenant_id} has {len(rows)} active versions",
            step="resolve active tenant",
        )
    return rows[0]


def _retire(session: Session, current: Tenant, end_date: date) -> None:
    # compare-and-swap on the version we read; losing a race leaves rowcount 0
    with store_step("inactivate tenant version"):
        result = session.exec(
            update(Tenant)
            .where(
                Tenant.id == current.id,
                Tenant.status == ACTIVE,
                Tenant.tenant_version == current.tenant_version,
            )
            .values(status=INACTIVE, end_date=end_date, updated_at=datetime.utcnow())
        )
    if result.rowcount != 1:
        raise Conflict(
            f"Tenant {current.tenant_id} version {current.tenant_version} was changed concurrently",
            retryable=True,
        )


def _successor(session: Session, current: Tenant, overlay: Dict[str, Any], start_date: date) -> Tenant:
    successor = derive_from(
        current,
        overlay,
        tenant_version=current.tenant_version + 1,
        status=ACTIVE,
        start_date=start_date,
        end_date=None,
    )
    return insert_row(session, successor, "insert tenant version")


def create_tenant(session: Session, fields: Dict[str, Any], start_date: Any = None) -> Tenant:
    start = month_start_date(start_date)
    overlay = tenant_overlay(fields)
    if not overlay.get("name"):
        raise ValidationError("Tenant name is required")
    tenant = Tenant(**overlay, tenant_version=1, status=ACTIVE, start_date=start)
    insert_row(session, tenant, "insert tenant")
    logger.info("created tenant %s v1 starting %s", tenant.tenant_id, start)
    return tenant


def revise_tenant(session: Session, tenant_id: str, fields: Dict[str, Any], in_place: bool) -> Revision:
    """Apply ``fields`` to the active tenant, in place or as a new version.

    A versioned revision retires the active row at the current month and
    starts the successor at the supplied start_date (normalised) or the
    current month.
    """
    fields = dict(fields)
    start_value = fields.pop("start_date", None)
    new_start = month_start_date(start_value) if start_value else None
    overlay = tenant_overlay(fields)
    current = get_active_tenant(session, tenant_id, lock=True)

    if in_place:
        for key, value in overlay.items():
            setattr(current, key, value)
        if new_start:
            current.start_date = new_start
        current.updated_at = datetime.utcnow()
        with store_step("update tenant"):
            session.add(current)
            session.flush()
        logger.info("tenant %s v%d updated in place", tenant_id, current.tenant_version)
        return Revision(IN_PLACE, current)

    this_month = month_start_date()
    _retire(session, current, this_month)
    successor = _successor(session, current, overlay, new_start or this_month)
    logger.info("tenant %s v%d -> v%d", tenant_id, current.tenant_version, successor.tenant_version)
    return Revision(VERSIONED, successor)


def soft_delete_tenant(session: Session, tenant_id: str) -> Tenant:
    current = get_active_tenant(session, tenant_id, lock=True)
    _retire(session, current, month_start_date())
    logger.info("tenant %s v%d inactivated", tenant_id, current.tenant_version)
    return current


def bump_tenant_version(
    session: Session,
    tenant_id: str,
    delta: TenantCounterDelta,
    current: Optional[Tenant] = None,
) -> Tenant:
    """Retire the active tenant row and insert its successor with ``delta`` applied.

    This is how creating or deleting a dependent record shows up on the
    tenant. Everything but the delta, version and date window carries over.
    """
    if current is None:
        current = get_active_tenant(session, tenant_id, lock=True)
    this_month = month_start_date()
    _retire(session, current, this_month)
    successor = _successor(session, current, delta.applied_to(current), this_month)
    logger.info(
        "tenant %s v%d -> v%d (%s)",
        tenant_id,
        current.tenant_version,
        successor.tenant_version,
        delta,
    )
    return successor


def list_tenants(session: Session, status: Optional[str] = ACTIVE) -> List[Tenant]:
    stmt = select(Tenant)
    if status:
        stmt = stmt.where(Tenant.status == status)
    return session.exec(stmt.order_by(Tenant.tenant_id, Tenant.tenant_version)).all()


def search_tenants(session: Session, prefix: str) -> List[Tenant]:
    stmt = select(Tenant).where(Tenant.name.ilike(f"{prefix}%"), Tenant.status == ACTIVE)
    return session.exec(stmt.order_by(Tenant.name)).all()


def tenant_versions(session: Session, tenant_id: str) -> List[Tenant]:
    rows = session.exec(
        select(Tenant).where(Tenant.tenant_id == tenant_id).order_by(Tenant.tenant_version)
    ).all()
    if not rows:
        raise NotFound("Tenant not found")
    return rows
