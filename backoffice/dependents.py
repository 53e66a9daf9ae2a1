"""
Versioning for records that hang off a tenant version.

Power meters, rent history, water history and maintenance history share one
lifecycle. Creating or deleting one bumps the owning tenant to a new version
(adjusting a counter or flag there); updating one either rewrites the row in
place or retires it and inserts a successor. The differences between the four
are described by a ``DependentKind`` rather than separate code paths.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy import update
from sqlmodel import Session, SQLModel, select

from .dates import month_start_date
from .db import insert_row, store_step
from .errors import Conflict, NotFound, ValidationError
from .models import (
    ACTIVE,
    INACTIVE,
    MaintenanceHistory,
    MonthlyReading,
    PowerMeter,
    RentHistory,
    Tenant,
    WaterHistory,
    derive_from,
)
from .readings import count_readings, rebase_baseline, seed_baseline
from .tenancy import (
    IN_PLACE,
    VERSIONED,
    Revision,
    TenantCounterDelta,
    bump_tenant_version,
    get_active_tenant,
)

logger = logging.getLogger(__name__)

# start_date of a versioned successor: reset to the current month, or keep
# the caller's (normalised) value falling back to the retired row's
RESET = "reset"
CARRY = "carry"


@dataclass(frozen=True)
class DependentKind:
    name: str
    model: Type[SQLModel]
    id_field: str
    fields: Tuple[str, ...]
    create_delta: TenantCounterDelta
    delete_delta: TenantCounterDelta
    versioned_start: str = RESET
    # tenant flag that must be off to create and on to delete
    exclusive_flag: Optional[str] = None
    # meters only: start_date changes are in-place and the chain anchor follows them
    start_date_in_place_only: bool = False
    baseline_reading: bool = False
    decimal_fields: Tuple[str, ...] = ("amount",)
    # NOT NULL columns a caller may change but never clear
    required_fields: Tuple[str, ...] = ()

    @property
    def title(self) -> str:
        return self.name[:1].upper() + self.name[1:]

    @property
    def id_column(self):
        return getattr(self.model, self.id_field)


POWER_METER = DependentKind(
    name="power meter",
    model=PowerMeter,
    id_field="meter_id",
    fields=("meter_number", "initial_reading"),
    create_delta=TenantCounterDelta.meter_count(1),
    delete_delta=TenantCounterDelta.meter_count(-1),
    versioned_start=RESET,
    start_date_in_place_only=True,
    baseline_reading=True,
    decimal_fields=("initial_reading",),
    required_fields=("initial_reading",),
)

RENT_HISTORY = DependentKind(
    name="rent history",
    model=RentHistory,
    id_field="rent_id",
    fields=("amount", "remark"),
    create_delta=TenantCounterDelta.rent_count(1),
    delete_delta=TenantCounterDelta.rent_count(-1),
    versioned_start=RESET,
)

WATER_HISTORY = DependentKind(
    name="water history",
    model=WaterHistory,
    id_field="water_id",
    fields=("amount", "remark"),
    create_delta=TenantCounterDelta.water(True),
    delete_delta=TenantCounterDelta.water(False),
    versioned_start=CARRY,
    exclusive_flag="water_required",
)

MAINTENANCE_HISTORY = DependentKind(
    name="maintenance history",
    model=MaintenanceHistory,
    id_field="maintenance_id",
    fields=("amount", "remark"),
    create_delta=TenantCounterDelta.maintenance(True),
    delete_delta=TenantCounterDelta.maintenance(False),
    versioned_start=CARRY,
    exclusive_flag="maintenance_required",
)


def _overlay(kind: DependentKind, fields: Dict[str, Any]) -> Dict[str, Any]:
    values = {}
    for key, value in fields.items():
        if key not in kind.fields:
            continue
        if key in kind.required_fields and value is None:
            raise ValidationError(f"{key} cannot be empty")
        if key in kind.decimal_fields and value is not None:
            value = Decimal(str(value))
        values[key] = value
    return values


def get_active_dependent(session: Session, kind: DependentKind, record_id: int, lock: bool = False):
    stmt = select(kind.model).where(kind.id_column == record_id, kind.model.status == ACTIVE)
    if lock:
        stmt = stmt.with_for_update()
    record = session.exec(stmt).first()
    if not record:
        raise NotFound(f"Active {kind.name} not found")
    return record


def list_dependents(
    session: Session,
    kind: DependentKind,
    status: Optional[str] = ACTIVE,
    tenant_id: Optional[str] = None,
) -> List[SQLModel]:
    stmt = select(kind.model)
    if status:
        stmt = stmt.where(kind.model.status == status)
    if tenant_id:
        stmt = stmt.where(kind.model.tenant_id == tenant_id)
    return session.exec(stmt.order_by(kind.id_column)).all()


def _retire(session: Session, kind: DependentKind, record: SQLModel) -> None:
    with store_step(f"inactivate {kind.name}"):
        result = session.exec(
            update(kind.model)
            .where(kind.id_column == getattr(record, kind.id_field), kind.model.status == ACTIVE)
            .values(status=INACTIVE, end_date=month_start_date(), updated_at=datetime.utcnow())
        )
    if result.rowcount != 1:
        raise Conflict(f"{kind.title} was changed concurrently", retryable=True)


def create_dependent(
    session: Session,
    kind: DependentKind,
    tenant_id: str,
    fields: Dict[str, Any],
    start_date: Any = None,
) -> Tuple[SQLModel, Tenant, Optional[MonthlyReading]]:
    """Create a record for the tenant's next version.

    Returns the new record, the new tenant version it is pinned to and, for
    power meters, the seeded baseline reading.
    """
    start = month_start_date(start_date)
    values = _overlay(kind, fields)
    if kind.baseline_reading and values.get("initial_reading") is None:
        raise ValidationError("initial_reading is required")

    tenant = get_active_tenant(session, tenant_id, lock=True)
    if kind.exclusive_flag and getattr(tenant, kind.exclusive_flag):
        logger.warning("tenant %s already has %s", tenant_id, kind.name)
        raise Conflict(f"{kind.title} already exists for this tenant")

    tenant = bump_tenant_version(session, tenant_id, kind.create_delta, current=tenant)
    record = kind.model(
        **values,
        tenant_id=tenant.tenant_id,
        tenant_version=tenant.tenant_version,
        status=ACTIVE,
        start_date=start,
        end_date=None,
    )
    insert_row(session, record, f"tenant versioned, but failed to insert {kind.name}")

    baseline = None
    if kind.baseline_reading:
        baseline = seed_baseline(session, record)
    logger.info(
        "created %s %s for tenant %s v%d",
        kind.name,
        getattr(record, kind.id_field),
        tenant_id,
        tenant.tenant_version,
    )
    return record, tenant, baseline


def _moves_baseline(record: PowerMeter, values: Dict[str, Any], new_start) -> bool:
    if new_start is not None and new_start != record.start_date:
        return True
    initial = values.get("initial_reading")
    return initial is not None and initial != record.initial_reading


def revise_dependent(
    session: Session,
    kind: DependentKind,
    record_id: int,
    fields: Dict[str, Any],
    in_place: bool,
) -> Revision:
    """Update a record in place or retire it in favour of a successor.

    Successors keep the retired row's tenant_version; only create and delete
    move a record onto a new tenant version.
    """
    fields = dict(fields)
    start_value = fields.pop("start_date", None)
    values = _overlay(kind, fields)
    current = get_active_dependent(session, kind, record_id, lock=True)
    new_start = month_start_date(start_value) if start_value else None

    if in_place:
        rebase = kind.baseline_reading and _moves_baseline(current, values, new_start)
        if rebase:
            readings = count_readings(session, record_id)
            if readings != 1:
                logger.warning("meter %s has %d readings, refusing to move its baseline", record_id, readings)
                raise Conflict(
                    "start_date or initial_reading can only change while exactly one "
                    "monthly reading exists for this meter"
                )
        for key, value in values.items():
            setattr(current, key, value)
        if new_start:
            current.start_date = new_start
        current.updated_at = datetime.utcnow()
        with store_step(f"update {kind.name}"):
            session.add(current)
            session.flush()
        reading = rebase_baseline(session, current) if rebase else None
        return Revision(IN_PLACE, current, reading)

    if kind.start_date_in_place_only and start_value:
        raise ValidationError(
            "start_date update is only allowed for inPlace updates, not versioned updates"
        )
    this_month = month_start_date()
    if kind.versioned_start == RESET:
        start = this_month
    else:
        start = new_start or current.start_date

    _retire(session, kind, current)
    successor = derive_from(current, values, status=ACTIVE, start_date=start, end_date=None)
    insert_row(session, successor, f"insert {kind.name} version")
    logger.info(
        "%s %s superseded by %s",
        kind.name,
        record_id,
        getattr(successor, kind.id_field),
    )
    return Revision(VERSIONED, successor)


def delete_dependent(session: Session, kind: DependentKind, record_id: int) -> Tuple[SQLModel, Tenant]:
    """Inactivate a record and roll its effect back on a new tenant version."""
    record = get_active_dependent(session, kind, record_id, lock=True)
    try:
        tenant = get_active_tenant(session, record.tenant_id, lock=True)
    except NotFound:
        logger.error("%s %s points at tenant %s with no active version", kind.name, record_id, record.tenant_id)
        raise
    if kind.exclusive_flag and not getattr(tenant, kind.exclusive_flag):
        raise Conflict(f"No {kind.name} exists for this tenant")

    _retire(session, kind, record)
    tenant = bump_tenant_version(session, tenant.tenant_id, kind.delete_delta, current=tenant)
    with store_step(f"reload {kind.name}"):
        session.refresh(record)
    return record, tenant
