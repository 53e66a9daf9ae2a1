"""
Monthly reading ledger.

Readings are chained per meter: the reading for month M opens at the value
the reading for month M-1 closed at, so readings must be entered in order.
Every meter starts with a baseline reading one month before its start_date.

Updates and deletes are plain in-place writes and do not re-check or cascade
the chain; editing or removing a mid-chain reading leaves later readings as
they were.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from .dates import month_start_date, previous_month
from .db import insert_row, store_step
from .errors import Conflict, NotFound, ValidationError
from .models import ACTIVE, MonthlyReading, PowerMeter
from .tenancy import get_active_tenant

logger = logging.getLogger(__name__)

READING_FIELDS = ("month", "previous_reading", "current_reading", "rate_per_unit")


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


def count_readings(session: Session, meter_id: int) -> int:
    return session.exec(
        select(func.count()).select_from(MonthlyReading).where(MonthlyReading.meter_id == meter_id)
    ).one()


def seed_baseline(session: Session, meter: PowerMeter) -> MonthlyReading:
    """Insert the reading that anchors ``meter``'s chain one month before it starts."""
    baseline = MonthlyReading(
        tenant_id=meter.tenant_id,
        tenant_version=meter.tenant_version,
        meter_id=meter.meter_id,
        month=previous_month(meter.start_date),
        previous_reading=meter.initial_reading,
        current_reading=meter.initial_reading,
    )
    return insert_row(session, baseline, "meter created, but failed to seed baseline reading")


def rebase_baseline(session: Session, meter: PowerMeter) -> MonthlyReading:
    """Move the single baseline reading to match a changed start_date/initial_reading."""
    with store_step("meter updated, but failed to update baseline reading"):
        baseline = session.exec(
            select(MonthlyReading).where(MonthlyReading.meter_id == meter.meter_id)
        ).one()
        baseline.month = previous_month(meter.start_date)
        baseline.previous_reading = meter.initial_reading
        baseline.current_reading = meter.initial_reading
        baseline.updated_at = datetime.utcnow()
        session.add(baseline)
        session.flush()
    return baseline


def create_reading(
    session: Session,
    tenant_id: str,
    meter_id: int,
    month: Any,
    current_reading: Any,
    rate_per_unit: Any = None,
) -> MonthlyReading:
    if not month:
        raise ValidationError("month is required")
    if current_reading is None:
        raise ValidationError("current_reading is required")
    period = month_start_date(month)

    tenant = get_active_tenant(session, tenant_id)
    meter = session.exec(
        select(PowerMeter).where(
            PowerMeter.meter_id == meter_id,
            PowerMeter.tenant_id == tenant.tenant_id,
            PowerMeter.status == ACTIVE,
        )
    ).first()
    if not meter:
        raise NotFound("Active meter not found")

    prev = previous_month(period)
    last = session.exec(
        select(MonthlyReading).where(MonthlyReading.meter_id == meter_id, MonthlyReading.month == prev)
    ).first()
    if not last:
        logger.warning("meter %s: reading for %s requested before %s", meter_id, period, prev)
        raise Conflict(f"Previous month ({prev.isoformat()}) reading not found. Please enter that first.")

    reading = MonthlyReading(
        tenant_id=tenant.tenant_id,
        tenant_version=tenant.tenant_version,
        meter_id=meter_id,
        month=period,
        previous_reading=last.current_reading,
        current_reading=_decimal(current_reading),
        rate_per_unit=_decimal(rate_per_unit),
    )
    insert_row(session, reading, "insert monthly reading")
    logger.info("meter %s: recorded reading for %s", meter_id, period)
    return reading


def get_reading(session: Session, reading_id: int) -> MonthlyReading:
    reading = session.get(MonthlyReading, reading_id)
    if not reading:
        raise NotFound("Monthly reading not found")
    return reading


def update_reading(session: Session, reading_id: int, fields: Dict[str, Any]) -> MonthlyReading:
    reading = get_reading(session, reading_id)
    for key, value in fields.items():
        if key not in READING_FIELDS:
            continue
        if key in ("month", "previous_reading", "current_reading") and value is None:
            raise ValidationError(f"{key} cannot be empty")
        if key == "month":
            value = month_start_date(value)
        else:
            value = _decimal(value)
        setattr(reading, key, value)
    reading.updated_at = datetime.utcnow()
    with store_step("update monthly reading"):
        session.add(reading)
        session.flush()
    return reading


def delete_reading(session: Session, reading_id: int) -> None:
    reading = get_reading(session, reading_id)
    with store_step("delete monthly reading"):
        session.delete(reading)
        session.flush()
    logger.info("meter %s: deleted reading for %s", reading.meter_id, reading.month)


def list_readings(
    session: Session,
    tenant_id: Optional[str] = None,
    meter_id: Optional[int] = None,
    start_month: Any = None,
    end_month: Any = None,
) -> List[MonthlyReading]:
    stmt = select(MonthlyReading)
    if tenant_id:
        stmt = stmt.where(MonthlyReading.tenant_id == tenant_id)
    if meter_id:
        stmt = stmt.where(MonthlyReading.meter_id == meter_id)
    if start_month:
        stmt = stmt.where(MonthlyReading.month >= month_start_date(start_month))
    if end_month:
        stmt = stmt.where(MonthlyReading.month <= month_start_date(end_month))
    return session.exec(stmt.order_by(MonthlyReading.meter_id, MonthlyReading.month)).all()
