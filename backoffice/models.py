from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import Column, ForeignKeyConstraint, Index, Numeric, UniqueConstraint, text
from sqlmodel import Field, SQLModel

ACTIVE = "active"
INACTIVE = "inactive"


def DecimalColumn(scale: int = 4, precision: int = 18, nullable: bool = True):
    return Column(Numeric(precision, scale), nullable=nullable)


def _tenant_fk():
    return ForeignKeyConstraint(
        ["tenant_id", "tenant_version"],
        ["tenant.tenant_id", "tenant.tenant_version"],
    )


def _new_tenant_id() -> str:
    return uuid.uuid4().hex


class Owner(SQLModel, table=True):
    owner_id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False)
    mobile: Optional[str] = None
    email: Optional[str] = None
    organization_id: Optional[int] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Tenant(SQLModel, table=True):
    # one row per (tenant_id, tenant_version); only the newest may be active
    __table_args__ = (
        UniqueConstraint("tenant_id", "tenant_version", name="uq_tenant_version"),
        Index(
            "uq_tenant_active",
            "tenant_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(default_factory=_new_tenant_id, index=True, nullable=False)
    tenant_version: int = Field(default=1, nullable=False)
    status: str = Field(default=ACTIVE, nullable=False)
    start_date: date
    end_date: Optional[date] = None

    name: str = Field(nullable=False)
    mobile: Optional[str] = None
    email: Optional[str] = None
    unit_no: Optional[str] = None
    remark: Optional[str] = None
    owner_id: Optional[int] = Field(default=None, foreign_key="owner.owner_id")

    power_meter_count: int = Field(default=0)
    rent_portion_count: int = Field(default=0)
    water_required: bool = Field(default=False)
    maintenance_required: bool = Field(default=False)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None


class TenantPinned(SQLModel):
    """Columns shared by records pinned to the tenant version they were created under."""

    tenant_id: str = Field(index=True, nullable=False)
    tenant_version: int = Field(nullable=False)
    status: str = Field(default=ACTIVE, nullable=False)
    start_date: date
    end_date: Optional[date] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None


class PowerMeter(TenantPinned, table=True):
    __table_args__ = (_tenant_fk(),)

    meter_id: Optional[int] = Field(default=None, primary_key=True)
    meter_number: Optional[str] = None
    initial_reading: Decimal = Field(default=Decimal("0"), sa_column=DecimalColumn(nullable=False))


class RentHistory(TenantPinned, table=True):
    __table_args__ = (_tenant_fk(),)

    rent_id: Optional[int] = Field(default=None, primary_key=True)
    amount: Optional[Decimal] = Field(default=None, sa_column=DecimalColumn())
    remark: Optional[str] = None


class WaterHistory(TenantPinned, table=True):
    __table_args__ = (_tenant_fk(),)

    water_id: Optional[int] = Field(default=None, primary_key=True)
    amount: Optional[Decimal] = Field(default=None, sa_column=DecimalColumn())
    remark: Optional[str] = None


class MaintenanceHistory(TenantPinned, table=True):
    __table_args__ = (_tenant_fk(),)

    maintenance_id: Optional[int] = Field(default=None, primary_key=True)
    amount: Optional[Decimal] = Field(default=None, sa_column=DecimalColumn())
    remark: Optional[str] = None


class MonthlyReading(SQLModel, table=True):
    __table_args__ = (
        _tenant_fk(),
        Index("uq_reading_meter_month", "meter_id", "month", unique=True),
    )

    reading_id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(index=True, nullable=False)
    tenant_version: int = Field(nullable=False)
    meter_id: int = Field(foreign_key="powermeter.meter_id", index=True)
    month: date = Field(nullable=False, index=True)  # first day of the period
    previous_reading: Decimal = Field(default=Decimal("0"), sa_column=DecimalColumn(nullable=False))
    current_reading: Decimal = Field(default=Decimal("0"), sa_column=DecimalColumn(nullable=False))
    rate_per_unit: Optional[Decimal] = Field(default=None, sa_column=DecimalColumn())
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None


def derive_from(base: SQLModel, overlay: Optional[dict] = None, **pinned: Any) -> SQLModel:
    """Build an unsaved successor of ``base``.

    All column values are copied except the primary key and timestamps, then
    ``overlay`` (caller changes) and ``pinned`` (engine-controlled values such
    as status or version) are applied in that order.
    """
    model = type(base)
    skip = {c.name for c in model.__table__.primary_key.columns}
    skip.update({"created_at", "updated_at"})
    values = base.model_dump(exclude=skip)
    values.update(overlay or {})
    values.update(pinned)
    return model(**values)
