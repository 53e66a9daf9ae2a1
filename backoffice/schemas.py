from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StatusFilter(str, Enum):
    active = "active"
    inactive = "inactive"
    all = "all"


class UpdateBase(BaseModel):
    """Update bodies carry ``inPlace`` to pick between rewrite and new version."""

    model_config = ConfigDict(populate_by_name=True)

    in_place: bool = Field(False, alias="inPlace")

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={"in_place"})


class OwnerCreate(BaseModel):
    name: str
    mobile: Optional[str] = None
    email: Optional[str] = None
    organization_id: Optional[int] = None


class OwnerUpdate(BaseModel):
    name: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None
    organization_id: Optional[int] = None


class TenantCreate(BaseModel):
    name: str
    mobile: Optional[str] = None
    email: Optional[str] = None
    unit_no: Optional[str] = None
    remark: Optional[str] = None
    owner_id: Optional[int] = None
    start_date: Optional[str] = Field(None, description="Any date in the first month of tenancy")


class TenantUpdate(UpdateBase):
    name: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None
    unit_no: Optional[str] = None
    remark: Optional[str] = None
    owner_id: Optional[int] = None
    start_date: Optional[str] = None


class PowerMeterCreate(BaseModel):
    tenant_id: str
    initial_reading: Decimal = Field(..., ge=0)
    meter_number: Optional[str] = None
    start_date: Optional[str] = None


class PowerMeterUpdate(UpdateBase):
    meter_number: Optional[str] = None
    initial_reading: Optional[Decimal] = Field(None, ge=0)
    start_date: Optional[str] = None


class HistoryCreate(BaseModel):
    tenant_id: str
    amount: Optional[Decimal] = None
    remark: Optional[str] = None
    start_date: Optional[str] = None


class HistoryUpdate(UpdateBase):
    amount: Optional[Decimal] = None
    remark: Optional[str] = None
    start_date: Optional[str] = None


class ReadingCreate(BaseModel):
    tenant_id: str
    meter_id: int
    month: str
    current_reading: Decimal
    rate_per_unit: Optional[Decimal] = None
    # accepted for compatibility; the ledger always takes the previous month's close
    previous_reading: Optional[Decimal] = None


class ReadingUpdate(BaseModel):
    month: Optional[str] = None
    previous_reading: Optional[Decimal] = None
    current_reading: Optional[Decimal] = None
    rate_per_unit: Optional[Decimal] = None
