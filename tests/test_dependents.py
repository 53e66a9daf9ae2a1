from datetime import date
from decimal import Decimal

import pytest
from sqlmodel import select

from backoffice.dependents import (
    MAINTENANCE_HISTORY,
    POWER_METER,
    RENT_HISTORY,
    WATER_HISTORY,
    create_dependent,
    delete_dependent,
    get_active_dependent,
    list_dependents,
    revise_dependent,
)
from backoffice.errors import Conflict, NotFound, ValidationError
from backoffice.models import ACTIVE, INACTIVE, MonthlyReading, Tenant
from backoffice.readings import create_reading, delete_reading, list_readings
from backoffice.tenancy import IN_PLACE, VERSIONED, create_tenant, get_active_tenant


@pytest.fixture
def tenant(session):
    t = create_tenant(session, {"name": "Chitra", "unit_no": "B-2"}, "2024-01-01")
    session.commit()
    return t


@pytest.fixture
def meter(session, tenant):
    record, _, _ = create_dependent(
        session, POWER_METER, tenant.tenant_id, {"initial_reading": 100, "meter_number": "PM-1"}, "2024-03-15"
    )
    session.commit()
    return record


def active_count(session, tenant_id):
    return len(
        session.exec(select(Tenant).where(Tenant.tenant_id == tenant_id, Tenant.status == ACTIVE)).all()
    )


def test_create_meter_seeds_baseline_and_bumps_tenant(session, tenant):
    meter, new_tenant, baseline = create_dependent(
        session, POWER_METER, tenant.tenant_id, {"initial_reading": 100}, "2024-03-15"
    )
    session.commit()

    assert meter.start_date == date(2024, 3, 1)
    assert meter.status == ACTIVE
    assert meter.tenant_version == new_tenant.tenant_version == 2
    assert new_tenant.power_meter_count == 1

    assert baseline.meter_id == meter.meter_id
    assert baseline.month == date(2024, 2, 1)
    assert baseline.previous_reading == Decimal("100")
    assert baseline.current_reading == Decimal("100")
    assert baseline.tenant_version == 2

    old = session.get(Tenant, tenant.id)
    assert old.status == INACTIVE
    assert active_count(session, tenant.tenant_id) == 1


def test_create_meter_requires_initial_reading(session, tenant):
    with pytest.raises(ValidationError):
        create_dependent(session, POWER_METER, tenant.tenant_id, {"meter_number": "PM-9"})


def test_create_for_missing_tenant(session):
    with pytest.raises(NotFound):
        create_dependent(session, RENT_HISTORY, "ghost", {"amount": 5000})


def test_delete_meter_inactivates_and_decrements(session, meter, frozen_clock):
    record, tenant = delete_dependent(session, POWER_METER, meter.meter_id)
    session.commit()

    assert record.status == INACTIVE
    assert record.end_date == frozen_clock
    # the retired meter stays pinned to the version it was created under
    assert record.tenant_version == 2
    assert tenant.tenant_version == 3
    assert tenant.power_meter_count == 0
    with pytest.raises(NotFound):
        get_active_dependent(session, POWER_METER, meter.meter_id)


def test_in_place_meter_start_moves_single_baseline(session, meter):
    rev = revise_dependent(
        session, POWER_METER, meter.meter_id, {"start_date": "2024-05-20", "initial_reading": 140}, in_place=True
    )
    session.commit()

    assert rev.type == IN_PLACE
    assert rev.record.meter_id == meter.meter_id
    assert rev.record.start_date == date(2024, 5, 1)
    assert rev.reading.month == date(2024, 4, 1)
    assert rev.reading.previous_reading == Decimal("140")
    assert rev.reading.current_reading == Decimal("140")
    assert len(list_readings(session, meter_id=meter.meter_id)) == 1


def test_in_place_meter_start_refused_after_second_reading(session, meter):
    create_reading(session, meter.tenant_id, meter.meter_id, "2024-03-01", 180)
    session.commit()

    with pytest.raises(Conflict):
        revise_dependent(session, POWER_METER, meter.meter_id, {"start_date": "2024-06-01"}, in_place=True)
    session.rollback()
    assert get_active_dependent(session, POWER_METER, meter.meter_id).start_date == date(2024, 3, 1)


def test_in_place_meter_start_refused_without_baseline(session, meter):
    (baseline,) = list_readings(session, meter_id=meter.meter_id)
    delete_reading(session, baseline.reading_id)
    session.commit()

    with pytest.raises(Conflict):
        revise_dependent(session, POWER_METER, meter.meter_id, {"initial_reading": 90}, in_place=True)


def test_in_place_meter_number_ignores_reading_count(session, meter):
    create_reading(session, meter.tenant_id, meter.meter_id, "2024-03-01", 180)
    rev = revise_dependent(session, POWER_METER, meter.meter_id, {"meter_number": "PM-1B"}, in_place=True)
    assert rev.record.meter_number == "PM-1B"
    assert rev.reading is None


def test_versioned_meter_update(session, meter, frozen_clock):
    rev = revise_dependent(session, POWER_METER, meter.meter_id, {"meter_number": "PM-2"}, in_place=False)
    session.commit()

    assert rev.type == VERSIONED
    new = rev.record
    assert new.meter_id != meter.meter_id
    assert new.start_date == frozen_clock
    assert new.tenant_version == meter.tenant_version
    assert new.initial_reading == Decimal("100")
    assert new.meter_number == "PM-2"

    old = session.get(type(meter), meter.meter_id)
    assert old.status == INACTIVE
    assert old.end_date == frozen_clock
    assert session.exec(select(MonthlyReading).where(MonthlyReading.meter_id == new.meter_id)).all() == []


def test_versioned_meter_update_rejects_start_date(session, meter):
    with pytest.raises(ValidationError) as exc:
        revise_dependent(session, POWER_METER, meter.meter_id, {"start_date": "2024-07-01"}, in_place=False)
    assert "only allowed for inPlace" in exc.value.message


def test_rent_history_counts_and_resets_start(session, tenant, frozen_clock):
    first, t2, baseline = create_dependent(session, RENT_HISTORY, tenant.tenant_id, {"amount": "5000.50"}, "2024-02-10")
    second, t3, _ = create_dependent(session, RENT_HISTORY, tenant.tenant_id, {"amount": 2500})
    session.commit()

    assert baseline is None
    assert first.start_date == date(2024, 2, 1)
    assert first.amount == Decimal("5000.50")
    assert (t2.rent_portion_count, t3.rent_portion_count) == (1, 2)
    assert second.tenant_version == 3

    rev = revise_dependent(session, RENT_HISTORY, first.rent_id, {"amount": 5200, "start_date": "2023-01-01"}, in_place=False)
    assert rev.record.start_date == frozen_clock
    assert rev.record.amount == Decimal("5200")
    # successors keep the tenant version their predecessor was pinned to
    assert rev.record.tenant_version == 2


def test_rent_history_in_place_start(session, tenant):
    rent, _, _ = create_dependent(session, RENT_HISTORY, tenant.tenant_id, {"amount": 4000}, "2024-02-01")
    rev = revise_dependent(session, RENT_HISTORY, rent.rent_id, {"start_date": "2024-04-18"}, in_place=True)
    assert rev.record.rent_id == rent.rent_id
    assert rev.record.start_date == date(2024, 4, 1)


def test_water_history_is_exclusive(session, tenant):
    _, t2, _ = create_dependent(session, WATER_HISTORY, tenant.tenant_id, {"amount": 300})
    session.commit()
    assert t2.water_required is True

    with pytest.raises(Conflict) as exc:
        create_dependent(session, WATER_HISTORY, tenant.tenant_id, {"amount": 350})
    assert exc.value.message == "Water history already exists for this tenant"
    session.rollback()
    assert get_active_tenant(session, tenant.tenant_id).tenant_version == 2


def test_water_delete_requires_flag(session, tenant):
    water, _, _ = create_dependent(session, WATER_HISTORY, tenant.tenant_id, {"amount": 300})
    current = get_active_tenant(session, tenant.tenant_id)
    current.water_required = False
    session.add(current)
    session.commit()

    with pytest.raises(Conflict) as exc:
        delete_dependent(session, WATER_HISTORY, water.water_id)
    assert exc.value.message == "No water history exists for this tenant"
    session.rollback()
    assert get_active_dependent(session, WATER_HISTORY, water.water_id).status == ACTIVE


def test_water_versioned_update_carries_start(session, tenant):
    water, _, _ = create_dependent(session, WATER_HISTORY, tenant.tenant_id, {"amount": 300}, "2024-02-14")
    carried = revise_dependent(session, WATER_HISTORY, water.water_id, {"amount": 320}, in_place=False).record
    assert carried.start_date == date(2024, 2, 1)

    moved = revise_dependent(
        session, WATER_HISTORY, carried.water_id, {"amount": 330, "start_date": "2024-05-09"}, in_place=False
    ).record
    assert moved.start_date == date(2024, 5, 1)
    assert len(list_dependents(session, WATER_HISTORY, tenant_id=tenant.tenant_id)) == 1
    assert len(list_dependents(session, WATER_HISTORY, status=None, tenant_id=tenant.tenant_id)) == 3


def test_maintenance_flag_round_trip(session, tenant):
    record, t2, _ = create_dependent(session, MAINTENANCE_HISTORY, tenant.tenant_id, {"amount": 150, "remark": "lift"})
    assert t2.maintenance_required is True
    retired, t3 = delete_dependent(session, MAINTENANCE_HISTORY, record.maintenance_id)
    session.commit()

    assert retired.status == INACTIVE
    assert t3.maintenance_required is False
    assert t3.tenant_version == 3
    # the flag is clear again, so a new record may be created
    again, t4, _ = create_dependent(session, MAINTENANCE_HISTORY, tenant.tenant_id, {"amount": 175})
    assert t4.maintenance_required is True
    assert active_count(session, tenant.tenant_id) == 1


@pytest.mark.parametrize("in_place", [True, False])
def test_meter_initial_reading_cannot_be_cleared(session, meter, in_place):
    with pytest.raises(ValidationError) as exc:
        revise_dependent(session, POWER_METER, meter.meter_id, {"initial_reading": None}, in_place=in_place)
    assert exc.value.message == "initial_reading cannot be empty"
    session.rollback()
    assert get_active_dependent(session, POWER_METER, meter.meter_id).initial_reading == Decimal("100")
