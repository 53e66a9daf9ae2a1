from datetime import date, datetime

import pytest
import pytz

from backoffice import dates
from backoffice.dates import month_start, month_start_date, previous_month
from backoffice.errors import ValidationError


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-03-15", "2024-03-01"),
        ("2024-03-01", "2024-03-01"),
        ("2024-12-31", "2024-12-01"),
        ("2024-03", "2024-03-01"),
        ("2024-02-29T23:59:00", "2024-02-01"),
        (date(2023, 7, 9), "2023-07-01"),
        (datetime(2023, 7, 9, 18, 45), "2023-07-01"),
    ],
)
def test_month_start_lands_on_day_one(value, expected):
    assert month_start(value) == expected


@pytest.mark.parametrize("value", ["2024-03-15", "2025-01-31", "1999-12-01"])
def test_month_start_is_idempotent(value):
    once = month_start(value)
    assert month_start(once) == once


def test_aware_datetime_is_read_in_ist():
    # 20:00 UTC on 31 March is 01:30 IST on 1 April
    utc_evening = datetime(2024, 3, 31, 20, 0, tzinfo=pytz.utc)
    assert month_start(utc_evening) == "2024-04-01"


def test_offset_string_is_read_in_ist():
    assert month_start("2024-03-31T20:00:00+00:00") == "2024-04-01"


def test_missing_value_uses_current_month(monkeypatch):
    monkeypatch.setattr(dates, "_now", lambda: dates.IST.localize(datetime(2024, 6, 18, 9, 0)))
    assert month_start() == "2024-06-01"
    assert month_start("") == "2024-06-01"
    assert month_start_date(None) == date(2024, 6, 1)


@pytest.mark.parametrize("value", ["not-a-date", "2024-02-30", 12345, ["2024-03-01"]])
def test_unparseable_input_is_rejected(value):
    with pytest.raises(ValidationError) as exc:
        month_start(value)
    assert exc.value.message == "Invalid date format. Use YYYY-MM-DD."
    assert exc.value.status_code == 400


def test_previous_month_within_year():
    assert previous_month(date(2024, 3, 15)) == date(2024, 2, 1)


def test_previous_month_rolls_back_over_january():
    assert previous_month("2024-01-20") == date(2023, 12, 1)
