from datetime import datetime, time
from decimal import Decimal

import pytest

from groundops_api.common.errors import ValidationFailed
from groundops_api.services.derivation import (
    check_time_order,
    classify_check_in,
    hours_between,
    parse_coordinates,
    parse_cutoff,
    parse_date,
    parse_datetime,
    parse_status,
)


@pytest.mark.parametrize("hh,mm,ss,expected", [
    (8, 59, 0, "present"),
    (9, 0, 0, "present"),
    (9, 0, 1, "late"),
    (9, 15, 0, "late"),
])
def test_classify_check_in_against_default_cutoff(hh, mm, ss, expected):
    assert classify_check_in(datetime(2025, 3, 3, hh, mm, ss)) == expected


def test_classify_check_in_custom_cutoff():
    assert classify_check_in(datetime(2025, 3, 3, 8, 50), time(8, 45)) == "late"


def test_hours_between_rounds_to_two_places():
    assert hours_between(datetime(2025, 3, 3, 8, 0), datetime(2025, 3, 3, 16, 30)) == Decimal("8.50")
    assert hours_between(datetime(2025, 3, 3, 8, 0), datetime(2025, 3, 3, 8, 20)) == Decimal("0.33")
    # 18s = 0.005h, rounds half up
    assert hours_between(datetime(2025, 3, 3, 8, 0), datetime(2025, 3, 3, 8, 0, 18)) == Decimal("0.01")


def test_hours_between_needs_both_times():
    assert hours_between(datetime(2025, 3, 3, 8, 0), None) is None
    assert hours_between(None, None) is None


def test_parse_cutoff():
    assert parse_cutoff("08:45") == time(8, 45)
    assert parse_cutoff(time(7, 30)) == time(7, 30)
    assert parse_cutoff("nonsense") == time(9, 0)


def test_parse_date():
    assert parse_date("2025-03-01").isoformat() == "2025-03-01"
    assert parse_date("") is None
    with pytest.raises(ValidationFailed):
        parse_date("01/03/2025", "start_date")


def test_parse_datetime_drops_offset():
    assert parse_datetime("2025-03-01T08:00:00Z", "check_in_time") == datetime(2025, 3, 1, 8, 0)
    assert parse_datetime("2025-03-01 17:45", "check_out_time") == datetime(2025, 3, 1, 17, 45)
    with pytest.raises(ValidationFailed):
        parse_datetime("yesterday", "check_in_time")


def test_parse_status():
    assert parse_status(" Absent ") == "absent"
    with pytest.raises(ValidationFailed):
        parse_status("on_leave")


def test_parse_coordinates_bounds():
    assert parse_coordinates(None, None) == (None, None)
    lat, lon = parse_coordinates("19.0896", 72.8656)
    assert lat == Decimal("19.0896") and lon == Decimal("72.8656")
    with pytest.raises(ValidationFailed):
        parse_coordinates(91, 0)
    with pytest.raises(ValidationFailed):
        parse_coordinates(0, -180.5)
    with pytest.raises(ValidationFailed):
        parse_coordinates("north", 0)
    with pytest.raises(ValidationFailed):
        parse_coordinates("NaN", 0)


def test_check_time_order():
    check_time_order(datetime(2025, 3, 3, 8), datetime(2025, 3, 3, 8))
    check_time_order(datetime(2025, 3, 3, 8), None)
    check_time_order(None, None)
    with pytest.raises(ValidationFailed):
        check_time_order(datetime(2025, 3, 3, 9), datetime(2025, 3, 3, 8))


def test_check_out_needs_a_check_in():
    with pytest.raises(ValidationFailed):
        check_time_order(None, datetime(2025, 3, 3, 8))


def test_shift_length_is_bounded():
    check_time_order(datetime(2025, 3, 3, 20), datetime(2025, 3, 4, 20))
    with pytest.raises(ValidationFailed):
        check_time_order(datetime(2025, 3, 3, 20), datetime(2025, 3, 4, 20, 1))
    with pytest.raises(ValidationFailed):
        check_time_order(datetime(2025, 1, 1, 8), datetime(2025, 3, 3, 8))
