from datetime import datetime, time, timedelta, timezone

import pytest

from helpdesk.core import ConfigurationException
from helpdesk.sla.domain import BusinessCalendar, CalendarConfig
from helpdesk.sla.infrastructure.external import CalendarConfigManager


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


# Local time is UTC-03:00: 08:00 local == 11:00Z
TUESDAY_10H = utc(2024, 3, 5, 13, 0)
FRIDAY_16H30 = utc(2024, 3, 8, 19, 30)
SATURDAY_NOON = utc(2024, 3, 9, 15, 0)
MONDAY_8H = utc(2024, 3, 11, 11, 0)


def test_adds_minutes_inside_one_window(calendar):
    assert calendar.add_business_minutes(TUESDAY_10H, 60) == utc(2024, 3, 5, 14, 0)


def test_zero_minutes_returns_aligned_start(calendar):
    assert calendar.add_business_minutes(TUESDAY_10H, 0) == TUESDAY_10H
    assert calendar.add_business_minutes(SATURDAY_NOON, 0) == MONDAY_8H


def test_result_may_land_exactly_on_window_end(calendar):
    tuesday_17h = utc(2024, 3, 5, 20, 0)
    assert calendar.add_business_minutes(tuesday_17h, 60) == utc(2024, 3, 5, 21, 0)


def test_friday_short_day_rolls_over_weekend(calendar):
    # 30 minutes left on Friday (closes 17:00), the rest on Monday
    assert calendar.add_business_minutes(FRIDAY_16H30, 60) == MONDAY_8H + timedelta(minutes=30)


def test_start_outside_business_hours_is_aligned(calendar):
    assert calendar.align(SATURDAY_NOON) == MONDAY_8H
    before_opening = utc(2024, 3, 5, 9, 0)
    assert calendar.align(before_opening) == utc(2024, 3, 5, 11, 0)
    assert calendar.add_business_minutes(SATURDAY_NOON, 90) == MONDAY_8H + timedelta(minutes=90)


def test_naive_datetimes_are_taken_as_utc(calendar):
    assert calendar.add_business_minutes(datetime(2024, 3, 5, 13, 0), 15) == utc(2024, 3, 5, 13, 15)


def test_is_business_time(calendar):
    assert calendar.is_business_time(TUESDAY_10H)
    assert not calendar.is_business_time(SATURDAY_NOON)
    # Friday 17:00 local is already closed
    assert not calendar.is_business_time(utc(2024, 3, 8, 20, 0))


@pytest.mark.parametrize("start", [TUESDAY_10H, FRIDAY_16H30, SATURDAY_NOON, utc(2024, 3, 6, 23, 59)])
@pytest.mark.parametrize("minutes", [0, 1, 59, 600, 1440, 4320, 10080])
def test_minutes_between_inverts_add(calendar, start, minutes):
    end = calendar.add_business_minutes(start, minutes)
    assert calendar.business_minutes_between(start, end) == minutes


def test_minutes_between_ignores_closed_time(calendar):
    # Friday 16:30 -> Monday 08:30 spans 30 + 30 business minutes
    assert calendar.business_minutes_between(FRIDAY_16H30, MONDAY_8H + timedelta(minutes=30)) == 60


def test_minutes_between_is_zero_for_reversed_interval(calendar):
    assert calendar.business_minutes_between(TUESDAY_10H, TUESDAY_10H) == 0
    assert calendar.business_minutes_between(TUESDAY_10H, TUESDAY_10H - timedelta(hours=1)) == 0


def test_negative_minutes_are_rejected(calendar):
    with pytest.raises(ValueError):
        calendar.add_business_minutes(TUESDAY_10H, -1)


def test_window_ending_before_start_is_rejected():
    with pytest.raises(ConfigurationException):
        BusinessCalendar({0: (time(18, 0), time(8, 0))})


def test_calendar_without_business_days_is_rejected():
    with pytest.raises(ConfigurationException):
        BusinessCalendar({day: None for day in range(7)})


def test_config_rejects_bad_offset_and_unknown_weekday():
    with pytest.raises(ValueError):
        CalendarConfig(utc_offset="UTC-3")
    with pytest.raises(ValueError):
        CalendarConfig(business_hours={"funday": {"start": "08:00", "end": "18:00"}})


def test_days_left_out_of_config_are_closed():
    config = CalendarConfig(utc_offset="+00:00", business_hours={"Monday": {"start": "09:00", "end": "10:00"}})
    calendar = BusinessCalendar.from_config(config)

    assert config.offset == timedelta(0)
    # Monday 2024-03-04 09:30Z + 60 -> 30 today, 30 next Monday
    assert calendar.add_business_minutes(utc(2024, 3, 4, 9, 30), 60) == utc(2024, 3, 11, 9, 30)


def test_manager_loads_yaml_and_keeps_previous_calendar_on_bad_reload(tmp_path):
    path = tmp_path / "sla_config.yaml"
    path.write_text(
        'utc_offset: "+00:00"\n'
        "business_hours:\n"
        '  monday: {start: "09:00", end: "17:00"}\n'
        "escalation:\n"
        "  risk_threshold_minutes: 30\n"
    )
    manager = CalendarConfigManager()
    manager.load(path)
    assert manager.config.escalation.risk_threshold_minutes == 30

    path.write_text(
        'utc_offset: "+00:00"\n'
        "business_hours:\n"
        '  monday: {start: "17:00", end: "09:00"}\n'
    )
    assert manager.reload() is False
    assert manager.config.escalation.risk_threshold_minutes == 30
    assert manager.calendar.is_business_time(utc(2024, 3, 4, 10, 0))


def test_manager_rejects_malformed_file_on_load(tmp_path):
    path = tmp_path / "sla_config.yaml"
    path.write_text('utc_offset: "three hours"\n')

    with pytest.raises(ConfigurationException):
        CalendarConfigManager().load(path)


def test_manager_falls_back_to_defaults_without_file(tmp_path):
    manager = CalendarConfigManager()
    config = manager.load(tmp_path / "missing.yaml")

    assert config.utc_offset == "-03:00"
    assert manager.cycle_manager().dashboard.risk_cap_minutes == 60
