from datetime import date

import pytest

from scheduling.services.timewindows import (
    Window,
    day_of_week,
    expand,
    format_hhmm,
    parse_calendar_date,
    parse_hhmm,
    partition,
    serial_window,
)


def test_parse_and_format_round_trip_edges():
    assert parse_hhmm("00:00") == 0
    assert parse_hhmm("23:59") == 23 * 60 + 59
    assert format_hhmm(570) == "09:30"


@pytest.mark.parametrize("value", ["9:00", "24:00", "12:60", "12-00", "", None, "12:00:00"])
def test_parse_rejects_malformed_times(value):
    with pytest.raises(ValueError):
        parse_hhmm(value)


@pytest.mark.parametrize("value", ["2025-3-10", "20250310", "2025-02-30", "10/03/2025"])
def test_calendar_dates_are_strict(value):
    with pytest.raises(ValueError):
        parse_calendar_date(value)


def test_day_of_week_is_sunday_based():
    assert day_of_week(date(2025, 3, 9)) == 0  # Sunday
    assert day_of_week(date(2025, 3, 10)) == 1
    assert day_of_week(date(2025, 3, 15)) == 6


def test_window_requires_end_after_start():
    with pytest.raises(ValueError):
        Window.parse("10:00", "10:00")
    with pytest.raises(ValueError):
        Window.parse("11:00", "10:00")


def test_overlap_is_half_open():
    a = Window.parse("09:00", "09:15")
    assert not a.overlaps(Window.parse("09:15", "09:30"))
    assert a.overlaps(Window.parse("09:10", "09:20"))
    assert Window.parse("08:00", "10:00").overlaps(a)


def test_expand_eight_hours_into_quarter_hours():
    slots = expand(Window.parse("09:00", "17:00"), 15)
    assert len(slots) == 32
    assert slots[0].as_strings() == ("09:00", "09:15")
    assert slots[-1].as_strings() == ("16:45", "17:00")


def test_expand_drops_partial_trailing_slot():
    slots = expand(Window.parse("09:00", "10:10"), 20)
    assert [s.as_strings() for s in slots][-1] == ("09:40", "10:00")
    assert len(slots) == 3


def test_partition_twenty_serials_over_eight_hours():
    serials = partition(Window.parse("09:00", "17:00"), 20)
    assert len(serials) == 20
    assert all(s.length == 24 for s in serials)
    assert serials[1].as_strings() == ("09:24", "09:48")
    assert serials[-1].as_strings() == ("16:36", "17:00")


def test_partition_truncates_and_leaves_remainder_unassigned():
    serials = partition(Window.parse("09:00", "10:00"), 7)
    assert all(s.length == 8 for s in serials)
    assert serials[-1].end == parse_hhmm("09:56")


def test_partition_rejects_zero_length_serials():
    with pytest.raises(ValueError):
        partition(Window.parse("09:00", "09:30"), 31)


def test_serial_window_matches_partition():
    window = Window.parse("09:00", "17:00")
    assert serial_window(window, 20, 4) == partition(window, 20)[3]
    with pytest.raises(ValueError):
        serial_window(window, 20, 21)
