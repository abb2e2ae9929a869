from datetime import date

from utils.timeslots import (
    assignable_times_for_system,
    assignable_times_for_window,
    format_event_date,
    generate_time_slots,
    normalize_time_range,
    parse_iso_date,
    requested_time_windows,
)


def test_dual_slots_cover_four_to_six():
    slots = generate_time_slots("dual")
    assert len(slots) == 8
    assert slots[0] == "16:00 - 16:15"
    assert slots[-1] == "17:45 - 18:00"


def test_vollzeit_slots_cover_five_to_seven():
    slots = generate_time_slots("vollzeit")
    assert slots[0] == "17:00 - 17:15"
    assert slots[-1] == "18:45 - 19:00"


def test_unknown_system_falls_back_to_dual():
    assert generate_time_slots("abend") == generate_time_slots("dual")


def test_request_windows_are_half_hours():
    assert requested_time_windows("dual") == [
        "16:00 - 16:30",
        "16:30 - 17:00",
        "17:00 - 17:30",
        "17:30 - 18:00",
    ]


def test_window_splits_into_quarter_hours():
    assert assignable_times_for_window("16:30 - 17:00") == ["16:30 - 16:45", "16:45 - 17:00"]
    assert assignable_times_for_window("nonsense") == []


def test_system_assignable_times_match_slot_grid():
    assert assignable_times_for_system("vollzeit") == generate_time_slots("vollzeit")


def test_normalize_time_range():
    assert normalize_time_range("16:00-16:15") == "16:00 - 16:15"
    assert normalize_time_range("18:00 - 17:00") is None
    assert normalize_time_range(None) is None


def test_event_date_formats():
    assert format_event_date(date(2026, 11, 20)) == "20.11.2026"
    assert parse_iso_date("2026-11-20") == date(2026, 11, 20)
    assert parse_iso_date("2026-13-01") is None
    assert parse_iso_date("") is None
