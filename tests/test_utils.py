import pytest

from festival_server.utils import (
    format_display_time, format_time_range, generate_session_id, is_extended_time,
)


@pytest.mark.parametrize("value", ["00:00", "14:30", "23:59", "24:00", "29:59"])
def test_valid_extended_times(value):
    assert is_extended_time(value)


@pytest.mark.parametrize("value", ["30:00", "9:00", "12:60", "12:5", "", None, 1200])
def test_invalid_extended_times(value):
    assert not is_extended_time(value)


def test_format_display_time():
    assert format_display_time("14:00") == "14:00"
    assert format_display_time("25:30") == "01:30 (+1)"
    assert format_time_range("23:00", "25:30") == "23:00 - 01:30 (+1)"


def test_session_ids_are_unique_enough():
    ids = {generate_session_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(i.startswith("session_") for i in ids)
