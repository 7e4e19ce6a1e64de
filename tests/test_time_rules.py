from datetime import datetime

from pms.services.time_rules import local_to_utc, next_local_midnight, utc_to_local, whole_minutes_between


def test_next_midnight_in_utc():
    assert next_local_midnight(datetime(2025, 3, 10, 22, 0), "UTC") == datetime(2025, 3, 11, 0, 0)


def test_shift_starting_at_midnight_runs_a_full_day():
    assert next_local_midnight(datetime(2025, 3, 10, 0, 0), "UTC") == datetime(2025, 3, 11, 0, 0)


def test_next_midnight_follows_local_day():
    # 02:00 UTC on the 11th is still the evening of the 10th in Vancouver (UTC-7 in summer)
    start = datetime(2025, 7, 11, 2, 0)
    assert utc_to_local(start, "America/Vancouver").day == 10
    assert next_local_midnight(start, "America/Vancouver") == datetime(2025, 7, 11, 7, 0)


def test_local_to_utc_is_naive():
    result = local_to_utc(datetime(2025, 1, 15, 9, 0), "America/Vancouver")
    assert result.tzinfo is None
    assert result == datetime(2025, 1, 15, 17, 0)


def test_whole_minutes_floor_and_clamp():
    start = datetime(2025, 1, 1, 9, 0, 0)
    assert whole_minutes_between(start, datetime(2025, 1, 1, 9, 0, 59)) == 0
    assert whole_minutes_between(start, datetime(2025, 1, 1, 10, 30, 59)) == 90
    assert whole_minutes_between(start, datetime(2025, 1, 1, 8, 0)) == 0
