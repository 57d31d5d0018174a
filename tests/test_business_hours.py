from datetime import datetime
from zoneinfo import ZoneInfo

from comanda.services.business_hours import is_within_business_hours, parse_business_hours

TZ = ZoneInfo("America/Argentina/Buenos_Aires")


def _at(year, month, day, hour, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=TZ)


# 2024-06-03 es lunes, 2024-06-07 viernes, 2024-06-08 sábado, 2024-06-09 domingo


def test_weekday_range() -> None:
    hours = "Lun-Vie 11:00-23:00"

    assert is_within_business_hours(hours, _at(2024, 6, 3, 12))
    assert not is_within_business_hours(hours, _at(2024, 6, 3, 10, 59))
    assert not is_within_business_hours(hours, _at(2024, 6, 8, 12))


def test_time_range_crossing_midnight() -> None:
    hours = "Vie 20:00-02:00"

    assert is_within_business_hours(hours, _at(2024, 6, 7, 23, 30))
    # madrugada del sábado sigue siendo el turno del viernes
    assert is_within_business_hours(hours, _at(2024, 6, 8, 1, 30))
    assert not is_within_business_hours(hours, _at(2024, 6, 8, 2, 30))


def test_day_range_wraps_around_the_week() -> None:
    hours = "Vie-Lun 12-15"

    assert is_within_business_hours(hours, _at(2024, 6, 9, 13))
    assert is_within_business_hours(hours, _at(2024, 6, 3, 13))
    assert not is_within_business_hours(hours, _at(2024, 6, 4, 13))


def test_multiple_segments_with_accents() -> None:
    hours = "Lun-Jue 11-15; Sáb 19:00-00:00"

    assert is_within_business_hours(hours, _at(2024, 6, 8, 21))
    assert not is_within_business_hours(hours, _at(2024, 6, 7, 12))


def test_unparseable_or_empty_hours_mean_open() -> None:
    assert parse_business_hours("") == []
    assert is_within_business_hours(None, _at(2024, 6, 3, 4))
    assert is_within_business_hours("cuando tengamos ganas", _at(2024, 6, 3, 4))


def test_split_shift_repeats_days_of_previous_segment() -> None:
    hours = "Lun-Vie 11:00-15:00, 19:00-23:00"

    assert is_within_business_hours(hours, _at(2024, 6, 7, 20))
    assert not is_within_business_hours(hours, _at(2024, 6, 8, 20))
    assert not is_within_business_hours(hours, _at(2024, 6, 9, 12))
    assert [sorted(segment.days) for segment in parse_business_hours(hours)] == [[1, 2, 3, 4, 5]] * 2


def test_hours_without_days_apply_every_day() -> None:
    assert is_within_business_hours("19:00-23:00", _at(2024, 6, 9, 20))
