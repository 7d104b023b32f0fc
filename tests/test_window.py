from datetime import timedelta

from queue_system.window import calendar_day, last_reset, next_reset

from conftest import local


def test_before_reset_hour_uses_yesterdays_boundary():
    assert last_reset(local(2026, 3, 10, 11, 59)) == local(2026, 3, 9, 12, 0)


def test_after_reset_hour_uses_todays_boundary():
    assert last_reset(local(2026, 3, 10, 12, 1)) == local(2026, 3, 10, 12, 0)


def test_exactly_on_the_boundary_starts_a_new_window():
    assert last_reset(local(2026, 3, 10, 12, 0)) == local(2026, 3, 10, 12, 0)
    assert next_reset(local(2026, 3, 10, 12, 0)) == local(2026, 3, 11, 12, 0)


def test_next_reset():
    assert next_reset(local(2026, 3, 10, 11, 59)) == local(2026, 3, 10, 12, 0)
    assert next_reset(local(2026, 3, 10, 23, 30)) == local(2026, 3, 11, 12, 0)


def test_window_spans_one_day():
    now = local(2026, 3, 10, 18, 0)
    assert next_reset(now) - last_reset(now) == timedelta(days=1)


def test_reset_hour_is_configurable(engine_settings):
    engine_settings.QUEUE_ENGINE = {**engine_settings.QUEUE_ENGINE, 'DAILY_RESET_HOUR': 6, 'DAILY_RESET_MINUTE': 30}
    assert last_reset(local(2026, 3, 10, 6, 29)) == local(2026, 3, 9, 6, 30)
    assert last_reset(local(2026, 3, 10, 7, 0)) == local(2026, 3, 10, 6, 30)


def test_calendar_day_is_midnight_to_midnight():
    start, end = calendar_day(local(2026, 3, 10, 11, 0))
    assert start == local(2026, 3, 10)
    assert end == local(2026, 3, 11)
