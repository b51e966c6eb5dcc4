from datetime import date, datetime, time, timedelta, timezone

from spa_booking.services.business_calendar import (
    BUSINESS_TZ,
    business_date,
    business_today,
    civil_datetime,
    shift_date,
    shift_span,
    shift_window,
)


def test_business_date_rolls_over_at_midnight_manila():
    # 15:59 UTC is 23:59 in UTC+8; 16:00 UTC is the next civil day
    assert business_date(datetime(2030, 3, 1, 15, 59, tzinfo=timezone.utc)) == date(2030, 3, 1)
    assert business_date(datetime(2030, 3, 1, 16, 0, tzinfo=timezone.utc)) == date(2030, 3, 2)


def test_naive_datetimes_are_treated_as_utc():
    assert business_date(datetime(2030, 3, 1, 20, 0)) == date(2030, 3, 2)


def test_business_date_ignores_the_callers_timezone():
    instant = datetime(2030, 3, 1, 16, 30, tzinfo=timezone.utc)
    new_york = instant.astimezone(timezone(timedelta(hours=-5)))
    assert business_date(new_york) == business_date(instant) == date(2030, 3, 2)


def test_business_date_is_non_decreasing():
    start = datetime(2030, 1, 1, tzinfo=timezone.utc)
    previous = business_date(start)
    for step in range(1, 24 * 9):
        current = business_date(start + timedelta(minutes=37 * step))
        assert current >= previous
        previous = current


def test_one_business_date_per_local_day():
    local_midnight = datetime(2030, 6, 10, 0, 0, tzinfo=BUSINESS_TZ)
    seen = {
        business_date(local_midnight + timedelta(minutes=m))
        for m in range(0, 24 * 60, 15)
    }
    assert seen == {date(2030, 6, 10)}
    assert business_date(local_midnight + timedelta(days=1)) == date(2030, 6, 11)


def test_business_today_uses_supplied_now():
    now = datetime(2030, 12, 31, 17, 0, tzinfo=timezone.utc)
    assert business_today(now) == date(2031, 1, 1)


def test_shift_window_runs_four_pm_to_next_afternoon():
    window = shift_window(date(2030, 5, 4))
    assert window.start == datetime(2030, 5, 4, 16, 0, tzinfo=BUSINESS_TZ)
    assert window.end == datetime(2030, 5, 5, 15, 59, 59, tzinfo=BUSINESS_TZ)
    assert window.business_date == date(2030, 5, 4)
    assert window.contains(civil_datetime(date(2030, 5, 5), time(2, 0)))
    assert not window.contains(civil_datetime(date(2030, 5, 5), time(16, 0)))


def test_shift_window_as_utc_is_naive():
    start, end = shift_window(date(2030, 5, 4)).as_utc()
    assert start == datetime(2030, 5, 4, 8, 0)
    assert end == datetime(2030, 5, 5, 7, 59, 59)


def test_shift_date_and_business_date_differ_before_four_pm():
    morning = civil_datetime(date(2030, 5, 5), time(10, 0))
    assert business_date(morning) == date(2030, 5, 5)
    assert shift_date(morning) == date(2030, 5, 4)
    evening = civil_datetime(date(2030, 5, 5), time(16, 0))
    assert shift_date(evening) == date(2030, 5, 5)


def test_shift_span_orders_its_bounds():
    span = shift_span(date(2030, 5, 10), date(2030, 5, 4))
    assert span.start == shift_window(date(2030, 5, 4)).start
    assert span.end == shift_window(date(2030, 5, 10)).end
