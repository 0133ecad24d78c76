from datetime import date, datetime, timedelta, timezone

from dharma.domain.clock import FrozenClock, SystemClock, civil_day, ensure_aware


def test_system_clock_returns_aware_utc():
    now = SystemClock().now()
    assert now.tzinfo is not None
    assert now.utcoffset() == timedelta(0)


def test_frozen_clock_set_and_advance():
    clock = FrozenClock(datetime(2025, 1, 1, tzinfo=timezone.utc))
    assert clock.now() == datetime(2025, 1, 1, tzinfo=timezone.utc)

    clock.advance(days=6, hours=3)
    assert clock.now() == datetime(2025, 1, 7, 3, tzinfo=timezone.utc)

    clock.set(datetime(2030, 5, 5))
    assert clock.now() == datetime(2030, 5, 5, tzinfo=timezone.utc)


def test_ensure_aware_treats_naive_as_utc():
    naive = datetime(2025, 1, 1, 12, 0)
    assert ensure_aware(naive) == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    ist = timezone(timedelta(hours=5, minutes=30))
    aware = datetime(2025, 1, 1, 12, 0, tzinfo=ist)
    assert ensure_aware(aware) is aware


def test_civil_day_uses_ist_by_default():
    # 19:00 UTC is already the next morning in India.
    instant = datetime(2025, 1, 1, 19, 0, tzinfo=timezone.utc)
    assert civil_day(instant) == date(2025, 1, 2)
    assert civil_day(instant, offset_minutes=0) == date(2025, 1, 1)


def test_civil_day_boundary_at_local_midnight():
    just_before = datetime(2025, 1, 1, 18, 29, 59, tzinfo=timezone.utc)
    midnight = datetime(2025, 1, 1, 18, 30, tzinfo=timezone.utc)
    assert civil_day(just_before) == date(2025, 1, 1)
    assert civil_day(midnight) == date(2025, 1, 2)
