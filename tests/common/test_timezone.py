# tests/common/test_timezone.py
"""
Тесты границ локальных суток.
"""

from datetime import datetime, timedelta, timezone

from src.common.timezone import is_today, local_now, today_bounds, utc_now


def test_utc_now_is_aware() -> None:
    assert utc_now().tzinfo is not None


def test_local_now_uses_zone() -> None:
    assert local_now("Asia/Kolkata").utcoffset() == timedelta(hours=5, minutes=30)


def test_today_bounds_in_kolkata() -> None:
    # 20:00 UTC 14 марта = 01:30 15 марта в Индии
    now = datetime(2025, 3, 14, 20, 0, tzinfo=timezone.utc)
    start, end = today_bounds("Asia/Kolkata", now=now)

    assert start == datetime(2025, 3, 14, 18, 30, tzinfo=timezone.utc)
    assert end - start == timedelta(days=1)


def test_is_today_respects_local_midnight() -> None:
    now = datetime(2025, 3, 14, 20, 0, tzinfo=timezone.utc)

    assert is_today(datetime(2025, 3, 14, 19, 0, tzinfo=timezone.utc), "Asia/Kolkata", now=now)
    assert not is_today(datetime(2025, 3, 14, 18, 0, tzinfo=timezone.utc), "Asia/Kolkata", now=now)


def test_is_today_naive_treated_as_utc() -> None:
    now = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)
    assert is_today(datetime(2025, 3, 14, 12, 0), "UTC", now=now)
