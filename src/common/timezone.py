"""
Работа с часовым поясом сервиса.
Границы "сегодня" для заработка считаются в локальной зоне (по умолчанию Asia/Kolkata).
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


DEFAULT_TIMEZONE = "Asia/Kolkata"


def get_zone(name: str | None = None) -> ZoneInfo:
    """Возвращает зону из настроек или переданного имени."""
    if name is None:
        from src.config import settings
        name = settings.domain.TIMEZONE
    return ZoneInfo(name)


def utc_now() -> datetime:
    """Текущее время в UTC (aware)."""
    return datetime.now(timezone.utc)


def local_now(tz_name: str | None = None) -> datetime:
    """Текущее время в локальной зоне."""
    return utc_now().astimezone(get_zone(tz_name))


def today_bounds(tz_name: str | None = None, now: datetime | None = None) -> tuple[datetime, datetime]:
    """
    Границы текущих локальных суток в UTC.

    Returns:
        (начало дня, начало следующего дня), оба aware UTC
    """
    zone = get_zone(tz_name)
    current = (now or utc_now()).astimezone(zone)
    start = datetime.combine(current.date(), time.min, tzinfo=zone)
    end = start + timedelta(days=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def is_today(value: datetime, tz_name: str | None = None, now: datetime | None = None) -> bool:
    """Попадает ли момент в текущие локальные сутки."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    start, end = today_bounds(tz_name, now)
    return start <= value < end
