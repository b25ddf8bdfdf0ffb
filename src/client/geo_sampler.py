# src/client/geo_sampler.py
"""
Периодический сэмплер координат партнёра.

Каждые SAMPLE_INTERVAL секунд запрашивает одну точку у PositionSource
и отправляет её двумя независимыми путями: POST в ingest и
locationSample в канал трекинга. Ошибка одного пути не блокирует другой.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional, Protocol

import httpx

from src.client.api_client import TrackingApiClient, TrackingChannel
from src.common.constants import TypeMsg
from src.common.exceptions import (
    GeolocationError,
    GeoTimeoutError,
    PermissionDeniedError,
    TransportError,
    UnavailableError,
)
from src.common.logger import log_info
from src.common.timezone import utc_now


@dataclass(frozen=True)
class Fix:
    """Одна точка от источника координат."""
    latitude: float
    longitude: float
    captured_at: datetime = field(default_factory=utc_now)


class PositionSource(Protocol):
    """
    Источник координат устройства.
    Может вернуть кэшированную точку не старше max_age секунд.
    Ошибки: PermissionDeniedError, UnavailableError.
    """

    async def get_position(self, max_age: float) -> Fix: ...


class ReplayPositionSource:
    """
    Источник, проигрывающий заранее заданный маршрут по кругу.
    Используется симулятором партнёра и в тестах.
    """

    def __init__(self, points: Iterable[tuple[float, float]], loop: bool = True) -> None:
        self._points = list(points)
        if not self._points:
            raise ValueError("Маршрут пуст")
        self._loop = loop
        self._index = 0

    async def get_position(self, max_age: float) -> Fix:
        if self._index >= len(self._points):
            if not self._loop:
                raise UnavailableError("Маршрут закончился")
            self._index = 0
        lat, lng = self._points[self._index]
        self._index += 1
        return Fix(latitude=lat, longitude=lng, captured_at=utc_now())


class GeoSampler:
    """Цикл сэмплирования с фиксированным шагом."""

    def __init__(
        self,
        source: PositionSource,
        api: Optional[TrackingApiClient] = None,
        channel: Optional[TrackingChannel] = None,
        interval: float | None = None,
        timeout: float | None = None,
        max_age: float | None = None,
    ) -> None:
        if interval is None or timeout is None or max_age is None:
            from src.config import settings
            interval = interval if interval is not None else settings.tracking.SAMPLE_INTERVAL
            timeout = timeout if timeout is not None else settings.tracking.SAMPLE_TIMEOUT
            max_age = max_age if max_age is not None else settings.tracking.MAX_FIX_AGE
        self.source = source
        self.api = api
        self.channel = channel
        self.interval = interval
        self.timeout = timeout
        self.max_age = max_age

        self.last_error: Optional[GeolocationError] = None
        self.last_fix: Optional[Fix] = None
        self._task: Optional[asyncio.Task] = None
        self._stats = {
            "samples_ok": 0,
            "samples_failed": 0,
            "posts_failed": 0,
            "sends_failed": 0,
        }

    # === СОСТОЯНИЕ ===

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def location_available(self) -> bool:
        """False, пока последняя попытка получить точку неуспешна."""
        return self.last_error is None and self.last_fix is not None

    def get_stats(self) -> dict[str, Any]:
        return {**self._stats, "running": self.is_running, "location_available": self.location_available}

    # === ЖИЗНЕННЫЙ ЦИКЛ ===

    def start(self) -> asyncio.Task:
        """Запускает цикл. Повторный вызов на работающем цикле ничего не делает."""
        if self.is_running:
            return self._task
        self.last_error = None
        self._task = asyncio.create_task(self._run(), name="geo_sampler")
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    # === СЭМПЛ ===

    async def sample(self) -> Fix:
        """
        Одна точка от источника.

        Raises:
            GeoTimeoutError: источник не ответил за timeout
            PermissionDeniedError: доступ к геолокации запрещён
            UnavailableError: точка недоступна или устарела
        """
        try:
            fix = await asyncio.wait_for(self.source.get_position(self.max_age), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise GeoTimeoutError(f"Нет координат за {self.timeout} с") from None

        if utc_now() - fix.captured_at > timedelta(seconds=self.max_age):
            raise UnavailableError(
                "Точка устарела",
                details={"captured_at": fix.captured_at.isoformat(), "max_age": self.max_age},
            )
        return fix

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            try:
                fix = await self.sample()
            except PermissionDeniedError as e:
                self.last_error = e
                self._stats["samples_failed"] += 1
                await log_info(f"Доступ к геолокации запрещён, сэмплинг остановлен: {e.message}",
                               type_msg=TypeMsg.WARNING)
                return
            except GeolocationError as e:
                self.last_error = e
                self._stats["samples_failed"] += 1
                await log_info(f"Точка не получена ({e.code.value}): {e.message}", type_msg=TypeMsg.WARNING)
            else:
                self.last_error = None
                self.last_fix = fix
                self._stats["samples_ok"] += 1
                await self._dispatch(fix)

            # Шаг фиксированный: неудачная попытка не сдвигает расписание
            next_tick += self.interval
            now = loop.time()
            if next_tick < now:
                next_tick = now
            await asyncio.sleep(next_tick - now)

    # === ОТПРАВКА ===

    async def _dispatch(self, fix: Fix) -> None:
        results = await asyncio.gather(self._post(fix), self._send(fix), return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                await log_info(f"Сбой отправки точки: {result!r}", type_msg=TypeMsg.ERROR)

    async def _post(self, fix: Fix) -> None:
        if self.api is None:
            return
        try:
            await self.api.post_location(fix.latitude, fix.longitude, fix.captured_at)
        except httpx.HTTPError as e:
            self._stats["posts_failed"] += 1
            await log_info(f"POST точки не удался: {e}", type_msg=TypeMsg.WARNING)

    async def _send(self, fix: Fix) -> None:
        if self.channel is None:
            return
        try:
            await self.channel.send_sample(fix.latitude, fix.longitude, fix.captured_at)
        except TransportError as e:
            self._stats["sends_failed"] += 1
            await log_info(f"Отправка точки в канал не удалась: {e.message}", type_msg=TypeMsg.WARNING)
