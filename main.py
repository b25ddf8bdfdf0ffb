#!/usr/bin/env python3
# main.py
"""
Главная точка входа трекинга партнёров доставки.
Запускает API трекинга или симулятор партнёра в зависимости от аргументов.
"""

from __future__ import annotations

import asyncio
import signal
import sys

from src.config import settings
from src.common.logger import setup_logging, log_info, log_error
from src.common.constants import TypeMsg


VALID_MODES = ("tracking_api", "simulator")

# Глобальный флаг для graceful shutdown
_shutdown_event: asyncio.Event | None = None


def setup_signal_handlers() -> None:
    """Настраивает обработчики сигналов для graceful shutdown."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    def signal_handler(sig: int) -> None:
        if _shutdown_event and not _shutdown_event.is_set():
            print(f"\nПолучен сигнал остановки (sig={sig}), завершаем работу...")
            _shutdown_event.set()

    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
    except NotImplementedError:
        # Windows
        signal.signal(signal.SIGINT, lambda s, f: signal_handler(s))


async def run_tracking_api() -> None:
    """Запускает API трекинга (REST + WebSocket). Инфраструктура поднимается в lifespan."""
    import uvicorn

    await log_info(
        f"Запуск Tracking API на порту {settings.deployment.TRACKING_API_PORT}...",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "src.services.tracking_api.app:app",
        host=settings.deployment.TRACKING_API_HOST,
        port=settings.deployment.TRACKING_API_PORT,
        log_level="debug" if settings.system.DEBUG else "info",
    )
    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info("Tracking API: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


def parse_route(args: list[str]) -> list[tuple[float, float]]:
    """Разбирает точки маршрута вида 'lat,lng'."""
    points = []
    for arg in args:
        lat, _, lng = arg.partition(",")
        points.append((float(lat), float(lng)))
    return points


async def run_simulator(partner_id: int, route: list[tuple[float, float]]) -> None:
    """
    Симулятор партнёра: проигрывает маршрут через GeoSampler,
    отправляя точки в ingest и в канал трекинга.
    """
    from src.client import GeoSampler, ReplayPositionSource, TrackingApiClient, TrackingChannel

    async def on_message(data: dict) -> None:
        await log_info(f"Канал: {data}", type_msg=TypeMsg.DEBUG)

    api = TrackingApiClient(partner_id)
    channel = TrackingChannel(partner_id, on_message=on_message)
    sampler = GeoSampler(ReplayPositionSource(route), api=api, channel=channel)

    await log_info(
        f"Симулятор партнёра {partner_id}: {len(route)} точек, шаг {sampler.interval} с",
        type_msg=TypeMsg.INFO,
    )
    task = sampler.start()
    try:
        if _shutdown_event is not None:
            waiter = asyncio.create_task(_shutdown_event.wait())
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
            waiter.cancel()
        else:
            await task
    finally:
        await sampler.stop()
        await channel.close()
        await api.close()
        await log_info(f"Симулятор остановлен: {sampler.get_stats()}", type_msg=TypeMsg.INFO)


async def main(mode: str | None = None, args: list[str] | None = None) -> None:
    """
    Главная функция запуска.

    Args:
        mode: Режим запуска (tracking_api, simulator).
              Если None, берётся из COMPONENT_MODE.
        args: Аргументы режима
    """
    setup_logging()
    setup_signal_handlers()
    args = args or []

    if mode is None:
        mode = settings.system.COMPONENT_MODE
        if mode == "all":
            mode = "tracking_api"

    await log_info(
        f"{settings.system.PROJECT_NAME} v{settings.system.VERSION}: запуск в режиме '{mode}'",
        type_msg=TypeMsg.INFO,
    )

    if mode == "tracking_api":
        await run_tracking_api()
    elif mode == "simulator":
        if len(args) < 2:
            await log_error("simulator: нужны partner_id и хотя бы одна точка lat,lng")
            sys.exit(1)
        await run_simulator(int(args[0]), parse_route(args[1:]))
    else:
        await log_error(f"Неизвестный режим: {mode}")
        sys.exit(1)


def print_usage() -> None:
    print("""
Трекинг партнёров доставки

Использование:
    python main.py [mode] [args]

Режимы:
    tracking_api                       REST + WebSocket API (:8090)
    simulator <partner_id> <lat,lng>...  симулятор партнёра по маршруту

Примеры:
    python main.py tracking_api
    python main.py simulator 1 12.9716,77.5946 12.9750,77.5990
    """)


if __name__ == "__main__":
    mode = None

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        elif arg in VALID_MODES:
            mode = arg
        else:
            print(f"Ошибка: неизвестный режим '{arg}'")
            print_usage()
            sys.exit(1)

    try:
        asyncio.run(main(mode, sys.argv[2:]))
    except KeyboardInterrupt:
        pass
