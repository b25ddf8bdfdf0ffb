#!/usr/bin/env python3
"""
Entrypoint для API трекинга партнёров (REST + WebSocket).

Запуск:
    python entrypoints/entrypoint_tracking_api.py

Порт по умолчанию: 8090
"""

import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

import uvicorn

from src.config import settings


def main() -> None:
    """Запустить API трекинга."""
    uvicorn.run(
        "src.services.tracking_api.app:app",
        host=settings.deployment.TRACKING_API_HOST,
        port=settings.deployment.TRACKING_API_PORT,
        workers=settings.deployment.TRACKING_API_WORKERS,
        log_level=settings.system.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
