# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "test",
        "PROJECT_NAME": "partner_tracking_test",
        "VERSION": "1.0.0-test",
        "DEBUG": False,
        "LOG_LEVEL": "INFO",
        "ENVIRONMENT": "test",
        "TRACKING_API_PORT": 9100,
        "LOG_FORMAT": "json",
        "TIMEZONE": "Asia/Kolkata",
        "CURRENCY": "INR",
        "DB_HOST": "db.test",
        "DB_PORT": 5433,
        "DB_NAME": "partner_tracking_test",
        "DB_USER": "tester",
        "DB_PASSWORD": "",
        "REDIS_HOST": "redis.test",
        "REDIS_NAMESPACE": "delivery_test",
        "LAST_SEEN_TTL": 60,
        "RABBITMQ_HOST": "mq.test",
        "RABBITMQ_EXCHANGE": "delivery.test",
        "SAMPLE_INTERVAL": 15.0,
        "SAMPLE_TIMEOUT": 5.0,
        "MAX_FIX_AGE": 30.0,
        "REJECT_OUT_OF_ORDER_SAMPLES": True,
        "API_BASE_URL": "http://api.test",
        "WS_URL": "ws://api.test/ws",
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_conn() -> AsyncMock:
    """Мок соединения asyncpg внутри транзакции."""
    conn = AsyncMock()
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetch = AsyncMock(return_value=[])
    conn.execute = AsyncMock(return_value="UPDATE 1")
    conn.fetchval = AsyncMock(return_value=None)
    return conn


@pytest.fixture
def mock_db(mock_conn: AsyncMock) -> AsyncMock:
    """Мок менеджера базы данных. transaction() отдаёт mock_conn."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=None)

    @asynccontextmanager
    async def transaction():
        yield mock_conn

    db.transaction = MagicMock(side_effect=transaction)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.is_connected = True
    redis.geoadd = AsyncMock(return_value=1)
    redis.geosearch = AsyncMock(return_value=[])
    redis.georem = AsyncMock(return_value=1)
    redis.hset_mapping = AsyncMock(return_value=None)
    redis.hgetall = AsyncMock(return_value={})
    redis.delete = AsyncMock(return_value=1)
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=True)
    event_bus.is_connected = True
    return event_bus


@pytest.fixture
def mock_hub() -> AsyncMock:
    """Мок хаба рассылки."""
    hub = AsyncMock()
    hub.publish = AsyncMock(return_value=0)
    return hub


# =============================================================================
# ФИКСТУРЫ ДАННЫХ (строки БД)
# =============================================================================

@pytest.fixture
def now() -> datetime:
    return datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def sample_partner_row(now: datetime) -> dict[str, Any]:
    """Строка delivery_partners."""
    return {
        "id": 42,
        "name": "Ravi Kumar",
        "email": "ravi@example.com",
        "phone": "+919876543210",
        "vehicle_type": "bike",
        "is_online": True,
        "current_latitude": 12.9716,
        "current_longitude": 77.5946,
        "position_updated_at": now - timedelta(minutes=1),
        "rating": 4.8,
        "total_deliveries": 120,
        "total_earnings": 9600.0,
        "created_at": now - timedelta(days=90),
        "updated_at": now,
    }


@pytest.fixture
def sample_location_row(now: datetime) -> dict[str, Any]:
    """Строка partner_locations."""
    return {
        "id": 1001,
        "delivery_partner_id": 42,
        "latitude": 12.9720,
        "longitude": 77.5950,
        "captured_at": now,
    }


@pytest.fixture
def sample_order_row(now: datetime) -> dict[str, Any]:
    """Строка orders с колонками покупателя."""
    return {
        "id": "0f8fad5b-d9cb-469f-a165-70867728950e",
        "order_number": "ORD-2025-000123",
        "customer_id": 7,
        "delivery_partner_id": None,
        "status": "prepared",
        "amount": 540.0,
        "delivery_fee": 45.0,
        "payment_method": "online",
        "delivery_address": "12 MG Road, Bengaluru",
        "delivery_latitude": 12.9750,
        "delivery_longitude": 77.6060,
        "estimated_delivery_time": 25,
        "actual_delivery_time": None,
        "created_at": now - timedelta(minutes=20),
        "updated_at": now - timedelta(minutes=5),
        "customer_name": "Anita",
        "customer_phone": "+919812345678",
        "customer_address": "12 MG Road, Bengaluru",
    }


@pytest.fixture
def sample_earning_row(now: datetime) -> dict[str, Any]:
    """Строка earnings."""
    return {
        "id": 501,
        "delivery_partner_id": 42,
        "order_id": "0f8fad5b-d9cb-469f-a165-70867728950e",
        "amount": 45.0,
        "created_at": now,
    }
