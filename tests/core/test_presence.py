# tests/core/test_presence.py
"""
Тесты кэша присутствия.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from src.core.tracking.presence import PresenceCache


@pytest.fixture
def presence(mock_redis: AsyncMock) -> PresenceCache:
    return PresenceCache(mock_redis, last_seen_ttl=120)


async def test_touch(presence: PresenceCache, mock_redis: AsyncMock, now) -> None:
    await presence.touch(42, 12.97, 77.59, now)

    mock_redis.geoadd.assert_awaited_once_with("partners:locations", 77.59, 12.97, "42")
    key, mapping = mock_redis.hset_mapping.call_args[0]
    assert key == "partner:42:last_seen"
    assert mapping["at"] == now.isoformat()
    assert mock_redis.hset_mapping.call_args[1]["ttl"] == 120


async def test_remove(presence: PresenceCache, mock_redis: AsyncMock) -> None:
    await presence.remove(42)

    mock_redis.georem.assert_awaited_once_with("partners:locations", "42")
    mock_redis.delete.assert_awaited_once_with("partner:42:last_seen")


async def test_last_seen(presence: PresenceCache, mock_redis: AsyncMock, now) -> None:
    assert await presence.last_seen(42) is None

    mock_redis.hgetall.return_value = {"lat": "12.97", "lng": "77.59", "at": now.isoformat()}
    assert await presence.last_seen(42) == now


async def test_nearby_skips_expired(presence: PresenceCache, mock_redis: AsyncMock, now) -> None:
    mock_redis.geosearch.return_value = [("42", 0.3), ("7", 1.2)]
    mock_redis.hgetall.side_effect = [{"at": now.isoformat()}, {}]

    result = await presence.nearby(12.97, 77.59, 5.0, limit=10)

    assert result == [(42, 0.3)]
    mock_redis.geosearch.assert_awaited_once_with("partners:locations", 77.59, 12.97, 5.0, count=10)
