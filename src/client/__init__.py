# src/client/__init__.py
"""
Клиентская сторона партнёра: периодический сэмплер координат
и транспорты до API трекинга (HTTP и WebSocket).
"""

from src.client.api_client import TrackingApiClient, TrackingChannel
from src.client.geo_sampler import Fix, GeoSampler, PositionSource, ReplayPositionSource

__all__ = [
    "TrackingApiClient",
    "TrackingChannel",
    "Fix",
    "GeoSampler",
    "PositionSource",
    "ReplayPositionSource",
]
