# src/core/partners/__init__.py
"""
Домен партнёров доставки.
Профиль, присутствие (online/offline) и журнал координат.
"""

from src.core.partners.models import LocationSample, Partner
from src.core.partners.repository import PartnerRepository

__all__ = [
    "LocationSample",
    "Partner",
    "PartnerRepository",
]
