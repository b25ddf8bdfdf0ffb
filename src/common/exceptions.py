"""
Иерархия доменных исключений.

Ошибки request-пути (ingest, переходы заказа) пробрасываются вызывающему
с кодом из ErrorCode. Ошибки broadcast-пути (TransportError) гасятся
внутри хаба и наружу не выходят.
"""

from __future__ import annotations

from typing import Any

from src.common.constants import ErrorCode


class DeliveryError(Exception):
    """Базовое исключение доменного слоя."""

    code: ErrorCode = ErrorCode.VALIDATION_ERROR
    http_status: int = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Сериализует ошибку для ответа клиенту."""
        data: dict[str, Any] = {"error_code": self.code.value, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class ValidationError(DeliveryError):
    """Некорректные входные данные."""
    code = ErrorCode.VALIDATION_ERROR
    http_status = 400


class NotFoundError(DeliveryError):
    """Сущность не найдена."""
    code = ErrorCode.NOT_FOUND
    http_status = 404


class InvalidStateError(DeliveryError):
    """Операция недопустима в текущем статусе заказа."""
    code = ErrorCode.INVALID_STATE
    http_status = 409


class InvalidTransitionError(DeliveryError):
    """Недопустимый переход статуса заказа."""
    code = ErrorCode.INVALID_TRANSITION
    http_status = 409


class ForbiddenError(DeliveryError):
    """Партнёр не является исполнителем заказа."""
    code = ErrorCode.FORBIDDEN
    http_status = 403


class AlreadyAssignedError(DeliveryError):
    """Заказ уже принят другим (или тем же) партнёром."""
    code = ErrorCode.ALREADY_ASSIGNED
    http_status = 409


class PersistenceError(DeliveryError):
    """Ошибка записи в хранилище. Частичных изменений нет."""
    code = ErrorCode.PERSISTENCE_ERROR
    http_status = 503


class TransportError(DeliveryError):
    """Ошибка отправки в канал."""
    code = ErrorCode.TRANSPORT_ERROR
    http_status = 502


# =============================================================================
# ОШИБКИ ГЕОЛОКАЦИИ (клиентская сторона)
# =============================================================================

class GeolocationError(DeliveryError):
    """Базовая ошибка получения координат устройства."""
    code = ErrorCode.UNAVAILABLE


class PermissionDeniedError(GeolocationError):
    """Платформа запретила доступ к геолокации."""
    code = ErrorCode.PERMISSION_DENIED


class GeoTimeoutError(GeolocationError):
    """Координаты не получены за отведённое время."""
    code = ErrorCode.TIMEOUT


class UnavailableError(GeolocationError):
    """Геолокация недоступна (нет сигнала, не поддерживается)."""
    code = ErrorCode.UNAVAILABLE
