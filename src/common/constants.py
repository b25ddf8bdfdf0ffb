"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class OrderStatus(str, Enum):
    """Статусы заказа доставки."""
    PREPARED = "prepared"
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    ON_THE_WAY = "on_the_way"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


class PaymentMethod(str, Enum):
    """Способы оплаты заказа."""
    CASH = "cash"
    ONLINE = "online"

    def __str__(self) -> str:
        return self.value


class SessionState(str, Enum):
    """Состояния WebSocket-сессии."""
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class ErrorCode(str, Enum):
    """Коды ошибок, возвращаемые клиенту."""
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    INVALID_TRANSITION = "invalid_transition"
    FORBIDDEN = "forbidden"
    ALREADY_ASSIGNED = "already_assigned"
    PERSISTENCE_ERROR = "persistence_error"
    TRANSPORT_ERROR = "transport_error"
    PERMISSION_DENIED = "permission_denied"
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"


# Статусы, в которых заказ считается активным у партнёра
ACTIVE_ORDER_STATUSES: tuple[OrderStatus, ...] = (
    OrderStatus.ASSIGNED,
    OrderStatus.PICKED_UP,
    OrderStatus.ON_THE_WAY,
)

# Терминальные статусы
TERMINAL_ORDER_STATUSES: tuple[OrderStatus, ...] = (
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
)

# Заголовок с идентификатором партнёра (аутентификация вынесена во внешний сервис)
PARTNER_ID_HEADER = "X-Partner-Id"

# Код закрытия WebSocket при вытеснении сессии новым подключением
WS_CLOSE_SUPERSEDED = 4000
