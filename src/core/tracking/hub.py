# src/core/tracking/hub.py
"""
BroadcastHub: реестр открытых каналов процесса (partner_id -> сессия).

Доставка at-most-once: событие рассылается всем зарегистрированным
сессиям на момент вызова publish(), ошибка отправки в одну сессию
теряет событие только для неё. Очередей и повторов нет.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from src.common.constants import TypeMsg, WS_CLOSE_SUPERSEDED
from src.common.logger import log_info
from src.common.timezone import utc_now
from src.core.tracking.messages import HubEvent


class Subscriber(Protocol):
    """Минимальный интерфейс сессии, с которым работает хаб."""

    session_id: str

    @property
    def is_open(self) -> bool: ...

    def mark_closed(self) -> None: ...

    async def push(self, message: dict[str, Any]) -> bool: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class BroadcastHub:
    """
    Реестр сессий. Все изменения карты только через register/unregister,
    чтение для рассылки берёт снимок под тем же замком.
    """

    def __init__(self) -> None:
        self._sessions: dict[int, Subscriber] = {}
        self._lock = asyncio.Lock()

        # Для статистики
        self._started_at = utc_now()
        self._total_registered = 0
        self._evicted = 0
        self._published = 0
        self._delivered = 0
        self._dropped = 0

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    async def register(self, partner_id: int, session: Subscriber) -> None:
        """
        Привязывает сессию к партнёру. Предыдущая сессия того же партнёра
        закрывается и вытесняется (побеждает последнее подключение).
        """
        async with self._lock:
            previous = self._sessions.get(partner_id)
            # Одна сессия могла быть привязана к другому партнёру
            for pid, existing in list(self._sessions.items()):
                if existing is session and pid != partner_id:
                    del self._sessions[pid]
            self._sessions[partner_id] = session
            if previous is session:
                previous = None
            else:
                self._total_registered += 1
            if previous is not None:
                # До выхода из замка: снимок следующей рассылки старую сессию не увидит
                previous.mark_closed()
                self._evicted += 1

        if previous is not None:
            await log_info(
                f"Сессия {previous.session_id} партнёра {partner_id} вытеснена {session.session_id}",
                type_msg=TypeMsg.INFO,
            )
            await previous.close(code=WS_CLOSE_SUPERSEDED, reason="superseded")

    async def unregister(self, session: Subscriber) -> None:
        """Удаляет сессию из реестра. Повторный вызов безопасен."""
        async with self._lock:
            for pid, existing in list(self._sessions.items()):
                if existing is session:
                    del self._sessions[pid]
                    break

    async def is_registered(self, session: Subscriber) -> bool:
        async with self._lock:
            return any(existing is session for existing in self._sessions.values())

    async def publish(self, event: HubEvent) -> int:
        """
        Рассылает событие всем сессиям из снимка реестра.

        Returns:
            Количество сессий, принявших событие
        """
        async with self._lock:
            snapshot = list(self._sessions.values())

        self._published += 1
        if not snapshot:
            return 0

        payload = event.to_wire()
        results = await asyncio.gather(
            *(self._push_one(session, payload) for session in snapshot),
        )
        delivered = sum(1 for ok in results if ok)
        self._delivered += delivered
        self._dropped += len(results) - delivered
        return delivered

    async def _push_one(self, session: Subscriber, payload: dict[str, Any]) -> bool:
        try:
            return await session.push(payload)
        except Exception as e:
            # Ошибка одной сессии не должна дойти до издателя
            await log_info(
                f"Событие {payload.get('type')} не доставлено в {session.session_id}: {e}",
                type_msg=TypeMsg.DEBUG,
            )
            return False

    def get_stats(self) -> dict[str, Any]:
        """Статистика хаба."""
        return {
            "active_sessions": len(self._sessions),
            "total_registered": self._total_registered,
            "evicted": self._evicted,
            "published": self._published,
            "delivered": self._delivered,
            "dropped": self._dropped,
            "started_at": self._started_at.isoformat(),
        }


_hub: BroadcastHub | None = None


def get_hub() -> BroadcastHub:
    """Хаб процесса."""
    global _hub
    if _hub is None:
        _hub = BroadcastHub()
    return _hub
