"""Канал живости: односторонний поток server-sent events с heartbeat."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

logger = logging.getLogger("mcp_http_bridge.api.liveness")

DisconnectProbe = Callable[[], Awaitable[bool]]


def format_event(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


class LivenessChannel:
    """Один экземпляр на одно подключение к `GET /sse`.

    Сразу после открытия отдаёт `connection_established`, затем `ping` раз в
    `interval` секунд. Ожидание между тиками прерывается `close()`, поэтому
    закрытие канала не ждёт очередного тика.
    """

    def __init__(self, interval: float, *, is_disconnected: Optional[DisconnectProbe] = None) -> None:
        self._interval = interval
        self._is_disconnected = is_disconnected
        self._closed = asyncio.Event()
        self.pings_sent = 0

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        self._closed.set()

    async def _client_gone(self) -> bool:
        if self._is_disconnected is None:
            return False
        return await self._is_disconnected()

    async def events(self) -> AsyncIterator[str]:
        logger.info("Liveness channel opened (interval=%.1fs)", self._interval)
        try:
            yield format_event(
                {
                    "type": "connection_established",
                    "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                }
            )
            while not self._closed.is_set():
                try:
                    await asyncio.wait_for(self._closed.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    pass
                if self._closed.is_set() or await self._client_gone():
                    break
                self.pings_sent += 1
                yield format_event({"type": "ping"})
        finally:
            self._closed.set()
            logger.info("Liveness channel closed after %d ping(s)", self.pings_sent)


__all__ = ["LivenessChannel", "format_event"]
