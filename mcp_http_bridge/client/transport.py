"""HTTP-транспорт для MCP-клиента: одно сообщение — один POST на `/rpc`.

Контракт повторяет то, что ждёт универсальный протокольный клиент:
`start()`, `send(message)`, `close()` и колбэки `onmessage`/`onclose`.
Ответ сервера никогда не возвращается из `send` — он доставляется только через
`onmessage`, поэтому корреляцию по `id` клиент должен настроить до отправки.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx

from mcp_http_bridge.core.config import RPC_PATH, SESSION_HEADER, SSE_PATH
from mcp_http_bridge.core.errors import TransportFailure

logger = logging.getLogger("mcp_http_bridge.client.transport")

MessageHandler = Callable[[Dict[str, Any]], None]
CloseHandler = Callable[[], None]

DEFAULT_SERVER_URL = "http://localhost:3456/sse"
DEFAULT_TIMEOUT_S = 30.0


def derive_rpc_url(url: str) -> str:
    """`http://host/sse` → `http://host/rpc`; иные адреса возвращаются как есть."""
    if url.endswith(SSE_PATH):
        return url[: -len(SSE_PATH)] + RPC_PATH
    return url


@dataclass(slots=True)
class HttpTransportConfig:
    """Настройки транспорта, получаемые из окружения."""

    url: str = DEFAULT_SERVER_URL
    rpc_url: Optional[str] = None
    timeout_s: float = DEFAULT_TIMEOUT_S

    @property
    def resolved_rpc_url(self) -> str:
        return self.rpc_url or derive_rpc_url(self.url)

    @classmethod
    def from_env(cls) -> "HttpTransportConfig":
        url = os.getenv("MCP_SERVER_URL") or DEFAULT_SERVER_URL
        rpc_url = os.getenv("MCP_RPC_URL") or None
        timeout_raw = os.getenv("MCP_RPC_TIMEOUT")

        timeout_s = DEFAULT_TIMEOUT_S
        if timeout_raw:
            try:
                parsed = float(timeout_raw)
            except ValueError:
                parsed = None
            # 0 и отрицательные значения не означают «без таймаута».
            if parsed is not None and parsed > 0:
                timeout_s = parsed
            else:
                logger.warning("Invalid MCP_RPC_TIMEOUT=%r, using %s", timeout_raw, DEFAULT_TIMEOUT_S)

        return cls(url=url, rpc_url=rpc_url, timeout_s=timeout_s)


class HttpTransport:
    """Отображает обмен сообщениями MCP на отдельные HTTP POST-вызовы."""

    def __init__(
        self,
        config: Optional[HttpTransportConfig] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config or HttpTransportConfig.from_env()
        self._client = client
        self._owns_client = client is None
        self._started = False
        self._closed = False
        self.session_id: Optional[str] = None
        self.onmessage: Optional[MessageHandler] = None
        self.onclose: Optional[CloseHandler] = None

    @property
    def rpc_url(self) -> str:
        return self._config.resolved_rpc_url

    @property
    def timeout_s(self) -> float:
        timeout_s = self._config.timeout_s
        if timeout_s is None or timeout_s <= 0:
            return DEFAULT_TIMEOUT_S
        return timeout_s

    async def start(self) -> None:
        # initialize отправляет клиент, транспорт только готовит HTTP-клиент.
        if self._started:
            return
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)
        self._started = True
        self._closed = False
        logger.debug("Transport started (rpc_url=%s)", self.rpc_url)

    async def send(self, message: Dict[str, Any]) -> None:
        if not self._started or self._client is None:
            raise TransportFailure("Transport not started")

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.session_id:
            headers[SESSION_HEADER] = self.session_id

        try:
            response = await self._client.post(self.rpc_url, json=message, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("POST %s failed: %s", self.rpc_url, exc)
            raise TransportFailure(f"POST {self.rpc_url} failed: {exc}") from exc

        session_id = response.headers.get(SESSION_HEADER)
        if session_id:
            self.session_id = session_id

        # 204 — сервер подтвердил уведомление; ответного сообщения не будет.
        if response.status_code == 204:
            logger.debug("Notification acknowledged: %s", message.get("method"))
            return None

        if response.status_code >= 400:
            detail = response.text.strip() or response.reason_phrase
            raise TransportFailure(f"POST {self.rpc_url} -> {response.status_code}: {detail}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportFailure(f"Malformed JSON-RPC body from {self.rpc_url}") from exc
        if not isinstance(payload, dict):
            raise TransportFailure(f"Unexpected JSON-RPC body from {self.rpc_url}: {type(payload).__name__}")

        if self.onmessage is not None:
            self.onmessage(payload)
        return None

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._started = False
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        logger.debug("Transport closed")
        if self.onclose is not None:
            self.onclose()


__all__ = [
    "DEFAULT_SERVER_URL",
    "DEFAULT_TIMEOUT_S",
    "HttpTransport",
    "HttpTransportConfig",
    "derive_rpc_url",
]
