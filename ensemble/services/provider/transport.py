"""
生成后端传输层

调度核心只依赖 TransportClient 协议：send(url, payload, headers) -> TransportResponse。
默认实现 HttpxTransport 基于全局 httpx 客户端池；测试中可注入 httpx.MockTransport
或任意实现了 send() 的对象。
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from ensemble.clients.http_client import HTTPClientPool
from ensemble.core.logger import logger

# URL 中需要脱敏的查询参数（正则模式）
_SENSITIVE_QUERY_PARAMS_PATTERN = re.compile(
    r"([?&])(key|api_key|apikey|token|secret|password|credential)=([^&]*)",
    re.IGNORECASE,
)


def redact_url_for_log(url: str) -> str:
    """对 URL 中的敏感查询参数进行脱敏，用于日志记录"""
    return _SENSITIVE_QUERY_PARAMS_PATTERN.sub(r"\1\2=***", url)


@dataclass
class TransportResponse:
    """传输层响应"""

    status: int
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    reason: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        if self.body is None:
            return ""
        if isinstance(self.body, str):
            return self.body
        try:
            return json.dumps(self.body, ensure_ascii=False)
        except (TypeError, ValueError):
            return str(self.body)


class TransportClient(Protocol):
    """生成后端 RPC：提交消息与参数，返回生成结果或 HTTP 错误"""

    async def send(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> TransportResponse: ...


class HttpxTransport:
    """基于 httpx 的默认传输实现"""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await HTTPClientPool.get_default_client_async()

    async def send(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> TransportResponse:
        client = await self._get_client()
        logger.debug("POST {}", redact_url_for_log(url))
        response = await client.post(url, json=payload, headers=headers)

        body: Any
        try:
            body = response.json()
        except ValueError:
            body = response.text

        return TransportResponse(
            status=response.status_code,
            body=body,
            headers={k: v for k, v in response.headers.items()},
            reason=response.reason_phrase or "",
        )
