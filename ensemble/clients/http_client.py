"""
全局HTTP客户端池管理
避免每个 NPC 请求都创建新的 AsyncClient

说明：
1. 默认客户端：全局复用单一客户端，同一批次的并发请求共享连接池
2. 硬超时由 httpx.Timeout 提供；挂起且不响应取消的调用由它兜底
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from ensemble.config import config
from ensemble.core.logger import logger
from ensemble.utils.ssl_utils import get_ssl_context

# 模块级锁，避免类属性延迟初始化的竞态条件
_default_client_lock = asyncio.Lock()


def _default_timeout() -> httpx.Timeout:
    return httpx.Timeout(
        connect=config.http_connect_timeout,
        read=config.http_read_timeout,
        write=config.http_write_timeout,
        pool=config.http_pool_timeout,
    )


def _default_limits() -> httpx.Limits:
    return httpx.Limits(
        max_connections=config.http_max_connections,
        max_keepalive_connections=config.http_keepalive_connections,
        keepalive_expiry=config.http_keepalive_expiry,
    )


class HTTPClientPool:
    """
    全局HTTP客户端池单例

    管理可重用的httpx.AsyncClient实例,避免频繁创建/销毁连接
    """

    _default_client: httpx.AsyncClient | None = None

    @classmethod
    async def get_default_client_async(cls) -> httpx.AsyncClient:
        """获取默认的HTTP客户端（异步线程安全版本）"""
        if cls._default_client is not None and not cls._default_client.is_closed:
            return cls._default_client

        async with _default_client_lock:
            # 双重检查，避免重复创建
            if cls._default_client is None or cls._default_client.is_closed:
                cls._default_client = httpx.AsyncClient(
                    verify=get_ssl_context(),
                    timeout=_default_timeout(),
                    limits=_default_limits(),
                    follow_redirects=True,
                )
                logger.info(
                    f"全局HTTP客户端池已初始化: "
                    f"max_connections={config.http_max_connections}, "
                    f"keepalive={config.http_keepalive_connections}, "
                    f"keepalive_expiry={config.http_keepalive_expiry}s"
                )
        return cls._default_client

    @classmethod
    async def close_all(cls) -> None:
        """关闭默认HTTP客户端"""
        if cls._default_client is not None:
            await cls._default_client.aclose()
            cls._default_client = None
            logger.info("默认HTTP客户端已关闭")

    @classmethod
    def get_pool_stats(cls) -> dict[str, Any]:
        """获取连接池统计信息"""
        return {
            "default_client_active": cls._default_client is not None,
        }

