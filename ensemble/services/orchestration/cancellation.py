"""
协作式取消令牌

同一批次的所有目标共享一个令牌；新批次提交时取消上一个批次的令牌。
支持取消的网络调用会立即中止，不支持的调用结果在汇总时按 Cancelled 处理。
"""

from __future__ import annotations

import asyncio

from ensemble.core.exceptions import GenerationCancelledException


class CancellationToken:
    """批次级取消令牌"""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> bool:
        """触发取消；已取消时返回 False"""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self, profile_name: str | None = None) -> None:
        if self._event.is_set():
            raise GenerationCancelledException(profile_name=profile_name)
