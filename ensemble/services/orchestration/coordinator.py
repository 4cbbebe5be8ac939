"""
批次协调器 - 保证同一时刻只有一个活跃批次

submit() 原子地替换活跃批次：先取消上一个仍在运行的批次，再登记新批次，
新批次不等待旧批次排空即可立即开始。批次提交本身是顺序的（同一事件循环），
因此不需要额外的锁。
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from ensemble.core.enums import BatchState
from ensemble.core.logger import logger
from ensemble.services.orchestration.cancellation import CancellationToken


@dataclass
class SpawnBatch:
    """一次 spawn 调用对应的批次"""

    correlation_id: str
    targets: tuple[str, ...]
    token: CancellationToken = field(default_factory=CancellationToken)
    state: BatchState = BatchState.PENDING
    created_at: float = field(default_factory=time.time)

    @property
    def is_active(self) -> bool:
        return self.state in (BatchState.PENDING, BatchState.RUNNING)


class BatchCoordinator:
    """持有唯一的活跃批次句柄"""

    def __init__(self) -> None:
        self._active: SpawnBatch | None = None

    @property
    def active(self) -> SpawnBatch | None:
        return self._active

    def submit(self, batch: SpawnBatch) -> SpawnBatch | None:
        """登记新批次并取代旧批次，返回被取代的批次（如果有）"""
        previous = self._active
        superseded = None
        if previous is not None and previous.is_active:
            previous.token.cancel("superseded")
            previous.state = BatchState.SUPERSEDED
            superseded = previous
            logger.info(
                "[{}] 上一批次 {} 已被取代并取消", batch.correlation_id, previous.correlation_id
            )
        self._active = batch
        return superseded

    def start(self, batch: SpawnBatch) -> None:
        if batch.state == BatchState.PENDING:
            batch.state = BatchState.RUNNING

    def complete(self, batch: SpawnBatch) -> None:
        """批次结束；被取代/取消的批次保持原状态"""
        if batch.is_active:
            batch.state = BatchState.COMPLETED
        if self._active is batch:
            self._active = None

    def cancel_active(self) -> bool:
        """取消活跃批次；空闲时返回 False"""
        batch = self._active
        if batch is None or not batch.is_active:
            return False
        batch.token.cancel("user")
        batch.state = BatchState.CANCELLED
        self._active = None
        logger.info("[{}] 批次已被用户取消", batch.correlation_id)
        return True
