"""
调度结果数据模型

定义调度链路中产生的结果结构：
- SkippedProfile: 路由时因限流被跳过的 Profile
- GenerationSuccess / GenerationFailure: 单次回退链执行的结果（和类型，二选一）
- OutcomeRecord: 单个目标的最终结果，创建后不可变
- BatchStats / BatchResult: 批次汇总
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from ensemble.core.enums import ErrorKind, Tier


@dataclass(frozen=True)
class SkippedProfile:
    """被跳过的 Profile 及原因"""

    name: str
    reason: str


@dataclass(frozen=True)
class GenerationSuccess:
    """生成成功"""

    text: str
    latency_ms: int
    profile_name: str
    attempted: tuple[str, ...] = ()
    raw: Any = None

    @property
    def success(self) -> bool:
        return True


@dataclass(frozen=True)
class GenerationFailure:
    """
    生成失败

    kind 决定上层如何处理：
    - CANCELLED 不计入失败统计
    - RATE_LIMIT_EXHAUSTED 携带全部尝试过/跳过的 Profile，便于排查
    """

    kind: ErrorKind
    detail: str
    latency_ms: int = 0
    attempted: tuple[str, ...] = ()
    skipped: tuple[SkippedProfile, ...] = ()
    status_code: int | None = None
    suggestion: str = ""

    @property
    def success(self) -> bool:
        return False


GenerationResult = Union[GenerationSuccess, GenerationFailure]


@dataclass(frozen=True)
class OutcomeRecord:
    """单个目标的最终结果"""

    target_name: str
    success: bool
    text: str | None = None
    error_kind: ErrorKind | None = None
    error: str | None = None
    latency_ms: int = 0
    tier_used: Tier | None = None
    profile_name: str | None = None
    attempted: tuple[str, ...] = ()

    @property
    def is_cancelled(self) -> bool:
        return self.error_kind == ErrorKind.CANCELLED

    @classmethod
    def from_result(
        cls,
        target_name: str,
        result: GenerationResult,
        tier: Tier | None,
    ) -> OutcomeRecord:
        """把回退链结果转换为目标结果"""
        if isinstance(result, GenerationSuccess):
            return cls(
                target_name=target_name,
                success=True,
                text=result.text,
                latency_ms=result.latency_ms,
                tier_used=tier,
                profile_name=result.profile_name,
                attempted=result.attempted,
            )
        return cls.failure(
            target_name,
            result.kind,
            result.detail,
            latency_ms=result.latency_ms,
            tier=tier,
            attempted=result.attempted,
        )

    @classmethod
    def failure(
        cls,
        target_name: str,
        kind: ErrorKind,
        error: str,
        *,
        latency_ms: int = 0,
        tier: Tier | None = None,
        attempted: tuple[str, ...] = (),
    ) -> OutcomeRecord:
        return cls(
            target_name=target_name,
            success=False,
            error_kind=kind,
            error=error,
            latency_ms=latency_ms,
            tier_used=tier,
            attempted=attempted,
        )


@dataclass(frozen=True)
class BatchStats:
    """批次统计（仅统计未被取消的目标）"""

    total: int = 0
    success: int = 0
    failed: int = 0
    avg_latency_ms: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "success": self.success,
            "failed": self.failed,
            "avg_latency_ms": self.avg_latency_ms,
        }


@dataclass
class BatchResult:
    """批次汇总结果"""

    correlation_id: str
    results: list[OutcomeRecord] = field(default_factory=list)
    markdown: str = ""
    stats: BatchStats = field(default_factory=BatchStats)

    @property
    def cancelled(self) -> list[OutcomeRecord]:
        return [r for r in self.results if r.is_cancelled]

    def outcome_for(self, target_name: str) -> OutcomeRecord | None:
        for record in self.results:
            if record.target_name == target_name:
                return record
        return None
