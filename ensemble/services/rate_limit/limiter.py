"""
Profile 级别限流追踪器 - 指数退避

功能：
1. 按 Profile 名称记录 429 状态（每个名称独立一条记录，互不共享）
2. 连续错误次数驱动指数退避：min(max_delay, base_delay * 2^consecutive_errors)
3. 优先使用后端给出的 Retry-After，同样受 max_delay 上限约束
4. 惰性过期：读取时发现 now >= next_attempt_at 即清除 limited 标记，不依赖定时器

状态仅保存在内存中，随进程生命周期存在。
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Iterable

from ensemble.config.constants import RateLimitDefaults
from ensemble.core.logger import logger
from ensemble.services.rate_limit.detector import RateLimitDetector


@dataclass
class RateLimitRecord:
    """单个 Profile 的限流状态"""

    limited: bool = False
    next_attempt_at: float = 0.0  # 时间戳（秒）
    consecutive_errors: int = 0


@dataclass(frozen=True)
class RateLimitStatus:
    """check() 的返回值"""

    limited: bool
    retry_in_ms: int | None = None
    reason: str | None = None


@dataclass(frozen=True)
class BackoffDecision:
    """record_rate_limit() 的返回值"""

    retry_in_ms: int
    next_attempt_at: float


_NOT_LIMITED = RateLimitStatus(limited=False)


class RateLimiter:
    """限流追踪器（纯记账，不抛异常）"""

    def __init__(
        self,
        base_delay_ms: int = RateLimitDefaults.BASE_DELAY_MS,
        max_delay_ms: int = RateLimitDefaults.MAX_DELAY_MS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self._clock = clock or time.time
        self._records: dict[str, RateLimitRecord] = {}
        # 读-改-写需要原子性：多个目标可能同时命中同一个被限流的 Profile
        self._lock = threading.Lock()

    def now(self) -> float:
        """当前时间（秒），来自注入的时钟"""
        return self._clock()

    def _get_record(self, profile_name: str) -> RateLimitRecord:
        record = self._records.get(profile_name)
        if record is None:
            record = RateLimitRecord()
            self._records[profile_name] = record
        return record

    def calculate_backoff(self, error_count: int) -> int:
        """计算指数退避时间（毫秒）"""
        delay = self.base_delay_ms * (2 ** max(error_count, 0))
        return int(min(delay, self.max_delay_ms))

    def check(self, profile_name: str) -> RateLimitStatus:
        """检查 Profile 当前是否被限流"""
        with self._lock:
            record = self._records.get(profile_name)
            if record is None or not record.limited:
                return _NOT_LIMITED

            now = self._clock()
            if now >= record.next_attempt_at:
                # 退避窗口已过；保留 consecutive_errors 用于后续退避计算
                record.limited = False
                return _NOT_LIMITED

            retry_in_ms = max(int(round((record.next_attempt_at - now) * 1000)), 1)
            return RateLimitStatus(
                limited=True,
                retry_in_ms=retry_in_ms,
                reason=(
                    f"Rate limited. Retry in {-(-retry_in_ms // 1000)} seconds "
                    f"({record.consecutive_errors} consecutive errors)"
                ),
            )

    def record_success(self, profile_name: str) -> None:
        """记录一次成功请求，重置退避"""
        with self._lock:
            record = self._get_record(profile_name)
            if record.consecutive_errors:
                logger.debug(
                    "Profile {} 请求成功，重置连续限流计数 ({} -> 0)",
                    profile_name,
                    record.consecutive_errors,
                )
            record.consecutive_errors = 0
            record.limited = False
            record.next_attempt_at = 0.0

    def record_rate_limit(
        self,
        profile_name: str,
        retry_after_seconds: int | float | str | None = None,
    ) -> BackoffDecision:
        """
        记录一次 429

        Args:
            profile_name: 被限流的 Profile
            retry_after_seconds: 后端给出的 Retry-After（秒），非法或非正值时回退到指数退避
        """
        retry_after = RateLimitDetector.parse_retry_after(
            retry_after_seconds, now=self._clock()
        )

        with self._lock:
            record = self._get_record(profile_name)
            now = self._clock()

            record.consecutive_errors += 1
            record.limited = True

            if retry_after is not None and retry_after > 0:
                retry_in_ms = retry_after * 1000
            else:
                retry_in_ms = self.calculate_backoff(record.consecutive_errors)

            retry_in_ms = int(min(retry_in_ms, self.max_delay_ms))
            record.next_attempt_at = now + retry_in_ms / 1000
            consecutive = record.consecutive_errors
            next_attempt_at = record.next_attempt_at

        logger.warning(
            "Profile {} 被限流，{}s 后重试（连续 {} 次）",
            profile_name,
            -(-retry_in_ms // 1000),
            consecutive,
        )
        return BackoffDecision(retry_in_ms=retry_in_ms, next_attempt_at=next_attempt_at)

    def all_limited(self, profile_names: Iterable[str]) -> bool:
        """所有给定 Profile 是否都处于限流中（空列表返回 False）"""
        names = list(profile_names)
        if not names:
            return False
        return all(self.check(name).limited for name in names)

    def clear(self, profile_name: str) -> None:
        """清除单个 Profile 的状态（管理操作）"""
        with self._lock:
            self._records.pop(profile_name, None)

    def clear_all(self) -> None:
        """清除所有状态（管理操作）"""
        with self._lock:
            self._records.clear()
        logger.info("已清除全部限流状态")

    def snapshot(self) -> dict[str, RateLimitRecord]:
        """只读快照（返回副本）"""
        with self._lock:
            return {name: replace(record) for name, record in self._records.items()}


_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """获取进程级限流追踪器"""
    global _rate_limiter
    if _rate_limiter is None:
        from ensemble.config import config

        _rate_limiter = RateLimiter(
            base_delay_ms=config.rate_limit_base_delay_ms,
            max_delay_ms=config.rate_limit_max_delay_ms,
        )
    return _rate_limiter
