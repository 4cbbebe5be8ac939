"""
限流模块

- RateLimitDetector: 解析 429 响应头
- RateLimiter: Profile 级别指数退避追踪
"""

from .detector import RateLimitDetector, detect_retry_after
from .limiter import (
    BackoffDecision,
    RateLimiter,
    RateLimitRecord,
    RateLimitStatus,
    get_rate_limiter,
)

__all__ = [
    "RateLimitDetector",
    "detect_retry_after",
    "RateLimiter",
    "RateLimitRecord",
    "RateLimitStatus",
    "BackoffDecision",
    "get_rate_limiter",
]
