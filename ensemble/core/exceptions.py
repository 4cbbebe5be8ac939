"""
异常定义

所有调度链路异常都继承自 EnsembleException。
- BackendRateLimitException 携带 is_rate_limited 标记，只有它会触发回退链的下一个 Profile
- 其余后端异常一律视为硬错误，直接向上暴露，不在回退链中掩盖
"""

from __future__ import annotations

from typing import Any


class EnsembleException(Exception):
    """基础异常"""

    is_rate_limited: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class BackendRateLimitException(EnsembleException):
    """后端返回 429，或 Profile 仍处于退避窗口内"""

    is_rate_limited = True

    def __init__(
        self,
        message: str,
        profile_name: str,
        retry_in_ms: int | None = None,
        response_headers: dict[str, str] | None = None,
    ):
        super().__init__(
            message,
            details={"profile_name": profile_name, "retry_in_ms": retry_in_ms},
        )
        self.profile_name = profile_name
        self.retry_in_ms = retry_in_ms
        self.response_headers = response_headers or {}


class BackendHTTPException(EnsembleException):
    """后端返回非 2xx、非 429 的状态码"""

    def __init__(
        self,
        message: str,
        profile_name: str,
        status_code: int,
        suggestion: str = "",
        upstream_response: str | None = None,
    ):
        super().__init__(
            message,
            details={"profile_name": profile_name, "status_code": status_code},
        )
        self.profile_name = profile_name
        self.status_code = status_code
        self.suggestion = suggestion
        self.upstream_response = upstream_response


class BackendNetworkException(EnsembleException):
    """传输层失败（连接超时、DNS、响应体无法解析等）"""

    def __init__(self, message: str, profile_name: str):
        super().__init__(message, details={"profile_name": profile_name})
        self.profile_name = profile_name


class GenerationCancelledException(EnsembleException):
    """取消信号已触发"""

    def __init__(self, message: str = "Aborted", profile_name: str | None = None):
        super().__init__(message, details={"profile_name": profile_name})
        self.profile_name = profile_name


class FallbackChainExhaustedException(EnsembleException):
    """回退链中的所有 Profile 都因限流不可用"""

    def __init__(
        self,
        message: str,
        attempted: list[str],
        skipped: list[str] | None = None,
        last_error: Exception | None = None,
    ):
        super().__init__(
            message,
            details={"attempted": list(attempted), "skipped": list(skipped or [])},
        )
        self.attempted = list(attempted)
        self.skipped = list(skipped or [])
        self.last_error = last_error


class CharacterNotFoundException(EnsembleException):
    """目标名称无法解析为任何角色"""

    def __init__(self, name: str):
        super().__init__(f'Character "{name}" not found', details={"name": name})
        self.name = name


class InvalidTierException(EnsembleException):
    """未知的层级字符串（调用方编程错误）"""

    def __init__(self, tier: Any):
        super().__init__(f"Invalid tier '{tier}'", details={"tier": tier})
        self.tier = tier


__all__ = [
    "EnsembleException",
    "BackendRateLimitException",
    "BackendHTTPException",
    "BackendNetworkException",
    "GenerationCancelledException",
    "FallbackChainExhaustedException",
    "CharacterNotFoundException",
    "InvalidTierException",
]
