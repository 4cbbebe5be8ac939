"""
错误分类器（纯逻辑，无副作用）

- 按 HTTP 状态码给出可操作的修复建议
- 把任意异常归类为 ErrorKind，供目标结果使用
"""

from __future__ import annotations

import asyncio

from ensemble.core.enums import ErrorKind
from ensemble.core.exceptions import (
    CharacterNotFoundException,
    FallbackChainExhaustedException,
    GenerationCancelledException,
)


class ErrorClassifier:
    """错误分类器"""

    AUTH_SUGGESTION = "Authentication failed - check your API key in the connection profile."
    ENDPOINT_SUGGESTION = "Endpoint not found - verify the API URL in your connection profile."
    SERVER_SUGGESTION = "Server error - the API provider may be experiencing issues."

    @classmethod
    def suggestion_for_status(cls, status_code: int | None) -> str:
        """按状态码给出修复建议；429 不在此处理"""
        if status_code is None:
            return ""
        if status_code in (401, 403):
            return cls.AUTH_SUGGESTION
        if status_code == 404:
            return cls.ENDPOINT_SUGGESTION
        if status_code >= 500:
            return cls.SERVER_SUGGESTION
        return ""

    @staticmethod
    def classify_exception(error: BaseException) -> ErrorKind:
        """把异常归类为 ErrorKind（未识别的异常一律视为 NetworkError）"""
        if isinstance(error, (GenerationCancelledException, asyncio.CancelledError)):
            return ErrorKind.CANCELLED
        if isinstance(error, CharacterNotFoundException):
            return ErrorKind.NOT_FOUND
        if isinstance(error, FallbackChainExhaustedException):
            return ErrorKind.RATE_LIMIT_EXHAUSTED
        if getattr(error, "is_rate_limited", False):
            return ErrorKind.RATE_LIMIT_EXHAUSTED
        return ErrorKind.NETWORK_ERROR
