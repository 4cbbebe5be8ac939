"""
速率限制检测器 - 从 429 响应头中解析需要等待的时间
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Mapping

from ensemble.core.logger import logger


class RateLimitDetector:
    """
    速率限制检测器

    支持的响应头（按优先级）：
    - retry-after: 秒数或 HTTP 日期
    - x-ratelimit-reset-requests / x-ratelimit-reset: 秒数（OpenAI 兼容中转常见）
    """

    @staticmethod
    def detect_retry_after(
        headers: Mapping[str, str] | None, now: float | None = None
    ) -> int | None:
        """
        返回需要等待的秒数，无法解析时返回 None

        Args:
            headers: 429 响应头
            now: 当前 Unix 时间（秒），用于换算 HTTP 日期；缺省取系统时间
        """
        if not headers:
            return None

        # 标准化 header key (转小写)
        headers_lower = {str(k).lower(): v for k, v in headers.items()}

        retry_after = RateLimitDetector.parse_retry_after(
            headers_lower.get("retry-after"), now=now
        )
        if retry_after is not None:
            return retry_after

        for key in ("x-ratelimit-reset-requests", "x-ratelimit-reset"):
            value = RateLimitDetector._parse_seconds(headers_lower.get(key))
            if value is not None:
                logger.debug("未提供 retry-after，使用 {}={}s", key, value)
                return value
        return None

    @staticmethod
    def parse_retry_after(
        value: str | int | float | None, now: float | None = None
    ) -> int | None:
        """解析 Retry-After 值（秒数或 HTTP 日期）"""
        if value is None or value == "":
            return None
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return int(value)

        text = str(value).strip()
        try:
            # 尝试解析为整数（秒数）
            return int(text)
        except ValueError:
            pass

        # 尝试解析为HTTP日期格式
        try:
            retry_date = datetime.strptime(text, "%a, %d %b %Y %H:%M:%S %Z").replace(
                tzinfo=timezone.utc
            )
        except ValueError:
            return None
        current = time.time() if now is None else now
        return max(int(retry_date.timestamp() - current), 0)

    @staticmethod
    def _parse_seconds(value: str | None) -> int | None:
        """解析 "20s" / "20" / "1.5" 形式的秒数"""
        if not value:
            return None
        text = value.strip().lower()
        if text.endswith("s") and not text.endswith("ms"):
            text = text[:-1]
        try:
            seconds = float(text)
        except ValueError:
            return None
        return int(seconds) if seconds > 0 else None


# 便捷函数
def detect_retry_after(
    headers: Mapping[str, str] | None, now: float | None = None
) -> int | None:
    """从 429 响应头中解析等待秒数（便捷函数）"""
    return RateLimitDetector.detect_retry_after(headers, now=now)
