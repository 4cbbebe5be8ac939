"""
核心枚举定义

定义层级、错误类型、响应格式、批次状态等贯穿整个调度链路的枚举。
"""

from enum import Enum


class Tier(str, Enum):
    """生成质量/成本层级 - 决定请求路由到哪一类后端"""

    ORCHESTRATOR = "orchestrator"  # 叙事主控（GM）
    MAJOR = "major"  # 重要角色
    STANDARD = "standard"  # 普通角色
    MINOR = "minor"  # 路人角色
    UTILITY = "utility"  # 工具类调用（Judge / Guardian）

    @classmethod
    def parse(cls, value: "str | Tier") -> "Tier | None":
        """宽松解析层级字符串，无法识别时返回 None"""
        if isinstance(value, Tier):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# 按优先级排列的全部层级
TIERS: tuple[Tier, ...] = tuple(Tier)


class ErrorKind(str, Enum):
    """单个目标失败的分类"""

    NOT_FOUND = "NotFound"  # 目标无法路由（角色不存在）
    RATE_LIMIT_EXHAUSTED = "RateLimitExhausted"  # 回退链中所有 Profile 均被限流
    NETWORK_ERROR = "NetworkError"  # 不可重试的后端错误（鉴权、请求格式、服务端故障）
    CANCELLED = "Cancelled"  # 批次被取代或用户主动取消


class ResponseFormat(str, Enum):
    """NPC 响应格式"""

    DIALOGUE = "dialogue"  # 仅对白
    ACTION = "action"  # 仅动作描写
    FULL = "full"  # 对白 + 动作

    @classmethod
    def parse(cls, value: "str | ResponseFormat | None") -> "ResponseFormat | None":
        """宽松解析格式字符串，无法识别时返回 None"""
        if isinstance(value, ResponseFormat):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class BatchState(str, Enum):
    """批次状态机: PENDING -> RUNNING -> {COMPLETED | SUPERSEDED | CANCELLED}"""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    SUPERSEDED = "superseded"  # 新批次提交导致取消
    CANCELLED = "cancelled"  # 用户主动取消


__all__ = ["Tier", "TIERS", "ErrorKind", "ResponseFormat", "BatchState"]
