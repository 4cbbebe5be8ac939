"""
生成请求数据模型
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ensemble.config.constants import GenerationDefaults


class ChatMessage(BaseModel):
    """聊天消息"""

    model_config = ConfigDict(extra="allow")

    role: str
    content: str


class GenerationPayload(BaseModel):
    """
    单个目标的生成请求载荷（由 PayloadBuilder 产出，对调度核心不透明）

    model 为空时使用 Profile 的默认模型。
    """

    messages: list[ChatMessage]
    model: str | None = None
    temperature: float = GenerationDefaults.TEMPERATURE
    max_tokens: int = GenerationDefaults.MAX_TOKENS
    extra: dict[str, Any] = Field(default_factory=dict)
