"""
生成接口请求体构建与响应解析
"""

from __future__ import annotations

import json
from typing import Any

from ensemble.models.generation import GenerationPayload
from ensemble.models.profile import BackendProfile

# Profile 端点类型 -> chat_completion_source
_CHAT_COMPLETION_SOURCES = {
    "openai": "openai",
    "claude": "claude",
    "openrouter": "openrouter",
    "mistralai": "mistralai",
    "custom": "custom",
    "cohere": "cohere",
    "perplexity": "perplexity",
    "groq": "groq",
    "makersuite": "makersuite",
    "01ai": "01ai",
    "deepseek": "deepseek",
    "blockentropy": "blockentropy",
    "infermaticai": "infermaticai",
    "dreamgen": "dreamgen",
    "zerooneai": "zerooneai",
    "featherless": "featherless",
    "huggingface": "huggingface",
}


def chat_completion_source(profile: BackendProfile | None) -> str:
    """端点类型映射；无 Profile 或未设置时按 OpenAI 兼容处理，未知类型原样透传"""
    if profile is None or not profile.api:
        return "openai"
    return _CHAT_COMPLETION_SOURCES.get(profile.api, profile.api)


def build_generate_body(
    payload: GenerationPayload,
    profile: BackendProfile | None,
    model: str | None = None,
) -> dict[str, Any]:
    """
    构建生成接口请求体

    模型优先级：调用方覆盖 > 载荷指定 > Profile 默认模型
    """
    body: dict[str, Any] = {
        "type": "quiet",
        "messages": [m.model_dump() for m in payload.messages],
        "temperature": payload.temperature,
        "max_tokens": payload.max_tokens,
        "stream": False,
        "chat_completion_source": chat_completion_source(profile),
    }

    resolved_model = model or payload.model or (profile.model if profile else None)
    if resolved_model:
        body["model"] = resolved_model

    if profile is not None and profile.api_url:
        body["custom_url"] = profile.api_url
    if profile is not None and profile.proxy:
        body["proxy"] = profile.proxy

    if payload.extra:
        for key, value in payload.extra.items():
            body.setdefault(key, value)
    return body


def extract_response_text(result: Any) -> str:
    """
    从生成接口响应中提取文本

    支持: choices[0].message.content / content / 纯字符串；其他结构序列化为 JSON
    """
    if isinstance(result, str):
        return result.strip()

    if isinstance(result, dict):
        choices = result.get("choices")
        if isinstance(choices, list) and choices:
            first = choices[0]
            if isinstance(first, dict):
                message = first.get("message")
                if isinstance(message, dict) and message.get("content"):
                    return str(message["content"]).strip()
        content = result.get("content")
        if content:
            if isinstance(content, list):
                # Claude 风格: [{"type": "text", "text": "..."}]
                parts = [
                    str(block.get("text", ""))
                    for block in content
                    if isinstance(block, dict) and block.get("type") == "text"
                ]
                if parts:
                    return "".join(parts).strip()
            else:
                return str(content).strip()

    if result is None:
        return ""
    return json.dumps(result, ensure_ascii=False)
