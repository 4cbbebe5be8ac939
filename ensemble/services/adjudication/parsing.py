"""
模型 JSON 输出解析

先按原始 JSON 解析，失败时再尝试提取 ```json 代码块。
"""

from __future__ import annotations

import json
import re
from typing import Any

_FENCED_JSON_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def extract_json_object(text: str, agent: str = "model") -> dict[str, Any]:
    """
    解析模型返回的 JSON 对象

    Raises:
        ValueError: 无法解析或解析结果不是对象
    """
    candidate = (text or "").strip()
    try:
        data = json.loads(candidate)
    except ValueError:
        match = _FENCED_JSON_PATTERN.search(candidate)
        if not match:
            raise ValueError(f"Could not parse {agent} response as JSON") from None
        data = json.loads(match.group(1).strip())

    if not isinstance(data, dict):
        raise ValueError(f"{agent} response must be a JSON object")
    return data


def as_string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return [str(value)]
