"""
生成后端接入

- TransportClient / HttpxTransport: 发送请求
- build_generate_body / extract_response_text: 请求体构建与响应解析
"""

from .payload import build_generate_body, chat_completion_source, extract_response_text
from .transport import HttpxTransport, TransportClient, TransportResponse, redact_url_for_log

__all__ = [
    "HttpxTransport",
    "TransportClient",
    "TransportResponse",
    "redact_url_for_log",
    "build_generate_body",
    "chat_completion_source",
    "extract_response_text",
]
