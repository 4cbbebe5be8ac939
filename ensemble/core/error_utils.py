"""
错误消息处理工具函数
"""


def extract_error_message(error: Exception, status_code: int | None = None) -> str:
    """
    从异常中提取错误消息，优先使用上游原始响应（用于日志排查）

    Args:
        error: 异常对象
        status_code: 可选的 HTTP 状态码，用于构建更详细的错误消息

    Returns:
        错误消息字符串（原始后端响应）
    """
    upstream_response = getattr(error, "upstream_response", None)
    if upstream_response and isinstance(upstream_response, str) and upstream_response.strip():
        return str(upstream_response)

    # 回退到异常的字符串表示（str 可能为空，如 httpx 超时异常）
    error_str = str(error) or repr(error)
    if status_code is not None:
        return f"HTTP {status_code}: {error_str}"
    return error_str


def extract_client_error_message(error: Exception) -> str:
    """
    从异常中提取用户友好的错误消息（用于批次汇总中的失败原因）

    Args:
        error: 异常对象

    Returns:
        友好的错误消息字符串
    """
    # 优先使用 message 属性（已经是友好处理过的消息）
    message = getattr(error, "message", None)
    if message and isinstance(message, str) and message.strip():
        return message

    return str(error) or repr(error)
