"""
关联 ID 工具 - 用于在日志中追踪同一批次的并发请求
"""

import secrets


def generate_correlation_id() -> str:
    """生成 8 位十六进制关联 ID，如 "a1b2c3d4" """
    return secrets.token_hex(4)
