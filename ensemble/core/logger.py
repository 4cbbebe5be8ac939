"""
统一日志系统 - 基于 loguru

日志级别策略:
- DEBUG: 每次路由尝试、跳过的 Profile、回退链细节
- INFO:  批次开始/结束、回退 Profile 生效、批次被取代
- WARNING: Profile 无法解析、角色未找到、回退链耗尽
- ERROR: 后端硬错误（鉴权失败、端点不存在、服务端故障）

输出策略:
- 控制台: 开发环境=DEBUG, 生产环境=INFO (通过 LOG_LEVEL 控制)
- 文件: 始终保存 DEBUG 级别，保留30天，按大小轮转 (100MB)

使用方式:
    from ensemble.core.logger import logger

    logger.info("[{}] 批次开始: {} 个目标", correlation_id, len(targets))
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from loguru import logger

# ============================================================================
# 环境检测
# ============================================================================

IS_DOCKER = (
    os.path.exists("/.dockerenv")
    or os.environ.get("DOCKER_CONTAINER", "false").lower() == "true"
)

# 日志级别: 默认开发环境 DEBUG, 生产环境 INFO
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if not IS_DOCKER else "INFO").upper()

# 是否禁用文件日志 (用于测试或特殊场景)
DISABLE_FILE_LOG = os.getenv("LOG_DISABLE_FILE", "false").lower() == "true"

# 项目根目录
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

# ============================================================================
# 日志格式定义
# ============================================================================

CONSOLE_FORMAT_DEV = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{message}</cyan>"
)

CONSOLE_FORMAT_PROD = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | [Ensemble] {message}"

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"

# ============================================================================
# 日志配置
# ============================================================================

logger.remove()

if IS_DOCKER:
    # 生产环境：禁用 backtrace 和 diagnose，减少日志噪音
    logger.add(
        sys.stdout,
        format=CONSOLE_FORMAT_PROD,
        level=LOG_LEVEL,
        colorize=False,
        backtrace=False,
        diagnose=False,
    )
else:
    logger.add(
        sys.stdout,
        format=CONSOLE_FORMAT_DEV,
        level=LOG_LEVEL,
        colorize=True,
    )

if not DISABLE_FILE_LOG:
    log_dir = PROJECT_ROOT / "logs"
    log_dir.mkdir(exist_ok=True)

    # 注意: enqueue=False 使用同步模式，避免 multiprocessing 信号量泄漏
    file_log_config = {
        "format": FILE_FORMAT,
        "rotation": "100 MB",
        "retention": "30 days",
        "compression": "gz",
        "enqueue": False,
        "encoding": "utf-8",
        "catch": True,
    }

    if IS_DOCKER:
        file_log_config["backtrace"] = False
        file_log_config["diagnose"] = False

    # 主日志文件 - 所有级别
    logger.add(  # type: ignore[call-overload]
        log_dir / "app.log",
        level="DEBUG",
        **file_log_config,
    )

    # 错误日志文件 - 仅 ERROR 及以上
    error_log_config = file_log_config.copy()
    error_log_config["rotation"] = "50 MB"
    logger.add(  # type: ignore[call-overload]
        log_dir / "error.log",
        level="ERROR",
        **error_log_config,
    )

# ============================================================================
# 禁用第三方库噪音日志
# ============================================================================

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# ============================================================================
# 导出
# ============================================================================

__all__ = ["logger"]
