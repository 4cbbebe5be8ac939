"""
默认常量

各模块的默认参数集中在这里，可通过环境变量在 settings.Config 中覆盖。
"""


class RateLimitDefaults:
    """限流退避默认值"""

    BASE_DELAY_MS = 5_000  # 指数退避基数
    MAX_DELAY_MS = 300_000  # 退避上限（5 分钟）


class GenerationDefaults:
    """NPC 生成默认采样参数"""

    TEMPERATURE = 0.8
    MAX_TOKENS = 500


class UtilityDefaults:
    """工具层级调用（Judge / Guardian）默认参数"""

    MAX_TOKENS = 300
    JUDGE_TEMPERATURE = 0.3  # 裁决需要稳定
    GUARDIAN_TEMPERATURE = 0.2  # 审核需要更稳定


class TierInferenceDefaults:
    """层级推断的复杂度阈值"""

    KNOWLEDGE_WEIGHT = 2
    LONG_DESCRIPTION_CHARS = 500
    LONG_DESCRIPTION_BONUS = 3
    MAJOR_THRESHOLD = 10


class HTTPDefaults:
    """HTTP 客户端默认配置"""

    GENERATE_URL = "http://127.0.0.1:8000/api/backends/chat-completions/generate"
    CONNECT_TIMEOUT = 10.0
    READ_TIMEOUT = 120.0
    WRITE_TIMEOUT = 30.0
    POOL_TIMEOUT = 10.0
    MAX_CONNECTIONS = 100
    KEEPALIVE_CONNECTIONS = 20
    KEEPALIVE_EXPIRY = 30.0
