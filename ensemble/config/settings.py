"""
配置

两类配置：
- Config: 进程级配置（HTTP、退避参数），从环境变量读取，缺省回退到 constants
- EnsembleSettings: 用户可编辑的路由配置（层级 -> Profile 名称列表、Profile 列表），
  以 JSON 文件持久化

层级配置只保存 Profile 名称而不是 Profile 对象，回退链在每次路由时重新解析，
因此修改 Profile 列表后不会出现过期引用。
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from ensemble.config.constants import HTTPDefaults, RateLimitDefaults
from ensemble.core.enums import TIERS, Tier
from ensemble.core.logger import logger
from ensemble.models.profile import BackendProfile


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        logger.warning("环境变量 {} 不是合法数字，使用默认值 {}", name, default)
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        logger.warning("环境变量 {} 不是合法整数，使用默认值 {}", name, default)
        return default


class Config:
    """进程级配置"""

    def __init__(self) -> None:
        self.generate_url = os.getenv("ENSEMBLE_GENERATE_URL", HTTPDefaults.GENERATE_URL)
        self.api_key = os.getenv("ENSEMBLE_API_KEY") or None

        self.http_connect_timeout = _env_float("HTTP_CONNECT_TIMEOUT", HTTPDefaults.CONNECT_TIMEOUT)
        self.http_read_timeout = _env_float("HTTP_READ_TIMEOUT", HTTPDefaults.READ_TIMEOUT)
        self.http_write_timeout = _env_float("HTTP_WRITE_TIMEOUT", HTTPDefaults.WRITE_TIMEOUT)
        self.http_pool_timeout = _env_float("HTTP_POOL_TIMEOUT", HTTPDefaults.POOL_TIMEOUT)
        self.http_max_connections = _env_int("HTTP_MAX_CONNECTIONS", HTTPDefaults.MAX_CONNECTIONS)
        self.http_keepalive_connections = _env_int(
            "HTTP_KEEPALIVE_CONNECTIONS", HTTPDefaults.KEEPALIVE_CONNECTIONS
        )
        self.http_keepalive_expiry = _env_float(
            "HTTP_KEEPALIVE_EXPIRY", HTTPDefaults.KEEPALIVE_EXPIRY
        )

        self.rate_limit_base_delay_ms = _env_int(
            "RATE_LIMIT_BASE_DELAY_MS", RateLimitDefaults.BASE_DELAY_MS
        )
        self.rate_limit_max_delay_ms = _env_int(
            "RATE_LIMIT_MAX_DELAY_MS", RateLimitDefaults.MAX_DELAY_MS
        )

    def request_headers(self) -> dict[str, str]:
        """生成接口的请求头"""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers


config = Config()


def normalize_tier_profile(value: Any) -> list[str]:
    """
    将层级配置值统一为名称列表

    兼容旧格式：单个字符串 -> [字符串]，空字符串/None -> []
    """
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if isinstance(v, str) and v.strip()]
    if isinstance(value, str) and value.strip():
        return [value]
    return []


def _default_tier_profiles() -> dict[Tier, list[str]]:
    # 空列表 = 使用调用方默认 Profile
    return {tier: [] for tier in TIERS}


class EnsembleSettings(BaseModel):
    """路由配置"""

    enabled: bool = True
    debug: bool = False
    tier_profiles: dict[Tier, list[str]] = Field(default_factory=_default_tier_profiles)
    profiles: list[BackendProfile] = Field(default_factory=list)

    @field_validator("tier_profiles", mode="before")
    @classmethod
    def _normalize_tier_profiles(cls, value: Any) -> dict[Tier, list[str]]:
        normalized = _default_tier_profiles()
        if not isinstance(value, dict):
            return normalized
        for raw_tier, raw_profiles in value.items():
            tier = Tier.parse(raw_tier)
            if tier is None:
                logger.warning("忽略未知层级配置: {}", raw_tier)
                continue
            normalized[tier] = normalize_tier_profile(raw_profiles)
        return normalized

    def chain_names(self, tier: Tier) -> list[str]:
        return list(self.tier_profiles.get(tier, []))


def load_settings(path: str | Path) -> EnsembleSettings:
    """从 JSON 文件加载路由配置，文件不存在时返回默认配置"""
    settings_path = Path(path)
    if not settings_path.exists():
        logger.debug("路由配置文件不存在，使用默认配置: {}", settings_path)
        return EnsembleSettings()

    with settings_path.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    return EnsembleSettings.model_validate(data)


def save_settings(settings: EnsembleSettings, path: str | Path) -> None:
    """将路由配置写入 JSON 文件"""
    settings_path = Path(path)
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    payload = settings.model_dump(mode="json", by_alias=True)
    with settings_path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, ensure_ascii=False, indent=2)
    logger.debug("路由配置已保存: {}", settings_path)
