"""
层级路由器 - 把抽象层级解析为有序的 Profile 回退链

职责：
1. resolve_chain: 层级 -> Profile 名称列表（外部配置）-> Profile 对象列表
   - 先精确匹配，再模糊匹配；都失败的名称记录日志后跳过
   - 层级未配置时返回空链，表示"使用调用方默认 Profile"
2. next_available: 沿回退链查找第一个未被限流的 Profile
   - 全部被限流时返回 profile=None + 完整跳过列表，与"空链"是两种不同结果
3. 维护层级配置（set_tier_profiles / set_tier_fallback_chain）

空间回退（跨 Profile）在这里和 Dispatcher 中实现；
时间退避（单个 Profile 的等待时间）只在 RateLimiter 中计算。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Sequence

from ensemble.config.settings import EnsembleSettings, normalize_tier_profile
from ensemble.core.enums import Tier
from ensemble.core.exceptions import InvalidTierException
from ensemble.core.logger import logger
from ensemble.models.profile import BackendProfile
from ensemble.models.results import SkippedProfile
from ensemble.services.rate_limit.limiter import RateLimiter
from ensemble.services.routing.fuzzy import FuzzyMatcher, match_profile_name

FallbackChain = list[BackendProfile]


@dataclass(frozen=True)
class ProfileSelection:
    """next_available() 的返回值"""

    profile: BackendProfile | None
    index: int | None = None
    skipped: tuple[SkippedProfile, ...] = field(default_factory=tuple)

    @property
    def exhausted(self) -> bool:
        """链非空但全部被限流"""
        return self.profile is None and len(self.skipped) > 0


class Router:
    """层级 -> 回退链路由器"""

    def __init__(
        self,
        settings: EnsembleSettings | Callable[[], EnsembleSettings],
        rate_limiter: RateLimiter,
        fuzzy_matcher: FuzzyMatcher | None = match_profile_name,
    ) -> None:
        if callable(settings):
            self._settings_provider = settings
        else:
            self._settings_provider = lambda: settings
        self.rate_limiter = rate_limiter
        self.fuzzy_matcher = fuzzy_matcher

    @property
    def settings(self) -> EnsembleSettings:
        return self._settings_provider()

    @staticmethod
    def _require_tier(tier: Tier | str) -> Tier:
        parsed = Tier.parse(tier)
        if parsed is None:
            raise InvalidTierException(tier)
        return parsed

    def resolve_profile(self, name: str) -> BackendProfile | None:
        """按名称解析 Profile：精确匹配优先，模糊匹配兜底"""
        profiles = self.settings.profiles
        if not profiles:
            return None

        for profile in profiles:
            if profile.name == name:
                return profile

        if self.fuzzy_matcher is None:
            return None

        matched = self.fuzzy_matcher(name, [p.name for p in profiles])
        if matched is None:
            return None
        for profile in profiles:
            if profile.name == matched:
                logger.debug("模糊匹配 Profile '{}' -> '{}'", name, matched)
                return profile
        return None

    def resolve_chain(self, tier: Tier | str) -> FallbackChain:
        """解析层级的回退链（空链 = 使用调用方默认 Profile）"""
        tier = self._require_tier(tier)
        names = self.settings.chain_names(tier)
        if not names:
            logger.debug("层级 '{}' 未配置 Profile，使用默认 Profile", tier.value)
            return []

        if not self.settings.profiles:
            logger.warning("没有可用的 Profile 配置，层级 '{}' 使用默认 Profile", tier.value)
            return []

        chain: FallbackChain = []
        for name in names:
            if not name:
                continue
            profile = self.resolve_profile(name)
            if profile is None:
                logger.warning("Profile '{}' 不存在，已从层级 '{}' 的回退链中跳过", name, tier.value)
                continue
            chain.append(profile)
        return chain

    def profile_for_tier(self, tier: Tier | str) -> BackendProfile | None:
        """回退链中的首选 Profile"""
        chain = self.resolve_chain(tier)
        return chain[0] if chain else None

    def next_available(
        self,
        chain: Sequence[BackendProfile],
        start_index: int = 0,
    ) -> ProfileSelection:
        """从 start_index 开始查找第一个未被限流的 Profile"""
        skipped: list[SkippedProfile] = []
        if not chain:
            return ProfileSelection(profile=None)

        for index in range(max(start_index, 0), len(chain)):
            profile = chain[index]
            status = self.rate_limiter.check(profile.name)
            if not status.limited:
                if skipped:
                    logger.debug(
                        "跳过 {} 个被限流的 Profile 后使用 '{}'",
                        len(skipped),
                        profile.name,
                    )
                return ProfileSelection(profile=profile, index=index, skipped=tuple(skipped))

            retry_in_s = -(-(status.retry_in_ms or 0) // 1000)
            reason = f"Rate limited, retry in {retry_in_s}s"
            skipped.append(SkippedProfile(name=profile.name, reason=reason))
            logger.debug("跳过被限流的 Profile '{}': {}", profile.name, reason)

        if skipped:
            logger.warning(
                "回退链中的 {} 个 Profile 均被限流: {}",
                len(skipped),
                ", ".join(s.name for s in skipped),
            )
        return ProfileSelection(profile=None, skipped=tuple(skipped))

    def set_tier_profiles(self, tier: Tier | str, profiles: str | Sequence[str]) -> bool:
        """设置层级的 Profile（单个名称或名称列表；空 = 使用默认 Profile）"""
        parsed = Tier.parse(tier)
        if parsed is None:
            logger.warning("无效层级 '{}'", tier)
            return False

        names = normalize_tier_profile(profiles)
        self.settings.tier_profiles[parsed] = names
        display = " -> ".join(names) if names else "(current)"
        logger.debug("层级 '{}' 的 Profile 已更新: {}", parsed.value, display)
        return True

    def set_tier_fallback_chain(self, tier: Tier | str, profile_names: Sequence[str]) -> bool:
        """设置层级的回退链（第一个为首选，其余为备选）"""
        if isinstance(profile_names, str) or not isinstance(profile_names, (list, tuple)):
            logger.warning("set_tier_fallback_chain 需要 Profile 名称列表")
            return False
        return self.set_tier_profiles(tier, list(profile_names))

    def available_profile_names(self) -> list[str]:
        return sorted(p.name for p in self.settings.profiles)
