"""
层级推断策略

优先级：
1. 会话级覆盖（临时，进程重启即失效）
2. 角色卡上的层级设置（永久）
3. 复杂度评分: 知识条目数 * 2 + 消息数 + (描述与性格合计超过 500 字符时 +3)
   评分 > 10 为 major，否则为 standard

未知角色一律为 minor。推断本身从不返回 minor，minor 只能通过覆盖指定。
"""

from __future__ import annotations

from typing import Callable, Protocol

from ensemble.config.constants import TierInferenceDefaults
from ensemble.core.enums import Tier
from ensemble.core.logger import logger
from ensemble.services.characters.models import Character

CharacterLookup = Callable[[str], "Character | None"]


class TierResolver(Protocol):
    """按角色名给出层级（必须总是返回一个层级）"""

    async def tier_for(self, name: str) -> Tier: ...


def _key(name: str) -> str:
    return name.strip().lower()


class SessionTierOverrides:
    """会话级层级覆盖（按名称，忽略大小写）"""

    def __init__(self) -> None:
        self._overrides: dict[str, Tier] = {}

    def set(self, name: str, tier: Tier | str) -> bool:
        parsed = Tier.parse(tier)
        if parsed is None or not isinstance(name, str) or not name.strip():
            logger.warning("无效的会话层级覆盖: name={}, tier={}", name, tier)
            return False
        self._overrides[_key(name)] = parsed
        logger.info("会话层级覆盖已设置: {} -> {}", name, parsed.value)
        return True

    def get(self, name: str) -> Tier | None:
        return self._overrides.get(_key(name))

    def clear(self, name: str) -> bool:
        removed = self._overrides.pop(_key(name), None) is not None
        if removed:
            logger.info("会话层级覆盖已清除: {}", name)
        return removed

    def clear_all(self) -> None:
        self._overrides.clear()
        logger.info("所有会话层级覆盖已清除")

    def get_all(self) -> dict[str, Tier]:
        return dict(self._overrides)


class ComplexityTierPolicy:
    """基于角色复杂度的层级推断"""

    def __init__(
        self,
        lookup: CharacterLookup,
        overrides: SessionTierOverrides | None = None,
        knowledge_weight: int = TierInferenceDefaults.KNOWLEDGE_WEIGHT,
        long_description_chars: int = TierInferenceDefaults.LONG_DESCRIPTION_CHARS,
        long_description_bonus: int = TierInferenceDefaults.LONG_DESCRIPTION_BONUS,
        major_threshold: int = TierInferenceDefaults.MAJOR_THRESHOLD,
    ) -> None:
        self.lookup = lookup
        self.overrides = overrides or SessionTierOverrides()
        self.knowledge_weight = knowledge_weight
        self.long_description_chars = long_description_chars
        self.long_description_bonus = long_description_bonus
        self.major_threshold = major_threshold

    def complexity(self, character: Character) -> int:
        score = len(character.knowledge_entries) * self.knowledge_weight
        score += max(character.message_count, 0)
        if character.description_length > self.long_description_chars:
            score += self.long_description_bonus
        return score

    async def tier_for(self, target: Character | str) -> Tier:
        name = target.name if isinstance(target, Character) else target

        override = self.overrides.get(name)
        if override is not None:
            logger.debug("使用会话层级覆盖: {} -> {}", name, override.value)
            return override

        character = target if isinstance(target, Character) else self.lookup(name)
        if character is None:
            logger.warning("角色 {} 不存在，层级默认为 minor", name)
            return Tier.MINOR

        if character.tier_override is not None:
            logger.debug("使用角色卡层级设置: {} -> {}", name, character.tier_override.value)
            return character.tier_override

        score = self.complexity(character)
        tier = Tier.MAJOR if score > self.major_threshold else Tier.STANDARD
        logger.debug(
            "层级推断: {} knowledge={}, messages={}, description={}, complexity={} -> {}",
            name,
            len(character.knowledge_entries),
            character.message_count,
            character.description_length,
            score,
            tier.value,
        )
        return tier
