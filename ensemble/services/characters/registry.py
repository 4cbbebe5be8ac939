"""
内存角色名册

同时实现编排器需要的目标解析接口：find(name) 与 tier_for(character)，
并提供按主题检索角色知识条目的 query_knowledge。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from ensemble.core.enums import Tier
from ensemble.core.exceptions import CharacterNotFoundException
from ensemble.core.logger import logger
from ensemble.services.characters.models import Character
from ensemble.services.characters.tier_policy import ComplexityTierPolicy
from ensemble.utils.correlation import generate_correlation_id


@dataclass
class KnowledgeQueryResult:
    """角色知识检索结果"""

    npc: str
    success: bool
    knowledge: list[str] = field(default_factory=list)
    total_entries: int = 0
    error: str | None = None
    correlation_id: str | None = None

    @property
    def match_count(self) -> int:
        return len(self.knowledge)


class CharacterRegistry:
    """角色名册（名称忽略大小写与首尾空白）"""

    def __init__(
        self,
        characters: Iterable[Character] = (),
        policy: ComplexityTierPolicy | None = None,
    ) -> None:
        self._characters: dict[str, Character] = {}
        for character in characters:
            self.add(character)
        self.policy = policy or ComplexityTierPolicy(self.find)

    @staticmethod
    def _key(name: str) -> str:
        return name.strip().lower()

    def add(self, character: Character) -> None:
        key = self._key(character.name)
        if not key:
            raise ValueError("character name must not be empty")
        if key in self._characters:
            logger.debug("角色 {} 已存在，覆盖", character.name)
        self._characters[key] = character

    def remove(self, name: str) -> bool:
        return self._characters.pop(self._key(name), None) is not None

    def names(self) -> list[str]:
        return [c.name for c in self._characters.values()]

    def find(self, name: str) -> Character | None:
        if not isinstance(name, str):
            return None
        return self._characters.get(self._key(name))

    async def tier_for(self, target: Character | str) -> Tier:
        return await self.policy.tier_for(target)

    def query_knowledge(self, name: str, topic: str) -> KnowledgeQueryResult:
        """
        检索角色知道的、提及某个主题的知识条目

        只搜索该角色自己的条目（忽略大小写的子串匹配）；角色不存在时返回失败结果而不抛异常。
        """
        cid = generate_correlation_id()
        character = self.find(name)
        if character is None:
            error = CharacterNotFoundException(name).message
            logger.warning("[{}] 知识检索失败: {}", cid, error)
            return KnowledgeQueryResult(npc=name, success=False, error=error, correlation_id=cid)

        needle = (topic or "").strip().lower()
        entries = character.knowledge_entries
        matches = [entry for entry in entries if needle in entry.lower()]
        logger.info(
            "[{}] 知识检索完成: npc={}, topic={!r}, 匹配 {}/{}",
            cid,
            character.name,
            topic,
            len(matches),
            len(entries),
        )
        return KnowledgeQueryResult(
            npc=name,
            success=True,
            knowledge=matches,
            total_entries=len(entries),
            correlation_id=cid,
        )

    def __len__(self) -> int:
        return len(self._characters)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._key(name) in self._characters
