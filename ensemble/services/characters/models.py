"""
角色数据模型
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ensemble.core.enums import Tier


@dataclass
class Character:
    """
    角色卡

    knowledge_entries 为与该角色相关的知识条目正文；tier_override 为卡片上的永久层级设置。
    """

    name: str
    description: str = ""
    personality: str = ""
    message_count: int = 0
    knowledge_entries: list[str] = field(default_factory=list)
    tier_override: Tier | None = None

    def __post_init__(self) -> None:
        if self.tier_override is not None:
            self.tier_override = Tier.parse(self.tier_override)

    @property
    def identity(self) -> str:
        parts = [p.strip() for p in (self.description, self.personality) if p and p.strip()]
        return "\n\n".join(parts)

    @property
    def description_length(self) -> int:
        return len(self.description or "") + len(self.personality or "")
