"""角色名册、层级推断与载荷构建"""

from ensemble.services.characters.models import Character
from ensemble.services.characters.prompt import (
    FORMAT_INSTRUCTIONS,
    DefaultPayloadBuilder,
    format_knowledge,
)
from ensemble.services.characters.registry import CharacterRegistry, KnowledgeQueryResult
from ensemble.services.characters.tier_policy import (
    ComplexityTierPolicy,
    SessionTierOverrides,
    TierResolver,
)

__all__ = [
    "Character",
    "CharacterRegistry",
    "ComplexityTierPolicy",
    "DefaultPayloadBuilder",
    "FORMAT_INSTRUCTIONS",
    "KnowledgeQueryResult",
    "SessionTierOverrides",
    "TierResolver",
    "format_knowledge",
]
