"""
层级推断：会话覆盖 > 角色卡设置 > 复杂度评分
"""

import pytest

from ensemble.core.enums import Tier
from ensemble.services.characters import (
    Character,
    CharacterRegistry,
    ComplexityTierPolicy,
    SessionTierOverrides,
)


def _registry(*characters: Character) -> CharacterRegistry:
    return CharacterRegistry(characters)


def test_find_is_case_insensitive_and_trimmed() -> None:
    registry = _registry(Character(name="Alice"))

    assert registry.find("  alice ").name == "Alice"
    assert registry.find("ALICE").name == "Alice"
    assert registry.find("Bob") is None
    assert "alice" in registry
    assert len(registry) == 1


def test_registry_add_remove() -> None:
    registry = _registry()
    registry.add(Character(name="Bob"))
    assert registry.names() == ["Bob"]

    assert registry.remove("bob") is True
    assert registry.remove("bob") is False

    with pytest.raises(ValueError):
        registry.add(Character(name="   "))


@pytest.mark.asyncio
async def test_simple_character_is_standard() -> None:
    registry = _registry(Character(name="Guard", description="A guard."))

    assert await registry.tier_for(registry.find("Guard")) == Tier.STANDARD


@pytest.mark.asyncio
async def test_complex_character_is_major() -> None:
    # 4 条知识 * 2 + 3 条消息 = 11 > 10
    character = Character(name="Lord", message_count=3, knowledge_entries=["a", "b", "c", "d"])
    registry = _registry(character)

    assert await registry.tier_for(character) == Tier.MAJOR


@pytest.mark.asyncio
async def test_threshold_is_exclusive() -> None:
    # 5 * 2 = 10，不大于阈值
    character = Character(name="Edge", knowledge_entries=["k"] * 5)
    registry = _registry(character)

    assert registry.policy.complexity(character) == 10
    assert await registry.tier_for(character) == Tier.STANDARD


@pytest.mark.asyncio
async def test_long_description_adds_bonus() -> None:
    character = Character(
        name="Sage",
        description="x" * 400,
        personality="y" * 101,
        message_count=8,
    )
    registry = _registry(character)

    assert registry.policy.complexity(character) == 11
    assert await registry.tier_for(character) == Tier.MAJOR


@pytest.mark.asyncio
async def test_card_override_beats_complexity() -> None:
    character = Character(name="Rat", knowledge_entries=["k"] * 20, tier_override="minor")
    registry = _registry(character)

    assert character.tier_override == Tier.MINOR
    assert await registry.tier_for(character) == Tier.MINOR


@pytest.mark.asyncio
async def test_session_override_beats_card_override() -> None:
    overrides = SessionTierOverrides()
    registry = _registry(Character(name="Rat", tier_override=Tier.MINOR))
    registry.policy = ComplexityTierPolicy(registry.find, overrides)

    assert overrides.set("rat", "major") is True
    assert await registry.tier_for("Rat") == Tier.MAJOR

    assert overrides.clear("RAT") is True
    assert await registry.tier_for("Rat") == Tier.MINOR


@pytest.mark.asyncio
async def test_unknown_character_is_minor() -> None:
    registry = _registry()

    assert await registry.tier_for("Nobody") == Tier.MINOR


def test_session_overrides_reject_invalid_tier() -> None:
    overrides = SessionTierOverrides()

    assert overrides.set("Alice", "legendary") is False
    assert overrides.set("Alice", Tier.UTILITY) is True
    assert overrides.get_all() == {"alice": Tier.UTILITY}

    snapshot = overrides.get_all()
    snapshot.clear()
    assert overrides.get("alice") == Tier.UTILITY

    overrides.clear_all()
    assert overrides.get_all() == {}


@pytest.mark.asyncio
async def test_thresholds_are_configurable() -> None:
    character = Character(name="Clerk", message_count=3)
    registry = _registry(character)
    registry.policy = ComplexityTierPolicy(registry.find, major_threshold=2)

    assert await registry.tier_for(character) == Tier.MAJOR
