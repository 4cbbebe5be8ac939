from ensemble.core.enums import ResponseFormat
from ensemble.services.characters import (
    FORMAT_INSTRUCTIONS,
    Character,
    DefaultPayloadBuilder,
    format_knowledge,
)


def test_build_includes_identity_knowledge_and_situation() -> None:
    character = Character(
        name="Mira",
        description="A tavern keeper.",
        personality="Warm but wary.",
        knowledge_entries=["Knows the mayor.", "  ", "Hides a map."],
    )

    payload = DefaultPayloadBuilder().build(character, "  A stranger enters. ", ResponseFormat.DIALOGUE)
    system, user = payload.messages

    assert system.role == "system"
    assert system.content.startswith("# Mira")
    assert "A tavern keeper.\n\nWarm but wary." in system.content
    assert "Knows the mayor.\n\nHides a map." in system.content
    assert FORMAT_INSTRUCTIONS[ResponseFormat.DIALOGUE] in system.content
    assert system.content.endswith("A stranger enters.")
    assert user.role == "user"
    assert user.content == "As Mira, respond to this situation now."
    assert payload.temperature == 0.8
    assert payload.max_tokens == 500


def test_unknown_format_falls_back_to_full() -> None:
    payload = DefaultPayloadBuilder().build(Character(name="X"), "Rain.", "poetry")

    assert FORMAT_INSTRUCTIONS[ResponseFormat.FULL] in payload.messages[0].content


def test_sampling_options_are_configurable() -> None:
    payload = DefaultPayloadBuilder(temperature=1.1, max_tokens=64).build(
        Character(name="X"), "Rain.", "action"
    )

    assert payload.temperature == 1.1
    assert payload.max_tokens == 64
    assert FORMAT_INSTRUCTIONS[ResponseFormat.ACTION] in payload.messages[0].content


def test_format_knowledge_empty() -> None:
    assert format_knowledge([]) == "No specific knowledge available."
    assert format_knowledge(["", "  "]) == "No specific knowledge available."
