"""
默认载荷构建器

系统消息承载角色身份、知识与情境，用户消息只负责触发回复。
"""

from __future__ import annotations

from ensemble.config.constants import GenerationDefaults
from ensemble.core.enums import ResponseFormat
from ensemble.models.generation import ChatMessage, GenerationPayload
from ensemble.services.characters.models import Character

NO_KNOWLEDGE = "No specific knowledge available."

FORMAT_INSTRUCTIONS: dict[ResponseFormat, str] = {
    ResponseFormat.DIALOGUE: "Respond with dialogue only. No action descriptions or narration.",
    ResponseFormat.ACTION: "Respond with actions only. Describe what you do, no spoken dialogue.",
    ResponseFormat.FULL: "Respond with both dialogue and actions as appropriate.",
}

NPC_TEMPLATE = """# {name}

## Identity
{identity}

## Your Knowledge
{knowledge}

---

React to the following situation. {format_instruction}

{situation}"""


def format_knowledge(entries: list[str]) -> str:
    pieces = [entry.strip() for entry in entries if entry and entry.strip()]
    return "\n\n".join(pieces) if pieces else NO_KNOWLEDGE


class DefaultPayloadBuilder:
    """按角色卡构建生成请求"""

    def __init__(
        self,
        temperature: float = GenerationDefaults.TEMPERATURE,
        max_tokens: int = GenerationDefaults.MAX_TOKENS,
    ) -> None:
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build(
        self,
        character: Character,
        situation: str,
        format: ResponseFormat | str = ResponseFormat.FULL,
    ) -> GenerationPayload:
        response_format = ResponseFormat.parse(format) or ResponseFormat.FULL

        system_content = NPC_TEMPLATE.format(
            name=character.name,
            identity=character.identity or "No description available.",
            knowledge=format_knowledge(character.knowledge_entries),
            format_instruction=FORMAT_INSTRUCTIONS[response_format],
            situation=situation.strip(),
        )
        return GenerationPayload(
            messages=[
                ChatMessage(role="system", content=system_content),
                ChatMessage(
                    role="user",
                    content=f"As {character.name}, respond to this situation now.",
                ),
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
