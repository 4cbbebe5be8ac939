from ensemble.models.generation import ChatMessage, GenerationPayload
from ensemble.models.profile import BackendProfile
from ensemble.services.provider.payload import (
    build_generate_body,
    chat_completion_source,
    extract_response_text,
)


def _payload(**kwargs) -> GenerationPayload:
    return GenerationPayload(messages=[ChatMessage(role="user", content="hi")], **kwargs)


def test_chat_completion_source_mapping() -> None:
    assert chat_completion_source(None) == "openai"
    assert chat_completion_source(BackendProfile(name="p")) == "openai"
    assert chat_completion_source(BackendProfile(name="p", api="claude")) == "claude"
    assert chat_completion_source(BackendProfile(name="p", api="some-new-api")) == "some-new-api"


def test_build_generate_body_with_profile() -> None:
    profile = BackendProfile.model_validate(
        {
            "name": "main",
            "api": "openrouter",
            "api-url": "https://example.invalid/v1",
            "proxy": "http://proxy:8080",
            "model": "profile-model",
        }
    )

    body = build_generate_body(_payload(temperature=0.3, max_tokens=300), profile)

    assert body == {
        "type": "quiet",
        "messages": [{"role": "user", "content": "hi"}],
        "temperature": 0.3,
        "max_tokens": 300,
        "stream": False,
        "chat_completion_source": "openrouter",
        "model": "profile-model",
        "custom_url": "https://example.invalid/v1",
        "proxy": "http://proxy:8080",
    }


def test_build_generate_body_model_precedence() -> None:
    profile = BackendProfile(name="main", model="profile-model")

    assert build_generate_body(_payload(model="payload-model"), profile)["model"] == "payload-model"
    assert (
        build_generate_body(_payload(model="payload-model"), profile, model="override")["model"]
        == "override"
    )
    assert "model" not in build_generate_body(_payload(), None)


def test_build_generate_body_extra_does_not_override_core_fields() -> None:
    body = build_generate_body(_payload(extra={"stream": True, "top_p": 0.9}), None)

    assert body["stream"] is False
    assert body["top_p"] == 0.9


def test_extract_response_text_shapes() -> None:
    assert extract_response_text({"choices": [{"message": {"content": "  hello "}}]}) == "hello"
    assert extract_response_text({"content": "plain"}) == "plain"
    assert extract_response_text({"content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]}) == "ab"
    assert extract_response_text("  raw text ") == "raw text"
    assert extract_response_text(None) == ""
    assert extract_response_text({"unexpected": 1}) == '{"unexpected": 1}'
