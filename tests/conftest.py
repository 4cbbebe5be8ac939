import os

# 测试环境不写日志文件，必须在导入 ensemble 之前设置
os.environ.setdefault("LOG_DISABLE_FILE", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import asyncio
from typing import Any, Callable

import pytest

from ensemble.config.settings import EnsembleSettings
from ensemble.models.profile import BackendProfile
from ensemble.services.provider.transport import TransportResponse
from ensemble.services.rate_limit.limiter import RateLimiter


class FakeClock:
    """可手动推进的时钟（秒）"""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def ok_response(text: str = "ok") -> TransportResponse:
    return TransportResponse(status=200, body={"choices": [{"message": {"content": text}}]})


def error_response(status: int, headers: dict[str, str] | None = None) -> TransportResponse:
    reasons = {401: "Unauthorized", 404: "Not Found", 429: "Too Many Requests", 500: "Server Error"}
    return TransportResponse(
        status=status,
        body={"error": {"message": reasons.get(status, "error")}},
        headers=headers or {},
        reason=reasons.get(status, ""),
    )


class ScriptedTransport:
    """
    按请求体中的 model 字段返回预设响应

    测试里的 Profile 以自身名称作为 model，因此 model 即 Profile 名；
    默认 Profile（无 model）对应键 None。
    """

    def __init__(
        self,
        responses: dict[str | None, list[Any]] | None = None,
        default: TransportResponse | None = None,
        delays: dict[str | None, float] | None = None,
    ) -> None:
        self.responses = {key: list(items) for key, items in (responses or {}).items()}
        self.default = default or ok_response()
        self.delays = delays or {}
        self.calls: list[dict[str, Any]] = []
        self.headers: list[dict[str, str]] = []

    async def send(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> TransportResponse:
        model = payload.get("model")
        self.calls.append(payload)
        self.headers.append(headers)

        delay = self.delays.get(model, self.delays.get("*", 0.0))
        if delay:
            await asyncio.sleep(delay)

        queue = self.responses.get(model)
        item = queue.pop(0) if queue else self.default
        if isinstance(item, BaseException):
            raise item
        return item

    @property
    def models_called(self) -> list[str | None]:
        return [call.get("model") for call in self.calls]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(fake_clock: FakeClock) -> RateLimiter:
    return RateLimiter(base_delay_ms=5_000, max_delay_ms=300_000, clock=fake_clock)


@pytest.fixture
def make_settings() -> Callable[..., EnsembleSettings]:
    def _make(
        tier_profiles: dict[str, Any] | None = None,
        profile_names: list[str] | None = None,
    ) -> EnsembleSettings:
        profiles = [
            BackendProfile(name=name, api="openai", model=name) for name in (profile_names or [])
        ]
        return EnsembleSettings(tier_profiles=tier_profiles or {}, profiles=profiles)

    return _make


@pytest.fixture
def transport_factory() -> type[ScriptedTransport]:
    return ScriptedTransport


@pytest.fixture
def responses() -> Any:
    """构造传输层响应的辅助函数"""

    class _Responses:
        ok = staticmethod(ok_response)
        error = staticmethod(error_response)

    return _Responses
