"""
组件装配

把 Router / Dispatcher / Orchestrator 按默认实现连接起来，供宿主直接使用。
需要替换任一协作者（传输、目标解析、载荷构建）时，直接构造各组件即可。
"""

from __future__ import annotations

from typing import Callable, Union

from ensemble.config.settings import EnsembleSettings
from ensemble.models.profile import BackendProfile
from ensemble.services.adjudication import Adjudicator
from ensemble.services.characters import CharacterRegistry, DefaultPayloadBuilder
from ensemble.services.orchestration import Dispatcher, Orchestrator
from ensemble.services.orchestration.orchestrator import PayloadBuilder, TargetResolver
from ensemble.services.provider import HttpxTransport, TransportClient
from ensemble.services.rate_limit import RateLimiter, get_rate_limiter
from ensemble.services.routing import Router

SettingsSource = Union[EnsembleSettings, Callable[[], EnsembleSettings]]


def create_dispatcher(
    settings: SettingsSource,
    transport: TransportClient | None = None,
    rate_limiter: RateLimiter | None = None,
) -> Dispatcher:
    router = Router(settings, rate_limiter or get_rate_limiter())
    return Dispatcher(transport or HttpxTransport(), router)


def create_orchestrator(
    settings: SettingsSource,
    resolver: TargetResolver | None = None,
    payload_builder: PayloadBuilder | None = None,
    transport: TransportClient | None = None,
    rate_limiter: RateLimiter | None = None,
    default_profile: BackendProfile | None = None,
) -> Orchestrator:
    """按默认实现装配编排器（角色名册为空时所有目标都会返回 NotFound）"""
    dispatcher = create_dispatcher(settings, transport, rate_limiter)
    return Orchestrator(
        resolver=resolver or CharacterRegistry(),
        payload_builder=payload_builder or DefaultPayloadBuilder(),
        router=dispatcher.router,
        dispatcher=dispatcher,
        default_profile=default_profile,
    )


def create_adjudicator(
    settings: SettingsSource,
    transport: TransportClient | None = None,
    rate_limiter: RateLimiter | None = None,
    default_profile: BackendProfile | None = None,
) -> Adjudicator:
    dispatcher = create_dispatcher(settings, transport, rate_limiter)
    return Adjudicator(dispatcher.router, dispatcher, default_profile=default_profile)
