"""
NPC 并发生成编排器

流程：
1. 生成关联 ID，登记新批次（取代并取消上一个批次）
2. 每个目标并发执行: 解析角色 -> 推断层级 -> 解析回退链 -> 构建载荷 -> Dispatcher.try_chain
3. 等待所有目标结束（任何异常都转换为失败结果，不影响兄弟目标）
4. 汇总：被取消的目标不计入统计、不出现在输出中；输出按提交顺序排列
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Iterable, Protocol, Sequence

from ensemble.core.enums import ErrorKind, ResponseFormat, Tier
from ensemble.core.error_utils import extract_client_error_message
from ensemble.core.exceptions import CharacterNotFoundException
from ensemble.core.logger import logger
from ensemble.models.generation import GenerationPayload
from ensemble.models.profile import BackendProfile
from ensemble.models.results import BatchResult, BatchStats, OutcomeRecord
from ensemble.services.orchestration.coordinator import BatchCoordinator, SpawnBatch
from ensemble.services.orchestration.dispatcher import Dispatcher, DispatchOptions
from ensemble.services.orchestration.error_classifier import ErrorClassifier
from ensemble.services.rate_limit.limiter import RateLimitRecord
from ensemble.services.routing.router import Router
from ensemble.utils.correlation import generate_correlation_id

NO_TARGETS_MESSAGE = "*No NPCs specified for response generation.*"
NO_SITUATION_MESSAGE = "*No situation provided for NPC responses.*"
RESPONSES_HEADER = "## NPC Responses"


class TargetResolver(Protocol):
    """
    目标解析（外部协作者）

    find() 返回 None 表示目标不存在；tier_for() 必须总是返回一个层级。
    两个方法都可以是协程。
    """

    def find(self, name: str) -> Any: ...

    def tier_for(self, name: str) -> Any: ...


class PayloadBuilder(Protocol):
    """载荷构建（外部协作者，可以是协程）"""

    def build(self, target: Any, situation: str, format: ResponseFormat) -> Any: ...


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def scene_targets(names: Iterable[str]) -> list[str]:
    """整理目标列表：去除首尾空白、空名称和重复（忽略大小写），保持顺序"""
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        if not isinstance(name, str):
            continue
        cleaned = name.strip()
        key = cleaned.lower()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        result.append(cleaned)
    return result


class Orchestrator:
    """批次编排器"""

    def __init__(
        self,
        resolver: TargetResolver,
        payload_builder: PayloadBuilder,
        router: Router,
        dispatcher: Dispatcher,
        default_profile: BackendProfile | None = None,
        coordinator: BatchCoordinator | None = None,
    ) -> None:
        self.resolver = resolver
        self.payload_builder = payload_builder
        self.router = router
        self.dispatcher = dispatcher
        self.default_profile = default_profile
        self.coordinator = coordinator or BatchCoordinator()

    @staticmethod
    def _validate_targets(targets: Sequence[str] | None) -> list[str]:
        if targets is None:
            return []
        if isinstance(targets, (str, bytes)) or not isinstance(targets, (list, tuple)):
            raise TypeError("targets must be a list of target names")
        for name in targets:
            if not isinstance(name, str):
                raise TypeError(f"target names must be strings, got {type(name).__name__}")
        return list(targets)

    @staticmethod
    def _empty_result(correlation_id: str, markdown: str) -> BatchResult:
        return BatchResult(correlation_id=correlation_id, markdown=markdown)

    async def spawn(
        self,
        targets: Sequence[str] | None,
        situation: str | None,
        format: ResponseFormat | str = ResponseFormat.FULL,
    ) -> BatchResult:
        """
        为所有目标并发生成响应

        空目标列表或空情境直接返回空结果（不是错误，也不会取代正在运行的批次）。

        Raises:
            TypeError: 参数类型不符合调用约定
        """
        correlation_id = generate_correlation_id()
        names = self._validate_targets(targets)
        if situation is not None and not isinstance(situation, str):
            raise TypeError("situation must be a string")
        response_format = ResponseFormat.parse(format)
        if response_format is None:
            logger.warning("[{}] 未知响应格式 {!r}，使用 full", correlation_id, format)
            response_format = ResponseFormat.FULL

        if not names:
            logger.warning("[{}] spawn 跳过: 未指定目标", correlation_id)
            return self._empty_result(correlation_id, NO_TARGETS_MESSAGE)
        if not situation or not situation.strip():
            logger.warning("[{}] spawn 跳过: 未提供情境", correlation_id)
            return self._empty_result(correlation_id, NO_SITUATION_MESSAGE)

        batch = SpawnBatch(correlation_id=correlation_id, targets=tuple(names))
        self.coordinator.submit(batch)
        self.coordinator.start(batch)
        logger.info(
            "[{}] spawn 开始: targets={}, format={}",
            correlation_id,
            names,
            response_format.value,
        )

        try:
            settled = await asyncio.gather(
                *(self._run_target(name, situation, response_format, batch) for name in names),
                return_exceptions=True,
            )
        finally:
            self.coordinator.complete(batch)

        outcomes: list[OutcomeRecord] = []
        for name, item in zip(names, settled):
            if isinstance(item, OutcomeRecord):
                outcomes.append(item)
                continue
            if isinstance(item, asyncio.CancelledError):
                raise item
            # _run_target 已兜底，这里只处理意料之外的逃逸
            outcomes.append(
                OutcomeRecord.failure(
                    name,
                    ErrorClassifier.classify_exception(item),
                    extract_client_error_message(item) if isinstance(item, Exception) else repr(item),
                )
            )

        return self.aggregate(outcomes, targets=names, correlation_id=correlation_id)

    async def _run_target(
        self,
        name: str,
        situation: str,
        response_format: ResponseFormat,
        batch: SpawnBatch,
    ) -> OutcomeRecord:
        """执行单个目标；任何异常都转换为失败结果"""
        cid = batch.correlation_id
        token = batch.token
        started = time.monotonic()
        tier: Tier | None = None

        try:
            target = await _maybe_await(self.resolver.find(name))
            if target is None:
                raise CharacterNotFoundException(name)

            raw_tier = await _maybe_await(self.resolver.tier_for(name))
            tier = Tier.parse(raw_tier) or Tier.MINOR
            chain = self.router.resolve_chain(tier)

            payload = await _maybe_await(self.payload_builder.build(target, situation, response_format))
            if not isinstance(payload, GenerationPayload):
                payload = GenerationPayload.model_validate(payload)
            token.raise_if_cancelled()

            result = await self.dispatcher.try_chain(
                chain,
                payload,
                options=DispatchOptions(
                    target_name=name,
                    tier=tier,
                    cancellation_token=token,
                    correlation_id=cid,
                ),
                default_profile=self.default_profile,
            )
            outcome = OutcomeRecord.from_result(name, result, tier)
        except CharacterNotFoundException as e:
            logger.warning("[{}] 角色未找到: {}", cid, name)
            return OutcomeRecord.failure(name, ErrorKind.NOT_FOUND, e.message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            kind = ErrorClassifier.classify_exception(e)
            if kind != ErrorKind.CANCELLED:
                logger.exception("[{}] 目标 {} 执行异常: {}", cid, name, e)
            return OutcomeRecord.failure(
                name,
                kind,
                extract_client_error_message(e),
                latency_ms=int((time.monotonic() - started) * 1000),
                tier=tier,
            )

        if outcome.success:
            logger.info("[{}] 响应已接收: target={}, latency={}ms", cid, name, outcome.latency_ms)
        elif outcome.is_cancelled:
            logger.debug("[{}] 请求已取消: target={}", cid, name)
        else:
            logger.error("[{}] 请求失败: target={}, error={}", cid, name, outcome.error)
        return outcome

    def aggregate(
        self,
        outcomes: Sequence[OutcomeRecord],
        targets: Sequence[str] | None = None,
        correlation_id: str | None = None,
    ) -> BatchResult:
        """
        汇总目标结果

        - 被取消的结果不计入 success/failed，也不出现在输出中
        - 平均耗时只统计未取消的结果（四舍五入为整数）
        - 输出按提交顺序排列，与完成顺序无关
        """
        correlation_id = correlation_id or generate_correlation_id()
        ordered = list(outcomes)
        if targets is not None:
            position = {}
            for i, name in enumerate(targets):
                position.setdefault(name, i)
            ordered.sort(key=lambda r: position.get(r.target_name, len(position)))

        counted = [r for r in ordered if not r.is_cancelled]
        success_count = sum(1 for r in counted if r.success)
        fail_count = len(counted) - success_count
        total_latency = sum(r.latency_ms for r in counted)
        avg_latency = int(total_latency / len(counted) + 0.5) if counted else 0

        stats = BatchStats(
            total=len(counted),
            success=success_count,
            failed=fail_count,
            avg_latency_ms=avg_latency,
        )
        logger.info(
            "[{}] spawn 完成: success={}, failed={}, cancelled={}, avg_latency={}ms",
            correlation_id,
            success_count,
            fail_count,
            len(ordered) - len(counted),
            avg_latency,
        )

        return BatchResult(
            correlation_id=correlation_id,
            results=ordered,
            markdown=self.format_markdown(counted),
            stats=stats,
        )

    @staticmethod
    def format_markdown(outcomes: Sequence[OutcomeRecord]) -> str:
        """构建供 GM 叙事使用的 Markdown 汇总"""
        sections = [RESPONSES_HEADER, ""]
        for record in outcomes:
            if record.is_cancelled:
                continue
            sections.append(f"### {record.target_name}")
            if record.success:
                sections.append(record.text or "")
            elif record.error_kind == ErrorKind.NOT_FOUND:
                sections.append(f"*[Unknown character: {record.error}]*")
            else:
                sections.append(f"*[Generation failed: {record.error}]*")
            sections.append("")
        return "\n".join(sections).strip()

    def cancel_active(self) -> bool:
        """取消当前活跃批次；空闲时返回 False"""
        return self.coordinator.cancel_active()

    def rate_limit_snapshot(self) -> dict[str, RateLimitRecord]:
        """各 Profile 的限流状态（只读副本）"""
        return self.router.rate_limiter.snapshot()
