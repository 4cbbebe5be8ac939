"""
请求分发器 - 在单个 Profile 上执行一次生成请求，并沿回退链重试限流错误

结果分类：
- 2xx: 记录成功（重置退避），返回生成文本与耗时
- 429: 记录限流（指数退避 / Retry-After），抛出 is_rate_limited 异常，由 try_chain 决定是否换下一个 Profile
- 其他非 2xx: 立即失败，附带按状态码给出的修复建议，不在回退链中重试
- 取消: 与网络错误区分，上层不计入失败统计

只有限流错误会沿回退链重试：Profile 1 的鉴权/请求格式错误如果被 Profile 2 的成功响应掩盖，
配置问题就永远不会暴露。
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, replace
from typing import Callable, Sequence

import httpx

from ensemble.config import config
from ensemble.core.enums import ErrorKind, Tier
from ensemble.core.error_utils import extract_client_error_message, extract_error_message
from ensemble.core.exceptions import (
    BackendHTTPException,
    BackendNetworkException,
    BackendRateLimitException,
    EnsembleException,
    FallbackChainExhaustedException,
    GenerationCancelledException,
)
from ensemble.core.logger import logger
from ensemble.models.generation import GenerationPayload
from ensemble.models.profile import BackendProfile, profile_label
from ensemble.models.results import (
    GenerationFailure,
    GenerationResult,
    GenerationSuccess,
    SkippedProfile,
)
from ensemble.services.orchestration.cancellation import CancellationToken
from ensemble.services.orchestration.error_classifier import ErrorClassifier
from ensemble.services.provider.payload import build_generate_body, extract_response_text
from ensemble.services.provider.transport import TransportClient, TransportResponse
from ensemble.services.rate_limit.detector import detect_retry_after
from ensemble.services.routing.router import Router


@dataclass
class DispatchOptions:
    """单次分发的上下文"""

    target_name: str = "unknown"
    tier: Tier | None = None
    model: str | None = None
    cancellation_token: CancellationToken | None = None
    correlation_id: str | None = None

    @property
    def tier_label(self) -> str:
        return self.tier.value if self.tier is not None else "unknown"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class Dispatcher:
    """请求分发器"""

    def __init__(
        self,
        transport: TransportClient,
        router: Router,
        generate_url: str | None = None,
        headers_factory: Callable[[], dict[str, str]] | None = None,
    ) -> None:
        self.transport = transport
        self.router = router
        self.rate_limiter = router.rate_limiter
        self.generate_url = generate_url or config.generate_url
        self.headers_factory = headers_factory or config.request_headers

    async def _send(
        self,
        body: dict,
        token: CancellationToken | None,
        profile_name: str,
    ) -> TransportResponse:
        """发送请求；令牌触发时中止仍在进行的调用"""
        send_task = asyncio.ensure_future(
            self.transport.send(self.generate_url, body, self.headers_factory())
        )
        if token is None:
            return await send_task

        cancel_task = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {send_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancel_task.cancel()
            if not send_task.done():
                send_task.cancel()

        # 调用先于取消完成时保留真实结果
        if send_task in done:
            return send_task.result()

        try:
            await send_task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug("已取消的请求在中止时抛出异常: {}", e)
        raise GenerationCancelledException(profile_name=profile_name)

    async def execute(
        self,
        payload: GenerationPayload,
        profile: BackendProfile | None,
        options: DispatchOptions | None = None,
    ) -> GenerationSuccess:
        """
        在单个 Profile 上执行一次请求

        Raises:
            BackendRateLimitException: 429 或 Profile 仍在退避窗口内
            BackendHTTPException: 其他非 2xx
            BackendNetworkException: 传输层失败
            GenerationCancelledException: 取消信号已触发
        """
        options = options or DispatchOptions()
        profile_name = profile_label(profile)
        token = options.cancellation_token
        cid = options.correlation_id

        if token is not None:
            token.raise_if_cancelled(profile_name)

        limit = self.rate_limiter.check(profile_name)
        if limit.limited:
            raise BackendRateLimitException(
                f"Rate limited: {limit.reason}",
                profile_name=profile_name,
                retry_in_ms=limit.retry_in_ms,
            )

        body = build_generate_body(payload, profile, model=options.model)
        started = time.monotonic()
        logger.debug(
            "[{}] 请求发送: target={}, tier={}, profile={}",
            cid,
            options.target_name,
            options.tier_label,
            profile_name,
        )

        try:
            response = await self._send(body, token, profile_name)
        except (httpx.HTTPError, OSError) as e:
            raise BackendNetworkException(
                f"Network error generating response for {options.target_name} "
                f"(tier: {options.tier_label}) using profile '{profile_name}': "
                f"{extract_error_message(e)}",
                profile_name=profile_name,
            ) from e

        if response.status == 429:
            retry_after = detect_retry_after(response.headers, now=self.rate_limiter.now())
            decision = self.rate_limiter.record_rate_limit(profile_name, retry_after)
            raise BackendRateLimitException(
                f"Rate limit (429) from {profile_name} for {options.target_name} "
                f"(tier: {options.tier_label}). Retry in {-(-decision.retry_in_ms // 1000)}s",
                profile_name=profile_name,
                retry_in_ms=decision.retry_in_ms,
                response_headers=response.headers,
            )

        if not response.ok:
            suggestion = ErrorClassifier.suggestion_for_status(response.status)
            status_text = response.reason or "Unknown error"
            message = (
                f"Failed to generate response for {options.target_name} "
                f"(tier: {options.tier_label}): {profile_name} returned "
                f"{response.status} {status_text}."
            )
            if suggestion:
                message = f"{message} {suggestion}"
            logger.error("[{}] {}", cid, message)
            raise BackendHTTPException(
                message,
                profile_name=profile_name,
                status_code=response.status,
                suggestion=suggestion,
                upstream_response=response.text or None,
            )

        self.rate_limiter.record_success(profile_name)
        latency_ms = _elapsed_ms(started)
        return GenerationSuccess(
            text=extract_response_text(response.body),
            latency_ms=latency_ms,
            profile_name=profile_name,
            attempted=(profile_name,),
            raw=response.body,
        )

    @staticmethod
    def _failure_from(
        error: EnsembleException,
        started: float,
        attempted: Sequence[str],
        skipped: Sequence[SkippedProfile] = (),
    ) -> GenerationFailure:
        if isinstance(error, GenerationCancelledException):
            kind = ErrorKind.CANCELLED
        else:
            kind = ErrorClassifier.classify_exception(error)
        return GenerationFailure(
            kind=kind,
            detail=extract_client_error_message(error),
            latency_ms=_elapsed_ms(started),
            attempted=tuple(attempted),
            skipped=tuple(skipped),
            status_code=getattr(error, "status_code", None),
            suggestion=getattr(error, "suggestion", "") or "",
        )

    async def try_chain(
        self,
        chain: Sequence[BackendProfile],
        payload: GenerationPayload,
        start_index: int = 0,
        options: DispatchOptions | None = None,
        *,
        preferred_profile: BackendProfile | str | None = None,
        default_profile: BackendProfile | None = None,
    ) -> GenerationResult:
        """
        沿回退链执行请求（不抛出已分类的异常）

        - 空链: 使用 default_profile（调用方默认连接）
        - 从 start_index 开始；若指定 preferred_profile 且在链中，则从它的位置开始
        - 被限流的 Profile 跳过，不会在同一次调用中重试
        - 非限流错误立即返回
        """
        options = options or DispatchOptions()
        cid = options.correlation_id
        started = time.monotonic()

        if not chain:
            name = profile_label(default_profile)
            try:
                return await self.execute(payload, default_profile, options)
            except BackendRateLimitException as e:
                exhausted = self._exhausted_error(options, [name], [], e)
                return self._failure_from(exhausted, started, [name])
            except EnsembleException as e:
                return self._failure_from(e, started, [name])

        if preferred_profile is not None:
            preferred_name = (
                preferred_profile if isinstance(preferred_profile, str) else preferred_profile.name
            )
            for i, candidate in enumerate(chain):
                if candidate.name == preferred_name:
                    start_index = i
                    break

        attempted: list[str] = []
        skipped: list[SkippedProfile] = []
        last_error: Exception | None = None
        index = max(start_index, 0)

        while index < len(chain):
            selection = self.router.next_available(chain, index)
            skipped.extend(selection.skipped)
            if selection.profile is None or selection.index is None:
                break

            profile = selection.profile
            attempted.append(profile.name)
            if len(attempted) > 1:
                logger.debug(
                    "[{}] 尝试 Profile '{}' (target={}, 回退 #{})",
                    cid,
                    profile.name,
                    options.target_name,
                    len(attempted),
                )

            try:
                result = await self.execute(payload, profile, options)
            except BackendRateLimitException as e:
                last_error = e
                logger.debug(
                    "[{}] Profile '{}' 被限流，尝试回退链中的下一个 (target={})",
                    cid,
                    profile.name,
                    options.target_name,
                )
                index = selection.index + 1
                continue
            except EnsembleException as e:
                return self._failure_from(e, started, attempted, skipped)

            if len(attempted) > 1:
                logger.info(
                    "[{}] 使用回退 Profile '{}' 成功 (target={})，之前尝试: {}",
                    cid,
                    profile.name,
                    options.target_name,
                    ", ".join(attempted[:-1]),
                )
            return replace(result, attempted=tuple(attempted))

        exhausted = self._exhausted_error(options, attempted, skipped, last_error)
        logger.warning("[{}] {}", cid, exhausted.message)
        return self._failure_from(exhausted, started, attempted, skipped)

    @staticmethod
    def _exhausted_error(
        options: DispatchOptions,
        attempted: Sequence[str],
        skipped: Sequence[SkippedProfile],
        last_error: Exception | None,
    ) -> FallbackChainExhaustedException:
        skipped_names = [s.name for s in skipped]
        tried = list(attempted) + [name for name in skipped_names if name not in attempted]
        last = extract_client_error_message(last_error) if last_error else "Unknown error"
        if not last_error and skipped:
            last = skipped[-1].reason
        message = (
            f"All {len(tried)} profiles exhausted for {options.target_name} "
            f"(tier: {options.tier_label}). Tried: {', '.join(tried)}. "
            f"Last error: {last}. "
            f"Configure additional fallback profiles or wait for rate limits to reset."
        )
        return FallbackChainExhaustedException(
            message,
            attempted=list(attempted),
            skipped=skipped_names,
            last_error=last_error,
        )
