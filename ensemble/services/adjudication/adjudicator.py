"""
工具层级代理

- Judge（resolve_action）: 对行动做机械裁决，返回 Verdict
- Guardian（audit_narrative）: 审核叙述是否忠实于裁决，返回 AuditReport

两者都走 utility 层级的回退链，任何失败都转换为失败结果，不向调用方抛出。
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any

from ensemble.config.constants import UtilityDefaults
from ensemble.core.enums import Tier
from ensemble.core.error_utils import extract_client_error_message
from ensemble.core.exceptions import EnsembleException
from ensemble.core.logger import logger
from ensemble.models.generation import ChatMessage, GenerationPayload
from ensemble.models.profile import BackendProfile
from ensemble.models.results import GenerationFailure
from ensemble.services.adjudication.parsing import as_string_list, extract_json_object
from ensemble.services.orchestration.dispatcher import Dispatcher, DispatchOptions
from ensemble.services.routing.router import Router
from ensemble.utils.correlation import generate_correlation_id

JUDGE_PROMPT = """You are the Judge, a mechanical arbiter for action resolution.

Given an action attempt, determine the outcome fairly based on:
- The actor's capabilities (if known from context)
- The difficulty of the action
- Environmental factors

Respond ONLY with valid JSON in this exact format:
{
  "success": true/false,
  "outcome": "Brief description of what happens",
  "reasoning": "Why this outcome was determined",
  "consequences": ["Any lasting effects"]
}"""

GUARDIAN_PROMPT = """You are the Guardian, a quality auditor for narrative compliance.

Your job is to verify that a narrative faithfully represents a mechanical verdict.
Check for:
- Does the narrative match the success/failure of the verdict?
- Are the consequences properly reflected?
- Are there any contradictions or embellishments that violate the ruling?

Respond ONLY with valid JSON in this exact format:
{
  "compliant": true/false,
  "issues": ["List of specific issues found, if any"],
  "severity": "none" | "minor" | "major",
  "recommendation": "What should be changed, if anything"
}"""

SEVERITIES = ("none", "minor", "major")


@dataclass
class Verdict:
    """Judge 裁决"""

    actor: str
    action: str
    success: bool
    outcome: str
    reasoning: str = ""
    consequences: list[str] = field(default_factory=list)
    error: str | None = None
    correlation_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AuditReport:
    """Guardian 审核结果"""

    compliant: bool
    issues: list[str] = field(default_factory=list)
    severity: str = "none"
    recommendation: str = ""
    error: str | None = None
    correlation_id: str | None = None


class Adjudicator:
    """Judge / Guardian 调用入口"""

    def __init__(
        self,
        router: Router,
        dispatcher: Dispatcher,
        default_profile: BackendProfile | None = None,
        max_tokens: int = UtilityDefaults.MAX_TOKENS,
    ) -> None:
        self.router = router
        self.dispatcher = dispatcher
        self.default_profile = default_profile
        self.max_tokens = max_tokens

    async def _generate(
        self,
        agent: str,
        system_prompt: str,
        user_message: str,
        temperature: float,
        correlation_id: str,
    ) -> str:
        """在 utility 回退链上执行一次请求，返回文本；失败时抛出 EnsembleException"""
        payload = GenerationPayload(
            messages=[
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=user_message),
            ],
            temperature=temperature,
            max_tokens=self.max_tokens,
        )
        chain = self.router.resolve_chain(Tier.UTILITY)
        result = await self.dispatcher.try_chain(
            chain,
            payload,
            options=DispatchOptions(
                target_name=agent,
                tier=Tier.UTILITY,
                correlation_id=correlation_id,
            ),
            default_profile=self.default_profile,
        )
        if isinstance(result, GenerationFailure):
            raise EnsembleException(result.detail, details={"kind": result.kind.value})
        return result.text

    async def resolve_action(
        self,
        actor: str,
        action: str,
        context: dict[str, Any] | None = None,
    ) -> Verdict:
        """对行动做出裁决（不抛出异常）"""
        correlation_id = generate_correlation_id()
        logger.info("[{}] Judge 开始: actor={}, action={}", correlation_id, actor, action)

        user_message = (
            f"Actor: {actor}\n"
            f"Action: {action}\n"
            f"Context: {json.dumps(context or {}, ensure_ascii=False)}\n\n"
            f"Resolve this action."
        )

        try:
            text = await self._generate(
                "judge",
                JUDGE_PROMPT,
                user_message,
                UtilityDefaults.JUDGE_TEMPERATURE,
                correlation_id,
            )
            data = extract_json_object(text, "Judge")
        except (EnsembleException, ValueError) as e:
            message = extract_client_error_message(e)
            logger.error("[{}] Judge 失败: {}", correlation_id, message)
            return Verdict(
                actor=actor,
                action=action,
                success=False,
                outcome="Resolution failed",
                reasoning=message,
                error=message,
                correlation_id=correlation_id,
            )

        verdict = Verdict(
            actor=actor,
            action=action,
            success=bool(data.get("success", False)),
            outcome=str(data.get("outcome", "")),
            reasoning=str(data.get("reasoning", "")),
            consequences=as_string_list(data.get("consequences")),
            correlation_id=correlation_id,
        )
        logger.info("[{}] Judge 完成: success={}", correlation_id, verdict.success)
        return verdict

    async def audit_narrative(
        self,
        verdict: Verdict | dict[str, Any],
        narrative: str,
    ) -> AuditReport:
        """审核叙述是否与裁决一致（不抛出异常）"""
        correlation_id = generate_correlation_id()
        logger.info("[{}] Guardian 开始", correlation_id)

        verdict_data = verdict.to_dict() if isinstance(verdict, Verdict) else dict(verdict)
        user_message = (
            f"Verdict: {json.dumps(verdict_data, ensure_ascii=False)}\n\n"
            f'Narrative: "{narrative}"\n\n'
            f"Audit this narrative for compliance with the verdict."
        )

        try:
            text = await self._generate(
                "guardian",
                GUARDIAN_PROMPT,
                user_message,
                UtilityDefaults.GUARDIAN_TEMPERATURE,
                correlation_id,
            )
            data = extract_json_object(text, "Guardian")
        except (EnsembleException, ValueError) as e:
            message = extract_client_error_message(e)
            logger.error("[{}] Guardian 失败: {}", correlation_id, message)
            return AuditReport(
                compliant=False,
                issues=[f"Audit failed: {message}"],
                severity="major",
                recommendation="Re-run audit after fixing the error",
                error=message,
                correlation_id=correlation_id,
            )

        compliant = bool(data.get("compliant", False))
        severity = str(data.get("severity", "none")).lower()
        if severity not in SEVERITIES:
            severity = "none" if compliant else "minor"

        report = AuditReport(
            compliant=compliant,
            issues=as_string_list(data.get("issues")),
            severity=severity,
            recommendation=str(data.get("recommendation", "")),
            correlation_id=correlation_id,
        )
        logger.info(
            "[{}] Guardian 完成: compliant={}, severity={}",
            correlation_id,
            report.compliant,
            report.severity,
        )
        return report
