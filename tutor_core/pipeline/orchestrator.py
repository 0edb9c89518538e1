"""回复编排器。

对一条用户消息按以下顺序逐层尝试，直到得到非空回复：

1. 查询用户凭证（CredentialResolver）。
2. personalized Provider：仅在查到凭证时调用。
3. generic Provider：任何时候都可以作为下一层。
4. 本地 HeuristicResponder：总能给出回复。

每层失败都会写入 trace 并记录 WARNING 日志，但不会传给调用方；
对外约定是“总是返回文本”。各层严格顺序执行，不并发抢答。
"""

import logging
import threading
import time
from typing import Any, Dict, List, Optional, Sequence

from tutor_core.config.settings import settings, sum_tier_timeouts
from tutor_core.credentials.resolver import CredentialResolver
from tutor_core.domain.exceptions import ResolutionCancelled
from tutor_core.domain.models import ProviderRequest, ResolutionOutcome, Tier, UserIdentity
from tutor_core.infrastructure.logging.logger import logger
from tutor_core.pipeline.strategies import HeuristicTier, ProviderTier, RunContext, TierStrategy
from tutor_core.pipeline.trace import ResolutionTrace
from tutor_core.providers.base import ProviderClient
from tutor_core.responders.heuristic import HeuristicResponder

# 所有层都没有给出文本时的最终回复（正常情况下本地层不会失败）
LAST_RESORT_REPLY = "I'm sorry, I encountered an error processing your request. Please try again later."


class ResponseOrchestrator:
    def __init__(
        self,
        resolver: CredentialResolver,
        personalized: ProviderClient,
        generic: ProviderClient,
        responder: Optional[HeuristicResponder] = None,
        personalized_timeout: Optional[float] = None,
        generic_timeout: Optional[float] = None,
        deadline: Optional[float] = None,
    ):
        if personalized_timeout is None:
            personalized_timeout = settings.personalized_timeout
        if generic_timeout is None:
            generic_timeout = settings.generic_timeout
        self._resolver = resolver
        self._responder = responder or HeuristicResponder()
        self._strategies: List[TierStrategy] = [
            ProviderTier(Tier.PERSONALIZED, personalized, personalized_timeout, use_credential=True),
            ProviderTier(Tier.GENERIC, generic, generic_timeout),
            HeuristicTier(self._responder),
        ]
        if deadline is None:
            deadline = sum_tier_timeouts(resolver.timeout, personalized_timeout, generic_timeout)
        self._deadline = deadline

    @property
    def strategies(self) -> Sequence[TierStrategy]:
        return tuple(self._strategies)

    @property
    def deadline(self) -> float:
        return self._deadline

    def run(
        self,
        message: str,
        user: Optional[UserIdentity] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ResolutionOutcome:
        """为一条用户消息生成回复。

        Args:
            message: 用户消息文本
            user: 当前用户身份（可选，匿名时跳过凭证查询）
            cancel_event: 调用方取消信号（可选）

        Returns:
            ResolutionOutcome，文本保证非空

        Raises:
            ResolutionCancelled: 仅在 cancel_event 被置位时抛出
        """
        user = user or UserIdentity()
        trace = ResolutionTrace()
        started = time.monotonic()
        log_ctx: Dict[str, Any] = {"trace_id": trace.trace_id, "user_id": user.id}

        ctx = RunContext(
            request=ProviderRequest(message=message or "", user_id=user.id, user_email=user.email),
            trace=trace,
            deadline=started + self._deadline,
            cancel_event=cancel_event,
        )
        try:
            ctx.check_cancelled()
            ctx.credential = self._resolve_credential(ctx, user)

            for strategy in self._strategies:
                ctx.check_cancelled()
                reason = strategy.skip_reason(ctx)
                if reason:
                    trace.record_skip(strategy.tier.value, reason)
                    self._log(logging.INFO, "Tier skipped", log_ctx, tier=strategy.tier.value, reason=reason)
                    continue
                text = self._attempt(strategy, ctx, log_ctx)
                ctx.check_cancelled()
                if text and text.strip():
                    return self._finish(strategy.tier, text, trace, started, log_ctx)
        except ResolutionCancelled:
            trace.finalize("cancelled")
            self._log(logging.INFO, "Reply cancelled", log_ctx, elapsed_ms=_ms_since(started))
            raise

        self._log(logging.ERROR, "All tiers returned no text", log_ctx)
        return self._finish(Tier.HEURISTIC, LAST_RESORT_REPLY, trace, started, log_ctx)

    # ---- 辅助方法 ----

    def _resolve_credential(self, ctx: RunContext, user: UserIdentity) -> Optional[str]:
        started = time.monotonic()
        credential = self._resolver.resolve(user.id, timeout=max(0.0, ctx.remaining()))
        ctx.trace.record_credential(credential is not None, _ms_since(started))
        return credential

    def _attempt(self, strategy: TierStrategy, ctx: RunContext, log_ctx: Dict[str, Any]) -> Optional[str]:
        started = time.monotonic()
        try:
            text = strategy.attempt(ctx)
        except ResolutionCancelled:
            raise
        except Exception as e:
            # Provider 实现不应抛异常；万一抛出，同样降级到下一层
            ctx.trace.record_failure(strategy.tier.value, f"UNEXPECTED_ERROR: {e}", _ms_since(started))
            logger.exception(
                "Tier raised unexpectedly",
                extra={"extra": {**log_ctx, "tier": strategy.tier.value}},
            )
            return None
        if text is None:
            last = ctx.trace.attempts[-1] if ctx.trace.attempts else None
            self._log(
                logging.WARNING,
                "Tier failed, falling back",
                log_ctx,
                tier=strategy.tier.value,
                reason=last.reason if last else None,
                elapsed_ms=last.elapsed_ms if last else 0,
            )
        return text

    def _finish(
        self,
        tier: Tier,
        text: str,
        trace: ResolutionTrace,
        started: float,
        log_ctx: Dict[str, Any],
    ) -> ResolutionOutcome:
        trace.finalize(tier.value)
        outcome = ResolutionOutcome(tier=tier, text=text, trace=trace)
        self._log(
            logging.INFO,
            "Reply resolved",
            log_ctx,
            tier=tier.value,
            outcome=outcome.kind,
            elapsed_ms=_ms_since(started),
            attempts=trace.to_dict()["attempts"],
        )
        return outcome

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})


def _ms_since(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
