"""回复链路中的各层策略。

每层实现同一个能力：attempt(ctx) -> Optional[str]，返回 None 表示本层没有给出可用回复，
失败原因写入 ctx.trace。编排器按顺序逐层尝试，直到某层返回文本。

取消信号只在层与层之间检查：已经发出的 HTTP 调用不会被中断，
最长要等到该层超时（min(层超时, 剩余总时限)）才会返回。
"""

import threading
import time
from dataclasses import dataclass
from typing import Optional, Protocol

from tutor_core.domain.exceptions import ResolutionCancelled
from tutor_core.domain.models import ProviderRequest, Tier
from tutor_core.pipeline.trace import ResolutionTrace
from tutor_core.providers.base import ProviderClient
from tutor_core.responders.heuristic import HeuristicResponder


@dataclass
class RunContext:
    """单次运行的上下文，不在多次运行之间共享。"""

    request: ProviderRequest
    trace: ResolutionTrace
    deadline: float
    credential: Optional[str] = None
    cancel_event: Optional[threading.Event] = None

    def remaining(self) -> float:
        return self.deadline - time.monotonic()

    def check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ResolutionCancelled(code="CANCELLED", message="reply cancelled by caller", trace_id=self.trace.trace_id)


class TierStrategy(Protocol):
    tier: Tier

    def skip_reason(self, ctx: RunContext) -> Optional[str]:
        ...

    def attempt(self, ctx: RunContext) -> Optional[str]:
        ...


class ProviderTier:
    """远端 Provider 层。use_credential=True 时只有查到凭证才会调用。"""

    def __init__(self, tier: Tier, client: ProviderClient, timeout: float, use_credential: bool = False):
        self.tier = tier
        self._client = client
        self._timeout = timeout
        self._use_credential = use_credential

    def skip_reason(self, ctx: RunContext) -> Optional[str]:
        if self._use_credential and not ctx.credential:
            return "NO_CREDENTIAL"
        if ctx.remaining() <= 0:
            return "DEADLINE_EXCEEDED"
        return None

    def attempt(self, ctx: RunContext) -> Optional[str]:
        budget = max(0.0, min(self._timeout, ctx.remaining()))
        req = ctx.request
        if self._use_credential:
            req = ProviderRequest(
                message=req.message,
                user_id=req.user_id,
                user_email=req.user_email,
                credential=ctx.credential,
            )
        else:
            req = req.without_credential()
        started = time.monotonic()
        result = self._client.invoke(req, budget)
        elapsed_ms = _ms_since(started)
        if result.ok and result.text and result.text.strip():
            ctx.trace.record_success(self.tier.value, elapsed_ms)
            return result.text
        ctx.trace.record_failure(self.tier.value, result.reason or "EMPTY_RESPONSE", elapsed_ms)
        return None


class HeuristicTier:
    """本地兜底层，总能给出回复。"""

    tier = Tier.HEURISTIC

    def __init__(self, responder: HeuristicResponder):
        self._responder = responder

    def skip_reason(self, ctx: RunContext) -> Optional[str]:
        return None

    def attempt(self, ctx: RunContext) -> Optional[str]:
        started = time.monotonic()
        text = self._responder.respond(ctx.request.message)
        ctx.trace.record_success(self.tier.value, _ms_since(started))
        return text


def _ms_since(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
