"""单次回复链路的尝试记录。"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

AttemptStatus = Literal["success", "failure", "skipped"]


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TierAttempt:
    step: str
    status: AttemptStatus
    reason: Optional[str] = None
    elapsed_ms: int = 0
    timestamp: str = field(default_factory=_utcnow)


class ResolutionTrace:
    """记录每一层的尝试结果，便于日志里区分是哪一层给出的回复。"""

    def __init__(self, trace_id: Optional[str] = None):
        self.trace_id = trace_id or f"tr-{uuid4().hex}"
        self.started_at = _utcnow()
        self.finished_at: Optional[str] = None
        self.final_step: Optional[str] = None
        self.credential_found: Optional[bool] = None
        self.attempts: List[TierAttempt] = []

    def record_credential(self, found: bool, elapsed_ms: int) -> None:
        self.credential_found = found
        self.attempts.append(
            TierAttempt(
                step="credential",
                status="success" if found else "skipped",
                reason=None if found else "NO_CREDENTIAL",
                elapsed_ms=elapsed_ms,
            )
        )

    def record_success(self, step: str, elapsed_ms: int) -> None:
        self.attempts.append(TierAttempt(step=step, status="success", elapsed_ms=elapsed_ms))

    def record_failure(self, step: str, reason: str, elapsed_ms: int) -> None:
        self.attempts.append(TierAttempt(step=step, status="failure", reason=_trim(reason), elapsed_ms=elapsed_ms))

    def record_skip(self, step: str, reason: str) -> None:
        self.attempts.append(TierAttempt(step=step, status="skipped", reason=reason))

    def failures(self) -> List[TierAttempt]:
        return [a for a in self.attempts if a.status == "failure"]

    def attempted(self, step: str) -> int:
        """某一层实际被调用的次数（不含跳过）。"""

        return sum(1 for a in self.attempts if a.step == step and a.status != "skipped")

    def finalize(self, step: str) -> None:
        self.finished_at = _utcnow()
        self.final_step = step

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trace_id": self.trace_id,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "final_step": self.final_step,
            "credential_found": self.credential_found,
            "attempts": [asdict(a) for a in self.attempts],
        }


def _trim(reason: str, limit: int = 200) -> str:
    if len(reason) > limit:
        return reason[:limit] + "..."
    return reason
