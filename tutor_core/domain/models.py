"""统一的消息与回复结果数据模型。

本模块定义了回复链路中各层共享的标准数据结构：

- Message: 会话中的一条消息（user/assistant），创建后不可变。
- ProviderRequest: 发给远端 Provider 的一次请求。
- ProviderResult: Provider 调用的统一结果（成功文本或失败原因）。
- ResolutionOutcome: 一次完整回复链路的最终结果，文本永不为空。

所有 Provider 适配器都只依赖这些模型，并负责在各自的 HTTP JSON
和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Literal, Optional, TYPE_CHECKING
from uuid import uuid4

if TYPE_CHECKING:
    # 仅在类型检查时导入，避免运行时循环依赖
    from tutor_core.pipeline.trace import ResolutionTrace


Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class Message:
    """会话中的一条消息。

    - id: 消息 ID，形如 "m-<hex>"。
    - role: "user" 或 "assistant"。
    - content: 纯文本内容。
    - timestamp: 创建时间（UTC）。
    """

    id: str
    role: Role
    content: str
    timestamp: datetime

    @classmethod
    def create(cls, role: Role, content: str) -> "Message":
        return cls(
            id=f"m-{uuid4().hex}",
            role=role,
            content=content,
            timestamp=datetime.now(timezone.utc),
        )

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls.create("user", content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls.create("assistant", content)


@dataclass(frozen=True)
class UserIdentity:
    """认证层交给回复链路的用户身份，两个字段都可能为空（匿名用户）。"""

    id: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class ProviderRequest:
    """一次 Provider 调用的请求。

    credential 为空时请求体中不携带 apiKey 字段。
    """

    message: str
    user_id: Optional[str]
    user_email: Optional[str]
    credential: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "message": self.message,
            "userId": self.user_id,
            "userEmail": self.user_email,
        }
        if self.credential:
            payload["apiKey"] = self.credential
        return payload

    def without_credential(self) -> "ProviderRequest":
        return ProviderRequest(
            message=self.message,
            user_id=self.user_id,
            user_email=self.user_email,
            credential=None,
        )


@dataclass(frozen=True)
class ProviderResult:
    """Provider 调用结果：success(text) 或 failure(reason)。

    error 保留触发失败的异常，仅用于日志，不参与控制流。
    """

    provider: str
    ok: bool
    text: str = ""
    reason: Optional[str] = None
    error: Optional[Exception] = field(default=None, compare=False, repr=False)

    @classmethod
    def success(cls, provider: str, text: str) -> "ProviderResult":
        return cls(provider=provider, ok=True, text=text)

    @classmethod
    def failure(cls, provider: str, reason: str, error: Optional[Exception] = None) -> "ProviderResult":
        return cls(provider=provider, ok=False, reason=reason, error=error)


class Tier(str, Enum):
    """回复链路中的一层策略。"""

    PERSONALIZED = "personalized"
    GENERIC = "generic"
    HEURISTIC = "heuristic"


OutcomeKind = Literal["personalized-success", "generic-success", "heuristic-fallback"]

OUTCOME_BY_TIER: Dict[Tier, OutcomeKind] = {
    Tier.PERSONALIZED: "personalized-success",
    Tier.GENERIC: "generic-success",
    Tier.HEURISTIC: "heuristic-fallback",
}


@dataclass
class ResolutionOutcome:
    """一次回复链路的最终结果。

    - kind: personalized-success / generic-success / heuristic-fallback 之一。
    - text: 回复文本，保证非空。
    - tier: 产出回复的那一层。
    - trace: 本次运行中各层的尝试记录。
    """

    tier: Tier
    text: str
    trace: Optional["ResolutionTrace"] = None

    def __post_init__(self) -> None:
        if not self.text or not self.text.strip():
            raise ValueError("ResolutionOutcome text must be non-empty")

    @property
    def kind(self) -> OutcomeKind:
        return OUTCOME_BY_TIER[self.tier]

    @property
    def degraded(self) -> bool:
        return self.tier is not Tier.PERSONALIZED
