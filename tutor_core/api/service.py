"""对外 API 服务模块。

提供简化的函数接口供上层应用（聊天界面）调用。
"""

import random
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from tutor_core.config.settings import settings
from tutor_core.credentials.resolver import CredentialResolver, create_credential_store
from tutor_core.domain.conversation import ConversationLog, InMemoryConversation
from tutor_core.domain.exceptions import ResolutionCancelled, ValidationError
from tutor_core.domain.models import Message, UserIdentity
from tutor_core.infrastructure.logging.logger import logger
from tutor_core.pipeline.orchestrator import LAST_RESORT_REPLY, ResponseOrchestrator
from tutor_core.pipeline.stats import ERROR_OUTCOME, TierStats
from tutor_core.providers import create_provider
from tutor_core.responders.heuristic import HeuristicResponder

WELCOME_TEXT = (
    "Hello! I'm your AI music assistant. I can help you with practice techniques, provide feedback on your "
    "progress, and suggest exercises tailored to your skill level. What would you like help with today?"
)


_orchestrator: Optional[ResponseOrchestrator] = None
_stats = TierStats()


def get_default_orchestrator() -> ResponseOrchestrator:
    """获取默认的回复编排器实例（单例）。"""
    global _orchestrator
    if _orchestrator is None:
        rng = random.Random(settings.heuristic_seed) if settings.heuristic_seed is not None else None
        _orchestrator = ResponseOrchestrator(
            resolver=CredentialResolver(create_credential_store(), timeout=settings.credential_timeout),
            personalized=create_provider("personalized"),
            generic=create_provider("generic"),
            responder=HeuristicResponder(rng=rng),
            personalized_timeout=settings.personalized_timeout,
            generic_timeout=settings.generic_timeout,
            deadline=settings.effective_deadline(),
        )
    return _orchestrator


def welcome_message() -> Message:
    """空会话时展示的欢迎语。"""
    return Message(id="welcome", role="assistant", content=WELCOME_TEXT, timestamp=datetime.now(timezone.utc))


def run_tutor_chat(
    user_input: str,
    user: Optional[UserIdentity] = None,
    conversation: Optional[ConversationLog] = None,
    cancel_event: Optional[threading.Event] = None,
    orchestrator: Optional[ResponseOrchestrator] = None,
) -> Dict[str, Any]:
    """处理一条用户消息并追加助手回复。

    Args:
        user_input: 用户输入内容
        user: 当前用户（可选）
        conversation: 会话存储（可选，不提供则使用临时的进程内会话）
        cancel_event: 调用方取消信号（可选）
        orchestrator: 自定义编排器（可选，默认使用单例）

    Returns:
        包含用户消息、助手消息与产出回复的层级的字典

    Raises:
        ValidationError: 输入为空
        ResolutionCancelled: 调用方取消，此时不追加助手消息
    """
    if not user_input or not user_input.strip():
        raise ValidationError(code="EMPTY_MESSAGE", message="message must not be empty")

    conversation = conversation if conversation is not None else InMemoryConversation()
    user_msg = Message.user(user_input)
    conversation.append(user_msg)

    try:
        outcome = (orchestrator or get_default_orchestrator()).run(user_input, user=user, cancel_event=cancel_event)
    except ResolutionCancelled:
        raise
    except Exception as e:
        logger.error(f"Reply pipeline failed: {e}", exc_info=True, extra={"extra": {
            "user_id": user.id if user else None,
            "error": str(e),
        }})
        _stats.record_error()
        assistant_msg = Message.assistant(LAST_RESORT_REPLY)
        conversation.append(assistant_msg)
        return {
            "user_message": _message_dict(user_msg),
            "assistant_message": _message_dict(assistant_msg),
            "tier": None,
            "outcome": ERROR_OUTCOME,
            "trace_id": None,
        }

    _stats.record(outcome)
    assistant_msg = Message.assistant(outcome.text)
    conversation.append(assistant_msg)
    return {
        "user_message": _message_dict(user_msg),
        "assistant_message": _message_dict(assistant_msg),
        "tier": outcome.tier.value,
        "outcome": outcome.kind,
        "trace_id": outcome.trace.trace_id if outcome.trace else None,
    }


def get_tier_stats() -> Dict[str, int]:
    """各类回复结果的累计次数。"""
    return _stats.snapshot()


def _message_dict(message: Message) -> Dict[str, Any]:
    return {
        "id": message.id,
        "role": message.role,
        "content": message.content,
        "timestamp": message.timestamp.isoformat(),
    }
