"""Tutor Core 顶层包。

该包提供音乐练习助手的回复链路实现，
包括配置加载、领域模型、凭证查询、Provider 适配、
本地兜底回复与逐层降级的回复编排等能力。
"""

from tutor_core.api.service import run_tutor_chat
from tutor_core.domain.models import UserIdentity

__all__ = ["run_tutor_chat", "UserIdentity"]
