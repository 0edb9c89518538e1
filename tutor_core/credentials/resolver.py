"""用户凭证解析。

查询用户是否配置了个性化 Provider 的 API key。
“没有记录”是正常状态，返回 None；其他存储故障记录 WARNING 后同样返回 None，
回复链路不会因为凭证查询失败而中断。不做重试。
"""

import logging
from typing import Optional

from tutor_core.config.settings import settings
from tutor_core.credentials.base import CredentialStore
from tutor_core.domain.exceptions import CredentialLookupError, CredentialNotFoundError
from tutor_core.infrastructure.logging.logger import logger


class CredentialResolver:
    def __init__(self, store: CredentialStore, timeout: Optional[float] = None):
        self._store = store
        self._timeout = timeout if timeout is not None else settings.credential_timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    def resolve(self, user_id: Optional[str], timeout: Optional[float] = None) -> Optional[str]:
        """返回用户凭证；没有凭证或查询失败时返回 None。"""

        if not user_id:
            return None
        budget = self._timeout if timeout is None else min(timeout, self._timeout)
        try:
            value = self._store.get_credential(user_id, timeout=budget)
        except CredentialNotFoundError:
            _log(logging.DEBUG, "No credential on record", user_id=user_id)
            return None
        except CredentialLookupError as e:
            _log(logging.WARNING, "Credential lookup failed", user_id=user_id, code=e.code, error=e.message)
            return None
        except Exception as e:
            # 存储实现不应抛出其他异常；万一抛出，同样按“无凭证”处理
            logger.warning(
                "Credential lookup raised unexpectedly",
                exc_info=True,
                extra={"extra": {"user_id": user_id, "code": "STORE_UNEXPECTED_ERROR", "error": str(e)}},
            )
            return None
        if value is None or not str(value).strip():
            _log(logging.DEBUG, "No credential on record", user_id=user_id)
            return None
        return str(value).strip()


def create_credential_store(backend: Optional[str] = None) -> CredentialStore:
    """根据配置创建凭证存储，默认取 settings.credential_backend。"""

    name = (backend or settings.credential_backend).lower()
    if name == "json":
        from tutor_core.infrastructure.storage.json_store import JsonCredentialStore

        return JsonCredentialStore(settings.credential_file)
    if name == "supabase":
        from tutor_core.infrastructure.storage.supabase_store import SupabaseCredentialStore

        return SupabaseCredentialStore(settings)
    raise KeyError(f"Unknown credential backend: {backend!r}")


def _log(level: int, message: str, **fields) -> None:
    logger.log(level, message, extra={"extra": fields})
