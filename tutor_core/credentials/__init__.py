"""个性化 Provider 凭证的查询与存储抽象。"""

from tutor_core.credentials.base import CredentialStore
from tutor_core.credentials.resolver import CredentialResolver, create_credential_store

__all__ = ["CredentialStore", "CredentialResolver", "create_credential_store"]
