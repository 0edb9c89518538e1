import json
from pathlib import Path
from typing import Dict, Optional

from tutor_core.config.settings import settings
from tutor_core.credentials.base import CredentialStore
from tutor_core.domain.exceptions import CredentialLookupError, CredentialNotFoundError


class JsonCredentialStore(CredentialStore):
    """本地 JSON 文件凭证存储：{"<user_id>": "<api key>", ...}。只读。"""

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path or settings.credential_file).resolve()

    def get_credential(self, user_id: str, timeout: Optional[float] = None) -> Optional[str]:
        data = self._read()
        value = data.get(user_id)
        if value is None:
            raise CredentialNotFoundError(code="CREDENTIAL_NOT_FOUND", message=user_id)
        if not isinstance(value, str):
            raise CredentialLookupError(code="STORE_READ_ERROR", message=f"credential for {user_id} is not a string")
        return value

    def _read(self) -> Dict[str, object]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            # ValueError 覆盖 JSONDecodeError 与 UnicodeDecodeError
            raise CredentialLookupError(code="STORE_READ_ERROR", message=str(e))
        if not isinstance(data, dict):
            raise CredentialLookupError(code="STORE_READ_ERROR", message=f"{self._path} is not a mapping")
        return data
