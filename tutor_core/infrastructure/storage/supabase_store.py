"""Supabase (PostgREST) 凭证存储。

按用户 ID 查询 user_settings 表中的 API key：

- URL: {supabase_url}/rest/v1/{table}?select={column}&user_id=eq.{user_id}
- Accept: application/vnd.pgrst.object+json，要求恰好返回一行。
- 0 行时 PostgREST 返回 406 且错误码为 PGRST116，视为“没有记录”。
"""

from typing import Optional

import httpx

from tutor_core.config.settings import settings
from tutor_core.credentials.base import CredentialStore
from tutor_core.domain.exceptions import CredentialLookupError, CredentialNotFoundError

NO_ROWS_CODE = "PGRST116"


class SupabaseCredentialStore(CredentialStore):
    def __init__(self, cfg=settings):
        self._settings = cfg

    def get_credential(self, user_id: str, timeout: Optional[float] = None) -> Optional[str]:
        base = getattr(self._settings, "supabase_url", None)
        if not base:
            raise CredentialLookupError(code="STORE_NOT_CONFIGURED", message="SUPABASE_URL not set")
        table = self._settings.credential_table
        column = self._settings.credential_column
        if timeout is None:
            timeout = self._settings.credential_timeout
        try:
            with httpx.Client(timeout=timeout, trust_env=False) as client:
                resp = client.get(
                    f"{base.rstrip('/')}/rest/v1/{table}",
                    params={"select": column, "user_id": f"eq.{user_id}"},
                    headers=self._headers(),
                )
        except httpx.TimeoutException as e:
            raise CredentialLookupError(code="STORE_TIMEOUT", message=str(e) or "timed out")
        except httpx.RequestError as e:
            raise CredentialLookupError(code="NETWORK_ERROR", message=str(e))

        if resp.status_code == 406 and self._error_code(resp) == NO_ROWS_CODE:
            raise CredentialNotFoundError(code="CREDENTIAL_NOT_FOUND", message=user_id)
        if resp.status_code >= 400:
            raise CredentialLookupError(
                code="STORE_READ_ERROR",
                message=(resp.text or "")[:200],
                http_status=resp.status_code,
            )
        try:
            row = resp.json()
        except ValueError as e:
            raise CredentialLookupError(code="STORE_READ_ERROR", message=str(e))
        if not isinstance(row, dict):
            raise CredentialLookupError(code="STORE_READ_ERROR", message="unexpected row payload")
        return row.get(column)

    def _headers(self) -> dict:
        headers = {"Accept": "application/vnd.pgrst.object+json"}
        anon_key = getattr(self._settings, "supabase_anon_key", None)
        if anon_key:
            headers["apikey"] = anon_key
            headers["Authorization"] = f"Bearer {anon_key}"
        return headers

    @staticmethod
    def _error_code(resp) -> Optional[str]:
        try:
            body = resp.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            return body.get("code")
        return None
