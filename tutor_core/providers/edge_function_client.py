"""Supabase Edge Function Provider 适配器。

本模块负责：

1. 接收统一的 ProviderRequest。
2. 将其转换为 Edge Function 的 HTTP 请求：
   - URL: {supabase_url}/functions/v1/{function_name}
   - 认证: Authorization: Bearer <anon key>
   - 请求体: {"message", "userId", "userEmail", "apiKey"?}
3. 调用 HTTP 接口，并把网络错误/非 2xx/响应缺字段/超时统一转成 ProviderResult.failure。
4. 成功时取响应 JSON 中的 response 字段作为回复文本。
"""

import json
from typing import Any, Optional

import httpx

from tutor_core.config.settings import settings
from tutor_core.domain.exceptions import (
    ProviderError,
    ProviderMalformedResponseError,
    ProviderTimeoutError,
    ProviderTransportError,
)
from tutor_core.domain.models import ProviderRequest, ProviderResult
from tutor_core.providers.registry import ProviderConfig


class EdgeFunctionClient:
    """Edge Function 客户端实现。

    - name: Provider 名称（personalized / generic，供日志使用）。
    - invoke: 对外统一调用入口，返回 ProviderResult，从不抛出 ProviderError。
    """

    def __init__(self, config: ProviderConfig, cfg=settings):
        self._config = config
        self._settings = cfg
        self.name = config.name

    def default_timeout(self) -> float:
        return float(getattr(self._settings, self._config.timeout_setting, 15.0))

    def invoke(self, req: ProviderRequest, timeout: Optional[float] = None) -> ProviderResult:
        """执行一次调用，所有失败都归一化为 failure。"""

        try:
            text = self._call(req, timeout if timeout is not None else self.default_timeout())
        except ProviderError as e:
            return ProviderResult.failure(self.name, f"{e.code}: {e.message}", error=e)
        return ProviderResult.success(self.name, text)

    # ---- 辅助方法 ----

    def _call(self, req: ProviderRequest, timeout: float) -> str:
        url = self._endpoint()
        payload = self._build_payload(req)
        try:
            with httpx.Client(timeout=timeout, trust_env=False) as client:
                resp = client.post(url, json=payload, headers=self._headers())
        except httpx.TimeoutException as e:
            # 超时与显式失败同样处理，只是错误码不同
            raise ProviderTimeoutError(code="PROVIDER_TIMEOUT", message=str(e) or "timed out", provider=self.name)
        except httpx.RequestError as e:
            raise ProviderTransportError(code="NETWORK_ERROR", message=str(e), provider=self.name)
        if resp.status_code < 200 or resp.status_code >= 300:
            raise ProviderTransportError(
                code="API_ERROR",
                message=(resp.text or "")[:200],
                http_status=resp.status_code,
                provider=self.name,
            )
        return self._parse_response(resp)

    def _endpoint(self) -> str:
        base = self._config.base_url or getattr(self._settings, "supabase_url", None)
        if not base:
            raise ProviderTransportError(
                code="PROVIDER_NOT_CONFIGURED",
                message="SUPABASE_URL not set",
                provider=self.name,
            )
        function_name = getattr(self._settings, "ai_function_name", None) or self._config.function_name
        return f"{base.rstrip('/')}/functions/v1/{function_name}"

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        anon_key = getattr(self._settings, "supabase_anon_key", None)
        if anon_key:
            headers["Authorization"] = f"Bearer {anon_key}"
            headers["apikey"] = anon_key
        return headers

    def _build_payload(self, req: ProviderRequest) -> dict:
        """generic 层永远不携带凭证。"""

        if not self._config.send_credential:
            req = req.without_credential()
        return req.to_payload()

    def _parse_response(self, resp: Any) -> str:
        try:
            data = resp.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise ProviderMalformedResponseError(
                code="MALFORMED_RESPONSE",
                message=f"response is not JSON: {e}",
                provider=self.name,
            )
        if not isinstance(data, dict):
            raise ProviderMalformedResponseError(
                code="MALFORMED_RESPONSE",
                message="response body is not an object",
                provider=self.name,
            )
        text = data.get("response")
        if not isinstance(text, str) or not text.strip():
            raise ProviderMalformedResponseError(
                code="MALFORMED_RESPONSE",
                message="missing or empty 'response' field",
                provider=self.name,
            )
        return text
