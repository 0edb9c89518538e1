"""Provider 抽象接口。

回复链路不直接依赖具体的 HTTP 调用，而是依赖此协议：

- 每种远端实现一个 ProviderClient（如 EdgeFunctionClient）。
- 负责：将 ProviderRequest 转成具体请求，并把响应归一化为 ProviderResult。

所有失败（网络错误、非 2xx、响应缺字段、超时）都以 ProviderResult.failure
返回，不抛异常，调用方只关心成功与否。
"""

from typing import Protocol

from tutor_core.domain.models import ProviderRequest, ProviderResult


class ProviderClient(Protocol):
    """远端 Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志/统计。
    - invoke(req, timeout): 在给定超时内执行一次调用，返回统一的 ProviderResult。
    """

    name: str

    def invoke(self, req: ProviderRequest, timeout: float) -> ProviderResult:
        ...
