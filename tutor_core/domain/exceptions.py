"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError。
回复链路内部的错误（凭证查询、Provider 调用）都是非致命的：
由链路自身捕获、记录日志并降级到下一层，不会传给调用方。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "PROVIDER_TIMEOUT"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、user_id 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class CredentialLookupError(BusinessError):
    """凭证存储查询失败（存储不可用、超时等），按“无凭证”处理。"""


class CredentialNotFoundError(CredentialLookupError):
    """用户没有凭证记录，属于正常状态而非故障。"""


class ProviderError(BusinessError):
    """Provider 调用失败的基类。"""


class ProviderTransportError(ProviderError):
    """网络层错误或非 2xx 响应。"""


class ProviderMalformedResponseError(ProviderError):
    """响应体不是 JSON，或缺少有效的 response 字段。"""


class ProviderTimeoutError(ProviderError):
    """Provider 调用超时。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class ResolutionCancelled(BusinessError):
    """调用方取消了本次回复（例如请求方已断开）。"""
