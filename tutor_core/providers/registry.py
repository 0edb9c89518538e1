"""Provider 配置。

回复链路中有两个远端 Provider 层，二者调用同一类 Edge Function，区别只在于：

- personalized：携带用户自己的 API key（apiKey 字段），只有查到凭证时才会调用。
- generic：从不携带凭证，任何时候都可以作为下一层被调用。

超时与函数名可在 settings 中覆盖，这里只集中维护默认值。"""

from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class ProviderConfig:
    """某个 Provider 层的配置。"""

    name: str
    function_name: str
    send_credential: bool
    timeout_setting: str
    base_url: Optional[str] = None


PERSONALIZED_CONFIG = ProviderConfig(
    name="personalized",
    function_name="ai-teacher",
    send_credential=True,
    timeout_setting="personalized_timeout",
)

GENERIC_CONFIG = ProviderConfig(
    name="generic",
    function_name="ai-teacher",
    send_credential=False,
    timeout_setting="generic_timeout",
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "personalized": PERSONALIZED_CONFIG,
    "generic": GENERIC_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
