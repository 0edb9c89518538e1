"""远端 Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 personalized / generic 两层的配置 (registry)。
- 提供 Edge Function 的具体实现 (edge_function_client)。
"""

from tutor_core.config.settings import settings
from tutor_core.providers.base import ProviderClient
from tutor_core.providers.edge_function_client import EdgeFunctionClient
from tutor_core.providers.registry import get_provider_config


def create_provider(name: str) -> ProviderClient:
    """根据名称（personalized / generic）创建 Provider 实例。"""

    return EdgeFunctionClient(get_provider_config(name), settings)
