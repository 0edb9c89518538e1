from typing import Optional, Protocol


class CredentialStore(Protocol):
    """按用户 ID 查询凭证的键值存储。

    - 没有记录：返回 None 或抛 CredentialNotFoundError。
    - 其他故障（不可用、超时、数据损坏）：抛 CredentialLookupError。
    """

    def get_credential(self, user_id: str, timeout: Optional[float] = None) -> Optional[str]:
        ...
