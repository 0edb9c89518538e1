from typing import List, Protocol

from .models import Message


class ConversationLog(Protocol):
    """会话存储的最小边界：按顺序追加消息。"""

    def append(self, message: Message) -> None:
        ...


class InMemoryConversation(ConversationLog):
    """进程内会话，按追加顺序（FIFO）保存消息。"""

    def __init__(self) -> None:
        self._messages: List[Message] = []

    def append(self, message: Message) -> None:
        self._messages.append(message)

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)
