"""领域层模型与协议。

包含：
- models: Message / ProviderRequest / ProviderResult / ResolutionOutcome 模型。
- conversation: ConversationLog 抽象与进程内实现。
- exceptions: 业务异常类型定义。
"""
