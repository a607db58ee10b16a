"""领域层模型与协议。

包含：
- models: Provider 侧的 ChatMessage / ProviderRequest / ChatResult 模型。
- conversation: 客户端会话条目、会话状态与回复累积状态机。
- exceptions: 业务异常类型定义。
"""
