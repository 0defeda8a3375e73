"""领域层模型与协议。

包含：
- models: Message / ConversationLog 以及远端 API 的请求/结果模型。
- conversation: ConversationStore 抽象。
- exceptions: 业务异常类型定义。
"""
