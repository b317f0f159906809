"""领域层模型与协议。

包含：
- models: ChatMessage / ModelMessage / RequestParams / StreamEvent 模型。
- exceptions: 业务异常类型定义。
"""
