"""Provider 抽象接口。

上层 RequestManager 不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- complete(params, messages): 一次阻塞的请求/响应，返回第一个 choice 的文本。
- stream(params, messages, token): 一次流式调用，返回惰性的 StreamEvent 序列，
  以 "done" 或 "stopped" 事件结束；只能被消费一次。

messages 已经包含 system 提示词，Provider 只负责传输与解析。
"""

from typing import Iterator, Protocol, Sequence

from copilot_core.domain.models import ModelMessage, RequestParams, StreamEvent
from copilot_core.streaming.cancellation import CancellationToken


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。"""

    name: str

    def complete(self, params: RequestParams, messages: Sequence[ModelMessage]) -> str:
        ...

    def stream(
        self,
        params: RequestParams,
        messages: Sequence[ModelMessage],
        token: CancellationToken,
    ) -> Iterator[StreamEvent]:
        ...
