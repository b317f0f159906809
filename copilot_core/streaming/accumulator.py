"""流式回答的累积与状态机。

accumulate_stream 消费 SSE 事件序列，产出 StreamEvent：

1. 每个事件处理前先检查取消令牌，已取消则以当前累积文本产出 "stopped" 并结束；
2. data 原文等于 "[DONE]" 时产出 "done" 并结束（结束标记从不做 JSON 解析）；
3. 否则解析 JSON，取 choices[0].delta.content 追加到累积文本并产出 "delta"；
   增量为空时忽略该事件，流继续。

服务端 error 事件、带顶层 error 字段的 data 都会抛出 StreamError，
已累积的部分文本随之丢弃；只有主动停止才会保留部分回答。

该模块不依赖 HTTP，可以直接用字符串行驱动测试。
"""

import json
from typing import Any, Dict, Iterable, Iterator, Optional

from copilot_core.domain.exceptions import MalformedEventError, StreamError, decode_error_code
from copilot_core.domain.models import StreamEvent
from copilot_core.streaming.sse import SSEEvent
from copilot_core.streaming.cancellation import CancellationToken


DONE_TOKEN = "[DONE]"


class StreamAccumulator:
    """单次请求内的累积缓冲区，text 只增不减。"""

    def __init__(self) -> None:
        self.text = ""
        self.finish_reason: Optional[str] = None

    def feed(self, payload: Dict[str, Any]) -> Optional[StreamEvent]:
        """处理一个已解析的增量 payload，有新文本时返回 delta 事件。

        choice / delta 形状不符合预期时视为没有增量；
        choices 存在但不是列表时无法读取，抛出 MalformedEventError。
        """

        choices = payload.get("choices") or []
        if not isinstance(choices, list):
            raise MalformedEventError(json.dumps(payload, ensure_ascii=False))
        if not choices:
            return None
        first = choices[0]
        if not isinstance(first, dict):
            return None
        if first.get("finish_reason"):
            self.finish_reason = first["finish_reason"]
        delta = first.get("delta")
        if not isinstance(delta, dict):
            return None
        fragment = delta.get("content")
        if not fragment or not isinstance(fragment, str):
            return None
        self.text += fragment
        return StreamEvent(kind="delta", text=self.text, fragment=fragment)

    def stopped(self) -> StreamEvent:
        return StreamEvent(kind="stopped", text=self.text)

    def done(self) -> StreamEvent:
        return StreamEvent(kind="done", text=self.text)


def accumulate_stream(
    events: Iterable[SSEEvent],
    token: CancellationToken,
    accumulator: Optional[StreamAccumulator] = None,
) -> Iterator[StreamEvent]:
    """按状态机消费 SSE 事件，产出 delta 事件，最后以 done/stopped 结束。"""

    acc = accumulator or StreamAccumulator()

    # 连接建立后、收到第一个事件前就已经停止
    if token.cancelled:
        yield acc.stopped()
        return

    for sse in events:
        if sse.event == "error":
            raise StreamError(
                code=decode_error_code(sse.data) or "STREAM_ERROR",
                message="Stream reported an error event",
                payload=sse.data,
            )
        if token.cancelled:
            yield acc.stopped()
            return
        if sse.data == DONE_TOKEN:
            yield acc.done()
            return
        if not sse.data:
            continue
        try:
            payload = json.loads(sse.data)
        except json.JSONDecodeError as e:
            raise MalformedEventError(sse.data, e) from e
        if not isinstance(payload, dict):
            raise MalformedEventError(sse.data)
        if payload.get("error"):
            raise StreamError(
                code=decode_error_code(payload) or "STREAM_ERROR",
                message="Stream returned an error payload",
                payload=sse.data,
            )
        event = acc.feed(payload)
        if event is not None:
            yield event

    if token.cancelled:
        yield acc.stopped()
        return
    # 部分兼容服务不发送 [DONE]，但会在最后一个 choice 上给出 finish_reason
    if acc.finish_reason:
        yield acc.done()
        return
    raise StreamError(
        code="UNEXPECTED_EOF",
        message="Stream ended before the completion terminator",
    )
