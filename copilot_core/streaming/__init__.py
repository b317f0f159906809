"""流式回答处理：SSE 解码、取消令牌与累积状态机。"""

from copilot_core.streaming.accumulator import DONE_TOKEN, StreamAccumulator, accumulate_stream
from copilot_core.streaming.cancellation import CancellationToken
from copilot_core.streaming.sse import SSEEvent, iter_sse_events

__all__ = [
    "DONE_TOKEN",
    "StreamAccumulator",
    "accumulate_stream",
    "CancellationToken",
    "SSEEvent",
    "iter_sse_events",
]
