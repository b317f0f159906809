"""单次请求的取消令牌。

每次流式请求创建一个新的 CancellationToken，停止信号只作用于这一次请求，
不会遗留到同一个 RequestManager 的下一次调用。
cancel() 可以在任意线程调用（通常是 UI 线程），流式循环在处理每个事件前检查。
"""

import threading


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"
