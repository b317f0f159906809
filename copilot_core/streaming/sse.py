"""Server-Sent Events 解码。

把 HTTP 响应按行切分后的文本还原成一个个事件：

- "data:" / "event:" / "id:" 字段行，冒号后的单个空格会被去掉；
- 以 ":" 开头的是注释行（常见于心跳），直接忽略；
- 空行表示一个事件结束；多行 data 以 "\\n" 拼接；
- 流结束时如果还有未分发的事件，同样分发出去。
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional


@dataclass(frozen=True)
class SSEEvent:
    """一个完整的 SSE 事件。"""

    data: str
    event: str = "message"
    id: Optional[str] = None


def iter_sse_events(lines: Iterable[str]) -> Iterator[SSEEvent]:
    data_lines: List[str] = []
    event_type = ""
    event_id: Optional[str] = None

    def dispatch() -> Optional[SSEEvent]:
        if not data_lines and not event_type:
            return None
        return SSEEvent(data="\n".join(data_lines), event=event_type or "message", id=event_id)

    for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            ev = dispatch()
            if ev is not None:
                yield ev
            data_lines = []
            event_type = ""
            continue
        if line.startswith(":"):
            continue
        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if name == "data":
            data_lines.append(value)
        elif name == "event":
            event_type = value
        elif name == "id":
            event_id = value
        # retry 及未知字段忽略

    ev = dispatch()
    if ev is not None:
        yield ev
