"""统一的对话与请求数据模型。

本模块定义了宿主应用与 Provider 之间共享的标准数据结构：

- ChatMessage: 宿主应用会话历史中的一条消息（USER / AI）。
- ModelMessage: 发给 LLM 的一条消息（system/user/assistant），只在单次请求内存在。
- RequestParams: 调用方每次请求提供的模型、密钥、温度等参数。
- StreamEvent: 流式调用产出的事件，text 始终为目前为止的完整累积文本。

所有 Provider 适配器（如 OpenAIClient）都只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Literal


class Sender(str, Enum):
    """会话消息的发送方。"""

    USER = "user"
    AI = "ai"


# LLM 消息角色类型（与 OpenAI 的 role 字段对应）
Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    """宿主应用会话中的一条消息。

    - text: 消息正文。
    - sender: 发送方，USER 或 AI。
    - visible: 是否在聊天界面中展示。

    追加到会话历史后不再修改，因此使用 frozen dataclass。
    """

    text: str
    sender: Sender
    visible: bool = True


@dataclass(frozen=True)
class ModelMessage:
    """发给 Provider 的单条消息。"""

    role: Role
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class RequestParams:
    """一次请求的调用参数。

    key 为空时由 Provider 回退到配置中的 OPENAI_API_KEY。
    """

    model: str
    key: str
    temperature: float
    max_tokens: int

    def redacted(self) -> Dict[str, Any]:
        """返回可写入日志的参数字典（密钥脱敏）。"""

        masked = f"{self.key[:3]}***" if self.key else ""
        return {
            "model": self.model,
            "key": masked,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }


StreamEventKind = Literal["delta", "done", "stopped"]


@dataclass(frozen=True)
class StreamEvent:
    """流式调用产出的单个事件。

    kind:
        - "delta": 收到一段新的增量文本，fragment 为本次增量。
        - "done": 服务端发送了结束标记，text 为完整回答。
        - "stopped": 用户主动停止，text 为停止时已累积的部分回答（可能为空）。
    """

    kind: StreamEventKind
    text: str
    fragment: str = ""

    @property
    def is_final(self) -> bool:
        return self.kind != "delta"
