"""回答交付：把最终文本写回宿主应用的会话。"""

from typing import Callable

from copilot_core.domain.models import ChatMessage, Sender


AddMessage = Callable[[ChatMessage], None]
UpdateCurrentAiMessage = Callable[[str], None]


class ResponseDelivery:
    """包装宿主应用提供的两个回调。

    - partial(text): 流式过程中刷新“正在生成”的显示内容。
    - deliver(text): 追加一条 AI 消息并清空正在生成的显示；每次请求只允许调用一次。
    """

    def __init__(self, add_message: AddMessage, update_current_ai_message: UpdateCurrentAiMessage):
        self._add_message = add_message
        self._update_current_ai_message = update_current_ai_message
        self._delivered = False

    @property
    def delivered(self) -> bool:
        return self._delivered

    def partial(self, text: str) -> None:
        self._update_current_ai_message(text)

    def deliver(self, text: str) -> ChatMessage:
        if self._delivered:
            raise RuntimeError("Response already delivered for this request")
        self._delivered = True
        message = ChatMessage(text=text, sender=Sender.AI, visible=True)
        self._add_message(message)
        self._update_current_ai_message("")
        return message
