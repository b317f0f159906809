"""请求组装：把宿主应用的会话历史转换为发给模型的消息序列。"""

from typing import Iterable, List, Optional, Sequence

from copilot_core.domain.models import ChatMessage, ModelMessage, Sender
from copilot_core.prompts import load_system_prompt


def default_system_prompt() -> str:
    return load_system_prompt("default")


def resolve_system_prompt(user_system_prompt: Optional[str] = None) -> str:
    """调用方提供了非空提示词则使用之，否则使用内置默认提示词。"""

    return user_system_prompt or default_system_prompt()


def map_history(history: Iterable[ChatMessage], user_message: ChatMessage) -> List[ModelMessage]:
    """USER 映射为 user，其余发送方一律映射为 assistant；新消息追加在末尾。"""

    messages = [
        ModelMessage(
            role="user" if msg.sender == Sender.USER else "assistant",
            content=msg.text,
        )
        for msg in history
    ]
    messages.append(ModelMessage(role="user", content=user_message.text))
    return messages


def prepend_system_prompt(messages: Sequence[ModelMessage], system_prompt: str) -> List[ModelMessage]:
    return [ModelMessage(role="system", content=system_prompt), *messages]


def build_model_messages(
    history: Iterable[ChatMessage],
    user_message: ChatMessage,
    system_prompt: Optional[str] = None,
) -> List[ModelMessage]:
    """组装完整的请求消息：一条 system + 映射后的历史 + 新的 user 消息。"""

    return prepend_system_prompt(
        map_history(history, user_message),
        resolve_system_prompt(system_prompt),
    )
