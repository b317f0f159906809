"""对外 API 服务模块。

提供宿主应用调用的单一入口 get_ai_response：组装消息，按 stream 选择传输方式，
把结果交付到会话历史，并把错误转换为用户提示 + 日志，不向上抛出业务异常。
"""

from typing import Callable, Optional, Sequence

from copilot_core.agents.assembler import map_history, resolve_system_prompt
from copilot_core.agents.delivery import AddMessage, ResponseDelivery, UpdateCurrentAiMessage
from copilot_core.agents.request_manager import OpenAIRequestManager, openai_request
from copilot_core.domain.exceptions import BusinessError, StreamError, TransportError
from copilot_core.domain.models import ChatMessage, RequestParams
from copilot_core.infrastructure.logging.logger import logger


Notify = Callable[[str], None]


def _log_notice(text: str) -> None:
    logger.warning(text)


def get_ai_response(
    user_message: ChatMessage,
    chat_context: Sequence[ChatMessage],
    params: RequestParams,
    stream_manager: OpenAIRequestManager,
    update_current_ai_message: UpdateCurrentAiMessage,
    add_message: AddMessage,
    stream: bool = True,
    debug: bool = False,
    user_system_prompt: Optional[str] = None,
    notify: Optional[Notify] = None,
) -> Optional[str]:
    """向模型发送对话并把回答写回会话。

    Args:
        user_message: 用户刚发送的消息
        chat_context: 之前的会话历史（不含 user_message）
        params: 模型、密钥、温度、最大 token 数
        stream_manager: 当前聊天面板的请求管理器
        update_current_ai_message: 刷新“正在生成”显示内容的回调
        add_message: 追加会话消息的回调
        stream: 是否使用流式接口
        debug: 是否记录请求参数与完整消息
        user_system_prompt: 调用方提供的系统提示词，为空时使用默认提示词
        notify: 面向用户的提示函数，默认只写日志

    Returns:
        已交付的回答文本；流被主动停止或调用失败时返回 None。
    """
    notify = notify or _log_notice
    messages = map_history(chat_context, user_message)
    system_prompt = resolve_system_prompt(user_system_prompt)

    if debug:
        logger.info("Request params", extra={"extra": {"params": params.redacted(), "stream": stream}})
        logger.info("System prompt", extra={"extra": {"system_prompt": system_prompt}})
        for i, message in enumerate(messages):
            logger.info(
                f"Message {i}",
                extra={"extra": {"role": message.role, "content": message.content}},
            )

    if stream:
        try:
            return stream_manager.stream_sse(
                params,
                messages,
                update_current_ai_message,
                add_message,
                system_prompt,
            )
        except StreamError as e:
            notify(f"OpenAI error: {e.code}. Pls check the console for the full error message.")
            logger.error(
                "Error in streamSSE",
                extra={"extra": {"code": e.code, "http_status": e.http_status, "payload": e.payload}},
            )
        except BusinessError as e:
            notify(f"OpenAI error: {e.code}. Pls check the console for the full error message.")
            logger.error("Error in streamSSE", extra={"extra": {"code": e.code, "error": e.message}})
        return None

    try:
        ai_response = openai_request(
            params.model,
            params.key,
            messages,
            params.temperature,
            params.max_tokens,
            system_prompt,
            provider_client=stream_manager.provider_client,
        )
    except TransportError as e:
        notify(f"OpenAI non-streaming error: {e.http_status}")
        logger.error(
            "OpenAI non-streaming request failed",
            extra={"extra": {"code": e.code, "http_status": e.http_status, "body": e.raw_body}},
        )
        return None
    except BusinessError as e:
        notify(f"OpenAI non-streaming error: {e.code}")
        logger.error("OpenAI non-streaming request failed", extra={"extra": {"code": e.code, "error": e.message}})
        return None

    ResponseDelivery(add_message, update_current_ai_message).deliver(ai_response)
    return ai_response
