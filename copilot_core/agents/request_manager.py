"""请求管理器：驱动流式/非流式调用并把结果交付给宿主应用。

流式调用的停止信号通过 CancellationToken 实现，每次 stream_sse 创建新的令牌，
stop_streaming() 只作用于当前正在进行的请求。
"""

import logging
import time
from typing import Any, Dict, Optional, Sequence
from uuid import uuid4

from copilot_core.agents.assembler import prepend_system_prompt
from copilot_core.agents.delivery import AddMessage, ResponseDelivery, UpdateCurrentAiMessage
from copilot_core.domain.exceptions import StreamError
from copilot_core.domain.models import ModelMessage, RequestParams
from copilot_core.infrastructure.logging.logger import logger
from copilot_core.providers import create_provider
from copilot_core.providers.base import ProviderClient
from copilot_core.streaming.cancellation import CancellationToken


class OpenAIRequestManager:
    """单个聊天面板持有的请求管理器。

    同一实例同一时刻只允许一个流式请求；请求结束后可以复用。
    """

    def __init__(self, provider_client: Optional[ProviderClient] = None):
        self._provider_client = provider_client or create_provider()
        self._active_token: Optional[CancellationToken] = None

    @property
    def provider_client(self) -> ProviderClient:
        return self._provider_client

    @property
    def is_streaming(self) -> bool:
        return self._active_token is not None

    def stop_streaming(self) -> None:
        """请求停止当前流式回答，在下一个事件到达时生效。"""

        token = self._active_token
        if token is None:
            logger.info("Stop requested while no stream is active; ignored")
            return
        token.cancel()
        logger.info("Stop requested for active stream")

    def stream_sse(
        self,
        params: RequestParams,
        messages: Sequence[ModelMessage],
        update_current_ai_message: UpdateCurrentAiMessage,
        add_message: AddMessage,
        system_prompt: str,
        token: Optional[CancellationToken] = None,
    ) -> Optional[str]:
        """执行一次流式调用。

        Returns:
            收到结束标记时返回完整回答；被主动停止时返回 None。
            两种情况下都会追加且只追加一条 AI 消息。

        Raises:
            StreamError / MalformedEventError 等：不追加任何消息，部分回答丢弃。
            RuntimeError: 当前实例已有进行中的流式请求。
        """

        if self._active_token is not None:
            raise RuntimeError("A stream is already in flight on this request manager")
        token = token or CancellationToken()
        self._active_token = token
        events = None
        try:
            log_ctx: Dict[str, Any] = {
                "trace_id": f"tr-{uuid4().hex}",
                "provider": self._provider_client.name,
                "model": params.model,
            }
            start_time = time.time()
            delivery = ResponseDelivery(add_message, update_current_ai_message)
            formatted = prepend_system_prompt(messages, system_prompt)
            self._log(logging.INFO, "Calling provider (stream)", log_ctx, message_count=len(formatted))

            events = self._provider_client.stream(params, formatted, token)
            for event in events:
                if event.kind == "delta":
                    delivery.partial(event.text)
                    continue
                delivery.deliver(event.text)
                elapsed = round(time.time() - start_time, 2)
                if event.kind == "stopped":
                    self._log(
                        logging.INFO,
                        "Manually closed SSE stream due to stop request",
                        log_ctx,
                        elapsed_seconds=elapsed,
                        chars=len(event.text),
                    )
                    return None
                self._log(
                    logging.INFO,
                    "Completed stream",
                    log_ctx,
                    elapsed_seconds=elapsed,
                    chars=len(event.text),
                )
                return event.text
        finally:
            close = getattr(events, "close", None)
            if close is not None:
                close()
            self._active_token = None
        raise StreamError(
            code="UNEXPECTED_EOF",
            message="Provider stream ended without a final event",
        )

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})


def openai_request(
    model: str,
    key: str,
    messages: Sequence[ModelMessage],
    temperature: float,
    max_tokens: int,
    system_prompt: str,
    provider_client: Optional[ProviderClient] = None,
) -> str:
    """执行一次非流式调用，返回第一个 choice 的文本。

    Raises:
        TransportError: 状态码不是 200（429 时为 RateLimitError）。
        NetworkError / ValidationError: 连接失败或缺少密钥。
    """

    client = provider_client or create_provider()
    params = RequestParams(model=model, key=key, temperature=temperature, max_tokens=max_tokens)
    return client.complete(params, prepend_system_prompt(messages, system_prompt))
