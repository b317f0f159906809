"""OpenAI 兼容 Provider 适配器。

本模块负责：

1. 将 RequestParams + ModelMessage 序列转换为 chat/completions 请求 JSON。
2. 调用 HTTP 接口，把网络错误、非 200 状态码包装成业务异常。
3. 非流式：返回第一个 choice 的文本。
4. 流式：把 SSE 响应交给 accumulate_stream，逐步产出 StreamEvent。

错误体在这里解析一次（decode_error_code），上层只读取结构化字段。
"""

from typing import Any, Dict, Iterator, Optional, Sequence

import httpx

from copilot_core.config.settings import settings
from copilot_core.domain.exceptions import (
    NetworkError,
    RateLimitError,
    StreamError,
    TransportError,
    ValidationError,
    decode_error_code,
)
from copilot_core.domain.models import ModelMessage, RequestParams, StreamEvent
from copilot_core.providers.registry import OPENAI_CONFIG, ProviderConfig
from copilot_core.streaming.accumulator import accumulate_stream
from copilot_core.streaming.cancellation import CancellationToken
from copilot_core.streaming.sse import iter_sse_events


class OpenAIClient:
    """OpenAI chat/completions 客户端实现。

    - name: Provider 名称（供日志/调试使用）。
    - complete: 非流式调用入口。
    - stream: 流式调用入口。
    """

    name = "openai"

    def __init__(self, cfg=settings, provider: ProviderConfig = OPENAI_CONFIG):
        # Settings 里包含默认密钥、组织、超时等配置
        self._settings = cfg
        self._provider = provider
        self.name = provider.name

    # ---- 非流式 ----

    def complete(self, params: RequestParams, messages: Sequence[ModelMessage]) -> str:
        key = self._resolve_key(params)
        payload = self._build_payload(params, messages, stream=False)
        headers = self._build_headers(key)
        headers.update(self._provider.attribution_headers)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(self._url(), json=payload, headers=headers)
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code != 200:
            raise self._transport_error(resp.status_code, resp.text)
        return self._parse_response(resp)

    # ---- 流式 ----

    def stream(
        self,
        params: RequestParams,
        messages: Sequence[ModelMessage],
        token: CancellationToken,
    ) -> Iterator[StreamEvent]:
        """执行一次流式调用，逐步 yield StreamEvent。

        结束事件（done/stopped）在连接关闭之后才交给调用方。
        """

        key = self._resolve_key(params)
        payload = self._build_payload(params, messages, stream=True)
        headers = self._build_headers(key)
        headers["Accept"] = "text/event-stream"
        final: Optional[StreamEvent] = None
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream("POST", self._url(), json=payload, headers=headers) as resp:
                    if resp.status_code != 200:
                        resp.read()
                        body = resp.text
                        raise StreamError(
                            code=decode_error_code(body) or f"HTTP_{resp.status_code}",
                            message=f"OpenAI API returned an error: {resp.status_code}",
                            http_status=resp.status_code,
                            payload=body,
                        )
                    for event in accumulate_stream(iter_sse_events(resp.iter_lines()), token):
                        if event.is_final:
                            final = event
                            break
                        yield event
        except httpx.RequestError as e:
            raise StreamError(code="NETWORK_ERROR", message=str(e), payload=str(e))
        if final is not None:
            yield final

    # ---- 辅助方法 ----

    def _url(self) -> str:
        base = getattr(self._settings, "openai_base_url", None)
        if base:
            return f"{base.rstrip('/')}/chat/completions"
        return self._provider.completions_url

    def _resolve_key(self, params: RequestParams) -> str:
        key = params.key or getattr(self._settings, "openai_api_key", None)
        if not key:
            # 配置缺失走 ValidationError，方便上层统一处理
            raise ValidationError(code="MISSING_API_KEY", message="OPENAI_API_KEY not set")
        return key

    def _build_headers(self, key: str) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {key}",
        }
        organization = getattr(self._settings, "openai_organization", None)
        if organization:
            headers["OpenAI-Organization"] = organization
        return headers

    def _build_payload(
        self,
        params: RequestParams,
        messages: Sequence[ModelMessage],
        stream: bool,
    ) -> Dict[str, Any]:
        return {
            "model": params.model,
            "messages": [m.to_payload() for m in messages],
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
            "stream": stream,
        }

    def _parse_response(self, resp) -> str:
        """取出第一个 choice 的 message.content。

        响应体不是 JSON 或结构不符合预期时抛出 TransportError，状态码保留真实值。
        """

        try:
            data = resp.json()
        except ValueError:
            raise TransportError(
                code="MALFORMED_RESPONSE",
                message="OpenAI API returned a body that is not JSON",
                http_status=resp.status_code,
                raw_body=resp.text,
            )
        if not isinstance(data, dict):
            raise TransportError(
                code="MALFORMED_RESPONSE",
                message="OpenAI API returned an unexpected body",
                http_status=resp.status_code,
                raw_body=resp.text,
            )
        choices = data.get("choices") or []
        if not isinstance(choices, list) or not choices:
            raise TransportError(
                code="EMPTY_RESPONSE",
                message="OpenAI API returned no choices",
                http_status=resp.status_code,
                raw_body=resp.text,
            )
        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            raise TransportError(
                code="MALFORMED_RESPONSE",
                message="OpenAI API returned a choice without a message",
                http_status=resp.status_code,
                raw_body=resp.text,
            )
        return message.get("content") or ""

    @staticmethod
    def _transport_error(status: int, body: str) -> TransportError:
        code = decode_error_code(body) or f"HTTP_{status}"
        message = f"OpenAI API returned an error: {status}"
        if status == 429:
            # 限流错误交给上层做重试/退避
            return RateLimitError(code=code, message=message, http_status=status, raw_body=body)
        return TransportError(code=code, message=message, http_status=status, raw_body=body)
