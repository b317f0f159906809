"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层或 UI 层做统一捕获与用户提示。

错误体只在传输边界解析一次（见 decode_error_code），
上层只读取结构化的 code / http_status，原始响应体保留在 raw_body / payload 中。
"""

import json
from typing import Any, Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "RATE_LIMIT"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class TransportError(BusinessError):
    """非流式请求返回非 200 状态码时抛出。

    raw_body 保存原始响应体，供日志完整记录。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, raw_body: str = "", **extra):
        super().__init__(code, message, http_status=http_status, **extra)
        self.raw_body = raw_body


class RateLimitError(TransportError):
    """Provider 限流错误（429），由上层负责重试/退避策略。"""


class StreamError(BusinessError):
    """事件流层面的错误（连接失败、非 200、服务端 error 事件）。

    payload 是服务端给出的原始数据，可能本身就是 JSON 编码的错误详情。
    流式过程中已累积的部分文本在这种情况下会被丢弃。
    """

    def __init__(self, code: str, message: str, http_status: int = 502, payload: str = "", **extra):
        super().__init__(code, message, http_status=http_status, **extra)
        self.payload = payload


class MalformedEventError(BusinessError):
    """事件 data 存在但无法解析为 JSON。"""

    def __init__(self, payload: str, cause: Optional[Exception] = None):
        super().__init__(
            code="MALFORMED_EVENT",
            message=f"Malformed stream event: {cause or payload!r}",
            http_status=502,
        )
        self.payload = payload


def decode_error_code(raw: Any) -> Optional[str]:
    """从 OpenAI 风格的错误体中提取错误码。

    兼容 {"error": {"code": ...}} 与 {"error": {"type": ...}}，
    raw 可以是已解析的 dict，也可以是 JSON 字符串；解析失败返回 None。
    """

    data = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        code = error.get("code") or error.get("type")
        return str(code) if code else None
    if isinstance(error, str) and error:
        return error
    return None
