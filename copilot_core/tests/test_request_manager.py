"""测试 OpenAIRequestManager 的流式交付与停止。"""

import pytest

from copilot_core.agents.request_manager import OpenAIRequestManager, openai_request
from copilot_core.domain.exceptions import MalformedEventError, StreamError
from copilot_core.domain.models import ModelMessage, RequestParams, Sender, StreamEvent
from copilot_core.providers.openai_client import OpenAIClient


PARAMS = RequestParams(model="gpt-4", key="sk-test", temperature=0.7, max_tokens=100)
MESSAGES = [ModelMessage(role="user", content="hi")]


class FakeProvider:
    """按给定事件序列模拟流式输出的 Provider。"""

    name = "fake"

    def __init__(self, events=(), error=None, completion="hello"):
        self._events = list(events)
        self._error = error
        self._completion = completion
        self.tokens = []
        self.messages = None

    def complete(self, params, messages):
        self.messages = list(messages)
        return self._completion

    def stream(self, params, messages, token):
        self.tokens.append(token)
        self.messages = list(messages)
        for event in self._events:
            yield event
        if self._error:
            raise self._error


class Host:
    """模拟宿主应用的会话历史与“正在生成”显示。"""

    def __init__(self):
        self.history = []
        self.partials = []

    def add_message(self, message):
        self.history.append(message)

    def update_current_ai_message(self, text):
        self.partials.append(text)


def test_stream_sse_delivers_once_on_done():
    provider = FakeProvider(
        [
            StreamEvent(kind="delta", text="a", fragment="a"),
            StreamEvent(kind="delta", text="ab", fragment="b"),
            StreamEvent(kind="done", text="ab"),
        ]
    )
    host = Host()
    manager = OpenAIRequestManager(provider)

    result = manager.stream_sse(PARAMS, MESSAGES, host.update_current_ai_message, host.add_message, "sys")

    assert result == "ab"
    assert len(host.history) == 1
    msg = host.history[0]
    assert msg.text == "ab"
    assert msg.sender == Sender.AI
    assert msg.visible is True
    assert host.partials == ["a", "ab", ""]
    assert provider.messages[0] == ModelMessage(role="system", content="sys")
    assert provider.messages[1:] == MESSAGES
    assert not manager.is_streaming


def test_stream_sse_stopped_returns_none_and_flushes_partial():
    provider = FakeProvider(
        [
            StreamEvent(kind="delta", text="par", fragment="par"),
            StreamEvent(kind="stopped", text="par"),
        ]
    )
    host = Host()
    result = OpenAIRequestManager(provider).stream_sse(
        PARAMS, MESSAGES, host.update_current_ai_message, host.add_message, "sys"
    )
    assert result is None
    assert [m.text for m in host.history] == ["par"]
    assert host.partials[-1] == ""


@pytest.mark.parametrize(
    "error",
    [
        StreamError(code="server_error", message="boom", payload='{"error": {"code": "server_error"}}'),
        MalformedEventError("{oops"),
    ],
)
def test_stream_sse_error_appends_nothing(error):
    provider = FakeProvider([StreamEvent(kind="delta", text="a", fragment="a")], error=error)
    host = Host()
    manager = OpenAIRequestManager(provider)

    with pytest.raises(type(error)):
        manager.stream_sse(PARAMS, MESSAGES, host.update_current_ai_message, host.add_message, "sys")

    assert host.history == []
    assert not manager.is_streaming


def test_stream_sse_without_final_event_raises():
    provider = FakeProvider([StreamEvent(kind="delta", text="a", fragment="a")])
    host = Host()
    with pytest.raises(StreamError) as exc:
        OpenAIRequestManager(provider).stream_sse(
            PARAMS, MESSAGES, host.update_current_ai_message, host.add_message, "sys"
        )
    assert exc.value.code == "UNEXPECTED_EOF"
    assert host.history == []


def test_stop_while_idle_does_not_leak_into_next_request():
    provider = FakeProvider([StreamEvent(kind="done", text="full")])
    host = Host()
    manager = OpenAIRequestManager(provider)

    manager.stop_streaming()
    result = manager.stream_sse(PARAMS, MESSAGES, host.update_current_ai_message, host.add_message, "sys")

    assert result == "full"
    assert not provider.tokens[0].cancelled


def test_each_request_gets_a_fresh_token():
    provider = FakeProvider([StreamEvent(kind="done", text="x")])
    host = Host()
    manager = OpenAIRequestManager(provider)
    manager.stream_sse(PARAMS, MESSAGES, host.update_current_ai_message, host.add_message, "sys")
    manager.stream_sse(PARAMS, MESSAGES, host.update_current_ai_message, host.add_message, "sys")
    assert provider.tokens[0] is not provider.tokens[1]
    assert len(host.history) == 2


def test_overlapping_stream_is_rejected():
    host = Host()
    provider = FakeProvider([StreamEvent(kind="delta", text="a", fragment="a"), StreamEvent(kind="done", text="a")])
    manager = OpenAIRequestManager(provider)

    def reenter(text):
        if text:
            manager.stream_sse(PARAMS, MESSAGES, host.update_current_ai_message, host.add_message, "sys")

    with pytest.raises(RuntimeError):
        manager.stream_sse(PARAMS, MESSAGES, reenter, host.add_message, "sys")
    assert host.history == []
    assert not manager.is_streaming


def test_stop_during_real_stream(monkeypatch):
    """停止信号在下一个事件到达时生效，连接关闭，已累积的文本被保留。"""

    class SettingsStub:
        openai_api_key = None
        openai_organization = None
        openai_base_url = None
        http_timeout = 1.0

    lines = [
        'data: {"choices": [{"delta": {"content": "Once "}}]}',
        "",
        'data: {"choices": [{"delta": {"content": "upon"}}]}',
        "",
        'data: {"choices": [{"delta": {"content": " a time"}}]}',
        "",
        "data: [DONE]",
        "",
    ]
    state = {"closed": False, "lines_read": 0}

    class FakeResponse:
        status_code = 200

        def iter_lines(self):
            for line in lines:
                state["lines_read"] += 1
                yield line

    class StreamContext:
        def __enter__(self):
            return FakeResponse()

        def __exit__(self, *args):
            state["closed"] = True
            return False

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def stream(self, *a, **kw):
            return StreamContext()

    monkeypatch.setattr("httpx.Client", Client)

    host = Host()
    manager = OpenAIRequestManager(OpenAIClient(SettingsStub()))

    def on_partial(text):
        host.update_current_ai_message(text)
        if text == "Once ":
            manager.stop_streaming()

    result = manager.stream_sse(PARAMS, MESSAGES, on_partial, host.add_message, "sys")

    assert result is None
    assert state["closed"]
    assert [m.text for m in host.history] == ["Once "]
    assert host.partials == ["Once ", ""]
    assert state["lines_read"] < len(lines)


def test_openai_request_prepends_system_prompt():
    provider = FakeProvider(completion="hello")
    text = openai_request("gpt-4", "sk", MESSAGES, 0.5, 32, "be brief", provider_client=provider)
    assert text == "hello"
    assert provider.messages[0] == ModelMessage(role="system", content="be brief")
    assert provider.messages[1:] == MESSAGES


def test_stream_open_failure_releases_manager():
    class FailingOnOpen:
        """stream() 是普通方法，在返回迭代器之前就抛出异常。"""

        name = "failing"

        def stream(self, params, messages, token):
            raise StreamError(code="invalid_api_key", message="bad key", http_status=401)

    host = Host()
    manager = OpenAIRequestManager(FailingOnOpen())

    with pytest.raises(StreamError):
        manager.stream_sse(PARAMS, MESSAGES, host.update_current_ai_message, host.add_message, "sys")
    assert not manager.is_streaming
    assert host.history == []

    manager._provider_client = FakeProvider([StreamEvent(kind="done", text="again")])
    result = manager.stream_sse(PARAMS, MESSAGES, host.update_current_ai_message, host.add_message, "sys")
    assert result == "again"
    assert [m.text for m in host.history] == ["again"]


def test_stream_sse_closes_provider_iterator_on_error():
    state = {"closed": False}

    def events():
        try:
            yield StreamEvent(kind="delta", text="a", fragment="a")
            yield StreamEvent(kind="delta", text="ab", fragment="b")
        finally:
            state["closed"] = True

    class Provider:
        name = "gen"

        def stream(self, params, messages, token):
            return events()

    def explode(text):
        raise ValueError("display failed")

    manager = OpenAIRequestManager(Provider())
    with pytest.raises(ValueError):
        manager.stream_sse(PARAMS, MESSAGES, explode, Host().add_message, "sys")
    assert state["closed"]
    assert not manager.is_streaming
