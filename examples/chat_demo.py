"""Minimal demonstration of a streamed chat turn with Ctrl+C as the stop button."""

import signal
import sys

from copilot_core import get_ai_response
from copilot_core.agents.request_manager import OpenAIRequestManager
from copilot_core.config.settings import settings
from copilot_core.domain.models import ChatMessage, RequestParams, Sender

if __name__ == "__main__":
    history = [ChatMessage(text="Hi", sender=Sender.USER)]
    question = ChatMessage(text="Summarise the idea of a Zettelkasten in three sentences.", sender=Sender.USER)
    params = RequestParams(
        model=settings.default_model,
        key="",
        temperature=settings.default_temperature,
        max_tokens=settings.default_max_tokens,
    )
    manager = OpenAIRequestManager()
    shown = {"len": 0}

    def show_partial(text: str) -> None:
        sys.stdout.write(text[shown["len"]:])
        sys.stdout.flush()
        shown["len"] = len(text)

    signal.signal(signal.SIGINT, lambda *_: manager.stop_streaming())
    print("User:", question.text)
    print("AI: ", end="")
    get_ai_response(question, history, params, manager, show_partial, history.append, notify=print)
    print()
    print(f"History now holds {len(history)} messages.")
