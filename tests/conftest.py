import json
from typing import Any

import httpx
import pytest

from ledger_agent.config import ModelSettings
from ledger_agent.core import Agent, RetryingTransport
from ledger_agent.types_ import BookInfo, ConversationContext, ToolResult


def sse_body(*contents: str, done: bool = True) -> bytes:
    """An OpenAI-style event stream carrying one delta per content string."""
    frames = [
        "data: " + json.dumps({"choices": [{"delta": {"content": c}}]}, ensure_ascii=False) for c in contents
    ]
    if done:
        frames.append("data: [DONE]")
    return ("\n\n".join(frames) + "\n").encode("utf-8")


def tool_block(*calls: tuple[str, dict[str, Any]]) -> str:
    payload = {"toolCalls": [{"name": name, "arguments": arguments} for name, arguments in calls]}
    return "```json\n" + json.dumps(payload, ensure_ascii=False, indent=2) + "\n```"


class RecordingExecutor:
    """Tool executor that records calls and fails the tools named in ``failures``."""

    def __init__(self, failures: dict[str, str] | None = None):
        self.calls: list[tuple[str, Any, BookInfo | None]] = []
        self.failures = failures or {}

    async def call_tool(self, name, arguments, book):
        self.calls.append((name, arguments, book))
        if name in self.failures:
            raise RuntimeError(self.failures[name])
        return ToolResult(data={"id": len(self.calls), "name": name})


class ScriptedModel:
    """MockTransport handler serving one scripted reply per request; the last reply repeats."""

    def __init__(self, *replies: str | list[str] | httpx.Response):
        self.replies = list(replies)
        self.requests: list[dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, httpx.Response):
            # fresh copy; a response instance is consumed by the client
            return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)
        chunks = reply if isinstance(reply, list) else [reply]
        return httpx.Response(200, content=sse_body(*chunks), headers={"content-type": "text/event-stream"})


async def no_sleep(_: float) -> None:
    return None


@pytest.fixture
def settings():
    return ModelSettings(
        _env_file=None,
        provider="openai",
        api_key="sk-test",
        base_url="https://llm.test/v1",
        model="test-model",
    )


@pytest.fixture
def context():
    return ConversationContext(book=BookInfo(book_id="b-1", book_name="日常账本"))


@pytest.fixture
def make_agent(settings):
    def factory(handler, executor=None, **kwargs) -> Agent:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transport = RetryingTransport(client, max_retries=2, retry_delay=1.0, sleep=no_sleep)
        return Agent(settings, executor if executor is not None else RecordingExecutor(), transport=transport, **kwargs)

    return factory


@pytest.fixture
def sse():
    return sse_body


@pytest.fixture
def block():
    return tool_block
