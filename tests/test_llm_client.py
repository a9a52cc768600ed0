from __future__ import annotations

import asyncio
from types import SimpleNamespace

import httpx
import ollama
import pytest

from sammy.agent.models import Message, ToolCallRequest
from sammy.errors import BackendError
from sammy.llm.client import LLMClient, ModelReply


class FakeOllama:
    def __init__(self, response: object = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.requests: list[dict[str, object]] = []

    async def chat(self, **kwargs: object) -> object:
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def _response(content: str = "", tool_calls: list[object] | None = None) -> SimpleNamespace:
    return SimpleNamespace(message=SimpleNamespace(content=content, tool_calls=tool_calls))


def _tool_call(name: str, arguments: object) -> SimpleNamespace:
    return SimpleNamespace(function=SimpleNamespace(name=name, arguments=arguments))


def test_message_payload_carries_tool_fields() -> None:
    assistant = Message(
        role="assistant",
        content="",
        tool_calls=(ToolCallRequest(name="read_file", arguments={"path": "a"}),),
    )
    tool = Message(role="tool", content="data", tool_name="read_file")

    assert assistant.to_payload() == {
        "role": "assistant",
        "content": "",
        "tool_calls": [{"function": {"name": "read_file", "arguments": {"path": "a"}}}],
    }
    assert tool.to_payload() == {"role": "tool", "content": "data", "tool_name": "read_file"}
    assert Message(role="user", content="hi").to_payload() == {"role": "user", "content": "hi"}


def test_chat_sends_model_context_and_tools() -> None:
    fake = FakeOllama(_response("hello"))
    client = LLMClient(model="tiny", context_length=1234, client=fake)  # type: ignore[arg-type]
    tools = [{"type": "function", "function": {"name": "read_file"}}]

    reply = asyncio.run(client.chat([Message(role="user", content="hi")], tools=tools))

    assert reply == ModelReply(content="hello")
    request = fake.requests[0]
    assert request["model"] == "tiny"
    assert request["options"] == {"num_ctx": 1234}
    assert request["tools"] == tools
    assert request["messages"] == [{"role": "user", "content": "hi"}]


def test_chat_without_tools_sends_none() -> None:
    fake = FakeOllama(_response("ok"))
    client = LLMClient(client=fake)  # type: ignore[arg-type]

    asyncio.run(client.chat([Message(role="user", content="hi")]))

    assert fake.requests[0]["tools"] is None


def test_tool_calls_are_parsed() -> None:
    response = _response(
        "",
        [
            _tool_call("read_file", {"path": "a.txt"}),
            _tool_call("write_file", '{"path": "b.txt", "text": "x"}'),
            _tool_call("run_terminal_command", "{not json"),
            _tool_call("", {}),
        ],
    )

    reply = LLMClient._to_reply(response)

    assert reply.tool_calls == [
        ToolCallRequest(name="read_file", arguments={"path": "a.txt"}),
        ToolCallRequest(name="write_file", arguments={"path": "b.txt", "text": "x"}),
        ToolCallRequest(name="run_terminal_command", arguments={}),
    ]
    assert reply.as_message().role == "assistant"
    assert len(reply.as_message().tool_calls) == 3


def test_missing_message_is_a_backend_error() -> None:
    with pytest.raises(BackendError, match="no message"):
        LLMClient._to_reply(SimpleNamespace(message=None))


def test_none_content_is_treated_as_empty() -> None:
    assert LLMClient._to_reply(_response(None)).content == ""  # type: ignore[arg-type]


def test_http_error_becomes_backend_error() -> None:
    fake = FakeOllama(error=ollama.ResponseError("model not found", status_code=404))
    client = LLMClient(client=fake)  # type: ignore[arg-type]

    with pytest.raises(BackendError, match="HTTP 404"):
        asyncio.run(client.chat([Message(role="user", content="hi")]))


def test_transport_error_becomes_backend_error() -> None:
    fake = FakeOllama(error=httpx.ConnectError("connection refused"))
    client = LLMClient(client=fake)  # type: ignore[arg-type]

    with pytest.raises(BackendError, match="transport error: connection refused"):
        asyncio.run(client.chat([Message(role="user", content="hi")]))
