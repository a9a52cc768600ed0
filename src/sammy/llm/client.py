"""Thin async client for the Ollama chat backend."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol

import httpx
import ollama

from sammy.agent.models import Message, ToolCallRequest
from sammy.errors import BackendError

LOGGER = logging.getLogger(__name__)

DEFAULT_HOST = "http://localhost:11434"
DEFAULT_MODEL = "ministral-3:8b"
DEFAULT_CONTEXT_LENGTH = 42000


@dataclass(slots=True)
class ModelReply:
    """One backend response: final text or requested tool calls."""

    content: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)

    def as_message(self) -> Message:
        return Message(role="assistant", content=self.content, tool_calls=tuple(self.tool_calls))


class ChatBackend(Protocol):
    async def chat(
        self,
        messages: Sequence[Message],
        *,
        tools: Sequence[Mapping[str, object]] | None = None,
    ) -> ModelReply: ...


class LLMClient:
    """Sends role-tagged messages to the model backend, one request at a time."""

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL,
        host: str = DEFAULT_HOST,
        context_length: int = DEFAULT_CONTEXT_LENGTH,
        timeout: float | None = None,
        client: ollama.AsyncClient | None = None,
    ) -> None:
        self.model = model
        self.host = host
        self.context_length = context_length
        self.timeout = timeout
        self._client = client or ollama.AsyncClient(host=host, timeout=timeout)

    async def chat(
        self,
        messages: Sequence[Message],
        *,
        tools: Sequence[Mapping[str, object]] | None = None,
    ) -> ModelReply:
        payload = [message.to_payload() for message in messages]
        LOGGER.debug(
            "llm_request_prepared",
            extra={
                "host": self.host,
                "model": self.model,
                "messages": len(payload),
                "payload_chars": sum(len(str(item.get("content", ""))) for item in payload),
                "tools": len(tools or ()),
                "context_length": self.context_length,
            },
        )

        try:
            response = await self._client.chat(
                model=self.model,
                messages=payload,
                tools=list(tools) if tools else None,
                options={"num_ctx": self.context_length},
            )
        except ollama.ResponseError as exc:
            LOGGER.error(
                "llm_request_http_error",
                extra={
                    "host": self.host,
                    "model": self.model,
                    "http_status": exc.status_code,
                    "reason": exc.error,
                },
            )
            msg = f"Model request failed with HTTP {exc.status_code}: {exc.error}"
            raise BackendError(msg) from exc
        except (httpx.HTTPError, ConnectionError) as exc:
            LOGGER.error(
                "llm_request_transport_error",
                extra={"host": self.host, "model": self.model, "reason": str(exc)},
            )
            msg = f"Model request transport error: {exc}"
            raise BackendError(msg) from exc

        return self._to_reply(response)

    @classmethod
    def _to_reply(cls, response: object) -> ModelReply:
        message = getattr(response, "message", None)
        if message is None:
            raise BackendError("Model response parsing error: no message returned")

        content = getattr(message, "content", None) or ""
        if not isinstance(content, str):
            raise BackendError("Model response parsing error: non-string content")

        tool_calls: list[ToolCallRequest] = []
        for call in getattr(message, "tool_calls", None) or []:
            function = getattr(call, "function", None)
            name = getattr(function, "name", None)
            if not isinstance(name, str) or not name:
                LOGGER.warning("llm_tool_call_without_name")
                continue
            tool_calls.append(
                ToolCallRequest(name=name, arguments=cls._coerce_arguments(function.arguments))
            )
        return ModelReply(content=content, tool_calls=tool_calls)

    @staticmethod
    def _coerce_arguments(raw: object) -> dict[str, object]:
        if isinstance(raw, str):
            try:
                raw = json.loads(raw) if raw.strip() else {}
            except json.JSONDecodeError:
                return {}
        if isinstance(raw, Mapping):
            return {str(key): value for key, value in raw.items()}
        return {}
