"""Classifies incoming tasks as conversation or work."""

from __future__ import annotations

import logging

from sammy.agent.models import Message, Route
from sammy.agent.prompts import CHAT_PROMPT, ROUTER_PROMPT
from sammy.llm.client import ChatBackend

LOGGER = logging.getLogger(__name__)


class TaskRouter:
    """Single-call router; anything it cannot read as CHAT is treated as ACTION."""

    def __init__(self, backend: ChatBackend) -> None:
        self.backend = backend

    async def route(self, task: str) -> Route:
        reply = await self.backend.chat(
            [
                Message(role="system", content=ROUTER_PROMPT),
                Message(role="user", content=task),
            ]
        )
        route = classify_route(reply.content)
        LOGGER.info("task_routed", extra={"route": route.value, "raw": reply.content[:80]})
        return route

    async def reply(self, task: str) -> str:
        reply = await self.backend.chat(
            [
                Message(role="system", content=CHAT_PROMPT),
                Message(role="user", content=task),
            ]
        )
        return reply.content.strip()


def classify_route(text: str) -> Route:
    normalized = text.upper()
    if Route.ACTION.value in normalized:
        return Route.ACTION
    if Route.CHAT.value in normalized:
        return Route.CHAT
    return Route.ACTION
