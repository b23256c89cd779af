from __future__ import annotations

from typing import Literal, Protocol, Sequence

from pydantic import BaseModel, Field


class HistoryItem(BaseModel):
    """One prior turn as the backend sees it."""

    role: Literal["user", "model"]
    text: str


class ChatRequest(BaseModel):
    history: list[HistoryItem] = Field(default_factory=list)
    message: str


class ChatProvider:
    name: str

    async def generate(self, history: Sequence[HistoryItem], message: str) -> str:
        """Return the raw generation text for *message* given *history*."""
        raise NotImplementedError


class ReplyBackend(Protocol):
    async def generate_reply(self, history: list[dict[str, str]], message: str) -> str: ...


__all__ = ["HistoryItem", "ChatRequest", "ChatProvider", "ReplyBackend"]
