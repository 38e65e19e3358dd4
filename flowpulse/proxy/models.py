"""Proxy request and response models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class Message(BaseModel):
    """Chat message model."""

    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    """Body accepted by every proxy function.

    Chat functions send ``messages`` (or a single ``message`` string); the
    analyst sends a ``query`` plus ``analysisType`` and an optional company.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    messages: list[Message] | None = None
    message: str | None = None
    query: str | None = None
    stream: bool = False
    analysis_type: str | None = Field(default=None, alias="analysisType")
    company: str | None = None

    def to_messages(self) -> list[Message]:
        """Normalize the accepted body shapes into a message list."""
        if self.messages:
            return list(self.messages)
        text = self.message or self.query
        if text:
            return [Message(role="user", content=text)]
        return []


class ErrorEnvelope(BaseModel):
    """JSON body of every error response."""

    error: str
