from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .base import JSON
from ..utilities import format_json, now_utc

Role = Literal["assistant", "system", "user"]
Provider = Literal["openai", "anthropic", "google", "deepseek", "custom"]
FinishReason = Literal["stop", "tool_error", "max_iterations", "cancelled", "error"]


class Turn(BaseModel):
    """One entry of the conversation transcript."""

    model_config = ConfigDict(frozen=True)

    role: Role = Field(description="The role of the message author.")
    content: str = Field(description="The contents of the message.")
    timestamp: datetime = Field(default_factory=now_utc)

    def __repr__(self):
        return format_json(self.model_dump(mode="json"))

    def to_message(self) -> dict[str, str]:
        """Render as a provider chat message."""
        return {"role": self.role, "content": self.content}


class ToolInvocation(BaseModel, extra="ignore"):
    name: str = Field(description="Name of the tool to invoke.", min_length=1)
    arguments: JSON = Field(default_factory=dict, description="Tool arguments, usually an object.")


class ToolOutcome(BaseModel):
    name: str
    success: bool
    result: Any = None
    error: str | None = None


class ToolResult(BaseModel):
    """Value returned by a tool executor."""

    data: Any = None
    message: str = "工具调用成功"


class ToolProgress(BaseModel):
    phase: Literal["started", "succeeded", "failed"]
    index: int
    name: str
    outcome: ToolOutcome | None = None


class ParsedResponse(BaseModel):
    text: str = ""
    thinking: str | None = None
    tool_calls: list[ToolInvocation] | None = None


class ModelTurnResult(BaseModel):
    text: str = ""
    thinking: str | None = None
    tool_calls: list[ToolInvocation] | None = None
    error: str | None = None


class AgentResponse(BaseModel):
    """Structured result of one ``send_message`` call."""

    text: str = ""
    thinking: str | None = None
    tool_calls: list[ToolInvocation] | None = None
    outcomes: list[ToolOutcome] = Field(default_factory=list)
    iterations: int = 0
    finish_reason: FinishReason = "stop"
    error: str | None = None

    @property
    def cancelled(self) -> bool:
        return self.finish_reason == "cancelled"


# Conversation context, passed explicitly into every call
class BookInfo(BaseModel):
    book_id: str = Field(min_length=1)
    book_name: str = "当前账本"
    created_at: datetime | None = None


class UserInfo(BaseModel, extra="ignore"):
    id: str | int | None = None
    name: str | None = None
    email: str | None = None


class ServerInfo(BaseModel, extra="ignore"):
    name: str | None = None
    url: str | None = None


class ConversationContext(BaseModel):
    book: BookInfo | None = None
    user: UserInfo | None = None
    server: ServerInfo | None = None
    now: datetime = Field(default_factory=lambda: datetime.now().astimezone())


@dataclass
class IterationState:
    """Mutable state of a single ``send_message`` call."""

    iteration: int = 0
    accumulated_text: str = ""
    streamed_text: str = ""
    displayed: str = ""
    cancelled: bool = False
