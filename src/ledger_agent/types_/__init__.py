from .base import JSON
from .core import (
    AgentResponse,
    BookInfo,
    ConversationContext,
    IterationState,
    ModelTurnResult,
    ParsedResponse,
    Provider,
    Role,
    ServerInfo,
    ToolInvocation,
    ToolOutcome,
    ToolProgress,
    ToolResult,
    Turn,
    UserInfo,
)

__all__ = [
    "JSON",
    "AgentResponse",
    "BookInfo",
    "ConversationContext",
    "IterationState",
    "ModelTurnResult",
    "ParsedResponse",
    "Provider",
    "Role",
    "ServerInfo",
    "ToolInvocation",
    "ToolOutcome",
    "ToolProgress",
    "ToolResult",
    "Turn",
    "UserInfo",
]
