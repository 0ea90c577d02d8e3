"""Core components of the conversation engine.

This module provides the history store, provider adapter, retrying transport, stream decoder,
response parser, tool dispatcher, and the agent loop that drives them.
"""

from .base import CancellationToken, ReasoningMatch, ReasoningMatcher, ToolExecutor
from .decoder import StreamDecoder, extract_message_text
from .dispatcher import ToolDispatcher
from .exceptions import (
    ConfigurationError,
    LedgerAgentError,
    ProviderConnectionError,
    ProviderError,
    ProviderHTTPError,
    ToolExecutionError,
    ValidationError,
)
from .history import HistoryStore
from .parser import ResponseParser
from .provider import ProviderAdapter
from .tool import Tool, tool
from .toolbox import ToolDescription, Toolbox
from .transport import RetryingTransport
from .agent import Agent  # NOQA: I001

__all__ = [
    # Protocols
    "ReasoningMatcher",
    "ReasoningMatch",
    "ToolExecutor",
    "CancellationToken",
    # Pipeline
    "HistoryStore",
    "ProviderAdapter",
    "RetryingTransport",
    "StreamDecoder",
    "extract_message_text",
    "ResponseParser",
    "ToolDispatcher",
    "Agent",
    # Tools
    "Tool",
    "tool",
    "Toolbox",
    "ToolDescription",
    # Exceptions
    "LedgerAgentError",
    "ConfigurationError",
    "ProviderError",
    "ProviderHTTPError",
    "ProviderConnectionError",
    "ToolExecutionError",
    "ValidationError",
]
