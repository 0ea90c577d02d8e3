"""Core protocols for the conversation engine.

This module defines the seams between the agent loop and its collaborators:
tool executors, reasoning matchers, and the callbacks used to report progress to a UI.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, NamedTuple, Protocol

from typing_extensions import runtime_checkable

from ..types_.base import JSON
from ..types_.core import BookInfo, ToolProgress, ToolResult

logger = logging.getLogger(__name__)

DeltaCallback = Callable[[str, bool], None]
ReasoningCallback = Callable[[str], None]
ProgressCallback = Callable[[ToolProgress], None]


class ReasoningMatch(NamedTuple):
    reasoning: str
    start: int
    end: int


@runtime_checkable
class ReasoningMatcher(Protocol):
    """Protocol for objects that locate a reasoning segment in model output."""

    def match(self, text: str) -> ReasoningMatch | None:
        """Find a reasoning span.

        Parameters
        ----------
        text : str
            Model output to search.

        Returns
        -------
        ReasoningMatch or None
            The reasoning text and the span to remove from ``text``, or None when there is no match.
        """
        ...


@runtime_checkable
class ToolExecutor(Protocol):
    """Protocol for the collaborator that performs tool side effects.

    Implementations should raise with a descriptive message on failure.
    ``call_tool`` may be a coroutine function or a plain function.
    """

    def call_tool(
        self, name: str, arguments: JSON, book: BookInfo | None
    ) -> Awaitable[ToolResult | Any] | ToolResult | Any:
        """Execute a tool.

        Parameters
        ----------
        name : str
            Registered tool name.
        arguments : JSON
            Arguments produced by the model.
        book : BookInfo or None
            The active ledger for this batch, if one is selected.

        Returns
        -------
        ToolResult or Any
            The tool's result; ``ToolResult.data`` is unwrapped by the dispatcher.
        """
        ...


class CancellationToken:
    """Cooperative cancellation flag shared by one in-flight call."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if not self._cancelled:
            logger.debug("Cancellation requested")
        self._cancelled = True
