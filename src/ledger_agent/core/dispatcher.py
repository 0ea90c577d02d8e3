from __future__ import annotations

import inspect
import logging
from typing import Sequence

from .base import ProgressCallback, ToolExecutor
from ..types_.core import ConversationContext, ToolInvocation, ToolOutcome, ToolProgress, ToolResult

logger = logging.getLogger(__name__)

MISSING_BOOK_HINT = "（可能原因：未选择当前账本）"


class ToolDispatcher:
    """Run tool invocations one at a time, in order.

    A failing tool is recorded in its outcome and never prevents the remaining tools from running.
    """

    def __init__(self, executor: ToolExecutor):
        self.executor = executor

    async def execute(
        self,
        tool_calls: Sequence[ToolInvocation],
        context: ConversationContext | None = None,
        progress: ProgressCallback | None = None,
    ) -> list[ToolOutcome]:
        """Execute a batch of tool invocations.

        Parameters
        ----------
        tool_calls : Sequence[ToolInvocation]
            Invocations in the order the model produced them.
        context : ConversationContext, optional
            Resolved once; its book is passed to every invocation in the batch.
        progress : ProgressCallback, optional
            Receives a ``started`` event and then a ``succeeded`` or ``failed`` event per invocation.

        Returns
        -------
        list[ToolOutcome]
            One outcome per invocation, in input order.
        """
        book = context.book if context is not None else None
        if book is None:
            logger.warning("No book selected; tools needing a ledger will likely fail")

        outcomes = []
        for index, call in enumerate(tool_calls):
            self._notify(progress, ToolProgress(phase="started", index=index, name=call.name))
            logger.debug(f"Calling tool {call.name} ({index + 1}/{len(tool_calls)})")
            try:
                result = self.executor.call_tool(call.name, call.arguments, book)
                if inspect.isawaitable(result):
                    result = await result
                if isinstance(result, ToolResult):
                    result = result.data
                outcome = ToolOutcome(name=call.name, success=True, result=result)
            except Exception as e:
                error = str(e) or type(e).__name__
                if book is None:
                    error = f"{error}{MISSING_BOOK_HINT}"
                logger.warning(f"Tool {call.name} failed: {error}")
                outcome = ToolOutcome(name=call.name, success=False, error=error)

            outcomes.append(outcome)
            phase = "succeeded" if outcome.success else "failed"
            self._notify(progress, ToolProgress(phase=phase, index=index, name=call.name, outcome=outcome))

        return outcomes

    @staticmethod
    def _notify(progress: ProgressCallback | None, event: ToolProgress) -> None:
        if progress is not None:
            progress(event)
