"""The agent loop.

One ``send_message`` call drives the model through as many tool-using iterations as needed:

    Dispatch -> AwaitModel -> Inspect -> {Dispatch | Finalize}

Each iteration streams one model turn, parses it, and, if the turn asks for tools, runs them and feeds
a synthesized results message back as the next user turn. The loop ends when the model stops asking
for tools, when any tool fails, or when the iteration budget is spent.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .base import CancellationToken, DeltaCallback, ProgressCallback, ToolExecutor
from .decoder import StreamDecoder
from .dispatcher import ToolDispatcher
from .exceptions import ConfigurationError
from .history import HistoryStore
from .parser import ResponseParser
from .provider import ProviderAdapter
from .toolbox import ToolDescription, Toolbox
from .transport import RetryingTransport
from ..config import ModelSettings, get_settings
from ..prompts.bookkeeping import BookkeepingPrompt
from ..types_.core import (
    AgentResponse,
    ConversationContext,
    FinishReason,
    IterationState,
    ModelTurnResult,
    ToolInvocation,
    ToolOutcome,
    Turn,
)

logger = logging.getLogger(__name__)


def merge_text(*parts: str | None) -> str:
    """Join non-empty parts with a blank line."""
    return "\n\n".join(p for p in parts if p)


def summarize_outcomes(outcomes: Sequence[ToolOutcome]) -> str:
    """Human-readable execution summary: one line per tool plus success counts."""
    lines = []
    for index, outcome in enumerate(outcomes):
        name = outcome.name or f"工具{index + 1}"
        if outcome.success:
            lines.append(f"✅ {name}: 成功")
        else:
            lines.append(f"❌ {name}: 失败: {outcome.error or '未知错误'}")
    summary = "\n".join(lines)

    succeeded = sum(1 for o in outcomes if o.success)
    total = len(outcomes)
    if succeeded == 0:
        return f"抱歉，所有操作都失败了。\n\n执行情况：\n{summary}\n\n请检查网络连接或稍后重试。"
    if succeeded < total:
        return f"已完成部分操作。\n\n执行情况：\n{summary}\n\n{succeeded}/{total} 个操作成功完成。"
    return f"✅ 所有操作已完成。\n\n执行情况：\n{summary}\n\n{succeeded}/{total} 个操作成功完成。"


def summary_suffix(content: str, outcomes: Sequence[ToolOutcome]) -> str:
    """Text appended after ``content`` to report tool outcomes."""
    lead = "" if not content or content.endswith("\n") else "\n"
    return f"{lead}\n---\n\n{summarize_outcomes(outcomes)}"


class Agent:
    """Conversational agent for the bookkeeping assistant.

    Parameters
    ----------
    settings : ModelSettings, optional
        Model configuration; read from the environment when omitted.
    executor : ToolExecutor, optional
        Performs tool side effects. Defaults to an empty ``Toolbox``.
    transport : RetryingTransport, optional
        HTTP transport; built from ``settings`` when omitted.
    decoder, parser, history, prompt : optional
        Collaborators, replaceable for testing.
    max_iterations : int, optional
        Maximum model calls per ``send_message``; defaults to ``settings.max_iterations``.

    Examples
    --------
    >>> agent = Agent(settings, executor=toolbox)
    >>> response = await agent.send_message("记一笔午餐支出50元", context=ConversationContext(book=book))
    >>> response.finish_reason
    'stop'
    """

    def __init__(
        self,
        settings: ModelSettings | None = None,
        executor: ToolExecutor | None = None,
        *,
        transport: RetryingTransport | None = None,
        decoder: StreamDecoder | None = None,
        parser: ResponseParser | None = None,
        history: HistoryStore | None = None,
        prompt: BookkeepingPrompt | None = None,
        max_iterations: int | None = None,
    ):
        self.settings = settings or get_settings()
        self.executor = executor if executor is not None else Toolbox()
        self.adapter = ProviderAdapter(self.settings)
        self._owns_transport = transport is None
        self.transport = transport or RetryingTransport(
            max_retries=self.settings.max_retries,
            retry_delay=self.settings.retry_delay,
            timeout=self.settings.timeout,
        )
        self.decoder = decoder or StreamDecoder()
        self.parser = parser or ResponseParser()
        self.history = history or HistoryStore(self.settings.history_size, self.settings.recent_window)
        self.dispatcher = ToolDispatcher(self.executor)
        self.prompt = prompt or BookkeepingPrompt()
        self.max_iterations = max_iterations or self.settings.max_iterations
        if self.max_iterations <= 0:
            raise ValueError("max_iterations must be > 0")

        self._token: CancellationToken | None = None

    def cancel(self) -> None:
        """Cancel the in-flight ``send_message`` call, if any."""
        if self._token is not None:
            logger.info("Cancelling in-flight message")
            self._token.cancel()

    def clear_history(self) -> None:
        self.history.clear()

    async def aclose(self) -> None:
        """Close the transport if this agent created it."""
        if self._owns_transport:
            await self.transport.aclose()

    async def __aenter__(self) -> Agent:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def tool_descriptions(self) -> list[ToolDescription]:
        describe = getattr(self.executor, "describe", None)
        return list(describe()) if callable(describe) else []

    async def send_message(
        self,
        message: str,
        on_delta: DeltaCallback | None = None,
        *,
        context: ConversationContext | None = None,
        on_progress: ProgressCallback | None = None,
        token: CancellationToken | None = None,
    ) -> AgentResponse:
        """Send a user message and run the agent loop to completion.

        Parameters
        ----------
        message : str
            The user's message.
        on_delta : DeltaCallback, optional
            Receives display text as ``(delta, False)`` while streaming, then ``("", True)`` exactly once at the end.
            Not called again after cancellation.
        context : ConversationContext, optional
            Active book, user and server for this call.
        on_progress : ProgressCallback, optional
            Receives tool execution progress events.
        token : CancellationToken, optional
            Shared cancellation flag; one is created when omitted (see ``cancel``).

        Returns
        -------
        AgentResponse
            The final text and how the loop ended. Transport and unexpected errors are reported in
            ``error`` rather than raised.

        Raises
        ------
        ConfigurationError
            If no API key is configured. Raised before any request is made.
        """
        if not self.settings.is_configured():
            raise ConfigurationError("AI配置未完成，请先配置API Key")

        token = token or CancellationToken()
        self._token = token
        state = IterationState()
        pushed: list[Turn] = []
        tool_calls: list[ToolInvocation] = []
        outcomes: list[ToolOutcome] = []
        thoughts: list[str] = []

        def emit(delta: str, done: bool = False) -> None:
            if on_delta is not None and not token.cancelled:
                on_delta(delta, done)

        def finish(text: str, reason: FinishReason) -> AgentResponse:
            self.history.append("assistant", text)
            emit("", True)
            logger.debug(f"Finished after {state.iteration} iteration(s): {reason}")
            return AgentResponse(
                text=text,
                thinking=merge_text(*thoughts) or None,
                tool_calls=tool_calls or None,
                outcomes=outcomes,
                iterations=state.iteration,
                finish_reason=reason,
            )

        pushed.append(self.history.append("user", message))

        try:
            while True:
                if token.cancelled:
                    return self._rollback(state, pushed)

                # Dispatch / AwaitModel
                state.iteration += 1
                logger.info(f"Iteration {state.iteration}/{self.max_iterations}")
                turn = await self._model_turn(state, context, emit, token)

                # Inspect
                if token.cancelled:
                    return self._rollback(state, pushed)
                if turn.thinking:
                    thoughts.append(turn.thinking)

                if not turn.tool_calls:
                    return finish(merge_text(state.accumulated_text, turn.text), "stop")

                tool_calls.extend(turn.tool_calls)
                batch = await self.dispatcher.execute(turn.tool_calls, context, on_progress)
                outcomes.extend(batch)
                if token.cancelled:
                    return self._rollback(state, pushed)

                state.accumulated_text = merge_text(state.accumulated_text, turn.text)

                if not all(o.success for o in batch):
                    suffix = summary_suffix(state.accumulated_text, batch)
                    emit(suffix)
                    state.displayed += suffix
                    return finish(state.accumulated_text + suffix, "tool_error")

                if state.iteration >= self.max_iterations:
                    logger.warning(f"Reached maximum iterations ({self.max_iterations})")
                    text = f"已达到最大处理次数（{self.max_iterations}）。\n\n{state.accumulated_text or '处理可能未完成。'}"
                    return finish(text, "max_iterations")

                pushed.append(self.history.append("user", self.prompt.render_tool_results(batch)))

        except Exception as e:
            if token.cancelled:
                return self._rollback(state, pushed)

            logger.error(f"Message processing failed: {e!r}", exc_info=logger.isEnabledFor(logging.DEBUG))
            emit("", True)
            return AgentResponse(
                text=f"抱歉，AI处理失败：{e}\n\n请检查网络连接或稍后重试。",
                tool_calls=tool_calls or None,
                outcomes=outcomes,
                iterations=state.iteration,
                finish_reason="error",
                error=str(e),
            )
        finally:
            if self._token is token:
                self._token = None

    async def _model_turn(
        self,
        state: IterationState,
        context: ConversationContext | None,
        emit: DeltaCallback,
        token: CancellationToken,
    ) -> ModelTurnResult:
        """Stream one model turn, forwarding display text as it becomes stable."""
        messages = [{"role": "system", "content": self.prompt.render_system(self.tool_descriptions(), context)}]
        messages.extend(turn.to_message() for turn in self.history.recent())
        body = self.adapter.request_body(messages, stream=True)

        shown = ""

        def forward(delta: str, done: bool) -> None:
            nonlocal shown
            if token.cancelled:
                return
            # on completion, flush text held back in case it opened a block
            visible = self.parser.display_text(self.decoder.text, final=done).lstrip()
            if len(visible) <= len(shown) or not visible.startswith(shown):
                return
            chunk = visible[len(shown) :]
            if not shown and state.displayed:
                chunk = "\n\n" + chunk
            shown = visible
            state.displayed += chunk
            emit(chunk, False)

        async with self.transport.stream(self.adapter.endpoint, self.adapter.headers(), body) as response:
            raw = await self.decoder.decode(response, forward, token=token)

        state.streamed_text += raw
        parsed = self.parser.parse(raw)
        logger.debug(
            f"Model turn: {len(raw)} chars, {len(parsed.tool_calls or [])} tool call(s)",
        )
        return ModelTurnResult(
            text=parsed.text,
            thinking=parsed.thinking or self.decoder.reasoning or None,
            tool_calls=parsed.tool_calls,
        )

    def _rollback(self, state: IterationState, pushed: list[Turn]) -> AgentResponse:
        state.cancelled = True
        for turn in reversed(pushed):
            self.history.remove(turn)
        logger.info(f"Message cancelled during iteration {state.iteration}; rolled back {len(pushed)} turn(s)")
        return AgentResponse(
            text=state.accumulated_text,
            iterations=state.iteration,
            finish_reason="cancelled",
        )
