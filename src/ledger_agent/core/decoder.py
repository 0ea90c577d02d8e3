"""Decode provider event streams into text deltas.

Two delivery modes are supported behind one line iterator: incremental chunks (an async iterable
or an unread streaming ``httpx.Response``) and a fully buffered body (``str``, ``bytes`` or a read
response) that is re-split on newlines. Both produce the same deltas.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Callable

import httpx

from .base import CancellationToken, DeltaCallback, ReasoningCallback
from ..utilities import decode_bytes

logger = logging.getLogger(__name__)

DONE_MARKERS = frozenset({"[DONE]", "data: [DONE]"})

EnvelopeAdapter = Callable[[Any], str | None]


def _walk(document: Any, path: tuple[str | int, ...]) -> Any:
    node = document
    for key in path:
        if isinstance(key, int):
            if not isinstance(node, list) or len(node) <= key:
                return None
            node = node[key]
        else:
            if not isinstance(node, dict):
                return None
            node = node.get(key)
        if node is None:
            return None
    return node


def envelope(*path: str | int) -> EnvelopeAdapter:
    """Build an adapter returning the string at ``path``, or None."""

    def adapter(document: Any) -> str | None:
        value = _walk(document, path)
        return value if isinstance(value, str) and value else None

    adapter.__name__ = ".".join(str(p) for p in path)
    return adapter


DELTA_ADAPTERS: list[EnvelopeAdapter] = [
    envelope("choices", 0, "delta", "content"),
    envelope("content"),
    envelope("result", "choices", 0, "delta", "content"),
    envelope("text"),
    envelope("message", "content"),
]

MESSAGE_ADAPTERS: list[EnvelopeAdapter] = [
    envelope("choices", 0, "message", "content"),
    envelope("content"),
    envelope("result", "choices", 0, "message", "content"),
    envelope("message", "content"),
]

REASONING_ADAPTERS: list[EnvelopeAdapter] = [
    envelope("choices", 0, "delta", "reasoning_content"),
    envelope("reasoning_content"),
    envelope("choices", 0, "delta", "thinking"),
]


def first_match(adapters: list[EnvelopeAdapter], document: Any) -> str | None:
    for adapter in adapters:
        value = adapter(document)
        if value:
            return value
    return None


def extract_delta(frame: Any) -> str | None:
    """Text delta carried by one stream frame.

    Streaming envelopes are tried first; a non-stream body delivered as a single frame falls back to the message envelopes.
    """
    return first_match(DELTA_ADAPTERS, frame) or first_match(MESSAGE_ADAPTERS, frame)


def extract_message_text(document: Any) -> str:
    """Message text of a non-stream response document ("" if no known envelope matches)."""
    return first_match(MESSAGE_ADAPTERS, document) or ""


def parse_frame(line: str) -> tuple[bool, Any]:
    """Interpret one line of the stream.

    Returns
    -------
    tuple[bool, Any]
        ``(done, frame)``; ``frame`` is None for lines to skip.
    """
    line = line.strip()
    if not line:
        return False, None
    if line in DONE_MARKERS:
        return True, None

    if line.startswith("data:"):
        payload = line[len("data:") :].strip()
        if payload == "[DONE]":
            return True, None
    elif line.startswith("{"):
        payload = line
    else:
        return False, None

    try:
        frame = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug(f"Skipping non-JSON frame: {payload[:80]!r}")
        return False, None
    return False, frame


async def _split_lines(chunks: AsyncIterable[str | bytes]) -> AsyncIterator[str]:
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    async for chunk in chunks:
        buffer += decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        *lines, buffer = buffer.split("\n")
        for line in lines:
            yield line
    buffer += decoder.decode(b"", final=True)
    if buffer:
        yield buffer


async def _buffered_lines(text: str) -> AsyncIterator[str]:
    # only "\n" separates lines, as in the incremental path
    for line in text.split("\n"):
        yield line


def iter_lines(source: httpx.Response | AsyncIterable[str | bytes] | str | bytes) -> AsyncIterator[str]:
    """Single line iterator over every supported delivery mode."""
    if isinstance(source, str):
        return _buffered_lines(source)
    if isinstance(source, bytes):
        return _buffered_lines(decode_bytes(source))
    if isinstance(source, httpx.Response):
        try:
            body = source.content
        except httpx.ResponseNotRead:
            logger.debug("Reading response incrementally")
            return _split_lines(source.aiter_text())
        logger.debug("Response already buffered, re-splitting body")
        return _buffered_lines(decode_bytes(body, source.charset_encoding))
    return _split_lines(source)


class StreamDecoder:
    """Accumulate streamed model output and forward deltas to a callback.

    After ``decode`` returns, ``text`` holds the accumulated output and ``reasoning`` any separately streamed reasoning.
    """

    def __init__(self):
        self.text = ""
        self.reasoning = ""

    async def decode(
        self,
        source: httpx.Response | AsyncIterable[str | bytes] | str | bytes,
        on_delta: DeltaCallback | None = None,
        *,
        on_reasoning: ReasoningCallback | None = None,
        token: CancellationToken | None = None,
    ) -> str:
        """Decode a stream to completion.

        Parameters
        ----------
        source : httpx.Response | AsyncIterable | str | bytes
            Response or body to decode.
        on_delta : DeltaCallback, optional
            Called with ``(delta, False)`` per delta, then once with ``("", True)``.
        on_reasoning : ReasoningCallback, optional
            Called with each reasoning delta.
        token : CancellationToken, optional
            Once cancelled, no further callbacks are made; the rest of the stream is drained and discarded.

        Returns
        -------
        str
            The accumulated text.
        """
        self.text = ""
        self.reasoning = ""
        frames = 0

        async for line in iter_lines(source):
            done, frame = parse_frame(line)
            if done:
                logger.debug("End-of-stream marker received")
                break
            if frame is None:
                continue
            frames += 1
            if token is not None and token.cancelled:
                continue

            reasoning = first_match(REASONING_ADAPTERS, frame)
            if reasoning:
                self.reasoning += reasoning
                if on_reasoning is not None:
                    on_reasoning(reasoning)

            delta = extract_delta(frame)
            if delta is None:
                if not reasoning:
                    logger.debug(f"Dropping frame without text: {str(frame)[:120]}")
                continue

            self.text += delta
            if on_delta is not None:
                on_delta(delta, False)

        logger.debug(f"Decoded {frames} frames, {len(self.text)} chars")
        if on_delta is not None and not (token is not None and token.cancelled):
            on_delta("", True)
        return self.text
