"""Interpret free-form model output.

``ResponseParser.parse`` separates an optional reasoning segment and an optional fenced tool-call block from the text shown to the user.
Parsing is pure and never raises; unrecognised or malformed structure degrades to plain text.
"""

from __future__ import annotations

import logging
import re
from typing import Sequence

import json_repair
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .base import ReasoningMatch, ReasoningMatcher
from ..types_.core import ParsedResponse, ToolInvocation
from ..utilities.parse import extract_json

logger = logging.getLogger(__name__)


class TaggedBlockMatcher:
    """Reasoning wrapped in paired delimiters, e.g. ``<think>...</think>``."""

    def __init__(self, open_pattern: str, close_pattern: str):
        self.pattern = re.compile(rf"{open_pattern}(.*?){close_pattern}", re.DOTALL | re.IGNORECASE)

    def match(self, text: str) -> ReasoningMatch | None:
        m = self.pattern.search(text)
        if m is None or not m.group(1).strip():
            return None
        return ReasoningMatch(m.group(1).strip(), m.start(), m.end())


class LabelledParagraphMatcher:
    """A paragraph introduced by a label such as ``Thinking:`` or ``思考：``."""

    def __init__(self, labels: Sequence[str]):
        alternatives = "|".join(re.escape(label) for label in labels)
        self.pattern = re.compile(
            rf"^[ \t]*(?:\*\*)?(?:{alternatives})(?:\*\*)?[ \t]*[:：](?:\*\*)?(.*?)(?:\n[ \t]*\n|\Z)",
            re.DOTALL | re.IGNORECASE | re.MULTILINE,
        )

    def match(self, text: str) -> ReasoningMatch | None:
        m = self.pattern.search(text)
        if m is None or not m.group(1).strip():
            return None
        return ReasoningMatch(m.group(1).strip(), m.start(), m.end())


class LeadingPhraseMatcher:
    """An opening paragraph of analytical phrasing, followed by a blank line."""

    def __init__(self, phrases: Sequence[str]):
        alternatives = "|".join(re.escape(phrase) for phrase in phrases)
        self.pattern = re.compile(rf"\A\s*((?:{alternatives}).*?)\n[ \t]*\n", re.DOTALL | re.IGNORECASE)

    def match(self, text: str) -> ReasoningMatch | None:
        m = self.pattern.search(text)
        if m is None:
            return None
        return ReasoningMatch(m.group(1).strip(), m.start(), m.end())


DEFAULT_MATCHERS: list[ReasoningMatcher] = [
    TaggedBlockMatcher(r"<think>", r"</think>"),
    TaggedBlockMatcher(r"<thinking>", r"</thinking>"),
    TaggedBlockMatcher(r"<reasoning>", r"</reasoning>"),
    TaggedBlockMatcher(r"\[THINKING\]", r"\[/THINKING\]"),
    TaggedBlockMatcher(r"\[思考\]", r"\[/思考\]"),
    LabelledParagraphMatcher(["Thinking", "Reasoning", "Thought", "思考", "思考过程", "分析"]),
    LeadingPhraseMatcher(["让我分析", "让我思考", "让我想想", "我来分析", "Let me think", "Let me analyze"]),
]

TOOL_BLOCK_PATTERN = re.compile(r"```json\s*(.*?)```|<json>(.*?)</json>", re.DOTALL | re.IGNORECASE)
EXCESS_NEWLINES = re.compile(r"\n{3,}")

# Openers whose closing delimiter may still be streaming in
_PENDING_BLOCKS: list[tuple[str, str]] = [
    ("```", "```"),
    ("<json>", "</json>"),
    ("<think>", "</think>"),
    ("<thinking>", "</thinking>"),
    ("<reasoning>", "</reasoning>"),
    ("[thinking]", "[/thinking]"),
    ("[思考]", "[/思考]"),
]


class ToolCallBlock(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    tool_calls: list[ToolInvocation] = Field(alias="toolCalls")


def extract_reasoning(
    text: str, matchers: Sequence[ReasoningMatcher] = DEFAULT_MATCHERS
) -> tuple[str | None, str]:
    """Split reasoning from text; the first matching matcher wins.

    Returns
    -------
    tuple[str | None, str]
        The reasoning (or None) and the remaining text.
    """
    for matcher in matchers:
        found = matcher.match(text)
        if found is None:
            continue
        remainder = (text[: found.start] + text[found.end :]).strip()
        if not remainder:
            remainder = text[found.end :].strip()
        return found.reasoning, remainder
    return None, text


def extract_tool_calls(text: str) -> tuple[list[ToolInvocation] | None, str]:
    """Find the first fenced block that carries a ``toolCalls`` array.

    Returns the invocations and the text with that block removed, or ``(None, text)``.
    """
    for m in TOOL_BLOCK_PATTERN.finditer(text):
        body = m.group(1) if m.group(1) is not None else m.group(2)
        if "toolCalls" not in body:
            continue
        try:
            document = json_repair.loads(extract_json(body))
            block = ToolCallBlock.model_validate(document)
        except (ValidationError, ValueError, TypeError, RecursionError) as e:
            logger.debug(f"Ignoring malformed tool-call block: {e}")
            return None, text
        return block.tool_calls, text[: m.start()] + text[m.end() :]
    return None, text


def normalize_whitespace(text: str) -> str:
    return EXCESS_NEWLINES.sub("\n\n", text).strip()


def stable_prefix(text: str) -> str:
    """Longest prefix of partial output that is safe to display while streaming.

    Holds back an unclosed fenced block or reasoning tag, and a trailing fragment that could be the start of one.
    """
    lowered = text.lower()
    pos = 0
    while True:
        openings = [(lowered.find(opener, pos), opener, closer) for opener, closer in _PENDING_BLOCKS]
        openings = [o for o in openings if o[0] != -1]
        if not openings:
            break
        start, opener, closer = min(openings, key=lambda o: o[0])
        close = lowered.find(closer, start + len(opener))
        if close == -1:
            return text[:start]
        pos = close + len(closer)

    for opener, _ in _PENDING_BLOCKS:
        for size in range(len(opener) - 1, 0, -1):
            if lowered.endswith(opener[:size]) and len(text) - size >= pos:
                return text[: len(text) - size]
    return text


_HIDDEN_BLOCKS = re.compile(
    r"<think>.*?</think>|<thinking>.*?</thinking>|<reasoning>.*?</reasoning>"
    r"|\[THINKING\].*?\[/THINKING\]|\[思考\].*?\[/思考\]",
    re.DOTALL | re.IGNORECASE,
)


def _hide_tool_block(m: re.Match) -> str:
    body = m.group(1) if m.group(1) is not None else m.group(2)
    return "" if "toolCalls" in body else m.group(0)


class ResponseParser:
    """Split model output into display text, reasoning and tool invocations."""

    def __init__(self, matchers: Sequence[ReasoningMatcher] | None = None):
        self.matchers = list(DEFAULT_MATCHERS if matchers is None else matchers)

    def parse(self, text: str | None) -> ParsedResponse:
        if not text:
            return ParsedResponse(text="")
        try:
            thinking, remainder = extract_reasoning(text, self.matchers)
            tool_calls, remainder = extract_tool_calls(remainder)
            return ParsedResponse(
                text=normalize_whitespace(remainder),
                thinking=thinking,
                tool_calls=tool_calls or None,
            )
        except Exception:
            logger.exception("Unexpected failure parsing model output; returning it as plain text")
            return ParsedResponse(text=normalize_whitespace(text))

    @staticmethod
    def display_text(partial: str, final: bool = False) -> str:
        """Text to show for a partial stream.

        Closed reasoning tags and tool-call blocks are hidden; open ones are held back unless ``final``
        (the stream has ended). Successive results for a growing input only ever extend each other.

        Only delimited reasoning is hidden. Labelled (``思考：``) and leading-phrase (``让我分析…``)
        paragraphs cannot be told apart from an answer until they end, so they stream as ordinary text
        and only ``parse`` moves them into ``thinking``.
        """
        visible = partial if final else stable_prefix(partial)
        visible = _HIDDEN_BLOCKS.sub("", visible)
        return TOOL_BLOCK_PATTERN.sub(_hide_tool_block, visible)
