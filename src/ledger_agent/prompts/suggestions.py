"""Prompt suggestions for partially typed user input."""

from __future__ import annotations

import asyncio
import logging
import re

from jinja2 import Environment, StrictUndefined

from ..config import ModelSettings, get_settings
from ..core.decoder import extract_message_text
from ..core.provider import ProviderAdapter
from ..core.transport import RetryingTransport

logger = logging.getLogger(__name__)

SUGGESTION_TIMEOUT = 10.0
SUGGESTION_MAX_TOKENS = 200

DEFAULT_SUGGESTIONS = [
    "记一笔餐饮支出50元",
    "查看本月消费统计",
    "分析餐饮类别的花费",
    "设置本月预算3000元",
    "查看最近的流水记录",
    "统计年度收入总额",
    "查找重复的流水记录",
    "查看可以平账的流水",
]

# (keywords in the input, keywords a matching suggestion must contain)
_KEYWORD_RULES: list[tuple[tuple[str, ...], tuple[str, ...]]] = [
    (("记", "支出", "收入"), ("记一笔",)),
    (("查看", "统计"), ("查看", "统计")),
    (("分析",), ("分析",)),
    (("预算",), ("预算",)),
    (("重复",), ("重复",)),
    (("平账",), ("平账",)),
]

_ENUMERATOR = re.compile(r"^[\d一二三四五六七八九十]+[\.、)\]\s]*\s*")

_env = Environment(undefined=StrictUndefined)

suggestion_system_template = _env.from_string(
    """
你是一个个人记账助手的提示建议生成器。
你的任务是根据用户的部分输入，生成{{ count }}个相关的、简洁的完整提示建议。

要求：
1. 每个建议应该是一个完整的、可执行的句子
2. 建议应该基于用户的输入进行扩展
3. 建议应该与记账应用相关，包括：记录交易、查询数据、分析趋势、预算管理等
4. 每个建议不超过20个字
5. 用中文回复
6. 返回纯文本，每行一个建议，不要编号

用户输入：{{ user_input }}

请生成{{ count }}个建议：
""".strip()
)

suggestion_user_template = _env.from_string('根据我的输入"{{ user_input }}"，生成{{ count }}个相关的记账提示建议。')


def parse_suggestions(text: str, count: int) -> list[str]:
    """One suggestion per non-empty line, with leading enumerators such as ``1.`` or ``一、`` removed."""
    if not text:
        return []
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    cleaned = [_ENUMERATOR.sub("", line) for line in lines]
    return [line for line in cleaned if line][:count]


def fallback_suggestions(user_input: str, count: int) -> list[str]:
    """Canned suggestions filtered by the first keyword rule the input triggers."""
    text = user_input.lower()
    for triggers, wanted in _KEYWORD_RULES:
        if any(t in text for t in triggers):
            return [s for s in DEFAULT_SUGGESTIONS if any(w in s for w in wanted)][:count]
    return DEFAULT_SUGGESTIONS[:count]


class SuggestionGenerator:
    """Ask the model for short follow-up prompts; never raises."""

    def __init__(
        self,
        settings: ModelSettings | None = None,
        transport: RetryingTransport | None = None,
        timeout: float = SUGGESTION_TIMEOUT,
    ):
        self.settings = settings or get_settings()
        self._owns_transport = transport is None
        self.transport = transport or RetryingTransport(
            max_retries=0,
            timeout=self.settings.timeout,
        )
        self.timeout = timeout

    async def aclose(self) -> None:
        if self._owns_transport:
            await self.transport.aclose()

    async def __aenter__(self) -> SuggestionGenerator:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def generate(self, user_input: str, count: int = 3) -> list[str]:
        if not self.settings.is_configured():
            logger.info("Model not configured; using fallback suggestions")
            return fallback_suggestions(user_input, count)

        try:
            text = await asyncio.wait_for(self._request(user_input, count), timeout=self.timeout)
        except Exception as e:
            logger.warning(f"Suggestion request failed: {e!r}")
            return fallback_suggestions(user_input, count)

        return parse_suggestions(text, count) or fallback_suggestions(user_input, count)

    async def _request(self, user_input: str, count: int) -> str:
        adapter = ProviderAdapter(self.settings)
        messages = [
            {"role": "system", "content": suggestion_system_template.render(user_input=user_input, count=count)},
            {"role": "user", "content": suggestion_user_template.render(user_input=user_input, count=count)},
        ]
        body = adapter.request_body(messages, stream=False, max_tokens=SUGGESTION_MAX_TOKENS, temperature=1)
        response = await self.transport.execute(adapter.endpoint, adapter.headers(), body)
        text = extract_message_text(response.json())
        if not text:
            raise ValueError("无法解析API响应")
        return text
