from datetime import datetime

from pydantic import ValidationError
import pytest

from ledger_agent.types_ import (
    AgentResponse,
    BookInfo,
    ConversationContext,
    ToolInvocation,
    ToolResult,
    Turn,
)


class TestTurn:
    def test_to_message(self):
        turn = Turn(role="user", content="记一笔午餐支出50元")
        assert turn.to_message() == {"role": "user", "content": "记一笔午餐支出50元"}
        assert isinstance(turn.timestamp, datetime)

    def test_frozen(self):
        turn = Turn(role="assistant", content="ok")
        with pytest.raises(ValidationError):
            turn.content = "changed"

    def test_rejects_unknown_role(self):
        with pytest.raises(ValidationError):
            Turn(role="tool", content="x")


class TestToolInvocation:
    def test_defaults(self):
        call = ToolInvocation(name="get_pay_types")
        assert call.arguments == {}

    def test_ignores_extra_keys(self):
        call = ToolInvocation.model_validate({"name": "create_flow", "arguments": {"money": 50}, "id": "call_1"})
        assert call.arguments == {"money": 50}

    def test_requires_name(self):
        with pytest.raises(ValidationError):
            ToolInvocation(name="")


class TestResults:
    def test_tool_result_default_message(self):
        assert ToolResult(data=[1]).message == "工具调用成功"

    def test_agent_response_cancelled(self):
        assert AgentResponse(finish_reason="cancelled").cancelled
        assert not AgentResponse().cancelled


class TestContext:
    def test_book_requires_id(self):
        with pytest.raises(ValidationError):
            BookInfo(book_id="")
        assert BookInfo(book_id="b-1").book_name == "当前账本"

    def test_defaults(self):
        context = ConversationContext()
        assert context.book is None
        assert context.now.tzinfo is not None
