import pytest

from ledger_agent.core.base import ToolExecutor
from ledger_agent.core.exceptions import ToolExecutionError, ValidationError
from ledger_agent.core.tool import tool
from ledger_agent.core.toolbox import ToolDescription, Toolbox
from ledger_agent.types_ import BookInfo, ToolResult


@tool
async def create_flow(name: str, money: float, book: BookInfo | None = None) -> dict:
    """
    Create a ledger entry in the current book.

    Args:
        name: Entry name.
        money: Amount in yuan.
    """
    if book is None:
        raise RuntimeError("账本ID不能为空")
    return {"bookId": book.book_id, "name": name, "money": money}


def get_pay_types() -> list[str]:
    """List payment methods."""
    return ["微信支付", "支付宝"]


@pytest.fixture
def toolbox():
    return Toolbox([create_flow, get_pay_types])


class TestToolbox:
    def test_is_executor(self, toolbox):
        assert isinstance(toolbox, ToolExecutor)

    def test_register_plain_function(self, toolbox):
        assert toolbox.names == ["create_flow", "get_pay_types"]
        assert "get_pay_types" in toolbox
        assert len(toolbox) == 2

    def test_describe(self, toolbox):
        descriptions = toolbox.describe()

        assert all(isinstance(d, ToolDescription) for d in descriptions)
        flow = descriptions[0]
        assert flow.name == "create_flow"
        assert flow.description == "Create a ledger entry in the current book."
        assert flow.required == ["name", "money"]
        assert set(flow.properties) == {"name", "money"}

    @pytest.mark.asyncio
    async def test_call_tool_wraps_result(self, toolbox):
        result = await toolbox.call_tool("create_flow", {"name": "午餐", "money": 50}, BookInfo(book_id="b-1"))

        assert isinstance(result, ToolResult)
        assert result.data == {"bookId": "b-1", "name": "午餐", "money": 50.0}

    @pytest.mark.asyncio
    async def test_unknown_tool(self, toolbox):
        with pytest.raises(ToolExecutionError, match="未找到工具: delete_flow。可用工具: create_flow, get_pay_types"):
            await toolbox.call_tool("delete_flow", {}, None)

    @pytest.mark.asyncio
    async def test_tool_failure(self, toolbox):
        with pytest.raises(ToolExecutionError, match="工具 create_flow 调用失败: 账本ID不能为空"):
            await toolbox.call_tool("create_flow", {"name": "午餐", "money": 50}, None)

    @pytest.mark.asyncio
    async def test_validation_failure_propagates(self, toolbox):
        with pytest.raises(ValidationError):
            await toolbox.call_tool("create_flow", {"name": "午餐"}, BookInfo(book_id="b-1"))

    def test_replacing_tool_warns(self, toolbox, caplog):
        toolbox.register(get_pay_types)
        assert "Replacing registered tool get_pay_types" in caplog.text
        assert len(toolbox) == 2
