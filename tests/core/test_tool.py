from typing import Literal

import pytest

from ledger_agent.core.exceptions import ValidationError
from ledger_agent.core.tool import (
    Tool,
    arguments_model,
    extract_function_description,
    extract_param_descriptions,
    tool,
)
from ledger_agent.types_ import BookInfo


class TestExtractFunctionDescription:
    def test_no_docstring(self):
        def no_doc(a: int):
            return a

        assert extract_function_description(no_doc) is None

    def test_google_style_docstring(self):
        def fn(a: int) -> int:
            """
            Record an expense.

            Args:
                a: amount in yuan.
            """
            return a

        desc = extract_function_description(fn)
        assert desc is not None
        assert desc.strip() == "Record an expense."

    def test_sphinx_style_docstring(self):
        def fn(a: int) -> int:
            """
            Query monthly totals.

            :param a: month number.
            """
            return a

        desc = extract_function_description(fn)
        assert desc is not None
        assert desc.strip() == "Query monthly totals."

    def test_numpy_style_docstring(self):
        def fn(a: int) -> int:
            """
            Set a monthly budget.

            Parameters
            ----------
            a : int
                Budget in yuan.
            """
            return a

        desc = extract_function_description(fn)
        assert desc is not None
        assert desc.strip() == "Set a monthly budget."


class TestExtractParamDescriptions:
    def test_no_docstring(self):
        def no_doc(a: int):
            return a

        assert extract_param_descriptions(no_doc) == {}

    def test_google_style_parameters(self):
        def fn(a: int, b: str) -> int:
            """
            Create a flow.

            Args:
                a: amount of the flow.
                b: name of the flow.
            """
            return a

        params = extract_param_descriptions(fn)
        assert params["a"].strip() == "amount of the flow."
        assert params["b"].strip() == "name of the flow."

    def test_numpy_style_parameters(self):
        def fn(a: int) -> int:
            """
            Numpy style parameter description.

            Parameters
            ----------
            a : int
                The amount to be recorded.
            """
            return a

        params = extract_param_descriptions(fn)
        assert "to be recorded" in params["a"]


class TestArgumentsModel:
    def test_excludes_book_and_variadics(self):
        def fn(money: float, book: BookInfo | None = None, *args, **kwargs):
            return money

        model = arguments_model(fn)
        assert set(model.model_fields) == {"money"}

    def test_defaults_and_required(self):
        def create_flow(name: str, money: float, flowType: Literal["收入", "支出", "不计收支"] = "支出"):
            """
            Create a ledger entry.

            Args:
                name: Entry name.
                money: Amount in yuan.
                flowType: Income or expense.
            """

        schema = arguments_model(create_flow).model_json_schema()

        assert schema["title"] == "create_flow"
        assert set(schema["required"]) == {"name", "money"}
        assert schema["properties"]["flowType"]["enum"] == ["收入", "支出", "不计收支"]
        assert schema["properties"]["money"]["description"] == "Amount in yuan."


class TestTool:
    def test_decorator_metadata(self):
        @tool
        def get_pay_types() -> list[str]:
            """List the configured payment methods."""
            return ["微信支付", "现金"]

        assert isinstance(get_pay_types, Tool)
        assert get_pay_types.name == "get_pay_types"
        assert get_pay_types.description == "List the configured payment methods."
        assert get_pay_types() == ["微信支付", "现金"]

    def test_decorator_with_name(self):
        @tool(name="monthly_summary", description="月度汇总")
        def summary(month: str) -> dict:
            return {"month": month}

        assert summary.name == "monthly_summary"
        assert summary.description == "月度汇总"

    def test_missing_docstring_warns(self, caplog):
        def bare(x: int):
            return x

        Tool(bare)
        assert "requires docstrings" in caplog.text

    @pytest.mark.asyncio
    async def test_invoke_sync_with_coercion(self):
        @tool
        def add_flow(money: float, name: str = "未命名") -> dict:
            """Add a flow."""
            return {"money": money, "name": name}

        assert await add_flow.invoke({"money": "12.5"}) == {"money": 12.5, "name": "未命名"}

    @pytest.mark.asyncio
    async def test_invoke_async_receives_book(self):
        @tool
        async def create_flow(money: float, book: BookInfo | None = None) -> dict:
            """Create a flow in the current book."""
            return {"book": book.book_id if book else None, "money": money}

        book = BookInfo(book_id="b-9")
        assert await create_flow.invoke({"money": 50}, book) == {"book": "b-9", "money": 50.0}
        assert "book" not in create_flow.parameters["properties"]

    @pytest.mark.asyncio
    async def test_invoke_rejects_bad_arguments(self):
        @tool
        def add_flow(money: float) -> float:
            """Add a flow."""
            return money

        with pytest.raises(ValidationError, match="add_flow"):
            await add_flow.invoke({"money": "lots"})

        with pytest.raises(ValidationError, match="必须是对象"):
            await add_flow.invoke([1, 2])

    @pytest.mark.asyncio
    async def test_invoke_ignores_unknown_arguments(self):
        @tool
        def add_flow(money: float) -> float:
            """Add a flow."""
            return money

        assert await add_flow.invoke({"money": 1, "bookId": "ignored"}) == 1.0

    @pytest.mark.asyncio
    async def test_none_arguments(self):
        @tool
        def get_pay_types() -> list:
            """List payment methods."""
            return []

        assert await get_pay_types.invoke(None) == []
