from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

from jinja2 import Environment, StrictUndefined

from ..types_.core import ConversationContext, ToolOutcome
from ..utilities import compact_json

if TYPE_CHECKING:
    from ..core.toolbox import ToolDescription

_env = Environment(undefined=StrictUndefined, keep_trailing_newline=False, trim_blocks=True, lstrip_blocks=True)

system_prompt_template = """
你是一个专业的记账助手,严格遵循用户指示,不做非必要输出,可以调用以下工具来帮助用户管理财务：

## 可用工具详细说明
{% for tool in tools %}
## {{ tool.name }}
**描述**: {{ tool.description }}
{% if tool.params %}
**参数说明**:
| 参数名 | 类型 | 必需 | 格式/枚举 | 描述 |
|--------|------|------|-----------|------|
{% for p in tool.params %}
| {{ p.name }} | {{ p.type }} | {{ "是" if p.required else "否" }} | {{ p.constraint }} | {{ p.description }} |
{% endfor %}
{% endif %}
{% if tool.required %}

**必需参数**: {{ tool.required | join(", ") }}
{% endif %}
---
{% else %}
（当前没有可用工具）
{% endfor %}

## 重要上下文信息
当前时间: {{ now }}
{% if user %}
用户信息: {{ user.name or "未知用户" }}{% if user.email %} ({{ user.email }}){% endif %}

{% else %}
用户信息: 未登录或用户信息不可用
{% endif %}
{% if book %}
当前账本: {{ book.book_name }} (ID: {{ book.book_id }})
{% if book.created_at %}
账本创建时间: {{ book.created_at.strftime("%Y-%m-%d") }}
{% endif %}
{% else %}
当前账本: 未选择账本
{% endif %}
{% if server and server.name %}
服务器: {{ server.name }}
{% endif %}
当前月份: {{ month }}

## 工具调用规则
1. **账本ID**: 所有工具调用都会自动使用当前账本，你不需要在参数中指定账本ID
2. **日期处理**: 日期使用YYYY-MM-DD格式，月份使用YYYY-MM格式；用户未指定日期时使用当前日期
3. **金额处理**: 金额单位是人民币（元），不能小于0
4. **安全操作**: 删除或批量修改数据前应提醒用户确认

## 工具调用示例
用户输入："记一笔午餐消费50元"
```json
{
  "toolCalls": [
    {
      "name": "create_flow",
      "arguments": {
        "name": "午餐消费",
        "money": 50,
        "flowType": "支出",
        "industryType": "餐饮美食",
        "date": "{{ today }}"
      }
    }
  ]
}
```

## 回复要求
1. 用简洁、友好的中文回复
2. 调用失败时，解释可能的原因并提供解决方案
3. **当需要调用工具时，请返回严格符合上述示例格式的```json代码块**
""".strip()

tool_results_template = """
工具执行结果：
{% for outcome in outcomes %}
{{ loop.index }}. {{ outcome.name }}: {{ "成功" if outcome.success else "失败" }}
{% if outcome.success %}
结果: {{ results[loop.index0] }}
{% else %}
错误: {{ outcome.error or "未知错误" }}
{% endif %}
{% endfor %}

请根据以上结果继续处理或给出最终回答。
""".strip()


def _constraint(schema: dict[str, Any]) -> str:
    if "enum" in schema:
        return "枚举: " + ", ".join(str(v) for v in schema["enum"])
    if "format" in schema:
        return f"格式: {schema['format']}"
    low, high = schema.get("minimum"), schema.get("maximum")
    if low is not None or high is not None:
        lo = f"≥{low}" if low is not None else ""
        hi = f"≤{high}" if high is not None else ""
        return f"范围: {lo}{'~' if lo and hi else ''}{hi}"
    return ""


def _type_name(schema: dict[str, Any]) -> str:
    if "type" in schema:
        return str(schema["type"])
    variants = [v.get("type") for v in schema.get("anyOf", []) if v.get("type") and v.get("type") != "null"]
    return "|".join(variants) or "any"


def _tool_view(tool: ToolDescription) -> dict[str, Any]:
    required = tool.required
    params = [
        {
            "name": name,
            "type": _type_name(schema),
            "required": name in required,
            "constraint": _constraint(schema),
            "description": schema.get("description") or "",
        }
        for name, schema in tool.properties.items()
    ]
    return {"name": tool.name, "description": tool.description, "params": params, "required": required}


class BookkeepingPrompt:
    """Render the bookkeeping system prompt and the tool-results message."""

    def __init__(
        self,
        system_template: str = system_prompt_template,
        results_template: str = tool_results_template,
    ):
        self.system_template = _env.from_string(system_template)
        self.results_template = _env.from_string(results_template)

    def render_system(self, tools: Sequence[ToolDescription], context: ConversationContext | None = None) -> str:
        context = context or ConversationContext()
        return self.system_template.render(
            tools=[_tool_view(t) for t in tools],
            now=context.now.strftime("%Y-%m-%d %H:%M:%S"),
            today=context.now.strftime("%Y-%m-%d"),
            month=context.now.strftime("%Y-%m"),
            user=context.user,
            book=context.book,
            server=context.server,
        )

    def render_tool_results(self, outcomes: Sequence[ToolOutcome]) -> str:
        return self.results_template.render(
            outcomes=outcomes,
            results=[compact_json(o.result) for o in outcomes],
        )
