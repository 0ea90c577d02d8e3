from __future__ import annotations

_STATUS_MESSAGES = {
    400: "请求参数错误，请检查模型名称和参数设置",
    401: "API Key 无效或已过期，请检查AI配置",
    403: "没有访问该模型的权限",
    404: "API 地址不存在，请检查Base URL和模型名称",
    408: "请求超时",
    413: "请求内容过长，请缩短对话后重试",
    429: "请求过于频繁或额度不足，请稍后重试",
    500: "AI服务内部错误",
    502: "AI服务网关错误",
    503: "AI服务暂时不可用",
    504: "AI服务响应超时",
}


def describe_status(status: int) -> str:
    """Return a human-readable message for an HTTP status code."""
    if status in _STATUS_MESSAGES:
        return _STATUS_MESSAGES[status]
    if 500 <= status < 600:
        return f"AI服务异常（HTTP {status}）"
    return f"AI请求失败（HTTP {status}）"


class LedgerAgentError(Exception):
    """Base class for errors raised by ledger_agent."""


class ConfigurationError(LedgerAgentError):
    """Missing or invalid model configuration."""


class ProviderError(LedgerAgentError):
    """Failure talking to the model provider."""


class ProviderHTTPError(ProviderError):
    """The provider answered with a non-2xx status."""

    def __init__(self, status: int, detail: str | None = None):
        self.status = status
        self.detail = detail
        super().__init__(describe_status(status))

    @property
    def transient(self) -> bool:
        return 500 <= self.status < 600


class ProviderConnectionError(ProviderError):
    """DNS, connect, or read failure below the HTTP layer."""


class ToolExecutionError(LedgerAgentError):
    """A tool failed to execute."""


class ValidationError(LedgerAgentError):
    """Tool arguments failed validation."""
