"""Wrap plain functions as tools the model can call.

Argument models are derived from type hints; descriptions come from the docstring (parsed with griffe).

ref: https://github.com/openai/openai-agents-python/blob/8d906f88f02d30b3cf6068e5de88a5f1e4bafd82/src/agents/function_schema.py
"""

from __future__ import annotations

import contextlib
import inspect
import logging
import re
from typing import Any, Callable, Literal, Type, get_type_hints

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, create_model

from .exceptions import ValidationError
from ..types_.base import JSON
from ..types_.core import BookInfo

logger = logging.getLogger(__name__)

DocstringStyle = Literal["google", "numpy", "sphinx"]

# Parameter that receives the active book instead of a model-provided argument
BOOK_PARAM = "book"


def _detect_docstring_style(doc: str) -> DocstringStyle:
    """Detect the style of a docstring.

    Approximates griffe's automatic style detection.
    """
    scores: dict[DocstringStyle, int] = {"sphinx": 0, "numpy": 0, "google": 0}

    sphinx_patterns = [r"^:param\s", r"^:type\s", r"^:return:", r"^:rtype:"]
    for pattern in sphinx_patterns:
        if re.search(pattern, doc, re.MULTILINE):
            scores["sphinx"] += 1

    # headers followed by a dashed underline
    numpy_patterns = [
        r"^Parameters\s*\n\s*-{3,}",
        r"^Returns\s*\n\s*-{3,}",
        r"^Yields\s*\n\s*-{3,}",
    ]
    for pattern in numpy_patterns:
        if re.search(pattern, doc, re.MULTILINE):
            scores["numpy"] += 1

    google_patterns = [r"^(Args|Arguments):", r"^(Returns):", r"^(Raises):"]
    for pattern in google_patterns:
        if re.search(pattern, doc, re.MULTILINE):
            scores["google"] += 1

    max_score = max(scores.values())
    if max_score == 0:
        return "google"

    # Priority order on ties: sphinx > numpy > google
    styles: list[DocstringStyle] = ["sphinx", "numpy", "google"]
    return next(style for style in styles if scores[style] == max_score)


@contextlib.contextmanager
def _suppress_griffe_logging():
    """Suppress griffe warnings about missing annotations for params."""
    griffe_logger = logging.getLogger("griffe")
    previous_level = griffe_logger.getEffectiveLevel()
    griffe_logger.setLevel(logging.ERROR)
    try:
        yield
    finally:
        griffe_logger.setLevel(previous_level)


def _parse_docstring(fn: Callable):
    from griffe import Docstring

    doc = inspect.getdoc(fn)
    if not doc:
        return None

    with _suppress_griffe_logging():
        docstring = Docstring(doc, lineno=1, parser=_detect_docstring_style(doc))
        return docstring.parse()


def extract_function_description(fn: Callable) -> str | None:
    """Extract the description from a function's docstring."""
    from griffe import DocstringSectionKind

    parsed = _parse_docstring(fn)
    if parsed is None:
        return None
    return next((section.value for section in parsed if section.kind == DocstringSectionKind.text), None)


def extract_param_descriptions(fn: Callable) -> dict[str, str]:
    """Extract the parameter descriptions from a function's docstring."""
    from griffe import DocstringSectionKind

    parsed = _parse_docstring(fn)
    if parsed is None:
        return {}
    return {
        param.name: param.description
        for section in parsed
        if section.kind == DocstringSectionKind.parameters
        for param in section.value
    }


def arguments_model(fn: Callable, name: str | None = None) -> Type[BaseModel]:
    """Build a pydantic model validating the model-provided arguments of ``fn``.

    ``self``, ``cls``, variadic parameters and the ``book`` parameter are excluded.
    Requires type hints and docstrings for an accurate schema.
    """
    if inspect.ismethod(fn):
        fn = fn.__func__

    sig = inspect.signature(fn)
    type_hints = get_type_hints(fn)
    param_descs = extract_param_descriptions(fn)

    fields = {}
    for param_name, param in sig.parameters.items():
        if param_name in ("self", "cls", BOOK_PARAM):
            continue
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            logger.debug(f"Ignoring variadic parameter '{param_name}' of {fn.__name__}")
            continue

        annotation = type_hints.get(param_name, param.annotation)
        if annotation is inspect.Parameter.empty:
            annotation = Any

        description = param_descs.get(param_name)
        if param.default is inspect.Parameter.empty:
            fields[param_name] = (annotation, Field(..., description=description))
        else:
            fields[param_name] = (annotation, Field(default=param.default, description=description))

    return create_model(
        name or fn.__name__,
        __config__=ConfigDict(extra="ignore"),
        **fields,
    )


class Tool:
    """A callable exposed to the model.

    Parameters
    ----------
    func : Callable
        Sync or async function implementing the tool. A parameter named ``book`` receives the active book.
    name : str, optional
        Tool name shown to the model; defaults to the function name.
    description : str, optional
        Tool description; defaults to the docstring summary.
    """

    def __init__(self, func: Callable[..., Any], name: str | None = None, description: str | None = None):
        if inspect.getdoc(func) is None and description is None:
            logger.warning(f"Function {func.__name__} requires docstrings for a viable description.")

        self._func = func
        self.name = name or func.__name__
        self.description = description or extract_function_description(func) or ""
        self.model = arguments_model(func, self.name)
        self.wants_book = BOOK_PARAM in inspect.signature(func).parameters

        self.__name__ = self.name
        self.__doc__ = func.__doc__

    @property
    def parameters(self) -> dict[str, Any]:
        """JSON schema of the tool arguments."""
        return self.model.model_json_schema()

    def validate_arguments(self, arguments: JSON) -> dict[str, Any]:
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ValidationError(f"工具 {self.name} 的参数必须是对象，收到: {type(arguments).__name__}")
        try:
            validated = self.model.model_validate(arguments)
        except PydanticValidationError as e:
            raise ValidationError(f"工具 {self.name} 参数校验失败: {e}") from e
        return {key: getattr(validated, key) for key in type(validated).model_fields}

    async def invoke(self, arguments: JSON, book: BookInfo | None = None) -> Any:
        """Validate arguments and run the tool, awaiting it if it is a coroutine function."""
        kwargs = self.validate_arguments(arguments)
        if self.wants_book:
            kwargs[BOOK_PARAM] = book

        result = self._func(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._func(*args, **kwargs)

    def __repr__(self) -> str:
        return f"Tool(name={self.name!r})"


def tool(
    func: Callable[..., Any] | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
) -> Tool | Callable[[Callable[..., Any]], Tool]:
    """Decorate a function into a Tool.

    Can be used either as a bare decorator (@tool) or with parameters (@tool(name=...)).

    Examples
    --------
    >>> @tool
    ... def query_flows(keyword: str, limit: int = 10) -> list:
    ...     '''Search ledger entries by keyword.'''
    ...     return []
    >>> query_flows.name
    'query_flows'
    """

    def decorator(f: Callable[..., Any]) -> Tool:
        return Tool(f, name=name, description=description)

    if func is not None:
        return decorator(func)
    return decorator
