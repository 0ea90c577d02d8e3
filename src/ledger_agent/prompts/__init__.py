from .bookkeeping import BookkeepingPrompt, system_prompt_template, tool_results_template
from .suggestions import SuggestionGenerator, fallback_suggestions, parse_suggestions

__all__ = [
    "BookkeepingPrompt",
    "system_prompt_template",
    "tool_results_template",
    "SuggestionGenerator",
    "fallback_suggestions",
    "parse_suggestions",
]
