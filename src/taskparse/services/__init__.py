"""taskparse services.

Parsing, negotiation and resolver services. Imports are lazy so that the
fallback parser can be used without loading the HTTP stack.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

_EXPORTS: dict[str, tuple[str, str]] = {
    # Result model
    "ParseResult": ("taskparse.services.result", "ParseResult"),
    "Suggestion": ("taskparse.services.result", "Suggestion"),
    "SuggestionType": ("taskparse.services.result", "SuggestionType"),
    "TaskField": ("taskparse.services.result", "TaskField"),
    "UNTITLED_TASK": ("taskparse.services.result", "UNTITLED_TASK"),
    # Dates
    "ensure_future": ("taskparse.services.dates", "ensure_future"),
    # Timezone
    "TimezoneService": ("taskparse.services.timezone", "TimezoneService"),
    "format_due": ("taskparse.services.timezone", "format_due"),
    "get_timezone_service": ("taskparse.services.timezone", "get_timezone_service"),
    "reset_timezone_service": ("taskparse.services.timezone", "reset_timezone_service"),
    # Negotiation
    "assemble": ("taskparse.services.negotiation", "assemble"),
    "keyword_urgency": ("taskparse.services.negotiation", "keyword_urgency"),
    "merge": ("taskparse.services.negotiation", "merge"),
    # Suggestions
    "default_suggestions": ("taskparse.services.suggestions", "default_suggestions"),
    "horizon_suggestions": ("taskparse.services.suggestions", "horizon_suggestions"),
    "quick_time_suggestions": ("taskparse.services.suggestions", "quick_time_suggestions"),
    # Parser
    "Parser": ("taskparse.services.parser", "Parser"),
    "fallback_parse": ("taskparse.services.parser", "fallback_parse"),
    # LLM
    "LLMClient": ("taskparse.services.llm_client", "LLMClient"),
    "LLMProvider": ("taskparse.services.llm_client", "LLMProvider"),
    "LLMResponse": ("taskparse.services.llm_client", "LLMResponse"),
    "get_llm_client": ("taskparse.services.llm_client", "get_llm_client"),
    "IntentResolutionError": ("taskparse.services.llm_parser", "IntentResolutionError"),
    "IntentResolver": ("taskparse.services.llm_parser", "IntentResolver"),
    "TaskParser": ("taskparse.services.llm_parser", "TaskParser"),
    "get_task_parser": ("taskparse.services.llm_parser", "get_task_parser"),
    # Reminders
    "Reminder": ("taskparse.services.reminders", "Reminder"),
    "is_reminder_command": ("taskparse.services.reminders", "is_reminder_command"),
    "parse_reminder": ("taskparse.services.reminders", "parse_reminder"),
}

__all__ = list(_EXPORTS.keys())


def __getattr__(name: str) -> Any:
    if name not in _EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = _EXPORTS[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(list(globals().keys()) + list(_EXPORTS.keys()))
