"""Structured task record produced by both the resolver and the fallback parser."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

UNTITLED_TASK = "Untitled Task"
URGENCY_MIN = 1.0
URGENCY_MAX = 5.0
KEYWORD_URGENCY = 4.5
MAX_TITLE_LENGTH = 100


class TaskField(str, Enum):
    """Fields a caller may still need to ask the user for."""

    TITLE = "title"
    DATE = "date"
    URGENCY = "urgency"


class SuggestionType(str, Enum):
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    URGENCY = "urgency"


@dataclass
class Suggestion:
    """A candidate value the UI can offer for a missing field."""

    type: SuggestionType
    value: datetime | float
    display_text: str

    @property
    def is_temporal(self) -> bool:
        return self.type is not SuggestionType.URGENCY

    def to_dict(self) -> dict[str, Any]:
        value: str | float
        if isinstance(self.value, datetime):
            value = self.value.isoformat()
        else:
            value = self.value
        return {"type": self.type.value, "value": value, "displayText": self.display_text}


@dataclass
class ParseResult:
    title: str | None = None
    due_date: datetime | None = None
    urgency: float | None = None
    follow_up: str = ""
    still_needed: list[TaskField] = field(default_factory=list)
    suggestions: list[Suggestion] = field(default_factory=list)
    # "llm" or "fallback"; not part of the serialized shape
    source: str = "fallback"

    @property
    def has_title(self) -> bool:
        return bool(self.title) and self.title != UNTITLED_TASK

    @property
    def is_complete(self) -> bool:
        return not self.still_needed

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "urgency": self.urgency,
            "followUp": self.follow_up,
            "stillNeeded": [item.value for item in self.still_needed],
            "suggestions": [suggestion.to_dict() for suggestion in self.suggestions],
        }

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def to_tagged_text(self) -> str:
        """Render the result as the tag block consumed by the task input box.

        Example:
            <title>Call mom</title>
            <date>2024-06-11T17:00:00</date>
            <follow_up>How urgent is this task? (1-5)</follow_up>
            <still_needed>urgency</still_needed>
        """
        lines = []
        if self.title:
            lines.append(f"<title>{self.title}</title>")
        if self.due_date:
            lines.append(f"<date>{self.due_date.isoformat()}</date>")
        if self.urgency is not None:
            lines.append(f"<urgency>{self.urgency:.1f}</urgency>")
        lines.append(f"<follow_up>{self.follow_up or 'Anything else to add?'}</follow_up>")
        if self.still_needed:
            needed = ", ".join(item.value for item in self.still_needed)
            lines.append(f"<still_needed>{needed}</still_needed>")
        for suggestion in self.suggestions:
            data = suggestion.to_dict()
            lines.append(
                f'<suggestion type="{data["type"]}" value="{data["value"]}">'
                f"{data['displayText']}</suggestion>"
            )
        if self.has_title and self.due_date and self.urgency is not None:
            lines.append("<todo_complete>")
        return "\n".join(lines) + "\n"


def clamp_urgency(value: float) -> float:
    return max(URGENCY_MIN, min(URGENCY_MAX, float(value)))
