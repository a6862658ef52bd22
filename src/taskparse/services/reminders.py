"""`!remindme` / `!rmd` comment commands."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from taskparse.services.llm_parser import TaskParser
    from taskparse.services.parser import Parser

COMMAND_PATTERN = re.compile(r"^\s*!(?:remindme|rmd)(?:\s+|$)", re.IGNORECASE)

DEFAULT_REMINDER_TEXT = "Reminder for this task"
NO_TEXT_ERROR = "No reminder text provided"
NO_TIME_ERROR = "Could not determine reminder time"


@dataclass
class Reminder:
    text: str
    due_date: datetime | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "error": self.error,
        }


def is_reminder_command(text: str) -> bool:
    return bool(COMMAND_PATTERN.match(text))


def parse_reminder(
    text: str,
    reference: datetime,
    parser: Parser | TaskParser | None = None,
) -> Reminder:
    """Turn a reminder command into its text and due time.

    Example: "!remindme call John tomorrow at 5pm" gives text "call John"
    due the next day at 17:00.
    """
    body = COMMAND_PATTERN.sub("", text, count=1).strip()
    if not body:
        return Reminder(text=DEFAULT_REMINDER_TEXT, error=NO_TEXT_ERROR)

    if parser is None:
        from taskparse.services.parser import Parser

        parser = Parser()

    parsed = parser.parse(body, reference)
    reminder_text = parsed.title if parsed.has_title else body
    if parsed.due_date is None:
        return Reminder(text=reminder_text, error=NO_TIME_ERROR)
    return Reminder(text=reminder_text, due_date=parsed.due_date)
