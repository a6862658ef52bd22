"""Negotiation metadata: what to ask the user next.

A ParseResult carries `still_needed`, `follow_up` and `suggestions` so a UI
can run a short clarification dialog. Fields already known are never asked
for again, including across turns (see `merge`).
"""

from __future__ import annotations

import logging
import re
from datetime import datetime

from taskparse.services.dates import ensure_future
from taskparse.services.result import (
    KEYWORD_URGENCY,
    ParseResult,
    Suggestion,
    TaskField,
)
from taskparse.services.suggestions import default_suggestions

logger = logging.getLogger(__name__)

FOLLOW_UPS: dict[TaskField, str] = {
    TaskField.TITLE: "What would you like to call this task?",
    TaskField.DATE: "When is this task due?",
    TaskField.URGENCY: "How urgent is this task? (1-5)",
}
NOTHING_MISSING = "Anything else to add?"

# "not urgent" is a request for low urgency, not a trigger
URGENCY_TRIGGERS = re.compile(r"investor|deadline|(?<!not )urgent", re.IGNORECASE)


def missing_fields(
    title: str | None, due_date: datetime | None, urgency: float | None
) -> list[TaskField]:
    probe = ParseResult(title=title)
    missing = []
    if not probe.has_title:
        missing.append(TaskField.TITLE)
    if due_date is None:
        missing.append(TaskField.DATE)
    if urgency is None:
        missing.append(TaskField.URGENCY)
    return missing


def follow_up_for(missing: list[TaskField]) -> str:
    for item in (TaskField.TITLE, TaskField.DATE, TaskField.URGENCY):
        if item in missing:
            return FOLLOW_UPS[item]
    return NOTHING_MISSING


def keyword_urgency(text: str) -> float | None:
    """4.5 when the text mentions an investor, a deadline or urgency."""
    if URGENCY_TRIGGERS.search(text):
        return KEYWORD_URGENCY
    return None


def assemble(
    *,
    title: str | None,
    due_date: datetime | None,
    urgency: float | None,
    reference: datetime,
    follow_up: str | None = None,
    suggestions: list[Suggestion] | None = None,
    source: str = "fallback",
) -> ParseResult:
    """Build a ParseResult, filling in negotiation metadata.

    `follow_up` and `suggestions` from an extractor are kept when they are
    still relevant; otherwise the defaults apply.
    """
    missing = missing_fields(title, due_date, urgency)

    if missing:
        prompt = follow_up or follow_up_for(missing)
    else:
        prompt = NOTHING_MISSING

    relevant = [s for s in suggestions or [] if _suggestion_field(s) in missing]
    if missing and not relevant:
        relevant = default_suggestions(missing, reference)

    return ParseResult(
        title=title,
        due_date=due_date,
        urgency=urgency,
        follow_up=prompt,
        still_needed=missing,
        suggestions=relevant,
        source=source,
    )


def merge(previous: ParseResult, current: ParseResult, reference: datetime) -> ParseResult:
    """Fold a follow-up answer into the result accumulated so far.

    Known fields of `previous` are kept; only its gaps are filled from `current`.
    """
    title = previous.title if previous.has_title else (current.title or previous.title)
    due_date = previous.due_date or current.due_date
    if due_date is not None:
        due_date = ensure_future(due_date, reference)
    urgency = previous.urgency if previous.urgency is not None else current.urgency

    logger.debug(
        "Merging follow-up: title=%s date=%s urgency=%s",
        title is not None,
        due_date is not None,
        urgency is not None,
    )
    return assemble(
        title=title,
        due_date=due_date,
        urgency=urgency,
        reference=reference,
        suggestions=current.suggestions,
        source=current.source,
    )


def _suggestion_field(suggestion: Suggestion) -> TaskField:
    return TaskField.DATE if suggestion.is_temporal else TaskField.URGENCY
