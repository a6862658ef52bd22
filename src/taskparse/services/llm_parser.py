"""LLM-backed intent resolution with a deterministic fallback."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Annotated, Any, Literal

from dateutil.parser import isoparse
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from taskparse.services.dates import ensure_future
from taskparse.services.negotiation import assemble, keyword_urgency, merge
from taskparse.services.result import (
    MAX_TITLE_LENGTH,
    ParseResult,
    Suggestion,
    SuggestionType,
    clamp_urgency,
)
from taskparse.services.timezone import describe_reference, get_timezone_service

if TYPE_CHECKING:
    from taskparse.services.llm_client import LLMClient
    from taskparse.services.parser import Parser
    from taskparse.services.timezone import TimezoneService

logger = logging.getLogger(__name__)

TEMPERATURE = 0.2
MAX_TOKENS = 1024

CODE_FENCE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)

SYSTEM_PROMPT = """You are a concise todo assistant that turns a sentence into a structured todo.

CURRENT CONTEXT:
- Current date: {date}
- Current time: {time}
- Current ISO timestamp: {iso}
- Today is {weekday}
{known}
RULES:
1. Keep follow-up messages extremely short.
2. Never put date or time words in the title.
3. Convert relative dates to absolute ISO-8601 timestamps (YYYY-MM-DDTHH:MM:SS).
4. Offer suggestions that fit the task (morning for breakfast, evening for dinner).
5. Be direct.
6. Never ask again for a field that is already known.
7. If the text mentions "investor", "deadline" or "urgent", set urgency to 4.5.
8. Listen to the user's input and do not go in circles.
9. Every date or time suggestion MUST be in the future.
10. If it is already afternoon, do not suggest morning times for today.

Fields to extract:
- title: clear title without date/time info ("Meet with investor", not "Meet investor tomorrow")
- dueDate: ISO-8601 timestamp
- urgency: number from 1.0 to 5.0

Fields to generate:
- followUp: brief question or statement about what is still needed
- stillNeeded: missing fields, from "title", "date", "urgency"
- suggestions: candidates for missing fields, each with type ("date", "time",
  "datetime" or "urgency"), value (ISO string for dates/times, number for
  urgency) and displayText

Respond with a JSON object with exactly these keys:
{{"title": string|null, "dueDate": string|null, "urgency": number|null,
  "followUp": string, "stillNeeded": string[],
  "suggestions": [{{"type": string, "value": string|number, "displayText": string}}]}}
"""


class IntentResolutionError(RuntimeError):
    """The resolver could not produce a valid result."""


class SuggestionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: SuggestionType
    value: str | float
    display_text: str = Field(default="", alias="displayText")

    @model_validator(mode="after")
    def _check_value(self) -> SuggestionPayload:
        if self.type is SuggestionType.URGENCY:
            if isinstance(self.value, str):
                self.value = float(self.value)
        elif not isinstance(self.value, str):
            raise ValueError(f"{self.type.value} suggestion value must be an ISO string")
        else:
            isoparse(self.value)
        return self

    def to_suggestion(self, reference: datetime) -> Suggestion:
        if self.type is SuggestionType.URGENCY:
            return Suggestion(self.type, clamp_urgency(float(self.value)), self.display_text)
        value = ensure_future(isoparse(str(self.value)), reference)
        return Suggestion(self.type, value, self.display_text)


class ExtractorPayload(BaseModel):
    """Shape of the JSON object the model must return."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None
    due_date: datetime | None = Field(alias="dueDate")
    urgency: Annotated[float, Field(ge=1.0, le=5.0)] | None
    follow_up: str | None = Field(default=None, alias="followUp")
    still_needed: list[Literal["title", "date", "urgency"]] = Field(
        default_factory=list, alias="stillNeeded"
    )
    suggestions: list[SuggestionPayload] = Field(default_factory=list)

    @field_validator("due_date", mode="before")
    @classmethod
    def _parse_due_date(cls, value: Any) -> Any:
        if isinstance(value, str):
            if not value.strip():
                return None
            return isoparse(value)
        return value


def build_system_prompt(reference: datetime, previous: ParseResult | None = None) -> str:
    known = ""
    if previous is not None:
        lines = []
        if previous.has_title:
            lines.append(f"- title: {previous.title}")
        if previous.due_date is not None:
            lines.append(f"- dueDate: {previous.due_date.isoformat()}")
        if previous.urgency is not None:
            lines.append(f"- urgency: {previous.urgency}")
        if lines:
            known = "\nALREADY KNOWN (do not ask again):\n" + "\n".join(lines) + "\n"
    return SYSTEM_PROMPT.format(known=known, **describe_reference(reference))


def parse_payload(text: str) -> ExtractorPayload:
    """Decode and validate raw model output.

    Raises:
        ValueError: On malformed JSON or a payload that fails validation
    """
    cleaned = CODE_FENCE.sub("", text).strip()
    if not cleaned:
        raise ValueError("Empty response from LLM")
    return ExtractorPayload.model_validate(json.loads(cleaned))


class IntentResolver:
    """Resolve a task sentence through the completion client."""

    def __init__(self, llm: LLMClient | None = None) -> None:
        if llm is None:
            from taskparse.services.llm_client import get_llm_client

            self.llm = get_llm_client()
        else:
            self.llm = llm

    @property
    def is_available(self) -> bool:
        return self.llm.is_available

    def resolve(
        self, text: str, reference: datetime, previous: ParseResult | None = None
    ) -> ParseResult:
        """Resolve `text` into a validated ParseResult.

        Raises:
            IntentResolutionError: On any provider, decoding or validation failure
        """
        try:
            response = self.llm.complete(
                text,
                system_prompt=build_system_prompt(reference, previous),
                temperature=TEMPERATURE,
                max_tokens=MAX_TOKENS,
                json_mode=True,
            )
            payload = parse_payload(response.text)
            result = self._validate_output(text, payload, reference)
        except (RuntimeError, ValueError, TypeError) as exc:
            raise IntentResolutionError(f"Intent resolution failed: {exc}") from exc

        logger.debug("Resolved via %s (%s)", response.provider.value, response.model)
        if previous is not None:
            result = merge(previous, result, reference)
        return result

    def _validate_output(
        self, text: str, payload: ExtractorPayload, reference: datetime
    ) -> ParseResult:
        title = (payload.title or "").strip() or None
        if title and len(title) > MAX_TITLE_LENGTH:
            title = title[: MAX_TITLE_LENGTH - 3].rstrip() + "..."

        due_date = payload.due_date
        if due_date is not None:
            due_date = ensure_future(due_date, reference)

        urgency = payload.urgency
        if urgency is None:
            urgency = keyword_urgency(text)

        return assemble(
            title=title,
            due_date=due_date,
            urgency=urgency,
            reference=reference,
            follow_up=(payload.follow_up or "").strip() or None,
            suggestions=[item.to_suggestion(reference) for item in payload.suggestions],
            source="llm",
        )


class TaskParser:
    """Try the resolver, fall back to the deterministic parser on failure."""

    def __init__(
        self,
        resolver: IntentResolver | None = None,
        fallback: Parser | None = None,
        timezone_service: TimezoneService | None = None,
    ) -> None:
        self.resolver = resolver
        if fallback is None:
            from taskparse.services.parser import Parser

            self.fallback = Parser()
        else:
            self.fallback = fallback
        self.timezone_service = timezone_service or get_timezone_service()

    def parse(
        self,
        text: str,
        reference: datetime | None = None,
        previous: ParseResult | None = None,
    ) -> ParseResult:
        if reference is None:
            reference = self.timezone_service.now()

        if self.resolver is not None and self.resolver.is_available and text.strip():
            try:
                return self.resolver.resolve(text, reference, previous)
            except IntentResolutionError as exc:
                logger.warning("LLM parser failed; falling back to regex parser: %s", exc)

        result = self.fallback.parse(text, reference)
        if previous is not None:
            result = merge(previous, result, reference)
        return result


_parser: TaskParser | None = None


def get_task_parser() -> TaskParser:
    global _parser
    if _parser is None:
        from taskparse.config import settings

        resolver = IntentResolver() if settings.has_llm else None
        _parser = TaskParser(resolver=resolver)
    return _parser


def reset_task_parser() -> None:
    global _parser
    _parser = None
