"""Deterministic fallback parser.

Rule-based extraction of title, due date and urgency from free text, used
when the LLM resolver is unavailable or fails. Every stage matches against
the remaining (not yet consumed) text and cuts out what it used, so the
title is whatever is left at the end.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from taskparse.services.dates import (
    WEEKDAYS,
    add_months,
    combine,
    days_until_weekday,
    ensure_future,
    has_weekday_phrase,
)
from taskparse.services.negotiation import assemble, keyword_urgency
from taskparse.services.result import (
    MAX_TITLE_LENGTH,
    UNTITLED_TASK,
    ParseResult,
    clamp_urgency,
)
from taskparse.services.timezone import TimezoneService

logger = logging.getLogger(__name__)

NUMBER_WORDS: dict[str, int] = {
    "a": 1,
    "an": 1,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
}
NUMBER = r"(?P<amount>\d{1,9}|" + "|".join(NUMBER_WORDS) + r")"

# Connector words swallowed together with a date or time ("by Friday", "due at 5pm")
LEAD = r"(?:\b(?:due|by|before|until|on|at|around|for|from|starting)\s+)*"
PERIOD_LEAD = r"(?:\b(?:due|by|before|until|on|at|around|for|from|this|during|in\s+the|the)\s+)*"

MARKER = r"(?P<marker>a\.m\.|p\.m\.|am|pm)(?!\w)"

DEFAULT_TIME = time(9, 0)

PM_CONTEXT = re.compile(r"\b(?:evening|night|tonight|afternoon|dinner)\b", re.IGNORECASE)
AM_CONTEXT = re.compile(r"\b(?:morning|dawn)\b", re.IGNORECASE)
MIDNIGHT_CONTEXT = re.compile(r"\bmidnight\b|\ba\.m\.", re.IGNORECASE)

DANGLING_TAIL = re.compile(r"\s+(?:at|by|due|before|until|around|this|next|every)$", re.IGNORECASE)
DANGLING_HEAD = re.compile(r"^(?:at|by|on|due|before|until|around)\s+", re.IGNORECASE)
EDGE_PUNCTUATION = " \t,.;:!?-_/|()[]{}\"'"


def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def _amount(match: re.Match[str]) -> int:
    raw = match.group("amount").lower()
    return NUMBER_WORDS[raw] if raw in NUMBER_WORDS else int(raw)


@dataclass
class _Draft:
    """Mutable state threaded through the parse stages."""

    text: str
    reference: datetime
    remaining: str
    day: date | None = None
    clock: time | None = None
    exact: datetime | None = None
    urgency: float | None = None

    def consume(self, match: re.Match[str]) -> None:
        self.remaining = f"{self.remaining[: match.start()]} {self.remaining[match.end():]}"

    def find(self, pattern: re.Pattern[str]) -> re.Match[str] | None:
        return pattern.search(self.remaining)


class Parser:
    RELATIVE_DATES: list[tuple[re.Pattern[str], str]] = [
        (_compile(LEAD + r"\btoday\b"), "today"),
        (_compile(LEAD + r"\btomorrow\b"), "tomorrow"),
        (_compile(LEAD + r"\b(?:next|in\s+a)\s+week\b"), "week"),
        (_compile(LEAD + r"\b(?:next|in\s+a)\s+month\b"), "month"),
    ]
    RELATIVE_DAYS = _compile(LEAD + r"\bin\s+" + NUMBER + r"\s+(?P<unit>day|week)s?\b")

    WEEKDAY = _compile(
        LEAD
        + r"\b(?:(?P<qualifier>next|this|every|on)\s+)?(?P<weekday>"
        + "|".join(WEEKDAYS)
        + r")s?\b"
    )

    # (pattern, hour already on the 24-hour clock)
    TIME_PATTERNS: list[tuple[re.Pattern[str], bool]] = [
        (
            _compile(LEAD + r"\b(?P<hour>\d{1,2}):(?P<minute>\d{2})\s*(?:" + MARKER + r")?(?!\d)"),
            False,
        ),
        (_compile(LEAD + r"\b(?P<hour>\d{1,2})\s*" + MARKER), False),
        (
            _compile(LEAD + r"\b(?P<hour>[01]\d|2[0-3])(?P<minute>[0-5]\d)\s*(?:hours|hrs|h)\b"),
            True,
        ),
        (_compile(LEAD + r"\bat\s+(?P<hour>\d{1,2})\s*(?:hours|hrs|h)\b"), True),
        (
            _compile(
                LEAD
                + r"\bat\s+(?P<hour>\d{1,2})\b"
                + r"(?!\s*(?:[:%/]|\.\d|minutes?|mins?|days?|weeks?|months?))"
            ),
            False,
        ),
    ]

    HALF_HOUR_OFFSET = _compile(r"\b(?:in|after)\s+half\s+an?\s+hour\b")
    OFFSET = _compile(
        r"\b(?:in|after)\s+" + NUMBER + r"\s+(?P<unit>hours?|hrs?|minutes?|mins?)\b"
    )

    PERIODS: list[tuple[re.Pattern[str], time]] = [
        (_compile(PERIOD_LEAD + r"\bearly\s+morning\b"), time(6, 0)),
        (_compile(PERIOD_LEAD + r"\blate\s+morning\b"), time(11, 0)),
        (_compile(PERIOD_LEAD + r"\bearly\s+afternoon\b"), time(13, 0)),
        (_compile(PERIOD_LEAD + r"\blate\s+afternoon\b"), time(17, 0)),
        (_compile(PERIOD_LEAD + r"\blate\s+night\b"), time(23, 0)),
        (_compile(PERIOD_LEAD + r"\bmidnight\b"), time(0, 0)),
        (_compile(PERIOD_LEAD + r"\b(?:noon|midday)\b"), time(12, 0)),
        (
            _compile(LEAD + r"\b(?:(?:at|for|around|by)\s+lunch|lunch\s*time)\b"),
            time(12, 0),
        ),
        (_compile(PERIOD_LEAD + r"\btonight\b"), time(20, 0)),
        (_compile(PERIOD_LEAD + r"\bmorning\b"), time(9, 0)),
        (_compile(PERIOD_LEAD + r"\bafternoon\b"), time(15, 0)),
        (_compile(PERIOD_LEAD + r"\b(?:evening|dinner\s*time)\b"), time(18, 0)),
        (_compile(PERIOD_LEAD + r"\bnight\b"), time(20, 0)),
    ]

    URGENCY_NUMERIC: list[re.Pattern[str]] = [
        _compile(
            r"\b(?:urgency|priority|importance)(?:\s+(?:level|rating))?"
            r"(?:\s*[:=]\s*|\s+(?:is|of)\s+|\s*)"
            r"(?P<value>\d+(?:\.\d+)?)(?!\d)(?!\.\d)(?:\s*/\s*5\b)?"
        ),
        _compile(r"(?<![\d.])(?P<value>\d+(?:\.\d+)?)\s+(?:urgency|priority|importance)\b"),
    ]
    URGENCY_LEVEL = _compile(
        r"\b(?:priority|urgency)(?:\s*[:=]\s*|\s+(?:is|of)\s+|\s+)(?P<level>high|medium|low)\b"
    )
    LEVELS: dict[str, float] = {"high": 5.0, "medium": 3.0, "low": 1.0}

    # Most specific phrases first so "not urgent" never reads as "urgent"
    URGENCY_KEYWORDS: list[tuple[re.Pattern[str], float]] = [
        (_compile(r"\bnot\s+(?:urgent|important)\b"), 1.0),
        (_compile(r"\blow\s+importance\b"), 1.0),
        (_compile(r"\bwhenever\b"), 1.0),
        (_compile(r"\blow\s+priority\b"), 2.0),
        (_compile(r"\bhigh\s+priority\b"), 4.0),
        (_compile(r"\b(?:urgent(?:ly)?|asap|emergency|critical|immediate(?:ly)?)\b"), 5.0),
        (_compile(r"\bimportant\b"), 4.0),
        (_compile(r"\b(?:soon|moderate|normal)\b"), 3.0),
    ]

    def __init__(self, timezone: str | None = None):
        self.timezone = timezone

    def parse(self, text: str, reference: datetime | None = None) -> ParseResult:
        if reference is None:
            reference = TimezoneService(self.timezone).now()

        if not text or not text.strip():
            return assemble(title=None, due_date=None, urgency=None, reference=reference)

        draft = _Draft(text=text, reference=reference, remaining=text)

        self._extract_relative_date(draft)
        self._extract_weekday(draft)
        found_time = self._extract_time(draft)
        self._extract_time_of_day(draft, found_time)
        due_date = self._resolve_due_date(draft)
        self._extract_urgency(draft)
        title = self._clean_title(draft.remaining)

        logger.debug(
            "Fallback parse: title=%r due=%s urgency=%s",
            title,
            due_date.isoformat() if due_date else None,
            draft.urgency,
        )
        return assemble(
            title=title,
            due_date=due_date,
            urgency=draft.urgency,
            reference=reference,
        )

    def _extract_relative_date(self, draft: _Draft) -> None:
        today = draft.reference.date()
        for pattern, kind in self.RELATIVE_DATES:
            match = draft.find(pattern)
            if not match:
                continue
            if kind == "today":
                draft.day = today
            elif kind == "tomorrow":
                draft.day = today + timedelta(days=1)
            elif kind == "week":
                draft.day = today + timedelta(days=7)
            else:
                draft.day = add_months(today, 1)
            draft.consume(match)
            return

        match = draft.find(self.RELATIVE_DAYS)
        if match:
            amount = _amount(match)
            if match.group("unit").lower() == "week":
                amount *= 7
            try:
                draft.day = today + timedelta(days=amount)
            except OverflowError:
                # Past the calendar range; leave the phrase in the title
                return
            draft.consume(match)

    def _extract_weekday(self, draft: _Draft) -> None:
        match = draft.find(self.WEEKDAY)
        if not match:
            return
        target = WEEKDAYS[match.group("weekday").lower()]
        qualifier = (match.group("qualifier") or "").lower()
        ahead = days_until_weekday(
            draft.reference.weekday(), target, skip_upcoming=qualifier == "next"
        )
        draft.day = draft.reference.date() + timedelta(days=ahead)
        draft.consume(match)

    def _extract_time(self, draft: _Draft) -> bool:
        for pattern, military in self.TIME_PATTERNS:
            for match in pattern.finditer(draft.remaining):
                groups = match.groupdict()
                hour = int(groups["hour"])
                minute = int(groups.get("minute") or 0)
                if military:
                    resolved = hour
                else:
                    resolved = self._resolve_hour(hour, groups.get("marker"), draft.text)
                if resolved is None or resolved > 23 or minute > 59:
                    continue
                draft.clock = time(resolved, minute)
                if draft.day is None:
                    draft.day = draft.reference.date()
                draft.consume(match)
                return True
        return False

    def _resolve_hour(self, hour: int, marker: str | None, text: str) -> int | None:
        """Map a spoken hour to the 24-hour clock.

        Without an am/pm marker the hour is read from context: "dinner at 7"
        is 19:00, "morning run at 7" is 07:00, a bare "at 7" stays 07:00.
        """
        if marker:
            marker = marker.lower().replace(".", "")
            if hour > 12:
                return hour
            if marker == "pm" and hour < 12:
                return hour + 12
            if marker == "am" and hour == 12:
                return 0
            return hour

        if hour == 12:
            return 0 if MIDNIGHT_CONTEXT.search(text) else 12
        if 1 <= hour <= 11:
            if PM_CONTEXT.search(text):
                return hour + 12
            if AM_CONTEXT.search(text):
                return hour
        return hour

    def _extract_time_of_day(self, draft: _Draft, found_time: bool) -> None:
        if not found_time:
            draft.exact = self._match_offset(draft)
            found_time = draft.exact is not None

        # Period words are always cut from the title, but only set the clock
        # when nothing more precise was given.
        for pattern, clock in self.PERIODS:
            match = draft.find(pattern)
            if not match:
                continue
            draft.consume(match)
            if not found_time:
                draft.clock = clock
                if draft.day is None:
                    draft.day = draft.reference.date()
            return

    def _match_offset(self, draft: _Draft) -> datetime | None:
        """Reference time shifted by "in 2 hours" / "in half an hour", if present."""
        match = draft.find(self.HALF_HOUR_OFFSET)
        if match:
            draft.consume(match)
            return draft.reference + timedelta(minutes=30)

        match = draft.find(self.OFFSET)
        if not match:
            return None
        amount = _amount(match)
        if match.group("unit").lower().startswith("h"):
            offset = timedelta(hours=amount)
        else:
            offset = timedelta(minutes=amount)
        try:
            exact = draft.reference + offset
        except OverflowError:
            return None
        draft.consume(match)
        return exact

    def _resolve_due_date(self, draft: _Draft) -> datetime | None:
        if draft.exact is not None:
            due = draft.exact
        elif draft.day is not None:
            due = combine(draft.day, draft.clock or DEFAULT_TIME, draft.reference)
        else:
            return None
        return ensure_future(due, draft.reference, weekday_phrase=has_weekday_phrase(draft.text))

    def _extract_urgency(self, draft: _Draft) -> None:
        for pattern in self.URGENCY_NUMERIC:
            match = draft.find(pattern)
            if match:
                draft.urgency = clamp_urgency(float(match.group("value")))
                draft.consume(match)
                return

        match = draft.find(self.URGENCY_LEVEL)
        if match:
            draft.urgency = self.LEVELS[match.group("level").lower()]
            draft.consume(match)
            return

        level = None
        for pattern, value in self.URGENCY_KEYWORDS:
            match = draft.find(pattern)
            if match:
                level = value
                draft.consume(match)
                break

        trigger = keyword_urgency(draft.text)
        draft.urgency = trigger if trigger is not None else level

    def _clean_title(self, remaining: str) -> str:
        title = re.sub(r"\s+", " ", remaining)
        title = re.sub(r"\s+([,.;:!?])", r"\1", title)
        title = re.sub(r"([,;:])(?:\s*[,;:])+", r"\1", title)

        previous = None
        while previous != title:
            previous = title
            title = title.strip(EDGE_PUNCTUATION)
            title = DANGLING_TAIL.sub("", title)
            title = DANGLING_HEAD.sub("", title)

        if len(title) < 3:
            return UNTITLED_TASK
        if len(title) > MAX_TITLE_LENGTH:
            title = title[: MAX_TITLE_LENGTH - 3] + "..."
        return title


def fallback_parse(text: str, reference: datetime) -> ParseResult:
    """Parse `text` against `reference` without any model call."""
    return Parser().parse(text, reference)
