"""Calendar helpers and forward-date correction.

Every due date and date-valued suggestion leaves the parser strictly after
the reference time. `ensure_future` repairs anything that resolved to the past:

- same calendar day as the reference: the same time tomorrow
- an explicit weekday or "next week"/"next month" phrase: one week later
- anything else: the first whole-day step that lands after the reference
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta

from dateutil.relativedelta import relativedelta

WEEKDAYS: dict[str, int] = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

WEEKDAY_PHRASE_PATTERN = re.compile(
    r"\b(?:" + "|".join(WEEKDAYS) + r"|next\s+week|next\s+month)\b",
    re.IGNORECASE,
)

ONE_DAY = timedelta(days=1)
ONE_WEEK = timedelta(days=7)


def has_weekday_phrase(text: str) -> bool:
    """True when the text names a weekday or says "next week"/"next month"."""
    return bool(WEEKDAY_PHRASE_PATTERN.search(text))


def align_tz(value: datetime, reference: datetime) -> datetime:
    """Give `value` the same tz-awareness as `reference` so they compare.

    A naive value next to an aware reference is read as wall time in the
    reference's zone; an aware value next to a naive reference keeps its
    wall time and drops the offset.
    """
    if reference.tzinfo is None:
        return value.replace(tzinfo=None) if value.tzinfo is not None else value
    if value.tzinfo is None:
        return value.replace(tzinfo=reference.tzinfo)
    return value.astimezone(reference.tzinfo)


def ensure_future(due: datetime, reference: datetime, *, weekday_phrase: bool = False) -> datetime:
    """Push `due` forward until it is strictly after `reference`."""
    due = align_tz(due, reference)
    if due > reference:
        return due

    if due.date() == reference.date():
        return due + ONE_DAY

    if weekday_phrase:
        due = due + ONE_WEEK
        if due > reference:
            return due

    # Jump by whole days, then step; at most two single-day steps remain.
    due = due + timedelta(days=(reference - due).days)
    while due <= reference:
        due = due + ONE_DAY
    return due


def combine(day: date, clock: time, reference: datetime) -> datetime:
    """Build a datetime on `day` at `clock` in the reference's timezone."""
    return datetime.combine(day, clock, tzinfo=reference.tzinfo)


def add_months(day: date, months: int) -> date:
    """Calendar-month arithmetic, clamping to the last day of short months."""
    return day + relativedelta(months=months)


def days_until_weekday(today: int, target: int, *, skip_upcoming: bool = False) -> int:
    """Days from weekday `today` to the next `target` weekday.

    The nearest occurrence is never today (a same-day match rolls a week).
    With `skip_upcoming` ("next friday") the result is always at least a week out.
    """
    ahead = (target - today) % 7
    if skip_upcoming:
        return ahead + 7
    return ahead or 7


def start_of_next_month(day: date) -> date:
    return add_months(day.replace(day=1), 1)
