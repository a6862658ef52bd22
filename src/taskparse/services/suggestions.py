"""Candidate values offered to the user for missing fields."""

from __future__ import annotations

from datetime import datetime, time, timedelta

from taskparse.services.dates import combine, start_of_next_month
from taskparse.services.result import Suggestion, SuggestionType, TaskField
from taskparse.services.timezone import format_time

LATER_TODAY_OFFSET = timedelta(hours=2)
MORNING = time(9, 0)

URGENCY_SUGGESTIONS: list[tuple[float, str]] = [
    (4.0, "High"),
    (3.0, "Medium"),
]


def later_today(reference: datetime) -> datetime | None:
    """Two hours past the current hour, offered while two hours of today remain.

    The slot never crosses midnight: at 22:00 it is 23:59.
    """
    midnight = combine(reference.date() + timedelta(days=1), time(0, 0), reference)
    if midnight - reference < LATER_TODAY_OFFSET:
        return None
    candidate = reference.replace(minute=0, second=0, microsecond=0) + LATER_TODAY_OFFSET
    return min(candidate, midnight - timedelta(minutes=1))


def tomorrow_morning(reference: datetime) -> datetime:
    return combine(reference.date() + timedelta(days=1), MORNING, reference)


def default_suggestions(missing: list[TaskField], reference: datetime) -> list[Suggestion]:
    suggestions: list[Suggestion] = []

    if TaskField.DATE in missing:
        later = later_today(reference)
        if later is not None:
            suggestions.append(
                Suggestion(SuggestionType.DATETIME, later, f"Later today ({format_time(later)})")
            )
        morning = tomorrow_morning(reference)
        suggestions.append(
            Suggestion(SuggestionType.DATETIME, morning, f"Tomorrow morning ({format_time(morning)})")
        )

    if TaskField.URGENCY in missing:
        for value, label in URGENCY_SUGGESTIONS:
            suggestions.append(Suggestion(SuggestionType.URGENCY, value, label))

    return suggestions


def quick_time_suggestions(reference: datetime, limit: int = 6) -> list[Suggestion]:
    """Quick-pick due times for the reschedule/date picker.

    Today at noon, 3pm and 6pm; tomorrow at 9am and 2pm; the next working
    days at 9am; the coming weekend at 10am. Past slots are dropped.
    """
    today = reference.date()
    slots: list[tuple[datetime, str]] = []

    for hour in (12, 15, 18):
        slot = combine(today, time(hour), reference)
        slots.append((slot, f"Today {format_time(slot)}"))

    tomorrow = today + timedelta(days=1)
    for hour in (9, 14):
        slot = combine(tomorrow, time(hour), reference)
        slots.append((slot, f"Tomorrow {format_time(slot)}"))

    for offset in range(2, 7):
        day = today + timedelta(days=offset)
        if day.weekday() >= 5:
            continue
        slot = combine(day, MORNING, reference)
        slots.append((slot, f"{slot:%a} {format_time(slot)}"))

    for weekend_day in (5, 6):
        ahead = (weekend_day - today.weekday()) % 7 or 7
        slot = combine(today + timedelta(days=ahead), time(10), reference)
        slots.append((slot, f"{slot:%a} {format_time(slot)}"))

    upcoming = [
        Suggestion(SuggestionType.DATETIME, slot, label)
        for slot, label in slots
        if slot > reference
    ]
    return upcoming[:limit]


def horizon_suggestions(reference: datetime) -> list[Suggestion]:
    """Longer-range picks: a week out, two weeks out, first of next month."""
    today = reference.date()
    return [
        Suggestion(
            SuggestionType.DATETIME,
            combine(today + timedelta(days=7), MORNING, reference),
            "Next week",
        ),
        Suggestion(
            SuggestionType.DATETIME,
            combine(today + timedelta(days=14), MORNING, reference),
            "Two weeks",
        ),
        Suggestion(
            SuggestionType.DATETIME,
            combine(start_of_next_month(today), MORNING, reference),
            "Next month",
        ),
    ]
