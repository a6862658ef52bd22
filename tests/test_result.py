import json
from datetime import datetime

from taskparse.services.result import (
    UNTITLED_TASK,
    ParseResult,
    Suggestion,
    SuggestionType,
    TaskField,
    clamp_urgency,
)


class TestSerialization:
    def test_to_dict_shape(self):
        result = ParseResult(
            title="Call mom",
            due_date=datetime(2024, 6, 11, 17, 0),
            follow_up="How urgent is this task? (1-5)",
            still_needed=[TaskField.URGENCY],
            suggestions=[Suggestion(SuggestionType.URGENCY, 4.0, "High")],
            source="llm",
        )

        assert result.to_dict() == {
            "title": "Call mom",
            "dueDate": "2024-06-11T17:00:00",
            "urgency": None,
            "followUp": "How urgent is this task? (1-5)",
            "stillNeeded": ["urgency"],
            "suggestions": [{"type": "urgency", "value": 4.0, "displayText": "High"}],
        }

    def test_to_json_round_trips_through_json(self):
        result = ParseResult(
            suggestions=[
                Suggestion(SuggestionType.DATETIME, datetime(2024, 6, 11, 9, 0), "Tomorrow")
            ]
        )
        data = json.loads(result.to_json())
        assert data["dueDate"] is None
        assert data["suggestions"][0]["value"] == "2024-06-11T09:00:00"

    def test_source_is_not_serialized(self):
        assert "source" not in ParseResult(source="llm").to_dict()


class TestTaggedText:
    def test_incomplete(self):
        result = ParseResult(
            title="Call mom",
            due_date=datetime(2024, 6, 11, 17, 0),
            follow_up="How urgent is this task? (1-5)",
            still_needed=[TaskField.URGENCY],
            suggestions=[Suggestion(SuggestionType.URGENCY, 4.0, "High")],
        )

        assert result.to_tagged_text() == (
            "<title>Call mom</title>\n"
            "<date>2024-06-11T17:00:00</date>\n"
            "<follow_up>How urgent is this task? (1-5)</follow_up>\n"
            "<still_needed>urgency</still_needed>\n"
            '<suggestion type="urgency" value="4.0">High</suggestion>\n'
        )

    def test_complete_marks_todo(self):
        result = ParseResult(
            title="Call mom",
            due_date=datetime(2024, 6, 11, 17, 0),
            urgency=3.0,
            follow_up="Anything else to add?",
        )
        text = result.to_tagged_text()
        assert "<urgency>3.0</urgency>" in text
        assert text.endswith("<todo_complete>\n")

    def test_sentinel_title_is_not_complete(self):
        result = ParseResult(
            title=UNTITLED_TASK,
            due_date=datetime(2024, 6, 11, 17, 0),
            urgency=3.0,
        )
        assert "<todo_complete>" not in result.to_tagged_text()


class TestHelpers:
    def test_has_title(self):
        assert ParseResult(title="Pay rent").has_title
        assert not ParseResult(title=UNTITLED_TASK).has_title
        assert not ParseResult(title=None).has_title

    def test_clamp_urgency(self):
        assert clamp_urgency(0) == 1.0
        assert clamp_urgency(9.5) == 5.0
        assert clamp_urgency(2.5) == 2.5

    def test_suggestion_is_temporal(self):
        assert Suggestion(SuggestionType.DATE, datetime(2024, 6, 11), "Tue").is_temporal
        assert not Suggestion(SuggestionType.URGENCY, 3.0, "Medium").is_temporal
