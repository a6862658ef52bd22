import json
from datetime import datetime

import pytest

from taskparse.services.llm_client import LLMProvider, LLMResponse
from taskparse.services.llm_parser import (
    IntentResolutionError,
    IntentResolver,
    TaskParser,
    build_system_prompt,
    parse_payload,
)
from taskparse.services.parser import Parser
from taskparse.services.result import ParseResult, SuggestionType, TaskField

REFERENCE = datetime(2024, 6, 10, 14, 0)


class FakeLLM:
    def __init__(self, text: str | None = None, error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[dict] = []
        self.is_available = True

    def complete(self, prompt: str, **kwargs) -> LLMResponse:
        self.calls.append({"prompt": prompt, **kwargs})
        if self.error is not None:
            raise self.error
        return LLMResponse(text=self.text or "", provider=LLMProvider.OPENAI, model="gpt-4.1-mini")


class DummyParser:
    def __init__(self, result: ParseResult) -> None:
        self.result = result
        self.calls: list[str] = []

    def parse(self, text: str, reference: datetime | None = None) -> ParseResult:
        self.calls.append(text)
        return self.result


def payload(**overrides) -> str:
    data = {
        "title": "Call mom",
        "dueDate": "2024-06-11T17:00:00",
        "urgency": None,
        "followUp": "How urgent?",
        "stillNeeded": ["urgency"],
        "suggestions": [{"type": "urgency", "value": 4, "displayText": "High"}],
    }
    data.update(overrides)
    return json.dumps(data)


class TestParsePayload:
    def test_strips_code_fences(self):
        result = parse_payload(f"```json\n{payload()}\n```")
        assert result.title == "Call mom"
        assert result.due_date == datetime(2024, 6, 11, 17, 0)

    def test_missing_required_key(self):
        data = json.loads(payload())
        del data["urgency"]
        with pytest.raises(ValueError):
            parse_payload(json.dumps(data))

    def test_not_json(self):
        with pytest.raises(ValueError):
            parse_payload("Sure! Here is your task.")

    def test_not_an_object(self):
        with pytest.raises(ValueError):
            parse_payload("[1, 2, 3]")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"urgency": 7},
            {"urgency": "very"},
            {"stillNeeded": ["time"]},
            {"dueDate": "next tuesday"},
            {"suggestions": [{"type": "date", "value": "soonish", "displayText": "Soon"}]},
            {"suggestions": [{"type": "weather", "value": 1, "displayText": "Sunny"}]},
        ],
    )
    def test_rejects_malformed_fields(self, overrides):
        with pytest.raises(ValueError):
            parse_payload(payload(**overrides))


class TestSystemPrompt:
    def test_embeds_reference_time(self):
        prompt = build_system_prompt(REFERENCE)
        assert "Monday, June 10, 2024" in prompt
        assert "2pm" in prompt
        assert "2024-06-10T14:00:00" in prompt
        assert "ALREADY KNOWN" not in prompt

    def test_lists_known_fields(self):
        previous = ParseResult(title="Call mom", urgency=3.0)
        prompt = build_system_prompt(REFERENCE, previous)
        assert "ALREADY KNOWN" in prompt
        assert "- title: Call mom" in prompt
        assert "- urgency: 3.0" in prompt
        assert "dueDate: 20" not in prompt


class TestIntentResolver:
    def test_valid_response(self):
        llm = FakeLLM(payload())
        result = IntentResolver(llm=llm).resolve("Call mom tomorrow at 5pm", REFERENCE)

        assert result.source == "llm"
        assert result.title == "Call mom"
        assert result.due_date == datetime(2024, 6, 11, 17, 0)
        assert result.urgency is None
        assert result.still_needed == [TaskField.URGENCY]
        assert result.follow_up == "How urgent?"
        assert [(s.type, s.value) for s in result.suggestions] == [(SuggestionType.URGENCY, 4.0)]
        assert llm.calls[0]["json_mode"] is True
        assert llm.calls[0]["temperature"] == 0.2

    def test_past_due_date_is_corrected(self):
        llm = FakeLLM(payload(dueDate="2024-06-10T09:00:00"))
        result = IntentResolver(llm=llm).resolve("Call mom at 9", REFERENCE)
        assert result.due_date == datetime(2024, 6, 11, 9, 0)

    def test_past_date_suggestions_are_corrected(self):
        llm = FakeLLM(
            payload(
                dueDate=None,
                urgency=3,
                suggestions=[
                    {"type": "datetime", "value": "2024-06-08T10:00:00", "displayText": "Sat"}
                ],
            )
        )
        result = IntentResolver(llm=llm).resolve("Call mom", REFERENCE)
        assert result.suggestions[0].value == datetime(2024, 6, 11, 10, 0)
        assert all(s.value > REFERENCE for s in result.suggestions)

    def test_keyword_urgency_applied_when_null(self):
        llm = FakeLLM(payload(title="Meet with investor", dueDate=None, urgency=None))
        result = IntentResolver(llm=llm).resolve("Meet with investor", REFERENCE)

        assert result.urgency == 4.5
        assert result.still_needed == [TaskField.DATE]
        assert all(s.is_temporal for s in result.suggestions)

    def test_still_needed_is_recomputed(self):
        llm = FakeLLM(payload(urgency=2, stillNeeded=["title", "date"]))
        result = IntentResolver(llm=llm).resolve("Call mom tomorrow at 5pm", REFERENCE)
        assert result.still_needed == []
        assert result.follow_up == "Anything else to add?"

    def test_provider_failure_is_wrapped(self):
        cause = RuntimeError("All LLM providers failed: openai: timeout")
        with pytest.raises(IntentResolutionError) as exc_info:
            IntentResolver(llm=FakeLLM(error=cause)).resolve("Call mom", REFERENCE)
        assert exc_info.value.__cause__ is cause

    def test_invalid_payload_is_wrapped(self):
        with pytest.raises(IntentResolutionError):
            IntentResolver(llm=FakeLLM("not json")).resolve("Call mom", REFERENCE)

    def test_previous_fields_are_kept(self):
        previous = ParseResult(title="Call mom", due_date=datetime(2024, 6, 11, 17, 0))
        llm = FakeLLM(payload(title="Something else", dueDate=None, urgency=3))

        result = IntentResolver(llm=llm).resolve("urgency 3", REFERENCE, previous=previous)

        assert result.title == "Call mom"
        assert result.due_date == datetime(2024, 6, 11, 17, 0)
        assert result.urgency == 3.0
        assert result.is_complete
        assert "- title: Call mom" in llm.calls[0]["system_prompt"]


class TestTaskParser:
    def test_uses_resolver_when_available(self):
        fallback = DummyParser(ParseResult(title="fallback"))
        parser = TaskParser(resolver=IntentResolver(llm=FakeLLM(payload())), fallback=fallback)

        result = parser.parse("Call mom tomorrow at 5pm", REFERENCE)

        assert result.source == "llm"
        assert fallback.calls == []

    def test_falls_back_on_resolution_error(self, caplog):
        parser = TaskParser(resolver=IntentResolver(llm=FakeLLM("not json")), fallback=Parser())

        result = parser.parse("Call mom tomorrow at 5pm", REFERENCE)

        assert result.source == "fallback"
        assert result.title == "Call mom"
        assert result.due_date == datetime(2024, 6, 11, 17, 0)
        assert "falling back" in caplog.text

    def test_without_resolver(self):
        fallback = DummyParser(ParseResult(title="Buy milk"))
        parser = TaskParser(resolver=None, fallback=fallback)

        result = parser.parse("Buy milk", REFERENCE)

        assert result is fallback.result
        assert fallback.calls == ["Buy milk"]

    def test_unavailable_resolver_is_skipped(self):
        llm = FakeLLM(payload())
        llm.is_available = False
        parser = TaskParser(resolver=IntentResolver(llm=llm), fallback=Parser())

        result = parser.parse("Pay rent", REFERENCE)

        assert result.source == "fallback"
        assert llm.calls == []

    def test_multi_turn_fallback(self):
        parser = TaskParser(resolver=None, fallback=Parser())

        first = parser.parse("Call mom tomorrow at 5pm", REFERENCE)
        second = parser.parse("urgency 4", REFERENCE, previous=first)

        assert second.title == "Call mom"
        assert second.due_date == datetime(2024, 6, 11, 17, 0)
        assert second.urgency == 4.0
        assert second.still_needed == []
