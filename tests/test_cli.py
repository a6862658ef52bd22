import json

import pytest

from taskparse import cli
from taskparse.config import settings

NOW = "2024-06-10T14:00:00"


@pytest.fixture(autouse=True)
def no_sentry(monkeypatch):
    monkeypatch.setattr(settings, "sentry_dsn", "")


class TestParseCommand:
    def test_offline_json(self, capsys):
        cli.main(["parse", "Call mom tomorrow at 5pm", "--now", NOW, "--offline"])

        data = json.loads(capsys.readouterr().out)
        assert data["title"] == "Call mom"
        assert data["dueDate"] == "2024-06-11T17:00:00"
        assert data["urgency"] is None
        assert data["stillNeeded"] == ["urgency"]

    def test_tags(self, capsys):
        cli.main(["parse", "Submit report by Friday afternoon, urgency 5", "--now", NOW,
                  "--offline", "--tags"])

        out = capsys.readouterr().out
        assert "<title>Submit report</title>" in out
        assert "<date>2024-06-14T15:00:00</date>" in out
        assert "<todo_complete>" in out

    def test_bad_reference_time(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["parse", "Pay rent", "--now", "yesterday-ish", "--offline"])
        assert exc_info.value.code == 2
        captured = capsys.readouterr()
        assert "ISO-8601" in captured.err
        assert captured.out == ""


class TestOtherCommands:
    def test_remind(self, capsys):
        cli.main(["remind", "call John tomorrow at 5pm", "--now", NOW, "--offline"])

        data = json.loads(capsys.readouterr().out)
        assert data == {
            "text": "call John",
            "dueDate": "2024-06-11T17:00:00",
            "error": None,
            "when": "Tomorrow at 5pm",
        }

    def test_remind_without_time_has_no_label(self, capsys):
        cli.main(["remind", "call John", "--now", NOW, "--offline"])

        data = json.loads(capsys.readouterr().out)
        assert data["dueDate"] is None
        assert "when" not in data

    def test_suggest(self, capsys):
        cli.main(["suggest", "--now", NOW])

        data = json.loads(capsys.readouterr().out)
        assert len(data["quick"]) == 6
        assert [item["displayText"] for item in data["horizon"]] == [
            "Next week",
            "Two weeks",
            "Next month",
        ]

    def test_check(self, capsys, monkeypatch):
        monkeypatch.setattr(settings, "openai_api_key", "")
        monkeypatch.setattr(settings, "gemini_api_key", "")
        monkeypatch.setattr(settings, "anthropic_api_key", "")

        cli.main(["check"])

        out = capsys.readouterr().out
        assert "[-] OpenAI API Key: MISSING" in out
        assert "Only the offline parser will be used." in out

    def test_no_command_prints_help(self, capsys):
        cli.main([])
        assert "usage" in capsys.readouterr().out.lower()


class TestErrorReporting:
    def test_unexpected_error_is_captured_and_reraised(self, monkeypatch):
        captured = []

        def boom(now):
            raise RuntimeError("suggestion failure")

        monkeypatch.setattr(cli, "suggest", boom)
        monkeypatch.setattr(cli, "capture_exception", captured.append)

        with pytest.raises(RuntimeError):
            cli.main(["suggest", "--now", NOW])

        assert len(captured) == 1
        assert str(captured[0]) == "suggestion failure"

    def test_clean_run_captures_nothing(self, capsys, monkeypatch):
        captured = []
        monkeypatch.setattr(cli, "capture_exception", captured.append)

        cli.main(["suggest", "--now", NOW])

        assert captured == []
