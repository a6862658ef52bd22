import argparse
import json
import logging
import sys

from taskparse.config import settings
from taskparse.sentry import capture_exception, init_sentry
from taskparse.sentry import flush as sentry_flush

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _reference(value: str | None):
    from taskparse.services.timezone import get_timezone_service

    try:
        return get_timezone_service().parse_reference(value)
    except ValueError:
        print(f"Error: --now must be an ISO-8601 timestamp, got {value!r}", file=sys.stderr)
        sys.exit(2)


def _task_parser(offline: bool):
    from taskparse.services.llm_parser import TaskParser, get_task_parser

    if offline:
        return TaskParser(resolver=None)
    return get_task_parser()


def parse_task(text: str, now: str | None, offline: bool, tags: bool) -> None:
    reference = _reference(now)
    result = _task_parser(offline).parse(text, reference)
    logger.debug("Parsed via %s", result.source)

    if tags:
        print(result.to_tagged_text(), end="")
    else:
        print(result.to_json(indent=2))


def remind(text: str, now: str | None, offline: bool) -> None:
    from taskparse.services.reminders import is_reminder_command, parse_reminder
    from taskparse.services.timezone import format_due

    reference = _reference(now)
    if not is_reminder_command(text):
        text = f"!remindme {text}"
    reminder = parse_reminder(text, reference, parser=_task_parser(offline))
    data = reminder.to_dict()
    if reminder.due_date is not None:
        data["when"] = format_due(reminder.due_date, reference)
    print(json.dumps(data, indent=2))


def suggest(now: str | None) -> None:
    from taskparse.services.suggestions import horizon_suggestions, quick_time_suggestions

    reference = _reference(now)
    payload = {
        "quick": [s.to_dict() for s in quick_time_suggestions(reference)],
        "horizon": [s.to_dict() for s in horizon_suggestions(reference)],
    }
    print(json.dumps(payload, indent=2))


def check_config() -> None:
    print("taskparse Configuration Check\n")

    checks = [
        ("OpenAI API Key", settings.has_openai),
        ("Gemini API Key", settings.has_gemini),
        ("Anthropic API Key", settings.has_anthropic),
        ("Sentry DSN", settings.has_sentry),
    ]

    for name, configured in checks:
        status = "OK" if configured else "MISSING"
        symbol = "+" if configured else "-"
        print(f"  [{symbol}] {name}: {status}")

    print(f"\n  Preferred provider: {settings.llm_provider}")
    print(f"  User timezone: {settings.user_timezone}")

    print()
    if settings.has_llm:
        print("LLM provider configured. Tasks are resolved by the LLM with fallback.")
    else:
        print("No LLM provider configured. Only the offline parser will be used.")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Natural-language task parser")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    parse_cmd = subparsers.add_parser("parse", help="Parse a task sentence")
    parse_cmd.add_argument("text", help="Task text, e.g. 'Call mom tomorrow at 5pm'")
    parse_cmd.add_argument("--now", help="Reference time (ISO-8601); defaults to now")
    parse_cmd.add_argument("--offline", action="store_true", help="Skip the LLM resolver")
    parse_cmd.add_argument("--tags", action="store_true", help="Print the tag block")

    remind_cmd = subparsers.add_parser("remind", help="Parse a !remindme command")
    remind_cmd.add_argument("text", help="Reminder text, with or without !remindme")
    remind_cmd.add_argument("--now", help="Reference time (ISO-8601); defaults to now")
    remind_cmd.add_argument("--offline", action="store_true", help="Skip the LLM resolver")

    suggest_cmd = subparsers.add_parser("suggest", help="Show quick-pick due times")
    suggest_cmd.add_argument("--now", help="Reference time (ISO-8601); defaults to now")

    subparsers.add_parser("check", help="Check configuration")

    args = parser.parse_args(argv)

    setup_logging()

    # Initialize Sentry for error tracking (disabled if no DSN configured)
    init_sentry(
        dsn=settings.sentry_dsn,
        environment=settings.sentry_environment,
    )

    try:
        if args.command == "parse":
            parse_task(args.text, args.now, args.offline, args.tags)
        elif args.command == "remind":
            remind(args.text, args.now, args.offline)
        elif args.command == "suggest":
            suggest(args.now)
        elif args.command == "check":
            check_config()
        else:
            parser.print_help()
    except Exception as e:
        capture_exception(e)
        raise
    finally:
        # Flush any pending Sentry events before exit
        sentry_flush(timeout=2.0)


if __name__ == "__main__":
    main()
