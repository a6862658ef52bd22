"""Tests for the reference-time service and display helpers."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from taskparse.services.timezone import (
    TimezoneService,
    describe_reference,
    format_due,
    format_time,
    get_timezone_service,
    reset_timezone_service,
)

REFERENCE = datetime(2024, 6, 10, 14, 0)


class TestTimezoneService:
    """Tests for TimezoneService."""

    def test_default_timezone(self):
        service = TimezoneService("America/Los_Angeles")
        assert service.default_timezone == "America/Los_Angeles"

    def test_invalid_timezone_falls_back_to_utc(self):
        service = TimezoneService("Invalid/Timezone")
        assert service.default_timezone == "UTC"

    def test_now_is_aware_and_whole_seconds(self):
        current = TimezoneService("Europe/Paris").now()
        assert current.tzinfo is not None
        assert current.microsecond == 0

    def test_parse_reference_naive(self):
        reference = TimezoneService("UTC").parse_reference("2024-06-10T14:00:00")
        assert reference == REFERENCE
        assert reference.tzinfo is None

    def test_parse_reference_with_offset(self):
        reference = TimezoneService("UTC").parse_reference("2024-06-10T14:00:00+02:00")
        assert reference.utcoffset() == timedelta(hours=2)

    def test_parse_reference_empty_is_now(self):
        reference = TimezoneService("UTC").parse_reference(None)
        assert abs((reference - datetime.now(ZoneInfo("UTC"))).total_seconds()) < 5

    def test_parse_reference_garbage(self):
        with pytest.raises(ValueError):
            TimezoneService("UTC").parse_reference("next tuesday")


class TestSingleton:
    def setup_method(self):
        reset_timezone_service()

    def teardown_method(self):
        reset_timezone_service()

    def test_singleton_is_reused(self):
        assert get_timezone_service("Asia/Tokyo") is get_timezone_service()
        assert get_timezone_service().default_timezone == "Asia/Tokyo"


class TestFormatting:
    @pytest.mark.parametrize(
        "hour,minute,expected",
        [
            (0, 0, "12am"),
            (9, 30, "9:30am"),
            (12, 0, "12pm"),
            (17, 5, "5:05pm"),
        ],
    )
    def test_format_time(self, hour, minute, expected):
        assert format_time(datetime(2024, 6, 10, hour, minute)) == expected

    def test_format_due(self):
        assert format_due(datetime(2024, 6, 10, 17, 0), REFERENCE) == "Today at 5pm"
        assert format_due(datetime(2024, 6, 11, 9, 0), REFERENCE) == "Tomorrow at 9am"
        assert format_due(datetime(2024, 6, 14, 15, 0), REFERENCE) == "Fri, Jun 14 at 3pm"

    def test_describe_reference(self):
        assert describe_reference(REFERENCE) == {
            "date": "Monday, June 10, 2024",
            "time": "2pm",
            "iso": "2024-06-10T14:00:00",
            "weekday": "Monday",
        }
