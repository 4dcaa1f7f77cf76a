"""Tests for cron field validation and next run time computation."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from litestar_dataflows.scheduling.cron import StandardCronEvaluator
from tests.conftest import NEXT_MIDNIGHT, NOW


def _epoch(*args: int) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


@pytest.mark.unit
class TestValidateField:
    """Tests for single-field validation."""

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("minute", "5"),
            ("minute", "*/15"),
            ("hour", "1-5/2,12"),
            ("day", "1,15"),
            ("month", "*"),
            ("dayofweek", "1-5"),
            ("dayofweek", "7"),
            ("dayofweek", "0"),
        ],
    )
    def test_valid_expressions(self, field: str, value: str) -> None:
        assert StandardCronEvaluator().validate_field(field, value) is True

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("minute", "60"),
            ("hour", "24"),
            ("day", "0"),
            ("month", "13"),
            ("dayofweek", "8"),
            ("minute", "abc"),
            ("minute", ""),
            ("minute", "1,,2"),
            ("minute", "R"),
            ("hour", "H"),
            ("dayofweek", "mon"),
            ("day", "L"),
        ],
    )
    def test_invalid_expressions(self, field: str, value: str) -> None:
        assert StandardCronEvaluator().validate_field(field, value) is False

    def test_unknown_field(self) -> None:
        assert StandardCronEvaluator().validate_field("second", "*") is False

    def test_expression_fills_missing_fields(self) -> None:
        assert StandardCronEvaluator.expression({"minute": "0", "hour": " "}) == "0 * * * *"


@pytest.mark.unit
class TestStandardCronEvaluator:
    """Tests for the epoch-based evaluator."""

    def test_daily_midnight(self) -> None:
        fields = {"minute": "0", "hour": "0", "day": "*", "month": "*", "dayofweek": "*"}

        assert StandardCronEvaluator().next_run_time(fields, NOW) == NEXT_MIDNIGHT

    def test_every_fifteen_minutes(self) -> None:
        assert StandardCronEvaluator().next_run_time({"minute": "*/15"}, NOW) == NOW + 100

    def test_every_minute_is_strictly_after(self) -> None:
        assert StandardCronEvaluator().next_run_time({}, NEXT_MIDNIGHT) == NEXT_MIDNIGHT + 60

    def test_matching_time_is_strictly_after(self) -> None:
        after = _epoch(2023, 11, 14, 10, 30)

        result = StandardCronEvaluator().next_run_time({"minute": "30", "hour": "10"}, after)

        assert result == _epoch(2023, 11, 15, 10, 30)

    def test_day_or_weekday_when_both_restricted(self) -> None:
        """The 13th or any Friday matches; from Tuesday the 14th that is Friday the 17th."""
        fields = {"minute": "0", "hour": "0", "day": "13", "dayofweek": "5"}

        assert StandardCronEvaluator().next_run_time(fields, NOW) == _epoch(2023, 11, 17)

    def test_sunday_as_seven(self) -> None:
        fields = {"minute": "0", "hour": "0", "dayofweek": "7"}

        assert StandardCronEvaluator().next_run_time(fields, NOW) == _epoch(2023, 11, 19)

    def test_month_rollover(self) -> None:
        fields = {"minute": "0", "hour": "0", "day": "1", "month": "1"}

        assert StandardCronEvaluator().next_run_time(fields, NOW) == _epoch(2024, 1, 1)

    def test_leap_day(self) -> None:
        fields = {"minute": "0", "hour": "0", "day": "29", "month": "2"}

        assert StandardCronEvaluator().next_run_time(fields, _epoch(2024, 3, 1)) == _epoch(2028, 2, 29)

    def test_timezone(self) -> None:
        """Midnight in Amsterdam (UTC+1 in November) is 23:00 UTC."""
        evaluator = StandardCronEvaluator("Europe/Amsterdam")

        result = evaluator.next_run_time({"minute": "0", "hour": "0"}, NOW)

        assert result == NEXT_MIDNIGHT - 3600

    def test_repeated_hour_stays_after_reference(self) -> None:
        """01:30 GMT on 2023-10-29 is the second pass through 01:30 in London."""
        after = _epoch(2023, 10, 29, 1, 30)

        result = StandardCronEvaluator("Europe/London").next_run_time({"minute": "*"}, after)

        assert after < result <= after + 3600

    def test_invalid_fields_raise(self) -> None:
        with pytest.raises(ValueError, match="Invalid cron hour"):
            StandardCronEvaluator().next_run_time({"hour": "99"}, NOW)

    def test_impossible_date_raises(self) -> None:
        with pytest.raises(ValueError):
            StandardCronEvaluator().next_run_time({"day": "31", "month": "2"}, NOW)
