"""Five-field cron schedule evaluation.

The cron trigger stores its schedule as separate ``minute hour day month
dayofweek`` fields. This module checks them and computes the next matching run
time with :mod:`croniter`.

Each field accepts ``*``, a number ``N``, a range ``A-B``, a step suffix
(``*/S``, ``A-B/S``) and comma separated lists of those. Day of week runs from
0 to 7 where both 0 and 7 mean Sunday. When both the day of month and the day
of week are restricted, a date matches if either one matches.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from croniter import CroniterError, croniter

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import tzinfo

__all__ = ["CRON_FIELDS", "StandardCronEvaluator"]

CRON_FIELDS: tuple[str, ...] = ("minute", "hour", "day", "month", "dayofweek")
"""Cron field names in expression order."""

MAX_YEARS_BETWEEN_MATCHES = 8

# Names, "L", "W", "#", "R" and "H" are not part of the field grammar.
_FIELD_RE = re.compile(r"^[0-9*,/\-]+$")


def _field_value(value: object) -> str:
    text = "" if value is None else str(value).strip()
    return text or "*"


class StandardCronEvaluator:
    """Cron evaluator computing run times in a fixed timezone.

    Example:
        >>> evaluator = StandardCronEvaluator("UTC")
        >>> evaluator.validate_field("minute", "*/15")
        True
        >>> fields = {"minute": "0", "hour": "0"}
        >>> evaluator.next_run_time(fields, after=1_700_000_000)
        1700006400
    """

    def __init__(self, timezone_name: str = "UTC") -> None:
        """Initialize the evaluator.

        Args:
            timezone_name: IANA timezone the cron fields are expressed in.
        """
        self.timezone_name = timezone_name
        self._zone: tzinfo = timezone.utc if timezone_name.upper() == "UTC" else ZoneInfo(timezone_name)

    @staticmethod
    def expression(fields: Mapping[str, str]) -> str:
        """Join cron fields into a crontab expression; missing fields are ``*``."""
        return " ".join(_field_value(fields.get(name)) for name in CRON_FIELDS)

    def validate_field(self, field: str, value: str) -> bool:
        """Return whether ``value`` is valid syntax for cron ``field``."""
        if field not in CRON_FIELDS:
            return False
        text = str(value).strip()
        if not _FIELD_RE.match(text) or "" in text.split(","):
            return False
        try:
            return bool(croniter.is_valid(self.expression({field: text})))
        except ValueError:
            return False

    def next_run_time(self, fields: Mapping[str, str], after: int) -> int:
        """Return the first matching epoch time strictly after ``after``.

        Raises:
            ValueError: If the fields are invalid or never match.
        """
        for name in CRON_FIELDS:
            value = _field_value(fields.get(name))
            if not self.validate_field(name, value):
                msg = f"Invalid cron {name} expression '{value}'"
                raise ValueError(msg)

        start = datetime.fromtimestamp(after, tz=self._zone)
        try:
            schedule = croniter(
                self.expression(fields),
                start,
                day_or=True,
                max_years_between_matches=MAX_YEARS_BETWEEN_MATCHES,
            )
            nexttime = int(schedule.get_next(float))
            # A repeated wall-clock hour can map back before ``after``.
            while nexttime <= after:
                nexttime = int(schedule.get_next(float))
        except CroniterError as exc:
            msg = f"Cron schedule never matches: {exc}"
            raise ValueError(msg) from exc
        return nexttime
