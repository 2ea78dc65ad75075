"""
Relative-time interval parsing.

Turns expressions such as ``"5 minutes"``, ``"+1 day"`` or ``"1 hour 30 minutes"``
into exact `datetime.timedelta` values.

The duration is computed against a fixed reference instant instead of "now":
``t1 = REFERENCE_INSTANT + expression`` and the result is ``t1 - REFERENCE_INSTANT``.
Fixed-length units (seconds to fortnights) therefore always give the same
duration, and calendar units are resolved against 1970-01-01 UTC, so
``"1 month"`` is 31 days and ``"1 year"`` is 365 days on every machine.
"""

from __future__ import annotations

import calendar
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, Tuple

from ratekeeper.core.exceptions import IntervalParseError

REFERENCE_INSTANT = datetime(1970, 1, 1, tzinfo=timezone.utc)

# unit word -> (calendar months, fixed seconds)
_UNITS: Dict[str, Tuple[int, int]] = {
    "sec": (0, 1),
    "second": (0, 1),
    "min": (0, 60),
    "minute": (0, 60),
    "hour": (0, 3600),
    "day": (0, 86400),
    "week": (0, 7 * 86400),
    "fortnight": (0, 14 * 86400),
    "month": (1, 0),
    "year": (12, 0),
}

_TERM = re.compile(r"(\d+)\s*([a-z]+)", re.IGNORECASE)


def _unit_for(word: str) -> Tuple[int, int] | None:
    if word in _UNITS:
        return _UNITS[word]
    if word.endswith("s") and word[:-1] in _UNITS:
        return _UNITS[word[:-1]]
    return None


def _add_months(instant: datetime, months: int) -> datetime:
    """Calendar month arithmetic; the day is clamped to the target month's length."""
    month_index = instant.month - 1 + months
    year = instant.year + month_index // 12
    month = month_index % 12 + 1
    day = min(instant.day, calendar.monthrange(year, month)[1])
    return instant.replace(year=year, month=month, day=day)


class IntervalParser:
    """
    Parses ``[+]<n> <unit> [<n> <unit> ...]`` expressions into durations.

    Units are case-insensitive and accept singular, plural and short forms
    (``sec``, ``min``). Terms may repeat and are summed.
    """

    def __init__(self, reference: datetime = REFERENCE_INSTANT):
        self.reference = reference

    def parse(self, expression: str) -> timedelta:
        """
        Parse a relative-time expression.

        Args:
            expression: e.g. ``"5 minutes"`` or ``"+1 week 2 days"``.

        Returns:
            timedelta: the exact duration between the reference instant and
            the reference instant advanced by ``expression``.

        Raises:
            IntervalParseError: If the expression, or part of it, is not a
                recognized ``<n> <unit>`` term. The error names the fragment.
        """
        if not isinstance(expression, str):
            raise IntervalParseError(repr(expression))

        text = expression.strip()
        if text.startswith("+"):
            text = text[1:].lstrip()
        if not text:
            raise IntervalParseError(expression)

        months = 0
        seconds = 0
        position = 0
        while position < len(text):
            match = _TERM.match(text, position)
            unit = _unit_for(match.group(2).lower()) if match else None
            if unit is None:
                fragment = text[position:].split()[0] if match is None else match.group(0)
                raise IntervalParseError(expression, fragment=fragment)

            try:
                amount = int(match.group(1))
            except ValueError as e:
                raise IntervalParseError(
                    expression,
                    fragment=match.group(0),
                    message=f'Interval "{match.group(0)}" is too large to be represented as a duration.',
                ) from e
            months += amount * unit[0]
            seconds += amount * unit[1]

            position = match.end()
            while position < len(text) and text[position].isspace():
                position += 1

        try:
            target = _add_months(self.reference, months) + timedelta(seconds=seconds)
        except (ValueError, OverflowError) as e:
            raise IntervalParseError(
                expression,
                fragment=text,
                message=f'Interval "{text}" is too large to be represented as a duration.',
            ) from e
        return target - self.reference


_default_parser = IntervalParser()


def parse_interval(expression: str) -> timedelta:
    """Parse ``expression`` against the fixed `REFERENCE_INSTANT`."""
    return _default_parser.parse(expression)
